"""
Unit tests for the component row layout.
"""

import os
import sys
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from gui.layout_manager import LayoutManager
from gui.pane_container import PaneContainer


class TestLayoutManager(unittest.TestCase):
    """Test cases for LayoutManager."""

    def setUp(self):
        self.manager = LayoutManager(total_width=1200, gutter=5)
        self.bar = PaneContainer("thumbnailsBar", "bar0", width=120)
        self.box = PaneContainer("renderBox", "box")
        self.toolbar = PaneContainer("toolbar", "toolbar", width=120)
        self.trash = PaneContainer("trash", "trash", width=60)

    def test_renderers_box_fills_remaining_width(self):
        self.manager.layout([self.bar, self.box, self.toolbar, self.trash])

        self.assertEqual((self.bar.left, self.bar.right), (0.0, None))
        self.assertEqual((self.box.left, self.box.right), (125.0, None))
        self.assertEqual((self.trash.left, self.trash.right), (None, 0.0))
        self.assertEqual((self.toolbar.left, self.toolbar.right), (None, 65.0))
        self.assertEqual(self.box.width, 885.0)

    def test_two_bars_before_box(self):
        second = PaneContainer("thumbnailsBar", "bar1", width=120)
        self.manager.layout([second, self.bar, self.box, self.trash])
        self.assertEqual(second.left, 0.0)
        self.assertEqual(self.bar.left, 125.0)
        self.assertEqual(self.box.left, 250.0)
        self.assertEqual(self.box.width, 1200 - 250 - 65)

    def test_without_renderers_box_everything_on_the_left(self):
        self.manager.layout([self.bar, self.toolbar])
        self.assertEqual(self.toolbar.left, 125.0)
        self.assertIsNone(self.toolbar.right)

    def test_move_component_to_front_and_back(self):
        components = [self.bar, self.box, self.toolbar, self.trash]

        self.manager.move_component(components, self.trash, -30)
        self.assertEqual(components, [self.trash, self.bar, self.box, self.toolbar])
        self.assertEqual(self.box.left, 190.0)

        self.manager.move_component(components, self.trash, 30)
        self.assertEqual(components, [self.bar, self.box, self.toolbar, self.trash])
        self.assertEqual(self.trash.right, 0.0)

    def test_width_never_negative(self):
        manager = LayoutManager(total_width=100, gutter=5)
        manager.layout([self.bar, self.box, self.toolbar])
        self.assertEqual(self.box.width, 0.0)


if __name__ == '__main__':
    unittest.main()
