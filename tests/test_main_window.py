"""
Unit tests for the main window (gui.main_window).

Runs offscreen: checks that the widgets mirror the viewer's batches, panes
and toolbar, and that drop widgets resolve drag gestures.
"""

import os
import shutil
import sys
import tempfile
import unittest

import numpy as np

os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "src"))

from PIL import Image
from PySide6.QtWidgets import QApplication

from core.collaboration import LocalCollaborationHub
from core.slice_preview_engine import SlicePreviewEngine
from fakes import local, make_dicom_bytes
from gui.main_window import MainWindow, data_url_to_pixmap, pil_to_pixmap
from gui.viewer import Viewer
from utils.config_manager import ConfigManager
from utils.image_utils import image_to_data_url


def series(prefix, count=3):
    return [local(f"{prefix}/s{i}.dcm",
                  make_dicom_bytes(np.full((8, 6), 10 * i, dtype=np.uint16), SeriesDescription=prefix.upper()))
            for i in range(count)]


class TestPixmapHelpers(unittest.TestCase):

    @classmethod
    def setUpClass(cls):
        cls.app = QApplication.instance() or QApplication(sys.argv)

    def test_pil_to_pixmap(self):
        pixmap = pil_to_pixmap(Image.new("L", (6, 8), 40))
        self.assertEqual((pixmap.width(), pixmap.height()), (6, 8))
        self.assertTrue(pil_to_pixmap(None).isNull())

    def test_data_url_to_pixmap(self):
        pixmap = data_url_to_pixmap(image_to_data_url(Image.new("RGB", (5, 3))))
        self.assertEqual((pixmap.width(), pixmap.height()), (5, 3))
        self.assertTrue(data_url_to_pixmap(None).isNull())


class TestMainWindow(unittest.TestCase):
    """Test cases for MainWindow."""

    @classmethod
    def setUpClass(cls):
        cls.app = QApplication.instance() or QApplication(sys.argv)

    def setUp(self):
        self.config_dir = tempfile.mkdtemp()
        self.config = ConfigManager(config_dir=self.config_dir)
        self.engine = SlicePreviewEngine()
        hub = LocalCollaborationHub()
        channel = hub.create_channel({"id": "1", "name": "Owner", "mail": "owner@example.org"})
        self.viewer = Viewer("viewer0", self.engine, channel, self.config)
        self.window = MainWindow(self.viewer, self.engine, self.config)

    def tearDown(self):
        self.window.close()
        shutil.rmtree(self.config_dir, ignore_errors=True)

    def test_batches_get_thumbnail_strips(self):
        self.viewer.init(series("axial"))
        self.viewer.add_data(series("sagittal"))

        self.assertEqual(sorted(self.window.strips), [0, 1])
        strip = self.window.strips[0]
        self.assertTrue(strip.items[0].isHidden())
        self.assertFalse(strip.items[0].icon().isNull())

        self.viewer.remove_batch(1)
        self.assertEqual(sorted(self.window.strips), [0])

    def test_rendered_pane_shows_slice(self):
        self.viewer.init(series("axial"))

        view = self.window.pane_grid.views[0]
        self.assertIsNotNone(view.pixmap())
        self.assertFalse(view.pixmap().isNull())
        self.assertIn("slice: 1/3", view.overlay.text())

    def test_scroll_updates_overlay(self):
        self.viewer.init(series("axial"))
        self.window.scroll_pane(0, 1)
        self.assertEqual(self.viewer.panes[0].current_slice(), 1)
        self.assertIn("slice: 2/3", self.window.pane_grid.views[0].overlay.text())

    def test_toolbar_actions_mirror_viewer_toolbar(self):
        actions = self.window.toolbar_actions
        self.assertFalse(actions["link"].isVisible())
        self.assertTrue(actions["collab"].isVisible())

        actions["collab"].trigger()

        self.assertEqual(actions["collab"].text(), "End collab")
        self.assertTrue(self.window.leave_collab_action.isEnabled())
        self.assertTrue(self.window.room_label.text().startswith("Room: "))

    def test_drop_on_pane_grid_activates(self):
        self.viewer.init(series("axial") + series("coronal"))
        bar = self.viewer.thumbnails_bars[0]
        self.window.gesture = self.viewer.begin_drag(bar, 1, (0.0, 0.0))
        self.window.gesture.move((10.0, 0.0))

        self.window.drop_gesture(self.viewer.renderers_box)

        self.assertIn(1, self.viewer.panes)
        self.assertIn(1, self.window.pane_grid.views)

    def test_drop_on_trash_removes_batch(self):
        self.viewer.init(series("axial"))
        self.window.gesture = self.viewer.begin_drag(self.viewer.renderers_box, 0, (0.0, 0.0))
        self.window.gesture.move((100.0, 0.0))

        self.window.drop_gesture(self.viewer.trash.drop_region)

        self.assertEqual(self.window.strips, {})
        self.assertEqual(self.window.pane_grid.views, {})

    def test_grip_drag_moves_strip_behind_pane_grid(self):
        self.viewer.init(series("axial"))
        self.viewer.add_data(series("sagittal"))
        bar = self.viewer.thumbnails_bars[0]
        column = self.window.batch_columns[0]
        self.assertGreaterEqual(self.window.leading_layout.indexOf(column), 0)

        self.assertTrue(self.window.begin_component_drag(bar, 100.0))
        self.window.move_component_drag(250.0)
        self.window.drop_component_drag(400.0)

        self.assertIs(self.viewer.components[-1], bar)
        self.assertIsNone(self.window.gesture)
        self.assertEqual(self.window.leading_layout.indexOf(column), -1)
        self.assertGreaterEqual(self.window.trailing_layout.indexOf(column), 0)

    def test_grip_drag_moves_trash_to_front(self):
        self.assertTrue(self.window.begin_component_drag(self.viewer.trash, 500.0))
        self.window.drop_component_drag(100.0)

        self.assertIs(self.viewer.components[0], self.viewer.trash)
        self.assertEqual(self.window.row_layout.indexOf(self.window.trash_column), 0)

    def test_grip_click_keeps_order(self):
        order = list(self.viewer.components)
        self.window.begin_component_drag(self.viewer.trash, 500.0)
        self.window.drop_component_drag(505.0)
        self.assertEqual(self.viewer.components, order)

    def test_removed_record_leaves_strip(self):
        self.viewer.init(series("axial") + series("coronal"))
        strip = self.window.strips[0]

        self.viewer.remove_record(1)

        self.assertNotIn(1, strip.items)
        self.assertEqual(strip.count(), 1)

    def test_close_saves_window_size(self):
        self.window.resize(900, 700)
        self.window.close()
        reloaded = ConfigManager(config_dir=self.config_dir)
        self.assertEqual(reloaded.get("window_width"), 900)
        self.assertEqual(reloaded.get("window_height"), 700)


if __name__ == "__main__":
    unittest.main()
