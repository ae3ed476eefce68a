"""
Unit tests for the toolbar and trash components.
"""

import os
import sys
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from gui.toolbar import Toolbar
from gui.trash import Trash


class TestToolbar(unittest.TestCase):
    """Test cases for Toolbar button state."""

    def setUp(self):
        self.toolbar = Toolbar("viewer_toolbar")
        self.clicks = []
        self.toolbar.link_clicked.connect(lambda: self.clicks.append("link"))
        self.toolbar.collab_clicked.connect(lambda: self.clicks.append("collab"))
        self.toolbar.auth_clicked.connect(lambda: self.clicks.append("auth"))

    def test_initial_buttons(self):
        self.assertEqual(self.toolbar.children, ["link", "collab", "auth"])
        self.assertFalse(self.toolbar.button("link").visible)
        self.assertTrue(self.toolbar.button("collab").visible)
        self.assertFalse(self.toolbar.button("auth").visible)

    def test_link_button_needs_two_panes(self):
        self.toolbar.update_link_button(1, False)
        self.assertFalse(self.toolbar.button("link").visible)
        self.toolbar.update_link_button(2, True)
        button = self.toolbar.button("link")
        self.assertTrue(button.visible)
        self.assertEqual(button.text, "Unlink views")

    def test_hidden_buttons_ignore_clicks(self):
        self.toolbar.click("link")
        self.toolbar.click("auth")
        self.toolbar.click("collab")
        self.assertEqual(self.clicks, ["collab"])

    def test_authorize_replaces_collab_button(self):
        self.toolbar.show_authorize()
        self.assertFalse(self.toolbar.button("collab").visible)
        self.toolbar.click("auth")
        self.assertEqual(self.clicks, ["auth"])

    def test_collaborating_state(self):
        self.toolbar.show_authorize()
        self.toolbar.set_collaborating(True, "room-1")
        self.assertEqual(self.toolbar.button("collab").text, "End collab")
        self.assertEqual(self.toolbar.room_label, "room-1")
        self.assertFalse(self.toolbar.button("auth").visible)
        self.toolbar.set_collaborating(False)
        self.assertEqual(self.toolbar.button("collab").text, "Start collab")
        self.assertEqual(self.toolbar.room_label, "")

    def test_collaboration_disabled(self):
        toolbar = Toolbar("viewer_toolbar", collaboration_enabled=False)
        self.assertFalse(toolbar.button("collab").visible)
        toolbar.set_collaborating(False)
        self.assertFalse(toolbar.button("collab").visible)


class TestTrash(unittest.TestCase):

    def test_drop_region_is_nested_trash_container(self):
        trash = Trash("viewer_trash")
        self.assertEqual(trash.role, "trash")
        self.assertEqual(trash.drop_region.role, "trash")
        self.assertEqual(trash.drop_region.container_id, "viewer_trash_region")
        self.assertIs(trash.drop_region.parent(), trash)


if __name__ == '__main__':
    unittest.main()
