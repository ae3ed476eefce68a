"""
Unit tests for drag-and-drop containers and the drag gesture state machine.
"""

import os
import sys
import unittest

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from gui.pane_container import DropHandler, PaneContainer, SortableGroup


class RecordingHandler(DropHandler):
    """Handler that records calls and answers with a fixed outcome."""

    def __init__(self, outcome="cancelled"):
        self.outcome = outcome
        self.started = []
        self.stopped = []

    def compute_moving_helper(self, gesture):
        return {"type": "clone", "item": gesture.item_id}

    def on_start(self, gesture):
        self.started.append(gesture.item_id)

    def on_before_stop(self, gesture, target):
        self.stopped.append((gesture.item_id, target.container_id, gesture.state))
        return self.outcome


class TestPaneContainer(unittest.TestCase):
    """Test cases for PaneContainer children."""

    def setUp(self):
        self.container = PaneContainer("thumbnailsBar", "bar0")
        for item in ("a", "b", "c"):
            self.container.add_child(item)

    def test_duplicate_child_rejected(self):
        self.assertFalse(self.container.add_child("a"))
        self.assertEqual(self.container.children, ["a", "b", "c"])

    def test_capacity(self):
        box = PaneContainer("renderBox", "box", capacity=2)
        self.assertTrue(box.add_child(1))
        self.assertTrue(box.add_child(2))
        self.assertTrue(box.is_full())
        self.assertFalse(box.add_child(3))

    def test_move_child(self):
        self.assertTrue(self.container.move_child("a", 2))
        self.assertEqual(self.container.children, ["b", "c", "a"])
        self.assertFalse(self.container.move_child("a", 10))
        self.assertFalse(self.container.move_child("z", 0))

    def test_visibility(self):
        self.container.set_child_visible("b", False)
        self.assertFalse(self.container.is_child_visible("b"))
        self.assertEqual(self.container.visible_children(), ["a", "c"])
        self.container.remove_child("b")
        self.container.add_child("b")
        self.assertTrue(self.container.is_child_visible("b"))


class TestDragGesture(unittest.TestCase):
    """Test cases for DragGesture state transitions."""

    def setUp(self):
        self.handler = RecordingHandler()
        self.group = SortableGroup(self.handler)
        self.bar = PaneContainer("thumbnailsBar", "bar0")
        self.box = PaneContainer("renderBox", "box", capacity=4, drag_min_distance=60)
        self.trash = PaneContainer("trash", "trash_region")
        for container in (self.bar, self.box, self.trash):
            self.group.add_container(container)
        for item in (0, 1, 2):
            self.bar.add_child(item)
        self.box.add_child(7)

    def test_click_without_movement_cancels(self):
        gesture = self.group.begin_drag(self.bar, 0, (0, 0))
        self.assertEqual(gesture.state, "pending")
        self.assertEqual(gesture.drop(self.box), "cancelled")
        self.assertEqual(self.handler.started, [])
        self.assertEqual(self.handler.stopped, [])
        self.assertIsNone(self.group.active_gesture)

    def test_minimum_distance_before_drag(self):
        gesture = self.group.begin_drag(self.box, 7, (0, 0))
        self.assertEqual(gesture.move((30, 40)), "pending")
        self.assertEqual(gesture.move((36, 48)), "dragging")
        self.assertEqual(gesture.helper, {"type": "clone", "item": 7})
        self.assertEqual(self.handler.started, [7])

    def test_drop_on_peer_container(self):
        gesture = self.group.begin_drag(self.bar, 1, (0, 0))
        gesture.move((5, 0))
        self.assertEqual(gesture.drop(self.box), "droppedOnPeerContainer")
        self.assertEqual(self.handler.stopped, [(1, "box", "droppedOnPeerContainer")])
        self.assertEqual(gesture.outcome, "cancelled")
        self.assertEqual(self.bar.children, [0, 1, 2])

    def test_drop_on_trash(self):
        gesture = self.group.begin_drag(self.bar, 2, (0, 0))
        gesture.move((1, 1))
        self.assertEqual(gesture.drop(self.trash), "droppedOnTrash")

    def test_drop_on_self_reorders(self):
        self.handler.outcome = "moved"
        gesture = self.group.begin_drag(self.bar, 0, (0, 0))
        gesture.move((0, 10))
        self.assertEqual(gesture.drop(self.bar, 2), "droppedOnSelf")
        self.assertEqual(self.bar.children, [1, 2, 0])

    def test_drop_outside_cancels(self):
        gesture = self.group.begin_drag(self.bar, 0, (0, 0))
        gesture.move((0, 10))
        self.assertEqual(gesture.drop(None), "cancelled")
        self.assertEqual(self.handler.stopped, [])

    def test_one_gesture_at_a_time(self):
        gesture = self.group.begin_drag(self.bar, 0, (0, 0))
        self.assertIsNone(self.group.begin_drag(self.bar, 1, (0, 0)))
        gesture.cancel()
        self.assertIsNotNone(self.group.begin_drag(self.bar, 1, (0, 0)))

    def test_unknown_item_not_dragged(self):
        self.assertIsNone(self.group.begin_drag(self.bar, 9, (0, 0)))

    def test_hidden_item_not_dragged(self):
        self.bar.set_child_visible(1, False)
        self.assertIsNone(self.group.begin_drag(self.bar, 1, (0, 0)))
        self.assertIsNone(self.group.active_gesture)

    def test_finished_gesture_ignores_further_drops(self):
        gesture = self.group.begin_drag(self.bar, 0, (0, 0))
        gesture.move((0, 10))
        gesture.drop(self.trash)
        self.assertEqual(gesture.drop(self.box), "droppedOnTrash")
        self.assertEqual(len(self.handler.stopped), 1)

    def test_visibility_deferred_until_gesture_ends(self):
        gesture = self.group.begin_drag(self.bar, 0, (0, 0))
        self.bar.set_child_visible(0, False)
        self.assertTrue(self.bar.is_child_visible(0))
        gesture.cancel()
        self.assertFalse(self.bar.is_child_visible(0))


if __name__ == '__main__':
    unittest.main()
