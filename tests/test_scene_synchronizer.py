"""
Unit tests for the scene synchronizer.

Tests whole-scene publishing and the selective reconciliation of remote
scenes, driven through a Viewer with a fake rendering engine.
"""

import json
import os
import shutil
import sys
import tempfile
import unittest

import numpy as np

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from core.collaboration import LocalCollaborationHub
from core.scene import Scene, SceneRenderer
from fakes import FakeRenderingEngine, local
from gui.viewer import Viewer
from utils.config_manager import ConfigManager


def volumes(count):
    return [local(f"data/v{i}.nii") for i in range(count)]


class SceneSynchronizerTestCase(unittest.TestCase):

    def setUp(self):
        self.config_dir = tempfile.mkdtemp()
        self.config = ConfigManager(config_dir=self.config_dir)
        self.engine = FakeRenderingEngine()
        self.hub = LocalCollaborationHub()
        self.channel = self.hub.create_channel({"id": "1", "name": "Owner", "mail": "owner@example.org"})
        self.viewer = Viewer("viewer", self.engine, self.channel, self.config)
        self.viewer.add_data(volumes(6))
        self.synchronizer = self.viewer.synchronizer

    def tearDown(self):
        self.viewer.leave_collaboration()
        shutil.rmtree(self.config_dir, ignore_errors=True)


class TestToScene(SceneSynchronizerTestCase):

    def test_snapshot_contains_active_panes(self):
        self.viewer.activate(3)
        self.viewer.activate(1, "X")
        self.viewer.toggle_link()

        scene = self.synchronizer.to_scene()

        self.assertEqual(scene.renderer_ids(), [1, 3])
        self.assertEqual(scene.get(1).orientation, "X")
        self.assertTrue(scene.renderers_linked)

    def test_reconcile_own_snapshot_is_idempotent(self):
        self.viewer.activate(0)
        self.viewer.activate(2)
        self.viewer.select_pane(2, True)
        created, destroyed = len(self.engine.created), len(self.engine.destroyed)

        self.synchronizer.reconcile(self.synchronizer.to_scene().to_dict())

        self.assertEqual(len(self.engine.created), created)
        self.assertEqual(len(self.engine.destroyed), destroyed)
        self.assertEqual(sorted(self.viewer.panes), [0, 2])
        self.assertTrue(self.viewer.panes[2].selected)


class TestReconcile(SceneSynchronizerTestCase):

    def test_shared_pane_takes_selection_and_link_only(self):
        self.viewer.activate(5)
        pane = self.viewer.panes[5]
        pane.selected = True
        pane.view_matrix = np.full((4, 4), 2.0, dtype=np.float32)
        pane.thresholds = (1.0, 2.0)

        remote = Scene([SceneRenderer(5, selected=False, view_matrix=np.identity(4),
                                      thresholds=(50.0, 60.0))], renderers_linked=True)
        self.synchronizer.reconcile(remote.to_dict())

        self.assertFalse(pane.selected)
        self.assertTrue(self.viewer.renderers_linked)
        np.testing.assert_array_equal(pane.view_matrix, np.full((4, 4), 2.0, dtype=np.float32))
        self.assertEqual(pane.thresholds, (1.0, 2.0))

    def test_missing_remote_panes_deactivated(self):
        self.viewer.activate(0)
        self.viewer.activate(1)

        self.synchronizer.reconcile(Scene([SceneRenderer(1)], False).to_dict())

        self.assertEqual(list(self.viewer.panes), [1])
        self.assertTrue(self.viewer.find_thumbnails_bar(0).is_child_visible(0))

    def test_new_remote_pane_takes_remote_state(self):
        matrix = np.arange(16, dtype=np.float32).reshape(4, 4)
        remote = Scene([SceneRenderer(4, selected=True, orientation="Y", view_matrix=matrix,
                                      flip_columns=True, flip_rows=True, pointer=[1, 2, 3],
                                      thresholds=(5.0, 9.0), window_level=(0.0, 100.0),
                                      slice_indices={"x": 2, "y": 40, "z": 1})], True)

        self.synchronizer.reconcile(remote.to_dict())

        pane = self.viewer.panes[4]
        self.assertEqual(pane.orientation, "Y")
        np.testing.assert_array_equal(pane.view_matrix, matrix)
        self.assertTrue(pane.flip_columns and pane.flip_rows)
        self.assertEqual(pane.pointer, [1, 2, 3])
        self.assertEqual(pane.thresholds, (5.0, 9.0))
        self.assertEqual(pane.window_level, (0.0, 100.0))
        # y is clamped to the 16 rows reported by the engine
        self.assertEqual(pane.slice_index, {"x": 2, "y": 15, "z": 1})
        self.assertTrue(pane.selected)
        self.assertFalse(self.viewer.find_thumbnails_bar(4).is_child_visible(4))

    def test_unknown_ids_skipped(self):
        self.synchronizer.reconcile(Scene([SceneRenderer(42), SceneRenderer(2)], False).to_dict())
        self.assertEqual(list(self.viewer.panes), [2])

    def test_missing_toolbar_keeps_link_state(self):
        self.viewer.activate(0)
        self.viewer.activate(1)
        self.viewer.toggle_link()
        self.synchronizer.reconcile({"renderers": Scene([SceneRenderer(0), SceneRenderer(1)]).to_dict()["renderers"]})
        self.assertTrue(self.viewer.renderers_linked)

    def test_non_finite_remote_values_ignored(self):
        remote = json.loads('{"renderers": [{"general": {"id": 0, "type": "2D"}, "volume": {'
                            '"sliceIndices": {"x": NaN, "y": 3, "z": Infinity},'
                            '"thresholds": {"lower": NaN, "upper": 1}}}]}')

        self.synchronizer.reconcile(remote)

        pane = self.viewer.panes[0]
        self.assertEqual(pane.slice_index, {"x": 0, "y": 3, "z": 0})
        self.assertIsNone(pane.thresholds)

    def test_malformed_remote_scene_reads_as_empty(self):
        self.viewer.activate(0)
        self.synchronizer.reconcile("garbage")
        self.assertEqual(list(self.viewer.panes), [])


class TestPush(SceneSynchronizerTestCase):

    def test_no_push_without_collaboration(self):
        self.viewer.activate(0)
        self.assertEqual(self.synchronizer.push_count, 0)

    def test_local_changes_pushed_while_collaborating(self):
        self.viewer.start_collaboration()
        count = self.synchronizer.push_count

        self.viewer.activate(2)
        self.viewer.toggle_link()

        self.assertEqual(self.synchronizer.push_count, count + 2)
        shared = Scene.from_dict(self.channel.get_object())
        self.assertEqual(shared.renderer_ids(), [2])
        self.assertTrue(shared.renderers_linked)

    def test_no_push_while_reconciling(self):
        self.viewer.start_collaboration()
        count = self.synchronizer.push_count

        self.synchronizer.reconcile(Scene([SceneRenderer(1), SceneRenderer(3)], True).to_dict())

        self.assertEqual(sorted(self.viewer.panes), [1, 3])
        self.assertEqual(self.synchronizer.push_count, count)

    def test_hold_suppresses_push(self):
        self.viewer.start_collaboration()
        count = self.synchronizer.push_count
        with self.synchronizer.hold():
            self.viewer.activate(0)
        self.assertEqual(self.synchronizer.push_count, count)
        self.assertTrue(self.synchronizer.push())


if __name__ == '__main__':
    unittest.main()
