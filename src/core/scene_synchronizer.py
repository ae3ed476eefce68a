"""
Scene Synchronizer

This module keeps the local render panes and the shared collaborative scene
in agreement. Local changes are published as whole-scene snapshots; remote
scenes are merged selectively:

1. panes missing from the remote scene are deactivated locally;
2. panes new in the remote scene are activated and take the remote camera,
   flip, pointer, threshold, window level, slice and orientation state;
3. for panes present on both sides only the selection and the link state are
   reconciled, so a collaborator's in-progress interaction is not overwritten.

Publishing is suppressed while a remote scene is being applied.

Inputs:
    - Remote scene dictionaries (from the collaboration channel)
    - Local pane state (through the host viewer)

Outputs:
    - Scene snapshots
    - Pane activations/deactivations and state updates on the host viewer

Requirements:
    - core.scene for the Scene type
    - utils.debug_log for optional tracing
"""

from contextlib import contextmanager
from typing import Any, Dict, Optional

from core.rendering import RendererPane
from core.scene import Scene, SceneRenderer
from utils.debug_log import debug_log


class SceneSynchronizer:
    """
    Reconciles local pane state with the shared scene.

    The host (the Viewer) provides:
        panes: Dict[int, RendererPane] of active panes
        registry: ImageFileRegistry
        renderers_linked: bool
        channel: CollaborationChannel or None
        activate(record_id, orientation) -> bool
        deactivate(record_id)
        recreate_pane(record_id, orientation)
        set_linked(linked)
        select_pane(record_id, selected)
        refresh_pane(record_id)
    """

    def __init__(self, host):
        """
        Initialize the synchronizer.

        Args:
            host: Viewer owning the panes
        """
        self.host = host
        self._reconciling = False
        self._held = 0
        self.push_count = 0

    @property
    def reconciling(self) -> bool:
        """True while a remote scene is being applied."""
        return self._reconciling

    @contextmanager
    def hold(self):
        """Suppress pushes for the duration of a block (e.g. while resetting the viewer)."""
        self._held += 1
        try:
            yield
        finally:
            self._held -= 1

    def to_scene(self) -> Scene:
        """
        Build a snapshot of the local state.

        Returns:
            Scene with one entry per active pane, ordered by id
        """
        renderers = []
        for pane_id in sorted(self.host.panes):
            pane = self.host.panes[pane_id]
            renderers.append(SceneRenderer(
                pane.id,
                selected=pane.selected,
                orientation=pane.orientation,
                view_matrix=pane.view_matrix,
                flip_columns=pane.flip_columns,
                flip_rows=pane.flip_rows,
                pointer=pane.pointer,
                thresholds=pane.thresholds,
                window_level=pane.window_level,
                slice_indices=pane.slice_index,
            ))
        return Scene(renderers, self.host.renderers_linked)

    def push(self) -> bool:
        """
        Publish the whole local scene to the collaboration channel.

        Returns:
            True if the scene was sent
        """
        channel = self.host.channel
        if self._reconciling or self._held or channel is None or not channel.is_on:
            return False
        scene = self.to_scene()
        channel.set_object(scene.to_dict())
        self.push_count += 1
        debug_log("scene_synchronizer.py:push", "Scene pushed",
                  {"ids": scene.renderer_ids(), "linked": scene.renderers_linked},
                  session_id=channel.room_id or "viewer")
        return True

    def reconcile(self, remote: Any) -> None:
        """
        Merge a remote scene into the local state.

        Never raises for malformed input: unusable fields are ignored and ids
        unknown to the registry are skipped.

        Args:
            remote: Scene or replicated scene dictionary
        """
        scene = remote if isinstance(remote, Scene) else Scene.from_dict(remote)
        if self._reconciling:
            return

        self._reconciling = True
        try:
            self._reconcile(scene)
        finally:
            self._reconciling = False

    def _reconcile(self, scene: Scene) -> None:
        remote_ids = set(scene.renderer_ids())
        local_ids = set(self.host.panes)

        # Remove local panes that were removed from the shared scene
        for pane_id in sorted(local_ids - remote_ids):
            print(f"[SCENE] Removing pane {pane_id} (not in shared scene)")
            self.host.deactivate(pane_id)

        # Add panes that were added to the shared scene
        for renderer in scene.renderers:
            if renderer.id in local_ids:
                continue
            if self.host.registry.get(renderer.id) is None:
                print(f"[SCENE] Skipping pane {renderer.id}: no such record")
                continue
            orientation = renderer.orientation or "Z"
            if not self.host.activate(renderer.id, orientation):
                print(f"[SCENE] Could not add pane {renderer.id}")
                continue
            self.apply_remote_state(self.host.panes[renderer.id], renderer)
            if renderer.selected:
                self.host.select_pane(renderer.id, True)
            self.host.refresh_pane(renderer.id)

        # Panes present on both sides: only the selection is reconciled
        for renderer in scene.renderers:
            if renderer.id not in local_ids:
                continue
            pane = self.host.panes.get(renderer.id)
            if pane is not None and pane.selected != renderer.selected:
                self.host.select_pane(renderer.id, renderer.selected)

        if scene.renderers_linked is not None and scene.renderers_linked != self.host.renderers_linked:
            self.host.set_linked(scene.renderers_linked)

        debug_log("scene_synchronizer.py:reconcile", "Scene reconciled",
                  {"remote": sorted(remote_ids), "local_before": sorted(local_ids),
                   "local_after": sorted(self.host.panes)})

    def apply_remote_state(self, pane: RendererPane, renderer: SceneRenderer) -> None:
        """
        Copy the replicated fields of a remote entry onto a newly added pane.

        An orientation different from the pane's re-creates the engine pane.

        Args:
            pane: Local pane
            renderer: Remote scene entry
        """
        if renderer.orientation and renderer.orientation != pane.orientation:
            self.host.recreate_pane(pane.id, renderer.orientation)
        if renderer.view_matrix is not None:
            pane.view_matrix = renderer.view_matrix.copy()
        if renderer.flip_columns is not None:
            pane.flip_columns = renderer.flip_columns
        if renderer.flip_rows is not None:
            pane.flip_rows = renderer.flip_rows
        if renderer.pointer is not None:
            pane.pointer = renderer.pointer
        if renderer.thresholds is not None:
            pane.thresholds = renderer.thresholds
        if renderer.window_level is not None:
            pane.window_level = renderer.window_level
        indices: Optional[Dict[str, int]] = renderer.slice_indices
        if indices:
            for axis, index in indices.items():
                pane.set_slice(index, axis)
