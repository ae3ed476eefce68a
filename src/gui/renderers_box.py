"""
Renderers Box

This module provides the renderers box: the central container holding up to
four 2D render panes laid out in a grid. It creates and destroys engine panes,
loads record files into them, keeps their info overlay text current and
handles the interaction events reported by the rendering engine, including
linked scrolling across panes.

Inputs:
    - ImageFileRecords to show
    - RenderingEngine pane events (scroll, zoom, pan, rotate, flip, point)

Outputs:
    - RendererPane objects with grid rectangles and overlay text
    - pane_added / pane_removed / pane_loaded / pane_changed signals

Requirements:
    - PySide6 for signals
    - numpy for view matrices
    - core.rendering, core.volume_loader, core.dicom_info
"""

from typing import Any, Dict, List, Optional, Tuple

import numpy as np
from PySide6.QtCore import QObject, Signal

from core.dicom_info import build_info_overlay, parse_sidecar_info
from core.file_reader import FileReader
from core.image_file_record import ImageFileRecord
from core.rendering import RendererPane, RenderingEngine, VolumeDescriptor
from core.volume_loader import VolumeLoader
from gui.pane_container import PaneContainer

MAX_RENDERERS = 4


def compute_grid(pane_ids: List[int]) -> Dict[int, Tuple[float, float, float, float]]:
    """
    Compute the grid rectangle of each pane.

    Panes are placed in ascending id order. One pane fills the box, two share
    it side by side, three use two cells on top and a full-width bottom row,
    four use quadrants.

    Args:
        pane_ids: Ids of the panes (at most four)

    Returns:
        Dict id -> (x, y, width, height) as fractions of the box
    """
    ids = sorted(pane_ids)
    count = len(ids)
    if count == 1:
        rects = [(0.0, 0.0, 1.0, 1.0)]
    elif count == 2:
        rects = [(0.0, 0.0, 0.5, 1.0), (0.5, 0.0, 0.5, 1.0)]
    elif count == 3:
        rects = [(0.0, 0.0, 0.5, 0.5), (0.5, 0.0, 0.5, 0.5), (0.0, 0.5, 1.0, 0.5)]
    else:
        rects = [(0.0, 0.0, 0.5, 0.5), (0.5, 0.0, 0.5, 0.5), (0.0, 0.5, 0.5, 0.5), (0.5, 0.5, 0.5, 0.5)]
    return dict(zip(ids, rects))


class RenderersBox(PaneContainer):
    """
    Container of the active render panes.

    Features:
    - Capacity-limited pane creation
    - Grid layout sorted by pane id
    - Asynchronous file loading; results for destroyed panes are discarded
    - Linked scrolling
    - Flip toggles and camera/pointer tracking from engine events
    - Info overlay from sidecar JSON or DICOM header
    """

    # Signals
    pane_added = Signal(int)
    pane_removed = Signal(int)
    pane_loaded = Signal(int)
    pane_changed = Signal(int)  # user interaction changed replicated pane state

    def __init__(self, container_id: str, engine: RenderingEngine, reader: FileReader,
                 capacity: int = MAX_RENDERERS, drag_min_distance: float = 60,
                 width: float = 0, parent: Optional[QObject] = None):
        """
        Initialize the renderers box.

        Args:
            container_id: Unique container id
            engine: Rendering engine
            reader: FileReader for record files
            capacity: Maximum number of panes (1-4)
            drag_min_distance: Pointer travel before a pane drag registers
            width: Initial width
            parent: Optional Qt parent
        """
        super().__init__("renderBox", container_id, width=width,
                         capacity=max(1, min(capacity, MAX_RENDERERS)),
                         drag_min_distance=drag_min_distance, parent=parent)
        self.engine = engine
        self.reader = reader
        self.loader = VolumeLoader(reader)
        self.panes: Dict[int, RendererPane] = {}
        self.records: Dict[int, ImageFileRecord] = {}
        self.linked = False
        self._handles: Dict[int, Any] = {}  # id(handle) -> pane id

        self.engine.pane_event.connect(self._on_pane_event)

    def add_pane(self, record: ImageFileRecord, container_id: str,
                 orientation: str = "Z") -> Optional[RendererPane]:
        """
        Create a render pane for a record and start loading its files.

        Args:
            record: Record to show
            container_id: Id of the render container hosting the pane
            orientation: "X", "Y" or "Z"

        Returns:
            The new pane, or None if the box is full or the record is shown already
        """
        if record.id in self.panes or self.is_full():
            return None

        pane = RendererPane(record.id, container_id, orientation)
        pane.handle = self.engine.create_pane(container_id, orientation)
        self._handles[id(pane.handle)] = pane.id
        self.panes[record.id] = pane
        self.records[record.id] = record
        self.add_child(record.id)
        self.position_panes()
        self.pane_added.emit(record.id)

        self.loader.load(record, lambda volume, pane=pane: self._on_volume_loaded(pane, volume))
        return pane

    def remove_pane(self, pane_id: int) -> bool:
        """
        Destroy a render pane.

        Args:
            pane_id: Pane (record) id

        Returns:
            False if there was no such pane
        """
        pane = self.panes.pop(pane_id, None)
        if pane is None:
            return False
        self.records.pop(pane_id, None)
        pane.destroyed = True
        self._handles.pop(id(pane.handle), None)
        self.engine.destroy_pane(pane.handle)
        self.remove_child(pane_id)
        self.position_panes()
        self.pane_removed.emit(pane_id)
        return True

    def recreate_pane(self, pane_id: int, orientation: str) -> bool:
        """
        Re-create a pane's engine view with a new orientation.

        The loaded volume is re-attached when available.

        Args:
            pane_id: Pane id
            orientation: New orientation

        Returns:
            False if there was no such pane
        """
        pane = self.panes.get(pane_id)
        if pane is None:
            return False
        self._handles.pop(id(pane.handle), None)
        self.engine.destroy_pane(pane.handle)
        pane.orientation = orientation
        pane.handle = self.engine.create_pane(pane.container_id, orientation)
        self._handles[id(pane.handle)] = pane.id
        if pane.volume is not None:
            self.engine.attach_volume(pane.handle, pane.volume)
        self.update_overlay(pane)
        self.engine.update_pane(pane.handle, pane)
        return True

    def get_pane(self, pane_id: int) -> Optional[RendererPane]:
        return self.panes.get(pane_id)

    def pane_ids(self) -> List[int]:
        return sorted(self.panes)

    def position_panes(self) -> None:
        """Assign grid rectangles to the panes."""
        for pane_id, rect in compute_grid(list(self.panes)).items():
            self.panes[pane_id].rect = rect

    def _on_volume_loaded(self, pane: RendererPane, volume: Optional[VolumeDescriptor]) -> None:
        if pane.destroyed or self.panes.get(pane.id) is not pane:
            print(f"[LOAD] Discarding files of removed pane {pane.id}")
            return
        if volume is None:
            print(f"[LOAD] Pane {pane.id} could not be loaded")
            return

        pane.volume = volume
        props = self.engine.attach_volume(pane.handle, volume) or {}
        pane.dimensions = props.get("dimensions") or volume.dimensions
        pane.spacing = props.get("spacing") or volume.spacing
        if pane.dimensions:
            for axis, index in list(pane.slice_index.items()):
                pane.set_slice(index, axis)
        pane.loaded = True

        record = self.records.get(pane.id)
        if record is not None and record.sidecar is not None:
            self.reader.read(record.sidecar, "text", lambda text, pane=pane: self._on_sidecar(pane, text))
        else:
            pane.info = record.dicom_info if record is not None else None
            self._finish_load(pane)

    def _on_sidecar(self, pane: RendererPane, text: Optional[str]) -> None:
        if pane.destroyed:
            return
        if text is not None:
            try:
                pane.info = parse_sidecar_info(text)
            except ValueError as e:
                print(f"[LOAD] Could not parse sidecar of pane {pane.id}: {e}")
        self._finish_load(pane)

    def _finish_load(self, pane: RendererPane) -> None:
        self.update_overlay(pane)
        self.engine.update_pane(pane.handle, pane)
        print(f"[LOAD] Pane {pane.id} ready")
        self.pane_loaded.emit(pane.id)

    def update_overlay(self, pane: RendererPane) -> None:
        """Recompute a pane's info overlay text."""
        pane.info_overlay = build_info_overlay(pane.info, pane.current_slice(), pane.slice_count(),
                                               pane.dimensions, pane.spacing)

    def set_linked(self, linked: bool) -> None:
        self.linked = linked

    def select_pane(self, pane_id: int, selected: bool) -> bool:
        pane = self.panes.get(pane_id)
        if pane is None or pane.selected == selected:
            return False
        pane.selected = selected
        return True

    def scroll(self, pane_id: int, delta: int) -> None:
        """
        Move a pane's slice along its axis; linked panes follow along the same axis.

        Args:
            pane_id: Pane that was scrolled
            delta: Slice steps (positive = up)
        """
        source = self.panes.get(pane_id)
        if source is None:
            return
        axis = source.axis
        targets = list(self.panes.values()) if self.linked else [source]
        for pane in targets:
            pane.set_slice(pane.slice_index.get(axis, 0) + delta, axis)
            self.update_overlay(pane)
            if pane is not source:
                self.engine.update_pane(pane.handle, pane)
        self.pane_changed.emit(pane_id)

    def toggle_flip(self, pane_id: int, columns: bool) -> None:
        """Toggle column (columns=True) or row flipping of a pane."""
        pane = self.panes.get(pane_id)
        if pane is None:
            return
        if columns:
            pane.flip_columns = not pane.flip_columns
        else:
            pane.flip_rows = not pane.flip_rows
        self.engine.update_pane(pane.handle, pane)
        self.pane_changed.emit(pane_id)

    def _on_pane_event(self, handle: Any, event_type: str, payload: Any) -> None:
        pane_id = self._handles.get(id(handle))
        if pane_id is None:
            return
        pane = self.panes[pane_id]
        payload = payload if isinstance(payload, dict) else {}

        if event_type == "scroll":
            self.scroll(pane_id, int(payload.get("delta", 1)))
        elif event_type in ("zoom", "pan", "rotate"):
            matrix = payload.get("view_matrix")
            if matrix is not None:
                pane.view_matrix = np.asarray(matrix, dtype=np.float32).reshape(4, 4)
            self.pane_changed.emit(pane_id)
        elif event_type == "flipColumns":
            self.toggle_flip(pane_id, columns=True)
        elif event_type == "flipRows":
            self.toggle_flip(pane_id, columns=False)
        elif event_type == "point":
            pane.pointer = payload.get("pointer")
            self.pane_changed.emit(pane_id)
