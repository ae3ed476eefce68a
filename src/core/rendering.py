"""
Rendering Collaborator Interface

This module defines the interface of the volume rendering engine the viewer
drives, the description of a volume handed to it, and the RendererPane model
holding the state of one 2D render pane.

The engine itself (pixel rendering, camera math) lives outside this project;
the viewer only creates, updates and destroys engine panes and listens to the
interaction events they report.

Inputs:
    - Container ids and orientations for new panes
    - Volume descriptors (file names and bytes)
    - Pane state updates

Outputs:
    - Engine pane handles
    - pane_event signals (scroll, zoom, pan, rotate, flipColumns, flipRows, point)

Requirements:
    - PySide6 for QObject/Signal
    - numpy for view matrices and slice index clamping
"""

from abc import ABCMeta, abstractmethod
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np
from PySide6.QtCore import QObject, Signal


PANE_EVENT_TYPES = ("scroll", "zoom", "pan", "rotate", "flipColumns", "flipRows", "point")

# Slice axis for each pane orientation
ORIENTATION_AXES = {"X": "x", "Y": "y", "Z": "z"}


class QObjectABCMeta(type(QObject), ABCMeta):
    """Metaclass combining Qt's object metaclass with ABCMeta."""
    pass


class VolumeDescriptor:
    """
    Description of a volume to attach to an engine pane.

    Attributes:
        record_id: Id of the image file record
        image_kind: Kind of the record ("volume", "dicomSeries", ...)
        file_names: File names in load order (slices sorted by name for DICOM)
        file_data: Raw bytes of each file, parallel to file_names
        dimensions: Volume dimensions (x, y, z), if known
        spacing: Voxel spacing (x, y, z), if known
    """

    def __init__(self, record_id: int, image_kind: str, file_names: List[str],
                 file_data: List[bytes], dimensions: Optional[Tuple[int, int, int]] = None,
                 spacing: Optional[Tuple[float, float, float]] = None):
        self.record_id = record_id
        self.image_kind = image_kind
        self.file_names = file_names
        self.file_data = file_data
        self.dimensions = dimensions
        self.spacing = spacing


class RenderingEngine(QObject, metaclass=QObjectABCMeta):
    """
    Abstract volume rendering engine.

    Implementations emit pane_event(handle, event_type, payload) when the user
    interacts with a pane. Payloads:
        scroll:      {"delta": int}  slice steps along the pane's axis
        zoom/pan/rotate: {"view_matrix": 16 floats}
        flipColumns/flipRows: {}
        point:       {"pointer": any}
    """

    # Signals
    pane_event = Signal(object, str, object)  # handle, event type, payload

    def __init__(self, parent: Optional[QObject] = None):
        super().__init__(parent)

    @abstractmethod
    def create_pane(self, container_id: str, orientation: str) -> Any:
        """
        Create a 2D render pane inside a container.

        Args:
            container_id: Id of the hosting render container
            orientation: "X", "Y" or "Z"

        Returns:
            Opaque pane handle
        """

    @abstractmethod
    def attach_volume(self, handle: Any, volume: VolumeDescriptor) -> Optional[Dict[str, Any]]:
        """
        Load a volume into a pane.

        Args:
            handle: Pane handle
            volume: Volume to display

        Returns:
            Optional volume properties {"dimensions": (x, y, z), "spacing": (x, y, z)}
        """

    @abstractmethod
    def destroy_pane(self, handle: Any) -> None:
        """Destroy a pane and release its resources."""

    @abstractmethod
    def update_pane(self, handle: Any, pane: "RendererPane") -> None:
        """Push a pane's camera, flip, pointer, threshold and slice state to the engine."""

    def render_thumbnail(self, volume: VolumeDescriptor, callback: Callable[[Optional[str]], None]) -> None:
        """
        Render a preview image of a volume.

        Engines without thumbnail support report None.

        Args:
            volume: Volume to preview
            callback: Called with a PNG data URL, or None
        """
        callback(None)


class RendererPane:
    """
    State of one 2D render pane.

    The pane id equals the id of the image file record it shows. Replicated
    fields are mirrored in the shared scene; runtime fields are local only.
    """

    def __init__(self, pane_id: int, container_id: str, orientation: str = "Z"):
        """
        Initialize the pane.

        Args:
            pane_id: Record id shown by the pane
            container_id: Id of the hosting render container
            orientation: "X", "Y" or "Z"
        """
        self.id = pane_id
        self.container_id = container_id

        # Replicated state
        self.selected = False
        self.orientation = orientation
        self.view_matrix = np.identity(4, dtype=np.float32)
        self.thresholds: Optional[Tuple[float, float]] = None
        self.window_level: Optional[Tuple[float, float]] = None
        self.flip_columns = False
        self.flip_rows = False
        self.slice_index: Dict[str, int] = {"x": 0, "y": 0, "z": 0}
        self.pointer: Any = None

        # Runtime state
        self.handle: Any = None
        self.loaded = False
        self.destroyed = False
        self.volume: Optional[VolumeDescriptor] = None
        self.dimensions: Optional[Tuple[int, int, int]] = None
        self.spacing: Optional[Tuple[float, float, float]] = None
        self.info: Optional[Dict[str, Any]] = None
        self.info_overlay: Dict[str, str] = {}
        self.rect: Tuple[float, float, float, float] = (0.0, 0.0, 1.0, 1.0)

    @property
    def axis(self) -> str:
        """Slice axis ("x", "y" or "z") of the pane's orientation."""
        return ORIENTATION_AXES.get(self.orientation, "z")

    def slice_count(self) -> int:
        """Number of slices along the pane's axis (1 until dimensions are known)."""
        if not self.dimensions:
            return 1
        return max(1, int(self.dimensions["xyz".index(self.axis)]))

    def current_slice(self) -> int:
        """Slice index along the pane's axis."""
        return self.slice_index.get(self.axis, 0)

    def set_slice(self, index: int, axis: Optional[str] = None) -> int:
        """
        Set a slice index, clamped to the volume once its dimensions are known.

        Args:
            index: Requested index
            axis: Axis to set (defaults to the pane's axis)

        Returns:
            The clamped index stored
        """
        axis = axis or self.axis
        if self.dimensions:
            upper = max(0, int(self.dimensions["xyz".index(axis)]) - 1)
            clamped = int(np.clip(index, 0, upper))
        else:
            clamped = max(0, int(index))
        self.slice_index[axis] = clamped
        return clamped

    def __repr__(self) -> str:
        return (f"RendererPane(id={self.id}, orientation={self.orientation}, "
                f"selected={self.selected}, loaded={self.loaded})")
