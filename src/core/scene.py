"""
Shared Scene Snapshot

This module defines the immutable snapshot of the collaborative view state
that is replicated between collaborators: which records are shown in render
panes, their camera, flip, pointer, threshold, window level and slice state,
which pane is selected, and whether the panes are linked.

A Scene is only built by SceneSynchronizer.to_scene() (from local panes) or
Scene.from_dict() (from the replicated object); it is never edited in place.

Wire shape:
    {"toolBar": {"renderersLinked": bool},
     "renderers": [{"general": {"id": int, "type": "2D"},
                    "renderer": {"viewMatrix": [16 floats], "flipColumns": bool,
                                 "flipRows": bool, "pointer": any, "orientation": "X"|"Y"|"Z"},
                    "volume": {"thresholds": {"lower": num, "upper": num},
                               "windowLevel": {"low": num, "high": num},
                               "sliceIndices": {"x": int, "y": int, "z": int}},
                    "selected": bool}]}

Inputs:
    - Local pane state or a replicated scene dictionary

Outputs:
    - Scene objects and their wire dictionaries

Requirements:
    - numpy for view matrix conversion
"""

import math
from typing import Any, Dict, List, Optional, Tuple

import numpy as np


ORIENTATIONS = ("X", "Y", "Z")


def _number(value: Any) -> Optional[float]:
    # NaN and infinities decode from JSON but are no usable state
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = float(value)
    return value if math.isfinite(value) else None


def _pair(obj: Any, first: str, second: str) -> Optional[Tuple[float, float]]:
    if not isinstance(obj, dict):
        return None
    a, b = _number(obj.get(first)), _number(obj.get(second))
    if a is None or b is None:
        return None
    return (a, b)


def view_matrix_from_wire(value: Any) -> Optional[np.ndarray]:
    """
    Convert a wire view matrix (16 numbers, or 4 rows of 4) to a 4x4 array.

    Returns:
        float32 array of shape (4, 4), or None if the value is malformed
    """
    if value is None:
        return None
    try:
        matrix = np.asarray(value, dtype=np.float32)
    except (TypeError, ValueError):
        return None
    if matrix.size != 16 or not np.all(np.isfinite(matrix)):
        return None
    return matrix.reshape(4, 4)


def view_matrix_to_wire(matrix: Optional[np.ndarray]) -> Optional[List[float]]:
    """Flatten a 4x4 view matrix to a list of 16 floats (row-major)."""
    if matrix is None:
        return None
    return [float(v) for v in np.asarray(matrix, dtype=np.float32).reshape(-1)]


class SceneRenderer:
    """
    Replicated state of one render pane.

    Optional fields are None when absent or malformed in the source
    dictionary; consumers leave the corresponding local state alone.
    """

    def __init__(self, pane_id: int, selected: bool = False,
                 orientation: Optional[str] = None,
                 view_matrix: Optional[np.ndarray] = None,
                 flip_columns: Optional[bool] = None,
                 flip_rows: Optional[bool] = None,
                 pointer: Any = None,
                 thresholds: Optional[Tuple[float, float]] = None,
                 window_level: Optional[Tuple[float, float]] = None,
                 slice_indices: Optional[Dict[str, int]] = None):
        self._id = pane_id
        self._selected = bool(selected)
        self._orientation = orientation if orientation in ORIENTATIONS else None
        self._view_matrix = None
        if view_matrix is not None:
            self._view_matrix = np.array(view_matrix, dtype=np.float32).reshape(4, 4)
            self._view_matrix.setflags(write=False)
        self._flip_columns = flip_columns
        self._flip_rows = flip_rows
        self._pointer = pointer
        self._thresholds = thresholds
        self._window_level = window_level
        self._slice_indices = dict(slice_indices) if slice_indices else None

    @property
    def id(self) -> int:
        return self._id

    @property
    def selected(self) -> bool:
        return self._selected

    @property
    def orientation(self) -> Optional[str]:
        return self._orientation

    @property
    def view_matrix(self) -> Optional[np.ndarray]:
        return self._view_matrix

    @property
    def flip_columns(self) -> Optional[bool]:
        return self._flip_columns

    @property
    def flip_rows(self) -> Optional[bool]:
        return self._flip_rows

    @property
    def pointer(self) -> Any:
        return self._pointer

    @property
    def thresholds(self) -> Optional[Tuple[float, float]]:
        return self._thresholds

    @property
    def window_level(self) -> Optional[Tuple[float, float]]:
        return self._window_level

    @property
    def slice_indices(self) -> Optional[Dict[str, int]]:
        return dict(self._slice_indices) if self._slice_indices else None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire dictionary of one renderer entry."""
        renderer: Dict[str, Any] = {
            "viewMatrix": view_matrix_to_wire(self._view_matrix),
            "flipColumns": bool(self._flip_columns),
            "flipRows": bool(self._flip_rows),
            "pointer": self._pointer,
            "orientation": self._orientation or "Z",
        }
        volume: Dict[str, Any] = {}
        if self._thresholds is not None:
            volume["thresholds"] = {"lower": self._thresholds[0], "upper": self._thresholds[1]}
        if self._window_level is not None:
            volume["windowLevel"] = {"low": self._window_level[0], "high": self._window_level[1]}
        if self._slice_indices:
            volume["sliceIndices"] = dict(self._slice_indices)
        return {
            "general": {"id": self._id, "type": "2D"},
            "renderer": renderer,
            "volume": volume,
            "selected": self._selected,
        }

    @classmethod
    def from_dict(cls, obj: Any) -> Optional["SceneRenderer"]:
        """
        Build from a wire dictionary entry.

        Returns:
            SceneRenderer, or None if the entry has no usable integer id
        """
        if not isinstance(obj, dict):
            return None
        general = obj.get("general")
        if not isinstance(general, dict):
            return None
        pane_id = general.get("id")
        if isinstance(pane_id, bool) or not isinstance(pane_id, int):
            return None

        renderer = obj.get("renderer") if isinstance(obj.get("renderer"), dict) else {}
        volume = obj.get("volume") if isinstance(obj.get("volume"), dict) else {}

        flip_columns = renderer.get("flipColumns")
        flip_rows = renderer.get("flipRows")

        slice_indices = None
        raw_indices = volume.get("sliceIndices")
        if isinstance(raw_indices, dict):
            slice_indices = {axis: int(raw_indices[axis]) for axis in ("x", "y", "z")
                             if _number(raw_indices.get(axis)) is not None}

        return cls(
            pane_id,
            selected=obj.get("selected") is True,
            orientation=renderer.get("orientation"),
            view_matrix=view_matrix_from_wire(renderer.get("viewMatrix")),
            flip_columns=flip_columns if isinstance(flip_columns, bool) else None,
            flip_rows=flip_rows if isinstance(flip_rows, bool) else None,
            pointer=renderer.get("pointer"),
            thresholds=_pair(volume.get("thresholds"), "lower", "upper"),
            window_level=_pair(volume.get("windowLevel"), "low", "high"),
            slice_indices=slice_indices,
        )

    def __repr__(self) -> str:
        return f"SceneRenderer(id={self._id}, selected={self._selected}, orientation={self._orientation})"


class Scene:
    """
    Immutable snapshot of the shared view state.

    Holds at most one renderer entry per pane id, in pane order.
    """

    def __init__(self, renderers: Optional[List[SceneRenderer]] = None,
                 renderers_linked: Optional[bool] = False):
        unique: Dict[int, SceneRenderer] = {}
        for renderer in renderers or []:
            unique.setdefault(renderer.id, renderer)
        self._renderers: Tuple[SceneRenderer, ...] = tuple(unique.values())
        self._renderers_linked = renderers_linked

    @property
    def renderers(self) -> Tuple[SceneRenderer, ...]:
        return self._renderers

    @property
    def renderers_linked(self) -> Optional[bool]:
        """Link state, or None when the scene carries no toolbar entry."""
        return self._renderers_linked

    def renderer_ids(self) -> List[int]:
        """Ids of the panes in the scene, in order."""
        return [renderer.id for renderer in self._renderers]

    def get(self, pane_id: int) -> Optional[SceneRenderer]:
        """Get the entry of a pane, or None."""
        for renderer in self._renderers:
            if renderer.id == pane_id:
                return renderer
        return None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the replicated wire dictionary."""
        return {
            "toolBar": {"renderersLinked": bool(self._renderers_linked)},
            "renderers": [renderer.to_dict() for renderer in self._renderers],
        }

    @classmethod
    def from_dict(cls, obj: Any) -> "Scene":
        """
        Build a scene from a replicated dictionary.

        Malformed entries are skipped; a missing or malformed toolbar entry
        yields renderers_linked=None. Never raises.
        """
        if not isinstance(obj, dict):
            return cls([], None)

        renderers_linked = None
        tool_bar = obj.get("toolBar")
        if isinstance(tool_bar, dict) and isinstance(tool_bar.get("renderersLinked"), bool):
            renderers_linked = tool_bar["renderersLinked"]

        renderers = []
        raw_renderers = obj.get("renderers")
        if isinstance(raw_renderers, list):
            for entry in raw_renderers:
                renderer = SceneRenderer.from_dict(entry)
                if renderer is not None:
                    renderers.append(renderer)

        return cls(renderers, renderers_linked)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Scene):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"Scene(ids={self.renderer_ids()}, linked={self._renderers_linked})"
