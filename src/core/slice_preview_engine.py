"""
Slice Preview Engine

This module provides a minimal RenderingEngine for the desktop front end. It
decodes DICOM series (plain or unzipped) with pydicom into a NumPy volume and
renders the pane's current slice along its orientation as a grayscale PIL
image, honouring the flip and window level state. Other image kinds are
accepted but produce no image; full volume rendering is left to a real engine.

Inputs:
    - VolumeDescriptor objects (DICOM file bytes)
    - RendererPane state (orientation, slice indices, flips, window level)

Outputs:
    - pane_rendered(handle, image) signals with PIL Images (None if nothing to show)
    - Thumbnail PNG data URLs
    - Volume dimensions and spacing

Requirements:
    - pydicom for pixel data decoding
    - numpy for slicing and windowing
    - PIL/Pillow via utils.image_utils
    - PySide6 for signals
"""

import io
from typing import Any, Callable, Dict, Optional

import numpy as np
import pydicom
from PySide6.QtCore import QObject, Signal

from core.dicom_info import dicom_volume_geometry
from core.image_file_record import DICOM_KINDS
from core.rendering import RendererPane, RenderingEngine, VolumeDescriptor
from utils.image_utils import array_to_image, image_to_data_url


def decode_dicom_volume(volume: VolumeDescriptor) -> Optional[np.ndarray]:
    """
    Decode the slices of a DICOM series into one array.

    Args:
        volume: Volume whose file_data holds one DICOM file per slice, sorted

    Returns:
        Array of shape (slices, rows, columns), or None if decoding fails or
        the slices do not share one shape
    """
    slices = []
    for name, data in zip(volume.file_names, volume.file_data):
        try:
            dataset = pydicom.dcmread(io.BytesIO(data), force=True)
            pixels = dataset.pixel_array.astype(np.float32)
            slope = float(getattr(dataset, "RescaleSlope", 1) or 1)
            intercept = float(getattr(dataset, "RescaleIntercept", 0) or 0)
        except Exception as e:
            # pydicom raises many types for missing/compressed pixel data
            print(f"Error extracting pixel array from {name}: {e}")
            return None
        if pixels.ndim == 3 and pixels.shape[-1] in (3, 4):
            pixels = pixels[..., :3].mean(axis=-1)
        if pixels.ndim == 2:
            pixels = pixels[np.newaxis]
        slices.append(pixels * slope + intercept)

    if not slices:
        return None
    if any(s.shape[1:] != slices[0].shape[1:] for s in slices):
        print(f"Warning: slices of record {volume.record_id} differ in size")
        return None
    return np.concatenate(slices, axis=0)


def extract_slice(array: np.ndarray, orientation: str, index: int) -> np.ndarray:
    """
    Extract a 2D slice from a (z, y, x) volume.

    Args:
        array: Volume array
        orientation: "X", "Y" or "Z"
        index: Slice index along the orientation's axis (clamped)

    Returns:
        2D array
    """
    axis = {"Z": 0, "Y": 1, "X": 2}.get(orientation, 0)
    index = int(np.clip(index, 0, array.shape[axis] - 1))
    return np.take(array, index, axis=axis)


def apply_window_level(pixels: np.ndarray, low: float, high: float) -> np.ndarray:
    """Map [low, high] to 0-255 uint8, clipping outside values."""
    if high <= low:
        return np.zeros(pixels.shape, dtype=np.uint8)
    windowed = np.clip(pixels, low, high)
    return ((windowed - low) / (high - low) * 255.0).astype(np.uint8)


class PreviewPane:
    """Engine-side state of one pane."""

    def __init__(self, container_id: str, orientation: str):
        self.container_id = container_id
        self.orientation = orientation
        self.array: Optional[np.ndarray] = None
        self.image = None
        self.destroyed = False


class SlicePreviewEngine(RenderingEngine):
    """
    Grayscale slice renderer for DICOM series.

    Interaction methods (scroll, flip, point) emit pane_event so the viewer
    handles them like events of any other engine.
    """

    # Signals
    pane_rendered = Signal(object, object)  # handle, PIL Image or None

    def __init__(self, thumbnail_size: int = 96, parent: Optional[QObject] = None):
        super().__init__(parent)
        self.thumbnail_size = thumbnail_size
        self.panes: Dict[int, PreviewPane] = {}

    def create_pane(self, container_id: str, orientation: str) -> PreviewPane:
        handle = PreviewPane(container_id, orientation)
        self.panes[id(handle)] = handle
        return handle

    def attach_volume(self, handle: PreviewPane, volume: VolumeDescriptor) -> Optional[Dict[str, Any]]:
        """
        Decode a volume for a pane.

        Returns:
            {"dimensions", "spacing"} for decoded DICOM series, else None
        """
        if volume.image_kind not in DICOM_KINDS:
            print(f"[LOAD] No preview for {volume.image_kind} record {volume.record_id}")
            return None
        handle.array = decode_dicom_volume(volume)
        if handle.array is None:
            return None
        depth, rows, cols = handle.array.shape
        spacing = volume.spacing
        if spacing is None and volume.file_data:
            try:
                header = pydicom.dcmread(io.BytesIO(volume.file_data[0]), stop_before_pixels=True, force=True)
                spacing = dicom_volume_geometry(header, depth)[1]
            except Exception as e:
                print(f"[LOAD] Could not read spacing of record {volume.record_id}: {e}")
        return {"dimensions": (cols, rows, depth), "spacing": spacing}

    def destroy_pane(self, handle: PreviewPane) -> None:
        handle.destroyed = True
        handle.array = None
        handle.image = None
        self.panes.pop(id(handle), None)

    def update_pane(self, handle: PreviewPane, pane: RendererPane) -> None:
        """Render the pane's current slice and emit pane_rendered."""
        if handle.destroyed:
            return
        handle.orientation = pane.orientation
        handle.image = self.render_slice(handle.array, pane)
        self.pane_rendered.emit(handle, handle.image)

    def render_slice(self, array: Optional[np.ndarray], pane: RendererPane):
        """
        Render the slice a pane currently shows.

        Args:
            array: Decoded volume (None renders nothing)
            pane: Pane state

        Returns:
            PIL Image or None
        """
        if array is None:
            return None
        pixels = extract_slice(array, pane.orientation, pane.current_slice())
        if pane.flip_columns:
            pixels = np.fliplr(pixels)
        if pane.flip_rows:
            pixels = np.flipud(pixels)
        if pane.window_level:
            low, high = pane.window_level
            return array_to_image(apply_window_level(pixels, float(low), float(high)))
        return array_to_image(np.ascontiguousarray(pixels))

    def render_thumbnail(self, volume: VolumeDescriptor, callback: Callable[[Optional[str]], None]) -> None:
        """Render the middle axial slice of a DICOM series as a data URL."""
        if volume.image_kind not in DICOM_KINDS:
            callback(None)
            return
        array = decode_dicom_volume(volume)
        if array is None:
            callback(None)
            return
        image = array_to_image(array[array.shape[0] // 2])
        if image is None:
            callback(None)
            return
        image.thumbnail((self.thumbnail_size, self.thumbnail_size))
        callback(image_to_data_url(image))

    # ------------------------------------------------------------------
    # User interaction
    # ------------------------------------------------------------------

    def scroll(self, handle: PreviewPane, delta: int) -> None:
        self.pane_event.emit(handle, "scroll", {"delta": delta})

    def flip(self, handle: PreviewPane, columns: bool) -> None:
        self.pane_event.emit(handle, "flipColumns" if columns else "flipRows", {})

    def point(self, handle: PreviewPane, pointer: Any) -> None:
        self.pane_event.emit(handle, "point", {"pointer": pointer})
