"""
Series Information Extraction

This module extracts the patient and series information shown in a render
pane's info overlay. The information comes either from a JSON sidecar file
(which also carries MRI acquisition info) or from the header of the first
DICOM slice of a series.

Inputs:
    - Raw bytes of a DICOM file
    - Text of a JSON sidecar file
    - Volume dimensions and voxel spacing

Outputs:
    - Info dictionaries
    - Overlay text for the four pane corners

Requirements:
    - pydicom library for DICOM header parsing
    - numpy for voxel spacing formatting
"""

import json
from io import BytesIO
from typing import Any, Dict, Optional, Sequence

import numpy as np
import pydicom
from pydicom.dataset import Dataset


# (info key, DICOM keyword)
DICOM_INFO_TAGS = [
    ("patient_name", "PatientName"),
    ("patient_id", "PatientID"),
    ("patient_birth_date", "PatientBirthDate"),
    ("patient_age", "PatientAge"),
    ("patient_sex", "PatientSex"),
    ("series_description", "SeriesDescription"),
    ("manufacturer", "Manufacturer"),
    ("study_date", "StudyDate"),
]

# (info key, sidecar key inside "mri_info")
MRI_INFO_KEYS = [
    ("orientation", "orientation"),
    ("primary_slice_direction", "primarySliceDirection"),
    ("dimensions", "dimensions"),
    ("voxel_sizes", "voxelSizes"),
]


def _element_string(dataset: Dataset, keyword: str) -> str:
    value = dataset.get(keyword, "")
    if value is None:
        return ""
    return str(value).strip()


def read_dicom_header(data: bytes) -> Dataset:
    """
    Read the header of a DICOM file without its pixel data.

    Args:
        data: Raw DICOM file bytes

    Returns:
        pydicom Dataset

    Raises:
        pydicom.errors.InvalidDicomError or other parse errors for unreadable data
    """
    dataset = pydicom.dcmread(BytesIO(data), stop_before_pixels=True, force=True)
    if len(dataset) == 0:
        raise ValueError("No DICOM elements found")
    return dataset


def dicom_info_from_dataset(dataset: Dataset) -> Dict[str, str]:
    """Extract the overlay fields from a DICOM dataset (missing tags become '')."""
    return {key: _element_string(dataset, keyword) for key, keyword in DICOM_INFO_TAGS}


def dicom_volume_geometry(dataset: Dataset, slice_count: int):
    """
    Estimate the dimensions and voxel spacing of a series from its first slice.

    Args:
        dataset: Header of the first slice
        slice_count: Number of slices in the series

    Returns:
        Tuple (dimensions, spacing); either is None if the header lacks the tags
    """
    dimensions = None
    rows, columns = dataset.get("Rows"), dataset.get("Columns")
    if rows and columns:
        dimensions = (int(columns), int(rows), max(1, int(slice_count)))

    spacing = None
    pixel_spacing = dataset.get("PixelSpacing")
    if pixel_spacing is not None and len(pixel_spacing) >= 2:
        thickness = dataset.get("SliceThickness") or 1.0
        spacing = (float(pixel_spacing[1]), float(pixel_spacing[0]), float(thickness))
    return dimensions, spacing


def parse_sidecar_info(text: str) -> Dict[str, Any]:
    """
    Parse patient, series and MRI information from a JSON sidecar.

    Args:
        text: Sidecar file contents

    Returns:
        Info dictionary (missing fields are empty strings)

    Raises:
        json.JSONDecodeError if the text is not valid JSON
    """
    obj = json.loads(text)
    if not isinstance(obj, dict):
        obj = {}
    info: Dict[str, Any] = {key: obj.get(keyword, "") for key, keyword in DICOM_INFO_TAGS}
    mri_info = obj.get("mri_info")
    if not isinstance(mri_info, dict):
        mri_info = {}
    for key, sidecar_key in MRI_INFO_KEYS:
        info[key] = mri_info.get(sidecar_key, "")
    return info


def format_dimensions(dimensions: Sequence[int]) -> str:
    """Format volume dimensions as 'X x Y x Z'."""
    return " x ".join(str(int(d)) for d in dimensions)


def format_voxel_sizes(spacing: Sequence[float]) -> str:
    """Format voxel spacing with four significant digits, comma separated."""
    return ", ".join(np.format_float_positional(float(s), precision=4, unique=False, fractional=False, trim='k')
                     for s in spacing)


def format_slice_text(slice_index: int, slice_count: int) -> str:
    """
    Format the slice counter shown in a pane's bottom-left corner.

    Args:
        slice_index: Zero-based slice index
        slice_count: Number of slices along the pane's axis

    Returns:
        Text such as 'slice: 3/20'
    """
    return f"slice: {slice_index + 1}/{slice_count}"


def build_info_overlay(info: Optional[Dict[str, Any]], slice_index: int, slice_count: int,
                       dimensions: Optional[Sequence[int]] = None,
                       spacing: Optional[Sequence[float]] = None) -> Dict[str, str]:
    """
    Build the overlay text for the four corners of a render pane.

    With no info only the slice counter is shown. DICOM info gets its
    dimensions and voxel sizes from the loaded volume.

    Args:
        info: Sidecar or DICOM info dictionary, or None
        slice_index: Zero-based slice index along the pane's axis
        slice_count: Number of slices along the pane's axis
        dimensions: Volume dimensions (used when info lacks them)
        spacing: Voxel spacing (used when info lacks it)

    Returns:
        Dictionary with top_left, top_right, bottom_left, bottom_right text
    """
    overlay = {
        "top_left": "",
        "top_right": "",
        "bottom_left": format_slice_text(slice_index, slice_count),
        "bottom_right": "",
    }
    if not info:
        return overlay

    dims = info.get("dimensions") or (format_dimensions(dimensions) if dimensions is not None else "")
    voxels = info.get("voxel_sizes") or (format_voxel_sizes(spacing) if spacing is not None else "")

    top_left = [str(info.get("patient_name", "")), str(info.get("patient_id", "")),
                f"BIRTHDATE: {info.get('patient_birth_date', '')}"]
    if info.get("patient_age"):
        top_left.append(f"AGE: {info['patient_age']}")
    top_left.append(f"SEX: {info.get('patient_sex', '')}")
    overlay["top_left"] = "\n".join(top_left)

    overlay["top_right"] = "\n".join([
        f"SERIES: {info.get('series_description', '')}",
        str(info.get("manufacturer", "")),
        str(info.get("study_date", "")),
        str(dims),
        str(voxels),
    ])

    bottom_right = [str(info[key]) for key in ("orientation", "primary_slice_direction") if info.get(key)]
    overlay["bottom_right"] = "\n".join(bottom_right)
    return overlay
