"""
File Set Classifier

This module turns an unordered bag of heterogeneous input files (volumes,
DICOM slice sequences, zipped DICOM sets, thumbnail images, JSON sidecars)
into stable, addressable image file records.

Grouping is done in one pass into explicit maps keyed by base URL (DICOM
series) and association key (thumbnails, sidecars); cross references are
resolved afterwards so the result does not depend on input order.

Inputs:
    - List of input file descriptors: {"url", "file"?, "cloud_id"?, "img_fobj_id"?}
    - First id to assign (normally the registry's next free id)

Outputs:
    - Sorted list of ImageFileRecord objects with ids assigned
    - List of dropped (unsupported or unmatched) file urls

Requirements:
    - core.image_file_record for the data model
    - utils.file_utils for path helpers
"""

from collections import defaultdict
from typing import Any, Dict, List, Optional, Tuple

from core.image_file_record import (
    FileRef,
    ImageFileRecord,
    descriptor_original_id,
)
from utils.file_utils import (
    association_key,
    get_base_url,
    sorted_by_name,
    str_ends_with,
    strip_zip_suffix,
)


# Suffix sets; matching is case-insensitive. Zipped DICOM is tested before
# plain DICOM only for clarity: ".dcm.zip" never ends with ".dcm".
EXTENSIONS = {
    "dicomSeriesZipped": (".dcm.zip", ".ima.zip"),
    "dicomSeries": (".dcm", ".ima"),
    "volume": (".mgh", ".mgz", ".nrrd", ".nii", ".nii.gz"),
    "fiberTract": (".trk",),
    "mesh": (".obj", ".vtk", ".stl"),
    "thumbnail": (".png", ".gif", ".jpg"),
    "sidecar": (".json",),
}

# File types that are attached to records rather than forming records
UTILITY_TYPES = ("thumbnail", "sidecar")


def get_image_kind(file_name: str) -> str:
    """
    Determine the type of a file from its name.

    Args:
        file_name: File name or path

    Returns:
        One of "dicomSeries", "dicomSeriesZipped", "volume", "fiberTract",
        "mesh", "thumbnail", "sidecar" or "unsupported"
    """
    for kind, suffixes in EXTENSIONS.items():
        if str_ends_with(file_name, suffixes):
            return kind
    return "unsupported"


def record_sort_key(record: ImageFileRecord) -> str:
    """Deterministic ordering key: base url + primary file name without .zip."""
    return record.base_url + strip_zip_suffix(record.primary_name)


class FileClassifier:
    """
    Classifies raw file descriptors into image file records.

    Rules:
    - DICOM files sharing a base URL form one record (one directory of slices)
    - Zipped DICOM files sharing a base URL form one record
    - Volumes, fiber tracts and meshes each form their own record
    - Thumbnails and JSON sidecars are attached by association key
    - Anything else is dropped silently
    """

    def __init__(self):
        """Initialize the classifier."""
        self.dropped_files: List[str] = []

    def classify(self, descriptors: List[Dict[str, Any]], start_id: int = 0) -> List[ImageFileRecord]:
        """
        Classify input file descriptors into image file records.

        Args:
            descriptors: Input file descriptors
            start_id: First id to assign when descriptors carry no original ids

        Returns:
            Records sorted by base url + primary file name, ids assigned
        """
        self.dropped_files = []

        dicoms: Dict[str, List[FileRef]] = defaultdict(list)
        dicom_zips: Dict[str, List[FileRef]] = defaultdict(list)
        single_files: List[Tuple[str, str, FileRef]] = []  # (base_url, kind, file)
        utility_files: Dict[str, List[Tuple[str, FileRef]]] = {t: [] for t in UTILITY_TYPES}
        original_ids: Dict[str, Optional[int]] = {}

        for descriptor in descriptors:
            url = descriptor.get("url")
            if not url:
                continue
            file_ref = FileRef.from_descriptor(descriptor)
            base_url = get_base_url(url)
            kind = get_image_kind(file_ref.name)
            original_ids[url] = descriptor_original_id(descriptor)

            if kind == "dicomSeries":
                dicoms[base_url].append(file_ref)
            elif kind == "dicomSeriesZipped":
                dicom_zips[base_url].append(file_ref)
            elif kind in UTILITY_TYPES:
                utility_files[kind].append((association_key(url), file_ref))
            elif kind == "unsupported":
                self.dropped_files.append(url)
            else:
                single_files.append((base_url, kind, file_ref))

        records: List[ImageFileRecord] = []
        for base_url, files in dicoms.items():
            records.append(ImageFileRecord(-1, base_url, "dicomSeries", sorted_by_name(files)))
        for base_url, files in dicom_zips.items():
            records.append(ImageFileRecord(-1, base_url, "dicomSeriesZipped", sorted_by_name(files)))
        for base_url, kind, file_ref in single_files:
            records.append(ImageFileRecord(-1, base_url, kind, [file_ref]))

        # Sort for consistency among possible collaborators
        records.sort(key=record_sort_key)

        self._assign_utility_files(records, utility_files["thumbnail"], "thumbnail")
        self._assign_utility_files(records, utility_files["sidecar"], "sidecar")

        self._assign_ids(records, descriptors, original_ids, start_id)

        print(f"[CLASSIFY] {len(descriptors)} file(s) -> {len(records)} record(s), "
              f"{len(self.dropped_files)} dropped")
        return records

    def _assign_utility_files(self, records: List[ImageFileRecord],
                              candidates: List[Tuple[str, FileRef]], attr: str) -> None:
        """
        Attach thumbnail or sidecar files to the records they belong to.

        Candidates are visited in path order and the first record whose key
        matches wins, so the outcome does not depend on input order.

        Args:
            records: Sorted records
            candidates: (association key, file) pairs
            attr: "thumbnail" or "sidecar"
        """
        record_keys = [(association_key(strip_zip_suffix(record.primary_path)), record) for record in records]

        for key, file_ref in sorted(candidates, key=lambda item: item[1].url):
            match = next((record for record_key, record in record_keys
                          if record_key == key and getattr(record, attr) is None), None)
            if match is None:
                self.dropped_files.append(file_ref.url)
                continue
            setattr(match, attr, file_ref)

    def _assign_ids(self, records: List[ImageFileRecord], descriptors: List[Dict[str, Any]],
                    original_ids: Dict[str, Optional[int]], start_id: int) -> None:
        """
        Assign record ids.

        If every descriptor carries an original id (files shared by a
        collaborator) each record reuses the id of its first file; otherwise
        ids are sequential from start_id in sorted order.

        Args:
            records: Sorted records
            descriptors: Input descriptors
            original_ids: url -> original id (None when absent)
            start_id: First id for sequential assignment
        """
        reuse = bool(descriptors) and all(
            original_ids.get(d.get("url")) is not None for d in descriptors if d.get("url")
        )

        if reuse:
            for record in records:
                record.id = original_ids[record.files[0].url]
        else:
            for offset, record in enumerate(records):
                record.id = start_id + offset


def classify(descriptors: List[Dict[str, Any]], start_id: int = 0) -> List[ImageFileRecord]:
    """
    Classify input file descriptors (convenience wrapper around FileClassifier).

    Args:
        descriptors: Input file descriptors
        start_id: First id to assign

    Returns:
        Sorted list of ImageFileRecord objects
    """
    return FileClassifier().classify(descriptors, start_id)
