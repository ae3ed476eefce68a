"""
Image File Record Model

This module defines the data model the viewer operates on: FileRef (a handle
to one local, remote or cloud file) and ImageFileRecord (one addressable unit
of visualizable data such as a volume or a DICOM series).

Inputs:
    - Input file descriptors: {"url", "file"?, "cloud_id"?, "img_fobj_id"?}
      (camelCase "cloudId"/"imgFObjId" keys from shared file lists are accepted)

Outputs:
    - FileRef and ImageFileRecord objects

Requirements:
    - typing for type hints
    - utils.file_utils for path helpers
"""

from typing import Any, Dict, List, Literal, Optional

from utils.file_utils import get_file_name


ImageKind = Literal["dicomSeries", "dicomSeriesZipped", "volume", "fiberTract", "mesh", "unsupported"]

# Kinds whose files are a directory of slices rather than one file
DICOM_KINDS = ("dicomSeries", "dicomSeriesZipped")

# Kinds that can be loaded into a 2D renderer pane
RENDERABLE_KINDS = ("dicomSeries", "dicomSeriesZipped", "volume")


class FileRef:
    """
    Reference to a single file, independent of where its bytes live.

    A local ref carries a handle (filesystem path or binary file-like object).
    A remote ref has remote=True, a url and optionally the id of the object in
    cloud storage.
    """

    def __init__(self, name: str, url: str, remote: bool = False,
                 cloud_id: Optional[str] = None, handle: Any = None):
        """
        Initialize the file reference.

        Args:
            name: File name (last path component)
            url: Full URL-like path
            remote: True if the bytes must be fetched rather than read locally
            cloud_id: Cloud storage object id (remote refs only)
            handle: Local path or binary file-like object (local refs only)
        """
        self.name = name
        self.url = url
        self.remote = remote
        self.cloud_id = cloud_id
        self.handle = handle

    @classmethod
    def from_descriptor(cls, descriptor: Dict[str, Any]) -> "FileRef":
        """
        Build a FileRef from an input file descriptor.

        Args:
            descriptor: Dict with "url" and optionally "file" and "cloud_id"

        Returns:
            FileRef (local if the descriptor has a file handle, remote otherwise)
        """
        url = descriptor["url"]
        name = get_file_name(url)
        handle = descriptor.get("file")
        if handle is not None:
            return cls(name, url, remote=False, handle=handle)
        cloud_id = descriptor.get("cloud_id", descriptor.get("cloudId"))
        return cls(name, url, remote=True, cloud_id=cloud_id)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FileRef):
            return NotImplemented
        return (self.url, self.remote, self.cloud_id) == (other.url, other.remote, other.cloud_id)

    def __hash__(self) -> int:
        return hash((self.url, self.remote, self.cloud_id))

    def __repr__(self) -> str:
        origin = f"cloud:{self.cloud_id}" if self.cloud_id else ("remote" if self.remote else "local")
        return f"FileRef({self.url!r}, {origin})"


class ImageFileRecord:
    """
    One addressable unit of visualizable data.

    Records are created by the file classifier and never mutated afterwards
    except to attach thumbnail, sidecar or dicom_info (and the batch id when
    the registry adopts them).
    """

    def __init__(self, record_id: int, base_url: str, image_kind: ImageKind,
                 files: List[FileRef], thumbnail: Optional[FileRef] = None,
                 sidecar: Optional[FileRef] = None,
                 thumbnails_bar_id: Optional[int] = None):
        """
        Initialize the record.

        Args:
            record_id: Stable integer id
            base_url: Common path prefix of all files
            image_kind: Kind of data
            files: Ordered files (all slices for DICOM kinds, else a single file)
            thumbnail: Optional pre-rendered preview image
            sidecar: Optional JSON metadata file
            thumbnails_bar_id: Batch the record belongs to
        """
        self.id = record_id
        self.base_url = base_url
        self.image_kind = image_kind
        self.files = files
        self.thumbnail = thumbnail
        self.sidecar = sidecar
        self.thumbnails_bar_id = thumbnails_bar_id
        self.dicom_info: Optional[Dict[str, Any]] = None

    @property
    def primary_name(self) -> str:
        """Name of the first file."""
        return self.files[0].name

    @property
    def primary_path(self) -> str:
        """Full path of the first file (base url + name)."""
        return self.base_url + self.files[0].name

    def is_dicom(self) -> bool:
        """True for plain or zipped DICOM series."""
        return self.image_kind in DICOM_KINDS

    def is_renderable(self) -> bool:
        """True if the record can be shown in a 2D renderer pane."""
        return self.image_kind in RENDERABLE_KINDS

    def identity(self) -> tuple:
        """
        Get the tuple that identifies the record's content.

        Returns:
            (base_url, image_kind, file urls, id)
        """
        return (self.base_url, self.image_kind, tuple(f.url for f in self.files), self.id)

    def __repr__(self) -> str:
        return (f"ImageFileRecord(id={self.id}, kind={self.image_kind}, base_url={self.base_url!r}, "
                f"files={len(self.files)}, batch={self.thumbnails_bar_id})")


def descriptor_original_id(descriptor: Dict[str, Any]) -> Optional[int]:
    """
    Get the original record id carried by a descriptor shared by a collaborator.

    Args:
        descriptor: Input file descriptor

    Returns:
        Integer id or None if the descriptor carries none
    """
    value = descriptor.get("img_fobj_id", descriptor.get("imgFObjId"))
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
