"""
Zip Archive Helpers

This module packs the slices of a DICOM series into zip archives for cloud
upload and unpacks zipped DICOM series for loading. Archives are split into
chunks so no single uploaded file grows beyond a size limit.

Inputs:
    - (name, bytes) pairs of files to compress
    - Raw zip archive bytes

Outputs:
    - List of zip archive contents (one per chunk)
    - (name, bytes) pairs of unzipped files, sorted by name
    - Upload urls for the chunks of one series

Requirements:
    - zipfile module (standard library)
"""

import io
import re
import zipfile
from typing import List, Sequence, Tuple

# Maximum payload size of one zip chunk: 20 MB
DEFAULT_CHUNK_MAX_BYTES = 20971520

_DICOM_ZIP_SUFFIX = re.compile(r"\.dcm\.zip$", re.IGNORECASE)


def _build_zip(entries: Sequence[Tuple[str, bytes]]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, 'w', zipfile.ZIP_DEFLATED) as zf:
        for name, data in entries:
            zf.writestr(name, data)
    return buffer.getvalue()


def zip_files(files: Sequence[Tuple[str, bytes]],
              max_bytes: int = DEFAULT_CHUNK_MAX_BYTES) -> List[bytes]:
    """
    Compress files into one or more zip archives.

    Files are added in order; a file that would push the uncompressed size of
    the current chunk beyond max_bytes starts a new chunk. A single file larger
    than max_bytes gets a chunk of its own.

    Args:
        files: (name, data) pairs
        max_bytes: Maximum uncompressed payload per chunk

    Returns:
        List of zip archive contents (empty if there are no files)
    """
    chunks: List[bytes] = []
    current: List[Tuple[str, bytes]] = []
    byte_length = 0

    for name, data in files:
        if current and byte_length + len(data) > max_bytes:
            chunks.append(_build_zip(current))
            current = []
            byte_length = 0
        current.append((name, data))
        byte_length += len(data)

    if current:
        chunks.append(_build_zip(current))
    return chunks


def unzip_file_data(data: bytes) -> List[Tuple[str, bytes]]:
    """
    Extract every file from a zip archive.

    Args:
        data: Zip archive contents

    Returns:
        (name, data) pairs sorted by name (directory entries skipped)

    Raises:
        zipfile.BadZipFile if data is not a zip archive
    """
    entries = []
    with zipfile.ZipFile(io.BytesIO(data), 'r') as zf:
        for info in zf.infolist():
            if info.is_dir():
                continue
            entries.append((info.filename, zf.read(info)))
    entries.sort(key=lambda entry: entry[0])
    return entries


def chunk_urls(url: str, count: int) -> List[str]:
    """
    Get the upload urls for the chunks of a zipped series.

    The first chunk keeps url; chunk j (j >= 1) of a '.dcm.zip' url is named
    by inserting j before the suffix, e.g. 'a/s1.dcm.zip', 'a/s11.dcm.zip'.

    Args:
        url: Url of the first chunk
        count: Number of chunks

    Returns:
        List of count urls
    """
    urls = [url]
    for j in range(1, count):
        if _DICOM_ZIP_SUFFIX.search(url):
            urls.append(_DICOM_ZIP_SUFFIX.sub(f"{j}.dcm.zip", url))
        elif url.lower().endswith(".zip"):
            urls.append(f"{url[:-4]}{j}.zip")
        else:
            urls.append(f"{url}{j}")
    return urls
