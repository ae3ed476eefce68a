"""
File Path Utility Functions

This module provides the small path and naming helpers shared by the file
classifier, the thumbnails bar and the upload code. Paths are URL-like strings
using '/' separators whether they name local files, remote URLs or cloud
objects.

Inputs:
    - URL-like path strings
    - File names

Outputs:
    - Base URLs, file names, association keys
    - Suffix matches

Requirements:
    - Standard library only: re, pathlib, typing
"""

import re
from pathlib import Path
from typing import Any, Dict, Iterable, List, Sequence

_ZIP_SUFFIX = re.compile(r"\.zip$", re.IGNORECASE)


def str_ends_with(text: str, suffixes: Iterable[str]) -> bool:
    """
    Return True if text ends with any of the given suffixes (case-insensitive).

    Args:
        text: Input string
        suffixes: Candidate suffixes such as ".nii.gz"

    Returns:
        True if any suffix matches
    """
    lowered = text.lower()
    return any(lowered.endswith(suffix.lower()) for suffix in suffixes)


def get_base_url(path: str) -> str:
    """
    Get the directory part of a path, including the trailing '/'.

    Args:
        path: URL-like path

    Returns:
        Substring up to and including the last '/', or "" when there is none
    """
    return path[:path.rfind('/') + 1]


def get_file_name(path: str) -> str:
    """
    Get the last path component.

    Args:
        path: URL-like path

    Returns:
        File name
    """
    return path[path.rfind('/') + 1:]


def strip_zip_suffix(name: str) -> str:
    """Remove a trailing .zip from a file name."""
    return _ZIP_SUFFIX.sub("", name)


def strip_extension(path: str) -> str:
    """
    Truncate a path at its last period.

    Args:
        path: URL-like path

    Returns:
        Path without its final extension (unchanged if the name has no period)
    """
    dot_index = path.rfind('.')
    if dot_index <= path.rfind('/'):
        return path
    return path[:dot_index]


def association_key(path: str) -> str:
    """
    Compute the key used to pair thumbnails and sidecars with image files.

    The key is the full path truncated at the first '-' after the last '/',
    or at the last '.' if the file name has no dash. For example both
    'a/vol.nii' and 'a/vol-SERIES.jpg' yield 'a/vol'.

    Args:
        path: URL-like path

    Returns:
        Association key string
    """
    dash_index = path.find('-', path.rfind('/'))
    if dash_index == -1:
        return strip_extension(path)
    return path[:dash_index]


def sorted_by_name(items: Sequence, attr: str = "name") -> list:
    """
    Sort objects lexicographically by a string attribute (stable).

    Args:
        items: Objects to sort
        attr: Attribute holding the sort string

    Returns:
        New sorted list
    """
    return sorted(items, key=lambda item: getattr(item, attr))


def local_file_descriptors(paths: Iterable[str]) -> List[Dict[str, Any]]:
    """
    Build input file descriptors for local files and folders.

    Folders are walked recursively; hidden files are skipped. The url of each
    file is its absolute path with '/' separators so that files of one folder
    share a base url.

    Args:
        paths: File and folder paths

    Returns:
        List of {"url", "file"} descriptors
    """
    descriptors = []
    for path in paths:
        path = Path(path)
        if path.is_dir():
            files = sorted(p for p in path.rglob("*") if p.is_file() and not p.name.startswith("."))
        elif path.is_file():
            files = [path]
        else:
            print(f"Warning: {path} does not exist")
            continue
        for file_path in files:
            file_path = file_path.resolve()
            descriptors.append({"url": file_path.as_posix(), "file": str(file_path)})
    return descriptors
