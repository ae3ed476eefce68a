"""
Record Volume Loader

This module reads every file of an image file record and assembles the
VolumeDescriptor handed to the rendering engine. Each file read gets its own
token in a fan-in join; the volume is complete when all of them resolved.

For DICOM series the header of the first slice is parsed as soon as that
slice arrives, independent of the remaining slices. Zipped series are
unzipped and their slices re-sorted by name before the header is parsed.

Inputs:
    - ImageFileRecord
    - FileReader

Outputs:
    - VolumeDescriptor (or None when a file could not be read)
    - record.dicom_info attached when the first slice's header parses

Requirements:
    - core.file_reader for reads and the fan-in join
    - core.dicom_info for header parsing
    - core.zip_archive for unzipping
"""

import zipfile
from typing import Any, Callable, Dict, List, Optional

from core.dicom_info import dicom_info_from_dataset, dicom_volume_geometry, read_dicom_header
from core.file_reader import FileReader, ReadJoin
from core.image_file_record import ImageFileRecord
from core.rendering import VolumeDescriptor
from core.zip_archive import unzip_file_data
from utils.file_utils import strip_zip_suffix


class VolumeLoader:
    """
    Loads the files of records into VolumeDescriptors.

    Features:
    - One read token per file, completion through a ReadJoin
    - First-slice DICOM header parsing (errors are printed, never raised)
    - Unzipping of zipped DICOM series
    """

    def __init__(self, reader: FileReader):
        """
        Initialize the loader.

        Args:
            reader: FileReader used for every file
        """
        self.reader = reader

    def load(self, record: ImageFileRecord,
             callback: Callable[[Optional[VolumeDescriptor]], None]) -> ReadJoin:
        """
        Read all files of a record.

        Args:
            record: Record to load
            callback: Called with the VolumeDescriptor, or None if a read failed

        Returns:
            The ReadJoin tracking the reads
        """
        files = record.files
        header_state: Dict[str, Any] = {"dataset": None}

        join = ReadJoin(len(files), lambda results: self._on_files_read(record, results, header_state, callback))
        tokens = [join.token(index) for index in range(len(files))]

        for index, (file_ref, token) in enumerate(zip(files, tokens)):
            if index == 0 and record.image_kind == "dicomSeries":
                def on_first_slice(data, token=token):
                    if data is not None:
                        header_state["dataset"] = self._parse_header(record, data)
                    token.resolve(data)
                self.reader.read(file_ref, "bytes", on_first_slice)
            else:
                self.reader.read(file_ref, "bytes", token.resolve)
        return join

    def _parse_header(self, record: ImageFileRecord, data: bytes):
        try:
            dataset = read_dicom_header(data)
        except Exception as e:
            print(f"[LOAD] Could not parse DICOM header of {record.primary_path}: {e}")
            return None
        record.dicom_info = dicom_info_from_dataset(dataset)
        return dataset

    def _on_files_read(self, record: ImageFileRecord, results: Dict[int, Any],
                       header_state: Dict[str, Any],
                       callback: Callable[[Optional[VolumeDescriptor]], None]) -> None:
        data_list: List[Optional[bytes]] = [results.get(index) for index in range(len(record.files))]
        if any(data is None for data in data_list):
            print(f"[LOAD] Could not read every file of record {record.id}")
            callback(None)
            return

        if record.image_kind == "dicomSeriesZipped":
            entries = []
            try:
                for data in data_list:
                    entries.extend(unzip_file_data(data))
            except zipfile.BadZipFile as e:
                print(f"[LOAD] Could not unzip files of record {record.id}: {e}")
                callback(None)
                return
            entries.sort(key=lambda entry: entry[0])
            names = [name for name, _ in entries]
            data_list = [data for _, data in entries]
            if data_list:
                header_state["dataset"] = self._parse_header(record, data_list[0])
        else:
            names = [strip_zip_suffix(f.name) for f in record.files]

        dimensions, spacing = None, None
        if header_state["dataset"] is not None:
            dimensions, spacing = dicom_volume_geometry(header_state["dataset"], len(data_list))

        callback(VolumeDescriptor(record.id, record.image_kind, names, data_list, dimensions, spacing))
