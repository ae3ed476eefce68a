"""
Test doubles shared by the test modules.

FakeRenderingEngine records every call the viewer makes; DeferredFileReader
and DeferredCloudStorage hold callbacks until flushed so tests control the
order in which asynchronous results arrive.
"""

import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from core.collaboration import InMemoryCloudStorage
from core.file_reader import FileReader
from core.rendering import RenderingEngine


class FakeHandle:
    def __init__(self, container_id, orientation):
        self.container_id = container_id
        self.orientation = orientation
        self.volume = None


class FakeRenderingEngine(RenderingEngine):
    """Engine that renders nothing and reports fixed volume properties."""

    def __init__(self, dimensions=(16, 16, 8), spacing=(1.0, 1.0, 2.0), thumbnail="data:image/png;base64,AA=="):
        super().__init__()
        self.dimensions = dimensions
        self.spacing = spacing
        self.thumbnail = thumbnail
        self.created = []
        self.destroyed = []
        self.attached = []
        self.updates = []

    def create_pane(self, container_id, orientation):
        handle = FakeHandle(container_id, orientation)
        self.created.append(handle)
        return handle

    def attach_volume(self, handle, volume):
        handle.volume = volume
        self.attached.append((handle, volume))
        return {"dimensions": self.dimensions, "spacing": self.spacing}

    def destroy_pane(self, handle):
        self.destroyed.append(handle)

    def update_pane(self, handle, pane):
        self.updates.append((handle, pane.id))

    def render_thumbnail(self, volume, callback):
        callback(self.thumbnail)


class DeferredFileReader(FileReader):
    """FileReader whose reads complete only when flush() is called."""

    def __init__(self, storage=None):
        super().__init__(storage)
        self.queue = []

    def read(self, file_ref, mode, callback):
        self.queue.append((file_ref, mode, callback))

    def flush(self, reverse=False):
        """Complete every queued read (optionally newest first)."""
        while self.queue:
            queued, self.queue = self.queue, []
            if reverse:
                queued.reverse()
            for file_ref, mode, callback in queued:
                FileReader.read(self, file_ref, mode, callback)


class DeferredCloudStorage(InMemoryCloudStorage):
    """Cloud storage whose writes complete only when flush() is called."""

    def __init__(self):
        super().__init__()
        self.pending_writes = []

    def write_file(self, path, data, callback):
        self.pending_writes.append((path, data, callback))

    def flush(self):
        while self.pending_writes:
            path, data, callback = self.pending_writes.pop()
            InMemoryCloudStorage.write_file(self, path, data, callback)


def local(url, data=b"\x00"):
    """Input file descriptor for in-memory file contents."""
    return {"url": url, "file": data}


def make_dicom_bytes(pixels=None, **elements):
    """
    Encode a small DICOM file in memory.

    Args:
        pixels: Optional 2D uint16 NumPy array stored as pixel data
        **elements: DICOM keyword -> value

    Returns:
        File bytes
    """
    from io import BytesIO

    import pydicom
    from pydicom.dataset import Dataset, FileMetaDataset
    from pydicom.uid import ExplicitVRLittleEndian, generate_uid

    file_meta = FileMetaDataset()
    file_meta.MediaStorageSOPClassUID = "1.2.840.10008.5.1.4.1.1.4"
    file_meta.MediaStorageSOPInstanceUID = generate_uid()
    file_meta.TransferSyntaxUID = ExplicitVRLittleEndian

    dataset = Dataset()
    dataset.file_meta = file_meta
    dataset.preamble = b"\x00" * 128
    dataset.SOPClassUID = file_meta.MediaStorageSOPClassUID
    dataset.SOPInstanceUID = file_meta.MediaStorageSOPInstanceUID
    dataset.Modality = "MR"
    for keyword, value in elements.items():
        setattr(dataset, keyword, value)

    if pixels is not None:
        dataset.Rows, dataset.Columns = pixels.shape
        dataset.SamplesPerPixel = 1
        dataset.PhotometricInterpretation = "MONOCHROME2"
        dataset.BitsAllocated = 16
        dataset.BitsStored = 16
        dataset.HighBit = 15
        dataset.PixelRepresentation = 0
        dataset.PixelData = pixels.astype("<u2").tobytes()

    buffer = BytesIO()
    pydicom.dcmwrite(buffer, dataset)
    return buffer.getvalue()
