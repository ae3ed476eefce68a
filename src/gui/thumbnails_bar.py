"""
Thumbnails Bar

This module provides the thumbnails bar: one strip of preview images per
batch of loaded data. Each thumbnail stands for one image file record and
can be dragged onto the renderers box to open the record in a render pane.
A thumbnail is hidden while its record is shown in a pane.

Thumbnails come from the record's thumbnail image file when there is one,
otherwise the rendering engine renders a preview of the record's volume.

Inputs:
    - ImageFileRecords of one batch
    - FileReader, VolumeLoader and RenderingEngine for loading previews

Outputs:
    - Thumbnail images, titles and info captions
    - thumbnail_loaded / thumbnails_ready signals

Requirements:
    - PySide6 for signals
    - utils.image_utils (Pillow) for thumbnail normalization
"""

from typing import Dict, List, Optional, Tuple

from PySide6.QtCore import QObject, Signal

from core.image_file_record import ImageFileRecord
from core.file_reader import FileReader, ReadJoin
from core.rendering import RenderingEngine
from core.volume_loader import VolumeLoader
from gui.pane_container import PaneContainer
from utils.image_utils import normalize_thumbnail


def thumbnail_caption(record: ImageFileRecord) -> Tuple[str, str]:
    """
    Derive a thumbnail's title and short info caption from file names.

    Names are assumed to look like '<uid>-<series description>.jpg': when the
    name contains a dash the title is the text after the last dash (without
    extension) and the info its first 10 characters; otherwise the title is
    the whole name and the info the last 10 characters of its stem. DICOM
    series without a thumbnail file get their caption from the series
    description once the header is parsed.

    Args:
        record: Image file record

    Returns:
        Tuple (title, info)
    """
    if record.thumbnail is not None:
        file_name = record.thumbnail.name
    elif not record.is_dicom():
        file_name = record.primary_name
    else:
        return "", ""

    dot_index = file_name.rfind('.')
    stem = file_name[:dot_index] if dot_index != -1 else file_name
    if '-' in file_name:
        title = stem[stem.rfind('-') + 1:]
        return title, title[:10]
    return file_name, stem[-10:]


class Thumbnail:
    """Preview of one record inside a thumbnails bar."""

    def __init__(self, record_id: int, title: str = "", info: str = ""):
        self.record_id = record_id
        self.title = title
        self.info = info
        self.image: Optional[str] = None  # PNG data URL
        self.loaded = False

    def __repr__(self) -> str:
        return f"Thumbnail(id={self.record_id}, title={self.title!r}, loaded={self.loaded})"


class ThumbnailsBar(PaneContainer):
    """
    Container of the thumbnails of one batch.

    Children are record ids in classification order.
    """

    # Signals
    thumbnail_loaded = Signal(int)  # record id
    thumbnails_ready = Signal(int)  # batch id

    def __init__(self, batch_id: int, container_id: str, width: float = 120,
                 thumbnail_size: int = 96, parent: Optional[QObject] = None):
        """
        Initialize the thumbnails bar.

        Args:
            batch_id: Batch shown by the bar
            container_id: Unique container id
            width: Bar width in pixels
            thumbnail_size: Max edge of thumbnail images
            parent: Optional Qt parent
        """
        super().__init__("thumbnailsBar", container_id, width=width, parent=parent)
        self.batch_id = batch_id
        self.thumbnail_size = thumbnail_size
        self.thumbnails: Dict[int, Thumbnail] = {}
        self.ready = False

    def add_records(self, records: List[ImageFileRecord]) -> None:
        """Create a thumbnail entry for every record."""
        for record in records:
            title, info = thumbnail_caption(record)
            self.thumbnails[record.id] = Thumbnail(record.id, title, info)
            self.add_child(record.id)

    def remove_record(self, record_id: int) -> None:
        self.thumbnails.pop(record_id, None)
        self.remove_child(record_id)

    def get_thumbnail(self, record_id: int) -> Optional[Thumbnail]:
        return self.thumbnails.get(record_id)

    def load_thumbnails(self, records: List[ImageFileRecord], reader: FileReader,
                        engine: Optional[RenderingEngine] = None) -> ReadJoin:
        """
        Load the preview image of every record.

        thumbnails_ready is emitted once all previews have been attempted.

        Args:
            records: Records of the batch
            reader: FileReader for thumbnail and data files
            engine: RenderingEngine used when a record has no thumbnail file

        Returns:
            The ReadJoin tracking the previews
        """
        join = ReadJoin(len(records), lambda results: self._on_all_loaded())
        tokens = [join.token(record.id) for record in records]
        loader = VolumeLoader(reader)

        for record, token in zip(records, tokens):
            if record.thumbnail is not None:
                reader.read(record.thumbnail, "bytes",
                            lambda data, record=record, token=token: self._on_thumbnail_data(record, data, token))
            else:
                loader.load(record, lambda volume, record=record, token=token:
                            self._on_volume(record, volume, engine, token))
        return join

    def _on_thumbnail_data(self, record: ImageFileRecord, data: Optional[bytes], token) -> None:
        image = normalize_thumbnail(data, self.thumbnail_size) if data is not None else None
        self._set_image(record.id, image)
        token.resolve(image)

    def _on_volume(self, record: ImageFileRecord, volume, engine: Optional[RenderingEngine], token) -> None:
        thumbnail = self.thumbnails.get(record.id)
        if thumbnail is not None and record.is_dicom() and record.dicom_info:
            description = record.dicom_info.get("series_description", "")
            thumbnail.title = description
            thumbnail.info = description[:10]

        if volume is None or engine is None:
            self._set_image(record.id, None)
            token.resolve(None)
            return

        def on_rendered(image: Optional[str]) -> None:
            self._set_image(record.id, image)
            token.resolve(image)

        engine.render_thumbnail(volume, on_rendered)

    def _set_image(self, record_id: int, image: Optional[str]) -> None:
        thumbnail = self.thumbnails.get(record_id)
        if thumbnail is None:
            # Removed while loading
            return
        thumbnail.image = image
        thumbnail.loaded = True
        # Shown once any drag in progress has been dropped
        if self.group is not None:
            self.group.defer(lambda: self.thumbnail_loaded.emit(record_id))
        else:
            self.thumbnail_loaded.emit(record_id)

    def _on_all_loaded(self) -> None:
        self.ready = True
        print(f"[LOAD] Thumbnails of batch {self.batch_id} ready")
        self.thumbnails_ready.emit(self.batch_id)
