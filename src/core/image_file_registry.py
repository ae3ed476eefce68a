"""
Image File Registry

This module holds every image file record known to the viewer, indexed by id.
Ids are append-only: removing a record leaves a tombstone so an id is never
re-bound to different content. Records are grouped in batches, one batch per
add_data call (each batch is shown in its own thumbnails bar).

Inputs:
    - Classified ImageFileRecord lists
    - Record and batch ids

Outputs:
    - Record lookups, batch membership, next free ids
    - Render container ids for records

Requirements:
    - core.image_file_record for the data model
"""

from typing import Dict, List, Optional

from core.image_file_record import ImageFileRecord


class ImageFileRegistry:
    """
    Id-indexed store of image file records.

    Features:
    - O(1) lookup by id
    - Tombstoned removal (ids are never reused)
    - Batch bookkeeping for thumbnails bars
    - Stable container ids for render panes
    """

    def __init__(self, container_prefix: str = "medview"):
        """
        Initialize the registry.

        Args:
            container_prefix: Prefix used to derive render container ids
        """
        self.container_prefix = container_prefix
        # id -> record, or None once removed (tombstone)
        self._records: Dict[int, Optional[ImageFileRecord]] = {}
        self._batches: Dict[int, List[int]] = {}
        self._next_batch_id = 0

    def __len__(self) -> int:
        """Number of ids ever assigned, tombstones included."""
        return len(self._records)

    def __contains__(self, record_id: int) -> bool:
        return self._records.get(record_id) is not None

    def next_id(self) -> int:
        """
        Get the id the next classified record should start from.

        Returns:
            max(ever-assigned id) + 1, or 0 for an empty registry
        """
        if not self._records:
            return 0
        return max(self._records) + 1

    def next_batch_id(self) -> int:
        """Reserve and return a new batch id."""
        batch_id = self._next_batch_id
        self._next_batch_id += 1
        return batch_id

    def add(self, records: List[ImageFileRecord], batch_id: Optional[int] = None) -> None:
        """
        Add records to the registry.

        Args:
            records: Records with ids assigned
            batch_id: Batch the records belong to (stored on each record)

        Raises:
            ValueError: If a record's id was ever used before
        """
        for record in records:
            if record.id in self._records:
                raise ValueError(f"Record id {record.id} is already assigned")

        for record in records:
            if batch_id is not None:
                record.thumbnails_bar_id = batch_id
            self._records[record.id] = record
            if record.thumbnails_bar_id is not None:
                self._batches.setdefault(record.thumbnails_bar_id, []).append(record.id)
                self._next_batch_id = max(self._next_batch_id, record.thumbnails_bar_id + 1)

        print(f"[REGISTRY] Added {len(records)} record(s) to batch {batch_id}")

    def get(self, record_id: int) -> Optional[ImageFileRecord]:
        """
        Get a record by id.

        Args:
            record_id: Record id

        Returns:
            The record, or None if unknown or removed
        """
        return self._records.get(record_id)

    def remove(self, record_id: int) -> Optional[ImageFileRecord]:
        """
        Remove a record, leaving a tombstone so its id is never reused.

        A batch left without records is dropped.

        Args:
            record_id: Record id

        Returns:
            The removed record, or None if it was not live
        """
        record = self._records.get(record_id)
        if record is None:
            return None
        self._records[record_id] = None
        batch = self._batches.get(record.thumbnails_bar_id)
        if batch is not None and record_id in batch:
            batch.remove(record_id)
            if not batch:
                del self._batches[record.thumbnails_bar_id]
        return record

    def has_batch(self, batch_id: int) -> bool:
        """True while the batch still holds a live record."""
        return batch_id in self._batches

    def get_batch(self, batch_id: int) -> List[ImageFileRecord]:
        """
        Get the live records of a batch in insertion (sorted) order.

        Args:
            batch_id: Batch id

        Returns:
            List of records (empty for unknown batches)
        """
        return [self._records[rid] for rid in self._batches.get(batch_id, [])
                if self._records.get(rid) is not None]

    def remove_batch(self, batch_id: int) -> List[ImageFileRecord]:
        """
        Remove every record of a batch.

        Args:
            batch_id: Batch id

        Returns:
            The removed records
        """
        removed = []
        for record in self.get_batch(batch_id):
            self.remove(record.id)
            removed.append(record)
        self._batches.pop(batch_id, None)
        print(f"[REGISTRY] Removed batch {batch_id} ({len(removed)} record(s))")
        return removed

    def batch_ids(self) -> List[int]:
        """Ids of batches that still exist, ascending."""
        return sorted(self._batches)

    def live_records(self) -> List[ImageFileRecord]:
        """All live records ordered by id."""
        return [record for _, record in sorted(self._records.items()) if record is not None]

    def get_container_id_for(self, record_id: int) -> str:
        """
        Get the id of the render container that hosts a record's pane.

        Args:
            record_id: Record id

        Returns:
            Container id string, stable for the lifetime of the registry
        """
        return f"{self.container_prefix}-render-{record_id}"

    def clear(self) -> None:
        """Forget all records, tombstones and batches."""
        self._records.clear()
        self._batches.clear()
        self._next_batch_id = 0
