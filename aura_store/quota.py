"""Bible Aura Local Store - Quota tracker.

Read-side view of how much of the fixed storage budget the collections use.
A collection's size is the UTF-8 byte length of its compact JSON
serialization, the same text the record store persists.
"""

from __future__ import annotations

import logging

from aura_store.config import LOW_WATER_MARK_BYTES, STORAGE_CAPACITY_BYTES
from aura_store.registry import COLLECTION_ORDER, CollectionName
from aura_store.schemas import CollectionStats, StorageStats
from aura_store.store import RecordStore, encode_records
from aura_store.sync_status import SyncStatusTracker

logger = logging.getLogger(__name__)

_SIZE_UNITS = ("B", "KB", "MB", "GB")


class QuotaTracker:
    """Computes usage against a fixed capacity on demand."""

    def __init__(
        self,
        store: RecordStore,
        sync_tracker: SyncStatusTracker,
        capacity_bytes: int = STORAGE_CAPACITY_BYTES,
        low_water_mark_bytes: int = LOW_WATER_MARK_BYTES,
    ):
        if capacity_bytes <= 0:
            raise ValueError(f"capacity_bytes must be positive, got {capacity_bytes}")
        self._store = store
        self._sync = sync_tracker
        self.capacity_bytes = capacity_bytes
        self.low_water_mark_bytes = low_water_mark_bytes

    def collection_stats(self, collection: CollectionName | str) -> CollectionStats:
        """Count and serialized size of one collection."""
        name = CollectionName(collection)
        records = self._store.list_records(name)
        status = self._sync.entry(name)
        return CollectionStats(
            count=len(records),
            total_size=len(encode_records(records).encode("utf-8")),
            quarantine_size=self._store.quarantine_size(name),
            last_modified=status.last_modified,
            last_synced=status.last_synced,
        )

    def stats(self) -> StorageStats:
        """Per-collection stats plus overall totalSize and available bytes.

        totalSize includes quarantined bytes, which the substrate limit also
        counts. available may be negative when the store is over budget.
        """
        per_collection = {name: self.collection_stats(name) for name in COLLECTION_ORDER}
        total = sum(s.total_size + s.quarantine_size for s in per_collection.values())
        return StorageStats(
            sermons=per_collection[CollectionName.SERMONS],
            journals=per_collection[CollectionName.JOURNALS],
            chats=per_collection[CollectionName.CHATS],
            total_size=total,
            available=self.capacity_bytes - total,
            capacity=self.capacity_bytes,
        )

    def is_full(self, stats: StorageStats | None = None) -> bool:
        """True when fewer than low_water_mark_bytes remain available."""
        stats = stats or self.stats()
        full = stats.available < self.low_water_mark_bytes
        if full:
            logger.warning(
                "Storage nearly full: %d of %d bytes available",
                stats.available,
                self.capacity_bytes,
            )
        return full

    def used_percentage(self, stats: StorageStats | None = None) -> int:
        """Rounded percentage of the capacity in use (may exceed 100)."""
        stats = stats or self.stats()
        return round(stats.total_size * 100 / self.capacity_bytes)


def format_size(num_bytes: int) -> str:
    """Human-readable size with up to two decimals, e.g. "1.5 KB".

    Args:
        num_bytes: Size in bytes. Negative sizes keep their sign.

    Returns:
        Formatted string using 1024-based units B/KB/MB/GB.
    """
    if num_bytes == 0:
        return "0 B"
    sign = "-" if num_bytes < 0 else ""
    magnitude = abs(num_bytes)
    exponent = 0
    while exponent < len(_SIZE_UNITS) - 1 and magnitude >= 1024 ** (exponent + 1):
        exponent += 1
    value = round(magnitude / 1024**exponent, 2)
    return f"{sign}{value:g} {_SIZE_UNITS[exponent]}"
