"""Bible Aura Local Store - Store facade.

LocalStore wires the record store, sync tracker, quota tracker, search index
and backup codec around one injected substrate. Construct it once at
application start and pass it to callers:

    store = LocalStore.open()                    # SQLite under data/
    store = LocalStore(MemorySubstrate())        # tests
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any

from pydantic import BaseModel

from aura_store.backup import BackupCodec, ImportMode, ImportResult
from aura_store.config import (
    LOW_WATER_MARK_BYTES,
    STORAGE_CAPACITY_BYTES,
    SUBSTRATE_HARD_LIMIT_BYTES,
)
from aura_store.models import utc_now
from aura_store.quota import QuotaTracker
from aura_store.registry import COLLECTION_ORDER, CollectionName
from aura_store.schemas import (
    ChatConversation,
    JournalEntry,
    Sermon,
    StorageStats,
    SyncStatusEntry,
)
from aura_store.search import SearchIndex
from aura_store.store import RecordStore
from aura_store.substrate import KeyValueSubstrate, SqliteSubstrate
from aura_store.sync_status import SyncStatusTracker

logger = logging.getLogger(__name__)


class LocalStore:
    """Single entry point for the local persistence layer."""

    def __init__(
        self,
        substrate: KeyValueSubstrate,
        capacity_bytes: int = STORAGE_CAPACITY_BYTES,
        low_water_mark_bytes: int = LOW_WATER_MARK_BYTES,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.substrate = substrate
        self.sync = SyncStatusTracker(substrate, clock=clock)
        self.records = RecordStore(substrate, self.sync, clock=clock)
        self.quota = QuotaTracker(
            self.records,
            self.sync,
            capacity_bytes=capacity_bytes,
            low_water_mark_bytes=low_water_mark_bytes,
        )
        self.search_index = SearchIndex(self.records)
        self.backup = BackupCodec(self.records, clock=clock)

    @classmethod
    def open(
        cls,
        db_path: str | None = None,
        capacity_bytes: int = STORAGE_CAPACITY_BYTES,
        low_water_mark_bytes: int = LOW_WATER_MARK_BYTES,
        hard_limit_bytes: int | None = SUBSTRATE_HARD_LIMIT_BYTES,
    ) -> LocalStore:
        """Open (creating if needed) the SQLite-backed store."""
        substrate = SqliteSubstrate.open(db_path, hard_limit_bytes=hard_limit_bytes)
        logger.info("Opened local store (capacity=%d bytes)", capacity_bytes)
        return cls(
            substrate,
            capacity_bytes=capacity_bytes,
            low_water_mark_bytes=low_water_mark_bytes,
        )

    # --- Records ---

    def save(self, record: BaseModel) -> bool:
        return self.records.save(record)

    def list(self, collection: CollectionName | str) -> list[Any]:
        return self.records.list_records(collection)

    def get(self, collection: CollectionName | str, record_id: str) -> Any | None:
        return self.records.get(collection, record_id)

    def delete(self, collection: CollectionName | str, record_id: str) -> bool:
        return self.records.delete_by_id(collection, record_id)

    def delete_everywhere(self, record_id: str) -> bool:
        """Delete an id from every collection (ids are not shared, so at most
        one record normally matches)."""
        results = [self.records.delete_by_id(name, record_id) for name in COLLECTION_ORDER]
        return all(results)

    def clear(
        self,
        collection: CollectionName | str | None = None,
        purge_quarantine: bool = True,
    ) -> bool:
        """Clear one collection, or all of them when collection is None.

        Quarantined items of the cleared collections are dropped too unless
        purge_quarantine is False.
        """
        names = self._names(collection)
        results = [self.records.clear(name, purge_quarantine=purge_quarantine) for name in names]
        return all(results)

    def purge_quarantine(self, collection: CollectionName | str | None = None) -> bool:
        """Drop quarantined items of one collection, or of all of them."""
        return all([self.records.purge_quarantine(name) for name in self._names(collection)])

    def quarantined(self, collection: CollectionName | str) -> list[Any]:
        return self.records.quarantined(collection)

    @staticmethod
    def _names(collection: CollectionName | str | None) -> tuple[CollectionName, ...]:
        return COLLECTION_ORDER if collection is None else (CollectionName(collection),)

    # --- Typed convenience ---

    def sermons(self) -> list[Sermon]:
        return self.list(CollectionName.SERMONS)

    def journal_entries(self) -> list[JournalEntry]:
        return self.list(CollectionName.JOURNALS)

    def chat_conversations(self) -> list[ChatConversation]:
        return self.list(CollectionName.CHATS)

    # --- Search ---

    def search(
        self,
        collection: CollectionName | str,
        query: str = "",
        filters: BaseModel | Mapping[str, Any] | None = None,
    ) -> list[Any]:
        return self.search_index.search(collection, query, filters)

    def oldest(self, collection: CollectionName | str, count: int = 10) -> list[Any]:
        return self.search_index.oldest(collection, count)

    # --- Quota and sync ---

    def stats(self) -> StorageStats:
        return self.quota.stats()

    def is_full(self) -> bool:
        return self.quota.is_full()

    def sync_status(self) -> dict[CollectionName, SyncStatusEntry]:
        return self.sync.status()

    # --- Backup ---

    def export_data(self) -> str:
        return self.backup.export()

    def import_data(self, text: str, mode: ImportMode | str = ImportMode.REPLACE) -> ImportResult:
        return self.backup.import_snapshot(text, mode)
