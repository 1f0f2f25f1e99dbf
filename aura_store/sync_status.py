"""Bible Aura Local Store - Sync status tracker.

Keeps {lastModified, needsSync} per collection under its own substrate key.
The record store marks a collection modified after every successful
mutation; a future remote-sync collaborator reads status() and calls
mark_synced() once a collection has been pushed.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable
from datetime import datetime

from pydantic import ValidationError

from aura_store.config import SYNC_STATUS_KEY
from aura_store.db import SubstrateError
from aura_store.models import utc_now
from aura_store.registry import CollectionName
from aura_store.schemas import SyncStatusEntry
from aura_store.substrate import KeyValueSubstrate

logger = logging.getLogger(__name__)


class SyncStatusTracker:
    """Per-collection modification bookkeeping."""

    def __init__(
        self,
        substrate: KeyValueSubstrate,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._substrate = substrate
        self._clock = clock
        self._lock = threading.Lock()

    def status(self) -> dict[CollectionName, SyncStatusEntry]:
        """Return every recorded entry. Unreadable data yields an empty dict."""
        with self._lock:
            return self._load()

    def entry(self, collection: CollectionName | str) -> SyncStatusEntry:
        """Return the entry for one collection (a clean default if none yet)."""
        return self.status().get(CollectionName(collection), SyncStatusEntry())

    def mark_modified(self, collection: CollectionName | str) -> None:
        """Record that a collection changed locally and needs syncing.

        Failures are logged, never raised: the data write already succeeded
        and must not be reported as failed because bookkeeping was not saved.
        """
        name = CollectionName(collection)
        with self._lock:
            current = self._load()
            previous = current.get(name, SyncStatusEntry())
            current[name] = SyncStatusEntry(
                last_modified=self._clock(),
                needs_sync=True,
                last_synced=previous.last_synced,
            )
            self._persist(current)

    def mark_synced(self, collection: CollectionName | str) -> None:
        """Clear needsSync for a collection and record when it was synced."""
        name = CollectionName(collection)
        with self._lock:
            current = self._load()
            previous = current.get(name, SyncStatusEntry())
            current[name] = previous.model_copy(
                update={"needs_sync": False, "last_synced": self._clock()}
            )
            self._persist(current)

    def _load(self) -> dict[CollectionName, SyncStatusEntry]:
        try:
            raw = self._substrate.get(SYNC_STATUS_KEY)
        except SubstrateError as e:
            logger.warning("Failed to read sync status: %s", e)
            return {}
        if raw is None:
            return {}

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Sync status is not valid JSON, treating as empty: %s", e)
            return {}
        if not isinstance(data, dict):
            logger.warning("Sync status is not an object, treating as empty")
            return {}

        entries: dict[CollectionName, SyncStatusEntry] = {}
        for key, value in data.items():
            try:
                entries[CollectionName(key)] = SyncStatusEntry.model_validate(value)
            except (ValueError, ValidationError):
                logger.warning("Ignoring unreadable sync status entry %r", key)
        return entries

    def _persist(self, entries: dict[CollectionName, SyncStatusEntry]) -> None:
        payload = json.dumps(
            {
                str(name): entry.model_dump(mode="json", by_alias=True, exclude_none=True)
                for name, entry in entries.items()
            },
            separators=(",", ":"),
        )
        try:
            self._substrate.put(SYNC_STATUS_KEY, payload)
        except SubstrateError as e:
            logger.warning("Failed to persist sync status: %s", e)
