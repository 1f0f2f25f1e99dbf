"""Bible Aura Local Store - Record store.

Keyed-collection CRUD over a persistence substrate. Each collection is one
substrate value holding a JSON list of records, so every mutation is a
read-modify-write of the whole collection:

1. Load and validate the stored list
2. Mutate it in memory
3. Persist the whole list back as one unit

The three steps run under a per-collection lock so overlapping callers cannot
lose each other's updates. Storage problems are reported as False and logged,
never raised to the caller.

Records that fail validation on load are skipped by reads and moved to a
quarantine key by the next mutation of that collection.
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable, Mapping, Sequence
from contextlib import ExitStack
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ValidationError

from aura_store.db import SubstrateError, payload_size
from aura_store.models import utc_now
from aura_store.registry import (
    COLLECTION_ORDER,
    CollectionName,
    CollectionSpec,
    get_spec,
    spec_for_record,
)
from aura_store.substrate import KeyValueSubstrate
from aura_store.sync_status import SyncStatusTracker

logger = logging.getLogger(__name__)

__all__ = ["RecordStore", "encode_records"]


def encode_records(records: Sequence[BaseModel]) -> str:
    """Serialize a record list to the compact JSON stored in the substrate.

    Raises:
        TypeError, ValueError: If a record cannot be serialized.
    """
    return json.dumps(
        [record.model_dump(mode="json", by_alias=True, exclude_none=True) for record in records],
        separators=(",", ":"),
        ensure_ascii=False,
    )


class RecordStore:
    """Durable upsert/read/delete of records in the three collections."""

    def __init__(
        self,
        substrate: KeyValueSubstrate,
        sync_tracker: SyncStatusTracker,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._substrate = substrate
        self._sync = sync_tracker
        self._clock = clock
        self._locks = {name: threading.RLock() for name in COLLECTION_ORDER}

    # --- Reads ---

    def list_records(self, collection: CollectionName | str) -> list[Any]:
        """Return all records of a collection in storage order.

        Missing, unreadable or corrupt data yields an empty list.
        """
        spec = get_spec(collection)
        with self._locks[spec.name]:
            try:
                records, rejected = self._load(spec)
            except SubstrateError as e:
                logger.warning("Failed to read %s, returning empty: %s", spec.name, e)
                return []
        if rejected:
            logger.warning(
                "Skipped %d malformed %s record(s); they will be quarantined on next write",
                len(rejected),
                spec.name,
            )
        return records

    def get(self, collection: CollectionName | str, record_id: str) -> Any | None:
        """Return the record with the given id, or None."""
        for record in self.list_records(collection):
            if record.id == record_id:
                return record
        return None

    def quarantined(self, collection: CollectionName | str) -> list[Any]:
        """Return raw items moved aside because they failed validation."""
        spec = get_spec(collection)
        try:
            raw = self._substrate.get(spec.quarantine_key)
        except SubstrateError as e:
            logger.warning("Failed to read quarantine for %s: %s", spec.name, e)
            return []
        if raw is None:
            return []
        try:
            items = json.loads(raw)
        except json.JSONDecodeError:
            return [raw]
        return items if isinstance(items, list) else [items]

    def quarantine_size(self, collection: CollectionName | str) -> int:
        """UTF-8 bytes held by the quarantine key (0 if none or unreadable)."""
        spec = get_spec(collection)
        try:
            raw = self._substrate.get(spec.quarantine_key)
        except SubstrateError as e:
            logger.warning("Failed to read quarantine for %s: %s", spec.name, e)
            return 0
        return 0 if raw is None else payload_size(raw)

    # --- Mutations ---

    def save(self, record: BaseModel) -> bool:
        """Upsert a record by id into the collection that stores its type.

        An existing record with the same id is replaced in place (keeping its
        creation marker); a new id is appended.

        Returns:
            True if persisted, False if the substrate rejected the write or the
            collection could not be serialized.

        Raises:
            TypeError: If the record is not a stored record type.
        """
        spec = spec_for_record(record)
        with self._locks[spec.name]:
            try:
                records, rejected = self._load(spec)
            except SubstrateError as e:
                logger.error("Error saving %s record %s: %s", spec.name, record.id, e)
                return False

            now = self._clock()
            index = _index_of(records, record.id)
            if index is None:
                records.append(record.stamp_for_save(None, now))
            else:
                records[index] = record.stamp_for_save(records[index], now)

            if not self._persist(spec, records, rejected):
                return False
            self._sync.mark_modified(spec.name)

        logger.debug("Saved %s record %s", spec.name, record.id)
        return True

    def delete_by_id(self, collection: CollectionName | str, record_id: str) -> bool:
        """Remove the record with the given id.

        Deleting an id that is not present is a no-op that reports success.
        """
        spec = get_spec(collection)
        with self._locks[spec.name]:
            try:
                records, rejected = self._load(spec)
            except SubstrateError as e:
                logger.error("Error deleting %s record %s: %s", spec.name, record_id, e)
                return False

            remaining = [r for r in records if r.id != record_id]
            if len(remaining) != len(records) or rejected:
                if not self._persist(spec, remaining, rejected):
                    return False
            self._sync.mark_modified(spec.name)
        return True

    def clear(self, collection: CollectionName | str, purge_quarantine: bool = False) -> bool:
        """Empty a collection entirely.

        Quarantined items are kept unless purge_quarantine is set, in which
        case they are dropped in the same write.
        """
        spec = get_spec(collection)
        items: dict[str, str | None] = {spec.storage_key: None}
        if purge_quarantine:
            items[spec.quarantine_key] = None
        with self._locks[spec.name]:
            try:
                self._substrate.put_many(items)
            except SubstrateError as e:
                logger.error("Error clearing %s: %s", spec.name, e)
                return False
            self._sync.mark_modified(spec.name)
        logger.info("Cleared %s", spec.name)
        return True

    def purge_quarantine(self, collection: CollectionName | str) -> bool:
        """Drop the quarantined items of a collection, freeing their bytes."""
        spec = get_spec(collection)
        with self._locks[spec.name]:
            try:
                self._substrate.delete(spec.quarantine_key)
            except SubstrateError as e:
                logger.error("Error purging %s quarantine: %s", spec.name, e)
                return False
        logger.info("Purged %s quarantine", spec.name)
        return True

    def replace_collections(
        self,
        replacements: Mapping[CollectionName, Sequence[BaseModel]],
        merge: bool = False,
    ) -> bool:
        """Overwrite one or more collections in a single substrate write.

        Records are stored exactly as given (no timestamp stamping). With
        merge=True existing records are kept and the given records upsert by
        id instead of replacing the collection wholesale.

        All named collections are written together or not at all.
        """
        names = [name for name in COLLECTION_ORDER if name in replacements]
        with ExitStack() as stack:
            for name in names:
                stack.enter_context(self._locks[name])

            items: dict[str, str | None] = {}
            try:
                for name in names:
                    spec = get_spec(name)
                    incoming = list(replacements[name])
                    if merge:
                        existing, rejected = self._load(spec)
                        incoming = _merge_by_id(existing, incoming)
                        if rejected:
                            items[spec.quarantine_key] = self._quarantine_payload(spec, rejected)
                    items[spec.storage_key] = encode_records(incoming)
                self._substrate.put_many(items)
            except SubstrateError as e:
                logger.error("Error replacing %s: %s", [str(n) for n in names], e)
                return False
            except (TypeError, ValueError) as e:
                logger.error("Error serializing %s: %s", [str(n) for n in names], e)
                return False

            for name in names:
                self._sync.mark_modified(name)
        return True

    # --- Internal helpers ---

    def _load(self, spec: CollectionSpec) -> tuple[list[Any], list[Any]]:
        """Read and validate a collection.

        Returns:
            Tuple of (valid records, rejected raw items).

        Raises:
            SubstrateError: If the substrate itself cannot be read.
        """
        raw = self._substrate.get(spec.storage_key)
        if raw is None:
            return [], []

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning("Stored %s payload is not valid JSON: %s", spec.name, e)
            return [], [raw]
        if not isinstance(data, list):
            logger.warning("Stored %s payload is not a list", spec.name)
            return [], [raw]

        records: list[Any] = []
        rejected: list[Any] = []
        seen: set[str] = set()
        for item in data:
            try:
                record = spec.record_model.model_validate(item)
            except ValidationError as e:
                logger.debug("Invalid %s record: %s", spec.name, e)
                rejected.append(item)
                continue
            if record.id in seen:
                rejected.append(item)
                continue
            seen.add(record.id)
            records.append(record)
        return records, rejected

    def _persist(self, spec: CollectionSpec, records: list[Any], rejected: list[Any]) -> bool:
        try:
            items: dict[str, str | None] = {spec.storage_key: encode_records(records)}
            if rejected:
                items[spec.quarantine_key] = self._quarantine_payload(spec, rejected)
            self._substrate.put_many(items)
        except SubstrateError as e:
            logger.error("Error persisting %s: %s", spec.name, e)
            return False
        except (TypeError, ValueError) as e:
            logger.error("Error serializing %s: %s", spec.name, e)
            return False

        if rejected:
            logger.warning("Quarantined %d malformed %s record(s)", len(rejected), spec.name)
        return True

    def _quarantine_payload(self, spec: CollectionSpec, rejected: list[Any]) -> str:
        return json.dumps(self.quarantined(spec.name) + rejected, ensure_ascii=False)


def _index_of(records: list[Any], record_id: str) -> int | None:
    for i, record in enumerate(records):
        if record.id == record_id:
            return i
    return None


def _merge_by_id(existing: list[Any], incoming: list[Any]) -> list[Any]:
    """Upsert incoming into existing by id, keeping existing order."""
    merged = list(existing)
    for record in incoming:
        index = _index_of(merged, record.id)
        if index is None:
            merged.append(record)
        else:
            merged[index] = record
    return merged
