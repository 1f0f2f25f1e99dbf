"""Bible Aura Local Store - Backup codec.

Serializes all collections into one versioned snapshot document and restores
a snapshot back into the record store:

    {
      "sermons":  [...],
      "journals": [...],
      "chats":    [...],
      "exportedAt": "<ISO-8601>",
      "version": "1.0"
    }

Import is all-or-nothing. The whole document is parsed and validated before
anything is written, and the named collections are then written in a single
substrate call. A collection missing from the document is left untouched.

Version rules:
- missing version is read as the current format
- any version with the same major number is accepted
- any other major version is rejected
"""

from __future__ import annotations

import json
import logging
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from pathlib import Path

from pydantic import ValidationError

from aura_store.config import BACKUP_FORMAT_VERSION
from aura_store.models import utc_now
from aura_store.registry import COLLECTION_ORDER, CollectionName
from aura_store.schemas import BackupSnapshot
from aura_store.store import RecordStore
from aura_store.utils.atomic_io import atomic_write_text
from aura_store.utils.paths import backup_file_path

logger = logging.getLogger(__name__)

__all__ = [
    "BackupCodec",
    "BackupErrorCode",
    "ImportMode",
    "ImportResult",
]


class ImportMode(StrEnum):
    """How imported collections are applied."""

    REPLACE = "replace"
    MERGE = "merge"


class BackupErrorCode(StrEnum):
    """Error codes reported by a failed import."""

    MALFORMED_SNAPSHOT = "MALFORMED_SNAPSHOT"
    UNSUPPORTED_VERSION = "UNSUPPORTED_VERSION"
    PERSISTENCE_REJECTED = "PERSISTENCE_REJECTED"
    FILE_UNREADABLE = "FILE_UNREADABLE"


@dataclass
class ImportResult:
    """Outcome of an import. On failure no collection was modified."""

    ok: bool
    message: str
    mode: ImportMode = ImportMode.REPLACE
    error_code: str | None = None
    imported: dict[str, int] = field(default_factory=dict)


def _major(version: str) -> str:
    return version.split(".", 1)[0]


class BackupCodec:
    """Produces and consumes snapshot documents for a record store."""

    def __init__(self, store: RecordStore, clock: Callable[[], datetime] = utc_now):
        self._store = store
        self._clock = clock

    # --- Export ---

    def snapshot(self) -> BackupSnapshot:
        """Build an envelope holding every collection as currently stored."""
        return BackupSnapshot(
            sermons=self._store.list_records(CollectionName.SERMONS),
            journals=self._store.list_records(CollectionName.JOURNALS),
            chats=self._store.list_records(CollectionName.CHATS),
            exported_at=self._clock(),
            version=BACKUP_FORMAT_VERSION,
        )

    def export(self, snapshot: BackupSnapshot | None = None) -> str:
        """Serialize a snapshot (a fresh one by default) to indented JSON text."""
        snapshot = snapshot or self.snapshot()
        return json.dumps(
            snapshot.model_dump(mode="json", by_alias=True, exclude_none=True),
            indent=2,
            ensure_ascii=False,
        )

    def write_backup_file(
        self,
        path: str | Path | None = None,
        backup_dir: Path | None = None,
    ) -> Path:
        """Export to a file, published atomically.

        Args:
            path: Explicit target path. Defaults to the dated canonical name.
            backup_dir: Directory for the canonical name when path is None.

        Returns:
            The path written.

        Raises:
            OSError: If the file cannot be written. Any previous file at the
                target path is left intact.
        """
        snapshot = self.snapshot()
        target = Path(path) if path is not None else backup_file_path(snapshot.exported_at, backup_dir)
        atomic_write_text(target, self.export(snapshot))
        logger.info("Wrote backup to %s", target)
        return target

    # --- Import ---

    def import_snapshot(self, text: str, mode: ImportMode | str = ImportMode.REPLACE) -> ImportResult:
        """Restore collections from snapshot text.

        Args:
            text: Snapshot document.
            mode: "replace" discards existing records of each named collection;
                "merge" keeps them and upserts the imported records by id.

        Returns:
            ImportResult. ok is False (and nothing was written) if the text is
            not a valid snapshot, its version is unsupported, or the substrate
            rejected the write.
        """
        mode = ImportMode(mode)

        try:
            data = json.loads(text)
        except (json.JSONDecodeError, TypeError) as e:
            return self._failed(mode, BackupErrorCode.MALFORMED_SNAPSHOT, f"Not valid JSON: {e}")
        if not isinstance(data, dict):
            return self._failed(
                mode, BackupErrorCode.MALFORMED_SNAPSHOT, "Snapshot must be a JSON object"
            )

        version = data.get("version")
        if version is not None:
            if not isinstance(version, str):
                return self._failed(
                    mode, BackupErrorCode.MALFORMED_SNAPSHOT, "version must be a string"
                )
            if _major(version) != _major(BACKUP_FORMAT_VERSION):
                return self._failed(
                    mode,
                    BackupErrorCode.UNSUPPORTED_VERSION,
                    f"Snapshot version {version} is not compatible with {BACKUP_FORMAT_VERSION}",
                )
            if version != BACKUP_FORMAT_VERSION:
                logger.info(
                    "Importing snapshot version %s with format %s", version, BACKUP_FORMAT_VERSION
                )

        try:
            snapshot = BackupSnapshot.model_validate(data)
        except ValidationError as e:
            return self._failed(
                mode,
                BackupErrorCode.MALFORMED_SNAPSHOT,
                f"Snapshot failed validation with {e.error_count()} error(s): {e.errors()[0]['msg']}",
            )

        replacements = {
            name: getattr(snapshot, name)
            for name in COLLECTION_ORDER
            if getattr(snapshot, name) is not None
        }

        for name, records in replacements.items():
            duplicates = [i for i, n in Counter(r.id for r in records).items() if n > 1]
            if duplicates:
                return self._failed(
                    mode,
                    BackupErrorCode.MALFORMED_SNAPSHOT,
                    f"Duplicate {name} ids: {', '.join(sorted(duplicates))}",
                )

        if replacements and not self._store.replace_collections(
            replacements, merge=mode is ImportMode.MERGE
        ):
            return self._failed(
                mode,
                BackupErrorCode.PERSISTENCE_REJECTED,
                "Storage rejected the imported data",
            )

        imported = {str(name): len(records) for name, records in replacements.items()}
        logger.info("Imported snapshot (%s): %s", mode, imported)
        return ImportResult(ok=True, message="Import completed", mode=mode, imported=imported)

    def read_backup_file(self, path: str | Path, mode: ImportMode | str = ImportMode.REPLACE) -> ImportResult:
        """Import a snapshot file. An unreadable file is a failed result."""
        mode = ImportMode(mode)
        try:
            text = Path(path).read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            return self._failed(mode, BackupErrorCode.FILE_UNREADABLE, f"Cannot read {path}: {e}")
        return self.import_snapshot(text, mode)

    def _failed(self, mode: ImportMode, error_code: BackupErrorCode, message: str) -> ImportResult:
        logger.warning("Import rejected (%s): %s", error_code, message)
        return ImportResult(ok=False, message=message, mode=mode, error_code=error_code)
