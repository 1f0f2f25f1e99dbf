"""Bible Aura Local Store - Persistence substrates.

A substrate is a string-keyed store of text payloads with a hard byte limit.
The record store and sync tracker only ever talk to this interface, so the
backend can be swapped (SQLite on disk in production, a dict in tests).
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from aura_store.db import (
    SubstrateError,
    SubstrateErrorCode,
    check_hard_limit,
    init_db,
    list_keys,
    payload_size,
    read_entry,
    write_entries,
)

logger = logging.getLogger(__name__)

__all__ = [
    "KeyValueSubstrate",
    "MemorySubstrate",
    "SqliteSubstrate",
]


class KeyValueSubstrate(Protocol):
    """Interface every persistence substrate implements."""

    def get(self, key: str) -> str | None: ...

    def put(self, key: str, value: str) -> None: ...

    def put_many(self, items: Mapping[str, str | None]) -> None: ...

    def delete(self, key: str) -> None: ...

    def keys(self) -> list[str]: ...


class SqliteSubstrate:
    """Substrate backed by the storage_entries table through SQLAlchemy.

    Every call is its own unit of work: one session, committed on success,
    rolled back on any failure.
    """

    def __init__(self, session_factory: sessionmaker, hard_limit_bytes: int | None = None):
        self._session_factory = session_factory
        self.hard_limit_bytes = hard_limit_bytes

    @classmethod
    def open(cls, db_path: str | None = None, hard_limit_bytes: int | None = None) -> SqliteSubstrate:
        """Initialize the database at db_path and return a substrate over it."""
        _, SessionFactory = init_db(db_path)
        return cls(SessionFactory, hard_limit_bytes=hard_limit_bytes)

    def get(self, key: str) -> str | None:
        session = self._session_factory()
        try:
            return read_entry(session, key)
        except SQLAlchemyError as e:
            raise SubstrateError(SubstrateErrorCode.READ_FAILED, f"read of {key!r} failed: {e}") from e
        finally:
            session.close()

    def put(self, key: str, value: str) -> None:
        self.put_many({key: value})

    def put_many(self, items: Mapping[str, str | None]) -> None:
        session = self._session_factory()
        try:
            write_entries(session, items, hard_limit_bytes=self.hard_limit_bytes)
            session.commit()
        except SubstrateError as e:
            session.rollback()
            logger.debug("Write of %s rejected: %s", sorted(items), e)
            raise
        except SQLAlchemyError as e:
            session.rollback()
            raise SubstrateError(
                SubstrateErrorCode.WRITE_FAILED, f"write of {sorted(items)} failed: {e}"
            ) from e
        finally:
            session.close()

    def delete(self, key: str) -> None:
        self.put_many({key: None})

    def keys(self) -> list[str]:
        session = self._session_factory()
        try:
            return list_keys(session)
        except SQLAlchemyError as e:
            raise SubstrateError(SubstrateErrorCode.READ_FAILED, f"key listing failed: {e}") from e
        finally:
            session.close()


class MemorySubstrate:
    """In-process dict substrate with the same hard limit semantics."""

    def __init__(self, hard_limit_bytes: int | None = None):
        self.hard_limit_bytes = hard_limit_bytes
        self._data: dict[str, str] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._data.get(key)

    def put(self, key: str, value: str) -> None:
        self.put_many({key: value})

    def put_many(self, items: Mapping[str, str | None]) -> None:
        with self._lock:
            check_hard_limit(
                current_total=sum(payload_size(v) for v in self._data.values()),
                replaced_bytes=sum(payload_size(self._data[k]) for k in items if k in self._data),
                incoming_bytes=sum(payload_size(v) for v in items.values() if v is not None),
                limit_bytes=self.hard_limit_bytes,
            )
            for key, value in items.items():
                if value is None:
                    self._data.pop(key, None)
                else:
                    self._data[key] = value

    def delete(self, key: str) -> None:
        self.put_many({key: None})

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._data)
