"""Bible Aura Local Store - Database engine and key/value primitives.

SQLAlchemy sync engine/session factory for SQLite, plus the primitives the
SQLite substrate is built from. Primitives flush but never commit; commit
responsibility stays with the caller's unit of work.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from enum import StrEnum
from pathlib import Path

from sqlalchemy import Engine, create_engine, func, select
from sqlalchemy.orm import Session, sessionmaker

from aura_store.config import DB_PATH
from aura_store.models import Base, StorageEntry, utc_now


def get_database_url(db_path: str | None = None) -> str:
    """Get SQLite database URL.

    Args:
        db_path: Optional path override. Defaults to config.DB_PATH.

    Returns:
        SQLite connection URL string.
    """
    path = db_path if db_path is not None else DB_PATH
    return f"sqlite:///{path}"


def create_db_engine(db_path: str | None = None, echo: bool = False) -> Engine:
    """Create SQLAlchemy engine.

    Args:
        db_path: Optional path override for the database file.
        echo: If True, log all SQL statements.

    Returns:
        SQLAlchemy Engine instance.
    """
    url = get_database_url(db_path)
    return create_engine(
        url,
        echo=echo,
        # The storage API serves requests from a thread pool; every unit of
        # work opens its own session, so connections are never shared.
        connect_args={"check_same_thread": False},
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    """Create a session factory bound to the given engine.

    Args:
        engine: SQLAlchemy Engine instance.

    Returns:
        Configured sessionmaker.
    """
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def init_db(db_path: str | None = None, echo: bool = False) -> tuple[Engine, sessionmaker]:
    """Initialize the database: create engine, session factory, and all tables.

    This is idempotent - safe to call multiple times. The parent directory of
    the database file is created if missing.

    Args:
        db_path: Optional path override for the database file.
        echo: If True, log all SQL statements.

    Returns:
        Tuple of (engine, SessionFactory).
    """
    path = Path(db_path) if db_path is not None else DB_PATH
    path.parent.mkdir(parents=True, exist_ok=True)

    engine = create_db_engine(str(path), echo=echo)
    SessionFactory = create_session_factory(engine)

    Base.metadata.create_all(engine)

    return engine, SessionFactory


# --- Substrate errors ---


class SubstrateErrorCode(StrEnum):
    """Error codes raised by substrate implementations."""

    CAPACITY_EXCEEDED = "SUBSTRATE_CAPACITY_EXCEEDED"
    WRITE_FAILED = "SUBSTRATE_WRITE_FAILED"
    READ_FAILED = "SUBSTRATE_READ_FAILED"


class SubstrateError(Exception):
    """Base exception for persistence substrate failures."""

    def __init__(self, error_code: str, message: str):
        self.error_code = error_code
        self.message = message
        super().__init__(f"{error_code}: {message}")


class SubstrateCapacityExceeded(SubstrateError):
    """Raised when a write would push stored bytes past the hard limit.

    The write is not applied.
    """

    def __init__(self, requested_bytes: int, limit_bytes: int):
        self.requested_bytes = requested_bytes
        self.limit_bytes = limit_bytes
        super().__init__(
            SubstrateErrorCode.CAPACITY_EXCEEDED,
            f"write would store {requested_bytes} bytes, hard limit is {limit_bytes}",
        )


def payload_size(value: str) -> int:
    """Return the UTF-8 byte length of a stored payload."""
    return len(value.encode("utf-8"))


def check_hard_limit(
    current_total: int,
    replaced_bytes: int,
    incoming_bytes: int,
    limit_bytes: int | None,
) -> None:
    """Raise SubstrateCapacityExceeded if a write would exceed the hard limit.

    Args:
        current_total: Bytes stored before the write.
        replaced_bytes: Bytes currently held by the keys being overwritten.
        incoming_bytes: Bytes the write would store for those keys.
        limit_bytes: Hard limit, or None for unbounded.
    """
    if limit_bytes is None:
        return
    after = current_total - replaced_bytes + incoming_bytes
    if after > limit_bytes:
        raise SubstrateCapacityExceeded(after, limit_bytes)


# --- Key/value primitives ---


def read_entry(session: Session, key: str) -> str | None:
    """Return the stored value for key, or None if absent."""
    stmt = select(StorageEntry.value).where(StorageEntry.key == key)
    return session.execute(stmt).scalar_one_or_none()


def list_keys(session: Session) -> list[str]:
    """Return all stored keys in sorted order."""
    stmt = select(StorageEntry.key).order_by(StorageEntry.key)
    return list(session.execute(stmt).scalars())


def total_size_bytes(session: Session, keys: Iterable[str] | None = None) -> int:
    """Sum of size_bytes over all entries, or over the given keys only."""
    stmt = select(func.coalesce(func.sum(StorageEntry.size_bytes), 0))
    if keys is not None:
        stmt = stmt.where(StorageEntry.key.in_(list(keys)))
    return int(session.execute(stmt).scalar_one())


def write_entries(
    session: Session,
    items: Mapping[str, str | None],
    hard_limit_bytes: int | None = None,
) -> None:
    """Upsert or delete several entries as one unit of work.

    A value of None deletes the key (deleting an absent key is a no-op).
    The hard limit is checked before anything is changed.

    Note:
        This function does NOT commit the transaction. It calls session.flush()
        and leaves commit (or rollback) to the caller.

    Args:
        session: Active database session.
        items: Mapping of key to new value (or None to delete).
        hard_limit_bytes: Optional hard limit on total stored bytes.

    Raises:
        SubstrateCapacityExceeded: If the write would exceed the hard limit.
    """
    incoming = sum(payload_size(v) for v in items.values() if v is not None)
    check_hard_limit(
        current_total=total_size_bytes(session),
        replaced_bytes=total_size_bytes(session, items.keys()),
        incoming_bytes=incoming,
        limit_bytes=hard_limit_bytes,
    )

    for key, value in items.items():
        entry = session.get(StorageEntry, key)
        if value is None:
            if entry is not None:
                session.delete(entry)
            continue
        if entry is None:
            session.add(StorageEntry(key=key, value=value, size_bytes=payload_size(value)))
        else:
            entry.value = value
            entry.size_bytes = payload_size(value)
            entry.updated_at = utc_now()

    session.flush()
