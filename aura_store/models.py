"""Bible Aura Local Store - SQLAlchemy ORM models.

The SQLite substrate is a plain key/value table. Each collection (sermons,
journals, chats) and the sync status document live in one row each, stored
as serialized JSON text.
"""

from datetime import UTC, datetime

from sqlalchemy import DateTime, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


def utc_now() -> datetime:
    """Return current UTC datetime."""
    return datetime.now(UTC)


class StorageEntry(Base):
    """One key/value pair of the persistence substrate."""

    __tablename__ = "storage_entries"

    # Fixed substrate key (e.g. "bible_aura_sermons")
    key: Mapped[str] = mapped_column(String(128), primary_key=True)

    # Serialized payload
    value: Mapped[str] = mapped_column(Text, nullable=False)

    # UTF-8 byte length of value, kept so the hard limit check is a SUM()
    size_bytes: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now, onupdate=utc_now
    )
