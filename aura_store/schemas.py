"""Bible Aura Local Store - Pydantic record and API models.

Record models are the validation boundary for everything read back from the
substrate or a backup file. Field names on the wire match the mobile app's
JSON: sermons use camelCase, journals and chats use snake_case. The
corresponding JSON Schema contracts live in specs/.
"""

from __future__ import annotations

import math
from collections.abc import Iterator
from datetime import UTC, datetime
from enum import StrEnum
from typing import Annotated, Any

from pydantic import AfterValidator, BaseModel, ConfigDict, Field

from aura_store.config import WORDS_PER_MINUTE
from aura_store.models import utc_now


def _as_utc(value: datetime) -> datetime:
    """Treat naive timestamps as UTC so recency ordering never mixes kinds."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


UtcDatetime = Annotated[datetime, AfterValidator(_as_utc)]


# --- Enumerations ---


class ChatMode(StrEnum):
    """Study modes offered by the AI chat."""

    THEOLOGICAL = "theological"
    HISTORICAL = "historical"
    CROSS_REFERENCE = "cross-reference"
    INSIGHTS = "insights"


class SenderRole(StrEnum):
    """Who wrote a chat message."""

    USER = "user"
    AI = "ai"


class JournalLanguage(StrEnum):
    """Languages a journal entry can be written in."""

    ENGLISH = "english"
    TAMIL = "tamil"
    SINHALA = "sinhala"


# --- Records ---


class Sermon(BaseModel):
    """Downloaded sermon metadata.

    Corresponds to specs/sermon.schema.json.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    id: str = Field(..., min_length=1, description="Unique within the sermons collection")
    title: str
    speaker: str
    description: str = ""
    duration: str = Field(default="", description="Display label, e.g. '45:12'")
    date: UtcDatetime = Field(..., description="Scheduled or preached date")
    category: str = ""
    series: str | None = None
    scripture_ref: str = Field(default="", alias="scriptureRef")
    audio_url: str | None = Field(default=None, alias="audioUrl")
    audio_blob: str | None = Field(
        default=None, alias="audioBlob", description="Base64 audio kept for offline play"
    )
    transcript: str | None = None
    tags: list[str] = Field(default_factory=list)
    downloaded_at: UtcDatetime = Field(default_factory=utc_now, alias="downloadedAt")
    last_played: UtcDatetime | None = Field(default=None, alias="lastPlayed")
    play_position: float | None = Field(
        default=None, ge=0, alias="playPosition", description="Last position in seconds"
    )
    notes: str | None = None
    is_favorite: bool = Field(default=False, alias="isFavorite")
    file_size: int | None = Field(default=None, ge=0, alias="fileSize")
    # Written by the mobile app on re-save; snake_case on the wire
    updated_at: UtcDatetime | None = None

    def stamp_for_save(self, existing: Sermon | None, now: datetime) -> Sermon:
        """Return the version of this record to persist.

        downloadedAt is the creation marker and survives later saves;
        updated_at is stamped whenever an existing sermon is replaced.
        """
        if existing is None:
            return self
        return self.model_copy(update={"downloaded_at": existing.downloaded_at, "updated_at": now})

    def search_text(self) -> Iterator[str]:
        yield self.title
        yield self.speaker
        yield self.description
        yield from self.tags

    @property
    def recency(self) -> datetime:
        return self.downloaded_at

    @property
    def created(self) -> datetime:
        return self.downloaded_at


class JournalEntry(BaseModel):
    """A personal journal entry.

    Corresponds to specs/journal_entry.schema.json. word_count and
    reading_time are derived from content on every save.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., min_length=1)
    title: str
    content: str = ""
    mood: str | None = None
    spiritual_state: str | None = None
    verse_reference: str | None = None
    verse_text: str | None = None
    verse_references: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    is_private: bool = False
    entry_date: str = Field(..., min_length=1, description="Calendar date the entry is about")
    created_at: UtcDatetime = Field(default_factory=utc_now)
    updated_at: UtcDatetime = Field(default_factory=utc_now)
    word_count: int = Field(default=0, ge=0)
    reading_time: int = Field(default=0, ge=0, description="Estimated minutes")
    language: JournalLanguage = JournalLanguage.ENGLISH
    category: str = ""
    is_pinned: bool = False
    template_used: str | None = None
    attachments: list[str] | None = None
    location: str | None = None
    weather: str | None = None

    def stamp_for_save(self, existing: JournalEntry | None, now: datetime) -> JournalEntry:
        words = len(self.content.split())
        update: dict[str, Any] = {
            "updated_at": now,
            "word_count": words,
            "reading_time": max(1, math.ceil(words / WORDS_PER_MINUTE)),
        }
        if existing is not None:
            update["created_at"] = existing.created_at
        return self.model_copy(update=update)

    def search_text(self) -> Iterator[str]:
        yield self.title
        yield self.content
        yield from self.tags

    @property
    def recency(self) -> datetime:
        return self.created_at

    @property
    def created(self) -> datetime:
        return self.created_at


class ChatMessage(BaseModel):
    """One message of an AI chat transcript."""

    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., min_length=1)
    type: SenderRole
    content: str
    timestamp: UtcDatetime
    mode: str


class ChatConversation(BaseModel):
    """A stored AI chat conversation.

    Corresponds to specs/chat_conversation.schema.json.
    """

    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., min_length=1)
    title: str
    verse_reference: str | None = None
    verse_text: str | None = None
    mode: ChatMode
    messages: list[ChatMessage] = Field(default_factory=list)
    created_at: UtcDatetime = Field(default_factory=utc_now)
    updated_at: UtcDatetime = Field(default_factory=utc_now)
    tags: list[str] = Field(default_factory=list)
    is_favorite: bool = False
    is_archived: bool = False
    category: str = ""

    def stamp_for_save(self, existing: ChatConversation | None, now: datetime) -> ChatConversation:
        update: dict[str, Any] = {"updated_at": now}
        if existing is not None:
            update["created_at"] = existing.created_at
        return self.model_copy(update=update)

    def search_text(self) -> Iterator[str]:
        yield self.title
        if self.verse_reference:
            yield self.verse_reference
        for message in self.messages:
            yield message.content
        yield from self.tags

    @property
    def recency(self) -> datetime:
        return self.updated_at

    @property
    def created(self) -> datetime:
        return self.created_at


# --- Search filters ---


class SermonFilters(BaseModel):
    """Structured sermon filters. Unset fields do not filter."""

    model_config = ConfigDict(extra="forbid")

    category: str | None = None
    speaker: str | None = None
    tags: list[str] = Field(default_factory=list)

    def matches(self, record: Sermon) -> bool:
        if self.category and record.category != self.category:
            return False
        if self.speaker and record.speaker != self.speaker:
            return False
        return set(self.tags) <= set(record.tags)


class JournalFilters(BaseModel):
    """Structured journal filters. Unset fields do not filter."""

    model_config = ConfigDict(extra="forbid")

    category: str | None = None
    mood: str | None = None
    tags: list[str] = Field(default_factory=list)

    def matches(self, record: JournalEntry) -> bool:
        if self.category and record.category != self.category:
            return False
        if self.mood and record.mood != self.mood:
            return False
        return set(self.tags) <= set(record.tags)


class ChatFilters(BaseModel):
    """Structured conversation filters. Unset fields do not filter."""

    model_config = ConfigDict(extra="forbid")

    mode: ChatMode | None = None
    tags: list[str] = Field(default_factory=list)

    def matches(self, record: ChatConversation) -> bool:
        if self.mode and record.mode != self.mode:
            return False
        return set(self.tags) <= set(record.tags)


# --- Sync status and stats ---


class SyncStatusEntry(BaseModel):
    """Per-collection sync bookkeeping."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    last_modified: UtcDatetime | None = Field(default=None, alias="lastModified")
    needs_sync: bool = Field(default=False, alias="needsSync")
    last_synced: UtcDatetime | None = Field(default=None, alias="lastSynced")


class CollectionStats(BaseModel):
    """Count and serialized size of one collection."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    count: int = Field(..., ge=0)
    total_size: int = Field(..., ge=0, alias="totalSize")
    quarantine_size: int = Field(
        default=0, ge=0, alias="quarantineSize", description="Bytes held by quarantined items"
    )
    last_modified: UtcDatetime | None = Field(default=None, alias="lastModified")
    last_synced: UtcDatetime | None = Field(default=None, alias="lastSynced")


class StorageStats(BaseModel):
    """Usage of the storage budget across all collections."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    sermons: CollectionStats
    journals: CollectionStats
    chats: CollectionStats
    total_size: int = Field(..., ge=0, alias="totalSize")
    available: int = Field(..., description="capacity - totalSize; negative when over budget")
    capacity: int = Field(..., gt=0)


# --- Backup envelope ---


class BackupSnapshot(BaseModel):
    """Versioned backup document holding all collections.

    Corresponds to specs/backup_snapshot.schema.json. A collection set to
    None is absent from the document and is left untouched on import.
    """

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    sermons: list[Sermon] | None = None
    journals: list[JournalEntry] | None = None
    chats: list[ChatConversation] | None = None
    exported_at: UtcDatetime | None = Field(default=None, alias="exportedAt")
    version: str | None = None


# --- API models ---


class SaveResponse(BaseModel):
    """Response for successful mutations."""

    model_config = ConfigDict(extra="forbid")

    status: str = Field(default="success", description="Operation status")
    collection: str
    id: str | None = None


class ImportResponse(BaseModel):
    """Response for a successful backup import."""

    model_config = ConfigDict(extra="forbid")

    status: str = Field(default="success", description="Operation status")
    mode: str
    imported: dict[str, int] = Field(default_factory=dict)


class ErrorResponse(BaseModel):
    """Response for failed storage operations."""

    model_config = ConfigDict(extra="forbid")

    status: str = Field(default="error", description="Operation status")
    error_code: str = Field(..., description="Machine-readable error code")
    error_message: str = Field(..., description="Human-readable error description")


__all__ = [
    "ChatMode",
    "SenderRole",
    "JournalLanguage",
    "Sermon",
    "JournalEntry",
    "ChatMessage",
    "ChatConversation",
    "SermonFilters",
    "JournalFilters",
    "ChatFilters",
    "SyncStatusEntry",
    "CollectionStats",
    "StorageStats",
    "BackupSnapshot",
    "SaveResponse",
    "ImportResponse",
    "ErrorResponse",
]
