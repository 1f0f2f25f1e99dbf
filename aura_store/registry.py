"""Bible Aura Local Store - Collection registry.

Maps each collection name to its substrate key, record model and search
filter model. Every component that is parameterized by record kind looks the
kind up here.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum

from pydantic import BaseModel

from aura_store.config import CHATS_KEY, JOURNALS_KEY, QUARANTINE_SUFFIX, SERMONS_KEY
from aura_store.schemas import (
    ChatConversation,
    ChatFilters,
    JournalEntry,
    JournalFilters,
    Sermon,
    SermonFilters,
)


class CollectionName(StrEnum):
    """The three record collections. Values double as backup envelope keys."""

    SERMONS = "sermons"
    JOURNALS = "journals"
    CHATS = "chats"


@dataclass(frozen=True)
class CollectionSpec:
    """Static description of one collection."""

    name: CollectionName
    storage_key: str
    record_model: type[BaseModel]
    filter_model: type[BaseModel]

    @property
    def quarantine_key(self) -> str:
        return f"{self.storage_key}{QUARANTINE_SUFFIX}"


COLLECTIONS: dict[CollectionName, CollectionSpec] = {
    CollectionName.SERMONS: CollectionSpec(
        name=CollectionName.SERMONS,
        storage_key=SERMONS_KEY,
        record_model=Sermon,
        filter_model=SermonFilters,
    ),
    CollectionName.JOURNALS: CollectionSpec(
        name=CollectionName.JOURNALS,
        storage_key=JOURNALS_KEY,
        record_model=JournalEntry,
        filter_model=JournalFilters,
    ),
    CollectionName.CHATS: CollectionSpec(
        name=CollectionName.CHATS,
        storage_key=CHATS_KEY,
        record_model=ChatConversation,
        filter_model=ChatFilters,
    ),
}

# Fixed lock acquisition order for operations spanning several collections
COLLECTION_ORDER: tuple[CollectionName, ...] = tuple(COLLECTIONS)


def get_spec(collection: CollectionName | str) -> CollectionSpec:
    """Look up a collection spec by name.

    Raises:
        ValueError: If the name is not a known collection.
    """
    return COLLECTIONS[CollectionName(collection)]


def spec_for_record(record: BaseModel) -> CollectionSpec:
    """Return the spec whose record model matches the record's type.

    Raises:
        TypeError: If the record is not one of the stored record models.
    """
    for spec in COLLECTIONS.values():
        if isinstance(record, spec.record_model):
            return spec
    raise TypeError(f"No collection stores records of type {type(record).__name__}")
