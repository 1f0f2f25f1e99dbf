"""Bible Aura Local Store - Search over collections.

Stateless: every query filters the current in-memory record list, nothing is
indexed or persisted. A record matches when the (case-insensitive) query is
empty or is a substring of one of its text fields, and every structured
filter passes. Results are newest first by the collection's recency field.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from pydantic import BaseModel

from aura_store.registry import CollectionName, get_spec
from aura_store.store import RecordStore

__all__ = ["matches_query", "search_records", "oldest_records", "SearchIndex"]


def matches_query(record: Any, query: str) -> bool:
    """True if query is empty or a case-insensitive substring of a text field."""
    if not query:
        return True
    needle = query.casefold()
    return any(needle in text.casefold() for text in record.search_text())


def search_records(
    records: Iterable[Any],
    query: str = "",
    filters: BaseModel | None = None,
) -> list[Any]:
    """Filter records by query and filters, newest first.

    Args:
        records: Records of a single collection.
        query: Free-text substring; empty matches everything.
        filters: The collection's filter model instance, or None.

    Returns:
        Matching records sorted by descending recency. Records with equal
        recency keep their storage order.
    """
    matched = [
        record
        for record in records
        if matches_query(record, query) and (filters is None or filters.matches(record))
    ]
    matched.sort(key=lambda record: record.recency, reverse=True)
    return matched


def oldest_records(records: Iterable[Any], count: int = 10) -> list[Any]:
    """Return the count records with the earliest creation marker."""
    return sorted(records, key=lambda record: record.created)[: max(count, 0)]


class SearchIndex:
    """Per-collection search views over a record store."""

    def __init__(self, store: RecordStore):
        self._store = store

    def search(
        self,
        collection: CollectionName | str,
        query: str = "",
        filters: BaseModel | Mapping[str, Any] | None = None,
    ) -> list[Any]:
        """Search one collection.

        Args:
            collection: Collection to search.
            query: Free-text substring.
            filters: Filter model instance or a plain mapping of its fields
                (e.g. {"category": "Faith", "tags": ["hope"]}).

        Raises:
            pydantic.ValidationError: If a filter mapping has unknown keys or bad values.
        """
        spec = get_spec(collection)
        if filters is not None and not isinstance(filters, spec.filter_model):
            filters = spec.filter_model.model_validate(filters)
        return search_records(self._store.list_records(spec.name), query, filters)

    def oldest(self, collection: CollectionName | str, count: int = 10) -> list[Any]:
        """Oldest records of a collection, e.g. to suggest cleanup candidates."""
        return oldest_records(self._store.list_records(collection), count)
