"""Tests for aura_store.quota."""

import json

import pytest

from aura_store.config import JOURNALS_KEY, SYNC_STATUS_KEY
from aura_store.local_store import LocalStore
from aura_store.quota import QuotaTracker, format_size
from aura_store.registry import CollectionName
from aura_store.schemas import CollectionStats, StorageStats
from aura_store.store import encode_records
from aura_store.substrate import MemorySubstrate


def _stats(total_size: int, capacity: int) -> StorageStats:
    empty = CollectionStats(count=0, total_size=0)
    return StorageStats(
        sermons=CollectionStats(count=1, total_size=total_size),
        journals=empty,
        chats=empty,
        total_size=total_size,
        available=capacity - total_size,
        capacity=capacity,
    )


class TestStats:
    """Tests for QuotaTracker.stats."""

    def test_empty_store(self, store):
        stats = store.stats()
        # Every collection serializes as "[]" when empty
        assert stats.sermons.count == 0
        assert stats.sermons.total_size == 2
        assert stats.total_size == 6
        assert stats.available == stats.capacity - 6

    def test_sizes_match_serialization(self, store, make_sermon, make_journal):
        store.save(make_sermon("s1"))
        store.save(make_sermon("s2"))
        store.save(make_journal("j1"))

        stats = store.stats()
        expected_sermons = len(encode_records(store.sermons()).encode("utf-8"))
        expected_journals = len(encode_records(store.journal_entries()).encode("utf-8"))

        assert stats.sermons.count == 2
        assert stats.sermons.total_size == expected_sermons
        assert stats.journals.total_size == expected_journals
        assert stats.total_size == expected_sermons + expected_journals + 2

    def test_arithmetic_invariant(self, store, make_chat):
        store.save(make_chat("c1"))
        stats = store.stats()
        assert stats.available == stats.capacity - stats.total_size
        assert stats.total_size == (
            stats.sermons.total_size + stats.journals.total_size + stats.chats.total_size
        )

    def test_non_ascii_counts_bytes(self, store, make_journal):
        store.save(make_journal("j1", content="கடவுள் அன்பாயிருக்கிறார்", language="tamil"))
        stored = store.substrate.get("bible_aura_journals")
        assert store.stats().journals.total_size == len(stored.encode("utf-8"))
        assert json.loads(stored)[0]["language"] == "tamil"

    def test_stats_carry_sync_markers(self, store, make_sermon):
        store.save(make_sermon())
        stats = store.stats()
        assert stats.sermons.last_modified is not None
        assert stats.chats.last_modified is None

    def test_stats_serialize_camel_case(self, store):
        data = store.stats().model_dump(mode="json", by_alias=True)
        assert {"sermons", "journals", "chats", "totalSize", "available", "capacity"} <= set(data)
        assert "totalSize" in data["sermons"]


class TestIsFull:
    """Tests for the low-water-mark check."""

    def test_nearly_full_scenario(self, store):
        """capacity 100, totalSize 95: available 5 is under a threshold of 10."""
        stats = _stats(total_size=95, capacity=100)
        quota = QuotaTracker(store.records, store.sync, capacity_bytes=100, low_water_mark_bytes=10)

        assert stats.available == 5
        assert quota.is_full(stats) is True
        assert quota.used_percentage(stats) == 95

    def test_plenty_of_room(self, store):
        quota = QuotaTracker(store.records, store.sync, capacity_bytes=100, low_water_mark_bytes=10)
        assert quota.is_full(_stats(total_size=90, capacity=100)) is False

    def test_real_store_becomes_full(self, make_sermon, clock):
        store = LocalStore(MemorySubstrate(), capacity_bytes=600, low_water_mark_bytes=100, clock=clock)
        assert store.is_full() is False

        store.save(make_sermon("s1", description="x" * 500))
        assert store.is_full() is True

    def test_over_budget_reports_negative_available(self, make_sermon, clock):
        store = LocalStore(MemorySubstrate(), capacity_bytes=50, low_water_mark_bytes=10, clock=clock)
        store.save(make_sermon("s1"))

        stats = store.stats()
        assert stats.available < 0
        assert store.quota.used_percentage(stats) > 100

    def test_rejects_non_positive_capacity(self, store):
        with pytest.raises(ValueError):
            QuotaTracker(store.records, store.sync, capacity_bytes=0)


class TestCollectionStats:
    """Tests for per-collection stats."""

    def test_accepts_string_name(self, store, make_chat):
        store.save(make_chat())
        assert store.quota.collection_stats("chats").count == 1
        assert store.quota.collection_stats(CollectionName.SERMONS).count == 0


class TestQuarantineAccounting:
    """Quarantined bytes count against the budget until they are dropped."""

    def test_stats_report_quarantine_size(self, store, make_journal):
        store.substrate.put(JOURNALS_KEY, json.dumps([{"id": "bad", "content": "x" * 300}]))
        store.save(make_journal("new"))

        stats = store.stats()
        quarantined = len(store.substrate.get(f"{JOURNALS_KEY}_quarantine").encode("utf-8"))
        assert stats.journals.quarantine_size == quarantined
        assert stats.journals.count == 1
        assert stats.total_size == sum(
            s.total_size + s.quarantine_size for s in (stats.sermons, stats.journals, stats.chats)
        )
        assert stats.model_dump(by_alias=True)["journals"]["quarantineSize"] == quarantined

    def test_clear_frees_quarantined_bytes(self, make_sermon, clock):
        """A large malformed record moved aside by a delete is freed by clear()."""
        substrate = MemorySubstrate(hard_limit_bytes=20_000)
        store = LocalStore(substrate, capacity_bytes=20_000, low_water_mark_bytes=1_000, clock=clock)
        substrate.put(JOURNALS_KEY, json.dumps([{"id": "bad", "title": 42, "content": "x" * 12_000}]))

        assert store.delete(CollectionName.JOURNALS, "bad") is True
        assert store.journal_entries() == []
        stats = store.stats()
        assert stats.journals.quarantine_size > 12_000
        assert stats.available < 8_000
        assert store.save(make_sermon("s1", description="x" * 9_000)) is False

        assert store.clear() is True

        assert substrate.keys() == [SYNC_STATUS_KEY]
        assert store.stats().journals.quarantine_size == 0
        assert store.save(make_sermon("s1", description="x" * 9_000)) is True


class TestFormatSize:
    """Tests for format_size."""

    @pytest.mark.parametrize(
        "num_bytes, expected",
        [
            (0, "0 B"),
            (512, "512 B"),
            (1024, "1 KB"),
            (1536, "1.5 KB"),
            (1024 * 1024, "1 MB"),
            (int(2.25 * 1024 * 1024), "2.25 MB"),
            (100 * 1024**3, "100 GB"),
            (1024**4, "1024 GB"),
        ],
    )
    def test_formats(self, num_bytes, expected):
        assert format_size(num_bytes) == expected

    def test_rounds_to_two_decimals(self):
        assert format_size(1234) == "1.21 KB"

    def test_negative(self):
        assert format_size(-2048) == "-2 KB"
