"""Tests for aura_store.db module (engine setup and key/value primitives)."""

import pytest
from sqlalchemy import inspect, select

from aura_store.db import (
    SubstrateCapacityExceeded,
    SubstrateErrorCode,
    check_hard_limit,
    init_db,
    list_keys,
    payload_size,
    read_entry,
    total_size_bytes,
    write_entries,
)
from aura_store.models import StorageEntry


class TestInitDb:
    """Tests for database initialization."""

    def test_creates_database_file(self, temp_db):
        """init_db should create the database file."""
        db_path, _, _ = temp_db
        assert db_path.exists()

    def test_creates_storage_table(self, temp_db):
        """init_db should create the key/value table."""
        _, engine, _ = temp_db
        assert "storage_entries" in inspect(engine).get_table_names()

    def test_idempotent(self, temp_db):
        """init_db should be safe to call multiple times."""
        db_path, _, SessionFactory = temp_db

        with SessionFactory() as session:
            write_entries(session, {"k": "v"})
            session.commit()

        engine2, SessionFactory2 = init_db(db_path)
        with SessionFactory2() as session:
            assert read_entry(session, "k") == "v"
        engine2.dispose()

    def test_creates_parent_directory(self, tmp_path):
        """init_db should create a missing parent directory."""
        db_path = tmp_path / "nested" / "store.db"
        engine, _ = init_db(db_path)
        assert db_path.exists()
        engine.dispose()


class TestPayloadSize:
    """Tests for payload_size."""

    def test_ascii(self):
        assert payload_size("[]") == 2

    def test_counts_utf8_bytes(self):
        """Non-ASCII characters count by encoded length."""
        assert payload_size("é") == 2
        assert payload_size("அ") == 3


class TestCheckHardLimit:
    """Tests for check_hard_limit."""

    def test_no_limit_never_raises(self):
        check_hard_limit(10**12, 0, 10**12, None)

    def test_at_limit_is_allowed(self):
        check_hard_limit(current_total=60, replaced_bytes=10, incoming_bytes=50, limit_bytes=100)

    def test_over_limit_raises(self):
        with pytest.raises(SubstrateCapacityExceeded) as exc_info:
            check_hard_limit(current_total=60, replaced_bytes=10, incoming_bytes=51, limit_bytes=100)

        assert exc_info.value.error_code == SubstrateErrorCode.CAPACITY_EXCEEDED
        assert exc_info.value.requested_bytes == 101
        assert exc_info.value.limit_bytes == 100

    def test_replacement_frees_space(self):
        """Overwriting a key only counts the difference."""
        check_hard_limit(current_total=100, replaced_bytes=80, incoming_bytes=80, limit_bytes=100)


class TestWriteEntries:
    """Tests for write_entries."""

    def test_insert_and_read(self, temp_db):
        _, _, SessionFactory = temp_db
        with SessionFactory() as session:
            write_entries(session, {"a": "[1]", "b": "[]"})
            session.commit()

        with SessionFactory() as session:
            assert read_entry(session, "a") == "[1]"
            assert list_keys(session) == ["a", "b"]
            assert total_size_bytes(session) == 5

    def test_update_refreshes_size(self, temp_db):
        _, _, SessionFactory = temp_db
        with SessionFactory() as session:
            write_entries(session, {"a": "x"})
            session.commit()
            write_entries(session, {"a": "xyz"})
            session.commit()

        with SessionFactory() as session:
            entry = session.execute(select(StorageEntry).where(StorageEntry.key == "a")).scalar_one()
            assert entry.value == "xyz"
            assert entry.size_bytes == 3

    def test_none_deletes_key(self, temp_db):
        _, _, SessionFactory = temp_db
        with SessionFactory() as session:
            write_entries(session, {"a": "x", "b": "y"})
            session.commit()
            write_entries(session, {"a": None, "missing": None})
            session.commit()

        with SessionFactory() as session:
            assert read_entry(session, "a") is None
            assert list_keys(session) == ["b"]

    def test_does_not_commit(self, temp_db):
        """write_entries flushes only; rollback discards the write."""
        _, _, SessionFactory = temp_db
        with SessionFactory() as session:
            write_entries(session, {"a": "x"})
            session.rollback()

        with SessionFactory() as session:
            assert read_entry(session, "a") is None

    def test_hard_limit_rejects_whole_write(self, temp_db):
        """No key of a rejected write is applied."""
        _, _, SessionFactory = temp_db
        with SessionFactory() as session:
            write_entries(session, {"a": "12345"}, hard_limit_bytes=10)
            session.commit()

        with SessionFactory() as session:
            with pytest.raises(SubstrateCapacityExceeded):
                write_entries(session, {"b": "123", "c": "123"}, hard_limit_bytes=10)
            session.rollback()

        with SessionFactory() as session:
            assert list_keys(session) == ["a"]
            assert total_size_bytes(session, ["a", "b"]) == 5
