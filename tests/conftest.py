"""Shared pytest fixtures for Bible Aura Local Store tests.

This module contains common fixtures used across multiple test files,
reducing duplication and improving test maintainability.
"""

import tempfile
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from aura_store.db import init_db
from aura_store.local_store import LocalStore
from aura_store.schemas import ChatConversation, ChatMessage, JournalEntry, Sermon
from aura_store.substrate import MemorySubstrate, SqliteSubstrate
from services.storage_api.main import app, override_local_store

BASE_TIME = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)


class TickingClock:
    """Deterministic clock: every call returns a time one second later."""

    def __init__(self, start: datetime = BASE_TIME, step: timedelta = timedelta(seconds=1)):
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        self.current = self.current + self.step
        return self.current


@pytest.fixture
def clock():
    """Deterministic, strictly increasing clock."""
    return TickingClock()


@pytest.fixture
def temp_db():
    """Create a temporary database for testing.

    Creates an isolated SQLite database in a temporary directory.
    The database is cleaned up after the test completes.

    Yields:
        tuple: (db_path, engine, SessionFactory)
    """
    with tempfile.TemporaryDirectory() as tmpdir:
        db_path = Path(tmpdir) / "test.db"
        engine, SessionFactory = init_db(db_path)
        yield db_path, engine, SessionFactory
        engine.dispose()


@pytest.fixture
def memory_store(clock):
    """LocalStore over an unbounded in-memory substrate."""
    return LocalStore(MemorySubstrate(), clock=clock)


@pytest.fixture
def sqlite_store(temp_db, clock):
    """LocalStore over the temporary SQLite database."""
    _, _, SessionFactory = temp_db
    return LocalStore(SqliteSubstrate(SessionFactory), clock=clock)


@pytest.fixture(params=["memory", "sqlite"])
def store(request):
    """LocalStore run once per substrate implementation."""
    return request.getfixturevalue(f"{request.param}_store")


@pytest.fixture
def client(sqlite_store):
    """Create a FastAPI test client backed by the temporary SQLite store.

    The store override is removed after the test completes.

    Yields:
        tuple: (test_client, LocalStore)
    """
    override_local_store(sqlite_store)
    with TestClient(app) as test_client:
        yield test_client, sqlite_store
    override_local_store(None)


@pytest.fixture
def make_sermon():
    """Factory for valid sermons; keyword arguments override fields."""

    def _make(sermon_id: str = "s1", **overrides) -> Sermon:
        fields = {
            "id": sermon_id,
            "title": "The Prodigal Son",
            "speaker": "Pastor James",
            "description": "A message on grace and return",
            "duration": "42:10",
            "date": BASE_TIME,
            "category": "Grace",
            "scripture_ref": "Luke 15:11-32",
            "tags": ["grace", "parables"],
            "downloaded_at": BASE_TIME,
        }
        fields.update(overrides)
        return Sermon(**fields)

    return _make


@pytest.fixture
def make_journal():
    """Factory for valid journal entries; keyword arguments override fields."""

    def _make(entry_id: str = "j1", **overrides) -> JournalEntry:
        fields = {
            "id": entry_id,
            "title": "Morning reflection",
            "content": "Be still and know that I am God",
            "mood": "peaceful",
            "tags": ["prayer"],
            "entry_date": "2024-01-01",
            "created_at": BASE_TIME,
            "updated_at": BASE_TIME,
            "category": "Devotion",
        }
        fields.update(overrides)
        return JournalEntry(**fields)

    return _make


@pytest.fixture
def make_chat():
    """Factory for valid chat conversations; keyword arguments override fields."""

    def _make(conversation_id: str = "c1", **overrides) -> ChatConversation:
        fields = {
            "id": conversation_id,
            "title": "Who was Melchizedek?",
            "verse_reference": "Hebrews 7:1",
            "mode": "historical",
            "messages": [
                ChatMessage(
                    id="m1",
                    type="user",
                    content="Who was Melchizedek?",
                    timestamp=BASE_TIME,
                    mode="historical",
                ),
                ChatMessage(
                    id="m2",
                    type="ai",
                    content="A priest-king of Salem mentioned in Genesis 14.",
                    timestamp=BASE_TIME,
                    mode="historical",
                ),
            ],
            "created_at": BASE_TIME,
            "updated_at": BASE_TIME,
            "tags": ["priesthood"],
        }
        fields.update(overrides)
        return ChatConversation(**fields)

    return _make
