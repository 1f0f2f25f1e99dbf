"""Bible Aura Local Store - Storage API FastAPI application.

Local HTTP surface the app shell talks to. Every route is a thin call into
the LocalStore facade; the store is created once in the lifespan handler and
handed to routes through a dependency.

Run with:
    uvicorn services.storage_api.main:app --reload  # dev server only
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Annotated, Any

from fastapi import Depends, FastAPI, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, Response

from aura_store.backup import BackupErrorCode, ImportMode
from aura_store.local_store import LocalStore
from aura_store.registry import CollectionName
from aura_store.schemas import (
    ChatConversation,
    ChatMode,
    ErrorResponse,
    ImportResponse,
    JournalEntry,
    SaveResponse,
    Sermon,
    StorageStats,
    SyncStatusEntry,
)

logger = logging.getLogger(__name__)

PERSISTENCE_REJECTED = "PERSISTENCE_REJECTED"

# --- Store Setup ---

# Module-level store (initialized on startup)
_local_store: LocalStore | None = None


def get_local_store() -> LocalStore:
    """Dependency that provides the application's LocalStore.

    Raises:
        RuntimeError: If the store is not initialized (app lifespan not invoked).
    """
    if _local_store is None:
        raise RuntimeError("Local store not initialized. App lifespan not invoked?")
    return _local_store


StoreDep = Annotated[LocalStore, Depends(get_local_store)]


# --- Lifespan ---


def _cleanup_orphan_temp_files_safe() -> None:
    """Remove temp files left by interrupted backup writes (best-effort)."""
    from aura_store.config import BACKUP_DIR
    from aura_store.utils.atomic_io import cleanup_orphan_temp_files

    try:
        removed = cleanup_orphan_temp_files(BACKUP_DIR)
        if removed > 0:
            logger.info("Startup cleanup: removed %d orphan temp files", removed)
    except Exception:
        # Best-effort: never crash startup
        logger.warning("Startup cleanup failed (non-fatal)", exc_info=True)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the store on startup unless a test already installed one."""
    global _local_store
    if _local_store is None:
        _local_store = LocalStore.open()

    _cleanup_orphan_temp_files_safe()

    yield


# --- FastAPI App ---


app = FastAPI(
    title="Bible Aura Local Store API",
    description="Offline storage for sermons, journal entries and AI chat transcripts.",
    version="0.1.0",
    lifespan=lifespan,
)


# --- Error Handling ---


def make_error_response(status_code: int, error_code: str, error_message: str) -> JSONResponse:
    """Create a JSON error response."""
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error_code=error_code, error_message=error_message).model_dump(),
    )


def _saved(ok: bool, collection: CollectionName, record_id: str | None = None):
    if ok:
        return SaveResponse(collection=str(collection), id=record_id)
    # 507 Insufficient Storage: the substrate refused the write
    return make_error_response(
        507, PERSISTENCE_REJECTED, f"Storage rejected the write to {collection}"
    )


def _tag_list(tags: list[str] | None) -> list[str]:
    return [t for t in (tags or []) if t]


_MUTATION_RESPONSES: dict[int | str, dict[str, Any]] = {
    507: {"model": ErrorResponse, "description": "Storage rejected the write"},
}


# --- Sermons ---


@app.get("/v1/sermons", response_model=list[Sermon], summary="List saved sermons")
def list_sermons(store: StoreDep):
    return store.list(CollectionName.SERMONS)


@app.put(
    "/v1/sermons",
    response_model=SaveResponse,
    responses=_MUTATION_RESPONSES,
    summary="Save a sermon (upsert by id)",
)
def save_sermon(sermon: Sermon, store: StoreDep):
    return _saved(store.save(sermon), CollectionName.SERMONS, sermon.id)


@app.get("/v1/sermons/search", response_model=list[Sermon], summary="Search sermons")
def search_sermons(
    store: StoreDep,
    q: str = "",
    category: str | None = None,
    speaker: str | None = None,
    tags: Annotated[list[str] | None, Query()] = None,
):
    filters = {"category": category, "speaker": speaker, "tags": _tag_list(tags)}
    return store.search(CollectionName.SERMONS, q, filters)


@app.delete(
    "/v1/sermons/{sermon_id}",
    response_model=SaveResponse,
    responses=_MUTATION_RESPONSES,
    summary="Delete a sermon",
)
def delete_sermon(sermon_id: str, store: StoreDep):
    return _saved(store.delete(CollectionName.SERMONS, sermon_id), CollectionName.SERMONS, sermon_id)


# --- Journals ---


@app.get("/v1/journals", response_model=list[JournalEntry], summary="List journal entries")
def list_journal_entries(store: StoreDep):
    return store.list(CollectionName.JOURNALS)


@app.put(
    "/v1/journals",
    response_model=SaveResponse,
    responses=_MUTATION_RESPONSES,
    summary="Save a journal entry (upsert by id)",
)
def save_journal_entry(entry: JournalEntry, store: StoreDep):
    return _saved(store.save(entry), CollectionName.JOURNALS, entry.id)


@app.get("/v1/journals/search", response_model=list[JournalEntry], summary="Search journal entries")
def search_journal_entries(
    store: StoreDep,
    q: str = "",
    category: str | None = None,
    mood: str | None = None,
    tags: Annotated[list[str] | None, Query()] = None,
):
    filters = {"category": category, "mood": mood, "tags": _tag_list(tags)}
    return store.search(CollectionName.JOURNALS, q, filters)


@app.delete(
    "/v1/journals/{entry_id}",
    response_model=SaveResponse,
    responses=_MUTATION_RESPONSES,
    summary="Delete a journal entry",
)
def delete_journal_entry(entry_id: str, store: StoreDep):
    return _saved(store.delete(CollectionName.JOURNALS, entry_id), CollectionName.JOURNALS, entry_id)


# --- Chats ---


@app.get("/v1/chats", response_model=list[ChatConversation], summary="List chat conversations")
def list_chat_conversations(store: StoreDep):
    return store.list(CollectionName.CHATS)


@app.put(
    "/v1/chats",
    response_model=SaveResponse,
    responses=_MUTATION_RESPONSES,
    summary="Save a chat conversation (upsert by id)",
)
def save_chat_conversation(conversation: ChatConversation, store: StoreDep):
    return _saved(store.save(conversation), CollectionName.CHATS, conversation.id)


@app.get(
    "/v1/chats/search", response_model=list[ChatConversation], summary="Search chat conversations"
)
def search_chat_conversations(
    store: StoreDep,
    q: str = "",
    mode: ChatMode | None = None,
    tags: Annotated[list[str] | None, Query()] = None,
):
    filters = {"mode": mode, "tags": _tag_list(tags)}
    return store.search(CollectionName.CHATS, q, filters)


@app.delete(
    "/v1/chats/{conversation_id}",
    response_model=SaveResponse,
    responses=_MUTATION_RESPONSES,
    summary="Delete a chat conversation",
)
def delete_chat_conversation(conversation_id: str, store: StoreDep):
    return _saved(
        store.delete(CollectionName.CHATS, conversation_id), CollectionName.CHATS, conversation_id
    )


# --- Storage management ---


@app.get("/v1/storage/stats", response_model=StorageStats, summary="Storage usage")
def storage_stats(store: StoreDep):
    return store.stats()


@app.get(
    "/v1/storage/sync-status",
    response_model=dict[str, SyncStatusEntry],
    summary="Per-collection sync status",
)
def sync_status(store: StoreDep):
    return {str(name): entry for name, entry in store.sync_status().items()}


@app.delete(
    "/v1/storage",
    response_model=SaveResponse,
    responses=_MUTATION_RESPONSES,
    summary="Clear one collection or all of them",
)
def clear_storage(store: StoreDep, collection: CollectionName | None = None):
    if store.clear(collection):
        return SaveResponse(collection=str(collection) if collection else "all")
    return make_error_response(507, PERSISTENCE_REJECTED, "Storage could not be cleared")


@app.delete(
    "/v1/storage/quarantine",
    response_model=SaveResponse,
    responses=_MUTATION_RESPONSES,
    summary="Drop quarantined records of one collection or all of them",
)
def purge_quarantine(store: StoreDep, collection: CollectionName | None = None):
    if store.purge_quarantine(collection):
        return SaveResponse(collection=str(collection) if collection else "all")
    return make_error_response(507, PERSISTENCE_REJECTED, "Quarantine could not be purged")


# --- Backup ---


@app.get("/v1/backup", summary="Export a backup snapshot")
def export_backup(store: StoreDep):
    return Response(content=store.export_data(), media_type="application/json")


@app.post(
    "/v1/backup",
    response_model=ImportResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Snapshot rejected"},
        507: {"model": ErrorResponse, "description": "Storage rejected the imported data"},
    },
    summary="Import a backup snapshot",
)
async def import_backup(request: Request, store: StoreDep, mode: ImportMode = ImportMode.REPLACE):
    """Import the raw snapshot document sent as the request body."""
    body = await request.body()
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError:
        return make_error_response(400, BackupErrorCode.MALFORMED_SNAPSHOT, "Body is not UTF-8")
    # Import holds collection locks and does blocking IO; keep it off the event loop
    result = await run_in_threadpool(store.import_data, text, mode)
    if result.ok:
        return ImportResponse(mode=str(result.mode), imported=result.imported)
    status_code = 507 if result.error_code == BackupErrorCode.PERSISTENCE_REJECTED else 400
    return make_error_response(status_code, result.error_code or "IMPORT_FAILED", result.message)


@app.get("/health", summary="Health check")
def health_check():
    """Simple health check endpoint."""
    return {"status": "ok"}


# --- For testing: allow overriding the store ---


def override_local_store(store: LocalStore | None) -> None:
    """Install (or with None, remove) the store used by the routes."""
    global _local_store
    _local_store = store
