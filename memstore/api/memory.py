"""
Memory API endpoints.

Session memory reads/writes, summary lookup, search and metadata updates.
Handlers are plain functions so the blocking store runs in the threadpool.
Store errors propagate to the app-level handler, which maps them to status
codes.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from memstore.errors import NotFoundError
from memstore.memory.schemas import Memory, SearchPayload, SearchResult, Summary
from memstore.memory.store import MemoryStore
from .schemas import (
    AddMemoryRequest,
    AddMemoryResponse,
    DeleteSessionResponse,
    UpdateMetadataRequest,
)

router = APIRouter(prefix="/sessions", tags=["memory"])


def get_memory_store(request: Request) -> MemoryStore:
    """Dependency to get the app's memory store."""
    store = getattr(request.app.state, "store", None)
    if store is None:
        raise HTTPException(status_code=503, detail="Memory store not initialized")
    return store


@router.get("/{session_id}/memory", response_model=Memory)
def get_memory(
    session_id: str,
    lastn: int = Query(0, description="Most recent N messages; 0 = since last summary"),
    store: MemoryStore = Depends(get_memory_store),
):
    """
    Get a session's memory.

    Example:
        GET /api/v1/sessions/s1/memory?lastn=2

        Response:
        {
            "summary": {"uuid": "...", "content": "...", "summary_point_uuid": "..."},
            "messages": [{"role": "human", "content": "...", "sequence": 4}, ...]
        }
    """
    return store.get_memory(session_id, last_n=lastn)


@router.post("/{session_id}/memory", response_model=AddMemoryResponse)
def add_memory(
    session_id: str,
    request: AddMemoryRequest,
    store: MemoryStore = Depends(get_memory_store),
):
    """Append messages to a session, creating it when absent."""
    committed = store.put_memory(session_id, [m.to_message() for m in request.messages])
    return AddMemoryResponse(ok=True, uuids=[m.uuid for m in committed])


@router.delete("/{session_id}/memory", response_model=DeleteSessionResponse)
def delete_memory(session_id: str, store: MemoryStore = Depends(get_memory_store)):
    """Soft-delete a session. Deleting an absent session is not an error."""
    deleted = store.delete_session(session_id)
    message = f"Session {session_id} deleted" if deleted else f"Session {session_id} not found"
    return DeleteSessionResponse(deleted=deleted, message=message)


@router.get("/{session_id}/summary", response_model=Summary)
def get_summary(session_id: str, store: MemoryStore = Depends(get_memory_store)):
    """Most recent summary of a session (404 when none exists)."""
    summary = store.get_summary(session_id)
    if summary is None:
        raise NotFoundError(f"no summary for session {session_id}", session_id=session_id)
    return summary


@router.post("/{session_id}/search", response_model=List[SearchResult])
def search_memory(
    session_id: str,
    payload: SearchPayload,
    http_request: Request,
    limit: Optional[int] = Query(None, description="Maximum number of results (default from settings)"),
    store: MemoryStore = Depends(get_memory_store),
):
    """
    Search a session's messages.

    Example:
        POST /api/v1/sessions/s1/search?limit=5
        {"text": "optimizer", "meta": {"channel": "web"}}

        Response:
        [{"message": {...}, "summary": null, "meta": {"channel": "web"}, "dist": 0.42}]
    """
    if limit is None:
        settings = getattr(http_request.app.state, "settings", None)
        limit = settings.search.default_limit if settings is not None else 10
    return store.search_memory(session_id, payload, limit)


@router.patch("/{session_id}/metadata")
def update_metadata(
    session_id: str,
    request: UpdateMetadataRequest,
    store: MemoryStore = Depends(get_memory_store),
):
    """Update message metadata. HTTP callers are never privileged."""
    store.put_message_metadata(session_id, request.metadata, is_privileged=False)
    return {"ok": True, "updated": len(request.metadata)}
