"""Conversation session API router."""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from fastapi import APIRouter, HTTPException, Request

from ..conversations import ConversationContextStore, SessionNotFoundError

router = APIRouter(prefix="/api/sessions", tags=["sessions"])


@contextmanager
def _store_context(request: Request) -> Iterator[ConversationContextStore]:
    try:
        yield request.app.state.assistant.contexts
    except SessionNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


@router.get("/stats")
def session_stats(request: Request) -> dict[str, Any]:
    with _store_context(request) as store:
        return store.stats()


@router.get("/{session_id}")
def get_session(session_id: str, request: Request) -> dict[str, Any]:
    with _store_context(request) as store:
        return store.summary(session_id)


@router.delete("/{session_id}", status_code=204)
def delete_session(session_id: str, request: Request) -> None:
    with _store_context(request) as store:
        if not store.clear(session_id):
            raise SessionNotFoundError(f"Session not found: {session_id}")
