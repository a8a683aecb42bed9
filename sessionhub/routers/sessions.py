"""API router for the session catalog and active-session lifecycle."""
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from sessionhub import config
from sessionhub.models import (
    ActiveSession,
    ChatMessage,
    ListSessionsResponse,
    RegisterSessionRequest,
    SessionInfo,
    UpdateModesRequest,
)
from sessionhub.registry.session_registry import SessionRegistry

sessions_router = APIRouter(prefix="/api/sessions", tags=["sessions"])


def get_session_registry(request: Request) -> SessionRegistry:
    """Registry owned by the application (created in the lifespan hook)."""
    return request.app.state.session_registry


# ── Active session lifecycle ────────────────────────────────────────
# Declared before /{session_id} so "active" is not captured as an id.

@sessions_router.get("/active", response_model=list[ActiveSession])
def list_active_sessions(registry: SessionRegistry = Depends(get_session_registry)):
    """List sessions currently connected to an agent."""
    return registry.get_active_sessions()


@sessions_router.post("/active", response_model=ActiveSession)
def register_session(
    payload: RegisterSessionRequest,
    registry: SessionRegistry = Depends(get_session_registry),
):
    """Register a session created, resumed or forked by the agent manager."""
    return registry.register_session(payload.id, payload.cwd, payload.modes, payload.models)


@sessions_router.delete("/active/{session_id}")
def unregister_session(session_id: str, registry: SessionRegistry = Depends(get_session_registry)):
    """Forget a disconnected session. Unknown ids are accepted."""
    registry.unregister_session(session_id)
    return {"status": "ok"}


@sessions_router.post("/active/{session_id}/touch", response_model=ActiveSession)
def touch_session(session_id: str, registry: SessionRegistry = Depends(get_session_registry)):
    session = registry.update_activity(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session {session_id} is not active")
    return session


@sessions_router.put("/active/{session_id}/modes", response_model=ActiveSession)
def update_session_modes(
    session_id: str,
    payload: UpdateModesRequest,
    registry: SessionRegistry = Depends(get_session_registry),
):
    session = registry.update_modes(session_id, payload.modes)
    if session is None:
        raise HTTPException(status_code=404, detail=f"Session {session_id} is not active")
    return session


# ── Catalog ─────────────────────────────────────────────────────────

@sessions_router.get("", response_model=ListSessionsResponse, response_model_exclude_none=True)
def list_sessions(
    cwd: Optional[str] = Query(None, description="Only sessions for this working directory"),
    limit: int = Query(config.DEFAULT_LIST_LIMIT, ge=1, le=500),
    offset: int = Query(0, ge=0),
    registry: SessionRegistry = Depends(get_session_registry),
):
    """Return active and historical sessions, newest first."""
    return registry.list_sessions(cwd=cwd, limit=limit, offset=offset)


@sessions_router.get("/{session_id}", response_model=SessionInfo, response_model_exclude_none=True)
def get_session_info(session_id: str, registry: SessionRegistry = Depends(get_session_registry)):
    """Return a single session by ID."""
    info = registry.get_session_info(session_id)
    if info is None:
        raise HTTPException(status_code=404, detail=f"Session not found: {session_id}")
    return info


@sessions_router.get("/{session_id}/messages", response_model=list[ChatMessage])
def get_session_messages(session_id: str, registry: SessionRegistry = Depends(get_session_registry)):
    """Return the most recent chat history of a session's transcript."""
    return registry.load_chat_items(session_id)
