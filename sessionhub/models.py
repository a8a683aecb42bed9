"""Pydantic models matching the frontend TypeScript types."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field

# ── Session catalog models ──────────────────────────────────────────

class SessionInfo(BaseModel):
    """One catalog entry, active or historical. Built fresh per query."""
    id: str
    summary: str = "New Session"
    messageCount: int = 0
    lastActivity: str = ""  # ISO 8601
    cwd: str = ""
    active: bool = False
    project: Optional[str] = None
    lastUserMessage: Optional[str] = None
    lastAssistantMessage: Optional[str] = None


class ListSessionsResponse(BaseModel):
    sessions: list[SessionInfo] = Field(default_factory=list)
    hasMore: bool = False
    total: int = 0


# ── Active session models ───────────────────────────────────────────

class ActiveSession(BaseModel):
    id: str
    cwd: str
    createdAt: datetime
    lastActivity: datetime
    # Opaque snapshots negotiated by the agent connection
    modes: Optional[dict[str, Any]] = None
    models: Optional[dict[str, Any]] = None


class RegisterSessionRequest(BaseModel):
    id: str
    cwd: str
    modes: Optional[dict[str, Any]] = None
    models: Optional[dict[str, Any]] = None


class UpdateModesRequest(BaseModel):
    modes: dict[str, Any]


# ── Chat history models ─────────────────────────────────────────────

class MessageRole(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ChatMessage(BaseModel):
    id: str
    role: MessageRole
    content: str = ""
    timestamp: int = 0  # epoch milliseconds
