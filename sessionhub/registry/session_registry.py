"""Session registry: live agent sessions merged with the on-disk transcript store.

Active sessions come from an :class:`ActiveSessionTable`; historical sessions are
discovered by scanning ``<projects_dir>/<path-key>/<session-id>.jsonl``. Listing
is a best-effort read: transcripts may be appended while they are parsed, and any
unreadable directory or file simply contributes nothing.
"""
from __future__ import annotations

import logging
import time
from pathlib import Path
from typing import Any, Iterator, Optional

from sessionhub import config
from sessionhub.date_utils import format_datetime_utc
from sessionhub.models import ActiveSession, ChatMessage, ListSessionsResponse, SessionInfo
from sessionhub.observability import record_listing, record_parser_failure, start_span
from sessionhub.parsers.platforms.registry import (
    is_transcript_file,
    load_session_messages,
    summarize_session_file,
)
from sessionhub.path_keys import cwd_to_path_key, path_key_to_cwd
from sessionhub.registry.active_sessions import ActiveSessionTable

logger = logging.getLogger("sessionhub.registry")

ACTIVE_SESSION_SUMMARY = "Active session"


def _is_safe_session_id(session_id: str) -> bool:
    return bool(session_id) and "/" not in session_id and "\\" not in session_id and session_id not in {".", ".."}


def _is_dir(path: Path) -> bool:
    try:
        return path.is_dir()
    except OSError:
        return False


def _is_file(path: Path) -> bool:
    try:
        return path.is_file()
    except OSError:
        return False


def _active_session_info(session: ActiveSession) -> SessionInfo:
    return SessionInfo(
        id=session.id,
        summary=ACTIVE_SESSION_SUMMARY,
        messageCount=0,
        lastActivity=format_datetime_utc(session.lastActivity),
        cwd=session.cwd,
        active=True,
        project=cwd_to_path_key(session.cwd),
    )


class SessionRegistry:
    """Catalog of active and historical sessions.

    One instance is created by the application and shared by every caller that
    owns an agent connection or displays sessions.
    """

    def __init__(
        self,
        projects_dir: Path | None = None,
        active_sessions: ActiveSessionTable | None = None,
        background_session_prefix: str | None = None,
    ):
        self.projects_dir = Path(projects_dir) if projects_dir is not None else config.PROJECTS_DIR
        self.active_sessions = active_sessions if active_sessions is not None else ActiveSessionTable()
        self.background_session_prefix = (
            config.BACKGROUND_SESSION_PREFIX
            if background_session_prefix is None
            else background_session_prefix
        )

    # ── Lifecycle (called by owners of agent connections) ───────────

    def register_session(
        self,
        session_id: str,
        cwd: str,
        modes: Optional[dict[str, Any]] = None,
        models: Optional[dict[str, Any]] = None,
    ) -> ActiveSession:
        return self.active_sessions.register(session_id, cwd, modes, models)

    def unregister_session(self, session_id: str) -> bool:
        return self.active_sessions.unregister(session_id)

    def update_activity(self, session_id: str) -> Optional[ActiveSession]:
        return self.active_sessions.touch(session_id)

    def update_modes(self, session_id: str, modes: dict[str, Any]) -> Optional[ActiveSession]:
        return self.active_sessions.update_modes(session_id, modes)

    def get_active_session(self, session_id: str) -> Optional[ActiveSession]:
        return self.active_sessions.get(session_id)

    def is_session_active(self, session_id: str) -> bool:
        return self.active_sessions.contains(session_id)

    def get_active_sessions(self) -> list[ActiveSession]:
        return self.active_sessions.list_all()

    # ── Catalog ─────────────────────────────────────────────────────

    def _is_background_session(self, session_id: str) -> bool:
        return bool(self.background_session_prefix) and session_id.startswith(self.background_session_prefix)

    def _iter_project_dirs(self) -> Iterator[Path]:
        if not _is_dir(self.projects_dir):
            return
        try:
            entries = sorted(self.projects_dir.iterdir())
        except OSError as exc:
            logger.warning("Failed to read projects directory %s: %s", self.projects_dir, exc)
            record_parser_failure("projects_dir", "io")
            return
        for entry in entries:
            if _is_dir(entry):
                yield entry

    def _scan_project_dir(self, project_dir: Path, sessions: dict[str, SessionInfo]) -> None:
        project_name = project_dir.name
        try:
            paths = sorted(project_dir.iterdir())
        except OSError as exc:
            logger.warning("Failed to read project directory %s: %s", project_dir, exc)
            record_parser_failure("project_dir", "io")
            return

        for path in paths:
            if not is_transcript_file(path) or not _is_file(path):
                continue
            session_id = path.stem

            existing = sessions.get(session_id)
            if existing is not None:
                # Live session: enrich display fields only, keep active/lastActivity.
                parsed = summarize_session_file(path)
                if parsed is not None:
                    existing.summary = parsed.summary
                    existing.messageCount = parsed.messageCount
                    existing.lastUserMessage = parsed.lastUserMessage
                    existing.lastAssistantMessage = parsed.lastAssistantMessage
                continue

            if self._is_background_session(session_id):
                continue

            info = summarize_session_file(path)
            if info is None:
                continue
            info.id = session_id
            info.active = False
            info.project = project_name
            if not info.cwd:
                info.cwd = path_key_to_cwd(project_name)
            sessions[session_id] = info

    def list_sessions(
        self,
        cwd: Optional[str] = None,
        limit: int = config.DEFAULT_LIST_LIMIT,
        offset: int = 0,
    ) -> ListSessionsResponse:
        """List active and historical sessions, newest first.

        With ``cwd`` set, only live sessions in exactly that directory and the
        transcripts of its project directory are considered.
        """
        limit = max(0, limit)
        offset = max(0, offset)
        scope = "project" if cwd else "all"
        started = time.perf_counter()
        logger.info("Listing sessions (cwd=%s, limit=%s, offset=%s)", cwd, limit, offset)

        with start_span("sessions.list", {"sessions.scope": scope, "sessions.limit": limit, "sessions.offset": offset}):
            sessions: dict[str, SessionInfo] = {}

            # 1. Live sessions from memory
            for active in self.active_sessions.list_all():
                if cwd is not None and active.cwd != cwd:
                    continue
                sessions[active.id] = _active_session_info(active)

            # 2. Transcripts on disk
            if cwd is not None:
                project_dirs = [self.projects_dir / cwd_to_path_key(cwd)]
            else:
                project_dirs = list(self._iter_project_dirs())
            for project_dir in project_dirs:
                if not _is_dir(project_dir):
                    continue
                self._scan_project_dir(project_dir, sessions)

            # 3. Newest first; ISO 8601 strings compare correctly as text
            ordered = sorted(sessions.values(), key=lambda info: info.lastActivity, reverse=True)

            # 4. Paginate
            total = len(ordered)
            page = ordered[offset:offset + limit]
            response = ListSessionsResponse(
                sessions=page,
                hasMore=offset + limit < total,
                total=total,
            )

        record_listing(scope, "success", (time.perf_counter() - started) * 1000)
        logger.info("Found %d sessions (total: %d)", len(page), total)
        return response

    def find_session_file(self, session_id: str) -> Optional[Path]:
        """Locate ``<session_id>.jsonl`` in any project directory."""
        if not _is_safe_session_id(session_id):
            return None
        file_name = f"{session_id}{config.TRANSCRIPT_SUFFIX}"
        for project_dir in self._iter_project_dirs():
            candidate = project_dir / file_name
            if _is_file(candidate):
                return candidate
        return None

    def load_chat_items(self, session_id: str) -> list[ChatMessage]:
        file_path = self.find_session_file(session_id)
        if file_path is None:
            logger.debug("No session file found for %s", session_id)
            return []
        return load_session_messages(file_path, max_items=config.MAX_HISTORY_ITEMS)

    def get_session_info(self, session_id: str) -> Optional[SessionInfo]:
        """Return a single session, or ``None`` when it is neither live nor on disk."""
        active = self.active_sessions.get(session_id)
        if active is not None:
            return _active_session_info(active)

        if self._is_background_session(session_id):
            return None
        file_path = self.find_session_file(session_id)
        if file_path is None:
            return None
        info = summarize_session_file(file_path)
        if info is None:
            return None

        project_name = file_path.parent.name
        info.id = session_id
        info.active = False
        info.project = project_name
        if not info.cwd:
            info.cwd = path_key_to_cwd(project_name)
        return info
