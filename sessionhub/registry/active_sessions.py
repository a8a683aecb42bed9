"""In-memory table of sessions currently connected to an agent process."""
from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from typing import Any, Iterator, Optional

from sessionhub.date_utils import utc_now
from sessionhub.models import ActiveSession

logger = logging.getLogger("sessionhub.registry")


class ReadWriteLock:
    """Many concurrent readers or a single writer.

    Waiting writers block new readers so a steady stream of list calls cannot
    starve register/unregister.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @contextmanager
    def read(self) -> Iterator[None]:
        with self._cond:
            while self._writer or self._writers_waiting:
                self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            with self._cond:
                self._readers -= 1
                if self._readers == 0:
                    self._cond.notify_all()

    @contextmanager
    def write(self) -> Iterator[None]:
        with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            with self._cond:
                self._writer = False
                self._cond.notify_all()


class ActiveSessionTable:
    """Session id -> ActiveSession, safe to share between threads.

    Values handed out are copies; callers never mutate table state directly.
    The lock only guards dictionary access, never file or network I/O.
    """

    def __init__(self) -> None:
        self._lock = ReadWriteLock()
        self._sessions: dict[str, ActiveSession] = {}

    def register(
        self,
        session_id: str,
        cwd: str,
        modes: Optional[dict[str, Any]] = None,
        models: Optional[dict[str, Any]] = None,
    ) -> ActiveSession:
        now = utc_now()
        session = ActiveSession(
            id=session_id,
            cwd=cwd,
            createdAt=now,
            lastActivity=now,
            modes=modes,
            models=models,
        )
        with self._lock.write():
            self._sessions[session_id] = session
        logger.info("Registered active session: %s", session_id)
        return session.model_copy(deep=True)

    def unregister(self, session_id: str) -> bool:
        with self._lock.write():
            removed = self._sessions.pop(session_id, None)
        if removed is not None:
            logger.info("Unregistered session: %s", session_id)
        return removed is not None

    def touch(self, session_id: str) -> Optional[ActiveSession]:
        with self._lock.write():
            session = self._sessions.get(session_id)
            if session is None:
                return None
            session.lastActivity = utc_now()
            return session.model_copy(deep=True)

    def update_modes(self, session_id: str, modes: dict[str, Any]) -> Optional[ActiveSession]:
        with self._lock.write():
            session = self._sessions.get(session_id)
            if session is None:
                return None
            session.modes = modes
            return session.model_copy(deep=True)

    def get(self, session_id: str) -> Optional[ActiveSession]:
        with self._lock.read():
            session = self._sessions.get(session_id)
            return session.model_copy(deep=True) if session is not None else None

    def contains(self, session_id: str) -> bool:
        with self._lock.read():
            return session_id in self._sessions

    def list_all(self) -> list[ActiveSession]:
        with self._lock.read():
            return [session.model_copy(deep=True) for session in self._sessions.values()]

    def __len__(self) -> int:
        with self._lock.read():
            return len(self._sessions)
