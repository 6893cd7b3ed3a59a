from __future__ import annotations

import logging
import threading
import time
from typing import Callable

from src.application.use_cases.edit_session import EditSession

logger = logging.getLogger(__name__)


class EditSessionStore:
    """Process-local registry of open edit sessions.

    Sessions idle for longer than ``ttl_seconds`` are closed and dropped on the
    next access. Dropping a session never cancels backend writes already made.
    """

    def __init__(self, ttl_seconds: float = 3600.0, clock: Callable[[], float] = time.monotonic) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._sessions: dict[str, tuple[EditSession, float]] = {}
        self._lock = threading.Lock()

    def add(self, session: EditSession) -> None:
        with self._lock:
            self._purge_expired()
            self._sessions[session.id] = (session, self._clock())

    def get(self, session_id: str, user_id: str) -> EditSession:
        """
        Raises:
            ValueError: unknown, expired, or owned by another user.
        """
        with self._lock:
            self._purge_expired()
            entry = self._sessions.get(session_id)
            if entry is None or entry[0].user_id != user_id:
                raise ValueError("Edit session not found or access denied")
            session = entry[0]
            self._sessions[session_id] = (session, self._clock())
            return session

    def discard(self, session_id: str) -> EditSession | None:
        with self._lock:
            entry = self._sessions.pop(session_id, None)
        if entry is None:
            return None
        entry[0].close()
        return entry[0]

    def __len__(self) -> int:
        return len(self._sessions)

    def _purge_expired(self) -> None:
        now = self._clock()
        expired = [sid for sid, (_, touched) in self._sessions.items() if now - touched >= self.ttl_seconds]
        for sid in expired:
            session, _ = self._sessions.pop(sid)
            session.close()
            logger.info("Edit session %s expired", sid)
