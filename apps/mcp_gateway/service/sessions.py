"""In-memory session store with inactivity expiry."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from uuid import uuid4

__all__ = ["Session", "SessionStore"]

logger = logging.getLogger("mcp_gateway.sessions")


@dataclass(slots=True)
class Session:
    id: str
    created_at: float
    last_activity: float


class SessionStore:
    """Track caller sessions by the opaque ``Mcp-Session-Id`` value.

    Caller-supplied ids are accepted as-is, including ids this process never
    issued (for example after a restart). Sessions idle for longer than
    ``ttl_seconds`` are dropped by a sweep that runs lazily from :meth:`touch`
    at most once per ``sweep_interval_seconds``. A ``ttl_seconds`` of zero
    disables expiry.
    """

    def __init__(
        self,
        *,
        ttl_seconds: float = 3600.0,
        sweep_interval_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if ttl_seconds < 0:
            raise ValueError("ttl_seconds must be zero or positive")
        if sweep_interval_seconds < 0:
            raise ValueError("sweep_interval_seconds must be zero or positive")
        self._ttl = float(ttl_seconds)
        self._sweep_interval = float(sweep_interval_seconds)
        self._clock = clock
        self._sessions: dict[str, Session] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    @staticmethod
    def resolve(header_value: str | None) -> str:
        """Return the caller's session id, or a fresh one when none was sent."""

        if header_value is not None and header_value.strip():
            return header_value.strip()
        return str(uuid4())

    def touch(self, session_id: str) -> Session:
        now = self._clock()
        with self._lock:
            if self._ttl and now - self._last_sweep >= self._sweep_interval:
                self._sweep_locked(now)
            session = self._sessions.get(session_id)
            if session is None:
                session = Session(id=session_id, created_at=now, last_activity=now)
                self._sessions[session_id] = session
                logger.debug("Session %s created", session_id)
            else:
                session.last_activity = now
            return session

    def get(self, session_id: str) -> Session | None:
        with self._lock:
            session = self._sessions.get(session_id)
            if session is not None and self._expired(session, self._clock()):
                return None
            return session

    def sweep(self) -> int:
        """Drop expired sessions now; returns how many were removed."""

        with self._lock:
            return self._sweep_locked(self._clock())

    def __len__(self) -> int:
        with self._lock:
            return len(self._sessions)

    def __contains__(self, session_id: object) -> bool:
        return isinstance(session_id, str) and self.get(session_id) is not None

    def _expired(self, session: Session, now: float) -> bool:
        return bool(self._ttl) and now - session.last_activity > self._ttl

    def _sweep_locked(self, now: float) -> int:
        self._last_sweep = now
        if not self._ttl:
            return 0
        expired = [sid for sid, session in self._sessions.items() if self._expired(session, now)]
        for sid in expired:
            del self._sessions[sid]
        if expired:
            logger.info("Expired %d idle session(s)", len(expired))
        return len(expired)
