"""In-memory registry of live sessions."""

import logging
import secrets
import string
import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TypeVar

from face_verify.domain.errors import SessionNotFound
from face_verify.domain.sessions import Session

logger = logging.getLogger(__name__)

SESSION_ID_LENGTH = 8
SESSION_ID_ALPHABET = string.ascii_uppercase + string.digits

T = TypeVar("T")


def generate_session_id() -> str:
    """Return a random session id from a cryptographically strong source."""
    return "".join(
        secrets.choice(SESSION_ID_ALPHABET) for _ in range(SESSION_ID_LENGTH)
    )


def normalize_session_id(session_id: str) -> str:
    return session_id.strip().upper()


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class SessionStore:
    """Session registry where every read and write runs under one lock.

    Session counts are small and lifetimes short, so a single global lock
    is used instead of per-session locks.
    """

    clock: Callable[[], datetime] = _utcnow
    id_factory: Callable[[], str] = generate_session_id
    _sessions: dict[str, Session] = field(default_factory=dict, init=False)
    _lock: threading.RLock = field(default_factory=threading.RLock, init=False)

    def create(
        self, owner_connection_id: str, duration_seconds: float, capacity: int
    ) -> Session:
        """Create a session with a fresh id and return a snapshot of it."""
        with self._lock:
            session_id = normalize_session_id(self.id_factory())
            while session_id in self._sessions:
                logger.debug("Session id collision, regenerating")
                session_id = normalize_session_id(self.id_factory())
            session = Session(
                id=session_id,
                owner_connection_id=owner_connection_id,
                duration_seconds=duration_seconds,
                capacity=capacity,
                created_at=self.clock(),
            )
            self._sessions[session_id] = session
            return session.snapshot()

    def get(self, session_id: str) -> Session | None:
        """Return a snapshot of a session, if present."""
        with self._lock:
            session = self._sessions.get(normalize_session_id(session_id))
            return session.snapshot() if session else None

    def mutate(self, session_id: str, fn: Callable[[Session], T]) -> T:
        """Apply ``fn`` to the live session atomically and return its result."""
        with self._lock:
            session = self._sessions.get(normalize_session_id(session_id))
            if session is None:
                raise SessionNotFound
            return fn(session)

    def delete(self, session_id: str) -> bool:
        with self._lock:
            removed = self._sessions.pop(normalize_session_id(session_id), None)
            return removed is not None

    def count(self) -> int:
        with self._lock:
            return len(self._sessions)

    def session_ids(self) -> list[str]:
        with self._lock:
            return list(self._sessions)

    def sweep_expired(
        self, before_delete: Callable[[Session], None] | None = None
    ) -> list[str]:
        """Delete sessions older than their duration and return their ids.

        Records that cannot be evaluated are treated as expired.
        """
        removed: list[str] = []
        with self._lock:
            now = self.clock()
            for session_id, session in list(self._sessions.items()):
                try:
                    expired = session.is_expired(now)
                except (AttributeError, TypeError, ValueError):
                    logger.warning("Session %s is malformed, removing", session_id)
                    expired = True
                if not expired:
                    continue
                if before_delete is not None:
                    try:
                        before_delete(session)
                    except Exception:
                        logger.exception("Expiry hook failed for %s", session_id)
                del self._sessions[session_id]
                removed.append(session_id)
        return removed
