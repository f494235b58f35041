"""Tracks which session and role each live connection holds."""

import threading
from dataclasses import dataclass, field

from face_verify.domain.sessions import PresenceBinding, Role


@dataclass
class PresenceTracker:
    """Maps live connection ids to at most one session binding."""

    _live: set[str] = field(default_factory=set, init=False)
    _bindings: dict[str, PresenceBinding] = field(default_factory=dict, init=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, init=False)

    def connect(self, connection_id: str) -> None:
        with self._lock:
            self._live.add(connection_id)

    def is_live(self, connection_id: str) -> bool:
        with self._lock:
            return connection_id in self._live

    def bind(self, connection_id: str, session_id: str, role: Role) -> None:
        with self._lock:
            self._bindings[connection_id] = PresenceBinding(session_id, role)

    def binding(self, connection_id: str) -> PresenceBinding | None:
        with self._lock:
            return self._bindings.get(connection_id)

    def unbind(self, connection_id: str) -> PresenceBinding | None:
        with self._lock:
            return self._bindings.pop(connection_id, None)

    def disconnect(self, connection_id: str) -> PresenceBinding | None:
        """Forget a terminated connection and return its last binding."""
        with self._lock:
            self._live.discard(connection_id)
            return self._bindings.pop(connection_id, None)

    def members(self, session_id: str, role: Role | None = None) -> list[str]:
        """Return connection ids bound to a session, optionally by role."""
        with self._lock:
            return [
                connection_id
                for connection_id, binding in self._bindings.items()
                if binding.session_id == session_id
                and (role is None or binding.role == role)
            ]

    def clear_session(self, session_id: str) -> list[str]:
        """Drop every binding to a session and return the affected ids."""
        with self._lock:
            affected = [
                connection_id
                for connection_id, binding in self._bindings.items()
                if binding.session_id == session_id
            ]
            for connection_id in affected:
                del self._bindings[connection_id]
            return affected
