"""Domain models for verification sessions."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    """Role a connection holds inside a session."""

    OWNER = "owner"
    PARTICIPANT = "participant"


class SessionState(str, Enum):
    """Lifecycle state of a live session."""

    AWAITING_REFERENCE = "AWAITING_REFERENCE"
    ACCEPTING_PARTICIPANTS = "ACCEPTING_PARTICIPANTS"


@dataclass(frozen=True)
class Reference:
    """Owner-supplied reference image and its embedding."""

    image: str
    embedding: tuple[float, ...]


@dataclass(frozen=True)
class Participant:
    """A participant's verification record."""

    connection_id: str
    display_name: str
    image: str
    embedding: tuple[float, ...]
    matched: bool
    distance: float
    submitted_at: datetime


@dataclass
class Session:
    """Mutable session state owned by the session store."""

    id: str
    owner_connection_id: str
    duration_seconds: float
    capacity: int
    created_at: datetime
    reference: Reference | None = None
    participants: list[Participant] = field(default_factory=list)
    owner_present: bool = True

    @property
    def state(self) -> SessionState:
        if self.reference is None:
            return SessionState.AWAITING_REFERENCE
        return SessionState.ACCEPTING_PARTICIPANTS

    @property
    def is_full(self) -> bool:
        return len(self.participants) >= self.capacity

    def is_owner(self, connection_id: str) -> bool:
        """Whether the connection is the owner and has not left."""
        return self.owner_present and self.owner_connection_id == connection_id

    def find_participant(self, connection_id: str) -> Participant | None:
        for participant in self.participants:
            if participant.connection_id == connection_id:
                return participant
        return None

    def matched_participants(self) -> list[Participant]:
        return [p for p in self.participants if p.matched]

    def is_expired(self, now: datetime) -> bool:
        return (now - self.created_at).total_seconds() > self.duration_seconds

    def snapshot(self) -> "Session":
        """Return a copy safe to read outside the store lock."""
        return replace(self, participants=list(self.participants))


@dataclass(frozen=True)
class PresenceBinding:
    """Session and role a live connection is bound to."""

    session_id: str
    role: Role
