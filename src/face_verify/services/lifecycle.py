"""Session lifecycle: creation, joining, uploads, matching and disclosure."""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime

from face_verify.domain.errors import (
    InvalidConfiguration,
    NotAuthorized,
    ReferenceNotReady,
    SessionFull,
    SessionNotFound,
)
from face_verify.domain.sessions import (
    Participant,
    Reference,
    Role,
    Session,
)
from face_verify.services.dispatch import Event, Notifier
from face_verify.services.matching import DEFAULT_THRESHOLD, compare
from face_verify.services.presence import PresenceTracker
from face_verify.services.store import SessionStore, normalize_session_id

logger = logging.getLogger(__name__)

ANONYMOUS_NAME = "Anonymous"


@dataclass(frozen=True)
class SessionPolicy:
    """Limits applied to every session."""

    threshold: float = DEFAULT_THRESHOLD
    capacity: int = 10
    default_duration_minutes: int = 30
    min_duration_minutes: int = 5
    max_duration_minutes: int = 120


@dataclass(frozen=True)
class CreatedSession:
    session_id: str
    role: Role
    duration_minutes: int


@dataclass(frozen=True)
class JoinedSession:
    session_id: str
    role: Role


@dataclass(frozen=True)
class VerificationOutcome:
    """What a participant learns about its own upload."""

    matched: bool
    distance: float
    reference_image: str | None
    participant_image: str

    def to_payload(self) -> dict[str, object]:
        return {
            "matched": self.matched,
            "distance": self.distance,
            "referenceImage": self.reference_image,
            "participantImage": self.participant_image,
        }


@dataclass(frozen=True)
class GalleryEntry:
    name: str
    image: str
    distance: float
    timestamp: datetime


@dataclass(frozen=True)
class Gallery:
    """Owner view: matched participants only, plus counts."""

    participants: list[GalleryEntry]
    total_participants: int
    matched_count: int

    def to_payload(self) -> dict[str, object]:
        return {
            "participants": [
                {
                    "name": entry.name,
                    "image": entry.image,
                    "matchDistance": entry.distance,
                    "timestamp": entry.timestamp.isoformat(),
                }
                for entry in self.participants
            ],
            "totalParticipants": self.total_participants,
            "matchedCount": self.matched_count,
        }


def build_gallery(session: Session) -> Gallery:
    matched = session.matched_participants()
    return Gallery(
        participants=[
            GalleryEntry(
                name=p.display_name,
                image=p.image,
                distance=p.distance,
                timestamp=p.submitted_at,
            )
            for p in matched
        ],
        total_participants=len(session.participants),
        matched_count=len(matched),
    )


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass
class SessionLifecycleController:
    """State machine governing every session action."""

    store: SessionStore
    presence: PresenceTracker
    notifier: Notifier
    policy: SessionPolicy = SessionPolicy()
    clock: Callable[[], datetime] = _utcnow

    def connect(self, connection_id: str) -> None:
        self.presence.connect(connection_id)
        logger.info("Connection opened: %s", connection_id)

    def create_session(
        self, connection_id: str, duration_minutes: int | None = None
    ) -> CreatedSession:
        """Create a session owned by the calling connection."""
        duration = (
            self.policy.default_duration_minutes
            if duration_minutes is None
            else duration_minutes
        )
        if not (
            self.policy.min_duration_minutes
            <= duration
            <= self.policy.max_duration_minutes
        ):
            raise InvalidConfiguration(
                f"Duration must be between {self.policy.min_duration_minutes} "
                f"and {self.policy.max_duration_minutes} minutes"
            )
        self._release(connection_id)
        session = self.store.create(
            owner_connection_id=connection_id,
            duration_seconds=duration * 60,
            capacity=self.policy.capacity,
        )
        self.presence.bind(connection_id, session.id, Role.OWNER)
        logger.info(
            "Session created: %s by %s, duration: %s minutes",
            session.id,
            connection_id,
            duration,
        )
        return CreatedSession(
            session_id=session.id, role=Role.OWNER, duration_minutes=duration
        )

    def join_session(self, connection_id: str, session_id: str) -> JoinedSession:
        """Grant a connection the participant role in a session."""
        session_id = normalize_session_id(session_id)
        session = self.store.get(session_id)
        if session is None:
            raise SessionNotFound
        if session.owner_connection_id == connection_id:
            raise NotAuthorized("Session owner cannot join as participant")
        if session.is_full:
            raise SessionFull(
                f"Session is full (max {session.capacity} participants)"
            )
        current = self.presence.binding(connection_id)
        if current is None or current.session_id != session_id:
            self._release(connection_id)
        self.presence.bind(connection_id, session_id, Role.PARTICIPANT)
        logger.info("Connection %s joined session %s", connection_id, session_id)
        self.notifier.notify_owner(
            session_id,
            Event(
                "participant-joined",
                {
                    "participantCount": len(session.participants),
                    "connectedCount": len(
                        self.presence.members(session_id, Role.PARTICIPANT)
                    ),
                    "maxParticipants": session.capacity,
                },
            ),
        )
        return JoinedSession(session_id=session_id, role=Role.PARTICIPANT)

    def upload_reference(
        self,
        connection_id: str,
        session_id: str,
        image: str,
        embedding: tuple[float, ...],
    ) -> None:
        """Set or replace the owner's reference image and embedding."""

        def apply(session: Session) -> None:
            if not session.is_owner(connection_id):
                raise NotAuthorized("Only session creator can upload reference image")
            session.reference = Reference(image=image, embedding=embedding)

        self.store.mutate(session_id, apply)
        logger.info(
            "Owner %s uploaded reference image for session %s",
            connection_id,
            normalize_session_id(session_id),
        )

    def upload_participant(
        self,
        connection_id: str,
        session_id: str,
        image: str,
        embedding: tuple[float, ...],
        display_name: str | None = None,
    ) -> VerificationOutcome:
        """Verify a participant upload and disclose results by match policy."""
        session_id = normalize_session_id(session_id)
        name = (display_name or "").strip() or ANONYMOUS_NAME

        def apply(session: Session) -> tuple[VerificationOutcome, Gallery | None]:
            if session.reference is None:
                raise ReferenceNotReady
            binding = self.presence.binding(connection_id)
            if (
                binding is None
                or binding.session_id != session.id
                or binding.role != Role.PARTICIPANT
            ):
                raise NotAuthorized("Join the session before uploading")
            existing = session.find_participant(connection_id)
            if existing is None and session.is_full:
                raise SessionFull
            result = compare(
                session.reference.embedding, embedding, self.policy.threshold
            )
            participant = Participant(
                connection_id=connection_id,
                display_name=name,
                image=image,
                embedding=embedding,
                matched=result.matched,
                distance=result.distance,
                submitted_at=self.clock(),
            )
            if existing is None:
                session.participants.append(participant)
            else:
                index = session.participants.index(existing)
                session.participants[index] = participant
            outcome = VerificationOutcome(
                matched=result.matched,
                distance=result.distance,
                reference_image=session.reference.image if result.matched else None,
                participant_image=image,
            )
            gallery = build_gallery(session) if result.matched else None
            return outcome, gallery

        outcome, gallery = self.store.mutate(session_id, apply)
        logger.info(
            "Participant %s verified against session %s: matched=%s, distance=%.3f",
            connection_id,
            session_id,
            outcome.matched,
            outcome.distance,
        )
        self.notifier.notify_connection(
            connection_id, Event("verification-result", outcome.to_payload())
        )
        if gallery is not None:
            self.notifier.notify_owner(
                session_id, Event("gallery-updated", gallery.to_payload())
            )
        return outcome

    def get_gallery(self, connection_id: str, session_id: str) -> Gallery:
        """Return the owner's view of matched participants."""

        def apply(session: Session) -> Gallery:
            if not session.is_owner(connection_id):
                raise NotAuthorized("Only session creator can view the gallery")
            return build_gallery(session)

        return self.store.mutate(session_id, apply)

    def handle_disconnect(self, connection_id: str) -> None:
        """Clean up after a terminated connection."""
        logger.info("Connection closed: %s", connection_id)
        binding = self.presence.disconnect(connection_id)
        if binding is not None:
            self._leave(connection_id, binding.session_id, binding.role)

    def expire_sessions(self) -> list[str]:
        """Delete expired sessions after a best-effort notice to their members."""

        def notify(session: Session) -> None:
            event = Event("session-expired", {"sessionId": session.id})
            if session.owner_present:
                self.notifier.notify_connection(session.owner_connection_id, event)
            for member in self.presence.clear_session(session.id):
                if member != session.owner_connection_id:
                    self.notifier.notify_connection(member, event)

        removed = self.store.sweep_expired(before_delete=notify)
        for session_id in removed:
            logger.info("Cleaned up expired session: %s", session_id)
        return removed

    def live_session_count(self) -> int:
        return self.store.count()

    def _release(self, connection_id: str) -> None:
        binding = self.presence.unbind(connection_id)
        if binding is not None:
            self._leave(connection_id, binding.session_id, binding.role)

    def _leave(self, connection_id: str, session_id: str, role: Role) -> None:
        def apply(session: Session) -> tuple[int, bool]:
            if role == Role.PARTICIPANT:
                session.participants = [
                    p for p in session.participants if p.connection_id != connection_id
                ]
            elif session.owner_connection_id == connection_id:
                session.owner_present = False
            owner_live = session.owner_present and self.presence.is_live(
                session.owner_connection_id
            )
            abandoned = not session.participants and not owner_live
            if abandoned:
                self.store.delete(session.id)
            return len(session.participants), abandoned

        try:
            remaining, abandoned = self.store.mutate(session_id, apply)
        except SessionNotFound:
            return

        if role == Role.OWNER:
            logger.info("Owner left session %s", session_id)
            self.notifier.notify_session_participants(
                session_id, Event("admin-disconnected", {"sessionId": session_id})
            )
        else:
            self.notifier.notify_owner(
                session_id, Event("participant-left", {"participantCount": remaining})
            )

        if abandoned:
            self.presence.clear_session(session_id)
            logger.info("Session %s deleted (empty)", session_id)
