"""Shared test fixtures."""

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import pytest

from face_verify.config import Settings
from face_verify.containers import AppContainer, build_container
from face_verify.domain.errors import NoFaceDetected
from face_verify.services.dispatch import Event, Notifier
from face_verify.services.lifecycle import SessionLifecycleController, SessionPolicy
from face_verify.services.presence import PresenceTracker
from face_verify.services.store import SessionStore


@dataclass
class FixedClock:
    """Clock that only moves when told to."""

    now: datetime = field(
        default_factory=lambda: datetime(2024, 1, 1, 12, 0, tzinfo=UTC)
    )

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@dataclass
class RecordingNotifier(Notifier):
    """Notifier that records events instead of delivering them."""

    store: SessionStore
    sent: list[tuple[str, Event]] = field(default_factory=list)

    def notify_connection(self, connection_id: str, event: Event) -> bool:
        self.sent.append((connection_id, event))
        return True

    def notify_owner(self, session_id: str, event: Event) -> bool:
        session = self.store.get(session_id)
        if session is None or not session.owner_present:
            return False
        self.sent.append((session.owner_connection_id, event))
        return True

    def notify_session_participants(
        self, session_id: str, event: Event, exclude: str | None = None
    ) -> int:
        self.sent.append((f"participants:{session_id}", event))
        return 1

    def events_for(self, target: str, name: str | None = None) -> list[Event]:
        return [
            event
            for recipient, event in self.sent
            if recipient == target and (name is None or event.name == name)
        ]


@dataclass
class FakeChannel:
    """Event channel that records frames."""

    frames: list[dict[str, object]] = field(default_factory=list)
    fail: bool = False

    async def send(self, frame: dict[str, object]) -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        self.frames.append(frame)


@dataclass
class FakeExtractor:
    """Embedding extractor returning a fixed vector or failing."""

    embedding: list[float] = field(default_factory=lambda: [0.0, 0.0, 0.0])
    error: Exception | None = None
    calls: list[str] = field(default_factory=list)

    async def extract(self, image: str) -> list[float]:
        self.calls.append(image)
        if self.error is not None:
            raise self.error
        return self.embedding


@pytest.fixture
def settings() -> Settings:
    return Settings(embedding_length=3, sweep_interval_seconds=3600)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock()


@pytest.fixture
def store(clock: FixedClock) -> SessionStore:
    return SessionStore(clock=clock)


@pytest.fixture
def presence() -> PresenceTracker:
    return PresenceTracker()


@pytest.fixture
def notifier(store: SessionStore) -> RecordingNotifier:
    return RecordingNotifier(store=store)


@pytest.fixture
def controller(
    store: SessionStore,
    presence: PresenceTracker,
    notifier: RecordingNotifier,
    clock: FixedClock,
) -> SessionLifecycleController:
    return SessionLifecycleController(
        store=store,
        presence=presence,
        notifier=notifier,
        policy=SessionPolicy(capacity=10),
        clock=clock,
    )


@pytest.fixture
def container(settings: Settings) -> AppContainer:
    return build_container(settings)


@pytest.fixture
def no_face_extractor() -> FakeExtractor:
    return FakeExtractor(error=NoFaceDetected())
