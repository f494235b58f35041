"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from face_verify.config import Settings
from face_verify.services.dispatch import EventDispatcher
from face_verify.services.embeddings import EmbeddingExtractor, EmbeddingService
from face_verify.services.lifecycle import SessionLifecycleController, SessionPolicy
from face_verify.services.presence import PresenceTracker
from face_verify.services.store import SessionStore


@dataclass
class AppContainer:
    """Holds application-wide dependencies."""

    settings: Settings
    store: SessionStore
    presence: PresenceTracker
    dispatcher: EventDispatcher
    controller: SessionLifecycleController
    embedding_service: EmbeddingService
    close_resources: Callable[[], Awaitable[None]]


def build_container(
    settings: Settings | None = None,
    extractor: EmbeddingExtractor | None = None,
) -> AppContainer:
    """Create the default dependency container."""
    resolved_settings = settings or Settings()
    store = SessionStore()
    presence = PresenceTracker()
    dispatcher = EventDispatcher(
        store=store,
        presence=presence,
        max_queued_frames=resolved_settings.max_queued_frames,
    )
    controller = SessionLifecycleController(
        store=store,
        presence=presence,
        notifier=dispatcher,
        policy=SessionPolicy(
            threshold=resolved_settings.match_threshold,
            capacity=resolved_settings.session_capacity,
            default_duration_minutes=resolved_settings.default_duration_minutes,
            min_duration_minutes=resolved_settings.min_duration_minutes,
            max_duration_minutes=resolved_settings.max_duration_minutes,
        ),
    )
    embedding_service = EmbeddingService(
        extractor=extractor,
        expected_length=resolved_settings.embedding_length,
    )

    async def close_resources() -> None:
        await dispatcher.close()

    return AppContainer(
        settings=resolved_settings,
        store=store,
        presence=presence,
        dispatcher=dispatcher,
        controller=controller,
        embedding_service=embedding_service,
        close_resources=close_resources,
    )
