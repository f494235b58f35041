"""Best-effort delivery of push events to live connections."""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Protocol

from face_verify.domain.sessions import Role
from face_verify.services.presence import PresenceTracker
from face_verify.services.store import SessionStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_QUEUED_FRAMES = 256


@dataclass(frozen=True)
class Event:
    """Outgoing frame for a single connection."""

    name: str
    payload: dict[str, object]


class EventChannel(Protocol):
    """Transport side of a connection."""

    async def send(self, frame: dict[str, object]) -> None:
        """Write a frame to the connection."""


class Notifier(Protocol):
    """Interface used by the lifecycle controller to push events."""

    def notify_connection(self, connection_id: str, event: Event) -> bool:
        """Queue an event for a single connection."""

    def notify_owner(self, session_id: str, event: Event) -> bool:
        """Queue an event for a session's owner."""

    def notify_session_participants(
        self, session_id: str, event: Event, exclude: str | None = None
    ) -> int:
        """Queue an event for every participant bound to a session."""


def event_frame(event: Event) -> dict[str, object]:
    return {"event": event.name, "data": event.payload}


@dataclass
class _Outbox:
    channel: EventChannel
    queue: asyncio.Queue
    task: asyncio.Task | None = None


@dataclass
class EventDispatcher:
    """Fire-and-forget dispatcher with one ordered outbox per connection.

    Frames are queued synchronously, so their order matches the order of
    the operations that produced them. A single writer task per connection
    drains the queue. Frames for unknown connections, or for a connection
    whose outbox is full, are dropped.
    """

    store: SessionStore
    presence: PresenceTracker
    max_queued_frames: int = DEFAULT_MAX_QUEUED_FRAMES
    _outboxes: dict[str, _Outbox] = field(default_factory=dict, init=False)

    def register(self, connection_id: str, channel: EventChannel) -> None:
        """Attach a channel; must be called from the running event loop."""
        outbox = _Outbox(
            channel=channel, queue=asyncio.Queue(maxsize=self.max_queued_frames)
        )
        outbox.task = asyncio.get_running_loop().create_task(
            self._pump(connection_id, outbox)
        )
        self._outboxes[connection_id] = outbox

    async def unregister(self, connection_id: str) -> None:
        outbox = self._outboxes.pop(connection_id, None)
        if outbox is None or outbox.task is None:
            return
        outbox.task.cancel()
        try:
            await outbox.task
        except asyncio.CancelledError:
            pass

    def is_registered(self, connection_id: str) -> bool:
        return connection_id in self._outboxes

    def send_frame(self, connection_id: str, frame: dict[str, object]) -> bool:
        """Queue a raw frame, such as an acknowledgement, for a connection."""
        outbox = self._outboxes.get(connection_id)
        if outbox is None:
            logger.debug("Dropping frame for closed connection %s", connection_id)
            return False
        try:
            outbox.queue.put_nowait(frame)
        except asyncio.QueueFull:
            logger.warning("Outbox full, dropping frame for %s", connection_id)
            return False
        return True

    def notify_connection(self, connection_id: str, event: Event) -> bool:
        return self.send_frame(connection_id, event_frame(event))

    def notify_owner(self, session_id: str, event: Event) -> bool:
        session = self.store.get(session_id)
        if session is None or not session.owner_present:
            return False
        return self.notify_connection(session.owner_connection_id, event)

    def notify_session_participants(
        self, session_id: str, event: Event, exclude: str | None = None
    ) -> int:
        delivered = 0
        for connection_id in self.presence.members(session_id, Role.PARTICIPANT):
            if connection_id == exclude:
                continue
            if self.notify_connection(connection_id, event):
                delivered += 1
        return delivered

    async def flush(self) -> None:
        """Wait until every queued frame has been handed to its channel."""
        for outbox in list(self._outboxes.values()):
            await outbox.queue.join()

    async def close(self) -> None:
        for connection_id in list(self._outboxes):
            await self.unregister(connection_id)

    async def _pump(self, connection_id: str, outbox: _Outbox) -> None:
        while True:
            frame = await outbox.queue.get()
            try:
                await outbox.channel.send(frame)
            except asyncio.CancelledError:
                raise
            except Exception:
                logger.warning(
                    "Failed to deliver %s to %s",
                    frame.get("event", "reply"),
                    connection_id,
                )
            finally:
                outbox.queue.task_done()
