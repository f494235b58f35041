"""FastAPI application factory."""

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass
from uuid import uuid4

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import ValidationError

from face_verify.api.models import (
    ClientFrame,
    CreateSessionRequest,
    GalleryRequest,
    JoinSessionRequest,
    UploadParticipantRequest,
    UploadReferenceRequest,
)
from face_verify.app_logging import configure_logging
from face_verify.config import parse_allowed_origins
from face_verify.containers import AppContainer
from face_verify.domain.errors import FaceVerifyError, InvalidPayload
from face_verify.services.expiry import run_expiry_sweeper

FrameHandler = Callable[
    [AppContainer, str, dict[str, object]], Awaitable[dict[str, object]]
]


@dataclass
class WebSocketChannel:
    """Event channel writing JSON frames to a websocket."""

    websocket: WebSocket

    async def send(self, frame: dict[str, object]) -> None:
        await self.websocket.send_json(frame)


def create_app(container: AppContainer) -> FastAPI:
    """Create a FastAPI app configured with dependencies."""
    configure_logging()
    logger = logging.getLogger(__name__)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        state_container: AppContainer = app.state.container
        sweeper = asyncio.create_task(
            run_expiry_sweeper(
                state_container.controller,
                state_container.settings.sweep_interval_seconds,
            )
        )
        yield
        sweeper.cancel()
        with suppress(asyncio.CancelledError):
            await sweeper
        await state_container.close_resources()

    app = FastAPI(lifespan=lifespan)
    app.state.container = container
    app.add_middleware(
        CORSMiddleware,
        allow_origins=parse_allowed_origins(container.settings.cors_allowed_origins),
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health() -> dict[str, object]:
        """Health check with the number of live sessions."""
        return {"status": "ok", "sessions": container.controller.live_session_count()}

    @app.websocket("/ws")
    async def session_socket(websocket: WebSocket) -> None:
        """One connection identity per socket for its whole lifetime."""
        await websocket.accept()
        connection_id = uuid4().hex
        container.dispatcher.register(connection_id, WebSocketChannel(websocket))
        container.controller.connect(connection_id)
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    raise WebSocketDisconnect(message.get("code", 1000))
                await _handle_frame(
                    container, connection_id, _message_text(message), logger
                )
        except WebSocketDisconnect:
            pass
        finally:
            container.controller.handle_disconnect(connection_id)
            await container.dispatcher.unregister(connection_id)

    return app


async def _handle_frame(
    container: AppContainer,
    connection_id: str,
    raw: str,
    logger: logging.Logger,
) -> None:
    """Run one client action and queue exactly one acknowledgement."""
    ack: int | str | None = None
    try:
        try:
            frame = ClientFrame.model_validate(json.loads(raw))
        except (ValueError, ValidationError) as exc:
            raise InvalidPayload("Frame must be a JSON object with an event") from exc
        ack = frame.ack
        handler = _HANDLERS.get(frame.event)
        if handler is None:
            raise InvalidPayload(f"Unknown event: {frame.event}")
        try:
            result = await handler(container, connection_id, frame.data)
        except ValidationError as exc:
            raise InvalidPayload(_describe_validation_error(exc)) from exc
    except FaceVerifyError as exc:
        reply: dict[str, object] = {
            "ack": ack,
            "success": False,
            "code": exc.code,
            "error": exc.message,
        }
    except Exception:
        logger.exception("Unhandled error for connection %s", connection_id)
        reply = {
            "ack": ack,
            "success": False,
            "code": "InternalError",
            "error": "Internal server error",
        }
    else:
        reply = {"ack": ack, "success": True, **result}
    container.dispatcher.send_frame(connection_id, reply)


def _message_text(message: dict) -> str:
    """Return a websocket message body as text; binary frames are decoded."""
    text = message.get("text")
    if text is not None:
        return text
    return (message.get("bytes") or b"").decode("utf-8", errors="replace")


def _describe_validation_error(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ()))
    return f"{location}: {first.get('msg', 'invalid value')}"


def _check_image_size(container: AppContainer, image: str) -> None:
    if len(image) > container.settings.max_image_bytes:
        raise InvalidPayload("Image is too large")


async def _create_session(
    container: AppContainer, connection_id: str, data: dict[str, object]
) -> dict[str, object]:
    request = CreateSessionRequest.model_validate(data)
    created = container.controller.create_session(
        connection_id, request.duration_minutes
    )
    return {
        "sessionId": created.session_id,
        "isAdmin": True,
        "durationMinutes": created.duration_minutes,
    }


async def _join_session(
    container: AppContainer, connection_id: str, data: dict[str, object]
) -> dict[str, object]:
    request = JoinSessionRequest.model_validate(data)
    joined = container.controller.join_session(connection_id, request.session_id)
    return {"sessionId": joined.session_id, "isAdmin": False}


async def _upload_reference(
    container: AppContainer, connection_id: str, data: dict[str, object]
) -> dict[str, object]:
    request = UploadReferenceRequest.model_validate(data)
    _check_image_size(container, request.image)
    embedding = await container.embedding_service.resolve(
        request.image, request.face_descriptor
    )
    container.controller.upload_reference(
        connection_id, request.session_id, request.image, embedding
    )
    return {}


async def _upload_participant(
    container: AppContainer, connection_id: str, data: dict[str, object]
) -> dict[str, object]:
    request = UploadParticipantRequest.model_validate(data)
    _check_image_size(container, request.image)
    embedding = await container.embedding_service.resolve(
        request.image, request.face_descriptor
    )
    container.controller.upload_participant(
        connection_id,
        request.session_id,
        request.image,
        embedding,
        request.name,
    )
    return {}


async def _get_gallery(
    container: AppContainer, connection_id: str, data: dict[str, object]
) -> dict[str, object]:
    request = GalleryRequest.model_validate(data)
    gallery = container.controller.get_gallery(connection_id, request.session_id)
    return {"gallery": gallery.to_payload()}


_HANDLERS: dict[str, FrameHandler] = {
    "create-session": _create_session,
    "join-session": _join_session,
    "upload-reference-image": _upload_reference,
    "upload-participant-image": _upload_participant,
    "get-gallery": _get_gallery,
}
