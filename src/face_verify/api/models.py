"""Pydantic models for websocket frames."""

from pydantic import BaseModel, ConfigDict, Field


class ClientFrame(BaseModel):
    """Envelope of every client message."""

    event: str
    ack: int | str | None = None
    data: dict[str, object] = Field(default_factory=dict)


class CreateSessionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    duration_minutes: int | None = Field(default=None, alias="durationMinutes")


class JoinSessionRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId", min_length=1)


class UploadReferenceRequest(BaseModel):
    """Owner reference upload."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId", min_length=1)
    image: str = Field(min_length=1)
    face_descriptor: list[float] | None = Field(default=None, alias="faceDescriptor")


class UploadParticipantRequest(BaseModel):
    """Participant verification upload."""

    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId", min_length=1)
    image: str = Field(min_length=1)
    face_descriptor: list[float] | None = Field(default=None, alias="faceDescriptor")
    name: str | None = None


class GalleryRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    session_id: str = Field(alias="sessionId", min_length=1)
