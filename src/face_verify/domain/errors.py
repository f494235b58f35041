"""Errors reported back to the caller of a session action."""


class FaceVerifyError(Exception):
    """Base class for caller-recoverable failures."""

    code = "FaceVerifyError"
    default_message = "Request failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class SessionNotFound(FaceVerifyError):
    code = "SessionNotFound"
    default_message = "Session not found"


class SessionFull(FaceVerifyError):
    code = "SessionFull"
    default_message = "Session is full"


class NotAuthorized(FaceVerifyError):
    code = "NotAuthorized"
    default_message = "Not allowed for this connection"


class ReferenceNotReady(FaceVerifyError):
    code = "ReferenceNotReady"
    default_message = "Session host has not uploaded reference image yet"


class InvalidConfiguration(FaceVerifyError):
    code = "InvalidConfiguration"
    default_message = "Invalid session configuration"


class DimensionMismatch(FaceVerifyError):
    code = "DimensionMismatch"
    default_message = "Embedding length does not match"


class NoFaceDetected(FaceVerifyError):
    code = "NoFaceDetected"
    default_message = "No face detected in image"


class AmbiguousFace(FaceVerifyError):
    code = "AmbiguousFace"
    default_message = "More than one face detected in image"


class InvalidPayload(FaceVerifyError):
    code = "InvalidPayload"
    default_message = "Malformed request"
