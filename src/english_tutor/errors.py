"""Error taxonomy for the tutor API.

Every error carries the HTTP status the API layer reports it with, so routes
raise and the app-level handler renders the ``{"success": false, "error": ...}``
envelope.

- ValidationError: missing or malformed request fields (400)
- NotFoundError: user or turn absent (404)
- ForbiddenError: acting user does not own the record (403)
- UpstreamModelError: the generative call failed to execute (502)
- MediaUploadError: the audio host rejected or timed out (502)
- ResponseShapeError: model output unparseable; absorbed by ``parsing``
- StorageError: persistence failure (500)
"""

from __future__ import annotations

from typing import Any


class TutorError(Exception):
    code: str = "TUTOR_ERROR"
    http_status: int = 500
    message: str = "An unexpected error occurred"

    def __init__(self, message: str | None = None, *, details: dict[str, Any] | None = None) -> None:
        self.message = message or self.message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class ValidationError(TutorError):
    code = "VALIDATION_ERROR"
    http_status = 400
    message = "Invalid request"


class NotFoundError(TutorError):
    code = "NOT_FOUND"
    http_status = 404
    message = "Resource not found"


class UserNotFoundError(NotFoundError):
    code = "USER_NOT_FOUND"

    def __init__(self, email: str) -> None:
        super().__init__("User not found", details={"email": email})


class TurnNotFoundError(NotFoundError):
    code = "TURN_NOT_FOUND"

    def __init__(self, turn_id: int) -> None:
        super().__init__("Conversation turn not found", details={"turn_id": turn_id})


class ForbiddenError(TutorError):
    code = "FORBIDDEN"
    http_status = 403
    message = "You do not have permission to modify this conversation turn"


class UpstreamModelError(TutorError):
    code = "MODEL_INVOCATION_FAILED"
    http_status = 502
    message = "Language model request failed"


class MediaUploadError(TutorError):
    code = "MEDIA_UPLOAD_FAILED"
    http_status = 502
    message = "Audio upload failed"


class ResponseShapeError(TutorError):
    code = "RESPONSE_SHAPE"
    http_status = 500
    message = "Model response could not be parsed"


class StorageError(TutorError):
    code = "STORAGE_ERROR"
    http_status = 500
    message = "Storage operation failed"


__all__ = [
    "ForbiddenError",
    "MediaUploadError",
    "NotFoundError",
    "ResponseShapeError",
    "StorageError",
    "TurnNotFoundError",
    "TutorError",
    "UpstreamModelError",
    "UserNotFoundError",
    "ValidationError",
]
