"""Application exceptions and their JSON error envelope."""

from enum import Enum
from typing import Any

from fastapi import HTTPException, Request, status
from fastapi.responses import JSONResponse


class AppException(Exception):
    """Base application exception.

    Every subclass fixes an error ``code`` and HTTP ``status_code``; the
    handlers below render it as ``{"code", "message", "details"?}``.
    """

    code = "INTERNAL_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)

    def to_response(self) -> dict[str, Any]:
        body: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.details:
            body["details"] = self.details
        return body


class ValidationError(AppException):
    """Input rejected before anything was read or written."""

    code = "VALIDATION_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message, {"field": field} if field else None)


class SessionNotFoundError(AppException):
    """Consulting session missing, or unreadable when a run starts."""

    code = "SESSION_NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, session_id: str, reason: str | None = None):
        details = {"id": session_id}
        if reason:
            details["reason"] = reason
        super().__init__(f"Session not found: {session_id}", details)
        self.session_id = session_id


class SessionBusyError(AppException):
    """A consultation cannot start because the session is not waiting for input."""

    code = "SESSION_BUSY"
    status_code = status.HTTP_409_CONFLICT

    def __init__(self, session_id: str, current_state: str):
        super().__init__(
            f"Session {session_id} is not accepting a new consultation (state={current_state})",
            {"id": session_id, "current_state": current_state},
        )
        self.session_id = session_id
        self.current_state = current_state


class DatastoreError(AppException):
    """The session store failed a read or write."""

    code = "DATASTORE_ERROR"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, operation: str, message: str):
        super().__init__(f"Datastore {operation} failed: {message}", {"operation": operation})
        self.operation = operation


class PersistenceError(AppException):
    """A session write still failed after its retries."""

    code = "PERSISTENCE_ERROR"
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    def __init__(self, session_id: str, fields: list[str], message: str):
        super().__init__(
            f"Failed to persist session {session_id}: {message}",
            {"id": session_id, "fields": fields},
        )


class GenerationErrorKind(str, Enum):
    """Failure categories surfaced by the generation client."""

    AUTH = "auth"
    QUOTA = "quota"
    SERVICE_DISABLED = "service_disabled"
    NETWORK = "network"
    TIMEOUT = "timeout"
    EMPTY_RESPONSE = "empty_response"
    UNKNOWN = "unknown"


class GenerationError(AppException):
    """Tagged failure of a text-generation call.

    The code is derived from the kind, e.g. ``GENERATION_QUOTA``.
    """

    status_code = status.HTTP_502_BAD_GATEWAY

    def __init__(
        self,
        kind: GenerationErrorKind,
        message: str,
        model: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        merged: dict[str, Any] = {"model": model} if model else {}
        merged.update(details or {})
        super().__init__(message, merged)
        self.kind = kind
        self.code = f"GENERATION_{kind.value.upper()}"

    @property
    def activation_url(self) -> str | None:
        """Link that enables the service, when the provider supplied one."""
        url = self.details.get("activation_url")
        return str(url) if url else None


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_response())


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Render framework HTTP errors in the same envelope as AppException."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"code": "HTTP_ERROR", "message": exc.detail},
    )
