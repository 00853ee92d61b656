"""
Platform Exceptions
-------------------
Error taxonomy shared by services and routers, plus the FastAPI handlers that
render every failure as the common envelope:

    {"success": false, "error": "<CODE>", "message": "<human readable>"}

Services raise these exceptions before any mutation is persisted; raising one
inside a database session rolls the session back.
"""

from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException
from loguru import logger


class PlatformError(Exception):
    """Base class for all expected, client-visible failures."""

    status_code: int = status.HTTP_400_BAD_REQUEST
    error_code: str = "BAD_REQUEST"
    default_message: str = "Request could not be processed"

    def __init__(
        self,
        message: Optional[str] = None,
        error_code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message or self.default_message
        if error_code:
            self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "success": False,
            "error": self.error_code,
            "message": self.message,
        }
        payload.update(self.details)
        return payload


class ValidationFailed(PlatformError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "VALIDATION_ERROR"
    default_message = "Validation failed"

    def __init__(
        self,
        message: Optional[str] = None,
        fields: Optional[List[str]] = None,
        error_code: Optional[str] = None,
    ):
        details = {"fields": fields} if fields else None
        super().__init__(message, error_code=error_code, details=details)


class Unauthenticated(PlatformError):
    status_code = status.HTTP_401_UNAUTHORIZED
    error_code = "UNAUTHORIZED"
    default_message = "Invalid or expired token"


class Forbidden(PlatformError):
    status_code = status.HTTP_403_FORBIDDEN
    error_code = "FORBIDDEN"
    default_message = "You do not have permission to perform this action"


class NotFound(PlatformError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "NOT_FOUND"
    default_message = "Resource not found"


class Conflict(PlatformError):
    status_code = status.HTTP_409_CONFLICT
    error_code = "CONFLICT"
    default_message = "Resource state conflict"


class InvalidTransition(PlatformError):
    """A status change outside the allowed transition graph."""

    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "INVALID_TRANSITION"

    def __init__(
        self,
        entity: str,
        current: Optional[str],
        target: str,
        message: Optional[str] = None,
    ):
        self.entity = entity
        self.current = current
        self.target = target
        super().__init__(
            message or f"Cannot move {entity} from {current} to {target}",
            details={"currentStatus": current, "targetStatus": target},
        )


class DependencyUnavailable(PlatformError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "DEPENDENCY_UNAVAILABLE"
    default_message = "A backing service is unavailable"


# ============================================================================
# FASTAPI HANDLERS
# ============================================================================


async def platform_error_handler(request: Request, exc: PlatformError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(f"{exc.error_code} on {request.method} {request.url.path}: {exc.message}")
        payload = {"success": False, "error": exc.error_code, "message": exc.default_message}
    else:
        logger.info(
            f"{exc.error_code} on {request.method} {request.url.path}: {exc.message}"
        )
        payload = exc.to_payload()
    headers = {"WWW-Authenticate": "Bearer"} if exc.status_code == 401 else None
    return JSONResponse(status_code=exc.status_code, content=payload, headers=headers)


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    error_codes = {
        400: "BAD_REQUEST",
        401: "UNAUTHORIZED",
        403: "FORBIDDEN",
        404: "NOT_FOUND",
        405: "METHOD_NOT_ALLOWED",
        409: "CONFLICT",
    }
    code = error_codes.get(exc.status_code, "INTERNAL_ERROR")
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": code, "message": message},
        headers=getattr(exc, "headers", None),
    )


async def request_validation_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    fields = []
    messages = []
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part != "body"]
        field = ".".join(location) or "body"
        fields.append(field)
        messages.append(f"{field}: {error.get('msg')}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={
            "success": False,
            "error": "VALIDATION_ERROR",
            "message": "; ".join(messages) or "Validation failed",
            "fields": fields,
        },
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.opt(exception=exc).error(
        f"Unhandled error on {request.method} {request.url.path}"
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "success": False,
            "error": "INTERNAL_ERROR",
            "message": "An unexpected error occurred",
        },
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Attach the envelope-rendering handlers to an application."""
    app.add_exception_handler(PlatformError, platform_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
