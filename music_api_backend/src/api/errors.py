"""
API error taxonomy and the handlers that render it.

Every error response body has the same shape:

    {"message": "<human readable message>"}

Route handlers raise the ApiError subclasses below; anything else that escapes
a handler is logged and reported as a generic 500.
"""

from __future__ import annotations

import logging
from typing import Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)

INTERNAL_ERROR_MESSAGE = "Internal server error"


class ApiError(Exception):
    """Base class for errors that map onto an HTTP status and a message."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = INTERNAL_ERROR_MESSAGE

    def __init__(self, message: Optional[str] = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class BadRequest(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "Bad request"


class Unauthorized(ApiError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "User is not authorized"


class Forbidden(ApiError):
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "Forbidden"


class NotFound(ApiError):
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "Not found"


class Conflict(ApiError):
    status_code = status.HTTP_409_CONFLICT
    default_message = "Conflict"


class ServiceUnavailable(ApiError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    default_message = "Service unavailable"


class InternalError(ApiError):
    pass


def _message_response(status_code: int, message: str, headers: Optional[Dict[str, str]] = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message}, headers=headers)


def _first_validation_message(exc: RequestValidationError) -> str:
    """
    Build a message from the first violated rule of a request validation error.

    Pydantic prefixes messages raised from custom validators with "Value error, ";
    that prefix is dropped so the rule's own message reaches the client.
    """
    errors = exc.errors()
    if not errors:
        return "Invalid request"

    first = errors[0]
    message = str(first.get("msg") or "Invalid request")
    if message.startswith("Value error, "):
        return message[len("Value error, ") :]

    field = ".".join(str(part) for part in first.get("loc", ()) if part not in ("body", "query", "path"))
    if first.get("type") == "missing":
        return "All fields are mandatory"
    return f"{field}: {message}" if field else message


async def _api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("api_error: path=%s status=%s message=%s", request.url.path, exc.status_code, exc.message)
    else:
        logger.info("api_error: path=%s status=%s message=%s", request.url.path, exc.status_code, exc.message)
    return _message_response(exc.status_code, exc.message)


async def _http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    logger.warning("http_exception: path=%s status=%s detail=%s", request.url.path, exc.status_code, exc.detail)
    return _message_response(exc.status_code, str(exc.detail), headers=getattr(exc, "headers", None))


async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    message = _first_validation_message(exc)
    logger.info("validation_error: path=%s message=%s", request.url.path, message)
    return _message_response(status.HTTP_400_BAD_REQUEST, message)


async def _unexpected_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(
        "unexpected_exception: method=%s path=%s exc=%s",
        request.method,
        request.url.path,
        exc.__class__.__name__,
    )
    return _message_response(status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR_MESSAGE)


# PUBLIC_INTERFACE
def install_error_handlers(app: FastAPI) -> None:
    """Register the JSON `{message}` error handlers on the application."""
    app.add_exception_handler(ApiError, _api_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(RequestValidationError, _validation_exception_handler)
    app.add_exception_handler(Exception, _unexpected_exception_handler)
