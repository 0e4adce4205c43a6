"""Error envelope shared by every endpoint.

Components report expected failures as members of a ``Failure`` enum; the
HTTP boundary turns them into ``ApiError`` and the handlers registered here
render ``{"error": <code>, "message": <text>}`` bodies.
"""

import logging
from enum import Enum
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

logger = logging.getLogger(__name__)


class Failure(Enum):
    """Base for failure taxonomies. Members are declared as
    ``NAME = (kind, error_code, message, status_code)``."""

    def __new__(cls, kind: str, error: str, message: str, status_code: int = 401):
        obj = object.__new__(cls)
        obj._value_ = kind
        obj.error = error
        obj.message = message
        obj.status_code = status_code
        return obj


class ApiError(Exception):
    """An expected failure rendered as a JSON error body."""

    def __init__(
        self,
        status_code: int,
        error: str,
        message: str,
        details: Any = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.error = error
        self.message = message
        self.details = details

    @classmethod
    def from_failure(cls, failure: Failure, message: str | None = None) -> "ApiError":
        return cls(failure.status_code, failure.error, message or failure.message)

    @classmethod
    def invalid_request(cls, message: str = "Invalid request") -> "ApiError":
        return cls(status.HTTP_400_BAD_REQUEST, "invalid_request", message)

    def to_content(self) -> dict[str, Any]:
        content: dict[str, Any] = {"error": self.error, "message": self.message}
        if self.details is not None:
            content["details"] = self.details
        return content


_HTTP_ERROR_CODES = {
    status.HTTP_400_BAD_REQUEST: "invalid_request",
    status.HTTP_401_UNAUTHORIZED: "unauthorized",
    status.HTTP_403_FORBIDDEN: "forbidden",
    status.HTTP_404_NOT_FOUND: "not_found",
    status.HTTP_405_METHOD_NOT_ALLOWED: "method_not_allowed",
    status.HTTP_409_CONFLICT: "conflict",
}


def error_response(error: ApiError) -> JSONResponse:
    return JSONResponse(status_code=error.status_code, content=error.to_content())


async def _api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc.error)
    return error_response(exc)


async def _validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    fields = [
        ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        for err in exc.errors()
    ]
    logger.info("Rejected invalid request to %s: %s", request.url.path, fields)
    return error_response(
        ApiError(
            status.HTTP_400_BAD_REQUEST,
            "invalid_request",
            "Missing or invalid fields",
            details=[f for f in fields if f],
        )
    )


async def _http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    error = _HTTP_ERROR_CODES.get(exc.status_code, "error")
    message = exc.detail if isinstance(exc.detail, str) else error
    response = error_response(ApiError(exc.status_code, error, message))
    if exc.headers:
        response.headers.update(exc.headers)
    return response


def register_exception_handlers(app: FastAPI) -> None:
    """Install the JSON error envelope handlers on the app."""
    app.add_exception_handler(ApiError, _api_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(HTTPException, _http_exception_handler)
