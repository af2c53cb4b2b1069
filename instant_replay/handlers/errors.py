"""Error payloads and status mapping for the host HTTP surface."""

from __future__ import annotations

import logging
from typing import Any

from fastapi import Request
from fastapi.responses import ORJSONResponse

from instant_replay.config.server import (
    HTTP_ERROR_INTERNAL,
    HTTP_ERROR_CANCELLED,
    HTTP_ERROR_INVALID_STATE,
    HTTP_ERROR_NOT_CONNECTED,
    HTTP_ERROR_ALREADY_RUNNING,
    HTTP_ERROR_REQUEST_TIMEOUT,
    HTTP_ERROR_REQUEST_REJECTED,
    HTTP_ERROR_SOURCE_NOT_FOUND,
)
from instant_replay.errors import (
    Cancelled,
    SendError,
    ReplayError,
    RequestTimeout,
    SourceNotFound,
    RequestRejected,
    StateTransitionError,
)

logger = logging.getLogger(__name__)


def build_error_payload(
    code: str,
    message: str,
    *,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return {"code": code, "message": message, "details": dict(details or {})}


def classify_error(exc: BaseException) -> tuple[int, dict[str, Any]]:
    """Map an exception to (HTTP status, error payload)."""
    if isinstance(exc, SourceNotFound):
        return 404, build_error_payload(
            HTTP_ERROR_SOURCE_NOT_FOUND, str(exc), details={"source": exc.source_name, "status": exc.code}
        )
    if isinstance(exc, RequestRejected):
        return 502, build_error_payload(
            HTTP_ERROR_REQUEST_REJECTED,
            str(exc),
            details={"status": exc.code, "comment": exc.comment, "request_type": exc.request_type},
        )
    if isinstance(exc, RequestTimeout):
        return 504, build_error_payload(
            HTTP_ERROR_REQUEST_TIMEOUT,
            str(exc),
            details={"request_type": exc.request_type, "timeout_s": exc.timeout_s},
        )
    if isinstance(exc, StateTransitionError):
        return 409, build_error_payload(HTTP_ERROR_INVALID_STATE, str(exc))
    if isinstance(exc, Cancelled):
        return 503, build_error_payload(HTTP_ERROR_CANCELLED, str(exc), details={"reason": exc.reason})
    if isinstance(exc, SendError):
        return 503, build_error_payload(HTTP_ERROR_NOT_CONNECTED, "not connected to the remote application")
    if isinstance(exc, RuntimeError):
        message = str(exc)
        if "already running" in message:
            return 409, build_error_payload(HTTP_ERROR_ALREADY_RUNNING, message)
        if "not running" in message:
            return 503, build_error_payload(HTTP_ERROR_NOT_CONNECTED, message)
    if isinstance(exc, ReplayError):
        return 503, build_error_payload(HTTP_ERROR_NOT_CONNECTED, str(exc))
    return 500, build_error_payload(HTTP_ERROR_INTERNAL, "internal error")


def error_response(exc: BaseException) -> ORJSONResponse:
    status, payload = classify_error(exc)
    if status >= 500:
        logger.warning("request failed (%s): %s", status, exc)
    return ORJSONResponse(status_code=status, content=payload)


async def replay_error_handler(request: Request, exc: Exception) -> ORJSONResponse:
    return error_response(exc)


__all__ = ["build_error_payload", "classify_error", "error_response", "replay_error_handler"]
