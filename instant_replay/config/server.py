"""Host HTTP/WebSocket surface configuration (env names and defaults)."""

from __future__ import annotations

ENV_AUTOCONNECT = "AUTOCONNECT"
ENV_HTTP_HOST = "HTTP_HOST"
ENV_HTTP_PORT = "HTTP_PORT"
ENV_NOTIFICATION_QUEUE_MAX = "NOTIFICATION_QUEUE_MAX"

DEFAULT_AUTOCONNECT = False
DEFAULT_HTTP_HOST = "127.0.0.1"
DEFAULT_HTTP_PORT = 8000
DEFAULT_NOTIFICATION_QUEUE_MAX = 256

NOTIFICATIONS_PATH = "/notifications"

# HTTP error codes (payload.code values)
HTTP_ERROR_NOT_CONNECTED = "not_connected"
HTTP_ERROR_ALREADY_RUNNING = "already_running"
HTTP_ERROR_INVALID_STATE = "invalid_state"
HTTP_ERROR_REQUEST_TIMEOUT = "request_timeout"
HTTP_ERROR_REQUEST_REJECTED = "request_rejected"
HTTP_ERROR_SOURCE_NOT_FOUND = "source_not_found"
HTTP_ERROR_CANCELLED = "cancelled"
HTTP_ERROR_INTERNAL = "internal_error"

__all__ = [
    "DEFAULT_AUTOCONNECT",
    "DEFAULT_HTTP_HOST",
    "DEFAULT_HTTP_PORT",
    "DEFAULT_NOTIFICATION_QUEUE_MAX",
    "ENV_AUTOCONNECT",
    "ENV_HTTP_HOST",
    "ENV_HTTP_PORT",
    "ENV_NOTIFICATION_QUEUE_MAX",
    "HTTP_ERROR_ALREADY_RUNNING",
    "HTTP_ERROR_CANCELLED",
    "HTTP_ERROR_INTERNAL",
    "HTTP_ERROR_INVALID_STATE",
    "HTTP_ERROR_NOT_CONNECTED",
    "HTTP_ERROR_REQUEST_REJECTED",
    "HTTP_ERROR_REQUEST_TIMEOUT",
    "HTTP_ERROR_SOURCE_NOT_FOUND",
    "NOTIFICATIONS_PATH",
]
