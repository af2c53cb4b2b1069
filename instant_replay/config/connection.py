"""Connection target configuration (env names and defaults)."""

from __future__ import annotations

from .protocol import RPC_VERSION_FLOOR, RPC_VERSION_CEILING, DEFAULT_EVENT_SUBSCRIPTIONS

ENV_OBS_HOST = "OBS_HOST"
ENV_OBS_PORT = "OBS_PORT"
ENV_OBS_PASSWORD = "OBS_PASSWORD"
ENV_OBS_SECURE = "OBS_SECURE"
ENV_OBS_EVENT_SUBSCRIPTIONS = "OBS_EVENT_SUBSCRIPTIONS"
ENV_OBS_RPC_VERSION_FLOOR = "OBS_RPC_VERSION_FLOOR"
ENV_OBS_RPC_VERSION_CEILING = "OBS_RPC_VERSION_CEILING"
ENV_OBS_CONNECT_TIMEOUT_S = "OBS_CONNECT_TIMEOUT_S"
ENV_OBS_HANDSHAKE_TIMEOUT_S = "OBS_HANDSHAKE_TIMEOUT_S"
ENV_OBS_MAX_MESSAGE_BYTES = "OBS_MAX_MESSAGE_BYTES"

DEFAULT_OBS_HOST = "127.0.0.1"
DEFAULT_OBS_PORT = 4455
DEFAULT_OBS_SECURE = False
DEFAULT_OBS_EVENT_SUBSCRIPTIONS = DEFAULT_EVENT_SUBSCRIPTIONS
DEFAULT_OBS_RPC_VERSION_FLOOR = RPC_VERSION_FLOOR
DEFAULT_OBS_RPC_VERSION_CEILING = RPC_VERSION_CEILING
DEFAULT_OBS_CONNECT_TIMEOUT_S = 5.0
DEFAULT_OBS_HANDSHAKE_TIMEOUT_S = 5.0
DEFAULT_OBS_MAX_MESSAGE_BYTES = 16 * 1024 * 1024

__all__ = [
    "DEFAULT_OBS_CONNECT_TIMEOUT_S",
    "DEFAULT_OBS_EVENT_SUBSCRIPTIONS",
    "DEFAULT_OBS_HANDSHAKE_TIMEOUT_S",
    "DEFAULT_OBS_HOST",
    "DEFAULT_OBS_MAX_MESSAGE_BYTES",
    "DEFAULT_OBS_PORT",
    "DEFAULT_OBS_RPC_VERSION_CEILING",
    "DEFAULT_OBS_RPC_VERSION_FLOOR",
    "DEFAULT_OBS_SECURE",
    "ENV_OBS_CONNECT_TIMEOUT_S",
    "ENV_OBS_EVENT_SUBSCRIPTIONS",
    "ENV_OBS_HANDSHAKE_TIMEOUT_S",
    "ENV_OBS_HOST",
    "ENV_OBS_MAX_MESSAGE_BYTES",
    "ENV_OBS_PASSWORD",
    "ENV_OBS_PORT",
    "ENV_OBS_RPC_VERSION_CEILING",
    "ENV_OBS_RPC_VERSION_FLOOR",
    "ENV_OBS_SECURE",
]
