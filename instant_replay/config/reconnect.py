"""Reconnect backoff and heartbeat configuration (env names and defaults)."""

from __future__ import annotations

ENV_RECONNECT_MIN_S = "RECONNECT_MIN_S"
ENV_RECONNECT_MAX_S = "RECONNECT_MAX_S"
ENV_RECONNECT_MULTIPLIER = "RECONNECT_MULTIPLIER"
# 0 retries forever.
ENV_RECONNECT_MAX_ATTEMPTS = "RECONNECT_MAX_ATTEMPTS"
ENV_RECONNECT_GRACE_S = "RECONNECT_GRACE_S"

DEFAULT_RECONNECT_MIN_S = 1.0
DEFAULT_RECONNECT_MAX_S = 30.0
DEFAULT_RECONNECT_MULTIPLIER = 2.0
DEFAULT_RECONNECT_MAX_ATTEMPTS = 0
DEFAULT_RECONNECT_GRACE_S = 10.0

ENV_HEARTBEAT_INTERVAL_S = "HEARTBEAT_INTERVAL_S"
ENV_HEARTBEAT_TIMEOUT_S = "HEARTBEAT_TIMEOUT_S"
ENV_HEARTBEAT_MAX_MISSED = "HEARTBEAT_MAX_MISSED"

DEFAULT_HEARTBEAT_INTERVAL_S = 10.0
DEFAULT_HEARTBEAT_TIMEOUT_S = 5.0
DEFAULT_HEARTBEAT_MAX_MISSED = 2

__all__ = [
    "DEFAULT_HEARTBEAT_INTERVAL_S",
    "DEFAULT_HEARTBEAT_MAX_MISSED",
    "DEFAULT_HEARTBEAT_TIMEOUT_S",
    "DEFAULT_RECONNECT_GRACE_S",
    "DEFAULT_RECONNECT_MAX_ATTEMPTS",
    "DEFAULT_RECONNECT_MAX_S",
    "DEFAULT_RECONNECT_MIN_S",
    "DEFAULT_RECONNECT_MULTIPLIER",
    "ENV_HEARTBEAT_INTERVAL_S",
    "ENV_HEARTBEAT_MAX_MISSED",
    "ENV_HEARTBEAT_TIMEOUT_S",
    "ENV_RECONNECT_GRACE_S",
    "ENV_RECONNECT_MAX_ATTEMPTS",
    "ENV_RECONNECT_MAX_S",
    "ENV_RECONNECT_MIN_S",
    "ENV_RECONNECT_MULTIPLIER",
]
