"""Configuration module exports (env names, defaults and protocol constants)."""

from .protocol import RPC_VERSION_FLOOR, RPC_VERSION_CEILING, DEFAULT_EVENT_SUBSCRIPTIONS

__all__ = [
    "DEFAULT_EVENT_SUBSCRIPTIONS",
    "RPC_VERSION_CEILING",
    "RPC_VERSION_FLOOR",
]
