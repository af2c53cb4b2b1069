"""Instant replay controller for OBS-WebSocket style control sockets."""

__version__ = "0.1.0"

__all__ = ["__version__"]
