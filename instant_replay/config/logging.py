"""Logging configuration."""

from __future__ import annotations

import os

LOG_LEVEL: str = (os.getenv("LOG_LEVEL") or "INFO").strip().upper()
LOG_FORMAT: str = "%(asctime)s %(levelname)s %(name)s: %(message)s"

# Logger that receives writes to stdout/stderr while output capture is active.
CAPTURED_OUTPUT_LOGGER: str = "instant_replay.captured"

ENV_SHOW_WEBSOCKETS_LOGS = "SHOW_WEBSOCKETS_LOGS"

__all__ = [
    "CAPTURED_OUTPUT_LOGGER",
    "ENV_SHOW_WEBSOCKETS_LOGS",
    "LOG_FORMAT",
    "LOG_LEVEL",
]
