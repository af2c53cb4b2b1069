"""Log noise filters for third-party libraries.

Only logger levels are adjusted here, to keep connection churn readable.
"""

from __future__ import annotations

import os
import logging

from instant_replay.config.logging import ENV_SHOW_WEBSOCKETS_LOGS


def configure() -> None:
    # websockets logs every handshake and keepalive at DEBUG/INFO. Keep it tame unless explicitly enabled.
    if (os.getenv(ENV_SHOW_WEBSOCKETS_LOGS) or "").strip().lower() not in {"1", "true", "yes"}:
        logging.getLogger("websockets").setLevel(logging.WARNING)
        logging.getLogger("websockets.client").setLevel(logging.WARNING)
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


__all__ = ["configure"]
