"""Request deadline configuration (env names and defaults)."""

from __future__ import annotations

from .protocol import REQ_SAVE_REPLAY_BUFFER

ENV_REQUEST_TIMEOUT_S = "REQUEST_TIMEOUT_S"
# JSON object mapping request type -> seconds, e.g. {"SaveReplayBuffer": 20}
ENV_REQUEST_TIMEOUTS = "REQUEST_TIMEOUTS"

DEFAULT_REQUEST_TIMEOUT_S = 5.0

# Flushing the replay buffer to disk can take a while on slow drives.
DEFAULT_REQUEST_TIMEOUTS: dict[str, float] = {REQ_SAVE_REPLAY_BUFFER: 15.0}

__all__ = [
    "DEFAULT_REQUEST_TIMEOUTS",
    "DEFAULT_REQUEST_TIMEOUT_S",
    "ENV_REQUEST_TIMEOUTS",
    "ENV_REQUEST_TIMEOUT_S",
]
