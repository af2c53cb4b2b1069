"""Logging initialization."""

from __future__ import annotations

import logging

from instant_replay.runtime import third_party_log_filters
from instant_replay.config.logging import LOG_LEVEL, LOG_FORMAT


def configure_logging() -> None:
    third_party_log_filters.configure()
    logging.basicConfig(level=LOG_LEVEL, format=LOG_FORMAT)


__all__ = ["configure_logging"]
