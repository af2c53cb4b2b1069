"""Replay workflow configuration (env names and defaults)."""

from __future__ import annotations

ENV_REPLAY_SOURCE_NAME = "REPLAY_SOURCE_NAME"
# "ffmpeg_source" (local_file) or "vlc_source" (playlist)
ENV_REPLAY_SOURCE_KIND = "REPLAY_SOURCE_KIND"
ENV_REPLAY_SAVE_DELAY_S = "REPLAY_SAVE_DELAY_S"
ENV_REPLAY_CLIP_HISTORY = "REPLAY_CLIP_HISTORY"

SOURCE_KIND_FFMPEG = "ffmpeg_source"
SOURCE_KIND_VLC = "vlc_source"
SOURCE_KINDS = frozenset({SOURCE_KIND_FFMPEG, SOURCE_KIND_VLC})

DEFAULT_REPLAY_SOURCE_NAME = "Replay"
DEFAULT_REPLAY_SOURCE_KIND = SOURCE_KIND_VLC
DEFAULT_REPLAY_SAVE_DELAY_S = 3.0
DEFAULT_REPLAY_CLIP_HISTORY = 20

# Save delay is clamped into this range when set at runtime.
SAVE_DELAY_MIN_S = 1.0
SAVE_DELAY_MAX_S = 30.0

ENV_CUE_ENABLED = "CUE_ENABLED"
ENV_CUE_HOST = "CUE_HOST"
ENV_CUE_PORT = "CUE_PORT"
# Comma separated command names that trigger a save.
ENV_CUE_TRIGGERS = "CUE_TRIGGERS"

DEFAULT_CUE_ENABLED = True
DEFAULT_CUE_HOST = "127.0.0.1"
DEFAULT_CUE_PORT = 12345
DEFAULT_CUE_TRIGGERS: tuple[str, ...] = ("scored", "epic_save")

__all__ = [
    "DEFAULT_CUE_ENABLED",
    "DEFAULT_CUE_HOST",
    "DEFAULT_CUE_PORT",
    "DEFAULT_CUE_TRIGGERS",
    "DEFAULT_REPLAY_CLIP_HISTORY",
    "DEFAULT_REPLAY_SAVE_DELAY_S",
    "DEFAULT_REPLAY_SOURCE_KIND",
    "DEFAULT_REPLAY_SOURCE_NAME",
    "ENV_CUE_ENABLED",
    "ENV_CUE_HOST",
    "ENV_CUE_PORT",
    "ENV_CUE_TRIGGERS",
    "ENV_REPLAY_CLIP_HISTORY",
    "ENV_REPLAY_SAVE_DELAY_S",
    "ENV_REPLAY_SOURCE_KIND",
    "ENV_REPLAY_SOURCE_NAME",
    "SAVE_DELAY_MAX_S",
    "SAVE_DELAY_MIN_S",
    "SOURCE_KINDS",
    "SOURCE_KIND_FFMPEG",
    "SOURCE_KIND_VLC",
]
