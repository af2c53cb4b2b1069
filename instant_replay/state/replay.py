"""Replay lifecycle state (dataclasses only)."""

from __future__ import annotations

import enum
from typing import Any
from dataclasses import dataclass


class ReplayPhase(str, enum.Enum):
    IDLE = "idle"
    BUFFERING = "buffering"
    SAVE_REQUESTED = "save_requested"
    SAVED = "saved"
    PLAYING = "playing"
    FAULTED = "faulted"


class ReplayInput(str, enum.Enum):
    START_BUFFERING = "start_buffering"
    SAVE_CUE = "save_cue"
    SAVE_CONFIRMED = "save_confirmed"
    SAVE_FAILED = "save_failed"
    PLAY = "play"
    PLAYBACK_FINISHED = "playback_finished"
    STOP = "stop"
    FAULT = "fault"
    CONNECTION_LOST = "connection_lost"


@dataclass(frozen=True, slots=True)
class SavedClip:
    path: str
    captured_at: float
    duration_s: float | None = None

    def to_dict(self) -> dict[str, Any]:
        return {"path": self.path, "captured_at": self.captured_at, "duration_s": self.duration_s}


@dataclass(frozen=True, slots=True)
class ReplayState:
    phase: ReplayPhase = ReplayPhase.IDLE
    clip: SavedClip | None = None
    error: str | None = None
    # Incremented every time SaveRequested is entered.
    save_cycle: int = 0
    # Connection epoch in which the current save cycle was requested.
    save_epoch: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "phase": self.phase.value,
            "clip": self.clip.to_dict() if self.clip is not None else None,
            "error": self.error,
            "save_cycle": self.save_cycle,
        }


__all__ = ["ReplayInput", "ReplayPhase", "ReplayState", "SavedClip"]
