"""Typed event payloads.

Inbound event data is matched on its `eventType` discriminator into a closed
set of known payloads. Anything else is carried verbatim as
`UnrecognizedEvent` so subscribers can still observe it.
"""

from __future__ import annotations

from typing import Any, Union
from dataclasses import dataclass

from instant_replay.errors import MalformedMessage
from instant_replay.config.protocol import (
    EVT_EXIT_STARTED,
    EVT_REPLAY_BUFFER_SAVED,
    EVT_MEDIA_INPUT_PLAYBACK_ENDED,
    EVT_REPLAY_BUFFER_STATE_CHANGED,
    EVT_MEDIA_INPUT_PLAYBACK_STARTED,
)


@dataclass(frozen=True, slots=True)
class ReplayBufferStateChanged:
    output_active: bool
    output_state: str


@dataclass(frozen=True, slots=True)
class ReplayBufferSaved:
    saved_replay_path: str


@dataclass(frozen=True, slots=True)
class MediaInputPlaybackStarted:
    input_name: str


@dataclass(frozen=True, slots=True)
class MediaInputPlaybackEnded:
    input_name: str


@dataclass(frozen=True, slots=True)
class ExitStarted:
    pass


@dataclass(frozen=True, slots=True)
class UnrecognizedEvent:
    event_type: str
    data: dict[str, Any]


EventPayload = Union[
    ReplayBufferStateChanged,
    ReplayBufferSaved,
    MediaInputPlaybackStarted,
    MediaInputPlaybackEnded,
    ExitStarted,
    UnrecognizedEvent,
]


def _require_str(data: dict[str, Any], key: str, event_type: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise MalformedMessage(f"{event_type} missing string '{key}'")
    return value


def _require_bool(data: dict[str, Any], key: str, event_type: str) -> bool:
    value = data.get(key)
    if not isinstance(value, bool):
        raise MalformedMessage(f"{event_type} missing boolean '{key}'")
    return value


def parse_event_payload(event_type: str, data: dict[str, Any]) -> EventPayload:
    if event_type == EVT_REPLAY_BUFFER_STATE_CHANGED:
        return ReplayBufferStateChanged(
            output_active=_require_bool(data, "outputActive", event_type),
            output_state=_require_str(data, "outputState", event_type),
        )
    if event_type == EVT_REPLAY_BUFFER_SAVED:
        return ReplayBufferSaved(saved_replay_path=_require_str(data, "savedReplayPath", event_type))
    if event_type == EVT_MEDIA_INPUT_PLAYBACK_STARTED:
        return MediaInputPlaybackStarted(input_name=_require_str(data, "inputName", event_type))
    if event_type == EVT_MEDIA_INPUT_PLAYBACK_ENDED:
        return MediaInputPlaybackEnded(input_name=_require_str(data, "inputName", event_type))
    if event_type == EVT_EXIT_STARTED:
        return ExitStarted()
    return UnrecognizedEvent(event_type=event_type, data=dict(data))


__all__ = [
    "EventPayload",
    "ExitStarted",
    "MediaInputPlaybackEnded",
    "MediaInputPlaybackStarted",
    "ReplayBufferSaved",
    "ReplayBufferStateChanged",
    "UnrecognizedEvent",
    "parse_event_payload",
]
