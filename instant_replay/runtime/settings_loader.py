"""Environment parsing for runtime settings."""

from __future__ import annotations

import os
import json
from typing import Any

from instant_replay.config.server import (
    ENV_AUTOCONNECT,
    DEFAULT_AUTOCONNECT,
    ENV_NOTIFICATION_QUEUE_MAX,
    DEFAULT_NOTIFICATION_QUEUE_MAX,
)
from instant_replay.config.requests import (
    ENV_REQUEST_TIMEOUTS,
    ENV_REQUEST_TIMEOUT_S,
    DEFAULT_REQUEST_TIMEOUTS,
    DEFAULT_REQUEST_TIMEOUT_S,
)
from instant_replay.state.settings import (
    AppSettings,
    CueSettings,
    ReplaySettings,
    ServerSettings,
    RequestSettings,
    HeartbeatSettings,
    ReconnectSettings,
    ConnectionSettings,
)
from instant_replay.config.reconnect import (
    ENV_RECONNECT_MAX_S,
    ENV_RECONNECT_MIN_S,
    ENV_RECONNECT_GRACE_S,
    DEFAULT_RECONNECT_MAX_S,
    DEFAULT_RECONNECT_MIN_S,
    ENV_HEARTBEAT_TIMEOUT_S,
    ENV_HEARTBEAT_MAX_MISSED,
    ENV_HEARTBEAT_INTERVAL_S,
    ENV_RECONNECT_MULTIPLIER,
    DEFAULT_RECONNECT_GRACE_S,
    ENV_RECONNECT_MAX_ATTEMPTS,
    DEFAULT_HEARTBEAT_TIMEOUT_S,
    DEFAULT_HEARTBEAT_MAX_MISSED,
    DEFAULT_HEARTBEAT_INTERVAL_S,
    DEFAULT_RECONNECT_MULTIPLIER,
    DEFAULT_RECONNECT_MAX_ATTEMPTS,
)
from instant_replay.config.replay import (
    SOURCE_KINDS,
    ENV_CUE_HOST,
    ENV_CUE_PORT,
    ENV_CUE_ENABLED,
    SAVE_DELAY_MAX_S,
    SAVE_DELAY_MIN_S,
    DEFAULT_CUE_HOST,
    DEFAULT_CUE_PORT,
    ENV_CUE_TRIGGERS,
    DEFAULT_CUE_ENABLED,
    DEFAULT_CUE_TRIGGERS,
    ENV_REPLAY_SOURCE_KIND,
    ENV_REPLAY_SOURCE_NAME,
    ENV_REPLAY_CLIP_HISTORY,
    ENV_REPLAY_SAVE_DELAY_S,
    DEFAULT_REPLAY_SOURCE_KIND,
    DEFAULT_REPLAY_SOURCE_NAME,
    DEFAULT_REPLAY_CLIP_HISTORY,
    DEFAULT_REPLAY_SAVE_DELAY_S,
)
from instant_replay.config.connection import (
    ENV_OBS_HOST,
    ENV_OBS_PORT,
    ENV_OBS_SECURE,
    DEFAULT_OBS_HOST,
    DEFAULT_OBS_PORT,
    ENV_OBS_PASSWORD,
    DEFAULT_OBS_SECURE,
    ENV_OBS_CONNECT_TIMEOUT_S,
    ENV_OBS_MAX_MESSAGE_BYTES,
    ENV_OBS_HANDSHAKE_TIMEOUT_S,
    ENV_OBS_EVENT_SUBSCRIPTIONS,
    ENV_OBS_RPC_VERSION_FLOOR,
    ENV_OBS_RPC_VERSION_CEILING,
    DEFAULT_OBS_CONNECT_TIMEOUT_S,
    DEFAULT_OBS_MAX_MESSAGE_BYTES,
    DEFAULT_OBS_HANDSHAKE_TIMEOUT_S,
    DEFAULT_OBS_EVENT_SUBSCRIPTIONS,
    DEFAULT_OBS_RPC_VERSION_FLOOR,
    DEFAULT_OBS_RPC_VERSION_CEILING,
)


def _str_env(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None:
        return default
    v = raw.strip()
    return v if v else default


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except Exception:
        return default


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except Exception:
        return default


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _json_env(name: str, default: dict[str, Any] | None) -> dict[str, Any] | None:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    v = raw.strip()
    if v.lower() in {"none", "null"}:
        return None
    try:
        parsed = json.loads(v)
    except Exception:
        return default
    if parsed is None:
        return None
    if isinstance(parsed, dict):
        return parsed
    return default


def _csv_env(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    items = tuple(part.strip().lower() for part in raw.split(",") if part.strip())
    return items or default


def clamp_save_delay(seconds: float) -> float:
    return min(SAVE_DELAY_MAX_S, max(SAVE_DELAY_MIN_S, float(seconds)))


def _validate_port(name: str, port: int) -> int:
    if port < 1 or port > 65535:
        raise ValueError(f"{name} must be between 1 and 65535")
    return port


def _load_connection_settings() -> ConnectionSettings:
    floor = _int_env(ENV_OBS_RPC_VERSION_FLOOR, DEFAULT_OBS_RPC_VERSION_FLOOR)
    ceiling = _int_env(ENV_OBS_RPC_VERSION_CEILING, DEFAULT_OBS_RPC_VERSION_CEILING)
    if floor < 1 or ceiling < floor:
        raise ValueError(
            f"{ENV_OBS_RPC_VERSION_FLOOR}/{ENV_OBS_RPC_VERSION_CEILING} must satisfy 1 <= floor <= ceiling"
        )

    password = (os.getenv(ENV_OBS_PASSWORD) or "").strip()

    return ConnectionSettings(
        host=_str_env(ENV_OBS_HOST, DEFAULT_OBS_HOST),
        port=_validate_port(ENV_OBS_PORT, _int_env(ENV_OBS_PORT, DEFAULT_OBS_PORT)),
        password=password or None,
        secure=_bool_env(ENV_OBS_SECURE, DEFAULT_OBS_SECURE),
        event_subscriptions=_int_env(ENV_OBS_EVENT_SUBSCRIPTIONS, DEFAULT_OBS_EVENT_SUBSCRIPTIONS),
        rpc_version_floor=floor,
        rpc_version_ceiling=ceiling,
        connect_timeout_s=_float_env(ENV_OBS_CONNECT_TIMEOUT_S, DEFAULT_OBS_CONNECT_TIMEOUT_S),
        handshake_timeout_s=_float_env(ENV_OBS_HANDSHAKE_TIMEOUT_S, DEFAULT_OBS_HANDSHAKE_TIMEOUT_S),
        max_message_bytes=_int_env(ENV_OBS_MAX_MESSAGE_BYTES, DEFAULT_OBS_MAX_MESSAGE_BYTES),
    )


def _load_request_settings() -> RequestSettings:
    timeouts = dict(DEFAULT_REQUEST_TIMEOUTS)
    overrides = _json_env(ENV_REQUEST_TIMEOUTS, None) or {}
    for request_type, seconds in overrides.items():
        try:
            timeouts[str(request_type)] = float(seconds)
        except (TypeError, ValueError):
            continue

    return RequestSettings(
        default_timeout_s=_float_env(ENV_REQUEST_TIMEOUT_S, DEFAULT_REQUEST_TIMEOUT_S),
        timeouts=timeouts,
    )


def _load_reconnect_settings() -> ReconnectSettings:
    min_delay = max(0.0, _float_env(ENV_RECONNECT_MIN_S, DEFAULT_RECONNECT_MIN_S))
    max_delay = max(min_delay, _float_env(ENV_RECONNECT_MAX_S, DEFAULT_RECONNECT_MAX_S))
    multiplier = _float_env(ENV_RECONNECT_MULTIPLIER, DEFAULT_RECONNECT_MULTIPLIER)
    if multiplier < 1.0:
        multiplier = DEFAULT_RECONNECT_MULTIPLIER

    return ReconnectSettings(
        min_delay_s=min_delay,
        max_delay_s=max_delay,
        multiplier=multiplier,
        max_attempts=max(0, _int_env(ENV_RECONNECT_MAX_ATTEMPTS, DEFAULT_RECONNECT_MAX_ATTEMPTS)),
        grace_s=max(0.0, _float_env(ENV_RECONNECT_GRACE_S, DEFAULT_RECONNECT_GRACE_S)),
    )


def _load_heartbeat_settings() -> HeartbeatSettings:
    return HeartbeatSettings(
        interval_s=max(0.0, _float_env(ENV_HEARTBEAT_INTERVAL_S, DEFAULT_HEARTBEAT_INTERVAL_S)),
        timeout_s=max(0.1, _float_env(ENV_HEARTBEAT_TIMEOUT_S, DEFAULT_HEARTBEAT_TIMEOUT_S)),
        max_missed=max(0, _int_env(ENV_HEARTBEAT_MAX_MISSED, DEFAULT_HEARTBEAT_MAX_MISSED)),
    )


def _load_replay_settings() -> ReplaySettings:
    source_kind = _str_env(ENV_REPLAY_SOURCE_KIND, DEFAULT_REPLAY_SOURCE_KIND)
    if source_kind not in SOURCE_KINDS:
        raise ValueError(f"{ENV_REPLAY_SOURCE_KIND} must be one of {sorted(SOURCE_KINDS)}")

    return ReplaySettings(
        source_name=_str_env(ENV_REPLAY_SOURCE_NAME, DEFAULT_REPLAY_SOURCE_NAME),
        source_kind=source_kind,
        save_delay_s=clamp_save_delay(_float_env(ENV_REPLAY_SAVE_DELAY_S, DEFAULT_REPLAY_SAVE_DELAY_S)),
        clip_history=max(1, _int_env(ENV_REPLAY_CLIP_HISTORY, DEFAULT_REPLAY_CLIP_HISTORY)),
    )


def _load_cue_settings() -> CueSettings:
    return CueSettings(
        enabled=_bool_env(ENV_CUE_ENABLED, DEFAULT_CUE_ENABLED),
        host=_str_env(ENV_CUE_HOST, DEFAULT_CUE_HOST),
        port=_validate_port(ENV_CUE_PORT, _int_env(ENV_CUE_PORT, DEFAULT_CUE_PORT)),
        triggers=frozenset(_csv_env(ENV_CUE_TRIGGERS, DEFAULT_CUE_TRIGGERS)),
    )


def _load_server_settings() -> ServerSettings:
    return ServerSettings(
        autoconnect=_bool_env(ENV_AUTOCONNECT, DEFAULT_AUTOCONNECT),
        notification_queue_max=max(1, _int_env(ENV_NOTIFICATION_QUEUE_MAX, DEFAULT_NOTIFICATION_QUEUE_MAX)),
    )


def load_settings() -> AppSettings:
    return AppSettings(
        connection=_load_connection_settings(),
        requests=_load_request_settings(),
        reconnect=_load_reconnect_settings(),
        heartbeat=_load_heartbeat_settings(),
        replay=_load_replay_settings(),
        cues=_load_cue_settings(),
        server=_load_server_settings(),
    )


__all__ = ["clamp_save_delay", "load_settings"]
