"""Runtime settings (dataclasses only)."""

from __future__ import annotations

from dataclasses import field, dataclass


@dataclass(frozen=True, slots=True)
class ConnectionSettings:
    host: str
    port: int
    password: str | None
    secure: bool
    event_subscriptions: int
    rpc_version_floor: int
    rpc_version_ceiling: int
    connect_timeout_s: float
    handshake_timeout_s: float
    max_message_bytes: int

    @property
    def url(self) -> str:
        scheme = "wss" if self.secure else "ws"
        return f"{scheme}://{self.host}:{self.port}"


@dataclass(frozen=True, slots=True)
class RequestSettings:
    default_timeout_s: float
    timeouts: dict[str, float] = field(default_factory=dict)

    def timeout_for(self, request_type: str) -> float:
        return float(self.timeouts.get(request_type, self.default_timeout_s))


@dataclass(frozen=True, slots=True)
class ReconnectSettings:
    min_delay_s: float
    max_delay_s: float
    multiplier: float
    max_attempts: int
    grace_s: float


@dataclass(frozen=True, slots=True)
class HeartbeatSettings:
    interval_s: float
    timeout_s: float
    max_missed: int


@dataclass(frozen=True, slots=True)
class ReplaySettings:
    source_name: str
    source_kind: str
    save_delay_s: float
    clip_history: int


@dataclass(frozen=True, slots=True)
class CueSettings:
    enabled: bool
    host: str
    port: int
    triggers: frozenset[str]


@dataclass(frozen=True, slots=True)
class ServerSettings:
    autoconnect: bool
    notification_queue_max: int


@dataclass(frozen=True, slots=True)
class AppSettings:
    connection: ConnectionSettings
    requests: RequestSettings
    reconnect: ReconnectSettings
    heartbeat: HeartbeatSettings
    replay: ReplaySettings
    cues: CueSettings
    server: ServerSettings


__all__ = [
    "AppSettings",
    "ConnectionSettings",
    "CueSettings",
    "HeartbeatSettings",
    "ReconnectSettings",
    "ReplaySettings",
    "RequestSettings",
    "ServerSettings",
]
