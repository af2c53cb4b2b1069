"""Wire message types (dataclasses only)."""

from __future__ import annotations

from typing import Any, Union
from dataclasses import field, dataclass

from instant_replay.config.protocol import BATCH_EXECUTION_SERIAL_REALTIME

from .events import EventPayload


@dataclass(frozen=True, slots=True)
class AuthChallenge:
    challenge: str
    salt: str


@dataclass(frozen=True, slots=True)
class Hello:
    obs_web_socket_version: str
    rpc_version: int
    authentication: AuthChallenge | None = None


@dataclass(frozen=True, slots=True)
class Identified:
    negotiated_rpc_version: int


@dataclass(frozen=True, slots=True)
class RequestStatus:
    result: bool
    code: int
    comment: str = ""


@dataclass(frozen=True, slots=True)
class RequestResponse:
    request_type: str
    request_id: str
    status: RequestStatus
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class RequestBatchResponse:
    request_id: str
    results: tuple[RequestResponse, ...]


@dataclass(frozen=True, slots=True)
class Event:
    kind: str
    payload: EventPayload
    intent: int = 0
    # Receipt order within one connection epoch.
    sequence: int = 0
    epoch: int = 0


@dataclass(frozen=True, slots=True)
class UnknownMessage:
    op: int
    data: dict[str, Any]


@dataclass(frozen=True, slots=True)
class ConnectionClosed:
    """Terminal item of a transport receive stream."""

    reason: str
    code: int | None = None
    error: Exception | None = None


@dataclass(frozen=True, slots=True)
class Identify:
    rpc_version: int
    event_subscriptions: int
    authentication: str | None = None


@dataclass(frozen=True, slots=True)
class Reidentify:
    event_subscriptions: int


@dataclass(frozen=True, slots=True)
class Request:
    request_type: str
    request_id: str
    request_data: dict[str, Any] | None = None


@dataclass(frozen=True, slots=True)
class RequestBatch:
    request_id: str
    requests: tuple[Request, ...]
    halt_on_failure: bool = False
    execution_type: int = BATCH_EXECUTION_SERIAL_REALTIME


IncomingMessage = Union[Hello, Identified, Event, RequestResponse, RequestBatchResponse, UnknownMessage]
OutgoingMessage = Union[Identify, Reidentify, Request, RequestBatch]

__all__ = [
    "AuthChallenge",
    "ConnectionClosed",
    "Event",
    "Hello",
    "Identified",
    "Identify",
    "IncomingMessage",
    "OutgoingMessage",
    "Reidentify",
    "Request",
    "RequestBatch",
    "RequestBatchResponse",
    "RequestResponse",
    "RequestStatus",
    "UnknownMessage",
]
