"""Error taxonomy for the replay controller."""

from __future__ import annotations

from dataclasses import dataclass


class ReplayError(Exception):
    """Base class for every error raised by the controller core."""


class ConnectionError(ReplayError):  # noqa: A001
    """Transport-level failure (DNS, TCP, WebSocket upgrade, lost socket)."""


class SendError(ConnectionError):
    """Raised when a frame is written to a transport that is not connected."""


class AuthError(ReplayError):
    """Handshake or credential rejection."""


class HandshakeTimeout(AuthError):
    """No Identified before the handshake deadline. Retried like a lost connection."""


class ProtocolViolation(ReplayError):
    """Malformed or out-of-sequence wire message. Connection-fatal."""


class MalformedMessage(ProtocolViolation):
    """A frame that does not match the wire schema."""


class StateTransitionError(ReplayError):
    """An input the replay state machine cannot apply in its current state."""


@dataclass(frozen=True, slots=True)
class VersionMismatch(ReplayError):
    """Negotiated protocol version outside the supported range."""

    version: int
    floor: int
    ceiling: int

    def __str__(self) -> str:
        return f"rpc version {self.version} outside supported range [{self.floor}, {self.ceiling}]"


@dataclass(frozen=True, slots=True)
class RequestTimeout(ReplayError):
    """No response arrived before the request deadline."""

    request_type: str
    request_id: str
    timeout_s: float

    def __str__(self) -> str:
        return f"{self.request_type} (id={self.request_id}) timed out after {self.timeout_s:.1f}s"


@dataclass(frozen=True, slots=True)
class RequestRejected(ReplayError):
    """The remote end answered with a failed request status."""

    code: int
    comment: str = ""
    request_type: str = ""

    def __str__(self) -> str:
        detail = f": {self.comment}" if self.comment else ""
        return f"{self.request_type or 'request'} rejected with status {self.code}{detail}"


@dataclass(frozen=True, slots=True)
class SourceNotFound(RequestRejected):
    """The named playback source does not exist on the remote end."""

    source_name: str = ""

    def __str__(self) -> str:
        return f"source {self.source_name!r} not found"


@dataclass(frozen=True, slots=True)
class Cancelled(ReplayError):
    """A pending request was invalidated by a disconnect or reconnect."""

    reason: str

    def __str__(self) -> str:
        return f"request cancelled: {self.reason}"


__all__ = [
    "AuthError",
    "Cancelled",
    "ConnectionError",
    "HandshakeTimeout",
    "MalformedMessage",
    "ProtocolViolation",
    "ReplayError",
    "RequestRejected",
    "RequestTimeout",
    "SendError",
    "SourceNotFound",
    "StateTransitionError",
    "VersionMismatch",
]
