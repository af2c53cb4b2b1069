"""Connection state (dataclasses only)."""

from __future__ import annotations

import enum
from dataclasses import dataclass


class ConnectionStatus(str, enum.Enum):
    DISCONNECTED = "disconnected"
    HANDSHAKING = "handshaking"
    READY = "ready"
    CLOSING = "closing"


@dataclass(frozen=True, slots=True)
class Connection:
    """One authenticated connection epoch. Replaced, never mutated, on reconnect."""

    host: str
    port: int
    password: str | None
    epoch: int
    rpc_version: int = 0
    status: ConnectionStatus = ConnectionStatus.DISCONNECTED

    def __repr__(self) -> str:
        # Keep the secret out of logs.
        return (
            f"Connection(host={self.host!r}, port={self.port}, epoch={self.epoch}, "
            f"rpc_version={self.rpc_version}, status={self.status.value})"
        )


__all__ = ["Connection", "ConnectionStatus"]
