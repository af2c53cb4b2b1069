"""Hello/Identify/Identified exchange."""

from __future__ import annotations

import asyncio
import logging
import contextlib
from typing import Any
from dataclasses import dataclass
from collections.abc import AsyncIterator

from instant_replay.transport import TransportClient
from instant_replay.state.settings import ConnectionSettings
from instant_replay.state.connection import Connection, ConnectionStatus
from instant_replay.errors import AuthError, ConnectionError, VersionMismatch, HandshakeTimeout
from instant_replay.config.protocol import WS_CLOSE_AUTH_FAILED_CODE, WS_CLOSE_UNSUPPORTED_RPC_CODE
from instant_replay.protocol import (
    Hello,
    Identify,
    Identified,
    ConnectionClosed,
    encode_message,
    compute_auth_response,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class SessionHandle:
    """An authenticated connection plus the receive stream positioned after the handshake."""

    connection: Connection
    transport: TransportClient
    messages: AsyncIterator[Any]


def _closed_error(item: ConnectionClosed, *, stage: str, settings: ConnectionSettings, requested: int) -> Exception:
    if item.error is not None:
        return item.error
    if item.code == WS_CLOSE_AUTH_FAILED_CODE:
        return AuthError(f"authentication failed: {item.reason or 'rejected by server'}")
    if item.code == WS_CLOSE_UNSUPPORTED_RPC_CODE:
        return VersionMismatch(
            version=requested,
            floor=settings.rpc_version_floor,
            ceiling=settings.rpc_version_ceiling,
        )
    return ConnectionError(f"server closed during {stage}: {item.reason or 'no reason'} (code={item.code})")


async def _await_message(
    stream: AsyncIterator[Any],
    expected: type,
    *,
    stage: str,
    settings: ConnectionSettings,
    requested: int = 0,
) -> Any:
    async for item in stream:
        if isinstance(item, ConnectionClosed):
            raise _closed_error(item, stage=stage, settings=settings, requested=requested)
        if isinstance(item, expected):
            return item
        logger.debug("ignoring %s during %s", type(item).__name__, stage)
    raise ConnectionError(f"receive stream ended during {stage}")


def _negotiate_version(hello: Hello, settings: ConnectionSettings) -> int:
    if hello.rpc_version < settings.rpc_version_floor:
        raise VersionMismatch(
            version=hello.rpc_version,
            floor=settings.rpc_version_floor,
            ceiling=settings.rpc_version_ceiling,
        )
    return min(settings.rpc_version_ceiling, hello.rpc_version)


def _authentication(hello: Hello, password: str | None) -> str | None:
    challenge = hello.authentication
    if challenge is None:
        return None
    if not password:
        raise AuthError("server requires authentication but no password is configured")
    return compute_auth_response(password, challenge.challenge, challenge.salt)


async def open_session(
    transport: TransportClient,
    settings: ConnectionSettings,
    *,
    epoch: int,
    event_subscriptions: int | None = None,
) -> SessionHandle:
    """Connect, authenticate and identify. Closes the transport on any failure."""
    subscriptions = settings.event_subscriptions if event_subscriptions is None else event_subscriptions
    try:
        await transport.connect(settings.url)
        stream = transport.messages()
        try:
            async with asyncio.timeout(settings.handshake_timeout_s):
                hello = await _await_message(stream, Hello, stage="hello", settings=settings)
                requested = _negotiate_version(hello, settings)
                identify = Identify(
                    rpc_version=requested,
                    event_subscriptions=subscriptions,
                    authentication=_authentication(hello, settings.password),
                )
                await transport.send(encode_message(identify))
                identified = await _await_message(
                    stream,
                    Identified,
                    stage="identify",
                    settings=settings,
                    requested=requested,
                )
        except TimeoutError as exc:
            raise HandshakeTimeout(f"handshake not completed within {settings.handshake_timeout_s:.1f}s") from exc

        negotiated = identified.negotiated_rpc_version
        if not (settings.rpc_version_floor <= negotiated <= settings.rpc_version_ceiling):
            raise VersionMismatch(
                version=negotiated,
                floor=settings.rpc_version_floor,
                ceiling=settings.rpc_version_ceiling,
            )
    except BaseException:
        with contextlib.suppress(Exception):
            await transport.close()
        raise

    connection = Connection(
        host=settings.host,
        port=settings.port,
        password=settings.password,
        epoch=epoch,
        rpc_version=negotiated,
        status=ConnectionStatus.READY,
    )
    logger.info(
        "identified with %s (server %s, rpc v%s, epoch %s)",
        settings.url,
        hello.obs_web_socket_version or "unknown",
        negotiated,
        epoch,
    )
    return SessionHandle(connection=connection, transport=transport, messages=stream)


__all__ = ["SessionHandle", "open_session"]
