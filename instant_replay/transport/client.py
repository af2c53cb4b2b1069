"""WebSocket transport to the remote control endpoint."""

from __future__ import annotations

import asyncio
import logging
from typing import Any
from collections.abc import Callable, AsyncIterator

import websockets
from websockets.exceptions import WebSocketException, ConnectionClosed as WebSocketClosed

from instant_replay.state.settings import HeartbeatSettings
from instant_replay.config.protocol import WS_SUBPROTOCOL, WS_CLOSE_NORMAL_CODE
from instant_replay.protocol import ConnectionClosed, IncomingMessage, decode_message
from instant_replay.errors import SendError, ConnectionError, MalformedMessage

from .heartbeat import HeartbeatMonitor

logger = logging.getLogger(__name__)

ConnectFn = Callable[..., Any]

# Close code used when the peer sent a frame we cannot parse.
WS_CLOSE_PROTOCOL_ERROR_CODE = 1002


def _close_details(exc: WebSocketClosed) -> tuple[int | None, str]:
    rcvd = getattr(exc, "rcvd", None)
    if rcvd is not None:
        return rcvd.code, rcvd.reason or ""
    return None, str(exc)


class TransportClient:
    """Owns exactly one socket connection.

    `messages()` yields decoded frames and always ends with a single
    `ConnectionClosed` item, whatever the cause.
    """

    def __init__(
        self,
        *,
        connect_timeout_s: float = 5.0,
        max_message_bytes: int | None = None,
        heartbeat: HeartbeatSettings | None = None,
        connect_fn: ConnectFn | None = None,
        epoch: int = 0,
    ) -> None:
        self._connect_timeout_s = float(connect_timeout_s)
        self._max_message_bytes = max_message_bytes
        self._heartbeat_settings = heartbeat
        self._connect_fn = connect_fn or websockets.connect
        self.epoch = epoch
        self._ws: Any | None = None
        self._heartbeat: HeartbeatMonitor | None = None
        self._close_reason: str | None = None
        self._closed = False
        self._sequence = 0

    @property
    def connected(self) -> bool:
        return self._ws is not None and not self._closed

    async def connect(self, url: str) -> None:
        if self._ws is not None:
            raise ConnectionError("transport already connected")
        if self._closed:
            raise ConnectionError("transport is closed")
        try:
            ws = await asyncio.wait_for(
                self._connect_fn(
                    url,
                    subprotocols=[WS_SUBPROTOCOL],
                    ping_interval=None,
                    ping_timeout=None,
                    max_size=self._max_message_bytes,
                    open_timeout=self._connect_timeout_s,
                ),
                timeout=self._connect_timeout_s,
            )
        except TimeoutError as exc:
            raise ConnectionError(f"timed out connecting to {url}") from exc
        except (OSError, WebSocketException) as exc:
            raise ConnectionError(f"failed to connect to {url}: {exc}") from exc

        if self._closed:
            # close() ran while the upgrade was in flight.
            try:
                await ws.close(code=WS_CLOSE_NORMAL_CODE, reason=self._close_reason or "")
            except Exception:
                logger.debug("transport close failed", exc_info=True)
            raise ConnectionError("transport closed during connect")

        self._ws = ws
        self._sequence = 0
        logger.debug("transport connected to %s", url)

        hb = self._heartbeat_settings
        if hb is not None and hb.interval_s > 0:
            self._heartbeat = HeartbeatMonitor(
                self._ping,
                self._on_heartbeat_failure,
                interval_s=hb.interval_s,
                timeout_s=hb.timeout_s,
                max_missed=hb.max_missed,
            )
            self._heartbeat.start()

    async def _ping(self) -> Any:
        if self._ws is None:
            raise SendError("transport is not connected")
        return await self._ws.ping()

    async def _on_heartbeat_failure(self, reason: str) -> None:
        logger.warning("closing transport: %s", reason)
        await self.close(reason=reason)

    async def send(self, data: bytes | str) -> None:
        if self._ws is None or self._closed:
            raise SendError("transport is not connected")
        text = data.decode("utf-8") if isinstance(data, bytes) else data
        try:
            await self._ws.send(text)
        except WebSocketClosed as exc:
            raise SendError(f"connection closed while sending: {exc}") from exc
        except OSError as exc:
            raise SendError(f"send failed: {exc}") from exc

    async def messages(self) -> AsyncIterator[IncomingMessage | ConnectionClosed]:
        ws = self._ws
        if ws is None or self._closed:
            yield ConnectionClosed(reason=self._close_reason or "not connected")
            return

        while True:
            try:
                raw = await ws.recv()
            except WebSocketClosed as exc:
                code, reason = _close_details(exc)
                yield ConnectionClosed(reason=self._close_reason or reason or "connection closed", code=code)
                return
            except OSError as exc:
                yield ConnectionClosed(reason=str(exc), error=ConnectionError(str(exc)))
                return

            self._sequence += 1
            try:
                message = decode_message(raw, sequence=self._sequence, epoch=self.epoch)
            except MalformedMessage as exc:
                logger.warning("malformed frame from server: %s", exc)
                await self.close(code=WS_CLOSE_PROTOCOL_ERROR_CODE, reason="malformed message")
                yield ConnectionClosed(reason=str(exc), code=WS_CLOSE_PROTOCOL_ERROR_CODE, error=exc)
                return
            yield message

    async def close(self, *, code: int = WS_CLOSE_NORMAL_CODE, reason: str = "") -> None:
        if self._closed:
            return
        self._closed = True
        if reason and self._close_reason is None:
            self._close_reason = reason

        heartbeat, self._heartbeat = self._heartbeat, None
        if heartbeat is not None:
            await heartbeat.stop()

        ws = self._ws
        if ws is None:
            return
        try:
            await ws.close(code=code, reason=reason)
        except Exception:
            logger.debug("transport close failed", exc_info=True)


__all__ = ["TransportClient"]
