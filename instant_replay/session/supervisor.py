"""Connection supervision: handshake, read loop, reconnect with backoff."""

from __future__ import annotations

import time
import asyncio
import logging
import contextlib
from collections.abc import Callable

from instant_replay.transport import TransportClient
from instant_replay.notifications import ErrorNotice, NotificationHub, ConnectionStateChanged
from instant_replay.config.protocol import EVT_EXIT_STARTED, EVENT_KIND_SUBSCRIPTIONS
from instant_replay.state.connection import Connection, ConnectionStatus
from instant_replay.state.settings import ConnectionSettings, ReconnectSettings
from instant_replay.errors import (
    AuthError,
    ReplayError,
    ConnectionError,
    VersionMismatch,
    HandshakeTimeout,
    ProtocolViolation,
)
from instant_replay.protocol import (
    Event,
    UnknownMessage,
    RequestResponse,
    ConnectionClosed,
    RequestBatchResponse,
)

from .bus import EventBus
from .backoff import Backoff
from .dispatcher import RequestDispatcher
from .handshake import SessionHandle, open_session

logger = logging.getLogger(__name__)

TransportFactory = Callable[[int], TransportClient]
ReadyCallback = Callable[[Connection], None]
LostCallback = Callable[[str], None]

STOP_REASON = "session closed"
# How long stop() waits for the loop to wind down after the socket is closed.
STOP_GRACE_S = 2.0


class ReconnectSupervisor:
    """Keeps one connection alive for a session.

    Each attempt gets a fresh epoch and a fresh transport. When the read loop
    ends, pending requests are cancelled and the replay side is told the link
    is gone before the next attempt is scheduled. Auth and version failures
    are not retried; a handshake that merely runs out of time is.
    """

    def __init__(
        self,
        settings: ConnectionSettings,
        reconnect: ReconnectSettings,
        *,
        dispatcher: RequestDispatcher,
        bus: EventBus,
        notifier: NotificationHub,
        transport_factory: TransportFactory,
        on_ready: ReadyCallback | None = None,
        on_lost: LostCallback | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings
        self._reconnect = reconnect
        self._dispatcher = dispatcher
        self._bus = bus
        self._notifier = notifier
        self._transport_factory = transport_factory
        self._on_ready = on_ready
        self._on_lost = on_lost
        self._clock = clock
        self.backoff = Backoff(
            min_delay_s=reconnect.min_delay_s,
            max_delay_s=reconnect.max_delay_s,
            multiplier=reconnect.multiplier,
        )
        self._epoch = 0
        self._status = ConnectionStatus.DISCONNECTED
        self._connection: Connection | None = None
        self._transport: TransportClient | None = None
        self._stop_event = asyncio.Event()
        self._ready = asyncio.Event()
        self._task: asyncio.Task | None = None
        self.last_error: BaseException | None = None

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def status(self) -> ConnectionStatus:
        return self._status

    @property
    def connection(self) -> Connection | None:
        return self._connection

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def subscription_mask(self) -> int:
        mask = self._settings.event_subscriptions
        for kind in self._bus.event_kinds():
            mask |= EVENT_KIND_SUBSCRIPTIONS.get(kind, 0)
        return mask

    def start(self) -> asyncio.Task:
        if self._task is None:
            self._stop_event.clear()
            self._task = asyncio.create_task(self._run())
        return self._task

    async def wait_ready(self, timeout: float | None = None) -> bool:
        """Wait until a connection is identified; False on timeout or if the loop has ended."""
        if self._task is None:
            return False
        ready = asyncio.create_task(self._ready.wait())
        try:
            await asyncio.wait({ready, self._task}, timeout=timeout, return_when=asyncio.FIRST_COMPLETED)
        finally:
            ready.cancel()
        return self._ready.is_set()

    async def stop(self) -> None:
        self._stop_event.set()
        task = self._task
        if task is None:
            return
        transport = self._transport
        if transport is not None:
            with contextlib.suppress(Exception):
                await transport.close(reason=STOP_REASON)
        done, _ = await asyncio.wait({task}, timeout=STOP_GRACE_S)
        if not done:
            task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task
        self._task = None

    def _set_status(self, status: ConnectionStatus) -> None:
        if status is self._status:
            return
        self._status = status
        self._notifier.publish(ConnectionStateChanged(status=status, epoch=self._epoch))

    def _fatal(self, kind: str, exc: BaseException) -> None:
        self.last_error = exc
        logger.error("connection failed permanently: %s", exc)
        self._notifier.publish(ErrorNotice(kind=kind, message=str(exc), fatal=True))

    def _attempt_failed(self, exc: ReplayError) -> None:
        self.last_error = exc
        logger.warning("connect attempt %s to %s failed: %s", self._epoch, self._settings.url, exc)
        self._set_status(ConnectionStatus.DISCONNECTED)

    async def _run(self) -> None:
        try:
            while not self._stop_event.is_set():
                self._epoch += 1
                transport = self._transport_factory(self._epoch)
                self._transport = transport
                self._set_status(ConnectionStatus.HANDSHAKING)
                try:
                    handle = await open_session(
                        transport,
                        self._settings,
                        epoch=self._epoch,
                        event_subscriptions=self.subscription_mask(),
                    )
                except HandshakeTimeout as exc:
                    self._attempt_failed(exc)
                except AuthError as exc:
                    self._fatal("auth", exc)
                    return
                except VersionMismatch as exc:
                    self._fatal("version", exc)
                    return
                except ReplayError as exc:
                    self._attempt_failed(exc)
                else:
                    if self._stop_event.is_set():
                        # stop() arrived while the handshake was finishing.
                        with contextlib.suppress(Exception):
                            await transport.close(reason=STOP_REASON)
                        return
                    connected_at = self._clock()
                    reason = await self._serve(handle)
                    if self._clock() - connected_at >= self._reconnect.grace_s:
                        self.backoff.reset()
                    logger.info("connection epoch %s ended: %s", handle.connection.epoch, reason)
                finally:
                    self._transport = None

                if self._stop_event.is_set():
                    return
                delay = self.backoff.next_delay()
                max_attempts = self._reconnect.max_attempts
                if max_attempts > 0 and self.backoff.failures >= max_attempts:
                    self._fatal(
                        "connection",
                        ConnectionError(f"gave up after {max_attempts} attempts: {self.last_error or 'connection lost'}"),
                    )
                    return
                logger.info("reconnecting in %.1fs (attempt %s)", delay, self.backoff.failures + 1)
                with contextlib.suppress(TimeoutError):
                    await asyncio.wait_for(self._stop_event.wait(), timeout=delay)
        finally:
            self._set_status(ConnectionStatus.DISCONNECTED)

    async def _serve(self, handle: SessionHandle) -> str:
        transport = handle.transport
        self._connection = handle.connection
        self._dispatcher.bind(transport, handle.connection.epoch)
        self._set_status(ConnectionStatus.READY)
        self._ready.set()
        if self._on_ready is not None:
            self._on_ready(handle.connection)
        logger.info("subscribed event kinds: %s", sorted(self._bus.event_kinds()))

        reason = "connection closed"
        try:
            reason = await self._read_loop(handle)
        except ProtocolViolation as exc:
            reason = f"protocol violation: {exc}"
            logger.warning("closing connection: %s", reason)
        finally:
            self._ready.clear()
            self._connection = None
            self._dispatcher.unbind()
            if self._stop_event.is_set():
                reason = STOP_REASON
            self._set_status(ConnectionStatus.CLOSING)
            self._dispatcher.cancel_all(reason)
            with contextlib.suppress(Exception):
                await transport.close(reason=reason)
            if self._on_lost is not None:
                self._on_lost(reason)
            self._set_status(ConnectionStatus.DISCONNECTED)
        return reason

    async def _read_loop(self, handle: SessionHandle) -> str:
        async for item in handle.messages:
            if isinstance(item, ConnectionClosed):
                if item.error is not None:
                    self.last_error = item.error
                return item.reason or f"closed with code {item.code}"
            if isinstance(item, (RequestResponse, RequestBatchResponse)):
                self._dispatcher.resolve(item)
            elif isinstance(item, Event):
                if item.kind == EVT_EXIT_STARTED:
                    logger.info("remote application is shutting down")
                self._bus.publish(item)
            elif isinstance(item, UnknownMessage):
                logger.debug("ignoring unknown opcode %s", item.op)
            else:
                raise ProtocolViolation(f"unexpected {type(item).__name__} after identification")
        return "receive stream ended"


__all__ = ["ReconnectSupervisor", "STOP_REASON"]
