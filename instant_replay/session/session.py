"""Explicit lifecycle object for one replay control session."""

from __future__ import annotations

import logging
from dataclasses import replace

from instant_replay.transport import TransportClient
from instant_replay.state.settings import AppSettings, ConnectionSettings
from instant_replay.notifications import NotificationHub
from instant_replay.config.protocol import REQ_SAVE_REPLAY_BUFFER
from instant_replay.state.connection import Connection, ConnectionStatus
from instant_replay.runtime.output_capture import OutputCapture
from instant_replay.replay.source import SourceController
from instant_replay.replay.controller import ReplayController

from .bus import EventBus
from .dispatcher import RequestDispatcher
from .supervisor import TransportFactory, ReconnectSupervisor

logger = logging.getLogger(__name__)


class ReplaySession:
    """Owns every component of a session and tears them down in order.

    Nothing connects until `start()`. Output capture is active from `start()`
    until `close()` returns, on every exit path.
    """

    def __init__(
        self,
        settings: AppSettings,
        *,
        notifier: NotificationHub | None = None,
        transport_factory: TransportFactory | None = None,
        capture: OutputCapture | None = None,
    ) -> None:
        self.settings = settings
        self.notifier = notifier or NotificationHub(maxsize=settings.server.notification_queue_max)
        self.bus = EventBus()
        self.dispatcher = RequestDispatcher(settings.requests)
        self.source = SourceController(
            self.dispatcher,
            source_name=settings.replay.source_name,
            source_kind=settings.replay.source_kind,
        )
        self.controller = ReplayController(
            self.dispatcher,
            self.source,
            notifier=self.notifier,
            save_delay_s=settings.replay.save_delay_s,
            clip_history=settings.replay.clip_history,
            confirm_timeout_s=settings.requests.timeout_for(REQ_SAVE_REPLAY_BUFFER),
        )
        self.controller.attach(self.bus)
        self._transport_factory = transport_factory
        self._capture = capture or OutputCapture()
        self._connection_settings = settings.connection
        self._supervisor: ReconnectSupervisor | None = None

    @property
    def running(self) -> bool:
        return self._supervisor is not None and self._supervisor.running

    @property
    def status(self) -> ConnectionStatus:
        if self._supervisor is None:
            return ConnectionStatus.DISCONNECTED
        return self._supervisor.status

    @property
    def connection(self) -> Connection | None:
        return self._supervisor.connection if self._supervisor is not None else None

    @property
    def connection_settings(self) -> ConnectionSettings:
        return self._connection_settings

    @property
    def supervisor(self) -> ReconnectSupervisor | None:
        return self._supervisor

    def _make_transport(self, epoch: int) -> TransportClient:
        if self._transport_factory is not None:
            return self._transport_factory(epoch)
        conn = self._connection_settings
        return TransportClient(
            connect_timeout_s=conn.connect_timeout_s,
            max_message_bytes=conn.max_message_bytes,
            heartbeat=self.settings.heartbeat,
            epoch=epoch,
        )

    async def start(
        self,
        *,
        host: str | None = None,
        port: int | None = None,
        password: str | None = None,
    ) -> None:
        """Begin connecting (and reconnecting) in the background."""
        if self.running:
            raise RuntimeError("already running")
        if self._supervisor is not None:
            # The previous run ended on its own (fatal error); release it first.
            await self.close()

        overrides = {}
        if host is not None:
            overrides["host"] = host
        if port is not None:
            overrides["port"] = port
        if password is not None:
            overrides["password"] = password or None
        self._connection_settings = replace(self.settings.connection, **overrides)

        self._capture.__enter__()
        try:
            self.controller.start()
            self._supervisor = ReconnectSupervisor(
                self._connection_settings,
                self.settings.reconnect,
                dispatcher=self.dispatcher,
                bus=self.bus,
                notifier=self.notifier,
                transport_factory=self._make_transport,
                on_ready=self.controller.connection_ready,
                on_lost=self.controller.connection_lost,
            )
            self._supervisor.start()
        except BaseException:
            self._capture.__exit__(None, None, None)
            raise
        logger.info("session started for %s", self._connection_settings.url)

    async def wait_ready(self, timeout: float | None = None) -> bool:
        if self._supervisor is None:
            return False
        return await self._supervisor.wait_ready(timeout)

    async def update_event_subscriptions(self) -> int:
        """Re-send the subscription mask after subscribers changed mid-connection."""
        if self._supervisor is None:
            raise RuntimeError("session is not running")
        mask = self._supervisor.subscription_mask()
        await self.dispatcher.reidentify(mask)
        logger.info("event subscriptions updated: mask=%s kinds=%s", mask, sorted(self.bus.event_kinds()))
        return mask

    async def close(self) -> None:
        supervisor, self._supervisor = self._supervisor, None
        if supervisor is None:
            return
        try:
            await supervisor.stop()
            await self.controller.close()
            self.dispatcher.cancel_all("session closed")
        finally:
            if self._capture.active:
                self._capture.__exit__(None, None, None)
        logger.info("session closed")

    async def __aenter__(self) -> ReplaySession:
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()


__all__ = ["ReplaySession"]
