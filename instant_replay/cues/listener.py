"""UDP listener turning game cues into replay saves."""

from __future__ import annotations

import asyncio
import logging
import contextlib
from typing import Any

from instant_replay.state.settings import CueSettings

from .parser import parse_cue, normalize_command

logger = logging.getLogger(__name__)

# Datagrams waiting for the pump; older ones are dropped when it falls behind.
CUE_QUEUE_MAX = 64


class _CueProtocol(asyncio.DatagramProtocol):
    def __init__(self, queue: asyncio.Queue) -> None:
        self._queue = queue

    def datagram_received(self, data: bytes, addr: Any) -> None:
        if self._queue.full():
            with contextlib.suppress(asyncio.QueueEmpty):
                self._queue.get_nowait()
            logger.warning("cue queue full; dropped oldest datagram")
        self._queue.put_nowait(data)

    def error_received(self, exc: Exception) -> None:
        logger.warning("cue socket error: %s", exc)


class CueListener:
    """Receives cue datagrams and forwards trigger commands to `controller.cue()`.

    Commands outside the trigger set are logged and ignored, as are datagrams
    that do not parse.
    """

    def __init__(self, controller: Any, settings: CueSettings) -> None:
        self._controller = controller
        self._settings = settings
        self._triggers = frozenset(normalize_command(name) for name in settings.triggers)
        self._queue: asyncio.Queue = asyncio.Queue(maxsize=CUE_QUEUE_MAX)
        self._transport: asyncio.DatagramTransport | None = None
        self._task: asyncio.Task | None = None
        self.received = 0
        self.triggered = 0

    @property
    def address(self) -> tuple[str, int] | None:
        if self._transport is None:
            return None
        sockname = self._transport.get_extra_info("sockname")
        return (sockname[0], sockname[1]) if sockname else None

    async def start(self) -> None:
        if self._transport is not None:
            return
        loop = asyncio.get_running_loop()
        transport, _ = await loop.create_datagram_endpoint(
            lambda: _CueProtocol(self._queue),
            local_addr=(self._settings.host, self._settings.port),
        )
        self._transport = transport
        self._task = asyncio.create_task(self._pump())
        host, port = self.address or (self._settings.host, self._settings.port)
        logger.info("listening for cues on %s:%s (triggers: %s)", host, port, sorted(self._triggers))

    def handle(self, data: bytes) -> bool:
        """Process one datagram; True if it scheduled a save."""
        self.received += 1
        try:
            command = parse_cue(data)
        except ValueError as exc:
            logger.error("failed to parse cue %r: %s", data[:64], exc)
            return False
        if command not in self._triggers:
            logger.debug("cue %s is not a trigger", command)
            return False
        try:
            self._controller.cue(command)
        except RuntimeError as exc:
            logger.warning("cue %s dropped: %s", command, exc)
            return False
        self.triggered += 1
        return True

    async def _pump(self) -> None:
        while True:
            data = await self._queue.get()
            self.handle(data)

    async def close(self) -> None:
        transport, self._transport = self._transport, None
        if transport is not None:
            transport.close()
        task, self._task = self._task, None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task


__all__ = ["CueListener"]
