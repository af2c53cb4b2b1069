"""Connection heartbeat (ping/pong liveness enforcement)."""

from __future__ import annotations

import asyncio
import logging
import contextlib
from typing import Any
from collections.abc import Callable, Awaitable

logger = logging.getLogger(__name__)

PingFn = Callable[[], Awaitable[Awaitable[Any]]]
FailureFn = Callable[[str], Awaitable[None]]

HEARTBEAT_TIMEOUT_REASON = "heartbeat timeout"


class HeartbeatMonitor:
    """Ping the peer every interval; fail the connection after too many missed pongs.

    Disabled if interval_s <= 0.
    """

    def __init__(
        self,
        ping_fn: PingFn,
        on_failure: FailureFn,
        *,
        interval_s: float,
        timeout_s: float,
        max_missed: int,
    ) -> None:
        self._ping_fn = ping_fn
        self._on_failure = on_failure
        self._interval_s = float(interval_s)
        self._timeout_s = float(timeout_s)
        self._max_missed = max(0, int(max_missed))
        self._missed = 0
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task | None = None

    @property
    def enabled(self) -> bool:
        return self._interval_s > 0

    @property
    def missed(self) -> int:
        return self._missed

    def start(self) -> asyncio.Task | None:
        if not self.enabled:
            return None
        if self._task is None:
            self._task = asyncio.create_task(self._loop())
        return self._task

    async def stop(self) -> None:
        self._stop_event.set()
        task, self._task = self._task, None
        if task is None or task is asyncio.current_task():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError, Exception):
            await task

    async def _ping_once(self) -> bool:
        waiter = await self._ping_fn()
        try:
            await asyncio.wait_for(waiter, timeout=self._timeout_s)
        except TimeoutError:
            return False
        return True

    async def _loop(self) -> None:
        try:
            while not self._stop_event.is_set():
                await asyncio.sleep(self._interval_s)
                if self._stop_event.is_set():
                    break
                if await self._ping_once():
                    self._missed = 0
                    continue
                self._missed += 1
                logger.warning("heartbeat reply missed (%s/%s)", self._missed, self._max_missed + 1)
                if self._missed > self._max_missed:
                    self._stop_event.set()
                    await self._on_failure(HEARTBEAT_TIMEOUT_REASON)
                    break
        except asyncio.CancelledError:
            return
        except Exception:
            # The read loop observes the closed socket; nothing to report here.
            logger.debug("heartbeat exiting due to unexpected error", exc_info=True)


__all__ = ["HEARTBEAT_TIMEOUT_REASON", "HeartbeatMonitor"]
