"""Outbound notifications for the host application."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Union
from dataclasses import dataclass

from instant_replay.state.connection import ConnectionStatus
from instant_replay.state.replay import SavedClip, ReplayState

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class ConnectionStateChanged:
    status: ConnectionStatus
    epoch: int = 0


@dataclass(frozen=True, slots=True)
class ReplayStateChanged:
    old: ReplayState
    new: ReplayState


@dataclass(frozen=True, slots=True)
class ClipSaved:
    clip: SavedClip


@dataclass(frozen=True, slots=True)
class ErrorNotice:
    kind: str
    message: str
    fatal: bool = False


Notification = Union[ConnectionStateChanged, ReplayStateChanged, ClipSaved, ErrorNotice]


def notification_to_dict(notification: Notification) -> dict[str, Any]:
    if isinstance(notification, ConnectionStateChanged):
        return {"type": "connection", "status": notification.status.value, "epoch": notification.epoch}
    if isinstance(notification, ReplayStateChanged):
        return {"type": "replay_state", "old": notification.old.to_dict(), "new": notification.new.to_dict()}
    if isinstance(notification, ClipSaved):
        return {"type": "clip_saved", "clip": notification.clip.to_dict()}
    if isinstance(notification, ErrorNotice):
        return {
            "type": "error",
            "kind": notification.kind,
            "message": notification.message,
            "fatal": notification.fatal,
        }
    raise TypeError(f"unknown notification {type(notification).__name__}")


class NotificationHub:
    """Fans notifications out to bounded per-listener queues.

    Publishing never blocks; a full listener queue loses its oldest item.
    """

    def __init__(self, *, maxsize: int = 256) -> None:
        self._maxsize = max(1, int(maxsize))
        self._listeners: list[asyncio.Queue] = []
        self.published = 0

    @property
    def listener_count(self) -> int:
        return len(self._listeners)

    def subscribe(self, maxsize: int | None = None) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue(maxsize=self._maxsize if maxsize is None else max(1, int(maxsize)))
        self._listeners.append(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        if queue in self._listeners:
            self._listeners.remove(queue)

    def publish(self, notification: Notification) -> None:
        self.published += 1
        logger.debug("notify %s", notification)
        for queue in list(self._listeners):
            if queue.full():
                try:
                    queue.get_nowait()
                except asyncio.QueueEmpty:
                    pass
                logger.warning("notification listener is slow; dropped oldest notification")
            queue.put_nowait(notification)


__all__ = [
    "ClipSaved",
    "ConnectionStateChanged",
    "ErrorNotice",
    "Notification",
    "NotificationHub",
    "ReplayStateChanged",
    "notification_to_dict",
]
