"""Queue-based routing of inbound events to subscribers by event kind."""

from __future__ import annotations

import asyncio
import logging
from typing import Any
from collections.abc import Iterable

from instant_replay.protocol import Event

logger = logging.getLogger(__name__)

_CLOSED = object()


class Subscription:
    """A bounded, ordered channel of events for one or more kinds.

    When the subscription owns its queue and the queue is full, the oldest
    event is dropped so the receive stream never blocks on a slow consumer.
    A subscription may instead feed an external queue (an actor inbox); in
    that case the queue should be unbounded.
    """

    def __init__(
        self,
        bus: EventBus,
        kinds: Iterable[str],
        *,
        queue: asyncio.Queue | None = None,
        maxsize: int = 0,
    ) -> None:
        self._bus = bus
        self.kinds = frozenset(kinds)
        self._owns_queue = queue is None
        self._queue: asyncio.Queue = queue if queue is not None else asyncio.Queue(maxsize=max(0, int(maxsize)))
        self._closed = False
        self.dropped = 0

    @property
    def closed(self) -> bool:
        return self._closed

    def _offer(self, item: Any) -> None:
        try:
            self._queue.put_nowait(item)
            return
        except asyncio.QueueFull:
            pass
        try:
            self._queue.get_nowait()
        except asyncio.QueueEmpty:
            pass
        self.dropped += 1
        if item is not _CLOSED:
            logger.warning("subscription for %s full; dropped oldest event (%s dropped)", sorted(self.kinds), self.dropped)
        self._queue.put_nowait(item)

    def deliver(self, event: Event) -> None:
        if not self._closed:
            self._offer(event)

    async def get(self) -> Event | None:
        """Next event, or None once the subscription is closed and drained."""
        if self._closed and self._queue.empty():
            return None
        item = await self._queue.get()
        if item is _CLOSED:
            return None
        return item

    def __aiter__(self) -> Subscription:
        return self

    async def __anext__(self) -> Event:
        event = await self.get()
        if event is None:
            raise StopAsyncIteration
        return event

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._bus.unsubscribe(self)
        if self._owns_queue:
            self._offer(_CLOSED)


class EventBus:
    """Delivers each event to every subscription of its kind, in registration order.

    Delivery is synchronous with respect to the caller (the connection read
    loop) and never awaits. Events of kinds nobody subscribed to are dropped.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, list[Subscription]] = {}
        self.published = 0

    def subscribe(self, *kinds: str, queue: asyncio.Queue | None = None, maxsize: int = 0) -> Subscription:
        if not kinds:
            raise ValueError("subscribe() needs at least one event kind")
        subscription = Subscription(self, kinds, queue=queue, maxsize=maxsize)
        for kind in subscription.kinds:
            self._subscribers.setdefault(kind, []).append(subscription)
        return subscription

    def unsubscribe(self, subscription: Subscription) -> None:
        for kind in subscription.kinds:
            subs = self._subscribers.get(kind)
            if not subs:
                continue
            if subscription in subs:
                subs.remove(subscription)
            if not subs:
                del self._subscribers[kind]

    def event_kinds(self) -> frozenset[str]:
        return frozenset(self._subscribers)

    def publish(self, event: Event) -> int:
        subs = self._subscribers.get(event.kind)
        if not subs:
            return 0
        self.published += 1
        # Copy: a subscriber may unsubscribe while we iterate.
        for subscription in list(subs):
            subscription.deliver(event)
        return len(subs)

    def close(self) -> None:
        seen: list[Subscription] = []
        for subs in self._subscribers.values():
            for subscription in subs:
                if subscription not in seen:
                    seen.append(subscription)
        for subscription in seen:
            subscription.close()


__all__ = ["EventBus", "Subscription"]
