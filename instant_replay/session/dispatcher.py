"""Correlated request/response dispatch over one connection epoch."""

from __future__ import annotations

import asyncio
import logging
import itertools
from typing import Any
from collections.abc import Iterator, Sequence
from dataclasses import field, dataclass

from instant_replay.state.settings import RequestSettings
from instant_replay.errors import SendError, Cancelled, RequestTimeout, RequestRejected
from instant_replay.protocol import (
    Request,
    Reidentify,
    RequestBatch,
    RequestResponse,
    RequestBatchResponse,
    encode_message,
)

logger = logging.getLogger(__name__)

BATCH_REQUEST_KIND = "RequestBatch"


@dataclass(slots=True)
class PendingRequest:
    request_id: str
    request_type: str
    payload: Any
    future: asyncio.Future
    deadline: float
    timeout_s: float
    batch: bool = False
    timer: asyncio.TimerHandle | None = field(default=None, repr=False)


class RequestDispatcher:
    """Assigns correlation ids, tracks pending requests and matches responses by id.

    The pending map is only touched from synchronous code running on the event
    loop (register, resolve, expire, cancel_all), so it needs no lock. Frames are
    written under one send lock so concurrent callers never interleave.
    """

    def __init__(self, settings: RequestSettings) -> None:
        self._settings = settings
        self._pending: dict[str, PendingRequest] = {}
        self._sender: Any | None = None
        self._epoch = 0
        self._ids: Iterator[int] = itertools.count(1)
        self._send_lock = asyncio.Lock()

    @property
    def epoch(self) -> int:
        return self._epoch

    @property
    def bound(self) -> bool:
        return self._sender is not None

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    def bind(self, sender: Any, epoch: int) -> None:
        if epoch != self._epoch:
            # Ids restart with each new epoch; nothing from the old one may still be pending.
            self.cancel_all("connection epoch changed")
            self._epoch = epoch
            self._ids = itertools.count(1)
        self._sender = sender

    def unbind(self) -> None:
        self._sender = None

    def _next_id(self) -> str:
        return str(next(self._ids))

    def _register(self, request_type: str, payload: Any, timeout: float | None, *, batch: bool) -> PendingRequest:
        loop = asyncio.get_running_loop()
        timeout_s = float(timeout if timeout is not None else self._settings.timeout_for(request_type))
        request_id = self._next_id()
        pending = PendingRequest(
            request_id=request_id,
            request_type=request_type,
            payload=payload,
            future=loop.create_future(),
            deadline=loop.time() + timeout_s,
            timeout_s=timeout_s,
            batch=batch,
        )
        pending.timer = loop.call_at(pending.deadline, self._expire, request_id)
        self._pending[request_id] = pending
        return pending

    def _pop(self, request_id: str) -> PendingRequest | None:
        pending = self._pending.pop(request_id, None)
        if pending is not None and pending.timer is not None:
            pending.timer.cancel()
            pending.timer = None
        return pending

    def _expire(self, request_id: str) -> None:
        pending = self._pop(request_id)
        if pending is None or pending.future.done():
            return
        logger.warning("request %s (id=%s) timed out after %.1fs", pending.request_type, request_id, pending.timeout_s)
        pending.future.set_exception(
            RequestTimeout(request_type=pending.request_type, request_id=request_id, timeout_s=pending.timeout_s)
        )

    def _fail(self, request_id: str, exc: BaseException) -> None:
        pending = self._pop(request_id)
        if pending is not None and not pending.future.done():
            pending.future.set_exception(exc)

    async def _write(self, data: bytes) -> None:
        async with self._send_lock:
            sender = self._sender
            if sender is None:
                raise SendError("not connected")
            await sender.send(data)

    async def _submit(self, pending: PendingRequest, data: bytes) -> Any:
        try:
            try:
                await self._write(data)
            except SendError as exc:
                self._fail(pending.request_id, exc)
            return await pending.future
        finally:
            # Caller cancelled or request settled; either way the slot is gone.
            self._pop(pending.request_id)

    async def request(
        self,
        request_type: str,
        data: dict[str, Any] | None = None,
        *,
        timeout: float | None = None,
    ) -> RequestResponse:
        pending = self._register(request_type, data, timeout, batch=False)
        frame = encode_message(Request(request_type=request_type, request_id=pending.request_id, request_data=data))
        logger.debug("-> %s (id=%s)", request_type, pending.request_id)
        return await self._submit(pending, frame)

    async def request_batch(
        self,
        requests: Sequence[tuple[str, dict[str, Any] | None]],
        *,
        halt_on_failure: bool = False,
        timeout: float | None = None,
    ) -> RequestBatchResponse:
        if not requests:
            raise ValueError("request batch must not be empty")
        if timeout is None:
            timeout = max(self._settings.timeout_for(request_type) for request_type, _ in requests)
        pending = self._register(BATCH_REQUEST_KIND, list(requests), timeout, batch=True)
        items = tuple(
            Request(request_type=request_type, request_id=f"{pending.request_id}.{index}", request_data=data)
            for index, (request_type, data) in enumerate(requests)
        )
        frame = encode_message(
            RequestBatch(request_id=pending.request_id, requests=items, halt_on_failure=halt_on_failure)
        )
        logger.debug("-> batch of %s (id=%s)", len(items), pending.request_id)
        return await self._submit(pending, frame)

    async def reidentify(self, event_subscriptions: int) -> None:
        await self._write(encode_message(Reidentify(event_subscriptions=event_subscriptions)))

    def resolve(self, response: RequestResponse | RequestBatchResponse) -> bool:
        pending = self._pop(response.request_id)
        if pending is None:
            logger.debug("dropping response for unknown request id=%s", response.request_id)
            return False
        if pending.future.done():
            return False
        if isinstance(response, RequestResponse) and not response.status.result:
            pending.future.set_exception(
                RequestRejected(
                    code=response.status.code,
                    comment=response.status.comment,
                    request_type=response.request_type,
                )
            )
            return True
        pending.future.set_result(response)
        return True

    def cancel_all(self, reason: str) -> int:
        cancelled = 0
        for request_id in list(self._pending):
            pending = self._pop(request_id)
            if pending is None or pending.future.done():
                continue
            pending.future.set_exception(Cancelled(reason=reason))
            cancelled += 1
        if cancelled:
            logger.info("cancelled %s pending request(s): %s", cancelled, reason)
        return cancelled


__all__ = ["PendingRequest", "RequestDispatcher"]
