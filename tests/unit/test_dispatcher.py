from __future__ import annotations

import asyncio

import orjson
import pytest

from instant_replay.state.settings import RequestSettings
from instant_replay.session.dispatcher import RequestDispatcher
from instant_replay.protocol import RequestStatus, RequestResponse, RequestBatchResponse
from instant_replay.errors import SendError, Cancelled, RequestTimeout, RequestRejected

from tests.utils.fakes import wait_until


class _Sender:
    def __init__(self) -> None:
        self.frames: list[dict] = []

    async def send(self, data: bytes) -> None:
        self.frames.append(orjson.loads(data))


def _ok(frame: dict, data: dict | None = None) -> RequestResponse:
    d = frame["d"]
    return RequestResponse(
        request_type=d["requestType"],
        request_id=d["requestId"],
        status=RequestStatus(result=True, code=100),
        data=data or {},
    )


def _dispatcher(timeout_s: float = 1.0, **timeouts: float) -> tuple[RequestDispatcher, _Sender]:
    dispatcher = RequestDispatcher(RequestSettings(default_timeout_s=timeout_s, timeouts=timeouts))
    sender = _Sender()
    dispatcher.bind(sender, 1)
    return dispatcher, sender


@pytest.mark.asyncio
async def test_reordered_responses_reach_their_own_callers() -> None:
    dispatcher, sender = _dispatcher()
    tasks = [asyncio.create_task(dispatcher.request("GetInputSettings", {"n": n})) for n in range(3)]
    await wait_until(lambda: len(sender.frames) == 3)

    assert [f["d"]["requestId"] for f in sender.frames] == ["1", "2", "3"]
    for frame in reversed(sender.frames):
        assert dispatcher.resolve(_ok(frame, {"n": frame["d"]["requestData"]["n"]}))

    results = await asyncio.gather(*tasks)
    assert [r.data["n"] for r in results] == [0, 1, 2]
    assert dispatcher.pending_count == 0


@pytest.mark.asyncio
async def test_timeout_removes_slot_and_late_response_is_dropped() -> None:
    dispatcher, sender = _dispatcher(timeout_s=5.0, SaveReplayBuffer=0.05)
    with pytest.raises(RequestTimeout) as exc:
        await dispatcher.request("SaveReplayBuffer")
    assert exc.value.request_type == "SaveReplayBuffer"
    assert exc.value.timeout_s == pytest.approx(0.05)
    assert dispatcher.pending_count == 0
    assert dispatcher.resolve(_ok(sender.frames[0])) is False


@pytest.mark.asyncio
async def test_explicit_timeout_overrides_per_kind_default() -> None:
    dispatcher, _ = _dispatcher(timeout_s=5.0)
    with pytest.raises(RequestTimeout):
        await dispatcher.request("GetReplayBufferStatus", timeout=0.02)


@pytest.mark.asyncio
async def test_failed_status_raises_rejected_for_that_caller_only() -> None:
    dispatcher, sender = _dispatcher()
    bad = asyncio.create_task(dispatcher.request("StartReplayBuffer"))
    good = asyncio.create_task(dispatcher.request("GetReplayBufferStatus"))
    await wait_until(lambda: len(sender.frames) == 2)

    first, second = sender.frames
    dispatcher.resolve(
        RequestResponse(
            request_type="StartReplayBuffer",
            request_id=first["d"]["requestId"],
            status=RequestStatus(result=False, code=500, comment="already active"),
        )
    )
    dispatcher.resolve(_ok(second, {"outputActive": True}))

    with pytest.raises(RequestRejected) as exc:
        await bad
    assert exc.value.code == 500
    assert exc.value.comment == "already active"
    assert (await good).data == {"outputActive": True}


@pytest.mark.asyncio
async def test_cancel_all_resolves_every_pending_request_once() -> None:
    dispatcher, sender = _dispatcher()
    tasks = [asyncio.create_task(dispatcher.request("SaveReplayBuffer")) for _ in range(3)]
    await wait_until(lambda: dispatcher.pending_count == 3)

    assert dispatcher.cancel_all("connection lost") == 3
    results = await asyncio.gather(*tasks, return_exceptions=True)
    assert all(isinstance(r, Cancelled) for r in results)
    assert all(r.reason == "connection lost" for r in results)

    # A response arriving after cancellation finds no slot.
    assert dispatcher.resolve(_ok(sender.frames[0])) is False
    assert dispatcher.cancel_all("again") == 0


@pytest.mark.asyncio
async def test_new_epoch_cancels_old_requests_and_restarts_ids() -> None:
    dispatcher, sender = _dispatcher()
    old = asyncio.create_task(dispatcher.request("GetReplayBufferStatus"))
    await wait_until(lambda: dispatcher.pending_count == 1)

    fresh_sender = _Sender()
    dispatcher.bind(fresh_sender, 2)
    with pytest.raises(Cancelled):
        await old

    new = asyncio.create_task(dispatcher.request("GetReplayBufferStatus"))
    await wait_until(lambda: len(fresh_sender.frames) == 1)
    assert fresh_sender.frames[0]["d"]["requestId"] == "1"
    assert dispatcher.epoch == 2
    dispatcher.resolve(_ok(fresh_sender.frames[0]))
    await new


@pytest.mark.asyncio
async def test_unbound_dispatcher_fails_fast() -> None:
    dispatcher = RequestDispatcher(RequestSettings(default_timeout_s=1.0))
    with pytest.raises(SendError):
        await dispatcher.request("SaveReplayBuffer")
    assert dispatcher.pending_count == 0


@pytest.mark.asyncio
async def test_batch_uses_item_ids_and_resolves_with_results() -> None:
    dispatcher, sender = _dispatcher()
    task = asyncio.create_task(
        dispatcher.request_batch(
            [("SetInputSettings", {"inputName": "Replay"}), ("TriggerMediaInputAction", None)],
            halt_on_failure=True,
        )
    )
    await wait_until(lambda: len(sender.frames) == 1)
    frame = sender.frames[0]
    assert frame["op"] == 8
    assert [r["requestId"] for r in frame["d"]["requests"]] == ["1.0", "1.1"]

    results = tuple(
        RequestResponse(request_type=r["requestType"], request_id=r["requestId"], status=RequestStatus(True, 100))
        for r in frame["d"]["requests"]
    )
    dispatcher.resolve(RequestBatchResponse(request_id="1", results=results))
    response = await task
    assert len(response.results) == 2


@pytest.mark.asyncio
async def test_empty_batch_is_rejected() -> None:
    dispatcher, _ = _dispatcher()
    with pytest.raises(ValueError):
        await dispatcher.request_batch([])


@pytest.mark.asyncio
async def test_caller_cancelled_while_waiting_to_send_frees_its_slot() -> None:
    dispatcher, sender = _dispatcher(timeout_s=5.0)
    gate = asyncio.Event()

    class _SlowSender:
        async def send(self, data: bytes) -> None:
            await gate.wait()
            sender.frames.append(orjson.loads(data))

    dispatcher.bind(_SlowSender(), 1)
    first = asyncio.create_task(dispatcher.request("GetInputSettings"))
    second = asyncio.create_task(dispatcher.request("GetInputSettings"))
    await wait_until(lambda: dispatcher.pending_count == 2)

    # The second caller is still queued on the send lock.
    second.cancel()
    with pytest.raises(asyncio.CancelledError):
        await second
    assert dispatcher.pending_count == 1

    first.cancel()
    with pytest.raises(asyncio.CancelledError):
        await first
    assert dispatcher.pending_count == 0
    assert sender.frames == []
