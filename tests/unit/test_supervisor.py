from __future__ import annotations

import asyncio

import pytest

from instant_replay.errors import Cancelled, HandshakeTimeout
from instant_replay.session.bus import EventBus
from instant_replay.state.connection import ConnectionStatus
from instant_replay.session.supervisor import ReconnectSupervisor
from instant_replay.session.dispatcher import RequestDispatcher
from instant_replay.notifications import ErrorNotice, NotificationHub, ConnectionStateChanged
from instant_replay.config.protocol import EVENT_SUB_OUTPUTS, EVENT_SUB_MEDIA_INPUTS

from tests.utils.fakes import FakeObsPeer, FakeTransport, wait_until, make_settings, failing_factory


def _drain(queue: asyncio.Queue) -> list:
    items = []
    while not queue.empty():
        items.append(queue.get_nowait())
    return items


def _supervisor(settings, factory, **kwargs) -> tuple[ReconnectSupervisor, RequestDispatcher, EventBus, NotificationHub]:
    dispatcher = RequestDispatcher(settings.requests)
    bus = EventBus()
    hub = NotificationHub()
    supervisor = ReconnectSupervisor(
        settings.connection,
        settings.reconnect,
        dispatcher=dispatcher,
        bus=bus,
        notifier=hub,
        transport_factory=factory,
        **kwargs,
    )
    return supervisor, dispatcher, bus, hub


@pytest.mark.asyncio
async def test_reconnect_cancels_pending_requests_and_bumps_epoch() -> None:
    settings = make_settings()
    peer = FakeObsPeer()
    peer.silent.add("SaveReplayBuffer")
    lost: list[str] = []
    supervisor, dispatcher, _, _ = _supervisor(settings, peer.factory, on_lost=lost.append)
    supervisor.start()
    try:
        assert await supervisor.wait_ready(1.0)
        assert dispatcher.epoch == 1

        pending = asyncio.create_task(dispatcher.request("SaveReplayBuffer"))
        await wait_until(lambda: dispatcher.pending_count == 1)
        peer.transport.drop(reason="remote went away")

        with pytest.raises(Cancelled):
            await pending
        assert dispatcher.pending_count == 0

        await wait_until(lambda: len(peer.transports) == 2 and supervisor.status is ConnectionStatus.READY)
        assert dispatcher.epoch == 2
        assert lost == ["remote went away"]

        # Ids restart with the new epoch.
        peer.silent.clear()
        await dispatcher.request("GetReplayBufferStatus")
        assert peer.requests[-1]["requestId"] == "1"
    finally:
        await supervisor.stop()


@pytest.mark.asyncio
async def test_events_are_routed_to_the_bus() -> None:
    settings = make_settings()
    peer = FakeObsPeer()
    supervisor, _, bus, _ = _supervisor(settings, peer.factory)
    sub = bus.subscribe("ReplayBufferSaved", maxsize=4)
    supervisor.start()
    try:
        assert await supervisor.wait_ready(1.0)
        peer.emit("ReplayBufferSaved", {"savedReplayPath": "/x.mkv"})
        event = await asyncio.wait_for(sub.get(), timeout=1.0)
        assert event.payload.saved_replay_path == "/x.mkv"
        assert event.epoch == 1
    finally:
        await supervisor.stop()


@pytest.mark.asyncio
async def test_identify_mask_includes_subscribed_event_kinds() -> None:
    settings = make_settings()
    peer = FakeObsPeer()
    supervisor, _, bus, _ = _supervisor(settings, peer.factory)
    bus.subscribe("ReplayBufferSaved", "MediaInputPlaybackEnded")
    supervisor.start()
    try:
        assert await supervisor.wait_ready(1.0)
        mask = peer.transport.sent[0]["d"]["eventSubscriptions"]
        assert mask & EVENT_SUB_OUTPUTS
        assert mask & EVENT_SUB_MEDIA_INPUTS
    finally:
        await supervisor.stop()


@pytest.mark.asyncio
async def test_auth_failure_is_fatal_and_not_retried() -> None:
    settings = make_settings(password="wrong")
    peer = FakeObsPeer(password="right")
    supervisor, _, _, hub = _supervisor(settings, peer.factory)
    queue = hub.subscribe()
    task = supervisor.start()

    await asyncio.wait_for(task, timeout=1.0)
    assert len(peer.transports) == 1
    assert supervisor.status is ConnectionStatus.DISCONNECTED
    notices = [n for n in _drain(queue) if isinstance(n, ErrorNotice)]
    assert [(n.kind, n.fatal) for n in notices] == [("auth", True)]
    await supervisor.stop()


@pytest.mark.asyncio
async def test_gives_up_after_max_attempts() -> None:
    settings = make_settings(max_attempts=3)
    attempts: list[int] = []
    fail = failing_factory()

    def factory(epoch: int):
        attempts.append(epoch)
        return fail(epoch)

    supervisor, _, _, hub = _supervisor(settings, factory)
    queue = hub.subscribe()
    task = supervisor.start()

    await asyncio.wait_for(task, timeout=2.0)
    assert attempts == [1, 2, 3]
    notices = [n for n in _drain(queue) if isinstance(n, ErrorNotice)]
    assert len(notices) == 1
    assert notices[0].kind == "connection"
    assert notices[0].fatal
    await supervisor.stop()


@pytest.mark.asyncio
async def test_backoff_resets_after_grace_period() -> None:
    now = [0.0]
    settings = make_settings(grace_s=5.0, min_delay_s=0.01, max_delay_s=1.0)
    peer = FakeObsPeer()
    supervisor, _, _, _ = _supervisor(settings, peer.factory, clock=lambda: now[0])
    supervisor.backoff.next_delay()
    supervisor.backoff.next_delay()
    supervisor.start()
    try:
        assert await supervisor.wait_ready(1.0)
        now[0] = 10.0
        peer.transport.drop()
        await wait_until(lambda: len(peer.transports) == 2)
        # Reset happened before the delay for this reconnect was taken.
        assert supervisor.backoff.failures == 1
    finally:
        await supervisor.stop()


@pytest.mark.asyncio
async def test_stop_reports_disconnected_and_skips_reconnect() -> None:
    settings = make_settings()
    peer = FakeObsPeer()
    lost: list[str] = []
    supervisor, dispatcher, _, hub = _supervisor(settings, peer.factory, on_lost=lost.append)
    queue = hub.subscribe()
    supervisor.start()
    assert await supervisor.wait_ready(1.0)

    await supervisor.stop()
    assert len(peer.transports) == 1
    assert peer.transport.closed
    assert not dispatcher.bound
    assert lost == ["session closed"]
    statuses = [n.status for n in _drain(queue) if isinstance(n, ConnectionStateChanged)]
    assert statuses[-1] is ConnectionStatus.DISCONNECTED
    assert ConnectionStatus.READY in statuses


@pytest.mark.asyncio
async def test_malformed_frame_forces_reconnect() -> None:
    settings = make_settings()
    peer = FakeObsPeer()
    supervisor, _, _, _ = _supervisor(settings, peer.factory)
    supervisor.start()
    try:
        assert await supervisor.wait_ready(1.0)
        peer.transport.feed(b"{not json")
        await wait_until(lambda: len(peer.transports) == 2 and supervisor.status is ConnectionStatus.READY)
    finally:
        await supervisor.stop()


@pytest.mark.asyncio
async def test_stop_during_connect_returns_without_identifying() -> None:
    settings = make_settings()
    peer = FakeObsPeer()

    def slow_factory(epoch: int):
        transport = peer.factory(epoch)
        transport.connect_delay = 0.2
        return transport

    lost: list[str] = []
    supervisor, dispatcher, _, hub = _supervisor(settings, slow_factory, on_lost=lost.append)
    queue = hub.subscribe()
    supervisor.start()
    await wait_until(lambda: len(peer.transports) == 1)

    loop = asyncio.get_running_loop()
    started = loop.time()
    await supervisor.stop()

    assert loop.time() - started < 1.0
    assert peer.transport.closed
    assert peer.transport.sent == []
    assert not dispatcher.bound
    assert lost == []
    statuses = [n.status for n in _drain(queue) if isinstance(n, ConnectionStateChanged)]
    assert ConnectionStatus.READY not in statuses
    assert statuses[-1] is ConnectionStatus.DISCONNECTED


@pytest.mark.asyncio
async def test_abnormal_close_during_identify_is_retried() -> None:
    settings = make_settings()
    peer = FakeObsPeer()
    peer.drop_identify = 1
    supervisor, _, _, hub = _supervisor(settings, peer.factory)
    queue = hub.subscribe()
    supervisor.start()
    try:
        assert await supervisor.wait_ready(1.0)
        assert len(peer.transports) == 2
        assert supervisor.epoch == 2
        assert not [n for n in _drain(queue) if isinstance(n, ErrorNotice)]
    finally:
        await supervisor.stop()


@pytest.mark.asyncio
async def test_handshake_deadline_is_retried() -> None:
    settings = make_settings(handshake_timeout_s=0.05)
    peer = FakeObsPeer()
    attempts: list[int] = []

    def factory(epoch: int):
        attempts.append(epoch)
        if epoch == 1:
            # Connects but never says Hello.
            return FakeTransport(epoch)
        return peer.factory(epoch)

    supervisor, _, _, hub = _supervisor(settings, factory)
    queue = hub.subscribe()
    supervisor.start()
    try:
        assert await supervisor.wait_ready(1.0)
        assert attempts == [1, 2]
        assert isinstance(supervisor.last_error, HandshakeTimeout)
        assert not [n for n in _drain(queue) if isinstance(n, ErrorNotice)]
    finally:
        await supervisor.stop()
