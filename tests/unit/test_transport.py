from __future__ import annotations

import asyncio
from typing import Any

import orjson
import pytest
from websockets.frames import Close
from websockets.exceptions import InvalidHandshake, ConnectionClosed as WebSocketClosed

from instant_replay.protocol import Hello, ConnectionClosed
from instant_replay.transport import TransportClient
from instant_replay.state.settings import HeartbeatSettings
from instant_replay.errors import SendError, ConnectionError, MalformedMessage


class _FakeWebSocket:
    def __init__(self, frames: list[Any]) -> None:
        self._frames = list(frames)
        self.sent: list[str] = []
        self.closed_with: tuple[int, str] | None = None
        self.pings = 0

    async def recv(self) -> Any:
        if not self._frames:
            await asyncio.Event().wait()
        item = self._frames.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def send(self, text: str) -> None:
        if self.closed_with is not None:
            raise WebSocketClosed(None, Close(1000, ""))
        self.sent.append(text)

    async def ping(self) -> asyncio.Future:
        self.pings += 1
        waiter = asyncio.get_running_loop().create_future()
        waiter.set_result(None)
        return waiter

    async def close(self, code: int = 1000, reason: str = "") -> None:
        self.closed_with = (code, reason)


def _connect_to(ws: _FakeWebSocket):
    calls: list[tuple[str, dict[str, Any]]] = []

    async def connect(url: str, **kwargs: Any) -> _FakeWebSocket:
        calls.append((url, kwargs))
        return ws

    connect.calls = calls  # type: ignore[attr-defined]
    return connect


async def _collect(client: TransportClient) -> list[Any]:
    return [item async for item in client.messages()]


@pytest.mark.asyncio
async def test_frames_are_decoded_and_stream_ends_with_close() -> None:
    hello = orjson.dumps({"op": 0, "d": {"obsWebSocketVersion": "5.4.2", "rpcVersion": 1}}).decode()
    ws = _FakeWebSocket([hello, WebSocketClosed(Close(4009, "Authentication failed."), None)])
    connect = _connect_to(ws)
    client = TransportClient(connect_fn=connect, epoch=3)

    await client.connect("ws://127.0.0.1:4455")
    items = await asyncio.wait_for(_collect(client), timeout=1.0)

    url, kwargs = connect.calls[0]
    assert url == "ws://127.0.0.1:4455"
    assert kwargs["subprotocols"] == ["obswebsocket.json"]
    assert isinstance(items[0], Hello)
    closed = items[-1]
    assert isinstance(closed, ConnectionClosed)
    assert (closed.code, closed.reason) == (4009, "Authentication failed.")


@pytest.mark.asyncio
async def test_malformed_frame_closes_with_protocol_error() -> None:
    ws = _FakeWebSocket(["{not json"])
    client = TransportClient(connect_fn=_connect_to(ws))
    await client.connect("ws://127.0.0.1:4455")

    items = await asyncio.wait_for(_collect(client), timeout=1.0)

    (closed,) = items
    assert closed.code == 1002
    assert isinstance(closed.error, MalformedMessage)
    assert ws.closed_with == (1002, "malformed message")
    assert not client.connected


@pytest.mark.asyncio
async def test_send_requires_a_connection() -> None:
    client = TransportClient(connect_fn=_connect_to(_FakeWebSocket([])))
    with pytest.raises(SendError):
        await client.send(b"{}")

    await client.connect("ws://127.0.0.1:4455")
    await client.send(b'{"op": 6}')
    await client.close(reason="done")
    with pytest.raises(SendError):
        await client.send(b"{}")


@pytest.mark.asyncio
async def test_messages_after_close_report_the_close_reason() -> None:
    client = TransportClient(connect_fn=_connect_to(_FakeWebSocket([])))
    await client.connect("ws://127.0.0.1:4455")
    await client.close(reason="session closed")

    items = await _collect(client)

    assert items == [ConnectionClosed(reason="session closed")]


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [OSError("refused"), InvalidHandshake("bad status")])
async def test_connect_failures_become_connection_errors(error: Exception) -> None:
    async def connect(url: str, **kwargs: Any) -> Any:
        raise error

    client = TransportClient(connect_fn=connect)
    with pytest.raises(ConnectionError):
        await client.connect("ws://127.0.0.1:4455")
    assert not client.connected


@pytest.mark.asyncio
async def test_connect_timeout() -> None:
    async def connect(url: str, **kwargs: Any) -> Any:
        await asyncio.sleep(1.0)

    client = TransportClient(connect_fn=connect, connect_timeout_s=0.01)
    with pytest.raises(ConnectionError, match="timed out"):
        await client.connect("ws://127.0.0.1:4455")


@pytest.mark.asyncio
async def test_close_during_connect_discards_the_new_socket() -> None:
    gate = asyncio.Event()
    ws = _FakeWebSocket([])

    async def connect(url: str, **kwargs: Any) -> _FakeWebSocket:
        await gate.wait()
        return ws

    client = TransportClient(
        connect_fn=connect,
        heartbeat=HeartbeatSettings(interval_s=0.01, timeout_s=0.01, max_missed=0),
    )
    attempt = asyncio.create_task(client.connect("ws://127.0.0.1:4455"))
    await asyncio.sleep(0.01)
    await client.close(reason="session closed")
    gate.set()

    with pytest.raises(ConnectionError, match="closed during connect"):
        await attempt
    await asyncio.sleep(0.05)

    assert ws.closed_with == (1000, "session closed")
    assert ws.pings == 0
    assert not client.connected
    with pytest.raises(ConnectionError):
        await client.connect("ws://127.0.0.1:4455")
