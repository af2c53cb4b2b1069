"""In-memory stand-ins for the remote control socket."""

from __future__ import annotations

import asyncio
from typing import Any
from collections.abc import Callable

import orjson

from instant_replay.errors import SendError, ConnectionError, MalformedMessage
from instant_replay.protocol import ConnectionClosed, decode_message, compute_auth_response
from instant_replay.state.settings import (
    CueSettings,
    AppSettings,
    ReplaySettings,
    ServerSettings,
    RequestSettings,
    HeartbeatSettings,
    ReconnectSettings,
    ConnectionSettings,
)

CHALLENGE = "challenge-token"
SALT = "salt-token"


def make_settings(
    *,
    password: str | None = None,
    request_timeout_s: float = 1.0,
    timeouts: dict[str, float] | None = None,
    handshake_timeout_s: float = 1.0,
    min_delay_s: float = 0.01,
    max_delay_s: float = 0.05,
    max_attempts: int = 0,
    grace_s: float = 10.0,
    source_kind: str = "vlc_source",
    save_delay_s: float = 1.0,
) -> AppSettings:
    return AppSettings(
        connection=ConnectionSettings(
            host="127.0.0.1",
            port=4455,
            password=password,
            secure=False,
            event_subscriptions=0,
            rpc_version_floor=1,
            rpc_version_ceiling=1,
            connect_timeout_s=1.0,
            handshake_timeout_s=handshake_timeout_s,
            max_message_bytes=1 << 20,
        ),
        requests=RequestSettings(default_timeout_s=request_timeout_s, timeouts=dict(timeouts or {})),
        reconnect=ReconnectSettings(
            min_delay_s=min_delay_s,
            max_delay_s=max_delay_s,
            multiplier=2.0,
            max_attempts=max_attempts,
            grace_s=grace_s,
        ),
        heartbeat=HeartbeatSettings(interval_s=0.0, timeout_s=1.0, max_missed=1),
        replay=ReplaySettings(source_name="Replay", source_kind=source_kind, save_delay_s=save_delay_s, clip_history=5),
        cues=CueSettings(enabled=False, host="127.0.0.1", port=12345, triggers=frozenset({"scored"})),
        server=ServerSettings(autoconnect=False, notification_queue_max=64),
    )


def hello_frame(*, rpc_version: int = 1, auth: bool = False) -> dict[str, Any]:
    d: dict[str, Any] = {"obsWebSocketVersion": "5.4.2", "rpcVersion": rpc_version}
    if auth:
        d["authentication"] = {"challenge": CHALLENGE, "salt": SALT}
    return {"op": 0, "d": d}


def identified_frame(rpc_version: int = 1) -> dict[str, Any]:
    return {"op": 2, "d": {"negotiatedRpcVersion": rpc_version}}


def response_frame(
    request_type: str,
    request_id: str,
    *,
    code: int = 100,
    data: dict[str, Any] | None = None,
    comment: str | None = None,
) -> dict[str, Any]:
    status: dict[str, Any] = {"result": code == 100, "code": code}
    if comment:
        status["comment"] = comment
    d: dict[str, Any] = {"requestType": request_type, "requestId": request_id, "requestStatus": status}
    if data is not None:
        d["responseData"] = data
    return {"op": 7, "d": d}


def event_frame(event_type: str, data: dict[str, Any] | None = None) -> dict[str, Any]:
    d: dict[str, Any] = {"eventType": event_type, "eventIntent": 64}
    if data is not None:
        d["eventData"] = data
    return {"op": 5, "d": d}


class FakeTransport:
    """Drop-in for TransportClient. Frames fed in go through the real codec."""

    def __init__(
        self,
        epoch: int = 0,
        *,
        connect_error: Exception | None = None,
        connect_delay: float = 0.0,
    ) -> None:
        self.epoch = epoch
        self.connect_error = connect_error
        self.connect_delay = connect_delay
        self.url: str | None = None
        self.sent: list[dict[str, Any]] = []
        self.closed = False
        self.close_reason: str | None = None
        self.on_send: Callable[[dict[str, Any]], None] | None = None
        self._incoming: asyncio.Queue = asyncio.Queue()

    @property
    def connected(self) -> bool:
        return self.url is not None and not self.closed

    async def connect(self, url: str) -> None:
        if self.connect_error is not None:
            raise self.connect_error
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        if self.closed:
            raise ConnectionError("transport closed during connect")
        self.url = url

    async def send(self, data: bytes | str) -> None:
        if not self.connected:
            raise SendError("transport is not connected")
        msg = orjson.loads(data)
        self.sent.append(msg)
        if self.on_send is not None:
            self.on_send(msg)

    def feed(self, frame: dict[str, Any] | bytes) -> None:
        self._incoming.put_nowait(frame if isinstance(frame, bytes) else orjson.dumps(frame))

    def drop(self, *, code: int = 1006, reason: str = "connection dropped") -> None:
        self._incoming.put_nowait(ConnectionClosed(reason=reason, code=code))

    async def messages(self):
        sequence = 0
        while True:
            item = await self._incoming.get()
            if isinstance(item, ConnectionClosed):
                yield item
                return
            sequence += 1
            try:
                message = decode_message(item, sequence=sequence, epoch=self.epoch)
            except MalformedMessage as exc:
                self.closed = True
                yield ConnectionClosed(reason=str(exc), code=1002, error=exc)
                return
            yield message

    async def close(self, *, code: int = 1000, reason: str = "") -> None:
        if self.closed:
            return
        self.closed = True
        self.close_reason = reason
        self._incoming.put_nowait(ConnectionClosed(reason=reason or "closed", code=code))


class FakeObsPeer:
    """Scripted remote end: answers the handshake and requests on every transport it hands out."""

    def __init__(
        self,
        *,
        password: str | None = None,
        rpc_version: int = 1,
        save_path: str | None = "/clips/replay-1.mkv",
    ) -> None:
        self.password = password
        self.rpc_version = rpc_version
        self.save_path = save_path
        # request type -> (status code, response data)
        self.responses: dict[str, tuple[int, dict[str, Any]]] = {}
        # request types that never get an answer
        self.silent: set[str] = set()
        self.requests: list[dict[str, Any]] = []
        self.batches: list[dict[str, Any]] = []
        self.transports: list[FakeTransport] = []
        self.saves = 0
        # Identify frames answered by an abnormal close instead of Identified.
        self.drop_identify = 0

    @property
    def transport(self) -> FakeTransport:
        return self.transports[-1]

    def factory(self, epoch: int) -> FakeTransport:
        transport = FakeTransport(epoch)
        transport.on_send = lambda msg: self._on_send(transport, msg)
        transport.feed(hello_frame(rpc_version=self.rpc_version, auth=self.password is not None))
        self.transports.append(transport)
        return transport

    def emit(self, event_type: str, data: dict[str, Any] | None = None) -> None:
        self.transport.feed(event_frame(event_type, data))

    def _status_for(self, request_type: str) -> tuple[int, dict[str, Any]]:
        return self.responses.get(request_type, (100, {}))

    def _on_send(self, transport: FakeTransport, msg: dict[str, Any]) -> None:
        op, d = msg["op"], msg["d"]
        if op == 1:
            if self.drop_identify > 0:
                self.drop_identify -= 1
                transport.drop(code=1006, reason="")
                return
            if self.password is not None:
                expected = compute_auth_response(self.password, CHALLENGE, SALT)
                if d.get("authentication") != expected:
                    transport.drop(code=4009, reason="Authentication failed.")
                    return
            transport.feed(identified_frame(min(self.rpc_version, d["rpcVersion"])))
        elif op == 6:
            self.requests.append(d)
            request_type = d["requestType"]
            if request_type in self.silent:
                return
            code, data = self._status_for(request_type)
            transport.feed(response_frame(request_type, d["requestId"], code=code, data=data))
            if request_type == "SaveReplayBuffer" and code == 100 and self.save_path is not None:
                self.saves += 1
                transport.feed(event_frame("ReplayBufferSaved", {"savedReplayPath": self.save_path}))
        elif op == 8:
            self.batches.append(d)
            results = []
            for item in d["requests"]:
                code, data = self._status_for(item["requestType"])
                results.append(response_frame(item["requestType"], item["requestId"], code=code, data=data)["d"])
                if code != 100 and d.get("haltOnFailure"):
                    break
            transport.feed({"op": 9, "d": {"requestId": d["requestId"], "results": results}})


def failing_factory(error: Exception | None = None) -> Callable[[int], FakeTransport]:
    def factory(epoch: int) -> FakeTransport:
        return FakeTransport(epoch, connect_error=error or ConnectionError("connection refused"))

    return factory


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.005)

    await asyncio.wait_for(_poll(), timeout=timeout)


__all__ = [
    "CHALLENGE",
    "SALT",
    "FakeObsPeer",
    "FakeTransport",
    "event_frame",
    "failing_factory",
    "hello_frame",
    "identified_frame",
    "make_settings",
    "response_frame",
    "wait_until",
]
