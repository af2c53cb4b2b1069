"""Encode/decode control-protocol frames.

Frames are JSON objects of the form {"op": <int>, "d": {...}}. Encoding sorts
keys so identical messages always produce identical bytes.
"""

from __future__ import annotations

import logging
from typing import Any

import orjson

from instant_replay.errors import MalformedMessage
from instant_replay.config.protocol import (
    OP_HELLO,
    OP_EVENT,
    WS_KEY_OP,
    OP_REQUEST,
    WS_KEY_DATA,
    OP_IDENTIFY,
    OP_IDENTIFIED,
    OP_REIDENTIFY,
    CLIENT_ONLY_OPS,
    OP_REQUEST_BATCH,
    OP_REQUEST_RESPONSE,
    OP_REQUEST_BATCH_RESPONSE,
)

from .events import parse_event_payload
from .messages import (
    Event,
    Hello,
    Request,
    Identify,
    Identified,
    Reidentify,
    RequestBatch,
    AuthChallenge,
    RequestStatus,
    UnknownMessage,
    RequestResponse,
    IncomingMessage,
    OutgoingMessage,
    RequestBatchResponse,
)

logger = logging.getLogger(__name__)


def _request_body(msg: Request) -> dict[str, Any]:
    body: dict[str, Any] = {"requestType": msg.request_type, "requestId": msg.request_id}
    if msg.request_data is not None:
        body["requestData"] = msg.request_data
    return body


def _encode_body(msg: OutgoingMessage) -> tuple[int, dict[str, Any]]:
    if isinstance(msg, Identify):
        body: dict[str, Any] = {"rpcVersion": msg.rpc_version, "eventSubscriptions": msg.event_subscriptions}
        if msg.authentication is not None:
            body["authentication"] = msg.authentication
        return OP_IDENTIFY, body
    if isinstance(msg, Reidentify):
        return OP_REIDENTIFY, {"eventSubscriptions": msg.event_subscriptions}
    if isinstance(msg, Request):
        return OP_REQUEST, _request_body(msg)
    if isinstance(msg, RequestBatch):
        return OP_REQUEST_BATCH, {
            "requestId": msg.request_id,
            "haltOnFailure": msg.halt_on_failure,
            "executionType": msg.execution_type,
            "requests": [_request_body(item) for item in msg.requests],
        }
    raise TypeError(f"cannot encode {type(msg).__name__}")


def encode_message(msg: OutgoingMessage) -> bytes:
    op, body = _encode_body(msg)
    return orjson.dumps({WS_KEY_OP: op, WS_KEY_DATA: body}, option=orjson.OPT_SORT_KEYS)


def _require(data: dict[str, Any], key: str, kind: type | tuple[type, ...], what: str) -> Any:
    value = data.get(key)
    # bool is an int subclass; never accept it where a number is required.
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise MalformedMessage(f"{what} missing required field '{key}'")
    return value


def _decode_hello(data: dict[str, Any]) -> Hello:
    auth_raw = data.get("authentication")
    authentication: AuthChallenge | None = None
    if auth_raw is not None:
        if not isinstance(auth_raw, dict):
            raise MalformedMessage("Hello 'authentication' must be an object")
        authentication = AuthChallenge(
            challenge=_require(auth_raw, "challenge", str, "Hello.authentication"),
            salt=_require(auth_raw, "salt", str, "Hello.authentication"),
        )
    version = data.get("obsWebSocketVersion")
    return Hello(
        obs_web_socket_version=version if isinstance(version, str) else "",
        rpc_version=_require(data, "rpcVersion", int, "Hello"),
        authentication=authentication,
    )


def _decode_status(data: dict[str, Any], what: str) -> RequestStatus:
    raw = _require(data, "requestStatus", dict, what)
    comment = raw.get("comment")
    return RequestStatus(
        result=_require(raw, "result", bool, f"{what}.requestStatus"),
        code=_require(raw, "code", int, f"{what}.requestStatus"),
        comment=comment if isinstance(comment, str) else "",
    )


def _decode_response(
    data: dict[str, Any],
    what: str = "RequestResponse",
    *,
    require_id: bool = True,
) -> RequestResponse:
    if require_id:
        request_id = _require(data, "requestId", str, what)
    else:
        # requestId is optional for items inside a batch response.
        raw_id = data.get("requestId")
        request_id = raw_id if isinstance(raw_id, str) else ""
    response_data = data.get("responseData")
    return RequestResponse(
        request_type=_require(data, "requestType", str, what),
        request_id=request_id,
        status=_decode_status(data, what),
        data=response_data if isinstance(response_data, dict) else {},
    )


def _decode_batch_response(data: dict[str, Any]) -> RequestBatchResponse:
    results = _require(data, "results", list, "RequestBatchResponse")
    decoded: list[RequestResponse] = []
    for item in results:
        if not isinstance(item, dict):
            raise MalformedMessage("RequestBatchResponse results must be objects")
        decoded.append(_decode_response(item, "RequestBatchResponse.results", require_id=False))
    return RequestBatchResponse(
        request_id=_require(data, "requestId", str, "RequestBatchResponse"),
        results=tuple(decoded),
    )


def _decode_event(data: dict[str, Any], *, sequence: int, epoch: int) -> Event:
    event_type = _require(data, "eventType", str, "Event")
    event_data = data.get("eventData")
    if event_data is None:
        event_data = {}
    if not isinstance(event_data, dict):
        raise MalformedMessage("Event 'eventData' must be an object")
    intent = data.get("eventIntent")
    return Event(
        kind=event_type,
        payload=parse_event_payload(event_type, event_data),
        intent=intent if isinstance(intent, int) and not isinstance(intent, bool) else 0,
        sequence=sequence,
        epoch=epoch,
    )


def decode_message(raw: str | bytes, *, sequence: int = 0, epoch: int = 0) -> IncomingMessage:
    try:
        msg = orjson.loads(raw)
    except orjson.JSONDecodeError as exc:
        raise MalformedMessage(f"invalid JSON: {exc}") from exc

    if not isinstance(msg, dict):
        raise MalformedMessage("message must be a JSON object")

    op = msg.get(WS_KEY_OP)
    if not isinstance(op, int) or isinstance(op, bool):
        raise MalformedMessage("message missing integer 'op'")

    data = msg.get(WS_KEY_DATA)
    if not isinstance(data, dict):
        raise MalformedMessage("message 'd' must be an object")

    if op == OP_HELLO:
        return _decode_hello(data)
    if op == OP_IDENTIFIED:
        return Identified(negotiated_rpc_version=_require(data, "negotiatedRpcVersion", int, "Identified"))
    if op == OP_EVENT:
        return _decode_event(data, sequence=sequence, epoch=epoch)
    if op == OP_REQUEST_RESPONSE:
        return _decode_response(data)
    if op == OP_REQUEST_BATCH_RESPONSE:
        return _decode_batch_response(data)
    if op in CLIENT_ONLY_OPS:
        raise MalformedMessage(f"opcode {op} is client-only")

    logger.warning("unknown opcode %s received; ignoring", op)
    return UnknownMessage(op=op, data=data)


__all__ = ["decode_message", "encode_message"]
