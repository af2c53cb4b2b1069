from .auth import compute_auth_response
from .codec import decode_message, encode_message
from .events import (
    ExitStarted,
    EventPayload,
    UnrecognizedEvent,
    ReplayBufferSaved,
    parse_event_payload,
    MediaInputPlaybackEnded,
    ReplayBufferStateChanged,
    MediaInputPlaybackStarted,
)
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
    IncomingMessage,
    OutgoingMessage,
    RequestResponse,
    ConnectionClosed,
    RequestBatchResponse,
)

__all__ = [
    "AuthChallenge",
    "ConnectionClosed",
    "Event",
    "EventPayload",
    "ExitStarted",
    "Hello",
    "Identified",
    "Identify",
    "IncomingMessage",
    "MediaInputPlaybackEnded",
    "MediaInputPlaybackStarted",
    "OutgoingMessage",
    "Reidentify",
    "ReplayBufferSaved",
    "ReplayBufferStateChanged",
    "Request",
    "RequestBatch",
    "RequestBatchResponse",
    "RequestResponse",
    "RequestStatus",
    "UnknownMessage",
    "UnrecognizedEvent",
    "compute_auth_response",
    "decode_message",
    "encode_message",
    "parse_event_payload",
]
