"""Control-protocol constants (OBS-WebSocket v5 vocabulary)."""

from __future__ import annotations

# Envelope keys
WS_KEY_OP = "op"
WS_KEY_DATA = "d"

WS_SUBPROTOCOL = "obswebsocket.json"

# Opcodes
OP_HELLO = 0
OP_IDENTIFY = 1
OP_IDENTIFIED = 2
OP_REIDENTIFY = 3
OP_EVENT = 5
OP_REQUEST = 6
OP_REQUEST_RESPONSE = 7
OP_REQUEST_BATCH = 8
OP_REQUEST_BATCH_RESPONSE = 9

# Opcodes only a client may send. Receiving one from the server is a violation.
CLIENT_ONLY_OPS = frozenset({OP_IDENTIFY, OP_REIDENTIFY, OP_REQUEST, OP_REQUEST_BATCH})

# Close codes sent by the server
WS_CLOSE_NORMAL_CODE = 1000
WS_CLOSE_AUTH_FAILED_CODE = 4009
WS_CLOSE_UNSUPPORTED_RPC_CODE = 4010

# Supported rpc versions
RPC_VERSION_FLOOR = 1
RPC_VERSION_CEILING = 1

# Event subscription bits
EVENT_SUB_GENERAL = 1 << 0
EVENT_SUB_OUTPUTS = 1 << 6
EVENT_SUB_MEDIA_INPUTS = 1 << 8

# General (ExitStarted), Outputs (replay buffer), MediaInputs (playback ended).
DEFAULT_EVENT_SUBSCRIPTIONS = EVENT_SUB_GENERAL | EVENT_SUB_OUTPUTS | EVENT_SUB_MEDIA_INPUTS

# Request types
REQ_START_REPLAY_BUFFER = "StartReplayBuffer"
REQ_SAVE_REPLAY_BUFFER = "SaveReplayBuffer"
REQ_GET_INPUT_SETTINGS = "GetInputSettings"
REQ_SET_INPUT_SETTINGS = "SetInputSettings"
REQ_TRIGGER_MEDIA_INPUT_ACTION = "TriggerMediaInputAction"

# Event types
EVT_REPLAY_BUFFER_STATE_CHANGED = "ReplayBufferStateChanged"
EVT_REPLAY_BUFFER_SAVED = "ReplayBufferSaved"
EVT_MEDIA_INPUT_PLAYBACK_STARTED = "MediaInputPlaybackStarted"
EVT_MEDIA_INPUT_PLAYBACK_ENDED = "MediaInputPlaybackEnded"
EVT_EXIT_STARTED = "ExitStarted"

# Subscription bit that carries each event kind
EVENT_KIND_SUBSCRIPTIONS = {
    EVT_EXIT_STARTED: EVENT_SUB_GENERAL,
    EVT_REPLAY_BUFFER_SAVED: EVENT_SUB_OUTPUTS,
    EVT_REPLAY_BUFFER_STATE_CHANGED: EVENT_SUB_OUTPUTS,
    EVT_MEDIA_INPUT_PLAYBACK_ENDED: EVENT_SUB_MEDIA_INPUTS,
    EVT_MEDIA_INPUT_PLAYBACK_STARTED: EVENT_SUB_MEDIA_INPUTS,
}

# Media actions
MEDIA_ACTION_RESTART = "OBS_WEBSOCKET_MEDIA_INPUT_ACTION_RESTART"
MEDIA_ACTION_STOP = "OBS_WEBSOCKET_MEDIA_INPUT_ACTION_STOP"

# Request status codes
STATUS_OUTPUT_RUNNING = 500
STATUS_RESOURCE_NOT_FOUND = 600

# RequestBatch execution types
BATCH_EXECUTION_SERIAL_REALTIME = 0

__all__ = [
    "BATCH_EXECUTION_SERIAL_REALTIME",
    "CLIENT_ONLY_OPS",
    "DEFAULT_EVENT_SUBSCRIPTIONS",
    "EVENT_KIND_SUBSCRIPTIONS",
    "EVENT_SUB_GENERAL",
    "EVENT_SUB_MEDIA_INPUTS",
    "EVENT_SUB_OUTPUTS",
    "EVT_EXIT_STARTED",
    "EVT_MEDIA_INPUT_PLAYBACK_ENDED",
    "EVT_MEDIA_INPUT_PLAYBACK_STARTED",
    "EVT_REPLAY_BUFFER_SAVED",
    "EVT_REPLAY_BUFFER_STATE_CHANGED",
    "MEDIA_ACTION_RESTART",
    "MEDIA_ACTION_STOP",
    "OP_EVENT",
    "OP_HELLO",
    "OP_IDENTIFIED",
    "OP_IDENTIFY",
    "OP_REIDENTIFY",
    "OP_REQUEST",
    "OP_REQUEST_BATCH",
    "OP_REQUEST_BATCH_RESPONSE",
    "OP_REQUEST_RESPONSE",
    "REQ_GET_INPUT_SETTINGS",
    "REQ_SAVE_REPLAY_BUFFER",
    "REQ_SET_INPUT_SETTINGS",
    "REQ_START_REPLAY_BUFFER",
    "REQ_TRIGGER_MEDIA_INPUT_ACTION",
    "RPC_VERSION_CEILING",
    "RPC_VERSION_FLOOR",
    "STATUS_OUTPUT_RUNNING",
    "STATUS_RESOURCE_NOT_FOUND",
    "WS_CLOSE_AUTH_FAILED_CODE",
    "WS_CLOSE_NORMAL_CODE",
    "WS_CLOSE_UNSUPPORTED_RPC_CODE",
    "WS_KEY_DATA",
    "WS_KEY_OP",
    "WS_SUBPROTOCOL",
]
