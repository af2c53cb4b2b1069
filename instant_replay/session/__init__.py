"""Connection session: handshake, request dispatch, event routing, supervision.

`ReplaySession` lives in `instant_replay.session.session`.
"""

from .bus import EventBus, Subscription
from .backoff import Backoff
from .dispatcher import PendingRequest, RequestDispatcher
from .handshake import SessionHandle, open_session
from .supervisor import ReconnectSupervisor

__all__ = [
    "Backoff",
    "EventBus",
    "PendingRequest",
    "ReconnectSupervisor",
    "RequestDispatcher",
    "SessionHandle",
    "Subscription",
    "open_session",
]
