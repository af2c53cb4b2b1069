from .runtime import RuntimeDeps
from .settings import AppSettings
from .connection import Connection, ConnectionStatus
from .replay import SavedClip, ReplayInput, ReplayPhase, ReplayState

__all__ = [
    "AppSettings",
    "Connection",
    "ConnectionStatus",
    "ReplayInput",
    "ReplayPhase",
    "ReplayState",
    "RuntimeDeps",
    "SavedClip",
]
