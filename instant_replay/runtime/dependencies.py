"""Runtime dependency construction (session, notifications, cue listener)."""

from __future__ import annotations

import logging

from instant_replay.state import RuntimeDeps
from instant_replay.cues import CueListener
from instant_replay.state.settings import AppSettings
from instant_replay.notifications import NotificationHub
from instant_replay.session.session import ReplaySession

from .settings_loader import load_settings

logger = logging.getLogger(__name__)


async def build_runtime_deps(settings: AppSettings | None = None) -> RuntimeDeps:
    settings = settings or load_settings()
    notifier = NotificationHub(maxsize=settings.server.notification_queue_max)
    session = ReplaySession(settings, notifier=notifier)

    cues: CueListener | None = None
    if settings.cues.enabled:
        cues = CueListener(session.controller, settings.cues)
        try:
            await cues.start()
        except OSError as exc:
            # The HTTP surface stays usable for manual saves.
            logger.error("cue listener disabled: cannot bind %s:%s: %s", settings.cues.host, settings.cues.port, exc)
            cues = None

    if settings.server.autoconnect:
        await session.start()

    return RuntimeDeps(session=session, notifier=notifier, settings=settings, cues=cues)


__all__ = ["RuntimeDeps", "build_runtime_deps"]
