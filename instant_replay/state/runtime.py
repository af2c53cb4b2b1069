"""Typed runtime state objects for dependency wiring."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

logger = logging.getLogger(__name__)

if TYPE_CHECKING:
    from instant_replay.cues import CueListener
    from instant_replay.state.settings import AppSettings
    from instant_replay.notifications import NotificationHub
    from instant_replay.session.session import ReplaySession


@dataclass(slots=True)
class RuntimeDeps:
    session: ReplaySession
    notifier: NotificationHub
    settings: AppSettings
    cues: CueListener | None = None

    async def shutdown(self) -> None:
        try:
            if self.cues is not None:
                await self.cues.close()
        except Exception:
            logger.exception("cue listener shutdown failed")
        try:
            await self.session.close()
        except Exception:
            logger.exception("session shutdown failed")


__all__ = ["RuntimeDeps"]
