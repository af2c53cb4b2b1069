"""Playback source control on the remote end."""

from __future__ import annotations

import logging
from typing import Any
from collections.abc import Sequence

from instant_replay.config.replay import SOURCE_KIND_VLC, SOURCE_KIND_FFMPEG
from instant_replay.errors import SourceNotFound, RequestRejected
from instant_replay.session.dispatcher import RequestDispatcher
from instant_replay.protocol import RequestStatus, RequestBatchResponse
from instant_replay.config.protocol import (
    MEDIA_ACTION_STOP,
    MEDIA_ACTION_RESTART,
    REQ_GET_INPUT_SETTINGS,
    REQ_SET_INPUT_SETTINGS,
    STATUS_RESOURCE_NOT_FOUND,
    REQ_TRIGGER_MEDIA_INPUT_ACTION,
)

logger = logging.getLogger(__name__)


class SourceController:
    """Points the configured media input at a clip and drives its playback.

    Every call round-trips to the remote end; nothing is cached locally.
    """

    def __init__(self, dispatcher: RequestDispatcher, *, source_name: str, source_kind: str = SOURCE_KIND_VLC) -> None:
        if source_kind not in (SOURCE_KIND_FFMPEG, SOURCE_KIND_VLC):
            raise ValueError(f"unsupported source kind {source_kind!r}")
        self._dispatcher = dispatcher
        self.source_name = source_name
        self.source_kind = source_kind

    def media_settings(self, path: str, previous: Sequence[str] = ()) -> dict[str, Any]:
        """Input settings that make the source play `previous` then `path`.

        A vlc_source takes the whole reel as its playlist. An ffmpeg_source
        holds a single file, so only `path` is loaded.
        """
        if self.source_kind == SOURCE_KIND_FFMPEG:
            if previous:
                logger.debug("%s plays one file; %s earlier clip(s) skipped", self.source_kind, len(previous))
            return {"local_file": path, "is_local_file": True}
        return {"playlist": [{"hidden": False, "selected": False, "value": item} for item in (*previous, path)]}

    def _rejected(self, status: RequestStatus, request_type: str) -> RequestRejected:
        if status.code == STATUS_RESOURCE_NOT_FOUND:
            return SourceNotFound(
                code=status.code,
                comment=status.comment,
                request_type=request_type,
                source_name=self.source_name,
            )
        return RequestRejected(code=status.code, comment=status.comment, request_type=request_type)

    def _translate(self, exc: RequestRejected) -> RequestRejected:
        if exc.code == STATUS_RESOURCE_NOT_FOUND and not isinstance(exc, SourceNotFound):
            return SourceNotFound(
                code=exc.code,
                comment=exc.comment,
                request_type=exc.request_type,
                source_name=self.source_name,
            )
        return exc

    async def set_media(self, path: str, *, previous: Sequence[str] = ()) -> RequestBatchResponse:
        """Load `path` (after any `previous` clips) into the source and restart playback in one batch."""
        response = await self._dispatcher.request_batch(
            [
                (
                    REQ_SET_INPUT_SETTINGS,
                    {
                        "inputName": self.source_name,
                        "inputSettings": self.media_settings(path, previous),
                        "overlay": True,
                    },
                ),
                (
                    REQ_TRIGGER_MEDIA_INPUT_ACTION,
                    {"inputName": self.source_name, "mediaAction": MEDIA_ACTION_RESTART},
                ),
            ],
            halt_on_failure=True,
        )
        for result in response.results:
            if not result.status.result:
                raise self._rejected(result.status, result.request_type)
        if previous:
            logger.info("source %r now playing %s after %s earlier clip(s)", self.source_name, path, len(previous))
        else:
            logger.info("source %r now playing %s", self.source_name, path)
        return response

    async def stop_media(self) -> None:
        try:
            await self._dispatcher.request(
                REQ_TRIGGER_MEDIA_INPUT_ACTION,
                {"inputName": self.source_name, "mediaAction": MEDIA_ACTION_STOP},
            )
        except RequestRejected as exc:
            raise self._translate(exc) from exc

    async def verify(self) -> dict[str, Any]:
        try:
            response = await self._dispatcher.request(REQ_GET_INPUT_SETTINGS, {"inputName": self.source_name})
        except RequestRejected as exc:
            raise self._translate(exc) from exc
        kind = response.data.get("inputKind")
        if isinstance(kind, str) and kind != self.source_kind:
            logger.warning("source %r is a %s, expected %s", self.source_name, kind, self.source_kind)
        return response.data


__all__ = ["SourceController"]
