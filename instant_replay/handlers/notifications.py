"""WebSocket stream of host notifications."""

from __future__ import annotations

import asyncio
import logging
import contextlib

import orjson
from fastapi import WebSocket, WebSocketDisconnect

from instant_replay.notifications import NotificationHub, notification_to_dict

logger = logging.getLogger(__name__)


async def safe_send_text(ws: WebSocket, text: str) -> bool:
    try:
        await ws.send_text(text)
    except WebSocketDisconnect:
        return False
    except Exception:
        logger.debug("WebSocket send failed", exc_info=True)
        return False
    return True


async def _drain_client(ws: WebSocket) -> None:
    # Inbound frames are ignored; this only notices the client leaving.
    while True:
        await ws.receive_text()


async def stream_notifications(ws: WebSocket, hub: NotificationHub) -> None:
    await ws.accept()
    queue = hub.subscribe()
    reader = asyncio.create_task(_drain_client(ws))
    logger.info("notification listener connected (%s active)", hub.listener_count)
    try:
        while not reader.done():
            getter = asyncio.create_task(queue.get())
            done, _ = await asyncio.wait({getter, reader}, return_when=asyncio.FIRST_COMPLETED)
            if getter not in done:
                getter.cancel()
                break
            text = orjson.dumps(notification_to_dict(getter.result())).decode("utf-8")
            if not await safe_send_text(ws, text):
                break
    finally:
        hub.unsubscribe(queue)
        reader.cancel()
        with contextlib.suppress(asyncio.CancelledError, WebSocketDisconnect, Exception):
            await reader
        logger.info("notification listener disconnected (%s active)", hub.listener_count)


__all__ = ["safe_send_text", "stream_notifications"]
