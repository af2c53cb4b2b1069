"""FastAPI host surface for the instant replay controller."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from pydantic import Field, BaseModel
from fastapi import FastAPI, Request, WebSocket
from fastapi.responses import ORJSONResponse

from instant_replay.errors import ReplayError
from instant_replay.state import RuntimeDeps
from instant_replay.config.server import NOTIFICATIONS_PATH
from instant_replay.runtime.logging import configure_logging
from instant_replay.runtime.dependencies import build_runtime_deps
from instant_replay.handlers.errors import replay_error_handler
from instant_replay.handlers.notifications import stream_notifications

logger = logging.getLogger(__name__)

configure_logging()


class ConnectBody(BaseModel):
    host: str | None = None
    port: int | None = None
    password: str | None = None


class SaveDelayBody(BaseModel):
    seconds: float


class PlayBody(BaseModel):
    count: int = Field(default=1, ge=1)
    paths: list[str] | None = None


@asynccontextmanager
async def _lifespan(app: FastAPI):
    runtime_deps = await build_runtime_deps()
    app.state.runtime_deps = runtime_deps
    logger.info("runtime: ready")
    try:
        yield
    finally:
        deps = getattr(app.state, "runtime_deps", None)
        if deps is not None:
            await deps.shutdown()


app = FastAPI(default_response_class=ORJSONResponse, lifespan=_lifespan)
app.add_exception_handler(ReplayError, replay_error_handler)
app.add_exception_handler(RuntimeError, replay_error_handler)


def _deps(request: Request) -> RuntimeDeps:
    runtime_deps = getattr(request.app.state, "runtime_deps", None)
    if runtime_deps is None:
        raise RuntimeError("Runtime dependencies are not initialized")
    return runtime_deps


@app.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/state")
async def get_state(request: Request) -> dict:
    session = _deps(request).session
    connection = session.connection
    return {
        "running": session.running,
        "connection": {
            "status": session.status.value,
            "url": session.connection_settings.url,
            "epoch": connection.epoch if connection is not None else None,
            "rpc_version": connection.rpc_version if connection is not None else None,
        },
        "replay": session.controller.state.to_dict(),
        "save_delay_s": session.controller.save_delay_s,
    }


@app.get("/clips")
async def get_clips(request: Request) -> dict:
    clips = _deps(request).session.controller.clips
    return {"clips": [clip.to_dict() for clip in reversed(clips)]}


@app.post("/connect")
async def connect(request: Request, body: ConnectBody | None = None) -> dict:
    deps = _deps(request)
    body = body or ConnectBody()
    await deps.session.start(host=body.host, port=body.port, password=body.password)
    conn = deps.session.connection_settings
    ready = await deps.session.wait_ready(conn.connect_timeout_s + conn.handshake_timeout_s)
    return {"connected": ready, "status": deps.session.status.value, "url": conn.url}


@app.post("/disconnect")
async def disconnect(request: Request) -> dict[str, str]:
    session = _deps(request).session
    await session.close()
    return {"status": session.status.value}


@app.post("/replay/start")
async def replay_start(request: Request) -> dict:
    state = await _deps(request).session.controller.start_buffering()
    return state.to_dict()


@app.post("/replay/save")
async def replay_save(request: Request) -> dict:
    clip = await _deps(request).session.controller.save()
    return clip.to_dict()


@app.post("/replay/play")
async def replay_play(request: Request, body: PlayBody | None = None) -> dict:
    body = body or PlayBody()
    state = await _deps(request).session.controller.play(count=body.count, paths=body.paths)
    return state.to_dict()


@app.post("/replay/stop")
async def replay_stop(request: Request) -> dict:
    state = await _deps(request).session.controller.stop()
    return state.to_dict()


@app.get("/settings/save-delay")
async def get_save_delay(request: Request) -> dict[str, float]:
    return {"seconds": _deps(request).session.controller.save_delay_s}


@app.put("/settings/save-delay")
async def put_save_delay(request: Request, body: SaveDelayBody) -> dict[str, float]:
    seconds = _deps(request).session.controller.set_save_delay(body.seconds)
    return {"seconds": seconds}


@app.websocket(NOTIFICATIONS_PATH)
async def notifications_endpoint(websocket: WebSocket) -> None:
    runtime_deps = getattr(websocket.app.state, "runtime_deps", None)
    if runtime_deps is None:
        raise RuntimeError("Runtime dependencies are not initialized")
    await stream_notifications(websocket, runtime_deps.notifier)


__all__ = ["app"]
