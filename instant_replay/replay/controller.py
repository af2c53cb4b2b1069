"""Single-writer driver of the replay state machine.

All inputs (host commands, bus events, effect completions, connection
signals) are funnelled through one inbox and applied by one task, so the
ReplayState is never touched concurrently. Effects that talk to the remote
end run as short-lived tasks and report back through the same inbox.
"""

from __future__ import annotations

import time
import asyncio
import logging
import contextlib
from typing import Any
from collections import deque
from dataclasses import dataclass
from collections.abc import Callable, Sequence, Awaitable

from instant_replay.session.bus import EventBus, Subscription
from instant_replay.state.connection import Connection
from instant_replay.runtime.settings_loader import clamp_save_delay
from instant_replay.session.dispatcher import RequestDispatcher
from instant_replay.state.replay import SavedClip, ReplayInput, ReplayPhase, ReplayState
from instant_replay.notifications import ClipSaved, ErrorNotice, NotificationHub, ReplayStateChanged
from instant_replay.config.replay import DEFAULT_REPLAY_CLIP_HISTORY, DEFAULT_REPLAY_SAVE_DELAY_S
from instant_replay.errors import (
    Cancelled,
    ReplayError,
    RequestTimeout,
    SourceNotFound,
    RequestRejected,
    StateTransitionError,
)
from instant_replay.protocol import (
    Event,
    ExitStarted,
    ReplayBufferSaved,
    MediaInputPlaybackEnded,
    ReplayBufferStateChanged,
)
from instant_replay.config.protocol import (
    EVT_EXIT_STARTED,
    STATUS_OUTPUT_RUNNING,
    EVT_REPLAY_BUFFER_SAVED,
    REQ_SAVE_REPLAY_BUFFER,
    REQ_START_REPLAY_BUFFER,
    EVT_MEDIA_INPUT_PLAYBACK_ENDED,
    EVT_REPLAY_BUFFER_STATE_CHANGED,
)

from .source import SourceController
from .machine import Transition, ReplayEffect, ReplayStateMachine

logger = logging.getLogger(__name__)

CONTROLLER_EVENT_KINDS = (
    EVT_REPLAY_BUFFER_SAVED,
    EVT_MEDIA_INPUT_PLAYBACK_ENDED,
    EVT_REPLAY_BUFFER_STATE_CHANGED,
    EVT_EXIT_STARTED,
)
# Effect kind used for the post-connect source check; it never drives a transition.
_VERIFY = "verify"

_STOP = object()


@dataclass(frozen=True, slots=True)
class _Command:
    input: ReplayInput
    future: asyncio.Future
    # Highlight reel for PLAY: how many recent clips, or explicit clips to lead in with.
    count: int = 1
    previous: tuple[str, ...] | None = None


@dataclass(frozen=True, slots=True)
class _EffectDone:
    effect: str
    cycle: int
    future: asyncio.Future | None = None
    error: BaseException | None = None


@dataclass(frozen=True, slots=True)
class _ConnectionLost:
    reason: str


@dataclass(frozen=True, slots=True)
class _ConnectionReady:
    connection: Connection


@dataclass(frozen=True, slots=True)
class _SaveDeadline:
    cycle: int


def _settle(future: asyncio.Future | None, result: Any = None, error: BaseException | None = None) -> None:
    if future is None or future.done():
        return
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(result)


class ReplayController:
    def __init__(
        self,
        dispatcher: RequestDispatcher,
        source: SourceController,
        *,
        notifier: NotificationHub | None = None,
        save_delay_s: float = DEFAULT_REPLAY_SAVE_DELAY_S,
        clip_history: int = DEFAULT_REPLAY_CLIP_HISTORY,
        confirm_timeout_s: float | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._dispatcher = dispatcher
        self._source = source
        self._notifier = notifier or NotificationHub()
        self._save_delay_s = clamp_save_delay(save_delay_s)
        self._clips: deque[SavedClip] = deque(maxlen=max(1, int(clip_history)))
        self._confirm_timeout_s = confirm_timeout_s
        self._clock = clock
        self._machine = ReplayStateMachine()
        self._inbox: asyncio.Queue = asyncio.Queue()
        self._subscription: Subscription | None = None
        self._task: asyncio.Task | None = None
        self._save_waiters: list[asyncio.Future] = []
        self._save_deadline: asyncio.TimerHandle | None = None
        self._effects: set[asyncio.Task] = set()
        self._cues: set[asyncio.Task] = set()

    # Host-facing state

    @property
    def state(self) -> ReplayState:
        return self._machine.state

    @property
    def clips(self) -> list[SavedClip]:
        return list(self._clips)

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def save_delay_s(self) -> float:
        return self._save_delay_s

    def set_save_delay(self, seconds: float) -> float:
        self._save_delay_s = clamp_save_delay(seconds)
        logger.info("save delay set to %.1fs", self._save_delay_s)
        return self._save_delay_s

    # Wiring

    def attach(self, bus: EventBus) -> Subscription:
        if self._subscription is None:
            self._subscription = bus.subscribe(*CONTROLLER_EVENT_KINDS, queue=self._inbox)
        return self._subscription

    def start(self) -> asyncio.Task:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run())
        return self._task

    async def close(self) -> None:
        for task in list(self._cues):
            task.cancel()
        task = self._task
        if task is not None and not task.done():
            self._inbox.put_nowait(_STOP)
            with contextlib.suppress(asyncio.CancelledError):
                await task
        self._task = None
        for effect in list(self._effects):
            effect.cancel()
        self._cancel_save_deadline()
        self._fail_waiters(Cancelled(reason="replay controller closed"))
        # Commands queued after the stop marker will never be applied.
        while not self._inbox.empty():
            item = self._inbox.get_nowait()
            if isinstance(item, _Command):
                _settle(item.future, error=Cancelled(reason="replay controller closed"))

    def connection_lost(self, reason: str) -> None:
        self._inbox.put_nowait(_ConnectionLost(reason=reason))

    def connection_ready(self, connection: Connection) -> None:
        self._inbox.put_nowait(_ConnectionReady(connection=connection))

    # Commands

    async def _submit(self, replay_input: ReplayInput, **options: Any) -> Any:
        if not self.running:
            raise RuntimeError("replay controller is not running")
        future = asyncio.get_running_loop().create_future()
        self._inbox.put_nowait(_Command(input=replay_input, future=future, **options))
        return await future

    async def start_buffering(self) -> ReplayState:
        """Make sure the remote replay buffer is running, then enter Buffering."""
        phase = self.state.phase
        if phase not in (ReplayPhase.IDLE, ReplayPhase.FAULTED):
            exc = StateTransitionError(f"{ReplayInput.START_BUFFERING.value} is not valid while {phase.value}")
            self._reject(exc)
            raise exc
        try:
            await self._dispatcher.request(REQ_START_REPLAY_BUFFER)
        except RequestRejected as exc:
            if exc.code != STATUS_OUTPUT_RUNNING:
                raise
            logger.info("replay buffer was already running")
        return await self._submit(ReplayInput.START_BUFFERING)

    async def save(self) -> SavedClip:
        """Request a save and wait for the confirmed clip."""
        return await self._submit(ReplayInput.SAVE_CUE)

    async def play(self, *, count: int = 1, paths: Sequence[str] | None = None) -> ReplayState:
        """Play the saved clip, optionally as the end of a highlight reel.

        `count` plays the last `count` clips from the history, oldest first.
        `paths` names the clips to play before the saved one instead.
        """
        if count < 1:
            raise ValueError("count must be at least 1")
        previous = tuple(paths) if paths is not None else None
        return await self._submit(ReplayInput.PLAY, count=count, previous=previous)

    async def stop(self) -> ReplayState:
        return await self._submit(ReplayInput.STOP)

    def cue(self, command: str = "") -> asyncio.Task:
        """Schedule a save after the configured delay. Returns the scheduled task."""
        if not self.running:
            raise RuntimeError("replay controller is not running")
        delay = self._save_delay_s
        logger.info("cue %s: saving in %.1fs", command or "manual", delay)
        task = asyncio.create_task(self._delayed_save(command, delay))
        self._cues.add(task)
        task.add_done_callback(self._cues.discard)
        return task

    async def _delayed_save(self, command: str, delay: float) -> SavedClip | None:
        await asyncio.sleep(delay)
        try:
            return await self.save()
        except (ReplayError, RuntimeError) as exc:
            # RuntimeError: the controller stopped while the cue was waiting.
            logger.warning("cue %s did not produce a clip: %s", command or "manual", exc)
            return None

    # Actor loop

    async def run(self) -> None:
        while True:
            item = await self._inbox.get()
            if item is _STOP:
                return
            try:
                self._handle(item)
            except Exception:
                logger.exception("replay controller failed to handle %s", type(item).__name__)

    def _handle(self, item: Any) -> None:
        if isinstance(item, _Command):
            self._on_command(item)
        elif isinstance(item, Event):
            self._on_event(item)
        elif isinstance(item, _EffectDone):
            self._on_effect_done(item)
        elif isinstance(item, _ConnectionLost):
            self._on_connection_lost(item.reason)
        elif isinstance(item, _ConnectionReady):
            self._on_connection_ready(item.connection)
        elif isinstance(item, _SaveDeadline):
            self._on_save_deadline(item.cycle)
        else:
            logger.debug("ignoring inbox item %r", item)

    def _apply(self, replay_input: ReplayInput, **kwargs) -> Transition:
        result = self._machine.apply(replay_input, **kwargs)
        if result.coalesced:
            logger.info("save already in progress (cycle %s); cue ignored", result.new.save_cycle)
        elif result.changed:
            logger.info("replay %s -> %s (%s)", result.old.phase.value, result.new.phase.value, replay_input.value)
            self._notifier.publish(ReplayStateChanged(old=result.old, new=result.new))
        return result

    def _reject(self, exc: StateTransitionError) -> None:
        logger.warning("rejected replay input: %s", exc)
        self._notifier.publish(ErrorNotice(kind="invalid_state", message=str(exc)))

    def _stale(self, what: str, exc: StateTransitionError) -> None:
        logger.info("%s: %s", what, exc)
        self._notifier.publish(ErrorNotice(kind="stale_event", message=f"{what}: {exc}"))

    def _spawn(
        self,
        effect: str,
        factory: Callable[[], Awaitable[Any]],
        *,
        future: asyncio.Future | None = None,
    ) -> None:
        cycle = self.state.save_cycle

        async def runner() -> None:
            try:
                await factory()
            except Exception as exc:
                self._inbox.put_nowait(_EffectDone(effect=effect, cycle=cycle, future=future, error=exc))
            else:
                self._inbox.put_nowait(_EffectDone(effect=effect, cycle=cycle, future=future))

        task = asyncio.create_task(runner())
        self._effects.add(task)
        task.add_done_callback(self._effects.discard)

    def _on_command(self, command: _Command) -> None:
        try:
            result = self._apply(command.input, epoch=self._dispatcher.epoch)
        except StateTransitionError as exc:
            self._reject(exc)
            _settle(command.future, error=exc)
            return

        if command.input is ReplayInput.SAVE_CUE:
            self._save_waiters.append(command.future)
            if result.effect is ReplayEffect.ISSUE_SAVE:
                self._spawn(ReplayEffect.ISSUE_SAVE.value, lambda: self._dispatcher.request(REQ_SAVE_REPLAY_BUFFER))
        elif result.effect is ReplayEffect.SET_MEDIA:
            clip = result.new.clip
            path = clip.path if clip is not None else ""
            previous = self._reel(clip, command)
            self._spawn(
                ReplayEffect.SET_MEDIA.value,
                lambda: self._source.set_media(path, previous=previous),
                future=command.future,
            )
        elif result.effect is ReplayEffect.STOP_MEDIA:
            self._spawn(ReplayEffect.STOP_MEDIA.value, self._source.stop_media, future=command.future)
        else:
            _settle(command.future, result.new)

    def _reel(self, clip: SavedClip | None, command: _Command) -> tuple[str, ...]:
        """Clips to play ahead of `clip`."""
        if clip is None:
            return ()
        if command.previous is not None:
            return tuple(p for p in command.previous if p != clip.path)
        if command.count <= 1:
            return ()
        earlier = [c.path for c in self._clips if c is not clip]
        return tuple(earlier[-(command.count - 1) :])

    def _on_effect_done(self, done: _EffectDone) -> None:
        if done.effect == ReplayEffect.ISSUE_SAVE.value:
            self._on_save_issued(done)
        elif done.effect == ReplayEffect.SET_MEDIA.value:
            self._on_media_set(done)
        elif done.effect == ReplayEffect.STOP_MEDIA.value:
            if done.error is not None:
                logger.warning("stopping playback failed: %s", done.error)
                self._notifier.publish(ErrorNotice(kind="stop_failed", message=str(done.error)))
            _settle(done.future, self.state, done.error)
        elif done.effect == _VERIFY:
            self._on_verified(done)

    def _in_save_cycle(self, cycle: int) -> bool:
        state = self.state
        return state.phase is ReplayPhase.SAVE_REQUESTED and state.save_cycle == cycle

    def _on_save_issued(self, done: _EffectDone) -> None:
        if isinstance(done.error, Cancelled):
            # Connection loss already moved the machine and failed the waiters.
            logger.debug("save request cancelled: %s", done.error)
            return
        if not self._in_save_cycle(done.cycle):
            logger.debug("save result for finished cycle %s ignored", done.cycle)
            return
        if done.error is None:
            self._arm_save_deadline(done.cycle)
            return
        self._apply(ReplayInput.SAVE_FAILED, error=str(done.error))
        self._notifier.publish(ErrorNotice(kind="save_failed", message=str(done.error)))
        self._fail_waiters(done.error)

    def _arm_save_deadline(self, cycle: int) -> None:
        if self._confirm_timeout_s is None or self._confirm_timeout_s <= 0:
            return
        self._cancel_save_deadline()
        loop = asyncio.get_running_loop()
        self._save_deadline = loop.call_later(self._confirm_timeout_s, self._inbox.put_nowait, _SaveDeadline(cycle))

    def _cancel_save_deadline(self) -> None:
        handle, self._save_deadline = self._save_deadline, None
        if handle is not None:
            handle.cancel()

    def _on_save_deadline(self, cycle: int) -> None:
        if not self._in_save_cycle(cycle):
            return
        self._save_deadline = None
        exc = RequestTimeout(
            request_type=EVT_REPLAY_BUFFER_SAVED,
            request_id=str(cycle),
            timeout_s=float(self._confirm_timeout_s or 0.0),
        )
        logger.warning("no save confirmation: %s", exc)
        self._apply(ReplayInput.SAVE_FAILED, error=str(exc))
        self._notifier.publish(ErrorNotice(kind="save_failed", message=str(exc)))
        self._fail_waiters(exc)

    def _on_media_set(self, done: _EffectDone) -> None:
        error = done.error
        if error is None:
            _settle(done.future, self.state)
            return
        if not isinstance(error, Cancelled) and self.state.phase is ReplayPhase.PLAYING:
            self._apply(ReplayInput.FAULT, error=str(error))
            kind = "source_not_found" if isinstance(error, SourceNotFound) else "playback_failed"
            self._notifier.publish(ErrorNotice(kind=kind, message=str(error)))
        _settle(done.future, error=error)

    def _on_verified(self, done: _EffectDone) -> None:
        error = done.error
        if error is None:
            logger.info("playback source %r is present", self._source.source_name)
        elif isinstance(error, SourceNotFound):
            logger.warning("%s", error)
            self._notifier.publish(ErrorNotice(kind="source_not_found", message=str(error)))
        elif not isinstance(error, Cancelled):
            logger.warning("could not verify playback source %r: %s", self._source.source_name, error)

    def _fail_waiters(self, error: BaseException) -> None:
        waiters, self._save_waiters = self._save_waiters, []
        for future in waiters:
            _settle(future, error=error)

    def _on_event(self, event: Event) -> None:
        payload = event.payload
        if isinstance(payload, ReplayBufferSaved):
            self._on_save_confirmed(payload.saved_replay_path, event.epoch)
        elif isinstance(payload, MediaInputPlaybackEnded):
            if payload.input_name != self._source.source_name:
                return
            try:
                self._apply(ReplayInput.PLAYBACK_FINISHED)
            except StateTransitionError as exc:
                self._stale(f"playback end for {payload.input_name!r} ignored", exc)
        elif isinstance(payload, ReplayBufferStateChanged):
            logger.info("replay buffer output is %s", payload.output_state)
        elif isinstance(payload, ExitStarted):
            logger.info("remote application is exiting")

    def _on_save_confirmed(self, path: str, epoch: int) -> None:
        clip = SavedClip(path=path, captured_at=self._clock())
        try:
            self._apply(ReplayInput.SAVE_CONFIRMED, clip=clip, epoch=epoch)
        except StateTransitionError as exc:
            self._stale(f"save confirmation for {path} discarded", exc)
            return
        self._cancel_save_deadline()
        self._clips.append(clip)
        logger.info("clip saved: %s", path)
        self._notifier.publish(ClipSaved(clip=clip))
        waiters, self._save_waiters = self._save_waiters, []
        for future in waiters:
            _settle(future, clip)

    def _on_connection_lost(self, reason: str) -> None:
        self._cancel_save_deadline()
        self._apply(ReplayInput.CONNECTION_LOST)
        self._fail_waiters(Cancelled(reason=reason))

    def _on_connection_ready(self, connection: Connection) -> None:
        logger.info("replay controller ready on epoch %s", connection.epoch)
        self._spawn(_VERIFY, self._source.verify)


__all__ = ["CONTROLLER_EVENT_KINDS", "ReplayController"]
