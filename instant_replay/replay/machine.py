"""Replay capture state machine.

`transition()` is a pure function of (state, input). The table below lists
every legal edge; any other pair raises StateTransitionError. A connection
loss is legal from every phase and always lands in Idle.
"""

from __future__ import annotations

import enum
from dataclasses import replace, dataclass

from instant_replay.errors import StateTransitionError
from instant_replay.state.replay import SavedClip, ReplayInput, ReplayPhase, ReplayState


class ReplayEffect(str, enum.Enum):
    NONE = "none"
    ISSUE_SAVE = "issue_save"
    SET_MEDIA = "set_media"
    STOP_MEDIA = "stop_media"


@dataclass(frozen=True, slots=True)
class Transition:
    old: ReplayState
    new: ReplayState
    input: ReplayInput
    effect: ReplayEffect = ReplayEffect.NONE
    coalesced: bool = False

    @property
    def changed(self) -> bool:
        return self.old != self.new


_EDGES: dict[tuple[ReplayPhase, ReplayInput], tuple[ReplayPhase, ReplayEffect]] = {
    (ReplayPhase.IDLE, ReplayInput.START_BUFFERING): (ReplayPhase.BUFFERING, ReplayEffect.NONE),
    (ReplayPhase.BUFFERING, ReplayInput.SAVE_CUE): (ReplayPhase.SAVE_REQUESTED, ReplayEffect.ISSUE_SAVE),
    (ReplayPhase.SAVE_REQUESTED, ReplayInput.SAVE_CUE): (ReplayPhase.SAVE_REQUESTED, ReplayEffect.NONE),
    (ReplayPhase.SAVE_REQUESTED, ReplayInput.SAVE_CONFIRMED): (ReplayPhase.SAVED, ReplayEffect.NONE),
    (ReplayPhase.SAVE_REQUESTED, ReplayInput.SAVE_FAILED): (ReplayPhase.BUFFERING, ReplayEffect.NONE),
    (ReplayPhase.SAVED, ReplayInput.PLAY): (ReplayPhase.PLAYING, ReplayEffect.SET_MEDIA),
    (ReplayPhase.PLAYING, ReplayInput.PLAYBACK_FINISHED): (ReplayPhase.BUFFERING, ReplayEffect.NONE),
    (ReplayPhase.PLAYING, ReplayInput.STOP): (ReplayPhase.BUFFERING, ReplayEffect.STOP_MEDIA),
    (ReplayPhase.PLAYING, ReplayInput.FAULT): (ReplayPhase.FAULTED, ReplayEffect.NONE),
    (ReplayPhase.FAULTED, ReplayInput.START_BUFFERING): (ReplayPhase.BUFFERING, ReplayEffect.NONE),
    (ReplayPhase.FAULTED, ReplayInput.STOP): (ReplayPhase.BUFFERING, ReplayEffect.NONE),
}


def legal_inputs(phase: ReplayPhase) -> frozenset[ReplayInput]:
    inputs = {replay_input for (edge_phase, replay_input) in _EDGES if edge_phase is phase}
    inputs.add(ReplayInput.CONNECTION_LOST)
    return frozenset(inputs)


def transition(
    state: ReplayState,
    replay_input: ReplayInput,
    *,
    clip: SavedClip | None = None,
    error: str | None = None,
    epoch: int = 0,
) -> Transition:
    """Compute the next state.

    `epoch` is the connection epoch the input belongs to. It is recorded when
    a save is requested and must match when the confirmation arrives.
    """
    if replay_input is ReplayInput.CONNECTION_LOST:
        new = ReplayState(phase=ReplayPhase.IDLE, save_cycle=state.save_cycle)
        return Transition(old=state, new=new, input=replay_input)

    edge = _EDGES.get((state.phase, replay_input))
    if edge is None:
        raise StateTransitionError(f"{replay_input.value} is not valid while {state.phase.value}")
    phase, effect = edge

    if replay_input is ReplayInput.SAVE_CUE and state.phase is ReplayPhase.SAVE_REQUESTED:
        return Transition(old=state, new=state, input=replay_input, coalesced=True)

    if replay_input is ReplayInput.SAVE_CUE:
        new = ReplayState(phase=phase, save_cycle=state.save_cycle + 1, save_epoch=epoch)
    elif replay_input is ReplayInput.SAVE_CONFIRMED:
        if clip is None:
            raise StateTransitionError("save confirmation carries no clip")
        if epoch != state.save_epoch:
            raise StateTransitionError(
                f"save confirmation from epoch {epoch} does not match request epoch {state.save_epoch}"
            )
        new = replace(state, phase=phase, clip=clip, error=None)
    elif replay_input is ReplayInput.SAVE_FAILED:
        new = replace(state, phase=phase, clip=None, error=error or "save failed")
    elif replay_input is ReplayInput.PLAY:
        new = replace(state, phase=phase, error=None)
    elif replay_input is ReplayInput.FAULT:
        new = replace(state, phase=phase, error=error or "playback failed")
    else:
        new = replace(state, phase=phase, clip=None, error=None)
    return Transition(old=state, new=new, input=replay_input, effect=effect)


class ReplayStateMachine:
    """Holds the one authoritative ReplayState. Only `apply` changes it."""

    def __init__(self, state: ReplayState | None = None) -> None:
        self._state = state or ReplayState()

    @property
    def state(self) -> ReplayState:
        return self._state

    def apply(self, replay_input: ReplayInput, **kwargs) -> Transition:
        result = transition(self._state, replay_input, **kwargs)
        self._state = result.new
        return result


__all__ = ["ReplayEffect", "ReplayStateMachine", "Transition", "legal_inputs", "transition"]
