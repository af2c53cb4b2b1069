from .source import SourceController
from .controller import ReplayController
from .machine import Transition, ReplayEffect, ReplayStateMachine, transition

__all__ = [
    "ReplayController",
    "ReplayEffect",
    "ReplayStateMachine",
    "SourceController",
    "Transition",
    "transition",
]
