from .parser import parse_cue, normalize_command
from .listener import CueListener

__all__ = ["CueListener", "normalize_command", "parse_cue"]
