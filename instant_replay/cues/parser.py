"""Game cue datagram parsing."""

from __future__ import annotations

import re

import orjson

_CAMEL_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])")
_COMMAND_RE = re.compile(r"^[a-z][a-z0-9_]*$")


def normalize_command(name: str) -> str:
    """`EpicSave`, `epic-save` and `EPIC_SAVE` all become `epic_save`."""
    name = _CAMEL_BOUNDARY.sub("_", name.strip())
    return name.replace("-", "_").replace(" ", "_").lower()


def parse_cue(data: bytes) -> str:
    """Extract the command name from a datagram.

    Accepts a JSON object with a string `cmd` field or a bare command word.
    Raises ValueError for anything else.
    """
    try:
        text = data.decode("utf-8").strip()
    except UnicodeDecodeError as exc:
        raise ValueError("cue is not valid UTF-8") from exc
    if not text:
        raise ValueError("empty cue")

    if text.startswith(("{", "[", '"')):
        try:
            obj = orjson.loads(text)
        except orjson.JSONDecodeError as exc:
            raise ValueError(f"invalid JSON cue: {exc}") from exc
        if not isinstance(obj, dict):
            raise ValueError("JSON cue must be an object")
        raw = obj.get("cmd")
        if not isinstance(raw, str):
            raise ValueError("JSON cue missing string 'cmd'")
        text = raw

    command = normalize_command(text)
    if not _COMMAND_RE.match(command):
        raise ValueError(f"unrecognized cue {text!r}")
    return command


__all__ = ["normalize_command", "parse_cue"]
