"""Runtime package.

Keep this module dependency-light: importing `instant_replay.runtime.*` from
unit tests should not require a running control endpoint.
"""

__all__: list[str] = []
