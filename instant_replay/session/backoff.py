"""Exponential reconnect backoff."""

from __future__ import annotations


class Backoff:
    """Delays start at min_delay_s and grow by `multiplier` per consecutive failure, capped at max_delay_s."""

    def __init__(self, *, min_delay_s: float, max_delay_s: float, multiplier: float = 2.0) -> None:
        self.min_delay_s = max(0.0, float(min_delay_s))
        self.max_delay_s = max(self.min_delay_s, float(max_delay_s))
        self.multiplier = max(1.0, float(multiplier))
        self._current = self.min_delay_s
        self.failures = 0

    @property
    def current(self) -> float:
        return self._current

    def next_delay(self) -> float:
        delay = self._current
        self.failures += 1
        self._current = min(self.max_delay_s, self._current * self.multiplier)
        return delay

    def reset(self) -> None:
        self._current = self.min_delay_s
        self.failures = 0


__all__ = ["Backoff"]
