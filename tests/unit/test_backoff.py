from __future__ import annotations

from instant_replay.session.backoff import Backoff


def test_backoff_grows_to_cap_then_stays() -> None:
    backoff = Backoff(min_delay_s=1.0, max_delay_s=10.0, multiplier=2.0)
    delays = [backoff.next_delay() for _ in range(7)]
    assert delays == [1.0, 2.0, 4.0, 8.0, 10.0, 10.0, 10.0]
    assert all(a <= b for a, b in zip(delays, delays[1:]))
    assert backoff.failures == 7


def test_backoff_reset_returns_to_min() -> None:
    backoff = Backoff(min_delay_s=0.5, max_delay_s=4.0, multiplier=3.0)
    backoff.next_delay()
    backoff.next_delay()
    backoff.reset()
    assert backoff.failures == 0
    assert backoff.next_delay() == 0.5


def test_backoff_normalizes_bad_bounds() -> None:
    backoff = Backoff(min_delay_s=5.0, max_delay_s=1.0, multiplier=0.5)
    assert backoff.max_delay_s == 5.0
    assert backoff.multiplier == 1.0
    assert [backoff.next_delay() for _ in range(3)] == [5.0, 5.0, 5.0]
