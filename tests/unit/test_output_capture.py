from __future__ import annotations

import sys
import logging

import pytest

from instant_replay.runtime.output_capture import OutputCapture


def test_printed_lines_become_log_records(caplog: pytest.LogCaptureFixture) -> None:
    caplog.set_level(logging.INFO, logger="test.captured")
    capture = OutputCapture(logger_name="test.captured")

    with capture:
        print("first line")
        print("partial", end="")
        sys.stderr.write("warned\n")

    messages = [(r.levelno, r.getMessage()) for r in caplog.records if r.name == "test.captured"]
    assert (logging.INFO, "first line") in messages
    assert (logging.WARNING, "warned") in messages
    # Unterminated output is flushed on exit.
    assert (logging.INFO, "partial") in messages


def test_streams_restored_after_exception() -> None:
    stdout, stderr = sys.stdout, sys.stderr
    capture = OutputCapture()

    with pytest.raises(ValueError):
        with capture:
            assert sys.stdout is not stdout
            raise ValueError("boom")

    assert sys.stdout is stdout
    assert sys.stderr is stderr
    assert not capture.active


def test_double_enter_is_refused() -> None:
    capture = OutputCapture()
    with capture:
        with pytest.raises(RuntimeError):
            capture.__enter__()
    assert not capture.active


@pytest.mark.asyncio
async def test_async_context_manager() -> None:
    stdout = sys.stdout
    async with OutputCapture() as capture:
        assert capture.active
        assert sys.stdout is not stdout
    assert sys.stdout is stdout
