"""Scoped redirection of stdout/stderr into the logging sink.

Anything the control stack prints while a session is alive is re-emitted as
log records on the `instant_replay.captured` logger instead of interleaving
with the host's own output. The original streams are restored on every exit
path, including exceptions and task cancellation.
"""

from __future__ import annotations

import io
import sys
import logging
import threading
import contextlib
from typing import TextIO

from instant_replay.config.logging import CAPTURED_OUTPUT_LOGGER


class _LogWriter(io.TextIOBase):
    """Line-buffered text stream that forwards complete lines to a logger."""

    def __init__(self, logger: logging.Logger, level: int, fallback: TextIO) -> None:
        super().__init__()
        self._logger = logger
        self._level = level
        self._fallback = fallback
        self._buffer = ""
        self._local = threading.local()

    def writable(self) -> bool:
        return True

    def write(self, s: str) -> int:
        if not s:
            return 0
        # A logging handler that resolves sys.stderr at emit time would loop back here.
        if getattr(self._local, "emitting", False):
            return self._fallback.write(s)
        self._buffer += s
        while "\n" in self._buffer:
            line, self._buffer = self._buffer.split("\n", 1)
            self._emit(line)
        return len(s)

    def flush(self) -> None:
        if self._buffer:
            line, self._buffer = self._buffer, ""
            self._emit(line)

    def _emit(self, line: str) -> None:
        line = line.rstrip("\r")
        if not line.strip():
            return
        self._local.emitting = True
        try:
            self._logger.log(self._level, "%s", line)
        finally:
            self._local.emitting = False


class OutputCapture:
    """Context manager (sync or async) owning sys.stdout/sys.stderr while active."""

    def __init__(
        self,
        *,
        logger_name: str = CAPTURED_OUTPUT_LOGGER,
        stdout_level: int = logging.INFO,
        stderr_level: int = logging.WARNING,
    ) -> None:
        self._logger = logging.getLogger(logger_name)
        self._stdout_level = stdout_level
        self._stderr_level = stderr_level
        self._stack: contextlib.ExitStack | None = None
        self._writers: list[_LogWriter] = []

    @property
    def active(self) -> bool:
        return self._stack is not None

    def __enter__(self) -> OutputCapture:
        if self._stack is not None:
            raise RuntimeError("output capture is already active")
        stdout_writer = _LogWriter(self._logger, self._stdout_level, sys.__stdout__ or sys.stdout)
        stderr_writer = _LogWriter(self._logger, self._stderr_level, sys.__stderr__ or sys.stderr)
        stack = contextlib.ExitStack()
        try:
            stack.enter_context(contextlib.redirect_stdout(stdout_writer))
            stack.enter_context(contextlib.redirect_stderr(stderr_writer))
        except BaseException:
            stack.close()
            raise
        self._writers = [stdout_writer, stderr_writer]
        self._stack = stack
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        stack, self._stack = self._stack, None
        writers, self._writers = self._writers, []
        try:
            for writer in writers:
                with contextlib.suppress(Exception):
                    writer.flush()
        finally:
            if stack is not None:
                stack.close()

    async def __aenter__(self) -> OutputCapture:
        return self.__enter__()

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self.__exit__(exc_type, exc, tb)


__all__ = ["OutputCapture"]
