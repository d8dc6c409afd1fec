"""Levelled logger writing timestamped lines to a text stream."""

from __future__ import annotations

import sys
import time
from enum import IntEnum
from typing import Callable, TextIO

_MESSAGE_LIMIT = 255
_BANNER_RULE = "===================================="


class LogLevel(IntEnum):
    DEBUG = 0
    INFO = 1
    WARNING = 2
    ERROR = 3
    CRITICAL = 4
    NONE = 5


_LEVEL_NAMES = {
    LogLevel.DEBUG: "DEBUG",
    LogLevel.INFO: "INFO",
    LogLevel.WARNING: "WARN",
    LogLevel.ERROR: "ERROR",
    LogLevel.CRITICAL: "CRIT",
}


def level_to_string(level: LogLevel | int) -> str:
    """Return the short label printed for a level, or ``"UNKNOWN"``."""
    return _LEVEL_NAMES.get(level, "UNKNOWN")


def _monotonic_ms() -> int:
    return int(time.monotonic() * 1000)


class Logger:
    """Writes messages at or above the current level once initialised.

    ``clock`` returns milliseconds; timestamps count from the call to :meth:`init`.
    Messages are printf-style: ``message % args`` when arguments are given.
    """

    def __init__(self, stream: TextIO | None = None, clock: Callable[[], int] | None = None) -> None:
        self._stream = stream
        self._clock = clock or _monotonic_ms
        self._level = LogLevel.INFO
        self._initialized = False
        self._init_time = 0

    @property
    def stream(self) -> TextIO:
        return self._stream if self._stream is not None else sys.stdout

    @property
    def level(self) -> LogLevel:
        return self._level

    @property
    def initialized(self) -> bool:
        return self._initialized

    def init(self) -> None:
        """Start logging and print the banner; later calls do nothing."""
        if self._initialized:
            return
        self._init_time = self._clock()
        self._initialized = True
        self.stream.write(f"{_BANNER_RULE}\n       Logger Initialized\n{_BANNER_RULE}\n")

    def set_level(self, level: LogLevel) -> None:
        self._level = LogLevel(level)

    def log(self, level: LogLevel, tag: str | None, message: str, *args: object) -> None:
        if not self._initialized or level < self._level:
            return
        text = message % args if args else message
        elapsed = (self._clock() - self._init_time) & 0xFFFFFFFF
        seconds, ms = divmod(elapsed, 1000)
        prefix = f"{seconds:6d}.{ms:03d} [{level_to_string(level)}] "
        if tag is not None:
            prefix += f"[{tag}] "
        self.stream.write(prefix + text[:_MESSAGE_LIMIT] + "\n")

    def log_raw(self, message: str) -> None:
        if self._initialized:
            self.stream.write(message + "\n")

    def debug(self, tag: str | None, message: str, *args: object) -> None:
        self.log(LogLevel.DEBUG, tag, message, *args)

    def info(self, tag: str | None, message: str, *args: object) -> None:
        self.log(LogLevel.INFO, tag, message, *args)

    def warning(self, tag: str | None, message: str, *args: object) -> None:
        self.log(LogLevel.WARNING, tag, message, *args)

    def error(self, tag: str | None, message: str, *args: object) -> None:
        self.log(LogLevel.ERROR, tag, message, *args)

    def critical(self, tag: str | None, message: str, *args: object) -> None:
        self.log(LogLevel.CRITICAL, tag, message, *args)