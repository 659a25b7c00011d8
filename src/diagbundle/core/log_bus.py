"""LogBus: fan-out of formatted log records to in-process subscribers.

Used by the core logger so that progress UIs, tests and sinks can observe log
output. Publishing never fails because of a subscriber.
"""

from __future__ import annotations

import contextlib
import sys
import traceback
from collections.abc import Callable
from dataclasses import dataclass

LogCallback = Callable[["LogRecord"], None]


@dataclass(frozen=True)
class LogRecord:
    level_name: str
    plain: str
    logger_name: str


class LogBus:
    """Subscribers register for one level name, or for every record (level None)."""

    def __init__(self) -> None:
        self._subs: list[tuple[str | None, LogCallback]] = []

    def subscribe(self, level_name: str, cb: LogCallback) -> None:
        self._subs.append((level_name, cb))

    def subscribe_all(self, cb: LogCallback) -> None:
        self._subs.append((None, cb))

    def unsubscribe(self, level_name: str, cb: LogCallback) -> None:
        self._remove(level_name, cb)

    def unsubscribe_all(self, cb: LogCallback) -> None:
        self._remove(None, cb)

    def _remove(self, level_name: str | None, cb: LogCallback) -> None:
        with contextlib.suppress(ValueError):
            self._subs.remove((level_name, cb))

    def publish(self, record: LogRecord) -> None:
        # catch-all subscribers first, then level subscribers
        subs = sorted(self._subs, key=lambda item: item[0] is not None)
        for level_name, cb in subs:
            if level_name is None or level_name == record.level_name:
                self._deliver(cb, record)

    def clear(self) -> None:
        self._subs.clear()

    @staticmethod
    def _deliver(cb: LogCallback, record: LogRecord) -> None:
        try:
            cb(record)
        except Exception:
            # Not through the core logger: that would publish again.
            with contextlib.suppress(Exception):
                sys.stderr.write(
                    "LogBus subscriber raised; suppressed.\n" + traceback.format_exc()
                )


_LOG_BUS: LogBus | None = None


def get_log_bus() -> LogBus:
    global _LOG_BUS
    if _LOG_BUS is None:
        _LOG_BUS = LogBus()
    return _LOG_BUS
