"""Centralized logging for diagbundle.

One logger per module, gated by a process-wide verbosity:
- QUIET (0): warnings + errors
- NORMAL (1): info + warnings + errors
- VERBOSE (2): per-step detail of a dump
- DEBUG (3): registration, archive internals

Every emitted line is also published on the LogBus as a LogRecord.

Usage:
    from diagbundle.core.logging import get_logger

    logger = get_logger(__name__)
    logger.info("Writing report to /tmp/report.zip")
    logger.warning("Step 3/7 (logs/debug.log) failed")
"""

from __future__ import annotations

import sys
from collections.abc import Callable
from enum import IntEnum

from diagbundle.core.config import LoggingPolicy
from diagbundle.core.log_bus import LogRecord, get_log_bus


class VerbosityLevel(IntEnum):
    """Verbosity levels for diagbundle."""

    QUIET = 0
    NORMAL = 1
    VERBOSE = 2
    DEBUG = 3


_VERBOSITY: VerbosityLevel = VerbosityLevel.NORMAL
_USE_COLORS: bool = True

_LOG_SINK: Callable[[str], None] | None = None
_SINK_ADAPTER: Callable[[LogRecord], None] | None = None

_RESET = "\033[0m"

# level name -> (minimum verbosity, ANSI color); None means always shown
_LEVELS: dict[str, tuple[VerbosityLevel | None, str]] = {
    "DEBUG": (VerbosityLevel.DEBUG, "\033[36m"),
    "VERBOSE": (VerbosityLevel.VERBOSE, "\033[34m"),
    "INFO": (VerbosityLevel.NORMAL, "\033[32m"),
    "WARNING": (VerbosityLevel.QUIET, "\033[33m"),
    "ERROR": (None, "\033[31m"),
}


def set_verbosity(level: int | VerbosityLevel) -> None:
    """Set global verbosity level (0-3 or VerbosityLevel)."""
    global _VERBOSITY
    _VERBOSITY = VerbosityLevel(level)


def get_verbosity() -> VerbosityLevel:
    return _VERBOSITY


def apply_logging_policy(policy: LoggingPolicy) -> None:
    """Apply a resolved LoggingPolicy to core logging."""
    if policy.emit_debug:
        set_verbosity(VerbosityLevel.DEBUG)
    elif policy.emit_info:
        set_verbosity(VerbosityLevel.NORMAL)
    else:
        set_verbosity(VerbosityLevel.QUIET)


def set_colors(enabled: bool) -> None:
    """Enable or disable ANSI colors on terminal output."""
    global _USE_COLORS
    _USE_COLORS = enabled


def set_log_sink(sink: Callable[[str], None] | None) -> None:
    """Forward every plain log line to sink (None removes the current sink).

    The sink is a LogBus subscriber; exceptions it raises are ignored.
    """
    global _LOG_SINK, _SINK_ADAPTER

    if _SINK_ADAPTER is not None:
        get_log_bus().unsubscribe_all(_SINK_ADAPTER)
        _SINK_ADAPTER = None
    _LOG_SINK = sink
    if sink is None:
        return

    def _adapter(rec: LogRecord) -> None:
        try:
            sink(rec.plain)
        except Exception:
            return

    _SINK_ADAPTER = _adapter
    get_log_bus().subscribe_all(_adapter)


def get_log_sink() -> Callable[[str], None] | None:
    return _LOG_SINK


class DiagBundleLogger:
    """Logger for diagbundle with verbosity support."""

    def __init__(self, name: str) -> None:
        self.name = name

    def _log(self, level_name: str, message: str) -> None:
        threshold, color = _LEVELS[level_name]
        if threshold is not None and threshold > _VERBOSITY:
            return

        plain = f"[{level_name.lower()}] {message}"
        get_log_bus().publish(LogRecord(level_name=level_name, plain=plain, logger_name=self.name))

        stream = sys.stderr if level_name == "ERROR" else sys.stdout
        if _USE_COLORS and stream.isatty():
            line = f"{color}[{level_name.lower()}]{_RESET} {message}"
        else:
            line = plain
        print(line, file=stream)

    def debug(self, message: str) -> None:
        self._log("DEBUG", message)

    def verbose(self, message: str) -> None:
        self._log("VERBOSE", message)

    def info(self, message: str) -> None:
        self._log("INFO", message)

    def warning(self, message: str) -> None:
        self._log("WARNING", message)

    def error(self, message: str) -> None:
        """Log error message (always shown, on stderr)."""
        self._log("ERROR", message)


_LOGGERS: dict[str, DiagBundleLogger] = {}


def get_logger(name: str = __name__) -> DiagBundleLogger:
    """Get (cached) logger instance for module name."""
    if name not in _LOGGERS:
        _LOGGERS[name] = DiagBundleLogger(name)
    return _LOGGERS[name]
