"""Tests for the verbosity-gated logger and the LogBus."""

from __future__ import annotations

from diagbundle.core.config import LoggingPolicy
from diagbundle.core.log_bus import LogBus, LogRecord
from diagbundle.core.logging import (
    VerbosityLevel,
    apply_logging_policy,
    get_log_sink,
    get_logger,
    get_verbosity,
    set_colors,
    set_log_sink,
    set_verbosity,
)


def _policy(level: str, *, info: bool, debug: bool) -> LoggingPolicy:
    return LoggingPolicy(
        level_name=level,
        emit_error=True,
        emit_warning=True,
        emit_info=info,
        emit_debug=debug,
        sources={},
    )


def test_get_logger_is_cached():
    assert get_logger("a.b") is get_logger("a.b")


def test_verbosity_gates_output(capsys):
    logger = get_logger("test.verbosity")
    set_colors(False)

    set_verbosity(VerbosityLevel.QUIET)
    logger.info("hidden info")
    logger.warning("shown warning")

    set_verbosity(2)
    logger.verbose("shown verbose")
    logger.debug("hidden debug")

    out = capsys.readouterr().out
    assert "hidden" not in out
    assert "[warning] shown warning" in out
    assert "[verbose] shown verbose" in out


def test_error_goes_to_stderr(capsys):
    set_verbosity(VerbosityLevel.QUIET)
    get_logger("test.err").error("bad thing")
    captured = capsys.readouterr()
    assert "[error] bad thing" in captured.err
    assert captured.out == ""


def test_apply_logging_policy():
    apply_logging_policy(_policy("quiet", info=False, debug=False))
    assert get_verbosity() == VerbosityLevel.QUIET

    apply_logging_policy(_policy("normal", info=True, debug=False))
    assert get_verbosity() == VerbosityLevel.NORMAL

    apply_logging_policy(_policy("debug", info=True, debug=True))
    assert get_verbosity() == VerbosityLevel.DEBUG


def test_log_sink_receives_plain_lines(capsys):
    lines: list[str] = []
    set_log_sink(lines.append)
    try:
        assert get_log_sink() is not None
        get_logger("test.sink").warning("sink me")
    finally:
        set_log_sink(None)

    get_logger("test.sink").warning("after reset")
    assert lines == ["[warning] sink me"]
    assert get_log_sink() is None


class TestLogBus:
    def test_level_and_all_subscribers(self):
        bus = LogBus()
        all_seen: list[LogRecord] = []
        warn_seen: list[LogRecord] = []
        bus.subscribe_all(all_seen.append)
        bus.subscribe("WARNING", warn_seen.append)

        bus.publish(LogRecord(level_name="INFO", plain="[info] a", logger_name="x"))
        bus.publish(LogRecord(level_name="WARNING", plain="[warning] b", logger_name="x"))

        assert [r.plain for r in all_seen] == ["[info] a", "[warning] b"]
        assert [r.plain for r in warn_seen] == ["[warning] b"]

    def test_failing_subscriber_is_suppressed(self, capsys):
        bus = LogBus()
        seen: list[LogRecord] = []

        def explode(record: LogRecord) -> None:
            raise RuntimeError("subscriber")

        bus.subscribe_all(explode)
        bus.subscribe_all(seen.append)
        bus.publish(LogRecord(level_name="INFO", plain="x", logger_name="y"))

        assert len(seen) == 1
        assert "LogBus subscriber raised" in capsys.readouterr().err

    def test_unsubscribe(self):
        bus = LogBus()
        seen: list[LogRecord] = []
        bus.subscribe("INFO", seen.append)
        bus.unsubscribe("INFO", seen.append)
        bus.unsubscribe("INFO", seen.append)
        bus.publish(LogRecord(level_name="INFO", plain="x", logger_name="y"))
        assert seen == []
