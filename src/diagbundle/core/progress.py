"""Progress reporters for report dumps.

All reporters implement IProgressReporter. Pick one per caller:
- NullProgress: no output
- LoggingProgress: one log line per step, for batch/non-interactive runs
- InteractiveProgress: a single rewritten status line on a terminal
"""

from __future__ import annotations

import sys
from typing import TextIO

from diagbundle.core.logging import get_logger

_logger = get_logger(__name__)


class NullProgress:
    """Progress reporter that ignores every callback."""

    def set_total_steps(self, steps: int) -> None:
        pass

    def started(self, step: int, target: str) -> None:
        pass

    def error(self, message: str, failure: BaseException) -> None:
        pass

    def finished(self) -> None:
        pass

    def percent_changed(self, percent: int) -> None:
        pass

    def info(self, message: str) -> None:
        pass


class LoggingProgress:
    """Report progress through the core logger."""

    def __init__(self, logger_name: str = __name__) -> None:
        self._log = get_logger(logger_name)
        self.total_steps = 0
        self.current_step = 0
        self.current_target = ""

    def set_total_steps(self, steps: int) -> None:
        self.total_steps = steps
        self._log.verbose(f"Collecting {steps} diagnostic source(s)")

    def started(self, step: int, target: str) -> None:
        self.current_step = step
        self.current_target = target
        self._log.verbose(f"[{step}/{self.total_steps}] {target}")

    def error(self, message: str, failure: BaseException) -> None:
        self._log.warning(
            f"[{self.current_step}/{self.total_steps}] {self.current_target}: "
            f"{message}: {type(failure).__name__}: {failure}"
        )

    def finished(self) -> None:
        self._log.debug(f"[{self.current_step}/{self.total_steps}] done")

    def percent_changed(self, percent: int) -> None:
        self._log.debug(f"[{self.current_step}/{self.total_steps}] {percent}%")

    def info(self, message: str) -> None:
        self._log.info(message)


class InteractiveProgress:
    """Render a single, continuously rewritten status line.

    Example output while copying:
        2/5 logs/debug.log  [#########.]  90%
    """

    BAR_WIDTH = 10
    LINE_WIDTH = 90

    def __init__(self, out: TextIO | None = None, *, verbose: bool = False) -> None:
        self._out = out or sys.stdout
        self._verbose = verbose
        self.total_steps = 0
        self._step = 0
        self._target = ""
        self._percent = 0

    def set_total_steps(self, steps: int) -> None:
        self.total_steps = steps

    def started(self, step: int, target: str) -> None:
        self._step = step
        self._target = target
        self._percent = 0
        self._render()

    def percent_changed(self, percent: int) -> None:
        percent = max(0, min(100, int(percent)))
        if percent == self._percent:
            return
        self._percent = percent
        self._render()

    def finished(self) -> None:
        self._percent = 100
        self._render()
        self._out.write("\n")
        self._out.flush()

    def error(self, message: str, failure: BaseException) -> None:
        self._out.write("\n")
        self._out.write(f"  Error: {message}: {type(failure).__name__}: {failure}\n")
        self._out.flush()

    def info(self, message: str) -> None:
        if self._verbose:
            self._out.write(f"\n  {message}\n")
            self._out.flush()

    def _render(self) -> None:
        filled = self._percent * self.BAR_WIDTH // 100
        bar = "#" * filled + "." * (self.BAR_WIDTH - filled)
        line = f"{self._step}/{self.total_steps} {self._target}  [{bar}] {self._percent:3d}%"
        self._out.write(f"\r{line.ljust(self.LINE_WIDTH)}")
        self._out.flush()
