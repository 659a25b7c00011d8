"""logs provider.

Archives the server's log files, rotated ones included, under logs/.
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path

from diagbundle.core.classifiers import ClassifierSelection
from diagbundle.core.interfaces import IReportSource
from diagbundle.core.logging import get_logger
from diagbundle.core.provider import OfflineReportProvider
from diagbundle.core.sources import files_in_directory

_LOG = get_logger(__name__)

CLASSIFIER = "logs"
DEFAULT_PATTERN = "*.log*"


class LogsProvider(OfflineReportProvider):
    """Provide one FileSource per log file."""

    def __init__(self) -> None:
        super().__init__("logs", CLASSIFIER)

    def logs_dir(self) -> Path:
        configured = self.setting("logs_dir")
        if configured:
            return Path(str(configured)).expanduser()
        return self.storage_dir / "logs"

    def provide_sources(self, classifiers: ClassifierSelection) -> Iterable[IReportSource]:
        if not classifiers.matches(CLASSIFIER):
            return []

        directory = self.logs_dir()
        if not self.fs.is_dir(directory):
            _LOG.verbose(f"No log directory at {directory}")
            return []

        pattern = str(self.setting("pattern", DEFAULT_PATTERN))
        return files_in_directory(self.fs, directory, "logs", pattern)
