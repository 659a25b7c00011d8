"""Interfaces for report sources, providers and progress observers.

Providers are discovered as plugins and implement IOfflineReportProvider.
Sources are the unit of archive content; progress reporters observe a dump.

Providers and sources may be queried and written by repeated dumps against
the same reporter. Implementations must tolerate that: get_diagnostics_sources()
may be called many times, and a source must be able to write itself again.
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from diagbundle.core.archive import ArchiveEntry
    from diagbundle.core.classifiers import ClassifierSelection
    from diagbundle.core.config import ConfigResolver
    from diagbundle.core.fs import FileSystemAccess


class IProgressReporter(Protocol):
    """Observe a dump step by step.

    Call order for a dump of N sources:
        set_total_steps(N)
        for each step: started(i, path) then exactly one of finished() / error(...)

    Implementations may render UI, log, or do nothing. They are called on the
    dumping thread.
    """

    def set_total_steps(self, steps: int) -> None:
        """Announce the number of steps before the first one starts."""
        ...

    def started(self, step: int, target: str) -> None:
        """A 1-based step is about to write target."""
        ...

    def error(self, message: str, failure: BaseException) -> None:
        """The current step failed and was skipped."""
        ...

    def finished(self) -> None:
        """The current step completed."""
        ...

    def percent_changed(self, percent: int) -> None:
        """Optional progress within the current step (0-100)."""
        ...

    def info(self, message: str) -> None:
        """Optional free-form note about the current step."""
        ...


@runtime_checkable
class IReportSource(Protocol):
    """A single unit of diagnostic content."""

    def destination_path(self) -> str:
        """Relative path of the entry inside the archive ('logs/debug.log')."""
        ...

    def add_to_archive(self, entry: ArchiveEntry, progress: IProgressReporter) -> None:
        """Write the content into entry.

        Raises:
            Exception: Any failure; the reporter skips this source and carries on.
        """
        ...


@runtime_checkable
class IOfflineReportProvider(Protocol):
    """Supply report sources on demand, scoped by classifiers."""

    def init(self, fs: FileSystemAccess, config: ConfigResolver, storage_dir: Path) -> None:
        """Receive the collaborators needed to locate diagnostics."""
        ...

    def get_filter_classifiers(self) -> set[str]:
        """Classifiers this provider can contribute to."""
        ...

    def get_diagnostics_sources(self, classifiers: ClassifierSelection) -> Sequence[IReportSource]:
        """Sources matching the requested classifiers, in archive order."""
        ...


class IProviderDiscovery(Protocol):
    """Enumerate available provider implementations."""

    def discover_providers(self) -> Iterable[Any]:
        """Yield provider instances (not yet initialized)."""
        ...
