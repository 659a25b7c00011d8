"""DiagnosticsReporter: collect report sources and write them into one archive.

Sources come from two places:
- registered offline providers, asked for sources on every dump
- sources registered directly under a classifier

A dump writes every collected source into a fresh ZIP archive, one step per
source. A failing source is reported through the progress reporter and
skipped; only failures of the archive itself abort the dump.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any

from diagbundle.core.archive import ReportArchive, normalize_entry_path
from diagbundle.core.classifiers import ClassifierIndex, ClassifierSelection
from diagbundle.core.events import build_envelope, get_event_bus
from diagbundle.core.logging import get_logger

if TYPE_CHECKING:
    from diagbundle.core.config import ConfigResolver
    from diagbundle.core.fs import FileSystemAccess
    from diagbundle.core.interfaces import (
        IOfflineReportProvider,
        IProgressReporter,
        IProviderDiscovery,
        IReportSource,
    )

_logger = get_logger(__name__)

_COMPONENT = "reporter"

STEP_FAILED_MESSAGE = "Step failed"


@dataclass(frozen=True)
class InitContext:
    """Collaborators handed to every discovered provider's init()."""

    fs: FileSystemAccess
    config: ConfigResolver
    storage_dir: Path


@dataclass(frozen=True)
class StepResult:
    """Outcome of writing one source."""

    step: int
    path: str
    failure: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None


@dataclass
class DumpSummary:
    """What one dump wrote."""

    destination: Path
    total_steps: int
    written: list[str] = field(default_factory=list)
    failures: list[StepResult] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failures


class _StepProgress:
    """Progress handle given to sources.

    Forwards the optional percent_changed()/info() callbacks only when the
    caller's reporter implements them.
    """

    def __init__(self, progress: IProgressReporter) -> None:
        self._progress = progress

    def percent_changed(self, percent: int) -> None:
        cb = getattr(self._progress, "percent_changed", None)
        if cb is not None:
            cb(percent)

    def info(self, message: str) -> None:
        cb = getattr(self._progress, "info", None)
        if cb is not None:
            cb(message)

    def __getattr__(self, name: str) -> Any:
        return getattr(self._progress, name)


def _publish(event: str, operation: str, data: dict[str, Any]) -> None:
    try:
        get_event_bus().publish(
            event,
            build_envelope(event=event, component=_COMPONENT, operation=operation, data=data),
        )
    except Exception as e:
        _logger.warning(f"event emission failed: {type(e).__name__}: {e}")


class DiagnosticsReporter:
    """Registry of providers and sources, and the dump orchestrator.

    Registration is a setup-phase activity and is not thread-safe. Registering
    the same provider or source twice is not deduplicated: its sources are
    written twice by later dumps.

    Example:
        reporter = DiagnosticsReporter()
        reporter.register_source("config", StringSource("conf/app.yaml", text))
        reporter.register_offline_provider(LogsProvider())
        reporter.dump({"all"}, Path("/tmp/report.zip"), LoggingProgress())
    """

    def __init__(self, *, compression: str = "deflated", compresslevel: int | None = None) -> None:
        """Initialize reporter.

        Args:
            compression: Archive compression method (see diagbundle.core.archive)
            compresslevel: Optional compression level
        """
        self.compression = compression
        self.compresslevel = compresslevel

        self._providers: list[IOfflineReportProvider] = []
        self._additional_sources: dict[str, list[IReportSource]] = {}
        self._classifiers = ClassifierIndex()

    # ----- Registration -----

    def register_offline_provider(self, provider: IOfflineReportProvider) -> None:
        """Append provider; its classifiers become available."""
        self._providers.append(provider)
        self._classifiers.add_provider(provider)
        _logger.debug(
            f"Registered provider {provider!r} "
            f"classifiers={sorted(provider.get_filter_classifiers())}"
        )

    def register_source(self, classifier: str, source: IReportSource) -> None:
        """Register a source directly under classifier."""
        self._classifiers.add(classifier)
        self._additional_sources.setdefault(classifier, []).append(source)
        _logger.debug(f"Registered source {source!r} under '{classifier}'")

    def register_all_providers(
        self, context: InitContext, discovery: IProviderDiscovery
    ) -> list[IOfflineReportProvider]:
        """Initialize and register every provider the discovery yields.

        A provider whose init() raises is logged and left unregistered.

        Returns:
            The providers registered by this call, in discovery order
        """
        registered: list[IOfflineReportProvider] = []
        for provider in discovery.discover_providers():
            try:
                provider.init(context.fs, context.config, context.storage_dir)
            except Exception as e:
                _logger.warning(f"Provider {provider!r} failed to initialize: {e}")
                continue
            self.register_offline_provider(provider)
            registered.append(provider)

        _logger.verbose(f"Registered {len(registered)} discovered provider(s)")
        return registered

    def get_available_classifiers(self) -> list[str]:
        """Known classifiers, sorted."""
        return self._classifiers.labels()

    @property
    def providers(self) -> tuple[IOfflineReportProvider, ...]:
        return tuple(self._providers)

    @property
    def additional_sources(self) -> dict[str, tuple[IReportSource, ...]]:
        return {k: tuple(v) for k, v in self._additional_sources.items()}

    # ----- Dump -----

    def collect_sources(
        self, classifiers: ClassifierSelection | Iterable[str]
    ) -> list[IReportSource]:
        """Sources a dump with these classifiers would write, in write order.

        Provider sources come first (registration order, then each provider's
        own order), followed by matching directly registered sources (bucket
        order, then registration order inside a bucket).
        """
        selection = ClassifierSelection.coerce(classifiers)

        sources: list[IReportSource] = []
        for provider in self._providers:
            sources.extend(provider.get_diagnostics_sources(selection))

        for classifier, bucket in self._additional_sources.items():
            if selection.matches(classifier):
                sources.extend(bucket)

        return sources

    def dump(
        self,
        classifiers: ClassifierSelection | Iterable[str],
        destination: Path,
        progress: IProgressReporter,
    ) -> DumpSummary:
        """Write every matching source into a new archive at destination.

        Args:
            classifiers: Requested classifiers ("all" selects everything)
            destination: Archive path; parent directories are created
            progress: Receives set_total_steps/started/error/finished callbacks

        Returns:
            Summary of written entries and failed steps

        Raises:
            ArchiveError: If the destination directory or the archive cannot be
                created, or the archive cannot be finalized.
        """
        selection = ClassifierSelection.coerce(classifiers)
        destination = Path(destination)
        sources = self.collect_sources(selection)

        _logger.info(f"Writing diagnostics report to {destination}")
        _publish(
            "dump.start",
            "dump",
            {
                "destination": str(destination),
                "classifiers": sorted(selection.labels),
                "steps": len(sources),
            },
        )
        start = time.perf_counter()

        summary = DumpSummary(destination=destination, total_steps=len(sources))
        archive = ReportArchive(
            destination, compression=self.compression, compresslevel=self.compresslevel
        )
        with archive:
            progress.set_total_steps(len(sources))
            step_progress = _StepProgress(progress)

            for step, source in enumerate(sources, start=1):
                committed = len(archive.written)
                result = self._write_step(archive, step, source, progress, step_progress)
                if result.ok:
                    # a source that never opened an entry adds nothing
                    summary.written.extend(archive.written[committed:])
                    progress.finished()
                else:
                    summary.failures.append(result)
                    _logger.warning(
                        f"Step {step}/{len(sources)} ({result.path}) failed: "
                        f"{type(result.failure).__name__}: {result.failure}"
                    )
                    progress.error(STEP_FAILED_MESSAGE, result.failure)
                _publish(
                    "dump.step",
                    "dump",
                    {
                        "step": step,
                        "path": result.path,
                        "status": "succeeded" if result.ok else "failed",
                    },
                )

        duration_ms = int((time.perf_counter() - start) * 1000)
        _publish(
            "dump.end",
            "dump",
            {
                "destination": str(destination),
                "steps": len(sources),
                "written": len(summary.written),
                "failed": len(summary.failures),
                "duration_ms": duration_ms,
            },
        )
        _logger.info(
            f"Report {destination} finished: {len(summary.written)} written, "
            f"{len(summary.failures)} failed"
        )
        return summary

    def _write_step(
        self,
        archive: ReportArchive,
        step: int,
        source: IReportSource,
        progress: IProgressReporter,
        step_progress: _StepProgress,
    ) -> StepResult:
        """Prepare and write one source; failures come back as a StepResult."""
        path, failure = _capture(lambda: self._prepare_entry(archive, source))
        label = path if path is not None else repr(source)

        progress.started(step, label)
        if failure is not None:
            return StepResult(step=step, path=label, failure=failure)

        _, failure = _capture(lambda: source.add_to_archive(archive.entry(label), step_progress))
        return StepResult(step=step, path=label, failure=failure)

    @staticmethod
    def _prepare_entry(archive: ReportArchive, source: IReportSource) -> str:
        path = normalize_entry_path(source.destination_path())
        parent, _, _name = path.rpartition("/")
        if parent:
            archive.makedirs(parent)
        return path


def _capture(fn: Callable[[], Any]) -> tuple[Any, BaseException | None]:
    """Run fn and return (value, None) or (None, exception)."""
    try:
        return fn(), None
    except Exception as e:
        return None, e

