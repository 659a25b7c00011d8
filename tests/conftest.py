"""Pytest configuration and fixtures."""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

# Add repo root and src to path (for 'plugins.*' and 'diagbundle.*' imports)
repo_root = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(repo_root))
sys.path.insert(0, str(repo_root / "src"))


class RecordingProgress:
    """Progress reporter that records every callback as a tuple."""

    def __init__(self) -> None:
        self.calls: list[tuple] = []

    def set_total_steps(self, steps: int) -> None:
        self.calls.append(("set_total_steps", steps))

    def started(self, step: int, target: str) -> None:
        self.calls.append(("started", step, target))

    def error(self, message: str, failure: BaseException) -> None:
        self.calls.append(("error", message, failure))

    def finished(self) -> None:
        self.calls.append(("finished",))

    def percent_changed(self, percent: int) -> None:
        self.calls.append(("percent", percent))

    def info(self, message: str) -> None:
        self.calls.append(("info", message))

    def names(self, *, with_percent: bool = False) -> list[str]:
        return [c[0] for c in self.calls if with_percent or c[0] not in ("percent", "info")]

    def of(self, name: str) -> list[tuple]:
        return [c for c in self.calls if c[0] == name]


class FailingSource:
    """Report source whose write always raises."""

    def __init__(self, path: str, exc: BaseException | None = None) -> None:
        self._path = path
        self.exc = exc or RuntimeError("boom")

    def destination_path(self) -> str:
        return self._path

    def add_to_archive(self, entry, progress) -> None:
        with entry.open() as f:
            f.write(b"partial content")
            raise self.exc

    def __repr__(self) -> str:
        return f"FailingSource({self._path!r})"


class StaticProvider:
    """Provider handing out a fixed source list per classifier."""

    def __init__(self, sources_by_classifier: dict) -> None:
        self.sources_by_classifier = sources_by_classifier
        self.init_args: tuple | None = None
        self.queries = 0

    def init(self, fs, config, storage_dir) -> None:
        self.init_args = (fs, config, storage_dir)

    def get_filter_classifiers(self) -> set[str]:
        return set(self.sources_by_classifier)

    def get_diagnostics_sources(self, classifiers):
        self.queries += 1
        out = []
        for label, sources in self.sources_by_classifier.items():
            if classifiers.matches(label):
                out.extend(sources)
        return out


@pytest.fixture(autouse=True)
def _isolate_runtime(monkeypatch):
    """Keep process-wide state from leaking between tests.

    Clears DIAGBUNDLE_* variables from the environment and the global event
    bus, and restores the default verbosity afterwards.
    """
    import os

    from diagbundle.core.events import get_event_bus
    from diagbundle.core.logging import VerbosityLevel, set_verbosity

    for name in list(os.environ):
        if name.startswith("DIAGBUNDLE_"):
            monkeypatch.delenv(name, raising=False)

    get_event_bus().clear()
    yield
    get_event_bus().clear()
    set_verbosity(VerbosityLevel.NORMAL)


@pytest.fixture
def progress():
    """Create RecordingProgress.

    Returns:
        RecordingProgress instance
    """
    return RecordingProgress()


@pytest.fixture
def storage_dir(tmp_path):
    """Create a fake server storage directory.

    Layout:
        logs/debug.log, logs/debug.log.1, logs/readme.txt
        conf/server.yaml
        data/blob.bin

    Returns:
        Path to storage directory
    """
    root = tmp_path / "storage"
    (root / "logs").mkdir(parents=True)
    (root / "conf").mkdir()
    (root / "data").mkdir()

    (root / "logs" / "debug.log").write_text("line 1\nline 2\n")
    (root / "logs" / "debug.log.1").write_text("older\n")
    (root / "logs" / "readme.txt").write_text("not a log\n")
    (root / "conf" / "server.yaml").write_text("port: 8080\n")
    (root / "data" / "blob.bin").write_bytes(b"\x00" * 16)
    return root


@pytest.fixture
def config_resolver(tmp_path, storage_dir):
    """Create ConfigResolver pointing every path into tmp_path.

    Returns:
        ConfigResolver instance
    """
    from diagbundle.core.config import ConfigResolver

    return ConfigResolver(
        cli_args={
            "storage_dir": str(storage_dir),
            "reports_dir": str(tmp_path / "reports"),
            "plugins_dir": str(tmp_path / "user_plugins"),
        },
        user_config_path=tmp_path / "user_config.yaml",
        system_config_path=tmp_path / "system_config.yaml",
    )


@pytest.fixture
def builtin_plugins_dir():
    """Repository plugins/ directory."""
    return repo_root / "plugins"


@pytest.fixture
def failing_source():
    """FailingSource class (call with a path and optional exception)."""
    return FailingSource


@pytest.fixture
def static_provider():
    """StaticProvider class (call with {classifier: [sources]})."""
    return StaticProvider
