"""Setup-phase helpers: build a wired reporter from configuration."""

from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime
from pathlib import Path

from diagbundle.core.config import ConfigResolver
from diagbundle.core.fs import FileSystemAccess, LocalFileSystem
from diagbundle.core.interfaces import IProgressReporter, IProviderDiscovery
from diagbundle.core.loader import ProviderLoader
from diagbundle.core.logging import apply_logging_policy, get_logger, set_colors
from diagbundle.core.progress import LoggingProgress
from diagbundle.core.provider_registry import ProviderRegistry
from diagbundle.core.reporter import DiagnosticsReporter, DumpSummary, InitContext

_logger = get_logger(__name__)


def find_builtin_providers_dir(resolver: ConfigResolver | None = None) -> Path | None:
    """Locate the built-in providers directory.

    Tried in order:
    1. builtin_plugins_dir config key (DIAGBUNDLE_BUILTIN_PLUGINS_DIR)
    2. Development checkout: <repo>/plugins next to src/
    3. Installed layout: plugins/ as a sibling of the package
    """
    if resolver is not None:
        configured = resolver.get("builtin_plugins_dir")
        if configured:
            return Path(str(configured)).expanduser()

    package_root = Path(__file__).resolve().parent.parent
    for candidate in (package_root.parent.parent / "plugins", package_root.parent / "plugins"):
        if candidate.is_dir():
            return candidate
    return None


def configure_logging(resolver: ConfigResolver) -> None:
    """Apply logging.level and logging.color from configuration."""
    apply_logging_policy(resolver.resolve_logging_policy())
    color = resolver.get("logging.color", True)
    if isinstance(color, str):
        color = color.strip().lower() in {"1", "true", "yes", "on"}
    set_colors(bool(color))


def create_reporter(
    resolver: ConfigResolver | None = None,
    *,
    discovery: IProviderDiscovery | None = None,
    fs: FileSystemAccess | None = None,
) -> DiagnosticsReporter:
    """Build a reporter and register every discoverable provider.

    Args:
        resolver: Configuration (default: ConfigResolver())
        discovery: Provider discovery (default: ProviderLoader over the
            built-in, user and system provider directories)
        fs: File-system access handed to providers (default: LocalFileSystem)
    """
    resolver = resolver or ConfigResolver()
    configure_logging(resolver)

    compression, compresslevel = resolver.resolve_compression()
    reporter = DiagnosticsReporter(compression=compression, compresslevel=compresslevel)

    if discovery is None:
        discovery = ProviderLoader(
            builtin_providers_dir=find_builtin_providers_dir(resolver),
            user_providers_dir=resolver.resolve_path("plugins_dir"),
            registry=ProviderRegistry(resolver),
        )

    context = InitContext(
        fs=fs or LocalFileSystem(),
        config=resolver,
        storage_dir=resolver.resolve_path("storage_dir"),
    )
    reporter.register_all_providers(context, discovery)
    return reporter


def default_report_path(resolver: ConfigResolver, now: datetime | None = None) -> Path:
    """<reports_dir>/diagbundle-YYYY-MM-DD_HHMMSS.zip"""
    stamp = (now or datetime.now()).strftime("%Y-%m-%d_%H%M%S")
    return resolver.resolve_path("reports_dir") / f"diagbundle-{stamp}.zip"


def dump_report(
    reporter: DiagnosticsReporter,
    resolver: ConfigResolver,
    *,
    destination: Path | None = None,
    classifiers: Iterable[str] | None = None,
    progress: IProgressReporter | None = None,
) -> DumpSummary:
    """Dump with configuration defaults for anything not given explicitly."""
    if classifiers is None:
        classifiers = resolver.resolve_dump_classifiers()
    destination = destination or default_report_path(resolver)
    return reporter.dump(set(classifiers), destination, progress or LoggingProgress())
