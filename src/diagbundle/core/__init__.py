"""diagbundle - diagnostics report bundles.

The core collects report sources from pluggable offline providers and writes
them into a single ZIP archive. Everything that knows where diagnostics live
is a provider plugin.
"""

__version__ = "1.0.0"

from diagbundle.core.archive import ArchiveEntry, ReportArchive
from diagbundle.core.bootstrap import create_reporter, default_report_path, dump_report
from diagbundle.core.classifiers import (
    ALL_CLASSIFIERS,
    ALL_LABEL,
    AllClassifiers,
    ClassifierIndex,
    ClassifierSelection,
    NamedClassifier,
    parse_classifier,
)
from diagbundle.core.config import ConfigResolver
from diagbundle.core.errors import (
    ArchiveError,
    ConfigError,
    DiagBundleError,
    DiskFullError,
    FileError,
    ProviderError,
    ProviderNotFoundError,
    ProviderValidationError,
    SourceError,
)
from diagbundle.core.events import EventBus, build_envelope, get_event_bus
from diagbundle.core.fs import FileEntry, FileSystemAccess, LocalFileSystem
from diagbundle.core.interfaces import (
    IOfflineReportProvider,
    IProgressReporter,
    IProviderDiscovery,
    IReportSource,
)
from diagbundle.core.loader import ProviderLoader, ProviderManifest
from diagbundle.core.logging import (
    VerbosityLevel,
    get_logger,
    get_verbosity,
    set_colors,
    set_verbosity,
)
from diagbundle.core.progress import InteractiveProgress, LoggingProgress, NullProgress
from diagbundle.core.provider import OfflineReportProvider
from diagbundle.core.provider_registry import ProviderRegistry, ProviderState
from diagbundle.core.reporter import DiagnosticsReporter, DumpSummary, InitContext, StepResult
from diagbundle.core.sources import (
    BytesSource,
    FileSource,
    GeneratedSource,
    ReportSource,
    StreamSource,
    StringSource,
    files_in_directory,
)

__all__ = [
    # Reporter
    "DiagnosticsReporter",
    "DumpSummary",
    "InitContext",
    "StepResult",
    # Classifiers
    "ALL_CLASSIFIERS",
    "ALL_LABEL",
    "AllClassifiers",
    "NamedClassifier",
    "ClassifierSelection",
    "ClassifierIndex",
    "parse_classifier",
    # Archive
    "ReportArchive",
    "ArchiveEntry",
    # Interfaces
    "IReportSource",
    "IOfflineReportProvider",
    "IProgressReporter",
    "IProviderDiscovery",
    # Sources and providers
    "ReportSource",
    "FileSource",
    "BytesSource",
    "StringSource",
    "GeneratedSource",
    "StreamSource",
    "files_in_directory",
    "OfflineReportProvider",
    # Progress
    "NullProgress",
    "LoggingProgress",
    "InteractiveProgress",
    # Discovery
    "ProviderLoader",
    "ProviderManifest",
    "ProviderRegistry",
    "ProviderState",
    # File system
    "FileSystemAccess",
    "LocalFileSystem",
    "FileEntry",
    # Config
    "ConfigResolver",
    # Errors
    "DiagBundleError",
    "ProviderError",
    "ProviderNotFoundError",
    "ProviderValidationError",
    "ConfigError",
    "FileError",
    "ArchiveError",
    "DiskFullError",
    "SourceError",
    # Events
    "EventBus",
    "build_envelope",
    "get_event_bus",
    # Logging
    "VerbosityLevel",
    "get_logger",
    "set_verbosity",
    "get_verbosity",
    "set_colors",
    # Setup
    "create_reporter",
    "default_report_path",
    "dump_report",
]
