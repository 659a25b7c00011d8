"""Base class for offline report providers.

Subclasses declare an identifier and the classifiers they serve, then
implement provide_sources():

    class LogsProvider(OfflineReportProvider):
        def __init__(self) -> None:
            super().__init__("logs", "logs")

        def provide_sources(self, classifiers):
            if not classifiers.matches("logs"):
                return []
            return files_in_directory(self.fs, self.storage_dir / "logs", "logs", "*.log*")
"""

from __future__ import annotations

from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import TYPE_CHECKING, Any

from diagbundle.core.classifiers import ClassifierSelection
from diagbundle.core.errors import ProviderError

if TYPE_CHECKING:
    from diagbundle.core.config import ConfigResolver
    from diagbundle.core.fs import FileSystemAccess
    from diagbundle.core.interfaces import IReportSource


class OfflineReportProvider:
    """Provider base storing the init context and the declared classifiers."""

    def __init__(self, identifier: str, *classifiers: str) -> None:
        if not classifiers:
            raise ProviderError(f"Provider '{identifier}' must declare at least one classifier")
        self.identifier = identifier
        self._classifiers = frozenset(classifiers)

        self._fs: FileSystemAccess | None = None
        self._config: ConfigResolver | None = None
        self._storage_dir: Path | None = None

    def init(self, fs: FileSystemAccess, config: ConfigResolver, storage_dir: Path) -> None:
        self._fs = fs
        self._config = config
        self._storage_dir = Path(storage_dir)

    @property
    def initialized(self) -> bool:
        return self._fs is not None

    @property
    def fs(self) -> FileSystemAccess:
        if self._fs is None:
            raise ProviderError(f"Provider '{self.identifier}' used before init()")
        return self._fs

    @property
    def config(self) -> ConfigResolver:
        if self._config is None:
            raise ProviderError(f"Provider '{self.identifier}' used before init()")
        return self._config

    @property
    def storage_dir(self) -> Path:
        if self._storage_dir is None:
            raise ProviderError(f"Provider '{self.identifier}' used before init()")
        return self._storage_dir

    def setting(self, key: str, default: Any = None) -> Any:
        """Provider-specific config value from providers.<identifier>.<key>."""
        return self.config.get(f"providers.{self.identifier}.{key}", default)

    def get_filter_classifiers(self) -> set[str]:
        return set(self._classifiers)

    def get_diagnostics_sources(
        self, classifiers: ClassifierSelection | Iterable[str]
    ) -> Sequence[IReportSource]:
        return list(self.provide_sources(ClassifierSelection.coerce(classifiers)))

    def provide_sources(self, classifiers: ClassifierSelection) -> Iterable[IReportSource]:
        """Return the sources for the requested classifiers, in archive order."""
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.identifier!r})"
