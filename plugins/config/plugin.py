"""config provider.

Archives the effective diagbundle configuration (config/diagbundle.yaml, with
the source of every value) and the server's own configuration files found in
<storage_dir>/conf (config/<name>).
"""

from __future__ import annotations

from collections.abc import Iterable
from pathlib import Path
from typing import Any

import yaml

from diagbundle.core.classifiers import ClassifierSelection
from diagbundle.core.interfaces import IReportSource
from diagbundle.core.provider import OfflineReportProvider
from diagbundle.core.sources import GeneratedSource, files_in_directory

CLASSIFIER = "config"
DEFAULT_PATTERN = "*.yaml"

_SENSITIVE_MARKERS = ("password", "secret", "token", "credential", "key")
MASK = "*****"


def _is_sensitive(key: str) -> bool:
    leaf = key.rsplit(".", 1)[-1].lower()
    return any(marker in leaf for marker in _SENSITIVE_MARKERS)


class ConfigProvider(OfflineReportProvider):
    """Provide the resolved configuration snapshot and config files."""

    def __init__(self) -> None:
        super().__init__("config", CLASSIFIER)

    def conf_dir(self) -> Path:
        configured = self.setting("conf_dir")
        if configured:
            return Path(str(configured)).expanduser()
        return self.storage_dir / "conf"

    def snapshot(self) -> str:
        """YAML document: key -> {value, source}, sensitive values masked."""
        flat: dict[str, Any] = {}
        for key, item in self.config.resolve_all().items():
            value = MASK if _is_sensitive(key) and item.value else item.value
            if isinstance(value, Path):
                value = str(value)
            flat[key] = {"value": value, "source": item.source}
        return yaml.safe_dump(flat, sort_keys=True, default_flow_style=False, allow_unicode=False)

    def provide_sources(self, classifiers: ClassifierSelection) -> Iterable[IReportSource]:
        if not classifiers.matches(CLASSIFIER):
            return []

        sources: list[IReportSource] = [GeneratedSource("config/diagbundle.yaml", self.snapshot)]
        pattern = str(self.setting("pattern", DEFAULT_PATTERN))
        sources.extend(files_in_directory(self.fs, self.conf_dir(), "config", pattern))
        return sources
