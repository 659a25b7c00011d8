"""environment provider.

Two classifiers:
- env: process environment variables (env.txt), sensitive values masked
- platform: interpreter and operating system facts (platform.txt)
"""

from __future__ import annotations

import os
import platform
import sys
from collections.abc import Iterable, Mapping

from diagbundle.core.classifiers import ClassifierSelection
from diagbundle.core.interfaces import IReportSource
from diagbundle.core.provider import OfflineReportProvider
from diagbundle.core.sources import GeneratedSource

ENV_CLASSIFIER = "env"
PLATFORM_CLASSIFIER = "platform"

_SENSITIVE_MARKERS = ("PASSWORD", "SECRET", "TOKEN", "CREDENTIAL", "KEY")
MASK = "*****"


def format_environment(environ: Mapping[str, str]) -> str:
    lines = []
    for name in sorted(environ):
        value = environ[name]
        if any(marker in name.upper() for marker in _SENSITIVE_MARKERS):
            value = MASK
        lines.append(f"{name}={value}\n")
    return "".join(lines)


def format_platform() -> str:
    facts = [
        ("python.version", sys.version.replace("\n", " ")),
        ("python.implementation", platform.python_implementation()),
        ("python.executable", sys.executable),
        ("os.name", os.name),
        ("platform.system", platform.system()),
        ("platform.release", platform.release()),
        ("platform.machine", platform.machine()),
        ("platform.node", platform.node()),
        ("cpu.count", str(os.cpu_count())),
    ]
    return "".join(f"{k}={v}\n" for k, v in facts)


class EnvironmentProvider(OfflineReportProvider):
    """Provide environment and platform reports computed at write time."""

    def __init__(self) -> None:
        super().__init__("environment", ENV_CLASSIFIER, PLATFORM_CLASSIFIER)

    def provide_sources(self, classifiers: ClassifierSelection) -> Iterable[IReportSource]:
        sources: list[IReportSource] = []
        if classifiers.matches(ENV_CLASSIFIER):
            sources.append(GeneratedSource("env.txt", lambda: format_environment(os.environ)))
        if classifiers.matches(PLATFORM_CLASSIFIER):
            sources.append(GeneratedSource("platform.txt", format_platform))
        return sources
