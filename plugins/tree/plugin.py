"""tree provider: a listing of the storage directory (tree.txt)."""

from __future__ import annotations

from collections.abc import Iterable

from diagbundle.core.classifiers import ClassifierSelection
from diagbundle.core.interfaces import IReportSource
from diagbundle.core.provider import OfflineReportProvider
from diagbundle.core.sources import GeneratedSource

CLASSIFIER = "tree"


class TreeProvider(OfflineReportProvider):
    def __init__(self) -> None:
        super().__init__("tree", CLASSIFIER)

    def render(self) -> str:
        root = self.storage_dir
        if not self.fs.is_dir(root):
            return f"{root} (missing)\n"

        lines = [f"{root}\n"]
        for entry in self.fs.walk(root):
            depth = entry.rel_path.count("/")
            indent = "    " * depth
            if entry.is_dir:
                lines.append(f"{indent}{entry.path.name}/\n")
            else:
                lines.append(f"{indent}{entry.path.name} ({entry.size} bytes)\n")
        return "".join(lines)

    def provide_sources(self, classifiers: ClassifierSelection) -> Iterable[IReportSource]:
        if not classifiers.matches(CLASSIFIER):
            return []
        return [GeneratedSource("tree.txt", self.render)]
