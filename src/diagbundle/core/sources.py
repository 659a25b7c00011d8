"""Reusable report sources.

Every source has a fixed archive path and writes itself into an ArchiveEntry.
Sources are immutable and can be written again by a later dump.
"""

from __future__ import annotations

import shutil
from collections.abc import Callable
from contextlib import AbstractContextManager
from pathlib import Path
from typing import IO, TYPE_CHECKING

from diagbundle.core.archive import COPY_CHUNK_BYTES, normalize_entry_path
from diagbundle.core.errors import SourceError
from diagbundle.core.fs import FileSystemAccess, LocalFileSystem

if TYPE_CHECKING:
    from diagbundle.core.archive import ArchiveEntry
    from diagbundle.core.interfaces import IProgressReporter


class ReportSource:
    """Base class holding the archive destination path."""

    def __init__(self, destination: str) -> None:
        self._destination = normalize_entry_path(destination)

    def destination_path(self) -> str:
        return self._destination

    def add_to_archive(self, entry: ArchiveEntry, progress: IProgressReporter) -> None:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._destination!r})"


class FileSource(ReportSource):
    """Copy a file, reporting percentage progress while streaming.

    The file is read through fs (the local disk when none is given), the same
    facade the providers list it with.
    """

    def __init__(
        self, path: Path, destination: str | None = None, fs: FileSystemAccess | None = None
    ) -> None:
        self.path = Path(path)
        self.fs: FileSystemAccess = fs if fs is not None else LocalFileSystem()
        super().__init__(destination or self.path.name)

    def add_to_archive(self, entry: ArchiveEntry, progress: IProgressReporter) -> None:
        if not self.fs.exists(self.path) or self.fs.is_dir(self.path):
            raise SourceError(f"Not a readable file: {self.path}")

        total = self.fs.size(self.path)
        copied = 0
        last_percent = -1
        with self.fs.open_read(self.path) as src, entry.open() as dst:
            while True:
                chunk = src.read(COPY_CHUNK_BYTES)
                if not chunk:
                    break
                dst.write(chunk)
                copied += len(chunk)
                if total > 0:
                    percent = min(100, copied * 100 // total)
                    if percent != last_percent:
                        last_percent = percent
                        progress.percent_changed(percent)


class BytesSource(ReportSource):
    """Fixed in-memory content."""

    def __init__(self, destination: str, data: bytes) -> None:
        super().__init__(destination)
        self.data = bytes(data)

    def add_to_archive(self, entry: ArchiveEntry, progress: IProgressReporter) -> None:
        entry.write_bytes(self.data)


class StringSource(BytesSource):
    """Fixed in-memory text, stored as UTF-8."""

    def __init__(self, destination: str, text: str, encoding: str = "utf-8") -> None:
        super().__init__(destination, text.encode(encoding))


class GeneratedSource(ReportSource):
    """Content computed at write time.

    The producer is called once per write and returns str (stored as UTF-8)
    or bytes. Anything it raises fails only this source.
    """

    def __init__(self, destination: str, producer: Callable[[], str | bytes]) -> None:
        super().__init__(destination)
        self.producer = producer

    def add_to_archive(self, entry: ArchiveEntry, progress: IProgressReporter) -> None:
        content = self.producer()
        if isinstance(content, str):
            content = content.encode("utf-8")
        if not isinstance(content, (bytes, bytearray)):
            raise SourceError(
                f"Producer for {self.destination_path()} returned {type(content).__name__}, "
                "expected str or bytes"
            )
        entry.write_bytes(bytes(content))


class StreamSource(ReportSource):
    """Copy content from a readable binary stream opened at write time."""

    def __init__(
        self, destination: str, opener: Callable[[], AbstractContextManager[IO[bytes]]]
    ) -> None:
        super().__init__(destination)
        self.opener = opener

    def add_to_archive(self, entry: ArchiveEntry, progress: IProgressReporter) -> None:
        with self.opener() as src, entry.open() as dst:
            shutil.copyfileobj(src, dst, COPY_CHUNK_BYTES)


def files_in_directory(
    fs: FileSystemAccess,
    directory: Path,
    prefix: str,
    pattern: str = "*",
) -> list[ReportSource]:
    """One FileSource per regular file in directory matching pattern.

    Files are archived as '<prefix>/<name>', sorted by name. A missing
    directory yields no sources.
    """
    if not fs.is_dir(directory):
        return []

    prefix = prefix.strip("/")
    sources: list[ReportSource] = []
    for item in fs.list_dir(directory, pattern=pattern):
        if item.is_dir:
            continue
        dest = f"{prefix}/{item.path.name}" if prefix else item.path.name
        sources.append(FileSource(item.path, dest, fs=fs))
    return sources
