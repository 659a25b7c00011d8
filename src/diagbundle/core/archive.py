"""Archive writer for report bundles.

A ReportArchive is a ZIP container opened for one dump. Entries are staged in
a spooled temporary buffer and copied into the container only when the writer
leaves the entry's context cleanly, so a source that fails half way leaves no
entry behind.
"""

from __future__ import annotations

import errno
import shutil
import tempfile
import zipfile
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path, PurePosixPath
from typing import IO, Any

from diagbundle.core.errors import ArchiveError, DiskFullError
from diagbundle.core.logging import get_logger

_logger = get_logger(__name__)

COMPRESSION_TYPES = {
    "deflated": zipfile.ZIP_DEFLATED,
    "stored": zipfile.ZIP_STORED,
    "bzip2": zipfile.ZIP_BZIP2,
    "lzma": zipfile.ZIP_LZMA,
}

# Entries up to this size stay in memory while being staged.
SPOOL_MAX_BYTES = 8 * 1024 * 1024

COPY_CHUNK_BYTES = 1024 * 1024


def normalize_entry_path(path: str) -> str:
    """Return the archive-relative POSIX form of path.

    Raises:
        ValueError: If path is empty or escapes the archive root.
    """
    raw = str(path).replace("\\", "/").strip("/")
    if raw == "":
        raise ValueError("archive entry path must not be empty")
    parts = PurePosixPath(raw).parts
    if ".." in parts:
        raise ValueError(f"archive entry path escapes the archive root: {path!r}")
    normalized = "/".join(p for p in parts if p != ".")
    if normalized == "":
        raise ValueError(f"archive entry path must not be empty: {path!r}")
    return normalized


def _fatal(action: str, path: Path, exc: BaseException) -> ArchiveError:
    if isinstance(exc, OSError) and exc.errno == errno.ENOSPC:
        return DiskFullError(str(path))
    return ArchiveError(
        f"Cannot {action} '{path}': {exc}",
        "Check that the destination is writable and is not a directory",
    )


class ArchiveEntry:
    """Write target for one file entry of a ReportArchive."""

    def __init__(self, archive: ReportArchive, path: str) -> None:
        self._archive = archive
        self._path = normalize_entry_path(path)

    @property
    def path(self) -> str:
        return self._path

    @contextmanager
    def open(self) -> Iterator[IO[bytes]]:
        """Open a binary write stream; the entry is committed on clean exit."""
        with tempfile.SpooledTemporaryFile(max_size=SPOOL_MAX_BYTES) as buffer:
            yield buffer
            self._archive._commit(self._path, buffer)

    def write_bytes(self, data: bytes) -> None:
        with self.open() as f:
            f.write(data)

    def write_text(self, text: str, encoding: str = "utf-8") -> None:
        self.write_bytes(text.encode(encoding))

    def __repr__(self) -> str:
        return f"ArchiveEntry({self._path!r})"


class ReportArchive:
    """Compressed, randomly addressable ZIP archive at a destination path.

    Example:
        with ReportArchive(Path("/tmp/report.zip")) as archive:
            archive.makedirs("logs")
            archive.entry("logs/debug.log").write_text("...")
    """

    def __init__(
        self,
        destination: Path,
        *,
        compression: str = "deflated",
        compresslevel: int | None = None,
    ) -> None:
        """Initialize archive writer.

        Args:
            destination: Archive file path (parents are created on open)
            compression: One of COMPRESSION_TYPES
            compresslevel: Optional level passed to zipfile
        """
        if compression not in COMPRESSION_TYPES:
            allowed = ", ".join(COMPRESSION_TYPES)
            raise ValueError(f"Unknown compression {compression!r}. Allowed values: {allowed}")

        self.destination = Path(destination)
        self.compression = compression
        self.compresslevel = compresslevel

        self._zip: zipfile.ZipFile | None = None
        self._names: set[str] = set()
        self._written: list[str] = []

    @property
    def is_open(self) -> bool:
        return self._zip is not None

    @property
    def written(self) -> list[str]:
        """File entries committed so far, in write order."""
        return list(self._written)

    def prepare_destination(self) -> None:
        """Create the destination's parent directory and all missing ancestors.

        Raises:
            ArchiveError: If the directory cannot be created.
        """
        parent = self.destination.parent
        try:
            parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise _fatal("create report directory", parent, e) from e

    def open(self) -> ReportArchive:
        """Create (or truncate) the container.

        Raises:
            ArchiveError: If the destination or the container cannot be created.
        """
        if self._zip is not None:
            raise ArchiveError(f"Archive already open: {self.destination}")

        self.prepare_destination()
        try:
            self._zip = zipfile.ZipFile(
                self.destination,
                mode="w",
                compression=COMPRESSION_TYPES[self.compression],
                compresslevel=self.compresslevel,
            )
        except (OSError, ValueError, RuntimeError) as e:
            raise _fatal("create archive", self.destination, e) from e

        _logger.debug(f"Opened archive {self.destination} compression={self.compression}")
        return self

    def makedirs(self, path: str) -> None:
        """Ensure directory entries exist for path and all of its ancestors."""
        zf = self._require_open()
        parts = PurePosixPath(normalize_entry_path(path)).parts
        for i in range(1, len(parts) + 1):
            name = "/".join(parts[:i]) + "/"
            if name in self._names:
                continue
            zf.mkdir(name)
            self._names.add(name)

    def entry(self, path: str) -> ArchiveEntry:
        """Return a write target for the file entry at path."""
        self._require_open()
        return ArchiveEntry(self, path)

    def names(self) -> list[str]:
        """All entry names (directories and files) in container order."""
        return self._require_open().namelist()

    def close(self) -> None:
        """Finalize the container (writes the central directory).

        Raises:
            ArchiveError: If finalization fails.
        """
        if self._zip is None:
            return
        zf, self._zip = self._zip, None
        try:
            zf.close()
        except (OSError, ValueError, RuntimeError) as e:
            raise _fatal("finalize archive", self.destination, e) from e
        _logger.debug(f"Closed archive {self.destination} entries={len(self._written)}")

    def _commit(self, path: str, staged: IO[bytes]) -> None:
        zf = self._require_open()
        size = staged.seek(0, 2)
        staged.seek(0)
        with zf.open(path, mode="w", force_zip64=size >= zipfile.ZIP64_LIMIT) as dst:
            shutil.copyfileobj(staged, dst, COPY_CHUNK_BYTES)
        self._names.add(path)
        self._written.append(path)

    def _require_open(self) -> zipfile.ZipFile:
        if self._zip is None:
            raise ArchiveError(f"Archive is not open: {self.destination}")
        return self._zip

    def __enter__(self) -> ReportArchive:
        if self._zip is None:
            self.open()
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
