"""Read-only file-system access handed to providers.

Providers locate diagnostics (log files, config files, directory listings)
through this facade instead of touching os/pathlib directly, so tests can
point them at a temporary tree and alternative backends can be swapped in.
"""

from __future__ import annotations

import fnmatch
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Protocol

from diagbundle.core.errors import FileError


class NotFoundError(FileError):
    """Raised when a file or directory is not found."""


class NotADirectoryError(FileError):
    """Raised when a directory was expected."""


@dataclass(frozen=True)
class FileEntry:
    """Directory entry returned by list_dir()/walk()."""

    path: Path
    rel_path: str
    is_dir: bool
    size: int | None
    mtime: float


class FileSystemAccess(Protocol):
    def exists(self, path: Path) -> bool: ...

    def is_dir(self, path: Path) -> bool: ...

    def size(self, path: Path) -> int: ...

    def list_dir(self, path: Path, *, pattern: str | None = None) -> list[FileEntry]: ...

    def walk(self, root: Path) -> Iterator[FileEntry]: ...

    def open_read(self, path: Path) -> AbstractContextManager[BinaryIO]: ...


def _entry(item: Path, base: Path) -> FileEntry:
    st = item.stat()
    is_dir = item.is_dir()
    return FileEntry(
        path=item,
        rel_path=item.relative_to(base).as_posix(),
        is_dir=is_dir,
        size=None if is_dir else int(st.st_size),
        mtime=float(st.st_mtime),
    )


class LocalFileSystem:
    """FileSystemAccess backed by the local disk."""

    def exists(self, path: Path) -> bool:
        return Path(path).exists()

    def is_dir(self, path: Path) -> bool:
        return Path(path).is_dir()

    def size(self, path: Path) -> int:
        path = Path(path)
        if not path.exists():
            raise NotFoundError(f"Not found: {path}")
        return int(path.stat().st_size)

    def list_dir(self, path: Path, *, pattern: str | None = None) -> list[FileEntry]:
        """List direct children of path, sorted by name.

        Args:
            path: Directory to list
            pattern: Optional fnmatch pattern applied to entry names
        """
        base = Path(path)
        if not base.exists():
            raise NotFoundError(f"Not found: {base}")
        if not base.is_dir():
            raise NotADirectoryError(f"Not a directory: {base}")

        entries: list[FileEntry] = []
        for item in sorted(base.iterdir(), key=lambda p: p.name):
            if pattern is not None and not fnmatch.fnmatch(item.name, pattern):
                continue
            entries.append(_entry(item, base))
        return entries

    def walk(self, root: Path) -> Iterator[FileEntry]:
        """Yield every entry below root, depth-first, siblings sorted by name."""
        base = Path(root)
        if not base.is_dir():
            raise NotADirectoryError(f"Not a directory: {base}")
        yield from self._walk(base, base)

    def _walk(self, current: Path, base: Path) -> Iterator[FileEntry]:
        for item in sorted(current.iterdir(), key=lambda p: p.name):
            yield _entry(item, base)
            if item.is_dir() and not item.is_symlink():
                yield from self._walk(item, base)

    @contextmanager
    def open_read(self, path: Path) -> Iterator[BinaryIO]:
        """Open a file for reading in binary mode."""
        path = Path(path)
        if not path.exists():
            raise NotFoundError(f"Not found: {path}")
        with open(path, "rb") as f:
            yield f
