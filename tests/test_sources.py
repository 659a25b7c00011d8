"""Tests for the reusable report sources."""

from __future__ import annotations

import fnmatch
import io
import zipfile
from contextlib import nullcontext
from pathlib import Path, PurePosixPath

import pytest

from diagbundle.core.archive import ReportArchive
from diagbundle.core.errors import SourceError
from diagbundle.core.fs import FileEntry, LocalFileSystem
from diagbundle.core.sources import (
    BytesSource,
    FileSource,
    GeneratedSource,
    StreamSource,
    StringSource,
    files_in_directory,
)


def _write(tmp_path, source, progress):
    out = tmp_path / "r.zip"
    with ReportArchive(out) as archive:
        source.add_to_archive(archive.entry(source.destination_path()), progress)
    with zipfile.ZipFile(out) as zf:
        return zf.read(source.destination_path())


def test_destination_path_is_normalized():
    assert StringSource("/logs\\x.log", "").destination_path() == "logs/x.log"
    assert repr(BytesSource("a.bin", b"")) == "BytesSource('a.bin')"


def test_destination_path_rejects_escape():
    with pytest.raises(ValueError):
        StringSource("../x.txt", "")


def test_string_and_bytes_sources(tmp_path, progress):
    assert _write(tmp_path, StringSource("s.txt", "zażltá"), progress) == "zażltá".encode()
    assert _write(tmp_path, BytesSource("b.bin", b"\x00\xff"), progress) == b"\x00\xff"


class TestFileSource:
    def test_copies_file_and_reports_percent(self, tmp_path, progress):
        src = tmp_path / "big.log"
        src.write_bytes(b"y" * (3 * 1024 * 1024 + 10))

        data = _write(tmp_path, FileSource(src, "logs/big.log"), progress)

        assert data == src.read_bytes()
        percents = [c[1] for c in progress.of("percent")]
        assert percents == sorted(percents)
        assert percents[-1] == 100

    def test_default_destination_is_file_name(self, tmp_path):
        src = tmp_path / "x.log"
        src.write_text("")
        assert FileSource(src).destination_path() == "x.log"

    def test_missing_file(self, tmp_path, progress):
        source = FileSource(tmp_path / "missing.log", "missing.log")
        with pytest.raises(SourceError):
            _write(tmp_path, source, progress)


class TestGeneratedSource:
    def test_text_producer(self, tmp_path, progress):
        calls = []

        def producer() -> str:
            calls.append(1)
            return "generated"

        source = GeneratedSource("gen.txt", producer)
        assert calls == []
        assert _write(tmp_path, source, progress) == b"generated"
        assert calls == [1]

    def test_bytes_producer(self, tmp_path, progress):
        assert _write(tmp_path, GeneratedSource("g.bin", lambda: b"\x01"), progress) == b"\x01"

    def test_bad_return_type(self, tmp_path, progress):
        with pytest.raises(SourceError, match="expected str or bytes"):
            _write(tmp_path, GeneratedSource("g.txt", lambda: 42), progress)  # type: ignore[arg-type]


def test_stream_source(tmp_path, progress):
    source = StreamSource("s.bin", lambda: nullcontext(io.BytesIO(b"streamed")))
    assert _write(tmp_path, source, progress) == b"streamed"


def test_files_in_directory(storage_dir):
    sources = files_in_directory(LocalFileSystem(), storage_dir / "logs", "logs", "*.log*")
    assert [s.destination_path() for s in sources] == ["logs/debug.log", "logs/debug.log.1"]


def test_files_in_directory_skips_subdirectories(storage_dir):
    sources = files_in_directory(LocalFileSystem(), storage_dir, "root")
    assert sources == []


def test_files_in_directory_missing(tmp_path):
    assert files_in_directory(LocalFileSystem(), tmp_path / "nope", "x") == []


class MemoryFileSystem:
    """FileSystemAccess over a dict of path -> bytes; nothing touches the disk."""

    def __init__(self, files: dict[str, bytes]) -> None:
        self.files = {PurePosixPath(k): v for k, v in files.items()}
        self.opened: list[str] = []

    def exists(self, path) -> bool:
        return PurePosixPath(path) in self.files or self.is_dir(path)

    def is_dir(self, path) -> bool:
        path = PurePosixPath(path)
        return any(path in p.parents for p in self.files)

    def size(self, path) -> int:
        return len(self.files[PurePosixPath(path)])

    def list_dir(self, path, *, pattern=None) -> list[FileEntry]:
        base = PurePosixPath(path)
        return [
            FileEntry(path=Path(p), rel_path=p.name, is_dir=False, size=len(data), mtime=0.0)
            for p, data in sorted(self.files.items())
            if p.parent == base and (pattern is None or fnmatch.fnmatch(p.name, pattern))
        ]

    def walk(self, root):
        return iter(self.list_dir(root))

    def open_read(self, path):
        self.opened.append(str(path))
        return nullcontext(io.BytesIO(self.files[PurePosixPath(path)]))


class TestNonLocalFileSystem:
    def test_files_are_read_through_the_given_fs(self, tmp_path, progress):
        fs = MemoryFileSystem({"/srv/logs/a.log": b"alpha", "/srv/logs/b.txt": b"skip"})

        sources = files_in_directory(fs, Path("/srv/logs"), "logs", "*.log")

        assert [s.destination_path() for s in sources] == ["logs/a.log"]
        assert _write(tmp_path, sources[0], progress) == b"alpha"
        assert fs.opened == ["/srv/logs/a.log"]
        assert [c[1] for c in progress.of("percent")] == [100]

    def test_missing_file_in_fs(self, tmp_path, progress):
        source = FileSource(Path("/srv/gone.log"), "gone.log", fs=MemoryFileSystem({}))
        with pytest.raises(SourceError):
            _write(tmp_path, source, progress)
