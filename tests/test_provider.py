"""Tests for the OfflineReportProvider base class."""

from __future__ import annotations

import pytest

from diagbundle.core.classifiers import ClassifierSelection
from diagbundle.core.errors import ProviderError
from diagbundle.core.fs import LocalFileSystem
from diagbundle.core.interfaces import IOfflineReportProvider
from diagbundle.core.provider import OfflineReportProvider
from diagbundle.core.sources import StringSource


class EchoProvider(OfflineReportProvider):
    def __init__(self) -> None:
        super().__init__("echo", "echo", "extra")

    def provide_sources(self, classifiers: ClassifierSelection):
        if classifiers.matches("echo"):
            yield StringSource("echo.txt", str(self.setting("message", "hi")))


def test_requires_classifiers():
    with pytest.raises(ProviderError):
        OfflineReportProvider("empty")


def test_use_before_init():
    provider = EchoProvider()
    assert not provider.initialized
    with pytest.raises(ProviderError, match="before init"):
        _ = provider.storage_dir


def test_implements_protocol():
    assert isinstance(EchoProvider(), IOfflineReportProvider)


def test_sources_and_settings(config_resolver, storage_dir):
    provider = EchoProvider()
    provider.init(LocalFileSystem(), config_resolver, storage_dir)

    assert provider.initialized
    assert provider.storage_dir == storage_dir
    assert provider.get_filter_classifiers() == {"echo", "extra"}

    sources = provider.get_diagnostics_sources({"echo"})
    assert isinstance(sources, list)
    assert [s.destination_path() for s in sources] == ["echo.txt"]
    assert provider.get_diagnostics_sources({"extra"}) == []


def test_setting_reads_provider_namespace(tmp_path, storage_dir):
    from diagbundle.core.config import ConfigResolver

    resolver = ConfigResolver(
        cli_args={"providers": {"echo": {"message": "configured"}}},
        user_config_path=tmp_path / "u.yaml",
        system_config_path=tmp_path / "s.yaml",
    )
    provider = EchoProvider()
    provider.init(LocalFileSystem(), resolver, storage_dir)

    assert provider.setting("message") == "configured"
    assert provider.setting("missing", 3) == 3


def test_base_provide_sources_not_implemented(config_resolver, storage_dir):
    provider = OfflineReportProvider("bare", "bare")
    provider.init(LocalFileSystem(), config_resolver, storage_dir)
    with pytest.raises(NotImplementedError):
        provider.get_diagnostics_sources({"all"})
