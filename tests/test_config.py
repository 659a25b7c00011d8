"""Tests for ConfigResolver."""

from pathlib import Path

import pytest

from diagbundle.core.config import ConfigResolver
from diagbundle.core.errors import ConfigError


def _resolver(tmp_path: Path, **kwargs) -> ConfigResolver:
    kwargs.setdefault("user_config_path", tmp_path / "user.yaml")
    kwargs.setdefault("system_config_path", tmp_path / "system.yaml")
    return ConfigResolver(**kwargs)


def test_cli_has_highest_priority(tmp_path: Path) -> None:
    """CLI args have highest priority."""
    user_config = tmp_path / "user.yaml"
    user_config.write_text("dump:\n  compression: bzip2\n")

    resolver = _resolver(tmp_path, cli_args={"dump": {"compression": "stored"}})

    value, source = resolver.resolve("dump.compression")
    assert value == "stored"
    assert source == "cli"


def test_env_overrides_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    """Environment variables override config files."""
    (tmp_path / "user.yaml").write_text("storage_dir: /from/user\n")
    monkeypatch.setenv("DIAGBUNDLE_STORAGE_DIR", "/from/env")

    value, source = _resolver(tmp_path).resolve("storage_dir")
    assert value == "/from/env"
    assert source == "env"


def test_user_config_overrides_system(tmp_path: Path) -> None:
    """User config overrides system config."""
    (tmp_path / "user.yaml").write_text("reports_dir: /user\n")
    (tmp_path / "system.yaml").write_text("reports_dir: /system\nplugins_dir: /sys/plugins\n")

    resolver = _resolver(tmp_path)
    assert resolver.resolve("reports_dir") == ("/user", "user_config")
    assert resolver.resolve("plugins_dir") == ("/sys/plugins", "system_config")


def test_defaults(tmp_path: Path) -> None:
    resolver = _resolver(tmp_path)
    assert resolver.resolve("dump.compression") == ("deflated", "default")
    assert resolver.resolve("dump.classifiers") == (["all"], "default")


def test_missing_key_raises(tmp_path: Path) -> None:
    resolver = _resolver(tmp_path, defaults={})
    with pytest.raises(ConfigError, match="not found"):
        resolver.resolve("nope")
    assert resolver.get("nope", 7) == 7


def test_invalid_yaml(tmp_path: Path) -> None:
    (tmp_path / "user.yaml").write_text("a: [unclosed\n")
    with pytest.raises(ConfigError, match="Failed to load config"):
        _resolver(tmp_path).resolve("storage_dir")


def test_resolve_path_expands_home(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("HOME", str(tmp_path))
    resolver = _resolver(tmp_path, cli_args={"storage_dir": "~/data"})
    assert resolver.resolve_path("storage_dir") == tmp_path / "data"


class TestDumpClassifiers:
    def test_default_is_all(self, tmp_path: Path) -> None:
        assert _resolver(tmp_path).resolve_dump_classifiers() == {"all"}

    def test_env_is_comma_separated(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("DIAGBUNDLE_DUMP_CLASSIFIERS", "logs, config,,")
        assert _resolver(tmp_path).resolve_dump_classifiers() == {"logs", "config"}

    def test_list_from_config(self, tmp_path: Path) -> None:
        (tmp_path / "user.yaml").write_text("dump:\n  classifiers: [tree, env]\n")
        assert _resolver(tmp_path).resolve_dump_classifiers() == {"tree", "env"}

    def test_empty_rejected(self, tmp_path: Path) -> None:
        resolver = _resolver(tmp_path, cli_args={"dump": {"classifiers": " , "}})
        with pytest.raises(ConfigError) as exc_info:
            resolver.resolve_dump_classifiers()
        assert exc_info.value.suggestion is not None


class TestCompression:
    def test_default(self, tmp_path: Path) -> None:
        assert _resolver(tmp_path).resolve_compression() == ("deflated", None)

    def test_level_from_env(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("DIAGBUNDLE_DUMP_COMPRESSION", "LZMA")
        monkeypatch.setenv("DIAGBUNDLE_DUMP_COMPRESSLEVEL", "3")
        assert _resolver(tmp_path).resolve_compression() == ("lzma", 3)

    def test_invalid_method(self, tmp_path: Path) -> None:
        resolver = _resolver(tmp_path, cli_args={"dump": {"compression": "zstd"}})
        with pytest.raises(ConfigError, match="Allowed values"):
            resolver.resolve_compression()

    def test_invalid_level(self, tmp_path: Path) -> None:
        resolver = _resolver(tmp_path, cli_args={"dump": {"compresslevel": "high"}})
        with pytest.raises(ConfigError):
            resolver.resolve_compression()


class TestLoggingPolicy:
    @pytest.mark.parametrize(
        ("level", "emit_info", "emit_debug"),
        [
            ("quiet", False, False),
            ("normal", True, False),
            ("verbose", True, True),
            ("DEBUG", True, True),
        ],
    )
    def test_levels(self, tmp_path: Path, level: str, emit_info: bool, emit_debug: bool) -> None:
        resolver = _resolver(tmp_path, cli_args={"logging": {"level": level}})
        policy = resolver.resolve_logging_policy()
        assert policy.level_name == level.lower()
        assert policy.emit_error and policy.emit_warning
        assert policy.emit_info is emit_info
        assert policy.emit_debug is emit_debug
        assert policy.sources["level_name"].source == "cli"

    def test_invalid_level(self, tmp_path: Path) -> None:
        resolver = _resolver(tmp_path, cli_args={"logging": {"level": "loud"}})
        with pytest.raises(ConfigError, match="Allowed values"):
            resolver.resolve_logging_level()


class TestSchema:
    def test_known_keys(self, tmp_path: Path) -> None:
        keys = _resolver(tmp_path).list_known_keys()
        for key in (
            "storage_dir",
            "reports_dir",
            "plugins_dir",
            "dump.classifiers",
            "dump.compression",
            "dump.compresslevel",
            "provider_registry.disabled",
            "logging.level",
            "logging.color",
        ):
            assert key in keys

    def test_validate_value(self, tmp_path: Path) -> None:
        resolver = _resolver(tmp_path)
        resolver.validate_value("dump.compression", "stored")
        resolver.validate_value("dump.compresslevel", "9")
        resolver.validate_value("logging.color", "false")
        resolver.validate_value("unknown.key", object())

        with pytest.raises(ConfigError):
            resolver.validate_value("dump.compression", "zip")
        with pytest.raises(ConfigError):
            resolver.validate_value("dump.classifiers", "logs")
        with pytest.raises(ConfigError):
            resolver.validate_value("storage_dir", 5)

    def test_unknown_key_schema(self, tmp_path: Path) -> None:
        schema = _resolver(tmp_path).get_key_schema("providers.logs.pattern")
        assert schema.unknown

    def test_resolve_all_includes_file_keys(self, tmp_path: Path) -> None:
        (tmp_path / "user.yaml").write_text("providers:\n  logs:\n    pattern: '*.txt'\n")
        resolved = _resolver(tmp_path).resolve_all()

        assert resolved["providers.logs.pattern"].value == "*.txt"
        assert resolved["providers.logs.pattern"].source == "user_config"
        assert resolved["dump.compression"].source == "default"
        assert "dump.compresslevel" not in resolved
