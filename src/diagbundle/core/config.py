"""Configuration resolver with 4-level priority.

Priority (highest to lowest):
1. CLI arguments / explicit overrides
2. Environment variables (DIAGBUNDLE_*)
3. Config files (user > system)
4. Defaults

Keys use dot notation ("dump.compression"); the environment form upper-cases
the key and replaces dots with underscores (DIAGBUNDLE_DUMP_COMPRESSION).
"""

from __future__ import annotations

import os
from collections.abc import Callable, Iterator
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Any

import yaml

from diagbundle.core.errors import ConfigError

ENV_PREFIX = "DIAGBUNDLE_"

ALLOWED_LOGGING_LEVELS = frozenset({"quiet", "normal", "verbose", "debug"})
DEFAULT_LOGGING_LEVEL = "normal"

COMPRESSION_METHODS = ("deflated", "stored", "bzip2", "lzma")


@dataclass
class ConfigSource:
    """Represents where a config value came from."""

    value: Any
    source: str  # 'cli' | 'env' | 'user_config' | 'system_config' | 'default'


CONFIG_TYPE_ANY = "any"
CONFIG_TYPE_STRING = "string"
CONFIG_TYPE_INT = "int"
CONFIG_TYPE_BOOL = "bool"
CONFIG_TYPE_ENUM = "enum"
CONFIG_TYPE_LIST = "list"
CONFIG_TYPE_OBJECT = "object"
CONFIG_TYPE_PATH = "path"


@dataclass(frozen=True)
class ConfigKeySchema:
    """Schema metadata for a single config key."""

    key_path: str
    type: str
    description: str = ""
    default: Any | None = None
    enum_values: list[str] | None = None
    allow_numeric_strings: bool = False
    allow_bool_strings: bool = False
    unknown: bool = False


def _lookup(data: Any, key: str) -> Any | None:
    """Walk a nested dict along a dotted key; None when any step is missing."""
    for part in key.split("."):
        if not isinstance(data, dict):
            return None
        data = data.get(part)
        if data is None:
            return None
    return data


def _flatten_items(data: dict[str, Any], prefix: str = "") -> Iterator[tuple[str, Any]]:
    """Yield (dotted key, leaf value); empty dicts, lists and scalars are leaves."""
    for key, value in data.items():
        key_path = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, dict) and value:
            yield from _flatten_items(value, key_path)
        else:
            yield key_path, value


def _infer_schema_type(value: Any) -> str:
    # bool before int: bool is an int subclass
    for py_type, name in (
        (bool, CONFIG_TYPE_BOOL),
        (int, CONFIG_TYPE_INT),
        (list, CONFIG_TYPE_LIST),
        (dict, CONFIG_TYPE_OBJECT),
        (str, CONFIG_TYPE_STRING),
    ):
        if isinstance(value, py_type):
            return name
    return CONFIG_TYPE_ANY


class ConfigSchema:
    """Registry of known config keys and their metadata."""

    def __init__(self, keys: dict[str, ConfigKeySchema]) -> None:
        self._keys = dict(keys)

    @classmethod
    def from_defaults(cls, defaults: dict[str, Any]) -> ConfigSchema:
        return cls(
            {
                key_path: ConfigKeySchema(
                    key_path=key_path, type=_infer_schema_type(value), default=value
                )
                for key_path, value in _flatten_items(defaults)
            }
        )

    def with_overrides(self, overrides: dict[str, dict[str, Any]]) -> ConfigSchema:
        """Return a copy with selected key schemas refined (type, enum values, ...)."""
        keys = dict(self._keys)
        for key_path, fields in overrides.items():
            base = keys.get(key_path) or ConfigKeySchema(key_path=key_path, type=CONFIG_TYPE_ANY)
            keys[key_path] = replace(base, **fields)
        return ConfigSchema(keys)

    def list_known_keys(self) -> list[str]:
        return sorted(self._keys)

    def get(self, key_path: str) -> ConfigKeySchema | None:
        return self._keys.get(key_path)


_SCHEMA_OVERRIDES: dict[str, dict[str, Any]] = {
    "storage_dir": {"type": CONFIG_TYPE_PATH, "description": "Storage location given to providers"},
    "reports_dir": {"type": CONFIG_TYPE_PATH, "description": "Default directory for bundles"},
    "plugins_dir": {"type": CONFIG_TYPE_PATH, "description": "User provider directory"},
    "dump.compression": {
        "type": CONFIG_TYPE_ENUM,
        "enum_values": list(COMPRESSION_METHODS),
        "description": "Compression method for archive entries",
    },
    "dump.compresslevel": {"type": CONFIG_TYPE_INT, "allow_numeric_strings": True},
    "logging.level": {"type": CONFIG_TYPE_ENUM, "enum_values": sorted(ALLOWED_LOGGING_LEVELS)},
    "logging.color": {"type": CONFIG_TYPE_BOOL, "allow_bool_strings": True},
}


def _check_string(schema: ConfigKeySchema, value: Any) -> None:
    if not isinstance(value, str):
        raise ConfigError(
            f"Config key '{schema.key_path}' must be a string, got {type(value).__name__}"
        )


def _check_int(schema: ConfigKeySchema, value: Any) -> None:
    if isinstance(value, int) and not isinstance(value, bool):
        return
    if schema.allow_numeric_strings and isinstance(value, str) and value.isdigit():
        return
    raise ConfigError(f"Config key '{schema.key_path}' must be an int")


def _check_bool(schema: ConfigKeySchema, value: Any) -> None:
    if isinstance(value, bool):
        return
    if schema.allow_bool_strings and isinstance(value, str):
        if value.lower() in {"true", "false"}:
            return
    raise ConfigError(f"Config key '{schema.key_path}' must be a bool")


def _check_enum(schema: ConfigKeySchema, value: Any) -> None:
    if not schema.enum_values:
        raise ConfigError(f"Config key '{schema.key_path}' has no enum_values defined")
    if not isinstance(value, str) or value not in schema.enum_values:
        allowed = ", ".join(schema.enum_values)
        raise ConfigError(f"Invalid '{schema.key_path}': {value!r}. Allowed values: {allowed}")


def _check_instance(py_type: type | tuple[type, ...], what: str) -> Callable[..., None]:
    def check(schema: ConfigKeySchema, value: Any) -> None:
        if not isinstance(value, py_type):
            raise ConfigError(f"Config key '{schema.key_path}' must be {what}")

    return check


_VALIDATORS: dict[str, Callable[[ConfigKeySchema, Any], None]] = {
    CONFIG_TYPE_ANY: lambda schema, value: None,
    CONFIG_TYPE_STRING: _check_string,
    CONFIG_TYPE_INT: _check_int,
    CONFIG_TYPE_BOOL: _check_bool,
    CONFIG_TYPE_ENUM: _check_enum,
    CONFIG_TYPE_LIST: _check_instance(list, "a list"),
    CONFIG_TYPE_OBJECT: _check_instance(dict, "an object"),
    CONFIG_TYPE_PATH: _check_instance((str, Path), "a path string"),
}


@dataclass(frozen=True)
class LoggingPolicy:
    """Resolved, immutable logging policy."""

    level_name: str  # quiet | normal | verbose | debug
    emit_error: bool
    emit_warning: bool
    emit_info: bool
    emit_debug: bool
    sources: dict[str, ConfigSource]


class ConfigResolver:
    """Resolve configuration with strict 4-level priority.

    Example:
        resolver = ConfigResolver(
            cli_args={'dump': {'compression': 'stored'}},
            user_config_path=Path('~/.config/diagbundle/config.yaml')
        )

        method, source = resolver.resolve('dump.compression')
        # method = 'stored', source = 'cli'
    """

    def __init__(
        self,
        cli_args: dict[str, Any] | None = None,
        user_config_path: Path | None = None,
        system_config_path: Path | None = None,
        defaults: dict[str, Any] | None = None,
        schema: ConfigSchema | None = None,
    ) -> None:
        """Initialize config resolver.

        Args:
            cli_args: Arguments from CLI (highest priority)
            user_config_path: Path to user config file
            system_config_path: Path to system config file
            defaults: Default values (lowest priority); built-in defaults when None
            schema: Explicit key schema (derived from defaults when omitted)
        """
        self.cli_args = cli_args or {}
        self.user_config_path = user_config_path or Path.home() / ".config/diagbundle/config.yaml"
        self.system_config_path = system_config_path or Path("/etc/diagbundle/config.yaml")
        self.defaults = self._default_config() if defaults is None else defaults

        self.schema = schema or ConfigSchema.from_defaults(self.defaults).with_overrides(
            _SCHEMA_OVERRIDES
        )

        # Loaded lazily, once per resolver
        self._files: dict[str, dict[str, Any]] = {}

    # ----- Lookup -----

    def _layers(self) -> Iterator[tuple[str, Callable[[str], Any | None]]]:
        """(source name, lookup) pairs, highest priority first."""
        yield "cli", lambda key: _lookup(self.cli_args, key)
        yield "env", self._from_env
        yield "user_config", lambda key: _lookup(self._file("user_config"), key)
        yield "system_config", lambda key: _lookup(self._file("system_config"), key)
        yield "default", lambda key: _lookup(self.defaults, key)

    def resolve(self, key: str) -> tuple[Any, str]:
        """Resolve config value with priority.

        Args:
            key: Config key (supports dot notation: 'logging.level')

        Returns:
            (value, source) tuple

        Raises:
            ConfigError: If key not found in any source
        """
        found = self._find(key)
        if found is None:
            raise ConfigError(f"Config key '{key}' not found in any source")
        return found

    def get(self, key: str, default: Any = None) -> Any:
        """Return the resolved value for key, or default when no source has it."""
        found = self._find(key)
        return default if found is None else found[0]

    def _find(self, key: str) -> tuple[Any, str] | None:
        for source, lookup in self._layers():
            value = lookup(key)
            if value is not None:
                return value, source
        return None

    def _from_env(self, key: str) -> str | None:
        return os.environ.get(ENV_PREFIX + key.upper().replace(".", "_"))

    def _file(self, which: str) -> dict[str, Any]:
        if which not in self._files:
            path = self.user_config_path if which == "user_config" else self.system_config_path
            self._files[which] = self._load_yaml(path)
        return self._files[which]

    @staticmethod
    def _load_yaml(path: Path) -> dict[str, Any]:
        if not path.exists():
            return {}
        try:
            with open(path, encoding="utf-8") as f:
                data = yaml.safe_load(f)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Failed to load config from {path}: {e}") from e
        return data if isinstance(data, dict) else {}

    # ----- Typed accessors -----

    def resolve_path(self, key: str) -> Path:
        """Resolve a path-valued key, expanding '~'."""
        value, _src = self.resolve(key)
        if not isinstance(value, (str, Path)) or str(value).strip() == "":
            raise ConfigError(f"Config key '{key}' must be a non-empty path")
        return Path(value).expanduser()

    def resolve_dump_classifiers(self) -> set[str]:
        """Resolve dump.classifiers.

        Environment values are comma separated ("logs,config").
        """
        key = "dump.classifiers"
        value = self.get(key)
        if value is None:
            return {"all"}

        if isinstance(value, str):
            items = value.split(",")
        elif isinstance(value, (list, tuple, set)):
            items = [str(part) for part in value]
        else:
            raise ConfigError(f"Config key '{key}' must be a list of classifiers")

        classifiers = {item.strip() for item in items} - {""}
        if not classifiers:
            raise ConfigError(
                f"Config key '{key}' must not be empty",
                "Use 'all' to include every classifier",
            )
        return classifiers

    def resolve_compression(self) -> tuple[str, int | None]:
        """Resolve and validate dump.compression and dump.compresslevel."""
        method = self.get("dump.compression", "deflated")
        if not isinstance(method, str) or method.strip().lower() not in COMPRESSION_METHODS:
            allowed = ", ".join(COMPRESSION_METHODS)
            raise ConfigError(f"Invalid 'dump.compression': {method!r}. Allowed values: {allowed}")

        level = self.get("dump.compresslevel")
        if level is not None:
            try:
                level = int(level)
            except (TypeError, ValueError) as e:
                raise ConfigError(f"Config key 'dump.compresslevel' must be an int: {level!r}") from e

        return method.strip().lower(), level

    def resolve_logging_level(self) -> str:
        """Resolve and validate logging.level (quiet | normal | verbose | debug).

        Raises:
            ConfigError: If the resolved value is invalid.
        """
        return self._logging_level()[0]

    def resolve_logging_policy(self) -> LoggingPolicy:
        """Resolve canonical logging policy.

        Deterministic and side-effect free; see apply_logging_policy() in
        diagbundle.core.logging for the runtime side.
        """
        level_name, source = self._logging_level()
        return LoggingPolicy(
            level_name=level_name,
            emit_error=True,
            emit_warning=True,
            emit_info=level_name != "quiet",
            emit_debug=level_name in ("verbose", "debug"),
            sources={"level_name": ConfigSource(value=level_name, source=source)},
        )

    def _logging_level(self) -> tuple[str, str]:
        key = "logging.level"
        found = self._find(key)
        if found is None:
            return DEFAULT_LOGGING_LEVEL, "default"

        value, source = found
        if not isinstance(value, str):
            raise ConfigError(f"Config key '{key}' must be a string, got {type(value).__name__}")
        norm = value.strip().lower()
        if norm not in ALLOWED_LOGGING_LEVELS:
            allowed = ", ".join(sorted(ALLOWED_LOGGING_LEVELS))
            raise ConfigError(f"Invalid '{key}': {value!r}. Allowed values: {allowed}")
        return norm, source

    # ----- Schema -----

    def list_known_keys(self) -> list[str]:
        """Return a deterministic list of known keys (schema-driven)."""
        return self.schema.list_known_keys()

    def get_key_schema(self, key_path: str) -> ConfigKeySchema:
        """Return schema metadata for a key.

        Unknown keys are allowed and returned as type 'any' with unknown=True.
        """
        known = self.schema.get(key_path)
        if known is not None:
            return known
        return ConfigKeySchema(key_path=key_path, type=CONFIG_TYPE_ANY, unknown=True)

    def validate_value(self, key_path: str, value: Any) -> None:
        """Validate a value against schema (no coercion).

        Unknown keys and None are not validated.
        """
        schema = self.get_key_schema(key_path)
        if schema.unknown or value is None:
            return

        validator = _VALIDATORS.get(schema.type)
        if validator is None:
            raise ConfigError(f"Unknown schema type for '{key_path}': {schema.type!r}")
        validator(schema, value)

    def resolve_all(self) -> dict[str, ConfigSource]:
        """Resolve every known key plus any key present in CLI args or config files.

        Keys with no value in any source are left out.

        Returns:
            Dict of key -> ConfigSource, sorted by key
        """
        keys: set[str] = set(self.list_known_keys())
        for data in (
            self.cli_args,
            self._file("user_config"),
            self._file("system_config"),
            self.defaults,
        ):
            keys.update(k for k, _v in _flatten_items(data))

        result: dict[str, ConfigSource] = {}
        for key in sorted(keys):
            found = self._find(key)
            if found is not None:
                result[key] = ConfigSource(value=found[0], source=found[1])
        return result

    @staticmethod
    def _default_config() -> dict[str, Any]:
        """Default configuration."""
        base = Path.home() / ".diagbundle"
        return {
            "storage_dir": str(base / "data"),
            "reports_dir": str(base / "reports"),
            "plugins_dir": str(base / "plugins"),
            "dump": {
                "classifiers": ["all"],
                "compression": "deflated",
                "compresslevel": None,
            },
            "provider_registry": {
                "disabled": [],
            },
            "logging": {
                "level": DEFAULT_LOGGING_LEVEL,
                "color": True,
            },
        }
