"""Provider loader and discovery system."""

from __future__ import annotations

import ast
import importlib.util
import sys
import types
from collections.abc import Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

import yaml

from diagbundle.core.errors import ProviderError, ProviderNotFoundError, ProviderValidationError
from diagbundle.core.interfaces import IOfflineReportProvider
from diagbundle.core.logging import get_logger

if TYPE_CHECKING:
    from diagbundle.core.provider_registry import ProviderRegistry

_logger = get_logger(__name__)

MANIFEST_NAME = "plugin.yaml"

# Dynamically loaded provider modules live under this namespace in sys.modules.
_ROOT_PACKAGE = "diagbundle_providers"


@dataclass
class ProviderManifest:
    """Provider manifest loaded from plugin.yaml."""

    name: str
    version: str
    description: str
    author: str
    license: str
    entrypoint: str  # "module:ClassName"
    interfaces: list[str]
    classifiers: list[str]
    dependencies: dict[str, Any]
    config_schema: dict[str, Any]
    test_level: str  # "none" | "basic" | "strict"


class ProviderLoader:
    """Load offline report providers from plugin directories.

    Discovers providers from multiple sources, in this order:
    1. Built-in providers (the repository 'plugins/' directory)
    2. User providers (~/.diagbundle/plugins/)
    3. System providers (/etc/diagbundle/plugins/)

    A provider directory holds a plugin.yaml manifest and the module named by
    its entrypoint. Implements IProviderDiscovery.
    """

    def __init__(
        self,
        builtin_providers_dir: Path | None = None,
        user_providers_dir: Path | None = None,
        system_providers_dir: Path | None = None,
        *,
        registry: ProviderRegistry | None = None,
        validate: bool = True,
    ) -> None:
        """Initialize provider loader.

        Args:
            builtin_providers_dir: Built-in providers directory
            user_providers_dir: User providers directory
            system_providers_dir: System providers directory
            registry: Enabled/disabled state; every provider is enabled when omitted
            validate: Validate providers before import (manifest test_level permitting)
        """
        self.builtin_providers_dir = builtin_providers_dir
        self.user_providers_dir = user_providers_dir or Path.home() / ".diagbundle/plugins"
        self.system_providers_dir = system_providers_dir or Path("/etc/diagbundle/plugins")

        self._registry = registry
        self._validate = validate

        # Loaded providers
        self._providers: dict[str, Any] = {}
        self._manifests: dict[str, ProviderManifest] = {}

    def discover(self) -> list[Path]:
        """Discover all provider directories.

        Returns:
            Provider directories, built-in first, each source sorted by name
        """
        provider_dirs: list[Path] = []

        for base_dir in [
            self.builtin_providers_dir,
            self.user_providers_dir,
            self.system_providers_dir,
        ]:
            if base_dir and base_dir.exists():
                provider_dirs.extend(self._scan_directory(base_dir))

        return provider_dirs

    def discover_providers(self) -> Iterator[Any]:
        """Load and yield every discoverable, enabled provider.

        Providers that fail to load are logged and skipped. A provider name
        already loaded from an earlier directory shadows later ones.
        """
        seen: set[str] = set()
        for provider_dir in self.discover():
            try:
                manifest = self._load_manifest(provider_dir)
            except ProviderError as e:
                _logger.warning(f"Skipping provider at {provider_dir}: {e}")
                continue

            if manifest.name in seen:
                _logger.debug(f"Provider '{manifest.name}' at {provider_dir} is shadowed")
                continue

            if self._registry is not None and not self._registry.is_enabled(manifest.name):
                _logger.verbose(f"Provider '{manifest.name}' is disabled")
                continue

            try:
                provider = self.load_provider(provider_dir, validate=self._validate)
            except ProviderError as e:
                _logger.warning(f"Provider '{manifest.name}' does not load: {e}")
                continue

            # only a provider that loaded shadows later ones
            seen.add(manifest.name)
            yield provider

    def load_provider(self, provider_dir: Path, validate: bool = True) -> Any:
        """Load a single provider.

        Args:
            provider_dir: Provider directory
            validate: Whether to validate the provider

        Returns:
            Provider instance (not yet initialized)

        Raises:
            ProviderError: If loading fails
        """
        manifest = self._load_manifest(provider_dir)

        if self._registry is not None and not self._registry.is_enabled(manifest.name):
            raise ProviderError(f"Provider is disabled: {manifest.name}")

        if validate and manifest.test_level != "none":
            self._validate_provider(provider_dir, manifest)

        provider_class = self._load_provider_class(provider_dir, manifest.entrypoint)

        try:
            provider = provider_class()
        except Exception as e:
            raise ProviderError(f"Failed to instantiate provider '{manifest.name}': {e}") from e

        if not isinstance(provider, IOfflineReportProvider):
            raise ProviderValidationError(
                f"Provider '{manifest.name}' does not implement IOfflineReportProvider",
                "Implement init(), get_filter_classifiers() and get_diagnostics_sources()",
            )

        self._providers[manifest.name] = provider
        self._manifests[manifest.name] = manifest

        _logger.debug(f"Loaded provider '{manifest.name}' {manifest.version} from {provider_dir}")
        return provider

    def get_provider(self, name: str) -> Any:
        """Get loaded provider by name.

        Raises:
            ProviderNotFoundError: If provider not found
        """
        if name not in self._providers:
            raise ProviderNotFoundError(name)
        return self._providers[name]

    def get_manifest(self, name: str) -> ProviderManifest:
        """Get provider manifest.

        Raises:
            ProviderNotFoundError: If provider not found
        """
        if name not in self._manifests:
            raise ProviderNotFoundError(name)
        return self._manifests[name]

    def list_providers(self) -> list[str]:
        """List all loaded providers."""
        return list(self._providers.keys())

    def _scan_directory(self, base_dir: Path) -> list[Path]:
        """Scan directory for providers (subdirectories holding plugin.yaml)."""
        provider_dirs: list[Path] = []

        if not base_dir.exists():
            return provider_dirs

        for item in sorted(base_dir.iterdir(), key=lambda p: p.name):
            if item.is_dir() and (item / MANIFEST_NAME).exists():
                provider_dirs.append(item)

        return provider_dirs

    def _load_manifest(self, provider_dir: Path) -> ProviderManifest:
        """Load provider manifest.

        Raises:
            ProviderError: If manifest loading fails
        """
        manifest_path = provider_dir / MANIFEST_NAME

        if not manifest_path.exists():
            raise ProviderError(f"Provider manifest not found: {manifest_path}")

        try:
            with open(manifest_path) as f:
                data = yaml.safe_load(f)

            return ProviderManifest(
                name=data["name"],
                version=str(data["version"]),
                description=data.get("description", ""),
                author=data.get("author", "Unknown"),
                license=data.get("license", "Unknown"),
                entrypoint=data["entrypoint"],
                interfaces=data.get("interfaces", []),
                classifiers=[str(c) for c in data.get("classifiers", [])],
                dependencies=data.get("dependencies", {}),
                config_schema=data.get("config_schema", {}),
                test_level=data.get("test_level", "basic"),
            )
        except Exception as e:
            raise ProviderError(f"Failed to load manifest from {manifest_path}: {e}") from e

    def _load_provider_class(self, provider_dir: Path, entrypoint: str) -> type:
        """Load provider class from entrypoint ("module:ClassName").

        Raises:
            ProviderError: If loading fails
        """
        try:
            if ":" not in entrypoint:
                raise ProviderError(f"Invalid entrypoint format: {entrypoint}")

            module_name, class_name = entrypoint.split(":", 1)

            module_file = provider_dir / f"{module_name}.py"
            if not module_file.exists():
                raise ProviderError(f"Module file not found: {module_file}")

            # Never register provider modules under a generic name like 'plugin':
            # every provider may use 'plugin:SomeProvider'. Each one gets its own
            # package so relative imports inside the provider keep working.
            provider_key = provider_dir.name.replace("-", "_").replace(".", "_")
            provider_pkg = f"{_ROOT_PACKAGE}.{provider_key}"
            unique_module_name = f"{provider_pkg}.{module_name}"

            def _ensure_package(name: str, path: Path | None = None) -> None:
                if name in sys.modules:
                    return
                pkg = types.ModuleType(name)
                pkg.__path__ = [] if path is None else [str(path)]
                sys.modules[name] = pkg

            _ensure_package(_ROOT_PACKAGE)
            _ensure_package(provider_pkg, provider_dir)

            spec = importlib.util.spec_from_file_location(unique_module_name, module_file)
            if spec is None or spec.loader is None:
                raise ProviderError(f"Failed to load module spec: {module_file}")

            module = importlib.util.module_from_spec(spec)
            sys.modules[unique_module_name] = module
            spec.loader.exec_module(module)

            if not hasattr(module, class_name):
                raise ProviderError(f"Class '{class_name}' not found in {module_name}")

            return getattr(module, class_name)

        except Exception as e:
            raise ProviderError(f"Failed to load provider class: {e}") from e

    def _validate_provider(self, provider_dir: Path, manifest: ProviderManifest) -> None:
        """Validate provider before loading.

        Checks, without importing the provider module:
        1. Module file exists
        2. Python syntax
        3. Imported modules are available
        4. Entrypoint class exists
        5. Declared classifiers are well formed
        6. Required dependencies are importable

        Raises:
            ProviderValidationError: If validation fails
        """
        validation_errors: list[str] = []

        module_name = manifest.entrypoint.split(":")[0]
        module_file = provider_dir / f"{module_name}.py"

        if not module_file.exists():
            raise ProviderValidationError(f"Provider module not found: {module_file}")

        try:
            tree = ast.parse(module_file.read_text(encoding="utf-8"), str(module_file))
        except SyntaxError as e:
            raise ProviderValidationError(
                f"Provider validation failed for '{manifest.name}':\n"
                f"  - Syntax error in {module_file}: {e}"
            ) from e

        for node in ast.walk(tree):
            if isinstance(node, ast.Import):
                for alias in node.names:
                    if not _importable(alias.name):
                        validation_errors.append(
                            f"Import error: module '{alias.name}' not available"
                        )
            elif isinstance(node, ast.ImportFrom) and node.module and node.level == 0:
                if not _importable(node.module):
                    validation_errors.append(
                        f"Import error: module '{node.module}' not available"
                    )

        class_name = manifest.entrypoint.split(":")[1] if ":" in manifest.entrypoint else None
        if class_name:
            class_found = any(
                isinstance(node, ast.ClassDef) and node.name == class_name
                for node in ast.walk(tree)
            )
            if not class_found:
                validation_errors.append(f"Class '{class_name}' not found in {module_file}")

        for classifier in manifest.classifiers:
            if classifier.strip() == "" or classifier != classifier.strip():
                validation_errors.append(f"Invalid classifier label: {classifier!r}")

        for dep_name, dep_info in (manifest.dependencies or {}).items():
            if _importable(dep_name):
                continue
            if isinstance(dep_info, dict) and dep_info.get("optional", False):
                continue
            validation_errors.append(f"Required dependency '{dep_name}' not available")

        if validation_errors:
            error_msg = "\n".join(f"  - {err}" for err in validation_errors)
            raise ProviderValidationError(
                f"Provider validation failed for '{manifest.name}':\n{error_msg}"
            )


def _importable(module: str) -> bool:
    top = module.split(".")[0]
    if top in sys.modules:
        return True
    try:
        return importlib.util.find_spec(top) is not None
    except (ImportError, ValueError):
        return False
