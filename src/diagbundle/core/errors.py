"""Error handling with friendly messages."""

from __future__ import annotations


class DiagBundleError(Exception):
    """Base exception for all diagbundle errors."""

    def __init__(self, message: str, suggestion: str | None = None) -> None:
        self.message = message
        self.suggestion = suggestion
        super().__init__(message)

    def __str__(self) -> str:
        if self.suggestion:
            return f"{self.message}\nSuggestion: {self.suggestion}"
        return self.message


class ProviderError(DiagBundleError):
    """Provider-related error."""

    pass


class ProviderNotFoundError(ProviderError):
    """Provider not found."""

    def __init__(self, provider_name: str) -> None:
        super().__init__(
            f"Provider '{provider_name}' not found",
            "Check that the provider directory contains a plugin.yaml manifest",
        )


class ProviderValidationError(ProviderError):
    """Provider failed validation."""

    pass


class ConfigError(DiagBundleError):
    """Configuration error."""

    pass


class FileError(DiagBundleError):
    """File operation error."""

    pass


class ArchiveError(FileError):
    """The report archive could not be created or finalized."""

    pass


class DiskFullError(ArchiveError):
    """Disk is full."""

    def __init__(self, path: str) -> None:
        super().__init__(
            f"Disk full: Cannot write to '{path}'",
            "Free up space or choose another destination and try again",
        )


class SourceError(DiagBundleError):
    """A report source could not produce its content."""

    pass
