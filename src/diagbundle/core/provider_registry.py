"""ProviderRegistry: enabled/disabled state of discoverable providers."""

from __future__ import annotations

from dataclasses import dataclass

from diagbundle.core.config import ConfigResolver


@dataclass(frozen=True)
class ProviderState:
    provider_id: str
    enabled: bool


class ProviderRegistry:
    """Query provider enabled/disabled state.

    The state is read from configuration:

        provider_registry.disabled: ["provider_a", "provider_b", ...]

    The environment form is comma separated:
    DIAGBUNDLE_PROVIDER_REGISTRY_DISABLED="tree,environment".
    Providers disabled for the current process only can be added with disable().
    """

    def __init__(self, config: ConfigResolver) -> None:
        self._config = config
        self._session_disabled: set[str] = set()

    def _get_disabled(self) -> list[str]:
        disabled = self._config.get("provider_registry.disabled", [])
        if isinstance(disabled, str):
            names = [part.strip() for part in disabled.split(",")]
        elif isinstance(disabled, list):
            names = [str(x).strip() for x in disabled]
        else:
            return sorted(self._session_disabled)
        return sorted({n for n in names if n} | self._session_disabled)

    def is_enabled(self, provider_id: str) -> bool:
        return provider_id not in set(self._get_disabled())

    def disable(self, provider_id: str) -> None:
        self._session_disabled.add(provider_id)

    def list_states(self, provider_ids: list[str]) -> list[ProviderState]:
        disabled = set(self._get_disabled())
        return [ProviderState(provider_id=pid, enabled=pid not in disabled) for pid in provider_ids]
