"""Settings store: the application settings singleton."""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from typing import Any

from flowcraft.logging import get_logger
from flowcraft.models import SETTINGS_KEYS, Provider, ProviderConfig, Settings

logger = get_logger("state.settings")


class SettingsStore:
    """Holds the current :class:`Settings`, starting from the defaults."""

    def __init__(self) -> None:
        self._settings = Settings()

    def get_all(self) -> Settings:
        return self._settings.copy()

    def update(self, updates: Mapping[str, Any]) -> None:
        """
        Merge *updates* (attribute name -> value) into the settings.

        Raises:
            KeyError: If a key is not a settings attribute
        """
        self._check_keys(updates)
        self._settings = dataclasses.replace(self._settings, **dict(updates))

    def get(self, key: str) -> Any:
        self._check_keys([key])
        return getattr(self._settings, key)

    def set(self, key: str, value: Any) -> None:
        self._check_keys([key])
        setattr(self._settings, key, value)

    @staticmethod
    def _check_keys(keys: Any) -> None:
        unknown = [k for k in keys if k not in SETTINGS_KEYS]
        if unknown:
            raise KeyError(f"Unknown setting(s): {', '.join(sorted(unknown))}")

    # ------------------------------------------------------------------
    # Providers
    # ------------------------------------------------------------------

    def get_default_provider(self) -> Provider:
        return self._settings.default_provider

    def set_default_provider(self, provider: Provider) -> None:
        self._settings.default_provider = provider

    def get_provider_config(self, provider: Provider) -> ProviderConfig | None:
        config = self._settings.providers.get(provider)
        return dataclasses.replace(config, models=list(config.models)) if config else None

    def set_provider_config(self, provider: Provider, config: ProviderConfig) -> None:
        self._settings.providers[provider] = config

    def remove_provider_config(self, provider: Provider) -> None:
        self._settings.providers.pop(provider, None)

    def get_configured_providers(self) -> list[Provider]:
        return list(self._settings.providers)

    def is_provider_configured(self, provider: Provider) -> bool:
        return provider in self._settings.providers

    def get_enabled_providers(self) -> list[Provider]:
        return [p for p, cfg in self._settings.providers.items() if cfg.is_enabled]

    def reset(self) -> None:
        self._settings = Settings()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_json(self) -> dict[str, Any]:
        return self._settings.to_dict()

    def from_json(self, data: dict[str, Any] | None) -> None:
        """Load settings, falling back to defaults for anything missing or invalid."""
        if data and not isinstance(data, dict):
            logger.warning("Invalid persisted settings, using defaults: %r", data)
            data = None
        self._settings = Settings.from_dict(data) if data else Settings()
