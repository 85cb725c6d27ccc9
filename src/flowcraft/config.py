"""
Configuration for the FlowCraft API client.

Provides a small configuration record that can be loaded from YAML files,
environment variables, the persisted settings, or constructed
programmatically.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from flowcraft.models import DEFAULT_API_BASE_URL, Settings


@dataclass
class ClientConfig:
    """
    Request engine configuration.

    Example YAML:
        base_url: https://flowcraft.example.com
        timeout: 30
        max_retries: 5
        retry_delay: 0.5
        max_concurrent_requests: 3
    """

    base_url: str = DEFAULT_API_BASE_URL
    timeout: float = 60.0  # seconds, hard per-attempt limit
    max_retries: int = 3  # total attempts, not extra attempts
    retry_delay: float = 1.0  # seconds, doubled after every attempt
    max_concurrent_requests: int = 3

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ClientConfig:
        """Create config from a dictionary."""
        return cls(
            base_url=data.get("base_url", DEFAULT_API_BASE_URL),
            timeout=float(data.get("timeout", 60.0)),
            max_retries=int(data.get("max_retries", 3)),
            retry_delay=float(data.get("retry_delay", 1.0)),
            max_concurrent_requests=int(data.get("max_concurrent_requests", 3)),
        )

    @classmethod
    def from_yaml(cls, path: Path) -> ClientConfig:
        """Load config from a YAML file."""
        with open(path) as f:
            data = yaml.safe_load(f)
        return cls.from_dict(data or {})

    @classmethod
    def from_yaml_string(cls, content: str) -> ClientConfig:
        """Load config from a YAML string."""
        data = yaml.safe_load(content)
        return cls.from_dict(data or {})

    @classmethod
    def from_env(cls, dotenv_path: str | Path | None = None) -> ClientConfig:
        """
        Load config from ``FLOWCRAFT_*`` environment variables.

        A ``.env`` file is read first (without overriding variables that are
        already set).
        """
        load_dotenv(dotenv_path)
        data: dict[str, Any] = {}
        for key, env_var in _ENV_VARS.items():
            value = os.environ.get(env_var)
            if value:
                data[key] = value
        return cls.from_dict(data)

    @classmethod
    def from_settings(cls, settings: Settings) -> ClientConfig:
        """Derive config from the persisted user settings."""
        return cls(
            base_url=settings.api_base_url,
            timeout=float(settings.request_timeout),
            max_concurrent_requests=settings.max_concurrent_requests,
        )

    def to_dict(self) -> dict[str, Any]:
        """Convert config to a dictionary."""
        return {
            "base_url": self.base_url,
            "timeout": self.timeout,
            "max_retries": self.max_retries,
            "retry_delay": self.retry_delay,
            "max_concurrent_requests": self.max_concurrent_requests,
        }


_ENV_VARS: dict[str, str] = {
    "base_url": "FLOWCRAFT_API_BASE_URL",
    "timeout": "FLOWCRAFT_TIMEOUT",
    "max_retries": "FLOWCRAFT_MAX_RETRIES",
    "retry_delay": "FLOWCRAFT_RETRY_DELAY",
    "max_concurrent_requests": "FLOWCRAFT_MAX_CONCURRENT",
}
