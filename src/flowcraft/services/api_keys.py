"""
API key management.

Keys live in an opaque secret store supplied by the host (the editor's
secret storage in production, :class:`MemorySecretStore` in tests). Settings
only ever record *whether* a provider has a key.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

import httpx

from flowcraft.errors import FlowCraftError
from flowcraft.logging import get_logger
from flowcraft.models import PROVIDER_INFO, Provider, ProviderConfig
from flowcraft.validation import ValidationResult, validate_api_key

if TYPE_CHECKING:
    from flowcraft.api.client import FlowCraftClient

logger = get_logger("services.api_keys")

KEY_PREFIX = "flowcraft.apikey."
LEGACY_OPENAI_KEY = "flowcraft.openai.key"

GOOGLE_MODELS_URL = "https://generativelanguage.googleapis.com/v1beta/models"
VERIFY_TIMEOUT = 10.0


@runtime_checkable
class SecretStore(Protocol):
    """Async secret storage capability."""

    async def get(self, key: str) -> str | None: ...

    async def store(self, key: str, value: str) -> None: ...

    async def delete(self, key: str) -> None: ...


class MemorySecretStore:
    """In-process secret store."""

    def __init__(self, initial: dict[str, str] | None = None) -> None:
        self._secrets: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> str | None:
        return self._secrets.get(key)

    async def store(self, key: str, value: str) -> None:
        self._secrets[key] = value

    async def delete(self, key: str) -> None:
        self._secrets.pop(key, None)

    def __contains__(self, key: str) -> bool:
        return key in self._secrets


def storage_key(provider: Provider | str) -> str:
    return f"{KEY_PREFIX}{Provider(provider).value}"


class APIKeyService:
    """
    Stores, validates and tests provider API keys.

    Args:
        secrets: Where keys are kept
        client: FlowCraft client used to test FlowCraft keys
        transport: Optional httpx transport for the Google key check
    """

    def __init__(
        self,
        secrets: SecretStore,
        *,
        client: FlowCraftClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.secrets = secrets
        self.client = client
        self._transport = transport

    async def store(self, provider: Provider | str, api_key: str) -> None:
        await self.secrets.store(storage_key(provider), api_key)

    async def retrieve(self, provider: Provider | str) -> str | None:
        return await self.secrets.get(storage_key(provider))

    async def delete(self, provider: Provider | str) -> None:
        await self.secrets.delete(storage_key(provider))

    async def has(self, provider: Provider | str) -> bool:
        return bool(await self.retrieve(provider))

    def validate(self, provider: Provider | str, api_key: str) -> bool:
        return self.check(provider, api_key).valid

    def check(self, provider: Provider | str, api_key: str) -> ValidationResult:
        """Format check with a user-facing message on failure."""
        return validate_api_key(provider, api_key)

    async def test(self, provider: Provider | str, api_key: str) -> bool:
        """
        Check that *api_key* is well formed and accepted by the provider.

        Any verification failure (rejected key, network trouble) is logged and
        reported as ``False``.
        """
        if not self.validate(provider, api_key):
            return False

        provider = Provider(provider)
        try:
            await self._verify_with_provider(provider, api_key)
        except Exception as exc:
            logger.warning("API key test for %s failed: %s", provider.value, exc)
            return False
        return True

    async def _verify_with_provider(self, provider: Provider, api_key: str) -> None:
        if provider == Provider.OPENAI:
            from openai import AsyncOpenAI

            openai_client = AsyncOpenAI(api_key=api_key, timeout=VERIFY_TIMEOUT, max_retries=0)
            try:
                await openai_client.models.list()
            finally:
                await openai_client.close()

        elif provider == Provider.ANTHROPIC:
            from anthropic import AsyncAnthropic

            anthropic_client = AsyncAnthropic(
                api_key=api_key, timeout=VERIFY_TIMEOUT, max_retries=0
            )
            try:
                await anthropic_client.models.list()
            finally:
                await anthropic_client.close()

        elif provider == Provider.GOOGLE:
            async with httpx.AsyncClient(
                transport=self._transport, timeout=VERIFY_TIMEOUT
            ) as http:
                response = await http.get(GOOGLE_MODELS_URL, params={"key": api_key})
                response.raise_for_status()

        else:
            if self.client is None:
                raise FlowCraftError("No FlowCraft client available to test the key")
            await self.client.get_usage(provider, api_key)

    async def get_configured_providers(self) -> list[Provider]:
        return [provider for provider in Provider if await self.has(provider)]

    async def migrate_old_keys(self) -> bool:
        """
        Move a key stored under the legacy OpenAI location to the current one.

        Returns:
            True if a legacy key was migrated
        """
        old_key = await self.secrets.get(LEGACY_OPENAI_KEY)
        if not old_key:
            return False
        await self.store(Provider.OPENAI, old_key)
        await self.secrets.delete(LEGACY_OPENAI_KEY)
        logger.info("Migrated legacy OpenAI API key")
        return True

    async def clear_all(self) -> None:
        for provider in Provider:
            await self.delete(provider)

    async def create_provider_config(
        self,
        provider: Provider | str,
        api_key: str,
        display_name: str | None = None,
    ) -> ProviderConfig:
        """Store *api_key* and return the settings entry describing it."""
        provider = Provider(provider)
        await self.store(provider, api_key)
        info = PROVIDER_INFO[provider]
        return ProviderConfig(
            provider=provider,
            has_api_key=True,
            is_enabled=True,
            display_name=display_name or info.display_name,
            models=list(info.supported_models),
            default_model=info.default_model,
        )
