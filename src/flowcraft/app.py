"""
Service container.

Builds every component in dependency order and hands them out as
attributes. Nothing in the package is a module-level singleton; the host
creates one container and closes it on shutdown.
"""

from __future__ import annotations

from dataclasses import dataclass

import httpx

from flowcraft.api.client import FlowCraftClient
from flowcraft.api.engine import RequestEngine
from flowcraft.cache import CacheService
from flowcraft.config import ClientConfig
from flowcraft.events import EventBus
from flowcraft.logging import get_logger
from flowcraft.services.api_keys import APIKeyService, SecretStore
from flowcraft.services.diagrams import DiagramService
from flowcraft.services.export import ExportService
from flowcraft.services.usage import UsageService
from flowcraft.state.manager import StateManager
from flowcraft.state.storage import StateStorage

logger = get_logger("app")


@dataclass
class FlowCraft:
    """Every wired component of a running FlowCraft session."""

    config: ClientConfig
    events: EventBus
    state: StateManager
    engine: RequestEngine
    cache: CacheService | None
    client: FlowCraftClient
    api_keys: APIKeyService
    diagrams: DiagramService
    usage: UsageService
    export: ExportService

    @classmethod
    async def open(
        cls,
        workspace_storage: StateStorage,
        secrets: SecretStore,
        *,
        global_storage: StateStorage | None = None,
        config: ClientConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> FlowCraft:
        """
        Load state and wire the services.

        Args:
            workspace_storage: Storage for the diagram history
            secrets: Secret store holding the provider API keys
            global_storage: Storage for settings and usage (defaults to
                *workspace_storage*)
            config: Request engine config; derived from the loaded settings
                when omitted
            transport: Optional httpx transport shared by all HTTP clients

        Example:
            app = await FlowCraft.open(MemoryStorage(), MemorySecretStore())
            try:
                diagram = await app.diagrams.generate(params)
            finally:
                await app.aclose()
        """
        events = EventBus()
        state = await StateManager.open(workspace_storage, global_storage, events)
        settings = state.get_settings()

        config = config or ClientConfig.from_settings(settings)
        engine = RequestEngine(config, transport=transport)
        cache = CacheService(default_ttl=settings.cache_ttl) if settings.cache_enabled else None
        client = FlowCraftClient(engine, cache)

        api_keys = APIKeyService(secrets, client=client, transport=transport)
        await api_keys.migrate_old_keys()

        logger.debug("FlowCraft ready (base_url=%s)", config.base_url)
        return cls(
            config=config,
            events=events,
            state=state,
            engine=engine,
            cache=cache,
            client=client,
            api_keys=api_keys,
            diagrams=DiagramService(client, state, api_keys),
            usage=UsageService(client, state, api_keys),
            export=ExportService(),
        )

    async def aclose(self) -> None:
        await self.client.aclose()

    async def __aenter__(self) -> FlowCraft:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
