"""Usage tracking on top of the state manager."""

from __future__ import annotations

from typing import TYPE_CHECKING

from flowcraft.errors import MissingAPIKeyError
from flowcraft.logging import get_logger
from flowcraft.models import Provider, UsageStats

if TYPE_CHECKING:
    from flowcraft.api.client import FlowCraftClient
    from flowcraft.services.api_keys import APIKeyService
    from flowcraft.state.manager import StateManager

logger = get_logger("services.usage")

DEFAULT_WARNING_THRESHOLD = 80.0

LIMIT_REACHED_MESSAGE = "You have reached your free limit. Please upgrade to continue."
ONE_REMAINING_MESSAGE = "You have 1 diagram remaining this month."


class UsageService:
    def __init__(
        self,
        client: FlowCraftClient,
        state: StateManager,
        api_keys: APIKeyService,
    ) -> None:
        self.client = client
        self.state = state
        self.api_keys = api_keys

    def get_usage(self) -> UsageStats:
        return self.state.get_usage()

    async def sync_from_api(self) -> UsageStats:
        """
        Replace local usage with the server's counters.

        Raises:
            MissingAPIKeyError: If the default provider has no stored key
        """
        provider = Provider(self.state.get_setting("default_provider"))
        api_key = await self.api_keys.retrieve(provider)
        if not api_key:
            raise MissingAPIKeyError(provider.value)

        usage = await self.client.get_usage(provider, api_key)
        await self.state.update_usage(usage)
        logger.debug(
            "Synced usage: %d/%d created, subscribed=%s",
            usage.diagrams_created,
            usage.free_limit,
            usage.subscribed,
        )
        return self.state.get_usage()

    def can_create(self) -> bool:
        return self.state.can_create_diagram()

    def get_remaining(self) -> int | None:
        """Remaining diagrams this period; ``None`` means unlimited."""
        return self.state.get_remaining_diagrams()

    async def track_creation(self) -> None:
        await self.state.increment_usage()

    def get_usage_percentage(self) -> float:
        usage = self.state.get_usage()
        if usage.subscribed:
            return 0.0
        if usage.free_limit <= 0:
            return 100.0
        return usage.diagrams_created / usage.free_limit * 100

    def is_approaching_limit(self, threshold: float = DEFAULT_WARNING_THRESHOLD) -> bool:
        return self.get_usage_percentage() >= threshold

    def get_warning_message(self) -> str | None:
        usage = self.state.get_usage()
        if usage.subscribed:
            return None

        remaining = usage.remaining
        if remaining == 0:
            return LIMIT_REACHED_MESSAGE
        if remaining == 1:
            return ONE_REMAINING_MESSAGE
        if self.is_approaching_limit():
            return f"You have {remaining} diagrams remaining this month."
        return None

    async def reset(self) -> None:
        await self.state.reset_usage()
