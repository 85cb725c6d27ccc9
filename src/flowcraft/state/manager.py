"""
State manager: the single entry point for reading and mutating local state.

Owns the diagram, settings and usage stores. Every mutating method runs the
same three steps in order:

1. apply the change to the relevant store,
2. persist all three stores,
3. notify every ``on_state_change`` listener with a fresh snapshot.

Persistence failures are logged and swallowed, so a mutation succeeds even
when the storage backend does not.

Example:
    from flowcraft.state import JsonFileStorage, StateManager

    state = await StateManager.open(JsonFileStorage("~/.flowcraft/state.json"))
    subscription = state.on_state_change(lambda snapshot: print(snapshot.usage))
    await state.update_settings({"default_provider": Provider.ANTHROPIC})
    subscription.dispose()
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from flowcraft.events import STATE_CHANGE, EventBus, EventHandler, Subscription
from flowcraft.logging import get_logger
from flowcraft.models import Diagram, Settings, UsageStats
from flowcraft.state.diagram_store import DiagramStore
from flowcraft.state.settings_store import SettingsStore
from flowcraft.state.storage import StateStorage
from flowcraft.state.usage_store import UsageStore

logger = get_logger("state.manager")

DIAGRAMS_KEY = "flowcraft.diagrams"
SETTINGS_KEY = "flowcraft.settings"
USAGE_KEY = "flowcraft.usage"


@dataclass
class State:
    """Snapshot of all local state."""

    diagrams: list[Diagram]
    settings: Settings
    usage: UsageStats


class StateManager:
    """
    Central state management.

    Diagrams are persisted to the workspace storage; settings and usage to
    the global storage (the workspace storage when none is given).
    """

    def __init__(
        self,
        workspace_storage: StateStorage,
        global_storage: StateStorage | None = None,
        bus: EventBus | None = None,
    ) -> None:
        self._workspace_storage = workspace_storage
        self._global_storage = global_storage or workspace_storage
        self._bus = bus or EventBus()
        self._diagrams = DiagramStore()
        self._settings = SettingsStore()
        self._usage = UsageStore()

    @classmethod
    async def open(
        cls,
        workspace_storage: StateStorage,
        global_storage: StateStorage | None = None,
        bus: EventBus | None = None,
    ) -> StateManager:
        """Create a state manager and load persisted state into it."""
        manager = cls(workspace_storage, global_storage, bus)
        await manager.load()
        return manager

    # ------------------------------------------------------------------
    # Diagrams
    # ------------------------------------------------------------------

    async def add_diagram(self, diagram: Diagram) -> None:
        """Store a new diagram and count it against the usage quota."""
        self._diagrams.add(diagram)
        self._usage.increment_created()
        await self._commit()

    async def remove_diagram(self, diagram_id: str) -> bool:
        removed = self._diagrams.remove(diagram_id)
        if removed:
            await self._commit()
        return removed

    async def update_diagram(self, diagram_id: str, updates: Mapping[str, Any]) -> bool:
        updated = self._diagrams.update(diagram_id, updates)
        if updated:
            await self._commit()
        return updated

    def get_diagram(self, diagram_id: str) -> Diagram | None:
        return self._diagrams.get(diagram_id)

    def get_all_diagrams(self) -> list[Diagram]:
        return self._diagrams.get_all()

    def search_diagrams(self, query: str) -> list[Diagram]:
        return self._diagrams.search(query)

    def get_recent_diagrams(self, limit: int = 10) -> list[Diagram]:
        return self._diagrams.get_recent(limit)

    async def clear_diagrams(self) -> None:
        self._diagrams.clear()
        await self._commit()

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def get_settings(self) -> Settings:
        return self._settings.get_all()

    async def update_settings(self, updates: Mapping[str, Any]) -> None:
        self._settings.update(updates)
        await self._commit()

    def get_setting(self, key: str) -> Any:
        return self._settings.get(key)

    async def set_setting(self, key: str, value: Any) -> None:
        self._settings.set(key, value)
        await self._commit()

    async def reset_settings(self) -> None:
        self._settings.reset()
        await self._commit()

    # ------------------------------------------------------------------
    # Usage
    # ------------------------------------------------------------------

    def get_usage(self) -> UsageStats:
        return self._usage.get()

    async def update_usage(self, stats: UsageStats | Mapping[str, Any]) -> None:
        self._usage.update(stats)
        await self._commit()

    async def increment_usage(self) -> None:
        self._usage.increment_created()
        await self._commit()

    def can_create_diagram(self) -> bool:
        return self._usage.can_create()

    def get_remaining_diagrams(self) -> int | None:
        return self._usage.get_remaining()

    async def reset_usage(self) -> None:
        self._usage.reset()
        await self._commit()

    # ------------------------------------------------------------------
    # Snapshot and events
    # ------------------------------------------------------------------

    def get_state(self) -> State:
        return State(
            diagrams=self._diagrams.get_all(),
            settings=self._settings.get_all(),
            usage=self._usage.get(),
        )

    def on_state_change(self, listener: EventHandler) -> Subscription:
        """
        Register *listener* to receive a :class:`State` after every mutation.

        Listeners may be sync or async. Call ``dispose()`` on the returned
        subscription to stop receiving updates.
        """
        return self._bus.subscribe(STATE_CHANGE, listener, source="state")

    async def _notify(self) -> None:
        await self._bus.emit(STATE_CHANGE, self.get_state())

    async def _commit(self) -> None:
        await self.persist()
        await self._notify()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def persist(self) -> None:
        """Write all three stores to storage. Failures are logged, not raised."""
        try:
            await self._workspace_storage.update(DIAGRAMS_KEY, self._diagrams.to_json())
            await self._global_storage.update(SETTINGS_KEY, self._settings.to_json())
            await self._global_storage.update(USAGE_KEY, self._usage.to_json())
        except Exception:
            logger.exception("Failed to persist state")

    async def load(self) -> None:
        """Replace in-memory state with what storage holds. Failures are logged."""
        try:
            self._diagrams.from_json(await self._workspace_storage.get(DIAGRAMS_KEY, []))

            settings = await self._global_storage.get(SETTINGS_KEY)
            if settings:
                self._settings.from_json(settings)

            usage = await self._global_storage.get(USAGE_KEY)
            if usage:
                self._usage.from_json(usage)
        except Exception:
            logger.exception("Failed to load state")

    async def clear_all(self) -> None:
        self._diagrams.clear()
        self._settings.reset()
        self._usage.reset()
        await self._commit()
