"""Local state: stores, persistence backends and the state manager."""

from flowcraft.state.diagram_store import DiagramStore
from flowcraft.state.manager import State, StateManager
from flowcraft.state.settings_store import SettingsStore
from flowcraft.state.storage import JsonFileStorage, MemoryStorage, StateStorage
from flowcraft.state.usage_store import UsageStore

__all__ = [
    "DiagramStore",
    "JsonFileStorage",
    "MemoryStorage",
    "SettingsStore",
    "State",
    "StateManager",
    "StateStorage",
    "UsageStore",
]
