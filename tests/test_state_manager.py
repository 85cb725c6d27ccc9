"""Tests for StateManager persistence and change notification."""

import asyncio
import json

import pytest

from conftest import make_diagram
from flowcraft.events import EventBus
from flowcraft.models import Provider
from flowcraft.state.manager import DIAGRAMS_KEY, SETTINGS_KEY, USAGE_KEY, State, StateManager
from flowcraft.state.storage import JsonFileStorage, MemoryStorage


class FailingStorage(MemoryStorage):
    """Storage whose writes always fail."""

    async def update(self, key, value):
        raise OSError("disk full")


class RecordingStorage(MemoryStorage):
    def __init__(self, log):
        super().__init__()
        self.log = log

    async def update(self, key, value):
        self.log.append(("persist", key))
        await super().update(key, value)


class TestMutations:
    @pytest.mark.asyncio
    async def test_add_diagram_persists_and_counts_usage(self, state, storage) -> None:
        await state.add_diagram(make_diagram("a"))

        assert state.get_diagram("a") is not None
        assert state.get_usage().diagrams_created == 1
        assert [d["id"] for d in await storage.get(DIAGRAMS_KEY)] == ["a"]
        assert (await storage.get(USAGE_KEY))["diagramsCreated"] == 1

    @pytest.mark.asyncio
    async def test_persist_then_notify_order(self) -> None:
        log = []
        state = await StateManager.open(RecordingStorage(log))
        state.on_state_change(lambda snapshot: log.append(("notify", len(snapshot.diagrams))))

        await state.add_diagram(make_diagram("a"))

        assert log == [
            ("persist", DIAGRAMS_KEY),
            ("persist", SETTINGS_KEY),
            ("persist", USAGE_KEY),
            ("notify", 1),
        ]

    @pytest.mark.asyncio
    async def test_listener_receives_fresh_snapshot(self, state) -> None:
        snapshots = []
        state.on_state_change(snapshots.append)

        await state.update_settings({"default_provider": Provider.GOOGLE})
        await state.increment_usage()

        assert all(isinstance(s, State) for s in snapshots)
        assert snapshots[0].settings.default_provider == Provider.GOOGLE
        assert snapshots[0].usage.diagrams_created == 0
        assert snapshots[1].usage.diagrams_created == 1

    @pytest.mark.asyncio
    async def test_async_listener(self, state) -> None:
        seen = []

        async def listener(snapshot):
            seen.append(snapshot.usage.remaining)

        state.on_state_change(listener)
        await state.increment_usage()

        assert seen == [4]

    @pytest.mark.asyncio
    async def test_unknown_id_skips_persist_and_notify(self) -> None:
        log = []
        state = await StateManager.open(RecordingStorage(log))
        state.on_state_change(lambda snapshot: log.append("notify"))

        assert await state.remove_diagram("missing") is False
        assert await state.update_diagram("missing", {"title": "x"}) is False
        assert log == []

    @pytest.mark.asyncio
    async def test_update_and_remove(self, state) -> None:
        await state.add_diagram(make_diagram("a"))

        assert await state.update_diagram("a", {"title": "Renamed"}) is True
        assert state.get_diagram("a").title == "Renamed"
        assert [d.id for d in state.search_diagrams("renamed")] == ["a"]
        assert await state.remove_diagram("a") is True
        assert state.get_all_diagrams() == []

    @pytest.mark.asyncio
    async def test_dispose_stops_notifications(self, state) -> None:
        seen = []
        subscription = state.on_state_change(seen.append)

        await state.increment_usage()
        subscription.dispose()
        await state.increment_usage()

        assert len(seen) == 1
        assert subscription.disposed

    @pytest.mark.asyncio
    async def test_settings_accessors(self, state) -> None:
        await state.set_setting("cache_ttl", 10)
        assert state.get_setting("cache_ttl") == 10
        await state.reset_settings()
        assert state.get_settings().cache_ttl == 3600

    @pytest.mark.asyncio
    async def test_usage_accessors(self, state) -> None:
        await state.update_usage({"diagrams_created": 5})
        assert not state.can_create_diagram()
        assert state.get_remaining_diagrams() == 0
        await state.reset_usage()
        assert state.get_remaining_diagrams() == 5

    @pytest.mark.asyncio
    async def test_clear_all(self, state) -> None:
        await state.add_diagram(make_diagram("a"))
        await state.set_setting("auto_save", False)

        await state.clear_all()

        snapshot = state.get_state()
        assert snapshot.diagrams == []
        assert snapshot.settings.auto_save is True
        assert snapshot.usage.diagrams_created == 0

    @pytest.mark.asyncio
    async def test_recent_diagrams(self, state) -> None:
        await state.add_diagram(make_diagram("a"))
        await state.clear_diagrams()
        assert state.get_recent_diagrams() == []


class TestFailureIsolation:
    @pytest.mark.asyncio
    async def test_persist_failure_is_logged_not_raised(self, caplog) -> None:
        state = await StateManager.open(FailingStorage())
        seen = []
        state.on_state_change(seen.append)

        await state.add_diagram(make_diagram("a"))

        assert state.get_diagram("a") is not None
        assert len(seen) == 1
        assert "Failed to persist state" in caplog.text

    @pytest.mark.asyncio
    async def test_listener_failure_does_not_block_others(self, state) -> None:
        seen = []

        def broken(snapshot):
            raise RuntimeError("listener bug")

        state.on_state_change(broken)
        state.on_state_change(seen.append)

        await state.increment_usage()

        assert len(seen) == 1

    @pytest.mark.asyncio
    async def test_corrupt_file_loads_defaults(self, tmp_path, caplog) -> None:
        path = tmp_path / "state.json"
        path.write_text("{not json", encoding="utf-8")

        state = await StateManager.open(JsonFileStorage(path))

        assert state.get_all_diagrams() == []
        assert state.get_usage().free_limit == 5
        assert "Failed to load state" in caplog.text


class TestLoad:
    @pytest.mark.asyncio
    async def test_reload_from_json_file(self, tmp_path) -> None:
        path = tmp_path / "nested" / "state.json"
        state = await StateManager.open(JsonFileStorage(path))
        await state.add_diagram(make_diagram("a", tags=["t"]))
        await state.update_settings({"default_provider": Provider.ANTHROPIC})

        reloaded = await StateManager.open(JsonFileStorage(path))

        assert reloaded.get_all_diagrams() == state.get_all_diagrams()
        assert reloaded.get_settings().default_provider == Provider.ANTHROPIC
        assert reloaded.get_usage().diagrams_created == 1
        data = json.loads(path.read_text(encoding="utf-8"))
        assert set(data) == {DIAGRAMS_KEY, SETTINGS_KEY, USAGE_KEY}

    @pytest.mark.asyncio
    async def test_reload_keeps_long_request_timeout(self) -> None:
        storage = MemoryStorage()
        state = await StateManager.open(storage)
        await state.update_settings({"request_timeout": 1800.0})

        reloaded = await StateManager.open(storage)

        assert reloaded.get_settings().request_timeout == 1800.0

    @pytest.mark.asyncio
    async def test_separate_global_storage(self) -> None:
        workspace = MemoryStorage()
        global_storage = MemoryStorage()
        state = StateManager(workspace, global_storage, EventBus())

        await state.increment_usage()

        assert workspace.keys() == [DIAGRAMS_KEY]
        assert sorted(global_storage.keys()) == [SETTINGS_KEY, USAGE_KEY]

    @pytest.mark.asyncio
    async def test_load_original_blob_layout(self) -> None:
        storage = MemoryStorage(
            {
                DIAGRAMS_KEY: [
                    {
                        "id": "diagram_1700000000000_abc1234",
                        "title": "Old",
                        "type": "sequence",
                        "category": "mermaid",
                        "createdAt": "2023-11-14T22:13:20.000Z",
                        "updatedAt": "2023-11-14T22:13:20.000Z",
                    }
                ],
                SETTINGS_KEY: {"defaultProvider": "google", "requestTimeout": 45000},
                USAGE_KEY: {
                    "subscribed": True,
                    "diagramsCreated": 12,
                    "freeLimit": 5,
                    "remaining": -1,
                    "canCreate": True,
                },
            }
        )

        state = await StateManager.open(storage)

        assert state.get_diagram("diagram_1700000000000_abc1234").title == "Old"
        assert state.get_settings().default_provider == Provider.GOOGLE
        assert state.get_settings().request_timeout == 45.0
        assert state.get_remaining_diagrams() is None


class TestJsonFileStorage:
    @pytest.mark.asyncio
    async def test_file_io_runs_in_worker_threads(self, tmp_path, monkeypatch) -> None:
        calls = []
        real_to_thread = asyncio.to_thread

        async def recording_to_thread(func, *args):
            calls.append(func.__name__)
            return await real_to_thread(func, *args)

        monkeypatch.setattr("flowcraft.state.storage.asyncio.to_thread", recording_to_thread)
        storage = JsonFileStorage(tmp_path / "state.json")

        await storage.update("k", {"v": 1})
        assert await storage.get("k") == {"v": 1}

        assert calls == ["_write", "_read"]

    @pytest.mark.asyncio
    async def test_concurrent_updates_keep_every_key(self, tmp_path) -> None:
        path = tmp_path / "state.json"
        storage = JsonFileStorage(path)

        await asyncio.gather(*(storage.update(f"k{i}", i) for i in range(10)))

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data == {f"k{i}": i for i in range(10)}

    @pytest.mark.asyncio
    async def test_missing_file_returns_default(self, tmp_path) -> None:
        storage = JsonFileStorage(tmp_path / "absent.json")
        assert await storage.get("k", "fallback") == "fallback"
