"""Shared pytest fixtures for flowcraft tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from flowcraft.api.client import FlowCraftClient
from flowcraft.api.engine import RequestEngine
from flowcraft.config import ClientConfig
from flowcraft.models import Diagram, DiagramCategory, DiagramType
from flowcraft.services.api_keys import APIKeyService, MemorySecretStore
from flowcraft.state.manager import StateManager
from flowcraft.state.storage import MemoryStorage

BASE_URL = "https://api.test"


class MockResponse:
    """Minimal mock for httpx.Response."""

    def __init__(
        self,
        status_code: int = 200,
        json_data: Any = None,
        headers: dict[str, str] | None = None,
        reason_phrase: str = "",
        text: str | None = None,
    ) -> None:
        self.status_code = status_code
        self._json_data = {} if json_data is None else json_data
        self._text = text
        self.headers = headers or {}
        self.reason_phrase = reason_phrase

    def json(self) -> Any:
        if self._text is not None:
            raise ValueError(f"Expecting value: {self._text[:20]!r}")
        return self._json_data


class RecordingSleep:
    """Stand-in for asyncio.sleep that records requested delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def make_diagram(
    diagram_id: str = "diagram_1",
    title: str = "Login flow",
    diagram_type: DiagramType = DiagramType.FLOWCHART,
    created_at: datetime | None = None,
    **overrides: Any,
) -> Diagram:
    created = created_at or datetime(2024, 1, 1, tzinfo=timezone.utc)
    fields: dict[str, Any] = {
        "id": diagram_id,
        "title": title,
        "type": diagram_type,
        "category": overrides.pop("category", DiagramCategory.MERMAID),
        "description": "User signs in with email and password",
        "content": "flowchart TD\n  A --> B",
        "created_at": created,
        "updated_at": created + timedelta(minutes=1),
    }
    fields.update(overrides)
    return Diagram(**fields)


def set_responses(engine: RequestEngine, *responses: Any) -> AsyncMock:
    """Replace the engine's HTTP client; each request returns the next response."""
    mock_http = AsyncMock()
    mock_http.request = AsyncMock(side_effect=list(responses))
    engine._client = mock_http
    return mock_http


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def config() -> ClientConfig:
    return ClientConfig(base_url=BASE_URL, timeout=5.0, max_retries=3, retry_delay=1.0)


@pytest.fixture
def engine(config: ClientConfig, sleep: RecordingSleep) -> RequestEngine:
    return RequestEngine(config, sleep=sleep)


@pytest.fixture
def client(engine: RequestEngine) -> FlowCraftClient:
    return FlowCraftClient(engine)


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest_asyncio.fixture
async def state(storage: MemoryStorage) -> StateManager:
    return await StateManager.open(storage)


@pytest.fixture
def secrets() -> MemorySecretStore:
    return MemorySecretStore()


@pytest.fixture
def api_keys(secrets: MemorySecretStore) -> APIKeyService:
    return APIKeyService(secrets)
