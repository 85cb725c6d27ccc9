"""
FlowCraft core - diagram generation client and local state for editor integrations.

Turns natural-language prompts into Mermaid diagrams, SVG infographics and
images through the FlowCraft API, and keeps the diagram history, settings
and usage quota in local storage.

Example:
    from flowcraft import FlowCraft, GenerateDiagramParams, DiagramType
    from flowcraft.services import MemorySecretStore
    from flowcraft.state import JsonFileStorage

    app = await FlowCraft.open(JsonFileStorage("~/.flowcraft/state.json"), MemorySecretStore())
    await app.api_keys.store("openai", "sk-...")
    diagram = await app.diagrams.generate(
        GenerateDiagramParams(prompt="Checkout flow", type=DiagramType.FLOWCHART)
    )
    print(diagram.content)
    await app.aclose()
"""

from flowcraft.api import AuthContext, FlowCraftClient, RequestEngine
from flowcraft.app import FlowCraft
from flowcraft.cache import CacheService
from flowcraft.config import ClientConfig
from flowcraft.errors import (
    APIError,
    AuthenticationError,
    DiagramNotFoundError,
    ErrorKind,
    FlowCraftError,
    MissingAPIKeyError,
    NetworkError,
    QuotaExceededError,
    RateLimitError,
    ResponseDecodeError,
    UnsupportedOperationError,
    ValidationError,
)
from flowcraft.events import STATE_CHANGE, EventBus, Subscription
from flowcraft.logging import get_logger, setup_logging
from flowcraft.models import (
    UNLIMITED,
    CreateDiagramParams,
    Diagram,
    DiagramCategory,
    DiagramResult,
    DiagramType,
    EditImageParams,
    GenerateDiagramParams,
    GenerateImageParams,
    ImageResult,
    Provider,
    ProviderConfig,
    PublicDiagram,
    Settings,
    UsageStats,
)
from flowcraft.services import (
    APIKeyService,
    DiagramService,
    ExportFormat,
    ExportService,
    MemorySecretStore,
    UsageService,
)
from flowcraft.state import JsonFileStorage, MemoryStorage, State, StateManager

__version__ = "0.1.0"

__all__ = [
    # Container
    "FlowCraft",
    # API
    "AuthContext",
    "ClientConfig",
    "FlowCraftClient",
    "RequestEngine",
    # Errors
    "APIError",
    "AuthenticationError",
    "DiagramNotFoundError",
    "ErrorKind",
    "FlowCraftError",
    "MissingAPIKeyError",
    "NetworkError",
    "QuotaExceededError",
    "RateLimitError",
    "ResponseDecodeError",
    "UnsupportedOperationError",
    "ValidationError",
    # Models
    "UNLIMITED",
    "CreateDiagramParams",
    "Diagram",
    "DiagramCategory",
    "DiagramResult",
    "DiagramType",
    "EditImageParams",
    "GenerateDiagramParams",
    "GenerateImageParams",
    "ImageResult",
    "Provider",
    "ProviderConfig",
    "PublicDiagram",
    "Settings",
    "UsageStats",
    # State
    "JsonFileStorage",
    "MemoryStorage",
    "State",
    "StateManager",
    # Services
    "APIKeyService",
    "CacheService",
    "DiagramService",
    "ExportFormat",
    "ExportService",
    "MemorySecretStore",
    "UsageService",
    # Events
    "STATE_CHANGE",
    "EventBus",
    "Subscription",
    # Logging
    "get_logger",
    "setup_logging",
]
