"""
Core data models for FlowCraft.

Domain records are plain dataclasses. Records that are persisted expose
``to_dict`` / ``from_dict`` using the camelCase key layout shared with the
editor-side UI; ``from_dict`` fills defaults for any missing key so older
blobs keep loading.
"""

from __future__ import annotations

import time
import uuid
from dataclasses import dataclass, field, fields, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Final, Generic, Literal, TypeVar

from flowcraft.logging import get_logger

logger = get_logger("models")

T = TypeVar("T")

Complexity = Literal["simple", "medium", "complex"]

# Sentinel for "no limit" in UsageStats.remaining.
UNLIMITED: Final = None

DEFAULT_API_BASE_URL = "https://flowcraft-api-cb66lpneaq-ue.a.run.app"
DEFAULT_FREE_LIMIT = 5

# Written with every settings blob; absent in blobs that stored milliseconds.
SETTINGS_SCHEMA_VERSION = 2


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------


class Provider(str, Enum):
    """Upstream vendor whose credentials authenticate a request."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    GOOGLE = "google"
    FLOWCRAFT = "flowcraft"


class DiagramType(str, Enum):
    FLOWCHART = "flowchart"
    SEQUENCE = "sequence"
    CLASS = "class"
    STATE = "state"
    ER = "er"
    GANTT = "gantt"
    PIE = "pie"
    INFOGRAPHIC = "infographic"
    ILLUSTRATION = "illustration"
    GENERATED_IMAGE = "generated_image"
    EDITED_IMAGE = "edited_image"


class DiagramCategory(str, Enum):
    MERMAID = "mermaid"
    SVG = "svg"
    IMAGE = "image"


def category_for_type(diagram_type: DiagramType) -> DiagramCategory:
    """Return the content category a diagram type produces."""
    if diagram_type == DiagramType.INFOGRAPHIC:
        return DiagramCategory.SVG
    if diagram_type in (
        DiagramType.ILLUSTRATION,
        DiagramType.GENERATED_IMAGE,
        DiagramType.EDITED_IMAGE,
    ):
        return DiagramCategory.IMAGE
    return DiagramCategory.MERMAID


# ---------------------------------------------------------------------------
# Time and identity helpers
# ---------------------------------------------------------------------------


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def parse_timestamp(value: Any, default: datetime | None = None) -> datetime:
    """
    Parse a persisted timestamp into an aware ``datetime``.

    Accepts ``datetime`` objects, ISO-8601 strings (including the ``Z``
    suffix written by JavaScript's ``toISOString``) and epoch milliseconds.
    Falls back to *default* (or now) when the value is missing or invalid.
    """
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        text = value[:-1] + "+00:00" if value.endswith("Z") else value
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return default or utc_now()
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        parsed = datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    else:
        return default or utc_now()

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_timestamp(value: datetime) -> str:
    return value.isoformat()


def generate_diagram_id() -> str:
    """Collision-resistant client-side id: epoch millis plus a random suffix."""
    return f"diagram_{int(time.time() * 1000)}_{uuid.uuid4().hex[:7]}"


# ---------------------------------------------------------------------------
# Diagram
# ---------------------------------------------------------------------------


@dataclass
class Diagram:
    """A generated artifact: Mermaid code, SVG markup, or an image URL."""

    id: str
    title: str
    type: DiagramType
    category: DiagramCategory
    description: str = ""
    content: str = ""
    is_public: bool = False
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)
    tokens_used: int = 0
    metadata: dict[str, Any] = field(default_factory=dict)
    tags: list[str] = field(default_factory=list)
    thumbnail_url: str | None = None
    user_id: str | None = None

    def copy(self) -> Diagram:
        """Return a copy that shares no mutable state with this record."""
        return Diagram(
            id=self.id,
            title=self.title,
            type=self.type,
            category=self.category,
            description=self.description,
            content=self.content,
            is_public=self.is_public,
            created_at=self.created_at,
            updated_at=self.updated_at,
            tokens_used=self.tokens_used,
            metadata=dict(self.metadata),
            tags=list(self.tags),
            thumbnail_url=self.thumbnail_url,
            user_id=self.user_id,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "type": self.type.value,
            "category": self.category.value,
            "content": self.content,
            "isPublic": self.is_public,
            "createdAt": format_timestamp(self.created_at),
            "updatedAt": format_timestamp(self.updated_at),
            "tokensUsed": self.tokens_used,
            "metadata": dict(self.metadata),
            "tags": list(self.tags),
        }
        if self.thumbnail_url is not None:
            data["thumbnailUrl"] = self.thumbnail_url
        if self.user_id is not None:
            data["userId"] = self.user_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Diagram:
        """
        Rebuild a diagram from its persisted form.

        Raises:
            ValueError: If ``id`` is missing or ``type`` is not a known
                diagram type.
        """
        diagram_id = data.get("id")
        if not diagram_id:
            raise ValueError("Diagram entry is missing 'id'")

        diagram_type = DiagramType(data.get("type", DiagramType.FLOWCHART.value))
        raw_category = data.get("category")
        category = (
            DiagramCategory(raw_category) if raw_category else category_for_type(diagram_type)
        )
        created_at = parse_timestamp(data.get("createdAt"))

        return cls(
            id=str(diagram_id),
            title=data.get("title") or "",
            description=data.get("description") or "",
            type=diagram_type,
            category=category,
            content=data.get("content") or "",
            is_public=bool(data.get("isPublic", False)),
            created_at=created_at,
            updated_at=parse_timestamp(data.get("updatedAt"), default=created_at),
            tokens_used=int(data.get("tokensUsed") or 0),
            metadata=dict(data.get("metadata") or {}),
            tags=list(data.get("tags") or []),
            thumbnail_url=data.get("thumbnailUrl"),
            user_id=data.get("userId"),
        )


# Field names callers may pass to partial diagram updates.
DIAGRAM_FIELDS = frozenset(f.name for f in fields(Diagram))


# ---------------------------------------------------------------------------
# Request parameters and results
# ---------------------------------------------------------------------------


@dataclass
class CreateDiagramParams:
    title: str
    description: str
    type: DiagramType
    color_palette: str | None = None
    complexity_level: Complexity | None = None
    is_public: bool = False


@dataclass
class GenerateDiagramParams:
    prompt: str
    type: DiagramType
    color_palette: str | None = None
    complexity_level: Complexity | None = None
    is_public: bool = False


@dataclass
class GenerateImageParams:
    prompt: str
    aspect_ratio: str | None = None
    seed: int | None = None
    output_format: str | None = None
    safety_tolerance: int | None = None
    is_public: bool = False


@dataclass
class EditImageParams:
    prompt: str
    input_image: str
    aspect_ratio: str | None = None
    seed: int | None = None
    output_format: str | None = None
    safety_tolerance: int | None = None
    is_public: bool = False


@dataclass
class DiagramResult:
    """Result of a Mermaid diagram or infographic generation."""

    code: str
    title: str
    diagram_id: str
    user_id: str | None = None
    color_palette: str | None = None
    complexity_level: str | None = None
    tokens_used: int = 0


@dataclass
class ImageResult:
    """Result of an illustration, image generation, or image edit."""

    image_url: str
    diagram_id: str
    user_id: str | None = None
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass
class PublicDiagram:
    """A diagram shared in the public gallery."""

    id: str
    title: str
    description: str
    type: str
    content: str
    created_at: str
    views: int = 0
    likes: int = 0
    thumbnail_url: str | None = None
    is_liked: bool | None = None
    is_saved: bool | None = None


# ---------------------------------------------------------------------------
# Usage
# ---------------------------------------------------------------------------


@dataclass
class UsageStats:
    """
    Quota counters.

    ``remaining`` and ``can_create`` are derived from the three counters in
    ``__post_init__`` and cannot be set directly. ``remaining`` is
    :data:`UNLIMITED` (``None``) for subscribed users.
    """

    subscribed: bool = False
    diagrams_created: int = 0
    free_limit: int = DEFAULT_FREE_LIMIT
    message: str | None = None
    remaining: int | None = field(init=False)
    can_create: bool = field(init=False)

    def __post_init__(self) -> None:
        if self.subscribed:
            self.remaining = UNLIMITED
        else:
            self.remaining = max(0, self.free_limit - self.diagrams_created)
        self.can_create = self.subscribed or self.diagrams_created < self.free_limit

    @property
    def is_unlimited(self) -> bool:
        return self.remaining is UNLIMITED


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------


@dataclass
class ProviderConfig:
    """Per-provider settings. The API key lives in the secret store only."""

    provider: Provider
    has_api_key: bool = False
    is_enabled: bool = True
    display_name: str = ""
    models: list[str] = field(default_factory=list)
    default_model: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "provider": self.provider.value,
            "hasApiKey": self.has_api_key,
            "isEnabled": self.is_enabled,
            "displayName": self.display_name,
            "models": list(self.models),
            "defaultModel": self.default_model,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ProviderConfig:
        provider = Provider(data["provider"])
        return cls(
            provider=provider,
            # Older blobs stored the key itself; only its presence is kept.
            has_api_key=bool(data.get("hasApiKey", data.get("apiKey"))),
            is_enabled=bool(data.get("isEnabled", True)),
            display_name=data.get("displayName") or provider.value,
            models=list(data.get("models") or []),
            default_model=data.get("defaultModel"),
        )


@dataclass
class Settings:
    """Application settings singleton."""

    # API configuration
    default_provider: Provider = Provider.OPENAI
    providers: dict[Provider, ProviderConfig] = field(default_factory=dict)

    # Diagram defaults
    default_diagram_type: str = DiagramType.FLOWCHART.value
    default_color_palette: str = "brand colors"
    default_complexity: Complexity = "medium"
    default_privacy: Literal["public", "private"] = "private"
    auto_save: bool = True

    # Cache
    cache_enabled: bool = True
    cache_ttl: int = 3600  # seconds

    # UI preferences
    show_welcome_on_startup: bool = True
    show_usage_warnings: bool = True
    enable_animations: bool = True

    # Network
    api_base_url: str = DEFAULT_API_BASE_URL
    max_concurrent_requests: int = 3
    request_timeout: float = 60.0  # seconds

    def copy(self) -> Settings:
        return replace(
            self,
            providers={
                p: replace(cfg, models=list(cfg.models)) for p, cfg in self.providers.items()
            },
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"schemaVersion": SETTINGS_SCHEMA_VERSION}
        for name, key in SETTINGS_KEYS.items():
            value = getattr(self, name)
            if name == "default_provider":
                value = value.value
            elif name == "providers":
                value = {p.value: cfg.to_dict() for p, cfg in value.items()}
            data[key] = value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Settings:
        """
        Build settings from a persisted blob.

        Unknown keys are ignored. Each missing or invalid field falls back to
        its default on its own, so one bad value never discards the rest.
        Blobs without ``schemaVersion`` predate it and stored
        ``requestTimeout`` in milliseconds.
        """
        settings = cls()
        legacy = "schemaVersion" not in data
        for name, key in SETTINGS_KEYS.items():
            if key not in data:
                continue
            try:
                value = _parse_setting(name, data[key], getattr(settings, name))
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Invalid persisted setting %s, using default: %s", key, exc)
                continue
            if name == "request_timeout" and legacy:
                value = value / 1000
            setattr(settings, name, value)
        return settings


def _parse_setting(name: str, value: Any, default: Any) -> Any:
    if name == "default_provider":
        return Provider(value)
    if name == "providers":
        if not isinstance(value, dict):
            raise TypeError(f"expected an object, got {value!r}")
        configs: dict[Provider, ProviderConfig] = {}
        for provider, cfg in value.items():
            try:
                configs[Provider(provider)] = ProviderConfig.from_dict(
                    {"provider": provider, **(cfg or {})}
                )
            except (KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping invalid provider config %r: %s", provider, exc)
        return configs
    if isinstance(default, bool):
        if not isinstance(value, bool):
            raise TypeError(f"expected a boolean, got {value!r}")
        return value
    if isinstance(default, (int, float)):
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise TypeError(f"expected a number, got {value!r}")
        return type(default)(value)
    if not isinstance(value, str):
        raise TypeError(f"expected a string, got {value!r}")
    return value


# Python attribute name -> persisted key.
SETTINGS_KEYS: dict[str, str] = {
    "default_provider": "defaultProvider",
    "providers": "providers",
    "default_diagram_type": "defaultDiagramType",
    "default_color_palette": "defaultColorPalette",
    "default_complexity": "defaultComplexity",
    "default_privacy": "defaultPrivacy",
    "auto_save": "autoSave",
    "cache_enabled": "cacheEnabled",
    "cache_ttl": "cacheTTL",
    "show_welcome_on_startup": "showWelcomeOnStartup",
    "show_usage_warnings": "showUsageWarnings",
    "enable_animations": "enableAnimations",
    "api_base_url": "apiBaseUrl",
    "max_concurrent_requests": "maxConcurrentRequests",
    "request_timeout": "requestTimeout",
}


# ---------------------------------------------------------------------------
# Provider catalog
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ProviderInfo:
    provider: Provider
    display_name: str
    supported_models: tuple[str, ...]
    default_model: str
    features: tuple[str, ...]
    requires_api_key: bool = True


PROVIDER_INFO: dict[Provider, ProviderInfo] = {
    Provider.OPENAI: ProviderInfo(
        provider=Provider.OPENAI,
        display_name="OpenAI",
        supported_models=("gpt-4", "gpt-4-turbo", "gpt-3.5-turbo"),
        default_model="gpt-4",
        features=("diagrams", "infographics"),
    ),
    Provider.ANTHROPIC: ProviderInfo(
        provider=Provider.ANTHROPIC,
        display_name="Anthropic (Claude)",
        supported_models=("claude-3-opus", "claude-3-sonnet", "claude-3-haiku"),
        default_model="claude-3-sonnet",
        features=("diagrams", "infographics"),
    ),
    Provider.GOOGLE: ProviderInfo(
        provider=Provider.GOOGLE,
        display_name="Google (Gemini)",
        supported_models=("gemini-pro", "gemini-pro-vision"),
        default_model="gemini-pro",
        features=("diagrams",),
    ),
    Provider.FLOWCRAFT: ProviderInfo(
        provider=Provider.FLOWCRAFT,
        display_name="FlowCraft API",
        supported_models=("flowcraft-v2",),
        default_model="flowcraft-v2",
        features=("diagrams", "infographics", "illustrations", "images"),
    ),
}


# ---------------------------------------------------------------------------
# Cache entry
# ---------------------------------------------------------------------------


@dataclass
class CacheEntry(Generic[T]):
    """A cached value with its expiry on the cache's clock (seconds)."""

    value: T
    expires_at: float
