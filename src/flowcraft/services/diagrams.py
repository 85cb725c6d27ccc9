"""
Diagram lifecycle: create, generate, update, regenerate, duplicate, delete.

Every generation resolves the default provider's key, checks the usage
quota, and only then calls the API. Results are stored through the state
manager, which persists and notifies listeners.
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any

from flowcraft.errors import (
    DiagramNotFoundError,
    MissingAPIKeyError,
    QuotaExceededError,
    UnsupportedOperationError,
    ValidationError,
)
from flowcraft.logging import get_logger
from flowcraft.models import (
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
    category_for_type,
    generate_diagram_id,
    utc_now,
)
from flowcraft.validation import validate_diagram_title

if TYPE_CHECKING:
    from flowcraft.api.client import FlowCraftClient
    from flowcraft.services.api_keys import APIKeyService
    from flowcraft.state.manager import StateManager

logger = get_logger("services.diagrams")

QUOTA_MESSAGE = "Usage limit reached. Please upgrade to continue."
TITLE_PREFIX_LENGTH = 50
EDITED_TITLE_PREFIX_LENGTH = 40

_IMAGE_TYPES = (DiagramType.GENERATED_IMAGE, DiagramType.EDITED_IMAGE)


class DiagramService:
    def __init__(
        self,
        client: FlowCraftClient,
        state: StateManager,
        api_keys: APIKeyService,
    ) -> None:
        self.client = client
        self.state = state
        self.api_keys = api_keys
        self._locks: dict[str, asyncio.Lock] = {}
        self._last_timestamp: datetime | None = None

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _now(self) -> datetime:
        """Current time, strictly later than any timestamp issued before."""
        now = utc_now()
        if self._last_timestamp is not None and now <= self._last_timestamp:
            now = self._last_timestamp + timedelta(microseconds=1)
        self._last_timestamp = now
        return now

    async def _credentials(self) -> tuple[Provider, str]:
        provider = Provider(self.state.get_setting("default_provider"))
        api_key = await self.api_keys.retrieve(provider)
        if not api_key:
            raise MissingAPIKeyError(provider.value)
        return provider, api_key

    def _check_quota(self) -> None:
        if not self.state.can_create_diagram():
            raise QuotaExceededError(QUOTA_MESSAGE)

    async def _generate_content(
        self, params: GenerateDiagramParams
    ) -> tuple[DiagramResult | ImageResult, DiagramCategory]:
        """Run the key, quota and dispatch steps shared by generate and regenerate."""
        diagram_type = DiagramType(params.type)
        if diagram_type in _IMAGE_TYPES:
            raise UnsupportedOperationError(
                "Use generate_image or edit_image for image generation"
            )

        provider, api_key = await self._credentials()
        self._check_quota()

        logger.debug("Generating %s diagram with %s", diagram_type.value, provider.value)
        if diagram_type == DiagramType.INFOGRAPHIC:
            return (
                await self.client.generate_infographic(params, provider, api_key),
                DiagramCategory.SVG,
            )
        if diagram_type == DiagramType.ILLUSTRATION:
            return (
                await self.client.generate_illustration(params, provider, api_key),
                DiagramCategory.IMAGE,
            )
        return (
            await self.client.generate_diagram(params, provider, api_key),
            DiagramCategory.MERMAID,
        )

    @staticmethod
    def _content(result: DiagramResult | ImageResult) -> tuple[str, int]:
        if isinstance(result, DiagramResult):
            return result.code, result.tokens_used
        return result.image_url, 0

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    async def create(self, params: CreateDiagramParams) -> Diagram:
        """
        Create an empty diagram without calling the API.

        Raises:
            ValidationError: If the title is empty or too long
        """
        check = validate_diagram_title(params.title)
        if not check.valid:
            raise ValidationError(check.error or "Invalid title")

        now = self._now()
        diagram_type = DiagramType(params.type)
        metadata: dict[str, Any] = {}
        if params.color_palette:
            metadata["color_palette"] = params.color_palette
        if params.complexity_level:
            metadata["complexity_level"] = params.complexity_level

        diagram = Diagram(
            id=generate_diagram_id(),
            title=params.title,
            description=params.description,
            type=diagram_type,
            category=category_for_type(diagram_type),
            content="",
            is_public=params.is_public,
            created_at=now,
            updated_at=now,
            tokens_used=0,
            metadata=metadata,
        )
        await self.state.add_diagram(diagram)
        return diagram

    async def generate(self, params: GenerateDiagramParams) -> Diagram:
        """
        Generate a diagram with the default provider and store it.

        Raises:
            UnsupportedOperationError: For generated/edited image types
            MissingAPIKeyError: If the default provider has no stored key
            QuotaExceededError: If the free limit is used up (no request is sent)
        """
        result, category = await self._generate_content(params)
        content, tokens_used = self._content(result)
        title = result.title if isinstance(result, DiagramResult) else ""

        now = self._now()
        diagram = Diagram(
            id=result.diagram_id,
            title=title or params.prompt[:TITLE_PREFIX_LENGTH],
            description=params.prompt,
            type=DiagramType(params.type),
            category=category,
            content=content,
            is_public=params.is_public,
            created_at=now,
            updated_at=now,
            tokens_used=tokens_used,
            metadata={
                "color_palette": params.color_palette,
                "complexity_level": params.complexity_level,
            },
            user_id=result.user_id,
        )
        await self.state.add_diagram(diagram)
        logger.info("Generated diagram %s", diagram.id)
        return diagram

    async def generate_image(self, params: GenerateImageParams) -> Diagram:
        provider, api_key = await self._credentials()
        self._check_quota()

        result = await self.client.generate_image(params, provider, api_key)
        return await self._store_image(
            result,
            params.prompt[:TITLE_PREFIX_LENGTH],
            params.prompt,
            DiagramType.GENERATED_IMAGE,
            params.is_public,
        )

    async def edit_image(self, params: EditImageParams) -> Diagram:
        provider, api_key = await self._credentials()
        self._check_quota()

        result = await self.client.edit_image(params, provider, api_key)
        return await self._store_image(
            result,
            f"Edited: {params.prompt[:EDITED_TITLE_PREFIX_LENGTH]}",
            params.prompt,
            DiagramType.EDITED_IMAGE,
            params.is_public,
        )

    async def _store_image(
        self,
        result: ImageResult,
        title: str,
        prompt: str,
        diagram_type: DiagramType,
        is_public: bool,
    ) -> Diagram:
        now = self._now()
        diagram = Diagram(
            id=result.diagram_id,
            title=title,
            description=prompt,
            type=diagram_type,
            category=DiagramCategory.IMAGE,
            content=result.image_url,
            is_public=is_public,
            created_at=now,
            updated_at=now,
            tokens_used=0,
            metadata=dict(result.metadata),
            user_id=result.user_id,
        )
        await self.state.add_diagram(diagram)
        logger.info("Stored %s %s", diagram_type.value, diagram.id)
        return diagram

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def update(self, diagram_id: str, updates: Mapping[str, Any]) -> Diagram:
        if not await self.state.update_diagram(diagram_id, updates):
            raise DiagramNotFoundError(diagram_id)
        return self.get(diagram_id)

    async def delete(self, diagram_id: str) -> None:
        if not await self.state.remove_diagram(diagram_id):
            raise DiagramNotFoundError(diagram_id)
        self._locks.pop(diagram_id, None)

    def get(self, diagram_id: str) -> Diagram:
        diagram = self.state.get_diagram(diagram_id)
        if diagram is None:
            raise DiagramNotFoundError(diagram_id)
        return diagram

    def get_all(self) -> list[Diagram]:
        return self.state.get_all_diagrams()

    def search(self, query: str) -> list[Diagram]:
        return self.state.search_diagrams(query)

    def get_recent(self, limit: int = 10) -> list[Diagram]:
        return self.state.get_recent_diagrams(limit)

    async def regenerate(self, diagram_id: str) -> Diagram:
        """
        Generate fresh content for an existing diagram.

        The diagram keeps its id and ``created_at``; ``content`` and
        ``tokens_used`` are replaced and one usage is counted. Regenerations
        of the same diagram run one at a time.
        """
        self.get(diagram_id)
        lock = self._locks.setdefault(diagram_id, asyncio.Lock())
        async with lock:
            existing = self.get(diagram_id)
            params = GenerateDiagramParams(
                prompt=existing.description,
                type=existing.type,
                color_palette=existing.metadata.get("color_palette"),
                complexity_level=existing.metadata.get("complexity_level"),
                is_public=existing.is_public,
            )
            result, _ = await self._generate_content(params)
            content, tokens_used = self._content(result)

            # The diagram may have been deleted while the request was in flight.
            if not await self.state.update_diagram(
                diagram_id, {"content": content, "tokens_used": tokens_used}
            ):
                raise DiagramNotFoundError(diagram_id)
            await self.state.increment_usage()
            logger.info("Regenerated diagram %s", diagram_id)
            return self.get(diagram_id)

    async def duplicate(self, diagram_id: str) -> Diagram:
        """Copy a diagram under a new id with fresh timestamps."""
        existing = self.get(diagram_id)
        now = self._now()
        copy = existing.copy()
        copy.id = generate_diagram_id()
        copy.title = f"{existing.title} (Copy)"
        copy.created_at = now
        copy.updated_at = now
        await self.state.add_diagram(copy)
        return copy
