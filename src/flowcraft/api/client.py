"""
FlowCraft API client.

Typed facade over the v2 generation API. Each method builds the wire body
(applying field defaults), delegates to the :class:`RequestEngine` and
decodes the snake_case envelope into a domain record.

Example:
    from flowcraft.api import FlowCraftClient, RequestEngine
    from flowcraft.models import DiagramType, GenerateDiagramParams, Provider

    client = FlowCraftClient(RequestEngine())
    result = await client.generate_diagram(
        GenerateDiagramParams(prompt="User login flow", type=DiagramType.SEQUENCE),
        Provider.OPENAI,
        "sk-...",
    )
    print(result.code)
"""

from __future__ import annotations

from typing import Any

from flowcraft.api.engine import AuthContext, RequestEngine
from flowcraft.api.providers import API_ENDPOINTS, VIEWER_ID_HEADER, map_diagram_type
from flowcraft.api.wire import (
    decode_diagram_response,
    decode_illustration_response,
    decode_image_response,
    decode_public_diagrams_response,
    decode_usage_response,
)
from flowcraft.cache import CacheService
from flowcraft.logging import get_logger
from flowcraft.models import (
    DiagramResult,
    EditImageParams,
    GenerateDiagramParams,
    GenerateImageParams,
    ImageResult,
    Provider,
    PublicDiagram,
    UsageStats,
)

logger = get_logger("api.client")

DEFAULT_COLOR_PALETTE = "brand colors"
DEFAULT_COMPLEXITY = "medium"
DEFAULT_SAFETY_TOLERANCE = 2
DEFAULT_PUBLIC_DIAGRAMS_LIMIT = 20


class FlowCraftClient:
    """Client for the FlowCraft v2 API."""

    def __init__(self, engine: RequestEngine, cache: CacheService | None = None) -> None:
        self.engine = engine
        self.cache = cache

    async def aclose(self) -> None:
        await self.engine.aclose()

    # ------------------------------------------------------------------
    # Request bodies
    # ------------------------------------------------------------------

    @staticmethod
    def _diagram_body(params: GenerateDiagramParams, wire_type: str) -> dict[str, Any]:
        return {
            "prompt": params.prompt,
            "type": wire_type,
            "colorPalette": params.color_palette or DEFAULT_COLOR_PALETTE,
            "complexityLevel": params.complexity_level or DEFAULT_COMPLEXITY,
            "is_public": params.is_public,
        }

    @staticmethod
    def _image_body(
        params: GenerateImageParams | EditImageParams,
        aspect_ratio: str,
        output_format: str,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {
            "prompt": params.prompt,
            "aspect_ratio": params.aspect_ratio or aspect_ratio,
            "output_format": params.output_format or output_format,
            "safety_tolerance": (
                DEFAULT_SAFETY_TOLERANCE
                if params.safety_tolerance is None
                else params.safety_tolerance
            ),
            "is_public": params.is_public,
        }
        if params.seed is not None:
            body["seed"] = params.seed
        return body

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate_diagram(
        self,
        params: GenerateDiagramParams,
        provider: Provider | str,
        api_key: str,
    ) -> DiagramResult:
        """Generate a Mermaid diagram."""
        return await self.engine.execute(
            API_ENDPOINTS.diagram,
            "POST",
            self._diagram_body(params, map_diagram_type(params.type)),
            AuthContext(provider, api_key),
            decode=decode_diagram_response,
        )

    async def generate_infographic(
        self,
        params: GenerateDiagramParams,
        provider: Provider | str,
        api_key: str,
    ) -> DiagramResult:
        """Generate an SVG infographic."""
        return await self.engine.execute(
            API_ENDPOINTS.infographic,
            "POST",
            self._diagram_body(params, "infographic"),
            AuthContext(provider, api_key),
            decode=decode_diagram_response,
        )

    async def generate_illustration(
        self,
        params: GenerateDiagramParams,
        provider: Provider | str,
        api_key: str,
    ) -> ImageResult:
        """Generate an illustration (returned as an image URL)."""
        return await self.engine.execute(
            API_ENDPOINTS.illustration,
            "POST",
            self._diagram_body(params, "illustration"),
            AuthContext(provider, api_key),
            decode=decode_illustration_response,
        )

    async def generate_image(
        self,
        params: GenerateImageParams,
        provider: Provider | str,
        api_key: str,
    ) -> ImageResult:
        """Generate an AI image."""
        return await self.engine.execute(
            API_ENDPOINTS.generate_image,
            "POST",
            self._image_body(params, aspect_ratio="1:1", output_format="png"),
            AuthContext(provider, api_key),
            decode=decode_image_response,
        )

    async def edit_image(
        self,
        params: EditImageParams,
        provider: Provider | str,
        api_key: str,
    ) -> ImageResult:
        """Edit an existing image."""
        body = self._image_body(params, aspect_ratio="match_input_image", output_format="jpg")
        body["input_image"] = params.input_image
        return await self.engine.execute(
            API_ENDPOINTS.edit_image,
            "POST",
            body,
            AuthContext(provider, api_key),
            decode=decode_image_response,
        )

    # ------------------------------------------------------------------
    # Account and gallery
    # ------------------------------------------------------------------

    async def get_usage(self, provider: Provider | str, api_key: str) -> UsageStats:
        """Fetch server-authoritative usage statistics."""
        return await self.engine.execute(
            API_ENDPOINTS.usage,
            "GET",
            auth=AuthContext(provider, api_key),
            decode=decode_usage_response,
        )

    async def get_public_diagrams(
        self,
        limit: int = DEFAULT_PUBLIC_DIAGRAMS_LIMIT,
        user_id: str | None = None,
    ) -> list[PublicDiagram]:
        """
        List public gallery diagrams.

        No provider authentication is sent. *user_id* identifies the viewer
        so the server can fill ``is_liked`` / ``is_saved``.
        """

        async def fetch() -> list[PublicDiagram]:
            headers = {VIEWER_ID_HEADER: user_id} if user_id else None
            logger.debug("Fetching public diagrams (limit=%d)", limit)
            return await self.engine.execute(
                API_ENDPOINTS.public_diagrams,
                "GET",
                headers=headers,
                params={"limit": limit},
                decode=decode_public_diagrams_response,
            )

        if self.cache is None:
            return await fetch()
        return await self.cache.get_or_set(f"public-diagrams:{limit}:{user_id or ''}", fetch)
