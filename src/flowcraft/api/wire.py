"""
Strict decoders for FlowCraft API response envelopes.

Each decoder takes the parsed JSON body and returns a typed domain record,
translating the wire's snake_case fields. Missing required fields or values
of the wrong type raise :class:`ResponseDecodeError`.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any, TypeVar

from flowcraft.errors import ResponseDecodeError
from flowcraft.models import DiagramResult, ImageResult, PublicDiagram, UsageStats

T = TypeVar("T")

Decoder = Callable[[Any], T]

_MISSING = object()


def _expect_object(data: Any, what: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise ResponseDecodeError(f"Expected a JSON object for {what}, got {type(data).__name__}")
    return data


def _field(
    data: dict[str, Any],
    key: str,
    kind: type | tuple[type, ...],
    what: str,
    default: Any = _MISSING,
) -> Any:
    value = data.get(key, _MISSING)
    if value is _MISSING or value is None:
        if default is _MISSING:
            raise ResponseDecodeError(f"Missing field '{key}' in {what}")
        return default
    # bool is an int subclass; never accept it where a number is expected.
    if isinstance(value, bool) and bool not in (kind if isinstance(kind, tuple) else (kind,)):
        raise ResponseDecodeError(f"Field '{key}' in {what} has the wrong type")
    if not isinstance(value, kind):
        raise ResponseDecodeError(f"Field '{key}' in {what} has the wrong type")
    return value


def decode_diagram_response(data: Any) -> DiagramResult:
    """Decode ``/v2/diagram`` and ``/v2/infographic`` responses."""
    what = "diagram response"
    body = _expect_object(data, what)
    return DiagramResult(
        code=_field(body, "code", str, what),
        title=_field(body, "title", str, what, ""),
        diagram_id=_field(body, "diagram_id", str, what),
        user_id=_field(body, "user_id", str, what, None),
        color_palette=_field(body, "colorPalette", str, what, None),
        complexity_level=_field(body, "complexityLevel", str, what, None),
        tokens_used=_field(body, "tokens_used", int, what, 0),
    )


def decode_illustration_response(data: Any) -> ImageResult:
    """Decode ``/v2/illustration`` responses."""
    what = "illustration response"
    body = _expect_object(data, what)
    metadata: dict[str, Any] = {}
    color_palette = _field(body, "colorPalette", str, what, None)
    complexity_level = _field(body, "complexityLevel", str, what, None)
    if color_palette is not None:
        metadata["color_palette"] = color_palette
    if complexity_level is not None:
        metadata["complexity_level"] = complexity_level
    return ImageResult(
        image_url=_field(body, "image_url", str, what),
        diagram_id=_field(body, "diagram_id", str, what),
        user_id=_field(body, "user_id", str, what, None),
        metadata=metadata,
    )


def decode_image_response(data: Any) -> ImageResult:
    """Decode ``/v2/generate-image`` and ``/v2/edit-image`` responses."""
    what = "image response"
    body = _expect_object(data, what)
    metadata = dict(_field(body, "metadata", dict, what, {}))
    original_url = _field(body, "original_url", str, what, None)
    if original_url is not None:
        metadata.setdefault("original_url", original_url)
    return ImageResult(
        image_url=_field(body, "image_url", str, what),
        diagram_id=_field(body, "diagram_id", str, what),
        user_id=_field(body, "user_id", str, what, None),
        metadata=metadata,
    )


def decode_usage_response(data: Any) -> UsageStats:
    """
    Decode ``/v2/usage`` responses.

    ``remaining`` and ``can_create`` on the wire are ignored; they are
    recomputed from the authoritative counters.
    """
    what = "usage response"
    body = _expect_object(data, what)
    return UsageStats(
        subscribed=_field(body, "subscribed", bool, what),
        diagrams_created=_field(body, "diagrams_created", int, what),
        free_limit=_field(body, "free_limit", int, what),
        message=_field(body, "message", str, what, None),
    )


def decode_public_diagrams_response(data: Any) -> list[PublicDiagram]:
    """Decode ``/v2/public-diagrams`` responses."""
    what = "public diagrams response"
    body = _expect_object(data, what)
    items = _field(body, "diagrams", list, what)

    diagrams: list[PublicDiagram] = []
    for raw in items:
        item = _expect_object(raw, "public diagram")
        diagrams.append(
            PublicDiagram(
                id=str(_field(item, "id", (str, int), "public diagram")),
                title=_field(item, "title", str, "public diagram", ""),
                description=_field(item, "description", str, "public diagram", ""),
                type=_field(item, "type", str, "public diagram", ""),
                content=_field(item, "content", str, "public diagram", ""),
                created_at=_field(item, "created_at", str, "public diagram", ""),
                views=_field(item, "views", int, "public diagram", 0),
                likes=_field(item, "likes", int, "public diagram", 0),
                thumbnail_url=_field(item, "thumbnail_url", str, "public diagram", None),
                is_liked=_field(item, "is_liked", bool, "public diagram", None),
                is_saved=_field(item, "is_saved", bool, "public diagram", None),
            )
        )
    return diagrams
