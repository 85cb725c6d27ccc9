"""Provider-specific endpoints and authentication headers."""

from __future__ import annotations

from dataclasses import dataclass

from flowcraft.models import DiagramType, Provider


@dataclass(frozen=True)
class Endpoints:
    diagram: str = "/v2/diagram"
    infographic: str = "/v2/infographic"
    illustration: str = "/v2/illustration"
    generate_image: str = "/v2/generate-image"
    edit_image: str = "/v2/edit-image"
    usage: str = "/v2/usage"
    public_diagrams: str = "/v2/public-diagrams"


API_ENDPOINTS = Endpoints()

# Header carrying the caller's identity for the public gallery.
VIEWER_ID_HEADER = "User-Id"

_AUTH_HEADER_NAMES: dict[str, str] = {
    Provider.OPENAI.value: "X-OpenAI-Key",
    Provider.ANTHROPIC.value: "X-Anthropic-Key",
    Provider.GOOGLE.value: "X-Google-Key",
    Provider.FLOWCRAFT.value: "Authorization",
}

DEFAULT_AUTH_HEADER = "X-API-Key"

# Internal diagram type -> wire ``type`` string. Unlisted types pass through.
_WIRE_DIAGRAM_TYPES: dict[str, str] = {
    DiagramType.FLOWCHART.value: "flowchart",
    DiagramType.SEQUENCE.value: "sequence diagram",
    DiagramType.CLASS.value: "class diagram",
    DiagramType.STATE.value: "state diagram",
    DiagramType.ER.value: "er diagram",
    DiagramType.GANTT.value: "gantt",
    DiagramType.PIE.value: "pie",
}


def _provider_value(provider: Provider | str) -> str:
    return provider.value if isinstance(provider, Provider) else str(provider)


def get_auth_header_name(provider: Provider | str) -> str:
    return _AUTH_HEADER_NAMES.get(_provider_value(provider), DEFAULT_AUTH_HEADER)


def get_auth_header_value(provider: Provider | str, api_key: str) -> str:
    if _provider_value(provider) == Provider.FLOWCRAFT.value:
        return f"Bearer {api_key}"
    return api_key


def auth_headers(provider: Provider | str, api_key: str) -> dict[str, str]:
    """
    Build the authentication header for *provider*.

    Each third-party provider has its own header name; the first-party
    FlowCraft provider uses a bearer token, and anything unrecognised falls
    back to ``X-API-Key``.
    """
    return {get_auth_header_name(provider): get_auth_header_value(provider, api_key)}


def map_diagram_type(diagram_type: DiagramType | str) -> str:
    """Translate an internal diagram type into the API's ``type`` string."""
    value = diagram_type.value if isinstance(diagram_type, DiagramType) else str(diagram_type)
    return _WIRE_DIAGRAM_TYPES.get(value, value)
