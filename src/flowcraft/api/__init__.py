"""FlowCraft API client, request engine and wire decoding."""

from flowcraft.api.client import FlowCraftClient
from flowcraft.api.engine import AuthContext, RequestEngine, parse_retry_after
from flowcraft.api.providers import (
    API_ENDPOINTS,
    auth_headers,
    get_auth_header_name,
    get_auth_header_value,
    map_diagram_type,
)

__all__ = [
    "API_ENDPOINTS",
    "AuthContext",
    "FlowCraftClient",
    "RequestEngine",
    "auth_headers",
    "get_auth_header_name",
    "get_auth_header_value",
    "map_diagram_type",
    "parse_retry_after",
]
