"""
Input validation helpers.

Each validator returns a :class:`ValidationResult` instead of raising, so
callers can surface ``error`` to the user directly.
"""

from __future__ import annotations

import math
import re
from dataclasses import dataclass
from urllib.parse import urlparse

from flowcraft.models import DiagramType, Provider

VALID_COLOR_PALETTES = ("brand colors", "monochromatic", "complementary", "analogous")
VALID_COMPLEXITIES = ("simple", "medium", "complex")
VALID_ASPECT_RATIOS = ("1:1", "4:3", "16:9", "21:9", "9:16")

MAX_TITLE_LENGTH = 200
MIN_DESCRIPTION_LENGTH = 10
MAX_DESCRIPTION_LENGTH = 10_000
MAX_FILE_NAME_LENGTH = 255

_INVALID_FILE_CHARS = re.compile(r'[<>:"/\\|?*]')
_WHITESPACE = re.compile(r"\s+")
_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# provider -> (required prefix, minimum length, display name)
_API_KEY_RULES: dict[Provider, tuple[str, int, str]] = {
    Provider.OPENAI: ("sk-", 20, "OpenAI"),
    Provider.ANTHROPIC: ("sk-ant-", 20, "Anthropic"),
    Provider.GOOGLE: ("", 20, "Google"),
    Provider.FLOWCRAFT: ("", 10, "FlowCraft"),
}


@dataclass(frozen=True)
class ValidationResult:
    valid: bool
    error: str | None = None

    def __bool__(self) -> bool:
        return self.valid


_OK = ValidationResult(True)


def _fail(message: str) -> ValidationResult:
    return ValidationResult(False, message)


def validate_api_key(provider: Provider | str, api_key: str | None) -> ValidationResult:
    """
    Check an API key's format for *provider*.

    Only the shape is checked (prefix and length); use
    :meth:`APIKeyService.test` for a live check.
    """
    if not api_key or not api_key.strip():
        return _fail("API key cannot be empty")

    try:
        rule = _API_KEY_RULES[Provider(provider)]
    except ValueError:
        return _OK

    prefix, min_length, name = rule
    if prefix and not api_key.startswith(prefix):
        return _fail(f'{name} API key must start with "{prefix}"')
    if len(api_key) < min_length:
        return _fail(f"{name} API key is too short")
    return _OK


def validate_diagram_title(title: str | None) -> ValidationResult:
    if not title or not title.strip():
        return _fail("Title cannot be empty")
    if len(title) > MAX_TITLE_LENGTH:
        return _fail(f"Title is too long (max {MAX_TITLE_LENGTH} characters)")
    return _OK


def validate_diagram_description(description: str | None) -> ValidationResult:
    if not description or not description.strip():
        return _fail("Description cannot be empty")
    if len(description) < MIN_DESCRIPTION_LENGTH:
        return _fail(f"Description is too short (min {MIN_DESCRIPTION_LENGTH} characters)")
    if len(description) > MAX_DESCRIPTION_LENGTH:
        return _fail(f"Description is too long (max {MAX_DESCRIPTION_LENGTH:,} characters)")
    return _OK


def validate_url(url: str) -> ValidationResult:
    parsed = urlparse(url or "")
    if not parsed.scheme or not (parsed.netloc or parsed.path):
        return _fail("Invalid URL format")
    return _OK


def validate_email(email: str | None) -> ValidationResult:
    if not email or not email.strip():
        return _fail("Email cannot be empty")
    if not _EMAIL.match(email):
        return _fail("Invalid email format")
    return _OK


def _one_of(value: str, allowed: tuple[str, ...], what: str) -> ValidationResult:
    if value not in allowed:
        return _fail(f"Invalid {what}. Must be one of: {', '.join(allowed)}")
    return _OK


def validate_diagram_type(diagram_type: str) -> ValidationResult:
    return _one_of(diagram_type, tuple(t.value for t in DiagramType), "diagram type")


def validate_color_palette(palette: str) -> ValidationResult:
    return _one_of(palette, VALID_COLOR_PALETTES, "color palette")


def validate_complexity(complexity: str) -> ValidationResult:
    return _one_of(complexity, VALID_COMPLEXITIES, "complexity")


def validate_aspect_ratio(ratio: str) -> ValidationResult:
    return _one_of(ratio, VALID_ASPECT_RATIOS, "aspect ratio")


def sanitize_file_name(file_name: str) -> str:
    """Replace characters unsafe in file names (and whitespace) with ``_``, lowercased."""
    return _WHITESPACE.sub("_", _INVALID_FILE_CHARS.sub("_", file_name)).lower()


def validate_file_name(file_name: str | None) -> ValidationResult:
    if not file_name or not file_name.strip():
        return _fail("File name cannot be empty")
    if _INVALID_FILE_CHARS.search(file_name):
        return _fail('File name contains invalid characters: < > : " / \\ | ? *')
    if len(file_name) > MAX_FILE_NAME_LENGTH:
        return _fail(f"File name is too long (max {MAX_FILE_NAME_LENGTH} characters)")
    return _OK


def _is_number(value: object) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_positive_number(value: object, name: str = "Value") -> ValidationResult:
    if not _is_number(value):
        return _fail(f"{name} must be a number")
    if math.isnan(value) or value <= 0:  # type: ignore[arg-type]
        return _fail(f"{name} must be positive")
    if math.isinf(value):  # type: ignore[arg-type]
        return _fail(f"{name} must be finite")
    return _OK


def validate_number_range(
    value: object,
    minimum: float,
    maximum: float,
    name: str = "Value",
) -> ValidationResult:
    if not _is_number(value):
        return _fail(f"{name} must be a number")
    if not minimum <= value <= maximum:  # type: ignore[operator]
        return _fail(f"{name} must be between {minimum} and {maximum}")
    return _OK
