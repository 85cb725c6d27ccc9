"""Diagram store: id-keyed collection of diagrams."""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from flowcraft.logging import get_logger
from flowcraft.models import DIAGRAM_FIELDS, Diagram, DiagramCategory, DiagramType, utc_now

logger = get_logger("state.diagrams")


class DiagramStore:
    """
    Holds every diagram keyed by id.

    Reads hand out copies, so the only way to change a stored diagram is
    through :meth:`add`, :meth:`update` or :meth:`remove`.
    """

    def __init__(self) -> None:
        self._diagrams: dict[str, Diagram] = {}

    def add(self, diagram: Diagram) -> None:
        """Insert *diagram*, replacing any diagram with the same id."""
        self._diagrams[diagram.id] = diagram.copy()

    def remove(self, diagram_id: str) -> bool:
        return self._diagrams.pop(diagram_id, None) is not None

    def get(self, diagram_id: str) -> Diagram | None:
        diagram = self._diagrams.get(diagram_id)
        return diagram.copy() if diagram is not None else None

    def get_all(self) -> list[Diagram]:
        return [d.copy() for d in self._diagrams.values()]

    def update(self, diagram_id: str, updates: Mapping[str, Any]) -> bool:
        """
        Merge *updates* into a stored diagram and refresh ``updated_at``.

        The id cannot be changed. Returns ``False`` if the diagram does not
        exist.

        Raises:
            KeyError: If *updates* names a field diagrams do not have
        """
        diagram = self._diagrams.get(diagram_id)
        if diagram is None:
            return False

        unknown = set(updates) - DIAGRAM_FIELDS
        if unknown:
            raise KeyError(f"Unknown diagram field(s): {', '.join(sorted(unknown))}")

        updated = diagram.copy()
        for name, value in updates.items():
            if name == "id":
                continue
            setattr(updated, name, value)
        updated.updated_at = utc_now()

        self._diagrams[diagram_id] = updated
        return True

    def filter_by_type(self, diagram_type: DiagramType | str) -> list[Diagram]:
        return [d for d in self.get_all() if d.type == diagram_type]

    def filter_by_category(self, category: DiagramCategory | str) -> list[Diagram]:
        return [d for d in self.get_all() if d.category == category]

    def search(self, query: str) -> list[Diagram]:
        """Case-insensitive substring match over title, description and tags."""
        needle = query.lower()
        return [
            d
            for d in self.get_all()
            if needle in d.title.lower()
            or needle in d.description.lower()
            or any(needle in tag.lower() for tag in d.tags)
        ]

    def get_recent(self, limit: int = 10) -> list[Diagram]:
        """Most recently created diagrams first."""
        return sorted(self.get_all(), key=lambda d: d.created_at, reverse=True)[:limit]

    def clear(self) -> None:
        self._diagrams.clear()

    def count(self) -> int:
        return len(self._diagrams)

    def has(self, diagram_id: str) -> bool:
        return diagram_id in self._diagrams

    def __len__(self) -> int:
        return len(self._diagrams)

    def __contains__(self, diagram_id: object) -> bool:
        return diagram_id in self._diagrams

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_json(self) -> list[dict[str, Any]]:
        return [d.to_dict() for d in self._diagrams.values()]

    def from_json(self, data: list[dict[str, Any]] | None) -> None:
        """
        Replace the contents with diagrams loaded from *data*.

        Timestamps are parsed back into ``datetime`` values and missing
        fields take their defaults. Malformed entries are skipped.
        """
        self.clear()
        for item in data or []:
            try:
                diagram = Diagram.from_dict(item)
            except (AttributeError, KeyError, TypeError, ValueError) as exc:
                logger.warning("Skipping malformed diagram entry: %s", exc)
                continue
            self._diagrams[diagram.id] = diagram
