"""Usage store: quota counters with derived remaining/can-create."""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from typing import Any

from flowcraft.models import DEFAULT_FREE_LIMIT, UsageStats

# Fields callers may set; ``remaining`` and ``can_create`` are always derived.
_INPUT_FIELDS = ("subscribed", "diagrams_created", "free_limit", "message")


class UsageStore:
    """
    Tracks usage against the free-tier limit.

    Every mutation rebuilds the :class:`UsageStats` record, so
    ``remaining`` and ``can_create`` always agree with the counters.
    """

    def __init__(self) -> None:
        self._usage = UsageStats()

    def get(self) -> UsageStats:
        return dataclasses.replace(self._usage)

    def update(self, stats: UsageStats | Mapping[str, Any]) -> None:
        """
        Merge new counters.

        Accepts a full :class:`UsageStats` or a partial mapping. Derived
        fields in the input are ignored.
        """
        if isinstance(stats, UsageStats):
            updates = {name: getattr(stats, name) for name in _INPUT_FIELDS}
        else:
            updates = {k: v for k, v in stats.items() if k in _INPUT_FIELDS}
        self._usage = dataclasses.replace(self._usage, **updates)

    def increment_created(self) -> None:
        self._usage = dataclasses.replace(
            self._usage, diagrams_created=self._usage.diagrams_created + 1
        )

    def can_create(self) -> bool:
        return self._usage.can_create

    def get_remaining(self) -> int | None:
        """Remaining diagrams, or ``None`` (unlimited) when subscribed."""
        return self._usage.remaining

    def reset(self) -> None:
        """Start a new period: zero the created count, keep the plan."""
        self._usage = dataclasses.replace(self._usage, diagrams_created=0)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_json(self) -> dict[str, Any]:
        usage = self._usage
        data: dict[str, Any] = {
            "subscribed": usage.subscribed,
            "diagramsCreated": usage.diagrams_created,
            "freeLimit": usage.free_limit,
            # -1 marks "unlimited" for readers that expect a number.
            "remaining": -1 if usage.remaining is None else usage.remaining,
            "canCreate": usage.can_create,
        }
        if usage.message is not None:
            data["message"] = usage.message
        return data

    def from_json(self, data: Mapping[str, Any] | None) -> None:
        """Load counters; stored ``remaining``/``canCreate`` are recomputed."""
        data = data or {}
        free_limit = data.get("freeLimit")
        self._usage = UsageStats(
            subscribed=bool(data.get("subscribed", False)),
            diagrams_created=int(data.get("diagramsCreated") or 0),
            free_limit=DEFAULT_FREE_LIMIT if free_limit is None else int(free_limit),
            message=data.get("message"),
        )
