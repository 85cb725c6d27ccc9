"""
State-change notifications.

The StateManager publishes a snapshot on :data:`STATE_CHANGE` after every
persisted mutation. Listeners can be sync or async; an exception raised by
one listener is logged and the others still run.

Example:
    from flowcraft.events import STATE_CHANGE, EventBus

    bus = EventBus()
    subscription = bus.subscribe(STATE_CHANGE, lambda state: print(len(state.diagrams)))
    await bus.emit(STATE_CHANGE, state)
    subscription.dispose()
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from flowcraft.logging import get_logger

logger = get_logger("events")

STATE_CHANGE = "state_change"

# Listeners can be sync or async.
EventHandler = Callable[[Any], Any]


@dataclass(eq=False)
class _Listener:
    event: str
    handler: EventHandler
    source: str = ""


class Subscription:
    """Handle returned by :meth:`EventBus.subscribe`; ``dispose()`` detaches it."""

    def __init__(self, unsubscribe: Callable[[], None]) -> None:
        self._unsubscribe = unsubscribe
        self._disposed = False

    @property
    def disposed(self) -> bool:
        return self._disposed

    def dispose(self) -> None:
        if not self._disposed:
            self._disposed = True
            self._unsubscribe()

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.dispose()


class EventBus:
    """Delivers events to listeners in subscription order."""

    def __init__(self) -> None:
        self._listeners: list[_Listener] = []

    def subscribe(self, event: str, handler: EventHandler, source: str = "") -> Subscription:
        listener = _Listener(event, handler, source)
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return Subscription(unsubscribe)

    async def emit(self, event: str, data: Any = None) -> None:
        # Snapshot so listeners may dispose themselves while being notified.
        for listener in [entry for entry in self._listeners if entry.event == event]:
            try:
                result = listener.handler(data)
                if asyncio.iscoroutine(result) or asyncio.isfuture(result):
                    await result
            except Exception:
                logger.exception(
                    "State listener failed (event=%s, source=%s)", event, listener.source
                )
