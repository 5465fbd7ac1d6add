"""Adapter that lets a plain function receive events.

The network legs and ``Simulation.schedule_after`` both route through it,
so every event on the heap still has an entity target.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from fanoutsim.core.entity import Entity
from fanoutsim.core.event import Event


class CallbackEntity(Entity):
    """Calls ``fn(event)`` for every event it receives.

    Whatever ``fn`` returns is kept only if it is an Event or a list of
    them; any other return value (a list.append result, a counter) is
    dropped so small lambdas can be used as handlers.
    """

    def __init__(self, name: str, fn: Callable[[Event], Any]):
        super().__init__(name)
        self.fn = fn
        self.calls = 0

    def handle_event(self, event: Event) -> list[Event] | Event | None:
        self.calls += 1
        result = self.fn(event)
        return result if isinstance(result, (Event, list)) else None

    def __repr__(self) -> str:
        return f"CallbackEntity({self.name!r}, calls={self.calls})"
