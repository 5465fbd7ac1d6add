"""Timestamped events, the only thing the simulation loop processes.

Arrivals at a server, processing steps, GC pauses, network legs and
emission ticks are all Events. Ties on time are broken by creation order,
so a seeded run replays identically.
"""

from __future__ import annotations

import logging
from itertools import count
from typing import TYPE_CHECKING, Any

from fanoutsim.core.temporal import Instant

if TYPE_CHECKING:
    from fanoutsim.core.entity import Entity

logger = logging.getLogger(__name__)

_sequence = count()


class Event:
    """Work for ``target`` at ``time``.

    Attributes:
        time: Instant at which the target handles the event.
        event_type: Label used for dispatch inside the target and in logs.
        target: Entity whose ``handle_event`` is called.
        context: Free-form payload, e.g. the request riding a network leg.
    """

    __slots__ = ("_seq", "cancelled", "context", "event_type", "target", "time")

    def __init__(
        self,
        time: Instant,
        event_type: str,
        target: Entity | None,
        *,
        context: dict[str, Any] | None = None,
    ):
        if target is None:
            raise ValueError(f"{event_type!r} event has no target entity")
        self.time = time
        self.event_type = event_type
        self.target = target
        self.context = {} if context is None else context
        self.cancelled = False
        self._seq = next(_sequence)

    def cancel(self) -> None:
        """Leave the event on the heap but have the loop skip it. Idempotent."""
        self.cancelled = True

    def invoke(self) -> list[Event]:
        """Hand the event to its target; always returns a list of follow-ups."""
        result = self.target.handle_event(self)
        if result is None:
            return []
        if isinstance(result, Event):
            return [result]
        if isinstance(result, list):
            return result
        logger.warning("%r returned %s from handle_event; ignored", self.target, type(result).__name__)
        return []

    def __lt__(self, other: Event) -> bool:
        return (self.time, self._seq) < (other.time, other._seq)

    def __repr__(self) -> str:
        state = ", cancelled" if self.cancelled else ""
        return f"Event({self.time!r}, {self.event_type!r} -> {self.target.name}{state})"
