"""Base class for everything that reacts to events on the heap.

Sources never appear here: they are plain bookkeeping objects. Servers,
the emitter, garbage collectors and the network callback are entities,
because each of them owns events that fire at a future instant.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from fanoutsim.core.event import Event

if TYPE_CHECKING:
    from fanoutsim.core.clock import Clock
    from fanoutsim.core.temporal import Instant

logger = logging.getLogger(__name__)


class Entity(ABC):
    """An event target with access to the simulation clock.

    The clock is attached by the Simulation when the entity joins it.
    Reading ``now`` on a detached entity is a programming error.

    Attributes:
        name: Label used in log lines and event reprs.
    """

    def __init__(self, name: str):
        self.name = name
        self._clock: Clock | None = None

    def set_clock(self, clock: Clock) -> None:
        self._clock = clock

    @property
    def attached(self) -> bool:
        return self._clock is not None

    @property
    def now(self) -> Instant:
        """Current virtual time.

        Raises:
            RuntimeError: If no clock has been attached yet.
        """
        clock = self._clock
        if clock is None:
            logger.error("[%s] Read the time while detached from a simulation", self.name)
            raise RuntimeError(f"{type(self).__name__} {self.name!r} has no clock attached")
        return clock.now

    @property
    def now_ms(self) -> float:
        return self.now.to_millis()

    def event_after(self, delay_ms: float, event_type: str, **context: Any) -> Event:
        """Build an event for this entity ``delay_ms`` from now. Not scheduled."""
        return Event(self.now.after_millis(delay_ms), event_type, self, context=context)

    @abstractmethod
    def handle_event(self, event: Event) -> list[Event] | Event | None:
        """React to ``event`` and return follow-up events, if any."""
