"""Request emission at the configured global rate.

The emitter is a self-rescheduling entity: each firing asks its host to
emit one request and schedules the next firing one inter-arrival interval
later. Stopping cancels the pending firing; starting again resumes from the
current time.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Protocol

from fanoutsim.core.entity import Entity
from fanoutsim.core.event import Event
from fanoutsim.load.arrival import ArrivalTimeProvider

logger = logging.getLogger(__name__)

_EMIT = "emitter.emit"


class EmitterHost(Protocol):
    def emit_request(self) -> None: ...


class Emitter(Entity):
    """Drives request emission.

    Args:
        host: Receives one ``emit_request()`` call per firing.
        provider: Inter-arrival distribution.
        rate: Returns the current global requests per second.
        time_scale: Returns the current speed multiplier.
    """

    def __init__(
        self,
        host: EmitterHost,
        provider: ArrivalTimeProvider,
        rate: Callable[[], float],
        time_scale: Callable[[], float],
    ):
        super().__init__("emitter")
        self.provider = provider
        self._host = host
        self._rate = rate
        self._time_scale = time_scale
        self._next: Event | None = None
        self.emitted = 0

    @property
    def running(self) -> bool:
        return self._next is not None

    def _schedule_next(self) -> Event:
        interval_ms = self.provider.next_interval_ms(self._rate()) / self._time_scale()
        self._next = self.event_after(interval_ms, _EMIT)
        return self._next

    def start(self) -> Event | None:
        """Return the first emission event, or None if already running."""
        if self._next is not None:
            return None
        logger.info("[%s] Emission started at %.1f rps", self.name, self._rate())
        return self._schedule_next()

    def stop(self) -> None:
        if self._next is not None:
            self._next.cancel()
            self._next = None
            logger.info("[%s] Emission stopped after %d requests", self.name, self.emitted)

    def handle_event(self, event: Event) -> list[Event]:
        if event is not self._next:
            return []
        self._host.emit_request()
        self.emitted += 1
        return [self._schedule_next()]
