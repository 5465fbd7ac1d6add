"""Periodic garbage-collection pauses for servers.

A GarbageCollector is attached to one server and fires on a fixed
interval. Each firing asks its strategy for a pause and hands it to
``Server.gc()``. The server only honours the pause at its next processing
step, so a collection on an idle server is free, while a busy server
charges the pause to every request in its queue.

Three strategies trade pause length against frequency:

- StopTheWorld: rare, long pauses that grow with heap pressure.
- ConcurrentGC: frequent, short pauses.
- GenerationalGC: short minor pauses, with a long major pause whenever
  heap pressure crosses a threshold.
"""

from __future__ import annotations

import logging
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

from fanoutsim.core.entity import Entity
from fanoutsim.core.event import Event

if TYPE_CHECKING:
    from fanoutsim.components.server import Server

logger = logging.getLogger(__name__)

_COLLECT = "gc.collect"


def _jittered(pause_ms: float, spread: float) -> float:
    """``pause_ms`` scaled by a uniform factor in ``[1 - spread, 1 + spread]``."""
    return pause_ms * random.uniform(1.0 - spread, 1.0 + spread)


@dataclass(frozen=True)
class Pause:
    duration_ms: float
    major: bool = False


class GCStrategy(ABC):
    """Decides how long each collection stalls the server and how often it runs."""

    interval_ms: float

    @abstractmethod
    def pause(self, heap_pressure: float) -> Pause:
        """Pause for one collection at ``heap_pressure`` (0.0 to 1.0)."""

    @property
    def name(self) -> str:
        return type(self).__name__


@dataclass(frozen=True)
class StopTheWorld(GCStrategy):
    """Full-heap collection. Pause is ``base * (1 + multiplier * pressure)`` with ±20% jitter."""

    base_pause_ms: float = 500.0
    interval_ms: float = 10_000.0
    pressure_multiplier: float = 3.0

    def pause(self, heap_pressure: float) -> Pause:
        scaled = self.base_pause_ms * (1.0 + self.pressure_multiplier * heap_pressure)
        return Pause(_jittered(scaled, 0.2), major=True)


@dataclass(frozen=True)
class ConcurrentGC(GCStrategy):
    """Mostly concurrent collector; only a short remark phase stops the server."""

    pause_ms: float = 20.0
    interval_ms: float = 2_000.0

    def pause(self, heap_pressure: float) -> Pause:
        return Pause(_jittered(self.pause_ms, 0.1))


@dataclass(frozen=True)
class GenerationalGC(GCStrategy):
    """Minor collections every interval; major ones at or above ``major_threshold``."""

    minor_pause_ms: float = 10.0
    major_pause_ms: float = 300.0
    interval_ms: float = 1_000.0
    major_threshold: float = 0.75

    def is_major(self, heap_pressure: float) -> bool:
        return heap_pressure >= self.major_threshold

    def pause(self, heap_pressure: float) -> Pause:
        if self.is_major(heap_pressure):
            return Pause(_jittered(self.major_pause_ms, 0.2), major=True)
        return Pause(_jittered(self.minor_pause_ms, 0.1))


@dataclass(frozen=True)
class GCStats:
    """Totals for one collector."""

    strategy_name: str
    collections: int = 0
    major_collections: int = 0
    total_pause_ms: float = 0.0
    max_pause_ms: float = 0.0

    @property
    def minor_collections(self) -> int:
        return self.collections - self.major_collections

    @property
    def avg_pause_ms(self) -> float:
        return self.total_pause_ms / self.collections if self.collections else 0.0


class GarbageCollector(Entity):
    """Injects a pause into ``server`` every ``strategy.interval_ms / time_scale``.

    Heap pressure is fixed when ``heap_pressure`` is given. Otherwise it
    starts at 0.3 and climbs linearly to 0.9 over the first 50 collections,
    which eventually tips a GenerationalGC into major cycles.

    Collections stop silently once the server has been removed.
    """

    def __init__(
        self,
        server: Server,
        *,
        strategy: GCStrategy | None = None,
        heap_pressure: float | None = None,
        time_scale: float = 1.0,
    ) -> None:
        super().__init__(f"gc-{server.index}")
        self.server = server
        self.strategy = strategy if strategy is not None else GenerationalGC()
        self.time_scale = time_scale
        self._fixed_pressure = heap_pressure
        self._next: Event | None = None
        self._stats = GCStats(self.strategy.name)

    @property
    def collection_count(self) -> int:
        return self._stats.collections

    @property
    def stats(self) -> GCStats:
        return self._stats

    def heap_pressure(self) -> float:
        if self._fixed_pressure is not None:
            return self._fixed_pressure
        return 0.3 + 0.6 * min(1.0, self._stats.collections / 50)

    def collect(self) -> float:
        """Run one collection now and return the pause handed to the server."""
        pressure = self.heap_pressure()
        pause = self.strategy.pause(pressure)

        s = self._stats
        self._stats = GCStats(
            strategy_name=s.strategy_name,
            collections=s.collections + 1,
            major_collections=s.major_collections + int(pause.major),
            total_pause_ms=s.total_pause_ms + pause.duration_ms,
            max_pause_ms=max(s.max_pause_ms, pause.duration_ms),
        )
        logger.debug(
            "[%s] %s collection #%d at pressure %.2f: %.1fms",
            self.name,
            "major" if pause.major else "minor",
            self._stats.collections,
            pressure,
            pause.duration_ms,
        )
        self.server.gc(pause.duration_ms)
        return pause.duration_ms

    def prime(self) -> Event:
        """First collection event, one interval from now. The caller schedules it."""
        self._next = self.event_after(self.strategy.interval_ms / self.time_scale, _COLLECT)
        return self._next

    def stop(self) -> None:
        if self._next is not None:
            self._next.cancel()
            self._next = None

    def handle_event(self, event: Event) -> list[Event]:
        if event is not self._next or not self.server.active:
            return []
        self.collect()
        return [self.prime()]

    def __repr__(self) -> str:
        return f"GarbageCollector({self.name!r}, {self.strategy.name}, collections={self.collection_count})"
