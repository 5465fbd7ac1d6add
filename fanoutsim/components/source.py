"""Per-client slot: load vector, link stats and load-balancer state.

A Source does not act on its own; the emitter picks one at random for each
new request and the load balancer reads and updates its state. Vectors are
indexed by server slot and are reconciled with ``resize()`` whenever the
number of servers changes.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable
from dataclasses import dataclass, field

from fanoutsim.components.link_stats import LinkSnapshot, LinkStats
from fanoutsim.utils.ids import get_id

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceSnapshot:
    """Read-only view of a source for display."""

    index: int
    load: tuple[int, ...]
    links: tuple[LinkSnapshot, ...]
    aperture: tuple[int, ...]


@dataclass
class Source:
    """One simulated client.

    Attributes:
        index: Stable slot index.
        load: Outstanding requests per server, as counted by this source.
        stats: LinkStats per server.
        active: False once the slot has been retired.
        round_robin_cursor: Next round-robin position; None until first use.
        aperture: Servers currently in this source's aperture, in order.
        server_pool: Shuffled permutation of all server indices backing the aperture.
        aperture_offset: Position in ``server_pool`` where the next rotation starts.
        next_refresh_ms: When the aperture is next refreshed; None until built.
        aperture_ratio: Current sizing ratio used by the adaptive variant.
        uid: Unique identity of this slot occupant.
    """

    index: int
    stats_factory: Callable[[int], LinkStats] = field(repr=False)
    load: list[int] = field(default_factory=list)
    stats: list[LinkStats] = field(default_factory=list, repr=False)
    active: bool = True
    round_robin_cursor: int | None = None
    aperture: list[int] = field(default_factory=list)
    server_pool: list[int] = field(default_factory=list)
    aperture_offset: int = 0
    next_refresh_ms: float | None = None
    aperture_ratio: float | None = None
    uid: str = field(default_factory=lambda: get_id("S"))

    @property
    def server_count(self) -> int:
        return len(self.load)

    def resize(self, server_count: int) -> None:
        """Grow or shrink every per-server vector to ``server_count`` entries.

        New servers get a zero load, fresh LinkStats and are shuffled into
        the aperture pool. Removed servers are filtered out of the aperture
        and the pool.
        """
        current = len(self.load)
        if server_count > current:
            for i in range(current, server_count):
                self.load.append(0)
                self.stats.append(self.stats_factory(i))
                self.server_pool.append(i)
            random.shuffle(self.server_pool)
        elif server_count < current:
            del self.load[server_count:]
            del self.stats[server_count:]
            self.aperture = [i for i in self.aperture if i < server_count]
            self.server_pool = [i for i in self.server_pool if i < server_count]
            if self.server_pool:
                self.aperture_offset %= len(self.server_pool)
            else:
                self.aperture_offset = 0
        if server_count != current:
            logger.debug("[source-%d] Resized %d -> %d servers", self.index, current, server_count)

    def record_send(self, server_index: int) -> None:
        self.load[server_index] += 1
        self.stats[server_index].on_send()

    def record_complete(self, server_index: int, original_send_ms: float) -> float | None:
        """Account a completed request; returns its RTT, or None if the server is gone."""
        if server_index >= len(self.load):
            return None
        self.load[server_index] = max(0, self.load[server_index] - 1)
        return self.stats[server_index].on_complete(original_send_ms)

    def snapshot(self) -> SourceSnapshot:
        return SourceSnapshot(
            index=self.index,
            load=tuple(self.load),
            links=tuple(s.snapshot() for s in self.stats),
            aperture=tuple(self.aperture),
        )
