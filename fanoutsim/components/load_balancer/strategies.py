"""Server selection strategies.

Every strategy implements ``select(source, topology)`` and returns a server
index in ``[0, topology.server_count)``. Strategies hold no per-source state
themselves; whatever they remember between calls (round-robin cursor,
aperture subset) lives on the Source, so that topology changes can be
reconciled in one place.

Available strategies:
- Random: uniform choice.
- RoundRobin: per-source cursor starting at a random offset.
- LeastLoaded: lowest outstanding count in the source's load vector.
- Aperture variants: see ``aperture.py``.
"""

from __future__ import annotations

import logging
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fanoutsim.components.source import Source

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Topology:
    """Topology facts a strategy may consult when selecting.

    Attributes:
        server_count: Number of live server slots.
        source_count: Number of live source slots.
        now_ms: Current simulation time.
    """

    server_count: int
    source_count: int
    now_ms: float


class LoadBalancingStrategy(ABC):
    """Base class for server selection."""

    name: str = ""

    @abstractmethod
    def choose(self, source: Source, topology: Topology) -> int:
        """Pick a server index; callers go through select()."""

    def select(self, source: Source, topology: Topology) -> int:
        """Pick a server index for the next request from ``source``.

        Raises:
            ValueError: If there are no servers to choose from.
        """
        if topology.server_count <= 0:
            raise ValueError("Cannot select a server from an empty topology")
        index = self.choose(source, topology)
        return min(max(0, index), topology.server_count - 1)

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class Random(LoadBalancingStrategy):
    """Uniform random selection."""

    name = "random"

    def choose(self, source: Source, topology: Topology) -> int:
        return random.randrange(topology.server_count)


class RoundRobin(LoadBalancingStrategy):
    """Cycle through servers from a random per-source starting point.

    The cursor advances on every call and is reduced modulo the current
    server count, so it stays valid when servers are added or removed.
    """

    name = "roundrobin"

    def choose(self, source: Source, topology: Topology) -> int:
        if source.round_robin_cursor is None:
            source.round_robin_cursor = random.randrange(topology.server_count)
        index = source.round_robin_cursor % topology.server_count
        source.round_robin_cursor += 1
        return index


class LeastLoaded(LoadBalancingStrategy):
    """Server with the fewest outstanding requests from this source.

    Ties are broken uniformly at random among all minimisers.
    """

    name = "leastloaded"

    def choose(self, source: Source, topology: Topology) -> int:
        loads = source.load[: topology.server_count]
        if not loads:
            return random.randrange(topology.server_count)
        min_load = min(loads)
        candidates = [i for i, load in enumerate(loads) if load == min_load]
        return random.choice(candidates)
