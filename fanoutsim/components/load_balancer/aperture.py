"""Aperture load balancing: each source talks to a bounded subset of servers.

Instead of spreading every source over every server, an aperture balancer
restricts each source to a small, periodically refreshed window of servers
drawn from a per-source shuffled pool. Within the window the server with
the lowest ``LinkStats.predictive_load()`` wins.

Sizing::

    size = ceil(ratio * server_count / source_count)
    size = clamp(size, min_connections, max_connections)
    size = min(size, server_count)

so that, across all sources, every server is covered by roughly ``ratio``
sources.

Refresh happens at selection time once the source's refresh deadline has
passed. Deadlines are jittered per source and never closer together than
``min_refresh_period_ms``. A refresh replaces one member of the window with
the next pool entry not already in it. The variants differ only in
how the window is sized and which member is replaced:

- Aperture: fixed ``min_ratio``; the oldest member is rotated out.
- AdaptiveAperture: the ratio moves between ``min_ratio`` and ``max_ratio``
  with the window's saturation; the oldest member is rotated out.
- PredictiveAperture: fixed ``min_ratio``; the member with the highest
  predictive load is replaced.
"""

from __future__ import annotations

import logging
import math
import random
from typing import TYPE_CHECKING

from fanoutsim.components.load_balancer.strategies import LoadBalancingStrategy, Topology

if TYPE_CHECKING:
    from fanoutsim.components.source import Source
    from fanoutsim.config import ApertureConfig

logger = logging.getLogger(__name__)

_RATIO_STEPS = 4


class Aperture(LoadBalancingStrategy):
    """Least-predictive-load selection within a rotating server window.

    Args:
        config: Aperture sizing and refresh settings.
        time_scale: Simulation speed multiplier applied to refresh periods.
    """

    name = "aperture"

    def __init__(self, config: ApertureConfig, *, time_scale: float = 1.0):
        self.config = config
        self.time_scale = time_scale

    # --- Sizing ---

    def ratio(self, source: Source) -> float:
        return self.config.min_ratio

    def aperture_size(self, ratio: float, topology: Topology) -> int:
        ideal = math.ceil(ratio * topology.server_count / max(1, topology.source_count))
        size = min(max(ideal, self.config.min_connections), self.config.max_connections)
        return max(1, min(size, topology.server_count))

    # --- Refresh ---

    def refresh_interval_ms(self) -> float:
        jittered = self.config.refresh_period_ms * random.uniform(0.5, 1.5)
        return max(self.config.min_refresh_period_ms, jittered) / self.time_scale

    def _next_from_pool(self, source: Source, exclude: set[int]) -> int | None:
        pool = source.server_pool
        for step in range(len(pool)):
            position = (source.aperture_offset + step) % len(pool)
            candidate = pool[position]
            if candidate not in exclude:
                source.aperture_offset = (position + 1) % len(pool)
                return candidate
        return None

    def evict_candidate(self, source: Source) -> int:
        """Position in ``source.aperture`` of the member to replace."""
        return 0

    def _fill(self, source: Source, size: int) -> None:
        while len(source.aperture) > size:
            source.aperture.pop(self.evict_candidate(source))
        members = set(source.aperture)
        while len(source.aperture) < size:
            candidate = self._next_from_pool(source, members)
            if candidate is None:
                break
            source.aperture.append(candidate)
            members.add(candidate)

    def refresh(self, source: Source, topology: Topology) -> None:
        """Replace one member of the window and set the next deadline."""
        size = self.aperture_size(self.ratio(source), topology)
        self._fill(source, size)

        if source.aperture and len(source.aperture) < topology.server_count:
            evicted = source.aperture.pop(self.evict_candidate(source))
            replacement = self._next_from_pool(source, set(source.aperture) | {evicted})
            source.aperture.append(replacement if replacement is not None else evicted)
            logger.debug(
                "[source-%d] Aperture refresh: %d -> %s (%s)",
                source.index,
                evicted,
                replacement,
                source.aperture,
            )

        source.next_refresh_ms = topology.now_ms + self.refresh_interval_ms()

    def reconcile(self, source: Source, topology: Topology) -> None:
        """Bring the window in line with the current topology and refresh if due."""
        if any(i >= topology.server_count for i in source.aperture):
            source.aperture = [i for i in source.aperture if i < topology.server_count]

        if source.next_refresh_ms is None:
            self._fill(source, self.aperture_size(self.ratio(source), topology))
            source.next_refresh_ms = topology.now_ms + self.refresh_interval_ms()
        elif topology.now_ms >= source.next_refresh_ms:
            self.refresh(source, topology)
        else:
            self._fill(source, self.aperture_size(self.ratio(source), topology))

    # --- Selection ---

    def choose(self, source: Source, topology: Topology) -> int:
        self.reconcile(source, topology)
        if not source.aperture:
            return random.randrange(topology.server_count)

        best: list[int] = []
        best_load = math.inf
        for server_index in source.aperture:
            load = source.stats[server_index].predictive_load()
            if load < best_load:
                best_load = load
                best = [server_index]
            elif load == best_load:
                best.append(server_index)
        return random.choice(best)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.config!r})"


class AdaptiveAperture(Aperture):
    """Aperture whose window widens when saturated and narrows when idle.

    At each refresh the ratio moves one step towards ``max_ratio`` if every
    member has outstanding work, or towards ``min_ratio`` if none has.
    """

    name = "aperture-adaptive"

    def ratio(self, source: Source) -> float:
        if source.aperture_ratio is None:
            source.aperture_ratio = self.config.min_ratio
        return source.aperture_ratio

    def refresh(self, source: Source, topology: Topology) -> None:
        ratio = self.ratio(source)
        step = (self.config.max_ratio - self.config.min_ratio) / _RATIO_STEPS
        members = [i for i in source.aperture if i < len(source.load)]
        if members and all(source.load[i] > 0 for i in members):
            ratio = min(self.config.max_ratio, ratio + step)
        elif members and all(source.load[i] == 0 for i in members):
            ratio = max(self.config.min_ratio, ratio - step)
        if ratio != source.aperture_ratio:
            logger.debug("[source-%d] Aperture ratio %.2f -> %.2f", source.index, source.aperture_ratio, ratio)
        source.aperture_ratio = ratio
        super().refresh(source, topology)


class PredictiveAperture(Aperture):
    """Aperture that replaces its most loaded member on refresh."""

    name = "aperture-predictive"

    def evict_candidate(self, source: Source) -> int:
        worst_position = 0
        worst_load = -math.inf
        for position, server_index in enumerate(source.aperture):
            load = source.stats[server_index].predictive_load(decay=False)
            if load > worst_load:
                worst_load = load
                worst_position = position
        return worst_position
