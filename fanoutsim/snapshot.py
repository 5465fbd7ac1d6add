"""Read-only views of simulation state for display layers.

A SimulationSnapshot is a frozen copy: holding one never keeps the
simulation's own objects alive, and taking one never disturbs the
predictive estimators (link scores are computed without the idle decay).
"""

from __future__ import annotations

from dataclasses import dataclass

import pandas as pd

from fanoutsim.components.server import ServerSnapshot
from fanoutsim.components.source import SourceSnapshot
from fanoutsim.sketching.latency_series import LatencySample


@dataclass(frozen=True)
class SimulationSnapshot:
    """State of the routing model at one instant.

    Attributes:
        time_ms: Simulation time of the snapshot.
        policy: Active load balancing policy name.
        servers: Per-server queue and GC state.
        sources: Per-source load vectors and link statistics.
        histogram: Aggregated latency histogram buckets up to the highest
            nonzero bucket.
        bucket_size_ms: Width of one histogram bucket.
        p99_ms: 99th percentile latency from the histogram.
        latency_series: Recent completed-request latencies with smoothing.
        active_requests: Requests currently on a network leg.
        completed_requests: Requests that finished a full round trip.
    """

    time_ms: float
    policy: str
    servers: tuple[ServerSnapshot, ...]
    sources: tuple[SourceSnapshot, ...]
    histogram: tuple[int, ...]
    bucket_size_ms: float
    p99_ms: float
    latency_series: tuple[LatencySample, ...]
    active_requests: int
    completed_requests: int

    @property
    def queue_lengths(self) -> tuple[int, ...]:
        return tuple(s.queue_length for s in self.servers)

    def links_dataframe(self) -> pd.DataFrame:
        """One row per (source, server) link."""
        rows = [
            {
                "source": source.index,
                "server": link.server_index,
                "load": source.load[link.server_index],
                "outstanding": link.outstanding,
                "median_ms": link.median_ms,
                "predictive_load": link.predictive_load,
                "in_aperture": link.server_index in source.aperture,
            }
            for source in self.sources
            for link in source.links
        ]
        return pd.DataFrame(
            rows,
            columns=["source", "server", "load", "outstanding", "median_ms", "predictive_load", "in_aperture"],
        )

    def histogram_dataframe(self) -> pd.DataFrame:
        """Histogram buckets with their lower bound in milliseconds."""
        return pd.DataFrame(
            {
                "lower_ms": [i * self.bucket_size_ms for i in range(len(self.histogram))],
                "count": list(self.histogram),
            }
        )
