"""Simulation configuration.

Configuration is a tree of frozen dataclasses validated on construction.
A running Simulation is reconfigured by passing it a new SimulationConfig
(usually built with ``config.replace(...)``); topology, policy and rate
changes take effect immediately.

Example:
    config = SimulationConfig(
        source_count=4,
        server_count=10,
        global_rps=200,
        load_balancing="aperture",
        aperture=ApertureConfig(min_connections=2),
    )
    sim = Simulation(config)
    sim.reconfigure(config.replace(server_count=8))
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from fanoutsim.components.load_balancer.policy import Policy
from fanoutsim.load.arrival import arrival_provider
from fanoutsim.load.latency import ConstantWork, NormalJitterLatency

if TYPE_CHECKING:
    from fanoutsim.components.garbage_collector import GCStrategy


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise ValueError(message)


@dataclass(frozen=True)
class ApertureConfig:
    """Aperture sizing and refresh settings.

    Attributes:
        min_connections: Lower bound on the window size.
        max_connections: Upper bound on the window size.
        min_ratio: Target number of sources covering each server.
        max_ratio: Ceiling for the adaptive variant's ratio.
        min_refresh_period_ms: Refresh deadlines are never closer than this.
        refresh_period_ms: Mean time between refreshes before jitter.
    """

    min_connections: int = 3
    max_connections: int = 20
    min_ratio: float = 1.0
    max_ratio: float = 2.0
    min_refresh_period_ms: float = 1000.0
    refresh_period_ms: float = 3000.0

    def __post_init__(self) -> None:
        _require(self.min_connections >= 1, f"min_connections must be >= 1, got {self.min_connections}")
        _require(
            self.max_connections >= self.min_connections,
            f"max_connections ({self.max_connections}) must be >= min_connections ({self.min_connections})",
        )
        _require(self.min_ratio > 0, f"min_ratio must be positive, got {self.min_ratio}")
        _require(
            self.max_ratio >= self.min_ratio,
            f"max_ratio ({self.max_ratio}) must be >= min_ratio ({self.min_ratio})",
        )
        _require(self.min_refresh_period_ms > 0, "min_refresh_period_ms must be positive")
        _require(self.refresh_period_ms > 0, "refresh_period_ms must be positive")


@dataclass(frozen=True)
class PredictiveConfig:
    """Predictive load estimator settings.

    Attributes:
        inactivity_period_ms: Idle time after which a link's median decays.
        median_size: Capacity of each link's RTT median estimator.
    """

    inactivity_period_ms: float = 1000.0
    median_size: int = 8

    def __post_init__(self) -> None:
        _require(self.inactivity_period_ms >= 0, "inactivity_period_ms must be non-negative")
        _require(self.median_size >= 1, f"median_size must be >= 1, got {self.median_size}")


@dataclass(frozen=True)
class HistogramConfig:
    """Global latency histogram settings.

    Attributes:
        bucket_size_ms: Width of one histogram bucket.
        max_duration_ms: Samples at or above this are dropped.
        window_count: Number of periods kept in the ring.
        window_ms: Length of one period.
    """

    bucket_size_ms: float = 10.0
    max_duration_ms: float = 60_000.0
    window_count: int = 20
    window_ms: float = 30_000.0 / 30

    def __post_init__(self) -> None:
        _require(self.bucket_size_ms > 0, "bucket_size_ms must be positive")
        _require(
            self.max_duration_ms >= self.bucket_size_ms,
            "max_duration_ms must cover at least one bucket",
        )
        _require(self.window_count >= 1, "window_count must be >= 1")
        _require(self.window_ms > 0, "window_ms must be positive")


@dataclass(frozen=True)
class SimulationConfig:
    """Everything a Simulation needs to run.

    Attributes:
        source_count: Number of simulated clients.
        global_rps: Requests per second emitted across all sources.
        work_fn: Returns the work amount for each new request.
        server_count: Number of simulated servers.
        latency_fn: Maps a work amount to processing milliseconds.
        network_delay_ms: One-way network delay.
        load_balancing: Policy name (random, roundrobin, leastloaded, aperture*).
        aperture: Aperture tuning.
        predictive: Predictive load estimator tuning.
        histogram: Global latency histogram layout.
        latency_window_ms: Retention of the rolling latency series.
        time_scale: Speed multiplier; every simulated duration is divided by it.
        emit_paused: Stop emitting new requests while True.
        arrival: Inter-arrival distribution, ``poisson``, ``constant`` or ``normal``.
        gc_strategy: Factory for a per-server GC strategy; None disables
            periodic GC pauses.
        seed: Seed for the random number generators; None for fresh entropy.
    """

    source_count: int = 1
    global_rps: float = 5.0
    work_fn: Callable[[], float] = field(default_factory=ConstantWork)
    server_count: int = 1
    latency_fn: Callable[[float], float] = field(default_factory=NormalJitterLatency)
    network_delay_ms: float = 750.0
    load_balancing: str = "random"
    aperture: ApertureConfig = field(default_factory=ApertureConfig)
    predictive: PredictiveConfig = field(default_factory=PredictiveConfig)
    histogram: HistogramConfig = field(default_factory=HistogramConfig)
    latency_window_ms: float = 30_000.0
    time_scale: float = 1.0
    emit_paused: bool = False
    arrival: str = "poisson"
    gc_strategy: Callable[[], GCStrategy] | None = None
    seed: int | None = None
    policy: Policy = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        _require(self.source_count >= 1, f"source_count must be >= 1, got {self.source_count}")
        _require(self.server_count >= 1, f"server_count must be >= 1, got {self.server_count}")
        _require(self.global_rps > 0, f"global_rps must be positive, got {self.global_rps}")
        _require(self.network_delay_ms >= 0, "network_delay_ms must be non-negative")
        _require(self.latency_window_ms > 0, "latency_window_ms must be positive")
        _require(self.time_scale > 0, f"time_scale must be positive, got {self.time_scale}")
        arrival_provider(self.arrival)
        # Parsed once; raises ValueError for unknown names.
        object.__setattr__(self, "policy", Policy.parse(self.load_balancing))

    def replace(self, **changes: Any) -> SimulationConfig:
        """Return a copy with ``changes`` applied (and validated)."""
        return dataclasses.replace(self, **changes)
