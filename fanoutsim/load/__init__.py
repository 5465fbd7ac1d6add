"""Load generation: arrival processes, work amounts and processing latency."""

from fanoutsim.load.arrival import (
    ArrivalTimeProvider,
    ConstantArrivalTimeProvider,
    NormalArrivalTimeProvider,
    PoissonArrivalTimeProvider,
    arrival_provider,
)
from fanoutsim.load.latency import (
    ConstantLatency,
    ConstantWork,
    NormalJitterLatency,
    ProportionalLatency,
    normal_random,
)

__all__ = [
    "ArrivalTimeProvider",
    "ConstantArrivalTimeProvider",
    "ConstantLatency",
    "ConstantWork",
    "NormalArrivalTimeProvider",
    "NormalJitterLatency",
    "PoissonArrivalTimeProvider",
    "ProportionalLatency",
    "arrival_provider",
    "normal_random",
]
