"""Load balancing policies for routing requests from sources to servers.

Example:
    from fanoutsim.components.load_balancer import Policy, Topology, create_strategy

    strategy = create_strategy(Policy.parse("leastloaded"), config.aperture)
    index = strategy.select(source, Topology(server_count=4, source_count=2, now_ms=0.0))
"""

from fanoutsim.components.load_balancer.aperture import (
    AdaptiveAperture,
    Aperture,
    PredictiveAperture,
)
from fanoutsim.components.load_balancer.policy import Policy, create_strategy
from fanoutsim.components.load_balancer.strategies import (
    LeastLoaded,
    LoadBalancingStrategy,
    Random,
    RoundRobin,
    Topology,
)

__all__ = [
    "AdaptiveAperture",
    "Aperture",
    "LeastLoaded",
    "LoadBalancingStrategy",
    "Policy",
    "PredictiveAperture",
    "Random",
    "RoundRobin",
    "Topology",
    "create_strategy",
]
