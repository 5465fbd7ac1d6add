"""Policy names and the factory that turns them into strategies.

The policy is parsed once, when a configuration is applied, into a Policy
member; routing then goes through the strategy object without any string
comparison on the hot path.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

from fanoutsim.components.load_balancer.aperture import AdaptiveAperture, Aperture, PredictiveAperture
from fanoutsim.components.load_balancer.strategies import (
    LeastLoaded,
    LoadBalancingStrategy,
    Random,
    RoundRobin,
)

if TYPE_CHECKING:
    from fanoutsim.config import ApertureConfig

logger = logging.getLogger(__name__)


class Policy(Enum):
    RANDOM = "random"
    ROUND_ROBIN = "roundrobin"
    LEAST_LOADED = "leastloaded"
    APERTURE = "aperture"
    APERTURE_ADAPTIVE = "aperture-adaptive"
    APERTURE_PREDICTIVE = "aperture-predictive"

    @property
    def is_aperture(self) -> bool:
        return self.value.startswith("aperture")

    @classmethod
    def parse(cls, name: str) -> Policy:
        """Resolve a policy name.

        Hyphens and underscores are ignored for the non-aperture policies
        (``round-robin`` == ``roundrobin``). Unrecognised ``aperture*``
        variants fall back to plain aperture.

        Raises:
            ValueError: If the name matches no policy.
        """
        normalized = name.strip().lower()
        for policy in cls:
            if policy.value == normalized:
                return policy

        compact = normalized.replace("-", "").replace("_", "")
        for policy in (cls.RANDOM, cls.ROUND_ROBIN, cls.LEAST_LOADED):
            if policy.value == compact:
                return policy

        if normalized.startswith("aperture"):
            logger.warning("Unknown aperture variant %r; using %r", name, cls.APERTURE.value)
            return cls.APERTURE

        raise ValueError(
            f"Unknown load balancing policy {name!r}; expected one of "
            f"{[p.value for p in cls]} or another 'aperture*' variant"
        )


def create_strategy(
    policy: Policy,
    aperture: ApertureConfig,
    *,
    time_scale: float = 1.0,
) -> LoadBalancingStrategy:
    """Instantiate the strategy implementing ``policy``."""
    if policy is Policy.RANDOM:
        return Random()
    if policy is Policy.ROUND_ROBIN:
        return RoundRobin()
    if policy is Policy.LEAST_LOADED:
        return LeastLoaded()
    if policy is Policy.APERTURE_ADAPTIVE:
        return AdaptiveAperture(aperture, time_scale=time_scale)
    if policy is Policy.APERTURE_PREDICTIVE:
        return PredictiveAperture(aperture, time_scale=time_scale)
    return Aperture(aperture, time_scale=time_scale)
