"""Inter-arrival times for request emission.

The emitter asks a provider for the gap until the next request. The
providers differ only in how much "rate mass" must accumulate before the
next arrival:

- ConstantArrivalTimeProvider: exactly one unit (perfectly even spacing)
- PoissonArrivalTimeProvider: an exponential draw with mean one
  (memoryless arrivals)
- NormalArrivalTimeProvider: a clamped Gaussian on [0, 1] with mean 0.5,
  so requests arrive tightly spaced at about twice the nominal rate.

The rate is requests per second and intervals are returned in milliseconds.
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod

import numpy as np

from fanoutsim.load.latency import normal_random

logger = logging.getLogger(__name__)


class ArrivalTimeProvider(ABC):
    """Computes the interval until the next arrival for a given rate."""

    def __init__(self, seed: int | None = None):
        self._rng = np.random.default_rng(seed)

    @abstractmethod
    def _get_target_integral_value(self) -> float:
        """Return the rate mass that must accumulate before the next arrival."""

    def next_interval_ms(self, rate_per_s: float) -> float:
        """Milliseconds until the next arrival at ``rate_per_s``.

        Raises:
            RuntimeError: If the rate is zero or negative.
        """
        if rate_per_s <= 0:
            raise RuntimeError("Cannot compute arrival with zero or negative rate")
        interval_ms = 1000.0 * self._get_target_integral_value() / rate_per_s
        logger.debug("Next arrival in %.3fms at %.2f rps", interval_ms, rate_per_s)
        return interval_ms


class ConstantArrivalTimeProvider(ArrivalTimeProvider):
    """Deterministic arrivals: at 5 rps, one request every 200ms."""

    def _get_target_integral_value(self) -> float:
        return 1.0


class PoissonArrivalTimeProvider(ArrivalTimeProvider):
    """Exponentially distributed inter-arrival times."""

    def _get_target_integral_value(self) -> float:
        # Standard exponential with mean 1: -ln(U), U uniform on (0, 1]
        return -math.log(1.0 - self._rng.random())


class NormalArrivalTimeProvider(ArrivalTimeProvider):
    """Inter-arrival times of ``1000 / rps * normal_random()`` milliseconds.

    Draws come from the ``random`` module, so ``random.seed`` (not the
    provider seed) makes them reproducible.
    """

    def _get_target_integral_value(self) -> float:
        return normal_random()


_PROVIDERS: dict[str, type[ArrivalTimeProvider]] = {
    "constant": ConstantArrivalTimeProvider,
    "normal": NormalArrivalTimeProvider,
    "poisson": PoissonArrivalTimeProvider,
}


def arrival_provider(name: str, seed: int | None = None) -> ArrivalTimeProvider:
    """Build the provider registered under ``name`` (``constant``, ``normal`` or ``poisson``)."""
    try:
        provider_cls = _PROVIDERS[name]
    except KeyError:
        raise ValueError(
            f"Unknown arrival distribution {name!r}; expected one of {sorted(_PROVIDERS)}"
        ) from None
    return provider_cls(seed=seed)
