"""Per-(source, server) link statistics and the predictive load score.

Every source keeps one LinkStats per server. It tracks how many requests
are outstanding on the link, a streaming median of completed round-trip
times, and the integral of the outstanding count over time
("instantaneous duration"). From these it derives ``predictive_load()``,
the score the aperture balancers rank servers by.

The score is ``weight * (outstanding + 1)`` where ``weight`` is the expected
cost of one request on the link:

- No history yet: 0 for the very first request, otherwise a large startup
  penalty plus the outstanding count, so unproven links are avoided but
  still ordered by load.
- Idle for longer than the inactivity period: the median is decayed by
  inserting an artificial sample at 90% of the current estimate, so a link
  that was slow in the past is not shunned forever once it recovers.
- Otherwise: the median RTT, unless the busy time accumulated by requests
  currently in flight already exceeds what the median predicts for them,
  in which case the observed per-request rate is used instead.

``predictive_load()`` therefore mutates state when it applies the decay.
Selection logic relies on that decay happening on read; snapshot code that
must not disturb the estimator passes ``decay=False``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

from fanoutsim.sketching.sliding_median import SlidingMedian

logger = logging.getLogger(__name__)

STARTUP_PENALTY = 100_000 / 2 - 1
"""Weight per request for a link that has never completed a request."""

DECAY_FACTOR = 0.9
"""Multiplier applied to the median when an idle link is decayed."""

DEFAULT_MEDIAN_SIZE = 8


@dataclass(frozen=True)
class LinkSnapshot:
    """Read-only view of one link for display.

    Attributes:
        server_index: Server end of the link.
        predictive_load: Score as ranked by the aperture balancers.
        median_ms: Streaming median of completed RTTs.
        outstanding: Requests sent and not yet completed.
    """

    server_index: int
    predictive_load: float
    median_ms: float
    outstanding: int


class LinkStats:
    """Outstanding-count, median-RTT and busy-time tracker for one link.

    Args:
        server_index: Server this link points at.
        clock: Returns the current simulation time in milliseconds.
        inactivity_period_ms: Idle time after which the median decays.
        median_size: Capacity of the RTT median estimator.
    """

    def __init__(
        self,
        server_index: int,
        clock: Callable[[], float],
        *,
        inactivity_period_ms: float = 1000.0,
        median_size: int = DEFAULT_MEDIAN_SIZE,
    ):
        self.server_index = server_index
        self._clock = clock
        self.inactivity_period_ms = inactivity_period_ms

        now = clock()
        self._outstanding = 0
        self._instantaneous_duration = 0.0
        self._last_send_ms = now
        self._last_event_ms = now
        self._median = SlidingMedian(median_size)

    @property
    def outstanding(self) -> int:
        return self._outstanding

    @property
    def median_buffer(self) -> tuple[float, ...]:
        return self._median.buffer

    @property
    def last_send_ms(self) -> float:
        return self._last_send_ms

    @property
    def last_event_ms(self) -> float:
        return self._last_event_ms

    def median(self) -> float:
        return self._median.estimate()

    def resize_median(self, size: int) -> None:
        self._median.resize(size)

    def instantaneous_duration(self) -> float:
        """Accumulated busy time including the span since the last event."""
        elapsed = self._clock() - self._last_event_ms
        return self._instantaneous_duration + elapsed * self._outstanding

    def _accumulate(self, now: float) -> None:
        self._instantaneous_duration += (now - self._last_event_ms) * self._outstanding
        self._instantaneous_duration = max(0.0, self._instantaneous_duration)

    def on_send(self) -> None:
        """A request was sent on this link."""
        now = self._clock()
        self._accumulate(now)
        self._outstanding += 1
        self._last_send_ms = now
        self._last_event_ms = now

    def on_complete(self, original_send_ms: float) -> float:
        """A request sent at ``original_send_ms`` completed. Returns its RTT.

        The outstanding count is clamped at zero because a server can be
        removed while requests to it are still being accounted.
        """
        now = self._clock()
        rtt = now - original_send_ms
        if rtt < 0:
            logger.warning(
                "[link %d] Negative RTT %.3fms (send=%.3f now=%.3f); clamping",
                self.server_index,
                rtt,
                original_send_ms,
                now,
            )
            rtt = 0.0

        self._accumulate(now)
        self._instantaneous_duration = max(0.0, self._instantaneous_duration - rtt)
        self._outstanding = max(0, self._outstanding - 1)
        self._last_event_ms = now
        self._median.insert(rtt)
        return rtt

    def predictive_load(self, *, decay: bool = True) -> float:
        """Expected cost of sending one more request on this link.

        Args:
            decay: Apply the idle-link median decay when due. Pass False to
                compute the score without touching the estimator.
        """
        now = self._clock()
        prediction = self._median.estimate()

        if prediction == 0:
            if self._outstanding == 0:
                weight = 0.0
            else:
                weight = STARTUP_PENALTY + self._outstanding
        elif self._outstanding == 0 and now - self._last_send_ms > self.inactivity_period_ms:
            lower_median = prediction * DECAY_FACTOR
            if decay:
                self._median.insert(lower_median)
                self._last_send_ms = now
                self._last_event_ms = now
                weight = self._median.estimate()
                logger.debug(
                    "[link %d] Decaying median %.3f -> %.3f",
                    self.server_index,
                    prediction,
                    weight,
                )
            else:
                weight = prediction
        else:
            predicted = prediction * self._outstanding
            instant = self._instantaneous_duration + (now - self._last_event_ms) * self._outstanding
            if self._outstanding != 0 and predicted < instant:
                weight = instant / self._outstanding
            else:
                weight = prediction

        return weight * (self._outstanding + 1)

    def snapshot(self) -> LinkSnapshot:
        return LinkSnapshot(
            server_index=self.server_index,
            predictive_load=self.predictive_load(decay=False),
            median_ms=self.median(),
            outstanding=self._outstanding,
        )

    def __repr__(self) -> str:
        return (
            f"LinkStats(server={self.server_index}, outstanding={self._outstanding}, "
            f"median={self.median()})"
        )
