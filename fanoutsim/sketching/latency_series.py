"""Rolling, smoothed end-to-end latency series.

Each completed request contributes one sample. The smoothed value is an
exponentially weighted moving average over a SlidingMedian estimate, with a
weight that decays with the time elapsed since the previous sample
(``exp(-dt / tau)``), so bursts of completions converge quickly while a
single outlier barely moves the curve.
"""

from __future__ import annotations

import math
from collections import deque
from dataclasses import dataclass

import pandas as pd

from fanoutsim.sketching.sliding_median import SlidingMedian


@dataclass(frozen=True)
class LatencySample:
    """One completed request.

    Attributes:
        time_ms: Completion time on the simulation clock.
        latency_ms: End-to-end latency of the request.
        smoothed_ms: Smoothed latency after this sample was added.
    """

    time_ms: float
    latency_ms: float
    smoothed_ms: float


class LatencySeries:
    """Time-bounded buffer of latency samples with a smoothed trend.

    Args:
        window_ms: Samples older than ``now - window_ms`` are discarded by trim().
        median_size: Capacity of the underlying SlidingMedian.
        tau_ms: Time constant of the EWMA weight.
    """

    def __init__(self, window_ms: float = 30_000, median_size: int = 16, tau_ms: float = 75.0):
        if window_ms <= 0:
            raise ValueError(f"window_ms must be positive, got {window_ms}")
        self.window_ms = window_ms
        self._tau_ms = tau_ms
        self._median = SlidingMedian(median_size)
        self._samples: deque[LatencySample] = deque()
        self._ewma = 0.0
        self._prev_time_ms = 0.0

    @property
    def smoothed(self) -> float:
        return self._ewma

    @property
    def samples(self) -> tuple[LatencySample, ...]:
        return tuple(self._samples)

    def __len__(self) -> int:
        return len(self._samples)

    def add(self, time_ms: float, latency_ms: float) -> LatencySample:
        self._median.insert(latency_ms)
        m = self._median.estimate()

        dt = time_ms - self._prev_time_ms
        self._prev_time_ms = time_ms
        w = math.exp(-dt / self._tau_ms)
        self._ewma = w * self._ewma + (1.0 - w) * m

        sample = LatencySample(time_ms=time_ms, latency_ms=latency_ms, smoothed_ms=self._ewma)
        self._samples.append(sample)
        return sample

    def trim(self, now_ms: float) -> int:
        """Drop samples at or before ``now_ms - window_ms``. Returns the number dropped."""
        cutoff = now_ms - self.window_ms
        dropped = 0
        while self._samples and self._samples[0].time_ms <= cutoff:
            self._samples.popleft()
            dropped += 1
        return dropped

    def to_dataframe(self) -> pd.DataFrame:
        """Samples as a DataFrame with columns time_ms, latency_ms, smoothed_ms."""
        return pd.DataFrame(
            [(s.time_ms, s.latency_ms, s.smoothed_ms) for s in self._samples],
            columns=["time_ms", "latency_ms", "smoothed_ms"],
        )
