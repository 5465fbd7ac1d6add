"""Streaming statistics used by the routing model.

- SlidingMedian: bounded-memory running median
- Histogram / WindowedHistogram: bucketed latency counts over a rolling window
- LatencySeries: rolling smoothed end-to-end latency
"""

from fanoutsim.sketching.histogram import Histogram, WindowedHistogram, percentile_index
from fanoutsim.sketching.latency_series import LatencySample, LatencySeries
from fanoutsim.sketching.sliding_median import SlidingMedian

__all__ = [
    "Histogram",
    "LatencySample",
    "LatencySeries",
    "SlidingMedian",
    "WindowedHistogram",
    "percentile_index",
]
