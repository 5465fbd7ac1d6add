"""Fixed-resolution latency histograms.

Histogram counts samples into equal-width buckets covering ``[0, max)``.
Samples at or above ``max`` are dropped rather than clamped into the last
bucket, which bounds memory and keeps overflow out of percentile queries.

WindowedHistogram is a ring of Histograms, one per time period. Writing into
a new period first clears every slot between the last period written and the
current one, so the aggregate always covers at most ``count`` periods of
recent history without retaining individual samples.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable

logger = logging.getLogger(__name__)


class Histogram:
    """Equal-width bucket counter over ``[0, max_duration)``.

    Args:
        bucket_size: Width of each bucket (ms). Must be > 0.
        max_duration: Upper bound of the covered range (ms). Must be at least
            one bucket wide.

    Attributes:
        max_count: Largest count held by any bucket since the last clear.
        max_value: Highest bucket index that has received a sample.
    """

    def __init__(self, bucket_size: float = 10, max_duration: float = 60_000):
        if bucket_size <= 0:
            raise ValueError(f"bucket_size must be positive, got {bucket_size}")
        size = int(math.floor(max_duration / bucket_size))
        if size <= 0:
            raise ValueError(
                f"max_duration ({max_duration}) must cover at least one bucket of {bucket_size}"
            )
        self.bucket_size = bucket_size
        self.max = size * bucket_size
        self._buffer: list[int] = [0] * size
        self.max_count = 0
        self.max_value = 0

    @property
    def bucket_count(self) -> int:
        return len(self._buffer)

    @property
    def buckets(self) -> tuple[int, ...]:
        return tuple(self._buffer)

    def bucket(self, index: int) -> int:
        return self._buffer[index]

    def add(self, x: float) -> None:
        """Count ``x`` into its bucket; samples >= max are dropped."""
        if x >= self.max or x < 0:
            logger.debug("Histogram overflow, %s outside [0, %s)", x, self.max)
            return
        i = int(x // self.bucket_size)
        self._buffer[i] += 1
        self.max_count = max(self.max_count, self._buffer[i])
        self.max_value = max(self.max_value, i)

    def total(self) -> int:
        return sum(self._buffer)

    def clear(self) -> None:
        for i in range(len(self._buffer)):
            self._buffer[i] = 0
        self.max_count = 0
        self.max_value = 0

    def __repr__(self) -> str:
        return (
            f"Histogram(bucket_size={self.bucket_size}, buckets={self.bucket_count}, "
            f"total={self.total()})"
        )


def percentile_index(data: list[int], q: float) -> float:
    """Fractional bucket index at which the running count first exceeds q * total.

    Inside the crossing bucket the index is offset by the share of that
    bucket lying past the target. When the target is never exceeded (empty
    data or ``q >= 1``) the last index is returned.

    Raises:
        ValueError: If ``q`` is outside ``[0, 1]``.
    """
    if not 0.0 <= q <= 1.0:
        raise ValueError(f"q must be in [0, 1], got {q}")
    target = sum(data) * q
    running = 0
    for i, count in enumerate(data):
        running += count
        if running > target:
            return i + (running - target) / count
    return max(0, len(data) - 1)


class WindowedHistogram:
    """Ring of per-period histograms with aggregate and percentile queries.

    Args:
        factory: Creates an empty Histogram for each slot.
        count: Number of slots (periods) retained. Must be > 0.
        window_ms: Length of one period in milliseconds. Must be > 0.
        clock: Returns the current time in milliseconds.

    Example:
        histogram = WindowedHistogram(
            factory=lambda: Histogram(bucket_size=10, max_duration=60_000),
            count=20,
            window_ms=1_000,
            clock=lambda: sim.now_ms,
        )
        histogram.add(212.0)
        histogram.p99
    """

    def __init__(
        self,
        factory: Callable[[], Histogram],
        count: int,
        window_ms: float,
        clock: Callable[[], float],
    ):
        if count <= 0:
            raise ValueError(f"count must be positive, got {count}")
        if window_ms <= 0:
            raise ValueError(f"window_ms must be positive, got {window_ms}")
        self.histograms: list[Histogram] = [factory() for _ in range(count)]
        self.count = count
        self.window_ms = window_ms
        self._clock = clock
        self.last_index = self._period_index(clock())

    @property
    def bucket_size(self) -> float:
        return self.histograms[0].bucket_size

    @property
    def bucket_count(self) -> int:
        return self.histograms[0].bucket_count

    def _period_index(self, now_ms: float) -> int:
        return int(math.floor(now_ms / self.window_ms))

    def slot_for(self, now_ms: float) -> int:
        """Ring slot that holds samples recorded at ``now_ms``."""
        return self._period_index(now_ms) % self.count

    def add(self, x: float) -> None:
        """Record a sample in the slot for the current period.

        Every period skipped since the last write is cleared first; at most
        ``count`` slots are touched however long the gap was.
        """
        index = self._period_index(self._clock())
        if index > self.last_index:
            first = max(self.last_index + 1, index - self.count + 1)
            for j in range(first, index + 1):
                self.histograms[j % self.count].clear()
            logger.debug("Advanced window %d -> %d", self.last_index, index)
            self.last_index = index
        self.histograms[index % self.count].add(x)

    def aggregate_bucket(self, index: int) -> int:
        """Bucket ``index`` summed across every slot."""
        return sum(h.bucket(index) for h in self.histograms)

    def max_individual_count(self) -> int:
        """Largest single-slot bucket count."""
        return max(h.max_count for h in self.histograms)

    def max_count(self) -> int:
        """Largest aggregated bucket count."""
        return max(self.aggregate_bucket(i) for i in range(self.bucket_count))

    def max_value(self) -> int:
        """Highest bucket index holding a sample in any slot."""
        return max(h.max_value for h in self.histograms)

    def data(self) -> list[int]:
        """Aggregated buckets from 0 through the highest nonzero index."""
        return [self.aggregate_bucket(i) for i in range(self.max_value() + 1)]

    def total(self) -> int:
        return sum(h.total() for h in self.histograms)

    def percentile(self, q: float) -> float:
        """Fractional bucket index of quantile ``q`` over the aggregate."""
        return percentile_index(self.data(), q)

    def percentile_value(self, q: float) -> float:
        """Quantile ``q`` converted from bucket index to milliseconds."""
        return self.percentile(q) * self.bucket_size

    @property
    def p99(self) -> float:
        return self.percentile_value(0.99)

    def clear(self) -> None:
        for histogram in self.histograms:
            histogram.clear()

    def __repr__(self) -> str:
        return (
            f"WindowedHistogram(count={self.count}, window_ms={self.window_ms}, "
            f"total={self.total()})"
        )
