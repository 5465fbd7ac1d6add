"""Streaming median over a small, self-balancing buffer.

SlidingMedian keeps at most ``size`` recent samples in sorted order. When
the buffer overflows, the element evicted is chosen relative to the median
as it was *before* the new sample arrived: a sample at or below the old
median pushes out the largest element, a sample above it pushes out the
smallest. The buffer therefore stays centred on the running median instead
of being a plain FIFO window.

Key properties:
- Space: O(size)
- Insert: O(size log size) (re-sort of a tiny buffer)
- Estimate: O(1)
"""

from __future__ import annotations


class SlidingMedian:
    """Fixed-capacity streaming median estimator.

    Args:
        size: Maximum number of samples kept in the buffer. Must be > 0.

    Example:
        median = SlidingMedian(size=8)
        for rtt in (120, 80, 95):
            median.insert(rtt)
        median.estimate()  # 95
    """

    def __init__(self, size: int = 32):
        if size <= 0:
            raise ValueError(f"size must be positive, got {size}")
        self._size = size
        self._buffer: list[float] = []

    @property
    def capacity(self) -> int:
        return self._size

    @property
    def buffer(self) -> tuple[float, ...]:
        """Retained samples in ascending order."""
        return tuple(self._buffer)

    def __len__(self) -> int:
        return len(self._buffer)

    def insert(self, x: float) -> None:
        """Insert a sample, evicting one element if the buffer overflows."""
        if not self._buffer:
            self._buffer.append(x)
            return

        median = self.estimate()
        self._buffer.append(x)
        self._buffer.sort()

        if len(self._buffer) > self._size:
            if x <= median:
                self._buffer.pop()
            else:
                self._buffer.pop(0)

    def resize(self, size: int) -> None:
        """Change the capacity, keeping the samples centred on the median.

        Shrinking keeps the ``size`` contiguous samples around index
        ``len // 2``, so the current estimate is unchanged.
        """
        if size <= 0:
            raise ValueError(f"size must be positive, got {size}")
        self._size = size
        if len(self._buffer) > size:
            start = len(self._buffer) // 2 - size // 2
            self._buffer = self._buffer[start : start + size]

    def estimate(self) -> float:
        """Current median, or 0 if nothing has been inserted.

        The reported element is the one at index ``len // 2`` of the sorted
        buffer, for both odd and even sizes.
        """
        if not self._buffer:
            return 0
        return self._buffer[len(self._buffer) // 2]

    def clear(self) -> None:
        self._buffer.clear()

    def __repr__(self) -> str:
        return f"SlidingMedian(size={self._size}, estimate={self.estimate()})"
