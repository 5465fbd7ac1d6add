"""Priority queue of pending events keyed on (time, creation order).

Cancelled events stay in the heap until they reach the top, where
``pop_due`` throws them away. Cancelling is therefore O(1) and the heap
never has to be searched.
"""

from __future__ import annotations

import heapq
from collections.abc import Iterable

from fanoutsim.core.event import Event
from fanoutsim.core.temporal import Instant


class EventHeap:
    """Min-heap of events ordered by ``Event.__lt__``."""

    def __init__(self, events: Iterable[Event] = ()):
        self._entries: list[Event] = list(events)
        heapq.heapify(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __bool__(self) -> bool:
        return bool(self._entries)

    def push(self, event: Event) -> None:
        heapq.heappush(self._entries, event)

    def extend(self, events: Iterable[Event]) -> None:
        for event in events:
            heapq.heappush(self._entries, event)

    def _drop_cancelled(self) -> None:
        entries = self._entries
        while entries and entries[0].cancelled:
            heapq.heappop(entries)

    def next_time(self) -> Instant | None:
        """Time of the earliest live event, or None when nothing is pending."""
        self._drop_cancelled()
        return self._entries[0].time if self._entries else None

    def pop_due(self, horizon: Instant = Instant.Infinity) -> Event | None:
        """Remove and return the earliest live event at or before ``horizon``."""
        next_time = self.next_time()
        if next_time is None or next_time > horizon:
            return None
        return heapq.heappop(self._entries)
