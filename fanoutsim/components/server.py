"""Single-queue server with simulated processing latency and GC pauses.

The server owns a FIFO queue of requests. Arrival of a request into an
empty queue schedules a processing step after that request's processing
latency. Each processing step pops the head of the queue, charges a fresh
processing latency to every request still waiting behind it, turns the
head around as a response and, if work remains, schedules the next step.

A pending GC pause takes priority over processing: the next step is pushed
back by the (time-scaled) pause and every queued request is charged the
pause as extra delay.

Example::

    server = Server(0, host=sim, latency_fn=ConstantLatency(50))
    server.enqueue(request, network_delay_ms=100)
    server.gc(500)   # next processing step stalls for 500ms
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from fanoutsim.components.request import Request
from fanoutsim.core.entity import Entity
from fanoutsim.core.event import Event

logger = logging.getLogger(__name__)

PROCESS = "server.process"
GC_RESUME = "server.gc_resume"

LatencyFn = Callable[[float], float]


class ServerHost(Protocol):
    """What a server needs from the simulation that owns it."""

    def schedule(self, event: Event) -> None: ...

    def is_source_active(self, request: Request) -> bool: ...

    def dispatch_response(self, request: Request) -> None: ...


@dataclass(frozen=True)
class ServerStats:
    """Frozen snapshot of server statistics.

    Attributes:
        requests_received: Requests enqueued since creation.
        requests_processed: Requests turned around as responses.
        requests_dropped: Queued requests discarded because their source vanished.
        gc_pauses: GC pauses applied to the processing loop.
        total_gc_pause_ms: Cumulative (time-scaled) pause applied.
    """

    requests_received: int = 0
    requests_processed: int = 0
    requests_dropped: int = 0
    gc_pauses: int = 0
    total_gc_pause_ms: float = 0.0


@dataclass(frozen=True)
class ServerSnapshot:
    """Read-only view of a server for display."""

    index: int
    queue_length: int
    active: bool
    gc_paused: bool
    requests_received: int


class Server(Entity):
    """FIFO request processor.

    Args:
        index: Stable slot index of this server.
        host: Owning simulation (scheduling and response hand-off).
        latency_fn: Maps a request's work amount to processing milliseconds.
        time_scale: Simulation speed multiplier; durations are divided by it.
    """

    def __init__(
        self,
        index: int,
        host: ServerHost,
        latency_fn: LatencyFn,
        *,
        time_scale: float = 1.0,
    ):
        super().__init__(f"server-{index}")
        self.index = index
        self.latency_fn = latency_fn
        self.time_scale = time_scale
        self.active = True
        self._host = host
        self._queue: deque[Request] = deque()
        self._gc_pause_ms = 0.0
        self._pending: Event | None = None

        self._requests_received = 0
        self._requests_processed = 0
        self._requests_dropped = 0
        self._gc_pauses = 0
        self._total_gc_pause_ms = 0.0

    # --- Public Properties ---

    @property
    def queue(self) -> tuple[Request, ...]:
        return tuple(self._queue)

    @property
    def queue_depth(self) -> int:
        return len(self._queue)

    @property
    def request_count(self) -> int:
        return self._requests_received

    @property
    def gc_pause_ms(self) -> float:
        return self._gc_pause_ms

    @property
    def is_paused(self) -> bool:
        """True while a GC pause is pending or in progress."""
        return self._gc_pause_ms > 0

    @property
    def stats(self) -> ServerStats:
        return ServerStats(
            requests_received=self._requests_received,
            requests_processed=self._requests_processed,
            requests_dropped=self._requests_dropped,
            gc_pauses=self._gc_pauses,
            total_gc_pause_ms=self._total_gc_pause_ms,
        )

    def snapshot(self) -> ServerSnapshot:
        return ServerSnapshot(
            index=self.index,
            queue_length=len(self._queue),
            active=self.active,
            gc_paused=self.is_paused,
            requests_received=self._requests_received,
        )

    # --- Operations ---

    def processing_latency(self, request: Request) -> float:
        return self.latency_fn(request.work) / self.time_scale

    def enqueue(self, request: Request, network_delay_ms: float) -> None:
        """Accept an arriving request.

        The request's delay is reset to the outbound network leg plus its own
        processing latency; queue waiting is added later as the queue drains.
        """
        processing_ms = self.processing_latency(request)
        request.processing_ms = processing_ms
        request.delay_ms = network_delay_ms + processing_ms
        self._queue.append(request)
        self._requests_received += 1

        logger.debug(
            "[%s] Enqueued %s (depth=%d, processing=%.1fms)",
            self.name,
            request.id,
            len(self._queue),
            processing_ms,
        )

        if len(self._queue) == 1 and self._pending is None:
            self._schedule(PROCESS, processing_ms)

    def gc(self, duration_ms: float) -> None:
        """Add a GC pause that stalls the next processing step."""
        if duration_ms <= 0:
            return
        self._gc_pause_ms += duration_ms
        logger.info("[%s] GC pause requested: %.1fms (pending %.1fms)", self.name, duration_ms, self._gc_pause_ms)

    def delay_queue(self, delay_ms: float) -> None:
        """Charge ``delay_ms`` to every request waiting in the queue."""
        for request in self._queue:
            request.add_delay(delay_ms)

    def process_next(self) -> None:
        """Turn around the head of the queue, honouring any pending GC pause."""
        while self._queue and self.active:
            if self._gc_pause_ms > 0:
                pause_ms = self._gc_pause_ms / self.time_scale
                self._schedule(GC_RESUME, pause_ms, pause_ms=pause_ms)
                logger.debug("[%s] Processing stalled by GC for %.1fms", self.name, pause_ms)
                return

            request = self._queue.popleft()
            if not self._host.is_source_active(request):
                self._requests_dropped += 1
                logger.debug("[%s] Dropping %s: source %d is gone", self.name, request.id, request.source_index)
                continue

            latency_ms = self.processing_latency(request)
            self.delay_queue(latency_ms)
            request.turn_around(self.now_ms)
            self._requests_processed += 1
            self._host.dispatch_response(request)

            if self._queue:
                self._schedule(PROCESS, latency_ms)
            return

    def drain(self) -> list[Request]:
        """Remove and return every queued request."""
        drained = list(self._queue)
        self._queue.clear()
        return drained

    def close(self) -> None:
        """Deactivate the server and cancel any pending processing step."""
        self.active = False
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        logger.debug("[%s] Closed with %d queued requests", self.name, len(self._queue))

    # --- Event handling ---

    def _schedule(self, event_type: str, delay_ms: float, **context) -> None:
        event = self.event_after(delay_ms, event_type, **context)
        self._pending = event
        self._host.schedule(event)

    def handle_event(self, event: Event) -> None:
        if event is self._pending:
            self._pending = None

        if event.event_type == GC_RESUME:
            pause_ms = event.context["pause_ms"]
            self.delay_queue(pause_ms)
            self._gc_pauses += 1
            self._total_gc_pause_ms += pause_ms
            self._gc_pause_ms = 0.0
            self.process_next()
        elif event.event_type == PROCESS:
            self.process_next()
        else:
            logger.warning("[%s] Ignoring unexpected event %s", self.name, event.event_type)

    def __repr__(self) -> str:
        return f"Server({self.index}, queue={len(self._queue)}, active={self.active})"
