"""Simulation driver for the fan-out routing model.

The Simulation owns the clock, the event heap and every actor: sources,
servers, their garbage collectors, the emitter and the "network" that moves
requests between them. It is the only place where state changes as a
result of time passing, and the only place that reconciles the topology
when servers or sources are added or removed.

Request lifecycle::

    emit_request()            source picks a server, request goes OUTBOUND
      -> network leg          network_delay_ms / time_scale
    Server.enqueue()          queued, delay = leg + processing
      -> Server.process_next  turned around as INBOUND
    dispatch_response()
      -> network leg
    _complete()               latency recorded, link stats updated

Only requests on a network leg are in ``active_requests``; a queued request
belongs to its server's queue until it is turned around.

Example:
    from fanoutsim import Simulation, SimulationConfig

    sim = Simulation(SimulationConfig(source_count=4, server_count=10, global_rps=200,
                                      load_balancing="aperture"))
    sim.run_for(60_000)
    print(sim.snapshot().p99_ms)
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable
from typing import Any

from fanoutsim.components.emitter import Emitter
from fanoutsim.components.garbage_collector import GarbageCollector
from fanoutsim.components.link_stats import LinkStats
from fanoutsim.components.load_balancer import LoadBalancingStrategy, Topology, create_strategy
from fanoutsim.components.request import Request
from fanoutsim.components.server import Server
from fanoutsim.components.source import Source
from fanoutsim.config import SimulationConfig
from fanoutsim.core.callback_entity import CallbackEntity
from fanoutsim.core.clock import Clock
from fanoutsim.core.event import Event
from fanoutsim.core.event_heap import EventHeap
from fanoutsim.core.temporal import Instant
from fanoutsim.load.arrival import arrival_provider
from fanoutsim.sketching.histogram import Histogram, WindowedHistogram
from fanoutsim.sketching.latency_series import LatencySeries
from fanoutsim.snapshot import SimulationSnapshot

logger = logging.getLogger(__name__)

PENALTY_MS = 60_000.0
"""RTT charged to a link when its server disappears with requests in flight."""

_LEG = "network.leg"


class Simulation:
    """Discrete-event model of sources fanning requests out to servers.

    Args:
        config: Initial configuration. Defaults to ``SimulationConfig()``.
        start_time: Initial value of the simulation clock.
    """

    def __init__(self, config: SimulationConfig | None = None, *, start_time: Instant = Instant.Epoch):
        self.config = config if config is not None else SimulationConfig()
        if self.config.seed is not None:
            random.seed(self.config.seed)

        self._clock = Clock(start_time)
        self._heap = EventHeap()
        self._network = CallbackEntity("network", self._on_leg_complete)
        self._network.set_clock(self._clock)
        self._legs: dict[str, Event] = {}

        self.active_requests: dict[str, Request] = {}
        self.completed_requests = 0
        self.sources: list[Source] = []
        self.servers: list[Server] = []
        self.collectors: list[GarbageCollector] = []

        self.strategy: LoadBalancingStrategy = self._build_strategy(self.config)
        self.histogram = self._build_histogram(self.config)
        self.latency_series = LatencySeries(window_ms=self.config.latency_window_ms)

        self.emitter = Emitter(
            self,
            arrival_provider(self.config.arrival, self.config.seed),
            rate=lambda: self.config.global_rps,
            time_scale=lambda: self.config.time_scale,
        )
        self.emitter.set_clock(self._clock)

        self.set_server_count(self.config.server_count)
        self.set_source_count(self.config.source_count)
        if not self.config.emit_paused:
            self._start_emitter()

        logger.info(
            "Simulation created: %d sources, %d servers, policy=%s, %.1f rps",
            len(self.sources),
            len(self.servers),
            self.config.policy.value,
            self.config.global_rps,
        )

    # --- Time ---

    @property
    def now(self) -> Instant:
        return self._clock.now

    @property
    def now_ms(self) -> float:
        return self._clock.now_ms

    @property
    def network_leg_ms(self) -> float:
        """One-way network delay on the simulation clock."""
        return self.config.network_delay_ms / self.config.time_scale

    @property
    def pending_events(self) -> int:
        return len(self._heap)

    # --- Scheduling ---

    def schedule(self, event: Event) -> None:
        """Add an event to the heap.

        Raises:
            ValueError: If the event is scheduled before the current time.
        """
        if event.time < self.now:
            raise ValueError(f"Cannot schedule {event!r} before the current time {self.now!r}")
        self._heap.push(event)

    def schedule_after(self, delay_ms: float, fn: Callable[[Event], Any], event_type: str = "callback") -> Event:
        """Call ``fn(event)`` after ``delay_ms``. Returns the event so it can be cancelled."""
        target = CallbackEntity(event_type, fn)
        target.set_clock(self._clock)
        event = target.event_after(delay_ms, event_type)
        self.schedule(event)
        return event

    def step(self) -> bool:
        """Process the next live event. Returns False once the heap is empty."""
        return self._dispatch(self._heap.pop_due())

    def _dispatch(self, event: Event | None) -> bool:
        if event is None:
            return False
        self._clock.advance_to(event.time)
        for follow_up in event.invoke():
            self.schedule(follow_up)
        return True

    def run_until(self, end: Instant | float) -> int:
        """Process every event up to and including ``end``, then move the clock there.

        Args:
            end: An Instant, or a time in milliseconds.

        Returns:
            Number of events processed.
        """
        if not isinstance(end, Instant):
            end = Instant.from_millis(end)

        processed = 0
        while self._dispatch(self._heap.pop_due(end)):
            processed += 1

        if not end.is_infinite() and end > self.now:
            self._clock.advance_to(end)
        return processed

    def run_for(self, duration_ms: float) -> int:
        """Advance the simulation by ``duration_ms``."""
        return self.run_until(self.now.after_millis(duration_ms))

    # --- Request flow ---

    def _topology(self) -> Topology:
        return Topology(
            server_count=len(self.servers),
            source_count=len(self.sources),
            now_ms=self.now_ms,
        )

    def emit_request(self) -> Request:
        """Emit one request from a uniformly random source."""
        source = random.choice(self.sources)
        server_index = self.strategy.select(source, self._topology())
        now_ms = self.now_ms
        request = Request(
            work=self.config.work_fn(),
            source_index=source.index,
            server_index=server_index,
            send_ms=now_ms,
            original_send_ms=now_ms,
            source_uid=source.uid,
        )
        source.record_send(server_index)
        self.active_requests[request.id] = request
        self._send(request)
        logger.debug("Emitted %s: source %d -> server %d", request.id, source.index, server_index)
        return request

    def _send(self, request: Request) -> None:
        event = self._network.event_after(self.network_leg_ms, _LEG, request=request)
        self._legs[request.id] = event
        self.schedule(event)

    def _on_leg_complete(self, event: Event) -> None:
        request: Request = event.context["request"]
        self._legs.pop(request.id, None)

        if request.is_response:
            self._complete(request)
            return

        self.active_requests.pop(request.id, None)
        self.servers[request.server_index].enqueue(request, self.network_leg_ms)

    def dispatch_response(self, request: Request) -> None:
        """Send a turned-around request back to its source."""
        self.active_requests[request.id] = request
        self._send(request)

    def _complete(self, request: Request) -> None:
        self.active_requests.pop(request.id, None)
        if not self.is_source_active(request):
            logger.debug("Discarding response %s: source %d is gone", request.id, request.source_index)
            return

        source = self.sources[request.source_index]
        source.record_complete(request.server_index, request.original_send_ms)

        latency_ms = request.delay_ms + self.network_leg_ms
        now_ms = self.now_ms
        self.histogram.add(latency_ms)
        self.latency_series.add(now_ms, latency_ms)
        self.latency_series.trim(now_ms)
        self.completed_requests += 1
        logger.debug("Completed %s in %.1fms", request.id, latency_ms)

    def is_source_active(self, request: Request) -> bool:
        """Whether the source that emitted ``request`` still exists."""
        index = request.source_index
        if index >= len(self.sources):
            return False
        source = self.sources[index]
        if not source.active:
            return False
        return request.source_uid is None or request.source_uid == source.uid

    def _cancel_leg(self, request: Request) -> None:
        leg = self._legs.pop(request.id, None)
        if leg is not None:
            leg.cancel()
        self.active_requests.pop(request.id, None)

    def _penalize(self, request: Request) -> None:
        """Charge the penalty RTT for a request lost with its server."""
        if not self.is_source_active(request):
            return
        self.sources[request.source_index].record_complete(request.server_index, self.now_ms - PENALTY_MS)

    # --- Topology ---

    def _new_link_stats(self, server_index: int) -> LinkStats:
        return LinkStats(
            server_index,
            clock=self._clock,
            inactivity_period_ms=self.config.predictive.inactivity_period_ms,
            median_size=self.config.predictive.median_size,
        )

    def _add_collector(self, server: Server) -> None:
        if self.config.gc_strategy is None:
            return
        collector = GarbageCollector(
            server,
            strategy=self.config.gc_strategy(),
            time_scale=self.config.time_scale,
        )
        collector.set_clock(self._clock)
        self.collectors.append(collector)
        self.schedule(collector.prime())

    def _stop_collectors(self, keep: Callable[[GarbageCollector], bool]) -> None:
        kept = []
        for collector in self.collectors:
            if keep(collector):
                kept.append(collector)
            else:
                collector.stop()
        self.collectors = kept

    def set_server_count(self, count: int) -> None:
        """Add or remove servers so that exactly ``count`` exist.

        Removed servers are closed. Every request queued at or travelling
        to/from them is cancelled and its link is charged ``PENALTY_MS``.

        Raises:
            ValueError: If ``count`` is less than 1.
        """
        if count < 1:
            raise ValueError(f"server count must be >= 1, got {count}")

        current = len(self.servers)
        if count > current:
            for index in range(current, count):
                server = Server(
                    index,
                    host=self,
                    latency_fn=self.config.latency_fn,
                    time_scale=self.config.time_scale,
                )
                server.set_clock(self._clock)
                self.servers.append(server)
                self._add_collector(server)
        elif count < current:
            purged = 0
            for server in self.servers[count:]:
                server.close()
                for request in server.drain():
                    self._penalize(request)
                    purged += 1
            for request in list(self.active_requests.values()):
                if request.server_index >= count:
                    self._cancel_leg(request)
                    self._penalize(request)
                    purged += 1
            self._stop_collectors(lambda c: c.server.index < count)
            del self.servers[count:]
            logger.info("Removed %d servers, purged %d requests", current - count, purged)

        for source in self.sources:
            source.resize(count)
        if count != current:
            logger.info("Server count %d -> %d", current, count)

    def set_source_count(self, count: int) -> None:
        """Add or remove sources so that exactly ``count`` exist.

        Requests of a removed source that are on a network leg are cancelled.
        Queued ones are discarded by their server when reached.

        Raises:
            ValueError: If ``count`` is less than 1.
        """
        if count < 1:
            raise ValueError(f"source count must be >= 1, got {count}")

        current = len(self.sources)
        if count > current:
            for index in range(current, count):
                source = Source(index=index, stats_factory=self._new_link_stats)
                source.resize(len(self.servers))
                self.sources.append(source)
        elif count < current:
            for source in self.sources[count:]:
                source.active = False
            for request in list(self.active_requests.values()):
                if request.source_index >= count:
                    self._cancel_leg(request)
            del self.sources[count:]

        if count != current:
            logger.info("Source count %d -> %d", current, count)

    # --- Configuration ---

    def _build_strategy(self, config: SimulationConfig) -> LoadBalancingStrategy:
        return create_strategy(config.policy, config.aperture, time_scale=config.time_scale)

    def _build_histogram(self, config: SimulationConfig) -> WindowedHistogram:
        layout = config.histogram
        return WindowedHistogram(
            factory=lambda: Histogram(layout.bucket_size_ms, layout.max_duration_ms),
            count=layout.window_count,
            window_ms=layout.window_ms,
            clock=self._clock,
        )

    def _start_emitter(self) -> None:
        event = self.emitter.start()
        if event is not None:
            self.schedule(event)

    def reconfigure(self, config: SimulationConfig) -> None:
        """Apply a new configuration to the running simulation.

        Topology, policy, rate and timing changes take effect immediately.
        Changing the policy resets every source's policy state.
        """
        old = self.config
        self.config = config

        if config.seed is not None and config.seed != old.seed:
            random.seed(config.seed)

        if config.time_scale != old.time_scale:
            for server in self.servers:
                server.time_scale = config.time_scale
            for collector in self.collectors:
                collector.time_scale = config.time_scale

        if config.latency_fn is not old.latency_fn:
            for server in self.servers:
                server.latency_fn = config.latency_fn

        if config.predictive != old.predictive:
            for source in self.sources:
                for link in source.stats:
                    link.inactivity_period_ms = config.predictive.inactivity_period_ms
                    link.resize_median(config.predictive.median_size)

        if (
            config.policy is not old.policy
            or config.aperture != old.aperture
            or config.time_scale != old.time_scale
        ):
            self.strategy = self._build_strategy(config)
            if config.policy is not old.policy:
                for source in self.sources:
                    source.round_robin_cursor = None
                    source.aperture = []
                    source.next_refresh_ms = None
                    source.aperture_ratio = None
                logger.info("Load balancing policy %s -> %s", old.policy.value, config.policy.value)

        if config.histogram != old.histogram:
            self.histogram = self._build_histogram(config)
        if config.latency_window_ms != old.latency_window_ms:
            self.latency_series.window_ms = config.latency_window_ms
        if config.arrival != old.arrival:
            self.emitter.provider = arrival_provider(config.arrival, config.seed)

        if config.gc_strategy is not old.gc_strategy:
            self._stop_collectors(lambda c: False)
            for server in self.servers:
                self._add_collector(server)

        self.set_server_count(config.server_count)
        self.set_source_count(config.source_count)

        if config.emit_paused:
            self.emitter.stop()
        else:
            self._start_emitter()

    def trigger_gc(self, server_index: int, duration_ms: float) -> None:
        """Inject a GC pause of ``duration_ms`` into one server.

        Raises:
            ValueError: If no server has that index.
        """
        if not 0 <= server_index < len(self.servers):
            raise ValueError(f"No server with index {server_index} (have {len(self.servers)})")
        self.servers[server_index].gc(duration_ms)

    # --- Observation ---

    def snapshot(self) -> SimulationSnapshot:
        """Frozen view of the current state; does not disturb any estimator."""
        self.latency_series.trim(self.now_ms)
        return SimulationSnapshot(
            time_ms=self.now_ms,
            policy=self.config.policy.value,
            servers=tuple(server.snapshot() for server in self.servers),
            sources=tuple(source.snapshot() for source in self.sources),
            histogram=tuple(self.histogram.data()),
            bucket_size_ms=self.histogram.bucket_size,
            p99_ms=self.histogram.p99,
            latency_series=self.latency_series.samples,
            active_requests=len(self.active_requests),
            completed_requests=self.completed_requests,
        )

    def __repr__(self) -> str:
        return (
            f"Simulation(now={self.now!r}, sources={len(self.sources)}, "
            f"servers={len(self.servers)}, policy={self.config.policy.value})"
        )
