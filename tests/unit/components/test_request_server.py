"""Tests for the single-queue Server."""

from __future__ import annotations

import pytest

from fanoutsim.components.request import Request
from fanoutsim.components.server import GC_RESUME, PROCESS, Server
from fanoutsim.core.clock import Clock
from fanoutsim.core.event import Event
from fanoutsim.core.temporal import Instant
from fanoutsim.load.latency import ConstantLatency


class FakeHost:
    """Collects scheduled events and responses instead of running a simulation."""

    def __init__(self):
        self.events: list[Event] = []
        self.responses: list[Request] = []
        self.gone_sources: set[int] = set()

    def schedule(self, event: Event) -> None:
        self.events.append(event)

    def is_source_active(self, request: Request) -> bool:
        return request.source_index not in self.gone_sources

    def dispatch_response(self, request: Request) -> None:
        self.responses.append(request)


def make_server(latency_ms: float = 50, time_scale: float = 1.0) -> tuple[Server, FakeHost, Clock]:
    host = FakeHost()
    clock = Clock()
    server = Server(0, host=host, latency_fn=ConstantLatency(latency_ms), time_scale=time_scale)
    server.set_clock(clock)
    return server, host, clock


def make_request(source_index: int = 0) -> Request:
    return Request(work=50, source_index=source_index, server_index=0, send_ms=0, original_send_ms=0)


def fire(server: Server, clock: Clock, event: Event) -> None:
    clock.advance_to(event.time)
    server.handle_event(event)


class TestEnqueue:
    """Tests for request arrival."""

    def test_first_arrival_schedules_processing(self):
        server, host, _ = make_server()
        request = make_request()

        server.enqueue(request, network_delay_ms=100)

        assert request.delay_ms == 150
        assert request.processing_ms == 50
        assert len(host.events) == 1
        assert host.events[0].event_type == PROCESS
        assert host.events[0].time == Instant.from_millis(50)

    def test_second_arrival_waits_for_pending_step(self):
        server, host, _ = make_server()
        server.enqueue(make_request(), network_delay_ms=100)
        server.enqueue(make_request(), network_delay_ms=100)

        assert len(host.events) == 1
        assert server.queue_depth == 2
        assert server.request_count == 2

    def test_time_scale_shrinks_processing(self):
        server, host, _ = make_server(time_scale=2.0)
        request = make_request()

        server.enqueue(request, network_delay_ms=50)

        assert request.processing_ms == 25
        assert host.events[0].time == Instant.from_millis(25)


class TestProcessing:
    """Tests for draining the queue."""

    def test_head_is_turned_around_and_queue_charged(self):
        server, host, clock = make_server()
        first, second = make_request(), make_request()
        server.enqueue(first, network_delay_ms=100)
        server.enqueue(second, network_delay_ms=100)

        fire(server, clock, host.events[0])

        assert host.responses == [first]
        assert first.is_response
        assert first.send_ms == 50
        assert second.delay_ms == 150 + 50
        assert host.events[-1].time == Instant.from_millis(100)
        assert server.stats.requests_processed == 1

    def test_queue_drains_completely(self):
        server, host, clock = make_server()
        for _ in range(3):
            server.enqueue(make_request(), network_delay_ms=0)

        while server.queue_depth:
            fire(server, clock, host.events[-1])

        assert len(host.responses) == 3
        assert clock.now_ms == 150

    def test_request_from_vanished_source_is_dropped(self):
        server, host, clock = make_server()
        host.gone_sources.add(1)
        server.enqueue(make_request(source_index=1), network_delay_ms=0)
        kept = make_request(source_index=0)
        server.enqueue(kept, network_delay_ms=0)

        fire(server, clock, host.events[0])

        assert host.responses == [kept]
        assert server.stats.requests_dropped == 1


class TestGarbageCollectionPause:
    """A pending GC pause stalls the next processing step."""

    def test_pause_delays_processing_and_charges_queue(self):
        server, host, clock = make_server()
        request = make_request()
        server.enqueue(request, network_delay_ms=100)
        server.gc(500)
        assert server.is_paused

        fire(server, clock, host.events[0])

        resume = host.events[-1]
        assert resume.event_type == GC_RESUME
        assert resume.time == Instant.from_millis(550)
        assert host.responses == []

        fire(server, clock, resume)

        assert host.responses == [request]
        assert request.delay_ms == 650
        assert not server.is_paused
        assert server.stats.gc_pauses == 1
        assert server.stats.total_gc_pause_ms == 500

    def test_non_positive_pause_is_ignored(self):
        server, _, _ = make_server()
        server.gc(0)
        server.gc(-5)
        assert not server.is_paused


class TestClose:
    """Tests for server removal."""

    def test_close_cancels_pending_step(self):
        server, host, _ = make_server()
        server.enqueue(make_request(), network_delay_ms=0)

        server.close()

        assert not server.active
        assert host.events[0].cancelled
        assert len(server.drain()) == 1
        assert server.queue_depth == 0

    def test_snapshot(self):
        server, _, _ = make_server()
        server.enqueue(make_request(), network_delay_ms=0)
        server.gc(10)

        snapshot = server.snapshot()

        assert snapshot.queue_length == 1
        assert snapshot.gc_paused
        assert snapshot.active
        with pytest.raises(AttributeError):
            snapshot.queue_length = 3
