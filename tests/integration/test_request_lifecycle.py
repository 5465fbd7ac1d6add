"""End-to-end request flow through the Simulation driver.

All tests use one or two servers with constant processing latency and
emission paused, emitting requests by hand so every timestamp is exact.
"""

from __future__ import annotations

import random

import pytest

from fanoutsim import PENALTY_MS, Instant, Simulation


class TestSingleRequest:
    """One source, one server, 100ms network legs, 50ms processing."""

    def test_completes_after_two_legs_plus_processing(self, deterministic_config):
        sim = Simulation(deterministic_config)
        request = sim.emit_request()

        assert sim.active_requests == {request.id: request}
        assert sim.sources[0].load == [1]

        sim.run_until(249)
        assert sim.completed_requests == 0
        assert request.is_response

        sim.run_until(250)
        assert sim.completed_requests == 1
        assert sim.active_requests == {}
        assert sim.sources[0].load == [0]
        assert sim.sources[0].stats[0].outstanding == 0
        assert sim.sources[0].stats[0].median() == 250

    def test_latency_is_recorded_once(self, deterministic_config):
        sim = Simulation(deterministic_config)
        sim.emit_request()
        sim.run_for(1000)

        assert sim.histogram.total() == 1
        assert sim.histogram.max_value() == 25
        assert [s.latency_ms for s in sim.latency_series.samples] == [250]

    def test_queueing_delay_is_charged(self, deterministic_config):
        sim = Simulation(deterministic_config)
        sim.emit_request()
        sim.emit_request()
        sim.run_for(1000)

        latencies = sorted(s.latency_ms for s in sim.latency_series.samples)
        assert latencies == [250, 300]

    def test_time_scale_compresses_everything(self, deterministic_config):
        sim = Simulation(deterministic_config.replace(time_scale=2.0))
        sim.emit_request()

        sim.run_until(125)

        assert sim.completed_requests == 1
        assert sim.latency_series.samples[0].latency_ms == 125

    def test_manual_gc_stalls_the_server(self, deterministic_config):
        sim = Simulation(deterministic_config)
        sim.emit_request()
        sim.trigger_gc(0, 500)

        sim.run_until(749)
        assert sim.completed_requests == 0

        sim.run_until(750)
        assert sim.completed_requests == 1
        assert sim.latency_series.samples[0].latency_ms == 750
        assert sim.servers[0].stats.gc_pauses == 1

    def test_trigger_gc_rejects_unknown_server(self, deterministic_config):
        sim = Simulation(deterministic_config)
        with pytest.raises(ValueError):
            sim.trigger_gc(3, 100)


class TestServerRemoval:
    """Requests touching a removed server are purged with a penalty RTT."""

    def _two_server_sim(self, deterministic_config) -> Simulation:
        sim = Simulation(deterministic_config.replace(server_count=2, load_balancing="roundrobin"))
        sim.sources[0].round_robin_cursor = 0
        return sim

    @pytest.mark.parametrize("removal_ms", [50, 120, 200])
    def test_penalty_charged_wherever_the_request_is(self, deterministic_config, removal_ms):
        sim = self._two_server_sim(deterministic_config)
        kept = sim.emit_request()
        lost = sim.emit_request()
        assert (kept.server_index, lost.server_index) == (0, 1)
        link = sim.sources[0].stats[1]

        sim.run_until(removal_ms)
        sim.set_server_count(1)

        assert lost.id not in sim.active_requests
        assert link.outstanding == 0
        assert PENALTY_MS in link.median_buffer
        assert sim.sources[0].load == [1]
        assert len(sim.servers) == 1

        sim.run_for(1000)
        assert sim.completed_requests == 1
        assert sim.sources[0].load == [0]

    def test_removed_server_is_never_selected(self, deterministic_config):
        sim = self._two_server_sim(deterministic_config)
        sim.set_server_count(1)

        for _ in range(10):
            assert sim.emit_request().server_index == 0

    def test_growing_servers_extends_vectors(self, deterministic_config):
        sim = Simulation(deterministic_config)
        sim.set_server_count(4)

        assert len(sim.servers) == 4
        assert sim.sources[0].load == [0, 0, 0, 0]
        assert sorted(sim.sources[0].server_pool) == [0, 1, 2, 3]

    def test_invalid_count(self, deterministic_config):
        sim = Simulation(deterministic_config)
        with pytest.raises(ValueError):
            sim.set_server_count(0)


class TestSourceRemoval:
    """Requests from a removed source never complete."""

    def _emit_from_last_source(self, sim: Simulation, monkeypatch):
        with monkeypatch.context() as patch:
            patch.setattr(random, "choice", lambda seq: seq[-1])
            return sim.emit_request()

    def test_in_flight_request_is_cancelled(self, deterministic_config, monkeypatch):
        sim = Simulation(deterministic_config.replace(source_count=2))
        request = self._emit_from_last_source(sim, monkeypatch)
        assert request.source_index == 1

        sim.run_until(50)
        sim.set_source_count(1)

        assert sim.active_requests == {}
        sim.run_for(1000)
        assert sim.completed_requests == 0
        assert sim.servers[0].request_count == 0

    def test_queued_request_is_dropped_by_server(self, deterministic_config, monkeypatch):
        sim = Simulation(deterministic_config.replace(source_count=2))
        self._emit_from_last_source(sim, monkeypatch)

        sim.run_until(120)
        sim.set_source_count(1)
        sim.set_source_count(2)
        sim.run_for(1000)

        assert sim.completed_requests == 0
        assert sim.servers[0].stats.requests_dropped == 1
        assert sim.sources[1].load == [0]


class TestScheduling:
    """Tests for the driver's scheduling API."""

    def test_schedule_after_runs_callback(self, deterministic_config):
        sim = Simulation(deterministic_config)
        fired = []
        sim.schedule_after(30, lambda e: fired.append(sim.now_ms))

        sim.run_for(100)

        assert fired == [30]
        assert sim.now_ms == 100

    def test_cancelled_callback_does_not_fire(self, deterministic_config):
        sim = Simulation(deterministic_config)
        fired = []
        event = sim.schedule_after(30, lambda e: fired.append(e))
        event.cancel()

        sim.run_for(100)

        assert fired == []

    def test_cannot_schedule_in_the_past(self, deterministic_config):
        sim = Simulation(deterministic_config, start_time=Instant.from_millis(500))
        event = sim.schedule_after(0, lambda e: None)
        event.time = Instant.from_millis(100)
        with pytest.raises(ValueError):
            sim.schedule(event)

    def test_step_reports_empty_heap(self, deterministic_config):
        sim = Simulation(deterministic_config)
        assert sim.step() is False
