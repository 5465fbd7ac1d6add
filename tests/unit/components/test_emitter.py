"""Tests for the request Emitter."""

from __future__ import annotations

from fanoutsim.components.emitter import Emitter
from fanoutsim.core.clock import Clock
from fanoutsim.core.temporal import Instant
from fanoutsim.load.arrival import ConstantArrivalTimeProvider


class CountingHost:
    def __init__(self):
        self.emitted = 0

    def emit_request(self) -> None:
        self.emitted += 1


def make_emitter(rate: float = 5.0, time_scale: float = 1.0) -> tuple[Emitter, CountingHost, Clock]:
    host = CountingHost()
    clock = Clock()
    emitter = Emitter(host, ConstantArrivalTimeProvider(), rate=lambda: rate, time_scale=lambda: time_scale)
    emitter.set_clock(clock)
    return emitter, host, clock


class TestEmitter:
    """Tests for self-rescheduling emission."""

    def test_start_schedules_first_emission(self):
        emitter, _, _ = make_emitter()

        event = emitter.start()

        assert event.time == Instant.from_millis(200)
        assert emitter.running
        assert emitter.start() is None

    def test_firing_emits_and_reschedules(self):
        emitter, host, clock = make_emitter()
        event = emitter.start()

        clock.advance_to(event.time)
        follow_up = emitter.handle_event(event)

        assert host.emitted == 1
        assert emitter.emitted == 1
        assert follow_up[0].time == Instant.from_millis(400)

    def test_time_scale_compresses_intervals(self):
        emitter, _, _ = make_emitter(time_scale=4.0)
        assert emitter.start().time == Instant.from_millis(50)

    def test_stop_cancels_pending_emission(self):
        emitter, host, _ = make_emitter()
        event = emitter.start()

        emitter.stop()

        assert event.cancelled
        assert not emitter.running
        assert emitter.handle_event(event) == []
        assert host.emitted == 0
