"""Tests for LinkStats and the predictive load score."""

from __future__ import annotations

import pytest

from fanoutsim.components.link_stats import STARTUP_PENALTY, LinkStats


class ManualClock:
    def __init__(self, now_ms: float = 0.0):
        self.now_ms = now_ms

    def __call__(self) -> float:
        return self.now_ms


def make_link(clock: ManualClock, **kwargs) -> LinkStats:
    return LinkStats(0, clock=clock, inactivity_period_ms=1000, **kwargs)


class TestOutstandingAccounting:
    """Tests for send/complete bookkeeping."""

    def test_send_then_complete_returns_to_zero(self):
        clock = ManualClock()
        link = make_link(clock)

        link.on_send()
        clock.now_ms = 120
        rtt = link.on_complete(0)

        assert rtt == 120
        assert link.outstanding == 0
        assert link.instantaneous_duration() >= 0
        assert link.median() == 120

    def test_repeated_completes_never_go_negative(self):
        clock = ManualClock()
        link = make_link(clock)
        link.on_send()
        clock.now_ms = 50

        for _ in range(3):
            link.on_complete(0)

        assert link.outstanding == 0
        assert link.instantaneous_duration() >= 0

    def test_negative_rtt_is_clamped(self):
        clock = ManualClock(100)
        link = make_link(clock)
        link.on_send()

        assert link.on_complete(500) == 0
        assert link.median_buffer == (0,)

    def test_busy_time_integrates_outstanding(self):
        clock = ManualClock()
        link = make_link(clock)
        link.on_send()
        link.on_send()

        clock.now_ms = 10

        assert link.instantaneous_duration() == 20


class TestPredictiveLoad:
    """Tests for the weight * (outstanding + 1) score."""

    def test_fresh_link_scores_zero(self):
        assert make_link(ManualClock()).predictive_load() == 0

    def test_startup_penalty_without_history(self):
        link = make_link(ManualClock())
        link.on_send()

        assert link.predictive_load() == (STARTUP_PENALTY + 1) * 2
        assert STARTUP_PENALTY == 49_999

    def test_median_weight_while_active(self):
        clock = ManualClock()
        link = make_link(clock)
        link.on_send()
        clock.now_ms = 100
        link.on_complete(0)

        clock.now_ms = 500
        link.on_send()

        assert link.predictive_load() == 100 * 2

    def test_observed_rate_overrides_stale_median(self):
        clock = ManualClock()
        link = make_link(clock)
        link.on_send()
        clock.now_ms = 100
        link.on_complete(0)

        clock.now_ms = 1000
        link.on_send()
        clock.now_ms = 1500

        # 500ms in flight against a 100ms median
        assert link.predictive_load() == 500 * 2


class TestIdleDecay:
    """predictive_load() decays an idle link's median as a side effect."""

    def test_decay_on_read(self):
        clock = ManualClock()
        link = make_link(clock)
        link.on_send()
        clock.now_ms = 100
        link.on_complete(0)
        assert link.median_buffer == (100,)

        clock.now_ms = 2000
        assert link.predictive_load() == 100
        assert link.median_buffer == (90, 100)
        assert link.last_send_ms == 2000

        clock.now_ms = 3500
        assert link.predictive_load() == pytest.approx(90)
        assert len(link.median_buffer) == 3

    def test_no_decay_within_inactivity_period(self):
        clock = ManualClock()
        link = make_link(clock)
        link.on_send()
        clock.now_ms = 100
        link.on_complete(0)

        clock.now_ms = 900
        link.predictive_load()

        assert link.median_buffer == (100,)

    def test_snapshot_does_not_decay(self):
        clock = ManualClock()
        link = make_link(clock)
        link.on_send()
        clock.now_ms = 100
        link.on_complete(0)

        clock.now_ms = 5000
        snapshot = link.snapshot()

        assert snapshot.predictive_load == 100
        assert snapshot.median_ms == 100
        assert link.median_buffer == (100,)
        assert link.predictive_load(decay=False) == 100
        assert link.median_buffer == (100,)
