"""Tests for arrival providers and work/latency functions."""

from __future__ import annotations

import random

import numpy as np
import pytest

from fanoutsim.load import (
    ConstantArrivalTimeProvider,
    ConstantLatency,
    ConstantWork,
    NormalArrivalTimeProvider,
    NormalJitterLatency,
    PoissonArrivalTimeProvider,
    ProportionalLatency,
    arrival_provider,
    normal_random,
)


class TestArrivalProviders:
    """Intervals are in milliseconds for a rate in requests per second."""

    def test_constant_spacing(self):
        provider = ConstantArrivalTimeProvider()
        assert provider.next_interval_ms(5) == 200
        assert provider.next_interval_ms(1000) == 1

    def test_poisson_mean(self):
        provider = PoissonArrivalTimeProvider(seed=42)
        intervals = np.array([provider.next_interval_ms(5) for _ in range(5000)])

        assert (intervals > 0).all()
        assert intervals.mean() == pytest.approx(200, rel=0.1)

    def test_seed_repeats_sequence(self):
        a = PoissonArrivalTimeProvider(seed=3)
        b = PoissonArrivalTimeProvider(seed=3)
        assert [a.next_interval_ms(10) for _ in range(5)] == [b.next_interval_ms(10) for _ in range(5)]

    def test_normal_spacing_is_half_the_nominal_interval(self):
        random.seed(11)
        provider = NormalArrivalTimeProvider()
        intervals = np.array([provider.next_interval_ms(5) for _ in range(2000)])

        assert ((intervals >= 0) & (intervals <= 200)).all()
        assert intervals.mean() == pytest.approx(100, rel=0.05)

    def test_normal_draws_follow_random_seed(self):
        provider = NormalArrivalTimeProvider()
        random.seed(4)
        first = [provider.next_interval_ms(10) for _ in range(5)]
        random.seed(4)
        assert [provider.next_interval_ms(10) for _ in range(5)] == first

    def test_non_positive_rate_raises(self):
        with pytest.raises(RuntimeError):
            ConstantArrivalTimeProvider().next_interval_ms(0)

    def test_factory(self):
        assert isinstance(arrival_provider("poisson"), PoissonArrivalTimeProvider)
        assert isinstance(arrival_provider("constant"), ConstantArrivalTimeProvider)
        assert isinstance(arrival_provider("normal"), NormalArrivalTimeProvider)
        with pytest.raises(ValueError):
            arrival_provider("bursty")


class TestLatencyFunctions:
    """Tests for work amounts and processing latency."""

    def test_normal_random_is_clamped(self):
        random.seed(0)
        samples = [normal_random() for _ in range(2000)]
        assert all(0.0 <= x <= 1.0 for x in samples)
        assert np.mean(samples) == pytest.approx(0.5, abs=0.02)

    def test_default_latency_range(self):
        random.seed(1)
        latency = NormalJitterLatency()
        samples = [latency(50) for _ in range(500)]

        assert all(50 <= x <= 150 for x in samples)
        assert all(x == int(x) for x in samples)

    def test_constant_shapes(self):
        assert ConstantWork()() == 50
        assert ConstantLatency(20)(999) == 20
        assert ProportionalLatency()(75) == 75

    def test_negative_values_rejected(self):
        with pytest.raises(ValueError):
            ConstantWork(-1)
        with pytest.raises(ValueError):
            ConstantLatency(-1)
