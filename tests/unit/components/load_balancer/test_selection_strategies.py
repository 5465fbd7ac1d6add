"""Tests for the random, round-robin and least-loaded strategies."""

from __future__ import annotations

import random

import pytest

from fanoutsim.components.link_stats import LinkStats
from fanoutsim.components.load_balancer import LeastLoaded, Random, RoundRobin, Topology
from fanoutsim.components.source import Source


def make_source(server_count: int) -> Source:
    source = Source(index=0, stats_factory=lambda i: LinkStats(i, clock=lambda: 0.0))
    source.resize(server_count)
    return source


def topology(server_count: int, source_count: int = 1) -> Topology:
    return Topology(server_count=server_count, source_count=source_count, now_ms=0.0)


class TestRandom:
    """Tests for uniform selection."""

    def test_stays_in_range(self):
        random.seed(11)
        source = make_source(4)
        picks = {Random().select(source, topology(4)) for _ in range(200)}
        assert picks == {0, 1, 2, 3}

    def test_empty_topology_raises(self):
        with pytest.raises(ValueError):
            Random().select(make_source(0), topology(0))


class TestRoundRobin:
    """Tests for the per-source cursor."""

    def test_cycles_from_random_offset(self):
        random.seed(5)
        source = make_source(3)
        strategy = RoundRobin()

        picks = [strategy.select(source, topology(3)) for _ in range(6)]

        start = picks[0]
        assert picks == [(start + i) % 3 for i in range(6)]

    def test_cursor_survives_server_removal(self):
        source = make_source(5)
        source.round_robin_cursor = 4
        strategy = RoundRobin()

        assert strategy.select(source, topology(3)) == 1
        assert strategy.select(source, topology(3)) == 2


class TestLeastLoaded:
    """Tests for least-loaded selection with random ties."""

    def test_picks_a_minimum(self):
        source = make_source(4)
        source.load = [3, 1, 1, 4]
        strategy = LeastLoaded()

        picks = set()
        for seed in range(50):
            random.seed(seed)
            picks.add(strategy.select(source, topology(4)))

        assert picks == {1, 2}

    def test_unique_minimum(self):
        source = make_source(3)
        source.load = [2, 0, 5]
        assert LeastLoaded().select(source, topology(3)) == 1

    def test_ignores_entries_past_server_count(self):
        source = make_source(3)
        source.load = [2, 1, 0]
        assert LeastLoaded().select(source, topology(2)) == 1
