"""Tests for LatencySeries."""

from __future__ import annotations

import pytest

from fanoutsim.sketching import LatencySeries


class TestLatencySeries:
    """Tests for the rolling smoothed latency series."""

    def test_add_returns_sample(self):
        series = LatencySeries(window_ms=1000)
        sample = series.add(1000, 100)

        assert sample.time_ms == 1000
        assert sample.latency_ms == 100
        # exp(-1000/75) is negligible, so the EWMA jumps to the median.
        assert sample.smoothed_ms == pytest.approx(100, rel=1e-3)
        assert len(series) == 1

    def test_close_samples_move_the_average_slowly(self):
        series = LatencySeries(window_ms=10_000)
        series.add(1000, 100)
        series.add(1001, 100_000)

        assert series.smoothed < 2000

    def test_trim_drops_old_samples(self):
        series = LatencySeries(window_ms=1000)
        for t in (0, 500, 1500, 2000):
            series.add(t, 10)

        dropped = series.trim(2000)

        assert dropped == 2
        assert [s.time_ms for s in series.samples] == [1500, 2000]

    def test_to_dataframe(self):
        series = LatencySeries(window_ms=1000)
        series.add(100, 20)
        series.add(200, 30)

        df = series.to_dataframe()

        assert list(df.columns) == ["time_ms", "latency_ms", "smoothed_ms"]
        assert df["latency_ms"].tolist() == [20, 30]

    def test_rejects_non_positive_window(self):
        with pytest.raises(ValueError):
            LatencySeries(window_ms=0)
