"""Tests for climarisk.statistics.

Covers:
- Z-score anomalies, percentile rank and severity buckets
- Zero-variance (degenerate) histories
- Descriptive statistics and block means
- Calendar period grouping
- Trend classification
"""

import math
from datetime import date

import pytest

from climarisk.exceptions import InvalidInput
from climarisk.models import AnomalySeverity, TimeSeriesSample, Trend
from climarisk.statistics import (
    block_means,
    calculate_anomaly,
    classify_trend,
    clean,
    describe,
    group_by_period,
    group_statistics,
    mean,
    percentile_rank,
    population_variance,
    rainfall_trend,
)


# ==============================================================================
# Anomaly detection
# ==============================================================================

class TestCalculateAnomaly:
    """Tests for calculate_anomaly."""

    def test_value_above_history_is_anomalous(self):
        """50 against [10, 20, 30, 40] is a z-score of about 2.24."""
        result = calculate_anomaly(50, [10, 20, 30, 40])

        assert result.anomaly == pytest.approx(2.2361, abs=1e-3)
        assert result.percentile_rank == 100.0
        assert result.is_anomaly is True
        assert result.severity == AnomalySeverity.HIGH
        assert result.degenerate is False

    def test_population_standard_deviation(self):
        """Variance divides by N, not N - 1."""
        result = calculate_anomaly(6, [2, 4, 4, 4, 5, 5, 7, 9])

        # mean 5, population std 2
        assert result.anomaly == pytest.approx(0.5)
        assert result.severity == AnomalySeverity.LOW

    def test_constant_history_is_degenerate(self):
        """Zero variance reports anomaly 0 instead of an infinite z-score."""
        result = calculate_anomaly(50, [10, 10, 10, 10])

        assert result.anomaly == 0.0
        assert result.is_anomaly is False
        assert result.severity == AnomalySeverity.LOW
        assert result.degenerate is True
        assert result.percentile_rank == 100.0

    @pytest.mark.parametrize("history", [[0.1] * 3, [0.7] * 30, [1e-9] * 7, [-3.3] * 5])
    def test_constant_decimal_history_is_degenerate(self, history):
        """Constant histories whose float mean is inexact are still degenerate."""
        result = calculate_anomaly(50, history)

        assert result.anomaly == 0.0
        assert result.is_anomaly is False
        assert result.severity == AnomalySeverity.LOW
        assert result.degenerate is True

    def test_threshold_is_strict(self):
        """|z| equal to the threshold is not anomalous."""
        # mean 0, std 1 -> z = 2 exactly
        result = calculate_anomaly(2, [-1, 1])

        assert result.anomaly == pytest.approx(2.0)
        assert result.is_anomaly is False
        assert result.severity == AnomalySeverity.MEDIUM

    def test_custom_threshold(self):
        """An explicit threshold overrides the configured one."""
        result = calculate_anomaly(2, [-1, 1], threshold=1.5)
        assert result.is_anomaly is True

    def test_negative_anomaly_uses_magnitude_for_severity(self):
        """Severity depends on |z| regardless of sign."""
        result = calculate_anomaly(-3.5, [-1, 1])

        assert result.anomaly == pytest.approx(-3.5)
        assert result.severity == AnomalySeverity.EXTREME
        assert result.percentile_rank == 0.0

    def test_missing_history_values_are_ignored(self):
        """None and NaN history entries are dropped before scoring."""
        result = calculate_anomaly(6, [2, None, 4, 4, float("nan"), 4, 5, 5, 7, 9])
        assert result.anomaly == pytest.approx(0.5)

    def test_empty_history_raises(self):
        """An empty history is invalid input."""
        with pytest.raises(InvalidInput):
            calculate_anomaly(1.0, [])

    def test_all_missing_history_raises(self):
        """A history with no usable values is invalid input."""
        with pytest.raises(InvalidInput):
            calculate_anomaly(1.0, [None, float("nan")])

    def test_non_finite_current_raises(self):
        """NaN or infinite observations are rejected."""
        with pytest.raises(InvalidInput):
            calculate_anomaly(float("inf"), [1, 2, 3])


# ==============================================================================
# Moments and ranks
# ==============================================================================

class TestMoments:
    """Tests for the basic moment helpers."""

    def test_mean_of_empty_is_zero(self):
        """The empty mean is defined as 0."""
        assert mean([]) == 0.0

    def test_population_variance(self):
        """Known dataset with population variance 4."""
        assert population_variance([2, 4, 4, 4, 5, 5, 7, 9]) == pytest.approx(4.0)

    def test_percentile_rank_counts_strictly_below(self):
        """Ties are not counted as below."""
        assert percentile_rank(3, [1, 2, 3, 4]) == 50.0

    def test_clean_drops_missing_and_non_finite(self):
        """clean keeps order and drops None, NaN and infinities."""
        assert clean([1, None, 2.5, float("nan"), float("-inf"), 3]) == [1.0, 2.5, 3.0]


class TestDescribe:
    """Tests for describe."""

    def test_odd_count(self):
        """Median of an odd-sized series is the middle value."""
        summary = describe([3, 1, 2])

        assert summary.count == 3
        assert summary.mean == pytest.approx(2.0)
        assert summary.median == 2
        assert summary.min == 1
        assert summary.max == 3
        assert summary.std_dev == pytest.approx(math.sqrt(2 / 3))

    def test_even_count(self):
        """Median of an even-sized series averages the middle pair."""
        assert describe([4, 1, 3, 2]).median == pytest.approx(2.5)

    def test_empty(self):
        """An empty series produces a zeroed summary."""
        summary = describe([])
        assert summary.count == 0
        assert summary.mean == 0.0


class TestBlockMeans:
    """Tests for block_means."""

    def test_blocks_align_to_end(self):
        """A partial leading block is discarded."""
        assert block_means([100, 1, 1, 3, 3], 2) == [1.0, 3.0]

    def test_exact_multiple(self):
        """Every value is used when the length is a multiple of the size."""
        assert block_means([1, 3, 5, 7], 2) == [2.0, 6.0]

    def test_shorter_than_block(self):
        """No complete block yields an empty list."""
        assert block_means([1, 2], 3) == []

    def test_non_positive_size_raises(self):
        """Block size must be positive."""
        with pytest.raises(InvalidInput):
            block_means([1, 2, 3], 0)


# ==============================================================================
# Grouping
# ==============================================================================

def _samples():
    return [
        TimeSeriesSample(date=date(2024, 3, 2), value=1.0),   # Saturday
        TimeSeriesSample(date=date(2024, 3, 3), value=2.0),   # Sunday
        TimeSeriesSample(date=date(2024, 3, 9), value=3.0),   # Saturday
        TimeSeriesSample(date=date(2024, 4, 1), value=4.0),
        TimeSeriesSample(date=date(2025, 1, 1), value=5.0),
    ]


class TestGroupByPeriod:
    """Tests for group_by_period and group_statistics."""

    def test_daily(self):
        """Daily keys are ISO dates."""
        groups = group_by_period(_samples(), "daily")
        assert list(groups)[0] == "2024-03-02"
        assert len(groups) == 5

    def test_weekly_starts_on_sunday(self):
        """Weekly keys are the Sunday that starts the week."""
        groups = group_by_period(_samples(), "weekly")

        assert [s.value for s in groups["2024-02-25"]] == [1.0]
        assert [s.value for s in groups["2024-03-03"]] == [2.0, 3.0]

    def test_monthly(self):
        """Monthly keys are YYYY-MM."""
        groups = group_by_period(_samples(), "monthly")
        assert list(groups) == ["2024-03", "2024-04", "2025-01"]
        assert len(groups["2024-03"]) == 3

    def test_yearly(self):
        """Yearly keys are YYYY."""
        groups = group_by_period(_samples(), "yearly")
        assert {k: len(v) for k, v in groups.items()} == {"2024": 4, "2025": 1}

    def test_invalid_period_raises(self):
        """Unsupported periods are invalid input."""
        with pytest.raises(InvalidInput):
            group_by_period(_samples(), "hourly")

    def test_group_statistics(self):
        """Each group gets its own summary."""
        stats = group_statistics(group_by_period(_samples(), "monthly"))

        assert stats["2024-03"].mean == pytest.approx(2.0)
        assert stats["2025-01"].count == 1


# ==============================================================================
# Trends
# ==============================================================================

class TestTrends:
    """Tests for classify_trend and rainfall_trend."""

    @pytest.mark.parametrize(
        "delta,expected",
        [
            (2.5, Trend.INCREASING),
            (2.0, Trend.STABLE),
            (-2.0, Trend.STABLE),
            (-2.5, Trend.DECREASING),
        ],
    )
    def test_dead_band(self, delta, expected):
        """Changes within the dead band are stable."""
        assert classify_trend(delta, 2.0) == expected

    def test_rainfall_trend_increasing(self):
        """Wetter second half is increasing."""
        assert rainfall_trend([1, 1, 1, 10, 10, 10], 2.0) == Trend.INCREASING

    def test_rainfall_trend_short_series(self):
        """Fewer than two values is stable."""
        assert rainfall_trend([5.0], 2.0) == Trend.STABLE
