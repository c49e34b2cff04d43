# -*- coding: utf-8 -*-
"""
Time-Series Statistics

Anomaly detection and descriptive statistics over noisy, sparsely-sampled
daily series. All functions are synchronous and side-effect free; inputs are
never mutated.

Anomaly definition:
    mean      = population mean of the history
    variance  = population variance (divide by N)
    z         = (current - mean) / sqrt(variance)

    A constant history (every value equal) has zero variance. Instead of
    producing an infinite z-score the anomaly is reported as 0 with ``low``
    severity and the result is flagged ``degenerate``.

Percentile rank:
    Share of history values strictly below the current value, times 100.
    This is a rank approximation, not an interpolated percentile.

Example:
    >>> from climarisk.statistics import calculate_anomaly
    >>> result = calculate_anomaly(50, [10, 20, 30, 40])
    >>> result.percentile_rank
    100.0
"""

from __future__ import annotations

import logging
import math
from collections import OrderedDict
from datetime import timedelta
from typing import Dict, Iterable, List, Optional, Sequence

from climarisk.config import ClimaRiskConfig, get_config
from climarisk.exceptions import InvalidInput
from climarisk.models import AnomalyResult, SeriesSummary, TimeSeriesSample, Trend
from climarisk.normalization import classify_severity

logger = logging.getLogger(__name__)

__all__ = [
    "PERIODS",
    "mean",
    "population_variance",
    "percentile_rank",
    "calculate_anomaly",
    "describe",
    "block_means",
    "group_by_period",
    "group_statistics",
    "classify_trend",
    "rainfall_trend",
    "clean",
]

PERIODS = ("daily", "weekly", "monthly", "yearly")


# ---------------------------------------------------------------------------
# Basic moments
# ---------------------------------------------------------------------------


def clean(values: Iterable[Optional[float]]) -> List[float]:
    """Drop missing and non-finite values, preserving order."""
    return [
        float(v) for v in values
        if v is not None and math.isfinite(v)
    ]


def mean(values: Sequence[float]) -> float:
    """Arithmetic mean; 0.0 for an empty sequence."""
    if not values:
        return 0.0
    return math.fsum(values) / len(values)


def population_variance(values: Sequence[float]) -> float:
    """Population variance (divide by N); 0.0 for an empty sequence."""
    if not values:
        return 0.0
    mu = mean(values)
    return math.fsum((v - mu) ** 2 for v in values) / len(values)


def percentile_rank(current: float, historical: Sequence[float]) -> float:
    """Percent of ``historical`` strictly below ``current``."""
    if not historical:
        return 0.0
    below = sum(1 for v in historical if v < current)
    return below / len(historical) * 100.0


# ---------------------------------------------------------------------------
# Anomaly detection
# ---------------------------------------------------------------------------


def calculate_anomaly(
    current: float,
    historical: Sequence[float],
    threshold: Optional[float] = None,
    config: Optional[ClimaRiskConfig] = None,
) -> AnomalyResult:
    """Score ``current`` against its history as a z-score.

    Args:
        current: Observation to test.
        historical: Past observations. Must be non-empty.
        threshold: ``|z|`` strictly above which the observation is anomalous;
            defaults to ``config.anomaly_threshold`` (2).
        config: Engine configuration; the singleton when omitted.

    Returns:
        AnomalyResult with z-score, percentile rank, severity, and flags.

    Raises:
        InvalidInput: If ``historical`` is empty or ``current`` is not finite.
    """
    cfg = config or get_config()
    limit = cfg.anomaly_threshold if threshold is None else threshold

    if not math.isfinite(current):
        raise InvalidInput(
            "current value must be finite", field="current", value=current
        )
    history = clean(historical)
    if not history:
        raise InvalidInput(
            "historical series must contain at least one value",
            field="historical",
            value=len(historical),
        )

    mu = mean(history)
    std_dev = math.sqrt(population_variance(history))
    rank = percentile_rank(current, history)

    # Constant by value; float rounding in the mean can leave a tiny variance
    if std_dev == 0.0 or max(history) == min(history):
        logger.debug(
            "Zero-variance history (n=%d, mean=%.4f); anomaly forced to 0",
            len(history),
            mu,
        )
        return AnomalyResult(
            value=current,
            anomaly=0.0,
            percentile_rank=rank,
            is_anomaly=False,
            severity=classify_severity(0.0, cfg.severity_breakpoints),
            degenerate=True,
        )

    z = (current - mu) / std_dev
    return AnomalyResult(
        value=current,
        anomaly=z,
        percentile_rank=rank,
        is_anomaly=abs(z) > limit,
        severity=classify_severity(abs(z), cfg.severity_breakpoints),
    )


# ---------------------------------------------------------------------------
# Descriptive statistics
# ---------------------------------------------------------------------------


def describe(values: Sequence[float]) -> SeriesSummary:
    """Count, mean, median, min, max and population standard deviation."""
    data = clean(values)
    if not data:
        return SeriesSummary(count=0, mean=0.0, median=0.0, min=0.0, max=0.0, std_dev=0.0)

    ordered = sorted(data)
    n = len(ordered)
    mid = n // 2
    median = ordered[mid] if n % 2 else (ordered[mid - 1] + ordered[mid]) / 2
    return SeriesSummary(
        count=n,
        mean=mean(data),
        median=median,
        min=ordered[0],
        max=ordered[-1],
        std_dev=math.sqrt(population_variance(data)),
    )


def block_means(values: Sequence[float], size: int) -> List[float]:
    """Means of consecutive, non-overlapping blocks of ``size`` values.

    Blocks are aligned to the end of the series so the most recent block is
    always complete; a partial leading block is discarded.
    """
    if size <= 0:
        raise InvalidInput("block size must be > 0", field="size", value=size)
    offset = len(values) % size
    return [
        mean(values[i:i + size])
        for i in range(offset, len(values) - size + 1, size)
    ]


def _period_key(sample: TimeSeriesSample, period: str) -> str:
    day = sample.date
    if period == "daily":
        return day.isoformat()
    if period == "weekly":
        # Weeks start on Sunday
        start = day - timedelta(days=(day.weekday() + 1) % 7)
        return start.isoformat()
    if period == "monthly":
        return f"{day.year:04d}-{day.month:02d}"
    return f"{day.year:04d}"


def group_by_period(
    samples: Iterable[TimeSeriesSample],
    period: str,
) -> Dict[str, List[TimeSeriesSample]]:
    """Group samples by calendar period, keys in first-seen order.

    Args:
        samples: Observations, in any order.
        period: One of ``daily``, ``weekly``, ``monthly``, ``yearly``.

    Raises:
        InvalidInput: If ``period`` is not supported.
    """
    if period not in PERIODS:
        raise InvalidInput(
            f"period must be one of {list(PERIODS)}",
            field="period",
            value=period,
        )
    groups: Dict[str, List[TimeSeriesSample]] = OrderedDict()
    for sample in samples:
        groups.setdefault(_period_key(sample, period), []).append(sample)
    return dict(groups)


def group_statistics(
    groups: Dict[str, List[TimeSeriesSample]],
) -> Dict[str, SeriesSummary]:
    """Summarise each group produced by :func:`group_by_period`."""
    return {
        key: describe([s.value for s in members])
        for key, members in groups.items()
    }


# ---------------------------------------------------------------------------
# Trends
# ---------------------------------------------------------------------------


def classify_trend(delta: float, dead_band: float) -> Trend:
    """Map a signed change to a trend; ``|delta| <= dead_band`` is stable."""
    if delta > dead_band:
        return Trend.INCREASING
    if delta < -dead_band:
        return Trend.DECREASING
    return Trend.STABLE


def rainfall_trend(values: Sequence[Optional[float]], dead_band: float) -> Trend:
    """Compare the mean of the second half of a series with the first half."""
    data = clean(values)
    if len(data) < 2:
        return Trend.STABLE
    half = len(data) // 2
    return classify_trend(mean(data[half:]) - mean(data[:half]), dead_band)
