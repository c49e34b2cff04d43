# -*- coding: utf-8 -*-
"""
Prometheus Metrics - ClimaRisk Engine

Prometheus metrics for the climate risk analytics engine.

All metric names use the ``climarisk_`` prefix for consistent
identification in Prometheus queries, Grafana dashboards, and alerting
rules.

Metrics:
    1. climarisk_assessments_total              (Counter,   labels: operation, status)
    2. climarisk_risk_levels_total              (Counter,   labels: component, level)
    3. climarisk_cache_requests_total           (Counter,   labels: result)
    4. climarisk_provider_fetches_total         (Counter,   labels: provider, status)
    5. climarisk_batch_elements_dropped_total   (Counter,   labels: operation)
    6. climarisk_assessment_duration_seconds    (Histogram, labels: operation)

Label Values Reference:
    operation:
        point, grid, time_series.
    status:
        success, failure, retry.
    component:
        flood, drought, landslide, overall.
    level:
        low, medium, high, extreme.
    result:
        hit, miss, error.
    provider:
        weather, terrain.

Example:
    >>> from climarisk.metrics import record_assessment, record_cache
    >>> record_assessment("point", "success")
    >>> record_cache("hit")
"""

from __future__ import annotations

import logging

from prometheus_client import Counter, Histogram

logger = logging.getLogger(__name__)

__all__ = [
    "record_assessment",
    "record_risk_level",
    "record_cache",
    "record_provider_fetch",
    "record_dropped_element",
    "observe_assessment_duration",
]

# ---------------------------------------------------------------------------
# Metric definitions
# ---------------------------------------------------------------------------

# 1. Assessments by operation and outcome
assessments_total = Counter(
    "climarisk_assessments_total",
    "Total risk assessments performed by the engine",
    labelnames=["operation", "status"],
)

# 2. Classified risk levels by component
risk_levels_total = Counter(
    "climarisk_risk_levels_total",
    "Total risk scores classified, by component and level",
    labelnames=["component", "level"],
)

# 3. Result cache lookups by outcome
cache_requests_total = Counter(
    "climarisk_cache_requests_total",
    "Total result cache lookups by outcome",
    labelnames=["result"],
)

# 4. Provider fetch attempts by provider and outcome
provider_fetches_total = Counter(
    "climarisk_provider_fetches_total",
    "Total weather and terrain provider fetch attempts",
    labelnames=["provider", "status"],
)

# 5. Batch elements excluded after a failure
batch_elements_dropped_total = Counter(
    "climarisk_batch_elements_dropped_total",
    "Total grid cells or time points dropped from batch results",
    labelnames=["operation"],
)

# 6. Assessment latency by operation
assessment_duration_seconds = Histogram(
    "climarisk_assessment_duration_seconds",
    "Duration of risk assessment operations in seconds",
    labelnames=["operation"],
    buckets=(0.01, 0.05, 0.1, 0.5, 1, 2, 5, 10, 30, 60, 120),
)


# ---------------------------------------------------------------------------
# Helper functions
# ---------------------------------------------------------------------------


def record_assessment(operation: str, status: str) -> None:
    """Record a completed or failed assessment.

    Args:
        operation: point, grid, or time_series.
        status: success or failure.
    """
    assessments_total.labels(operation=operation, status=status).inc()


def record_risk_level(component: str, level: str) -> None:
    """Record a classified risk level for one component."""
    risk_levels_total.labels(component=component, level=level).inc()


def record_cache(result: str) -> None:
    """Record a cache lookup outcome (hit, miss, error)."""
    cache_requests_total.labels(result=result).inc()


def record_provider_fetch(provider: str, status: str) -> None:
    """Record a provider fetch attempt (success, failure, retry)."""
    provider_fetches_total.labels(provider=provider, status=status).inc()


def record_dropped_element(operation: str) -> None:
    """Record a batch element excluded from the result set."""
    batch_elements_dropped_total.labels(operation=operation).inc()


def observe_assessment_duration(operation: str, seconds: float) -> None:
    """Observe the wall-clock duration of an assessment operation."""
    assessment_duration_seconds.labels(operation=operation).observe(seconds)
