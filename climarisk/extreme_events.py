# -*- coding: utf-8 -*-
"""
Extreme Weather Events

Run-length detection of heat waves, droughts and floods in daily series,
and threshold alerts from current conditions.

A run is a stretch of qualifying samples on consecutive calendar days; a
missing day closes the run. Runs still open at the end of a series are
closed and reported like any other.

Heat wave:
    qualifying day: temperature >= threshold (default 35 deg C)
    reported when:  duration >= min_duration (default 3 days)
    intensity      = min(1, (mean run temperature - threshold) / 10)

Drought:
    baseline       = mean precipitation of the series unless given
    qualifying day: precipitation < dry_fraction * baseline (default 0.3)
    deficit        = sum over the run of (baseline - precipitation)
    reported when:  deficit > 10 mm
    intensity      = min(1, deficit / 50)

Flood:
    qualifying day: precipitation >= daily_threshold (default 50 mm)
    reported when:  run total > 100 mm
    intensity      = min(1, total / 200)
    return period  = step table on the run total, in years

Severity from intensity:
    >= 0.8 extreme, >= 0.6 high, >= 0.4 moderate, otherwise low

Example:
    >>> from climarisk.extreme_events import event_severity
    >>> event_severity(0.65).value
    'high'
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

from climarisk.exceptions import InvalidInput
from climarisk.models import (
    AlertType,
    Coordinate,
    EventSeverity,
    EventType,
    ExtremeEvent,
    TimeSeriesSample,
    WeatherAlert,
)
from climarisk.statistics import mean

logger = logging.getLogger(__name__)

__all__ = [
    "event_severity",
    "return_period",
    "detect_heat_waves",
    "detect_droughts",
    "detect_floods",
    "generate_alerts",
]

# ---------------------------------------------------------------------------
# Thresholds
# ---------------------------------------------------------------------------

HEAT_WAVE_THRESHOLD_C = 35.0
HEAT_WAVE_MIN_DURATION = 3
HEAT_WAVE_INTENSITY_SPAN_C = 10.0

DROUGHT_DRY_FRACTION = 0.3
DROUGHT_MIN_DEFICIT_MM = 10.0
DROUGHT_INTENSITY_SPAN_MM = 50.0

FLOOD_DAILY_THRESHOLD_MM = 50.0
FLOOD_MIN_TOTAL_MM = 100.0
FLOOD_INTENSITY_SPAN_MM = 200.0

# (minimum intensity, severity), first match wins
SEVERITY_STEPS: Tuple[Tuple[float, EventSeverity], ...] = (
    (0.8, EventSeverity.EXTREME),
    (0.6, EventSeverity.HIGH),
    (0.4, EventSeverity.MODERATE),
)

# (minimum run total mm, return period years)
RETURN_PERIOD_STEPS: Tuple[Tuple[float, int], ...] = (
    (200.0, 100),
    (150.0, 50),
    (100.0, 25),
    (75.0, 10),
    (50.0, 5),
)
RETURN_PERIOD_FLOOR = 2

ALERT_HEAT_C = 35.0
ALERT_SOIL_MOISTURE = 0.3
ALERT_PRECIPITATION_MM = 50.0

HEAT_RECOMMENDATIONS = [
    "Stay hydrated and avoid strenuous activity during peak heat",
    "Check on elderly neighbours and vulnerable people",
    "Use air conditioning or visit cooling centres",
]
DROUGHT_RECOMMENDATIONS = [
    "Implement water conservation measures",
    "Monitor crop and vegetation stress",
    "Plan supplementary irrigation",
]
FLOOD_RECOMMENDATIONS = [
    "Avoid low-lying and flood-prone areas",
    "Monitor local water levels and river gauges",
    "Prepare for possible evacuation",
]


def event_severity(intensity: float) -> EventSeverity:
    """Bucket an intensity in [0, 1] into a severity."""
    for minimum, severity in SEVERITY_STEPS:
        if intensity >= minimum:
            return severity
    return EventSeverity.LOW


def return_period(total_mm: float) -> int:
    """Approximate return period in years of a multi-day rainfall total."""
    for minimum, years in RETURN_PERIOD_STEPS:
        if total_mm >= minimum:
            return years
    return RETURN_PERIOD_FLOOR


def _ordered(samples: Sequence[TimeSeriesSample]) -> List[TimeSeriesSample]:
    return sorted(samples, key=lambda s: s.date)


def _runs(
    samples: Sequence[TimeSeriesSample],
    qualifies,
) -> Iterator[List[TimeSeriesSample]]:
    """Yield maximal runs of qualifying samples on consecutive days."""
    run: List[TimeSeriesSample] = []
    for sample in _ordered(samples):
        contiguous = run and sample.date - run[-1].date == timedelta(days=1)
        if qualifies(sample.value) and (contiguous or not run):
            run.append(sample)
            continue
        if run:
            yield run
            run = []
        if qualifies(sample.value):
            run.append(sample)
    if run:
        yield run


def _event(
    event_type: EventType,
    run: List[TimeSeriesSample],
    intensity: float,
    description: str,
    metrics: Dict[str, float],
) -> ExtremeEvent:
    intensity = max(0.0, min(1.0, intensity))
    return ExtremeEvent(
        event_type=event_type,
        severity=event_severity(intensity),
        start_date=run[0].date,
        end_date=run[-1].date,
        duration_days=len(run),
        intensity=intensity,
        description=description,
        metrics=metrics,
    )


# ---------------------------------------------------------------------------
# Detectors
# ---------------------------------------------------------------------------


def detect_heat_waves(
    temperatures: Sequence[TimeSeriesSample],
    threshold: float = HEAT_WAVE_THRESHOLD_C,
    min_duration: int = HEAT_WAVE_MIN_DURATION,
) -> List[ExtremeEvent]:
    """Find runs of hot days.

    Args:
        temperatures: Daily maximum temperature samples (deg C).
        threshold: Temperature a day must reach to count.
        min_duration: Shortest run reported.

    Returns:
        Heat-wave events in date order.
    """
    if min_duration < 1:
        raise InvalidInput(
            "min_duration must be >= 1", field="min_duration", value=min_duration
        )

    events = []
    for run in _runs(temperatures, lambda v: v >= threshold):
        if len(run) < min_duration:
            continue
        values = [s.value for s in run]
        avg = mean(values)
        events.append(
            _event(
                EventType.HEAT_WAVE,
                run,
                (avg - threshold) / HEAT_WAVE_INTENSITY_SPAN_C,
                f"Heat wave of {len(run)} days with a peak of {max(values):.1f} C",
                {
                    "max_temperature": max(values),
                    "min_temperature": min(values),
                    "avg_temperature": avg,
                },
            )
        )
    logger.debug("Detected %d heat waves in %d samples", len(events), len(temperatures))
    return events


def detect_droughts(
    precipitation: Sequence[TimeSeriesSample],
    soil_moisture: Optional[Sequence[TimeSeriesSample]] = None,
    baseline_mm: Optional[float] = None,
    dry_fraction: float = DROUGHT_DRY_FRACTION,
) -> List[ExtremeEvent]:
    """Find dry spells whose accumulated deficit exceeds 10 mm.

    Args:
        precipitation: Daily precipitation samples (mm).
        soil_moisture: Optional volumetric soil moisture samples (0-1); the
            largest ``1 - moisture`` on the spell's days is reported as
            ``soil_moisture_deficit``.
        baseline_mm: Normal daily precipitation. Defaults to the series mean.
        dry_fraction: Share of the baseline below which a day is dry.
    """
    if not 0.0 < dry_fraction <= 1.0:
        raise InvalidInput(
            "dry_fraction must be in (0, 1]", field="dry_fraction", value=dry_fraction
        )
    if not precipitation:
        return []

    baseline = (
        baseline_mm if baseline_mm is not None
        else mean([s.value for s in precipitation])
    )
    cutoff = dry_fraction * baseline
    soil_by_date = {s.date: s.value for s in soil_moisture or ()}

    events = []
    for run in _runs(precipitation, lambda v: v < cutoff):
        deficit = sum(baseline - s.value for s in run)
        if deficit <= DROUGHT_MIN_DEFICIT_MM:
            continue
        metrics = {
            "precipitation_deficit": deficit,
            "baseline_precipitation": baseline,
        }
        soil = [soil_by_date[s.date] for s in run if s.date in soil_by_date]
        if soil:
            metrics["soil_moisture_deficit"] = max(1.0 - m for m in soil)
        events.append(
            _event(
                EventType.DROUGHT,
                run,
                deficit / DROUGHT_INTENSITY_SPAN_MM,
                f"Dry spell of {len(run)} days with a {deficit:.1f} mm deficit",
                metrics,
            )
        )
    logger.debug(
        "Detected %d droughts against a %.2f mm baseline", len(events), baseline
    )
    return events


def detect_floods(
    precipitation: Sequence[TimeSeriesSample],
    daily_threshold: float = FLOOD_DAILY_THRESHOLD_MM,
) -> List[ExtremeEvent]:
    """Find runs of heavy-rain days totalling more than 100 mm."""
    events = []
    for run in _runs(precipitation, lambda v: v >= daily_threshold):
        values = [s.value for s in run]
        total = sum(values)
        if total <= FLOOD_MIN_TOTAL_MM:
            continue
        events.append(
            _event(
                EventType.FLOOD,
                run,
                total / FLOOD_INTENSITY_SPAN_MM,
                f"Flood event with {total:.1f} mm total precipitation",
                {
                    "total_precipitation": total,
                    "peak_precipitation": max(values),
                    "return_period_years": float(return_period(total)),
                },
            )
        )
    logger.debug("Detected %d floods in %d samples", len(events), len(precipitation))
    return events


# ---------------------------------------------------------------------------
# Alerts
# ---------------------------------------------------------------------------


def generate_alerts(
    location: Coordinate,
    temperature_c: Optional[float] = None,
    soil_moisture: Optional[float] = None,
    precipitation_mm: Optional[float] = None,
    issued_at: Optional[datetime] = None,
) -> List[WeatherAlert]:
    """Raise alerts for current conditions at a location.

    Conditions that are not supplied raise no alert. Alerts come back in
    heat, drought, flood order.
    """
    issued = issued_at or datetime.now(timezone.utc).replace(microsecond=0)
    alerts = []

    if temperature_c is not None and temperature_c > ALERT_HEAT_C:
        alerts.append(
            WeatherAlert(
                alert_type=AlertType.WARNING,
                severity=EventSeverity.HIGH,
                event="Heat Wave",
                description=f"Extreme temperatures of {temperature_c:.1f} C expected",
                issued_at=issued,
                expires_at=issued + timedelta(hours=24),
                location=location,
                recommendations=list(HEAT_RECOMMENDATIONS),
            )
        )

    if soil_moisture is not None and soil_moisture < ALERT_SOIL_MOISTURE:
        alerts.append(
            WeatherAlert(
                alert_type=AlertType.ADVISORY,
                severity=EventSeverity.MODERATE,
                event="Drought Conditions",
                description=f"Low soil moisture of {soil_moisture * 100:.0f}%",
                issued_at=issued,
                expires_at=issued + timedelta(days=7),
                location=location,
                recommendations=list(DROUGHT_RECOMMENDATIONS),
            )
        )

    if precipitation_mm is not None and precipitation_mm > ALERT_PRECIPITATION_MM:
        alerts.append(
            WeatherAlert(
                alert_type=AlertType.WARNING,
                severity=EventSeverity.HIGH,
                event="Flood Risk",
                description=f"Heavy precipitation of {precipitation_mm:.1f} mm",
                issued_at=issued,
                expires_at=issued + timedelta(hours=12),
                location=location,
                recommendations=list(FLOOD_RECOMMENDATIONS),
            )
        )

    if alerts:
        logger.info(
            "Raised %d weather alerts at (%.4f, %.4f)",
            len(alerts), location.lat, location.lon,
        )
    return alerts
