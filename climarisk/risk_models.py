# -*- coding: utf-8 -*-
"""
Risk Models - Flood, Drought, Landslide

Domain scoring functions that turn pre-validated physical inputs into a
bounded score, a level, a deterministic list of contributing factors, and a
trend. Models perform no I/O and hold no mutable state: the same inputs
always produce the same result.

Flood Score (0-1):
    flood = rainfall * w_rain + elevation * w_elev + slope * w_slope
    rainfall  = min(1, intensity(recent mm/day) + excess(recent vs baseline))
    elevation = low ground drains poorly (step table, metres)
    slope     = flat ground drains poorly (step table, degrees)
    NDVI > 0.6 scales the score by 0.8, NDVI < 0.2 by 1.1
    Default weights: w_rain=0.5, w_elev=0.3, w_slope=0.2

Drought Score (0-1):
    drought = deficit * w_def + temperature * w_temp + low_rain * w_low
    deficit     = step table over (total - expected) / expected
    temperature = step table over the temperature anomaly (deg C)
    low_rain    = step table over absolute rainfall in the drought window
    Default weights: w_def=0.60, w_temp=0.25, w_low=0.15

Landslide Score (0-1):
    landslide = slope * w_slope + rain * w_rain + soil * w_soil + history * w_hist
    slope  = step table (degrees), x1.1 for north-facing slopes over 20 deg
    rain   = min(1, 24h + 72h + 7d accumulation steps)
    soil   = soil moisture fraction, wetted by heavy 72h rain, scaled by NDVI
    history = step table over past events per 100 km^2
    Default weights: w_slope=0.35, w_rain=0.30, w_soil=0.20, w_hist=0.15

Trend consistency:
    Flood and drought both derive their trend from the same signed delta,
    ``mean(last recent_days) - baseline``. Flood reports ``increasing`` when
    the delta exceeds the dead band, drought when it falls below minus the
    dead band, so the two can never both be increasing.

Example:
    >>> from climarisk.risk_models import FloodInputs, FloodRiskModel
    >>> model = FloodRiskModel()
    >>> result = model.evaluate(FloodInputs(
    ...     daily_rainfall=[30, 28, 35, 40, 22, 31, 27],
    ...     baseline_mm_per_day=4.0,
    ...     elevation_m=1250,
    ...     slope_degrees=0.5,
    ... ))
    >>> result.score.level.value
    'extreme'
"""

from __future__ import annotations

import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from climarisk.config import ClimaRiskConfig, get_config
from climarisk.exceptions import InvalidInput
from climarisk.models import ModelResult, RiskComponent, RiskScore, Trend
from climarisk.normalization import classify_risk_level
from climarisk.statistics import classify_trend, mean

logger = logging.getLogger(__name__)

__all__ = [
    "FloodInputs",
    "DroughtInputs",
    "LandslideInputs",
    "RiskModel",
    "FloodRiskModel",
    "DroughtRiskModel",
    "LandslideRiskModel",
    "quick_landslide_risk",
    "rainfall_delta",
]


# ---------------------------------------------------------------------------
# Step tables: (threshold, score), first match wins
# ---------------------------------------------------------------------------

# Recent mean daily rainfall (mm/day), strictly above
FLOOD_INTENSITY_STEPS: Tuple[Tuple[float, float], ...] = (
    (25.0, 0.6), (15.0, 0.4), (10.0, 0.25), (5.0, 0.1),
)
# Recent excess over baseline as a ratio, strictly above
FLOOD_EXCESS_STEPS: Tuple[Tuple[float, float], ...] = (
    (0.8, 0.4), (0.5, 0.3), (0.3, 0.2), (0.1, 0.1),
)
# Elevation (m), strictly below
FLOOD_ELEVATION_STEPS: Tuple[Tuple[float, float], ...] = (
    (1300.0, 0.9), (1450.0, 0.7), (1600.0, 0.5), (1800.0, 0.3), (2200.0, 0.15),
)
FLOOD_ELEVATION_FLOOR = 0.05
# Slope (deg), strictly below
FLOOD_SLOPE_STEPS: Tuple[Tuple[float, float], ...] = (
    (1.0, 1.0), (3.0, 0.8), (6.0, 0.5), (10.0, 0.3), (15.0, 0.15),
)
FLOOD_SLOPE_FLOOR = 0.05

# Precipitation anomaly ratio, strictly below
DROUGHT_DEFICIT_STEPS: Tuple[Tuple[float, float], ...] = (
    (-0.7, 1.0), (-0.5, 0.8), (-0.3, 0.6), (-0.15, 0.4), (-0.05, 0.2),
)
# Temperature anomaly (deg C), strictly above
DROUGHT_TEMPERATURE_STEPS: Tuple[Tuple[float, float], ...] = (
    (4.0, 1.0), (3.0, 0.8), (2.0, 0.6), (1.0, 0.4), (0.5, 0.2),
)
# Total rainfall in the drought window (mm), strictly below
DROUGHT_LOW_RAIN_STEPS: Tuple[Tuple[float, float], ...] = (
    (20.0, 1.0), (40.0, 0.8), (60.0, 0.6), (80.0, 0.4), (100.0, 0.2),
)

# Slope (deg), at or above
LANDSLIDE_SLOPE_STEPS: Tuple[Tuple[float, float], ...] = (
    (45.0, 1.0), (35.0, 0.8), (25.0, 0.6), (15.0, 0.35), (10.0, 0.15),
)
LANDSLIDE_SLOPE_FLOOR = 0.05
# Accumulations (mm), strictly above
LANDSLIDE_RAIN_24H_STEPS: Tuple[Tuple[float, float], ...] = (
    (100.0, 0.4), (75.0, 0.3), (50.0, 0.2), (30.0, 0.1),
)
LANDSLIDE_RAIN_72H_STEPS: Tuple[Tuple[float, float], ...] = (
    (200.0, 0.5), (150.0, 0.4), (100.0, 0.3), (75.0, 0.2),
)
LANDSLIDE_RAIN_7D_STEPS: Tuple[Tuple[float, float], ...] = (
    (300.0, 0.3), (200.0, 0.2), (150.0, 0.1),
)
# Past events per 100 km^2, at or above
LANDSLIDE_HISTORY_STEPS: Tuple[Tuple[float, float], ...] = (
    (2.0, 1.0), (1.0, 0.75), (0.5, 0.5), (0.2, 0.3),
)
# 72h rainfall (mm) above which a landslide is considered rain-triggered
LANDSLIDE_TRIGGER_MM = 100.0
LANDSLIDE_TRIGGER_STEPS: Tuple[Tuple[float, float], ...] = (
    (150.0, 0.6), (100.0, 0.4), (75.0, 0.2),
)
DEFAULT_SOIL_MOISTURE = 0.5

QUICK_LANDSLIDE_SLOPE_MAX = 45.0
QUICK_LANDSLIDE_RAIN_MAX = 150.0
QUICK_LANDSLIDE_WEIGHTS = (0.6, 0.4)


def _above(value: float, steps: Sequence[Tuple[float, float]], default: float = 0.0) -> float:
    for threshold, score in steps:
        if value > threshold:
            return score
    return default


def _below(value: float, steps: Sequence[Tuple[float, float]], default: float = 0.0) -> float:
    for threshold, score in steps:
        if value < threshold:
            return score
    return default


def _at_least(value: float, steps: Sequence[Tuple[float, float]], default: float = 0.0) -> float:
    for threshold, score in steps:
        if value >= threshold:
            return score
    return default


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def rainfall_delta(
    daily_rainfall: Sequence[float],
    baseline_mm_per_day: float,
    window: int,
) -> Optional[float]:
    """``mean(last window days) - baseline`` in mm/day; None without data."""
    recent = daily_rainfall[-window:]
    if not recent:
        return None
    return mean(recent) - baseline_mm_per_day


# ---------------------------------------------------------------------------
# Inputs
# ---------------------------------------------------------------------------


def _require(ok: bool, message: str, name: str, value: object) -> None:
    if not ok:
        raise InvalidInput(message, field=name, value=value)


def _finite(value: Optional[float]) -> bool:
    return value is None or math.isfinite(value)


def _check_rainfall(values: Sequence[float]) -> Tuple[float, ...]:
    series = tuple(float(v) for v in values)
    _require(
        all(math.isfinite(v) and v >= 0 for v in series),
        "daily_rainfall values must be finite and >= 0",
        "daily_rainfall",
        series,
    )
    return series


@dataclass(frozen=True)
class FloodInputs:
    """Inputs of :class:`FloodRiskModel`.

    Attributes:
        daily_rainfall: Daily rainfall (mm), oldest first, ending at the
            assessment date.
        baseline_mm_per_day: Long-run mean daily rainfall for the location.
        elevation_m: Ground elevation; None when unknown.
        slope_degrees: Terrain slope; None when unknown.
        ndvi: Vegetation index; None when unknown.
    """

    daily_rainfall: Sequence[float]
    baseline_mm_per_day: float
    elevation_m: Optional[float] = None
    slope_degrees: Optional[float] = None
    ndvi: Optional[float] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "daily_rainfall", _check_rainfall(self.daily_rainfall))
        _require(
            math.isfinite(self.baseline_mm_per_day) and self.baseline_mm_per_day >= 0,
            "baseline_mm_per_day must be finite and >= 0",
            "baseline_mm_per_day",
            self.baseline_mm_per_day,
        )
        _require(_finite(self.elevation_m), "elevation_m must be finite",
                 "elevation_m", self.elevation_m)
        _require(
            self.slope_degrees is None or 0 <= self.slope_degrees <= 90,
            "slope_degrees must be in [0, 90]",
            "slope_degrees",
            self.slope_degrees,
        )
        _require(
            self.ndvi is None or -1 <= self.ndvi <= 1,
            "ndvi must be in [-1, 1]",
            "ndvi",
            self.ndvi,
        )


@dataclass(frozen=True)
class DroughtInputs:
    """Inputs of :class:`DroughtRiskModel`.

    Attributes:
        daily_rainfall: Daily rainfall (mm), oldest first; the same series
            the flood model receives.
        baseline_mm_per_day: Long-run mean daily rainfall.
        temperature_anomaly_c: Recent mean temperature minus its long-run
            mean; None when unknown.
    """

    daily_rainfall: Sequence[float]
    baseline_mm_per_day: float
    temperature_anomaly_c: Optional[float] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "daily_rainfall", _check_rainfall(self.daily_rainfall))
        _require(
            math.isfinite(self.baseline_mm_per_day) and self.baseline_mm_per_day >= 0,
            "baseline_mm_per_day must be finite and >= 0",
            "baseline_mm_per_day",
            self.baseline_mm_per_day,
        )
        _require(_finite(self.temperature_anomaly_c),
                 "temperature_anomaly_c must be finite",
                 "temperature_anomaly_c", self.temperature_anomaly_c)


@dataclass(frozen=True)
class LandslideInputs:
    """Inputs of :class:`LandslideRiskModel`.

    Attributes:
        slope_degrees: Terrain slope.
        rainfall_24h: Rainfall over the last day (mm).
        rainfall_72h: Rainfall over the last three days (mm).
        rainfall_7d: Rainfall over the last seven days (mm).
        aspect_degrees: Downslope direction clockwise from north; None when
            unknown.
        soil_moisture: Volumetric soil moisture fraction; None when unknown.
        historical_density: Past landslides per 100 km^2.
        ndvi: Vegetation index; None when unknown.
    """

    slope_degrees: float
    rainfall_24h: float = 0.0
    rainfall_72h: float = 0.0
    rainfall_7d: float = 0.0
    aspect_degrees: Optional[float] = None
    soil_moisture: Optional[float] = None
    historical_density: float = 0.0
    ndvi: Optional[float] = None

    def __post_init__(self) -> None:
        _require(0 <= self.slope_degrees <= 90, "slope_degrees must be in [0, 90]",
                 "slope_degrees", self.slope_degrees)
        for name in ("rainfall_24h", "rainfall_72h", "rainfall_7d", "historical_density"):
            value = getattr(self, name)
            _require(math.isfinite(value) and value >= 0,
                     f"{name} must be finite and >= 0", name, value)
        _require(
            self.aspect_degrees is None or 0 <= self.aspect_degrees <= 360,
            "aspect_degrees must be in [0, 360]",
            "aspect_degrees",
            self.aspect_degrees,
        )
        _require(
            self.soil_moisture is None or 0 <= self.soil_moisture <= 1,
            "soil_moisture must be in [0, 1]",
            "soil_moisture",
            self.soil_moisture,
        )
        _require(
            self.ndvi is None or -1 <= self.ndvi <= 1,
            "ndvi must be in [-1, 1]",
            "ndvi",
            self.ndvi,
        )


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class RiskModel(ABC):
    """Base class binding a model to its configuration."""

    component: RiskComponent

    def __init__(self, config: Optional[ClimaRiskConfig] = None) -> None:
        self._config = config or get_config()

    @property
    def config(self) -> ClimaRiskConfig:
        return self._config

    def _result(
        self,
        raw: float,
        confidence: float,
        factors: List[str],
        trend: Trend,
        components: Dict[str, float],
    ) -> ModelResult:
        value = _clamp(raw)
        score = RiskScore(
            value=value,
            level=classify_risk_level(value, self._config.risk_breakpoints),
            confidence=_clamp(confidence),
        )
        logger.debug(
            "%s risk: value=%.3f level=%s confidence=%.2f factors=%s",
            self.component.value,
            score.value,
            score.level.value,
            score.confidence,
            factors,
        )
        return ModelResult(
            score=score,
            factors=factors,
            trend=trend,
            components=components,
        )

    @abstractmethod
    def evaluate(self, inputs) -> ModelResult:
        """Score ``inputs``."""


class FloodRiskModel(RiskModel):
    """Flood risk from recent rainfall excess and drainage proxies."""

    component = RiskComponent.FLOOD

    def evaluate(self, inputs: FloodInputs) -> ModelResult:
        cfg = self._config
        recent = inputs.daily_rainfall[-cfg.recent_days:]
        avg_recent = mean(recent)
        baseline = inputs.baseline_mm_per_day

        intensity = _above(avg_recent, FLOOD_INTENSITY_STEPS)
        excess_ratio = (avg_recent - baseline) / baseline if baseline > 0 and recent else 0.0
        excess = _above(excess_ratio, FLOOD_EXCESS_STEPS)
        rainfall_risk = min(1.0, intensity + excess)

        elevation_risk = 0.0
        if inputs.elevation_m is not None:
            elevation_risk = _below(
                inputs.elevation_m, FLOOD_ELEVATION_STEPS, FLOOD_ELEVATION_FLOOR
            )
        slope_risk = 0.0
        if inputs.slope_degrees is not None:
            slope_risk = _below(
                inputs.slope_degrees, FLOOD_SLOPE_STEPS, FLOOD_SLOPE_FLOOR
            )

        raw = (
            rainfall_risk * cfg.flood_weight_rainfall
            + elevation_risk * cfg.flood_weight_elevation
            + slope_risk * cfg.flood_weight_slope
        )
        if inputs.ndvi is not None:
            if inputs.ndvi > 0.6:
                raw *= 0.8
            elif inputs.ndvi < 0.2:
                raw *= 1.1

        confidence = (
            (cfg.flood_weight_rainfall if recent else 0.0)
            + (cfg.flood_weight_elevation if inputs.elevation_m is not None else 0.0)
            + (cfg.flood_weight_slope if inputs.slope_degrees is not None else 0.0)
        )

        factors: List[str] = []
        if intensity >= 0.4:
            factors.append("high recent rainfall")
        elif intensity > 0:
            factors.append("moderate recent rainfall")
        if excess >= 0.3:
            factors.append("rainfall well above baseline")
        elif excess > 0:
            factors.append("rainfall above baseline")
        if elevation_risk >= 0.7:
            factors.append("low elevation")
        if inputs.slope_degrees is not None and slope_risk >= 0.8:
            factors.append("flat terrain with poor drainage")
        if inputs.ndvi is not None and inputs.ndvi > 0.6:
            factors.append("dense vegetation reduces runoff")
        elif inputs.ndvi is not None and inputs.ndvi < 0.2:
            factors.append("sparse vegetation increases runoff")

        delta = rainfall_delta(inputs.daily_rainfall, baseline, cfg.recent_days)
        trend = Trend.STABLE if delta is None else classify_trend(delta, cfg.trend_delta_mm)

        return self._result(
            raw,
            confidence,
            factors,
            trend,
            {
                "rainfall": rainfall_risk,
                "elevation": elevation_risk,
                "slope": slope_risk,
                "recent_mm_per_day": avg_recent,
                "excess_ratio": excess_ratio,
            },
        )


class DroughtRiskModel(RiskModel):
    """Drought risk from rainfall deficit, heat, and low absolute rainfall."""

    component = RiskComponent.DROUGHT

    def evaluate(self, inputs: DroughtInputs) -> ModelResult:
        cfg = self._config
        window = inputs.daily_rainfall[-cfg.drought_days:]
        baseline = inputs.baseline_mm_per_day
        total = sum(window)
        expected = baseline * len(window)
        anomaly = (total - expected) / expected if expected > 0 else 0.0

        deficit = _below(anomaly, DROUGHT_DEFICIT_STEPS)
        temperature = 0.0
        if inputs.temperature_anomaly_c is not None:
            temperature = _above(inputs.temperature_anomaly_c, DROUGHT_TEMPERATURE_STEPS)
        low_rain = _below(total, DROUGHT_LOW_RAIN_STEPS) if window else 0.0

        raw = (
            deficit * cfg.drought_weight_deficit
            + temperature * cfg.drought_weight_temperature
            + low_rain * cfg.drought_weight_low_rainfall
        )
        confidence = (
            (cfg.drought_weight_deficit if expected > 0 else 0.0)
            + (cfg.drought_weight_temperature
               if inputs.temperature_anomaly_c is not None else 0.0)
            + (cfg.drought_weight_low_rainfall if window else 0.0)
        )

        factors: List[str] = []
        if deficit >= 0.8:
            factors.append("severe rainfall deficit")
        elif deficit > 0:
            factors.append("rainfall deficit")
        if temperature >= 0.6:
            factors.append("well above normal temperatures")
        elif temperature > 0:
            factors.append("above normal temperatures")
        if low_rain >= 0.8:
            factors.append("very low recent rainfall")
        elif low_rain > 0:
            factors.append("low recent rainfall")

        delta = rainfall_delta(inputs.daily_rainfall, baseline, cfg.recent_days)
        # Deficit drives drought, so the sign is inverted
        trend = Trend.STABLE if delta is None else classify_trend(-delta, cfg.trend_delta_mm)

        return self._result(
            raw,
            confidence,
            factors,
            trend,
            {
                "deficit": deficit,
                "temperature": temperature,
                "low_rainfall": low_rain,
                "precipitation_anomaly": anomaly,
                "window_total_mm": total,
            },
        )


class LandslideRiskModel(RiskModel):
    """Landslide susceptibility from terrain, rainfall, soil and history."""

    component = RiskComponent.LANDSLIDE

    def evaluate(self, inputs: LandslideInputs) -> ModelResult:
        cfg = self._config
        slope = inputs.slope_degrees
        r24, r72, r7d = inputs.rainfall_24h, inputs.rainfall_72h, inputs.rainfall_7d

        slope_risk = _at_least(slope, LANDSLIDE_SLOPE_STEPS, LANDSLIDE_SLOPE_FLOOR)
        north_facing = (
            inputs.aspect_degrees is not None
            and (inputs.aspect_degrees >= 315 or inputs.aspect_degrees <= 45)
            and slope > 20
        )
        if north_facing:
            slope_risk = min(1.0, slope_risk * 1.1)

        rain_risk = min(
            1.0,
            _above(r24, LANDSLIDE_RAIN_24H_STEPS)
            + _above(r72, LANDSLIDE_RAIN_72H_STEPS)
            + _above(r7d, LANDSLIDE_RAIN_7D_STEPS),
        )

        soil = DEFAULT_SOIL_MOISTURE if inputs.soil_moisture is None else inputs.soil_moisture
        if r72 > 100:
            soil += 0.3
        elif r72 > 50:
            soil += 0.2
        if inputs.ndvi is not None:
            if inputs.ndvi > 0.6:
                soil *= 0.8
            elif inputs.ndvi < 0.2:
                soil *= 1.2
        soil_risk = min(1.0, soil)

        density = inputs.historical_density
        history_risk = _at_least(
            density, LANDSLIDE_HISTORY_STEPS, 0.15 if density > 0 else 0.05
        )

        raw = (
            slope_risk * cfg.landslide_weight_slope
            + rain_risk * cfg.landslide_weight_rainfall
            + soil_risk * cfg.landslide_weight_soil
            + history_risk * cfg.landslide_weight_history
        )
        confidence = 1.0 - (
            cfg.landslide_weight_soil if inputs.soil_moisture is None else 0.0
        )

        rainfall_triggered = r72 > LANDSLIDE_TRIGGER_MM
        trigger_risk = _above(r72, LANDSLIDE_TRIGGER_STEPS)

        factors: List[str] = []
        if slope >= 35:
            factors.append("steep slope")
        elif slope >= 25:
            factors.append("moderately steep slope")
        if north_facing:
            factors.append("north-facing slope")
        if rainfall_triggered:
            factors.append("heavy 72-hour rainfall")
        elif r24 > 50:
            factors.append("heavy 24-hour rainfall")
        if soil_risk >= 0.7:
            factors.append("saturated soil")
        if density >= 1.0:
            factors.append("history of landslides nearby")

        trend = classify_trend(r24 - r72 / 3.0, cfg.trend_delta_mm)

        return self._result(
            raw,
            confidence,
            factors,
            trend,
            {
                "slope": slope_risk,
                "rainfall": rain_risk,
                "soil": soil_risk,
                "history": history_risk,
                "trigger": trigger_risk,
                "rainfall_triggered": 1.0 if rainfall_triggered else 0.0,
            },
        )


def quick_landslide_risk(
    slope_degrees: float,
    rainfall_72h: float,
    config: Optional[ClimaRiskConfig] = None,
) -> RiskScore:
    """Two-input landslide screen for map overlays.

    ``min(1, slope / 45) * 0.6 + min(1, rain72 / 150) * 0.4``; confidence
    reflects that soil and history are ignored.
    """
    cfg = config or get_config()
    w_slope, w_rain = QUICK_LANDSLIDE_WEIGHTS
    value = _clamp(
        min(1.0, max(0.0, slope_degrees) / QUICK_LANDSLIDE_SLOPE_MAX) * w_slope
        + min(1.0, max(0.0, rainfall_72h) / QUICK_LANDSLIDE_RAIN_MAX) * w_rain
    )
    return RiskScore(
        value=value,
        level=classify_risk_level(value, cfg.risk_breakpoints),
        confidence=cfg.landslide_weight_slope + cfg.landslide_weight_rainfall,
    )
