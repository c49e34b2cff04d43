# -*- coding: utf-8 -*-
"""
ClimaRisk Data Models

Pydantic v2 data models shared by the analytics engine. Inputs such as
coordinates, bounding boxes and time-series samples are immutable; outputs
such as risk scores and assessments are frozen after construction and owned
by the request that produced them.

Enumerations (7):
    - RiskLevel, AnomalySeverity, RiskComponent, Trend, EventType,
      EventSeverity, AlertType

Geographic models (2):
    - Coordinate, BoundingBox

Statistical models (3):
    - TimeSeriesSample, AnomalyResult, SeriesSummary

Risk models (3):
    - RiskScore, ModelResult, RiskAssessment

Batch and request models (4):
    - GridCellAssessment, TimeSeriesPointAssessment, HeatmapCell,
      AssessmentOptions

Climate index and event models (3):
    - ClimateIndexResult, ExtremeEvent, WeatherAlert

Example:
    >>> from climarisk.models import Coordinate, BoundingBox
    >>> kigali = Coordinate(lat=-1.9441, lon=30.0619)
    >>> bbox = BoundingBox(north=-1.8, south=-2.1, east=30.2, west=29.9)
    >>> bbox.contains(kigali)
    True
"""

from __future__ import annotations

from datetime import date as Date, datetime, timezone
from enum import Enum
from typing import Dict, List, Optional, Sequence

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


def _utcnow() -> datetime:
    """Return current UTC datetime with microseconds zeroed."""
    return datetime.now(timezone.utc).replace(microsecond=0)


# =============================================================================
# Enumerations
# =============================================================================


class RiskLevel(str, Enum):
    """Four-tier risk classification shared by every model.

    LOW: score below the first breakpoint (default 0.25).
    MEDIUM: score in [0.25, 0.5).
    HIGH: score in [0.5, 0.75).
    EXTREME: score at or above 0.75.
    """

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    EXTREME = "extreme"


class AnomalySeverity(str, Enum):
    """Severity bucket of a z-score magnitude (breakpoints 1, 2, 3)."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    EXTREME = "extreme"


class RiskComponent(str, Enum):
    """Closed set of risk components an assessment reports on."""

    FLOOD = "flood"
    DROUGHT = "drought"
    LANDSLIDE = "landslide"


class Trend(str, Enum):
    """Direction of a risk driver relative to its baseline."""

    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


class EventType(str, Enum):
    """Kind of extreme weather event found in a daily series."""

    HEAT_WAVE = "heat_wave"
    DROUGHT = "drought"
    FLOOD = "flood"


class EventSeverity(str, Enum):
    """Severity of an extreme event from its intensity (0.4, 0.6, 0.8)."""

    LOW = "low"
    MODERATE = "moderate"
    HIGH = "high"
    EXTREME = "extreme"


class AlertType(str, Enum):
    """Urgency class of a weather alert."""

    WARNING = "warning"
    WATCH = "watch"
    ADVISORY = "advisory"
    OUTLOOK = "outlook"


# =============================================================================
# Geographic models
# =============================================================================


class Coordinate(BaseModel):
    """A WGS84 point in decimal degrees.

    Attributes:
        lat: Latitude (-90 to 90).
        lon: Longitude (-180 to 180).
    """

    lat: float = Field(..., ge=-90.0, le=90.0, description="Latitude in decimal degrees")
    lon: float = Field(..., ge=-180.0, le=180.0, description="Longitude in decimal degrees")

    model_config = ConfigDict(frozen=True, extra="forbid")


class BoundingBox(BaseModel):
    """Axis-aligned latitude/longitude rectangle.

    Boxes crossing the anti-meridian are not supported: ``east`` must be
    strictly greater than ``west``.

    Attributes:
        north: Northern edge latitude.
        south: Southern edge latitude.
        east: Eastern edge longitude.
        west: Western edge longitude.
    """

    north: float = Field(..., ge=-90.0, le=90.0)
    south: float = Field(..., ge=-90.0, le=90.0)
    east: float = Field(..., ge=-180.0, le=180.0)
    west: float = Field(..., ge=-180.0, le=180.0)

    model_config = ConfigDict(frozen=True, extra="forbid")

    @model_validator(mode="after")
    def validate_edges(self) -> BoundingBox:
        """Validate north > south and east > west."""
        if self.north <= self.south:
            raise ValueError(
                f"north ({self.north}) must be greater than south ({self.south})"
            )
        if self.east <= self.west:
            raise ValueError(
                f"east ({self.east}) must be greater than west ({self.west})"
            )
        return self

    @property
    def center(self) -> Coordinate:
        return Coordinate(
            lat=(self.north + self.south) / 2,
            lon=(self.east + self.west) / 2,
        )

    def contains(self, point: Coordinate) -> bool:
        """True when ``point`` lies inside the box, edges included."""
        return (
            self.south <= point.lat <= self.north
            and self.west <= point.lon <= self.east
        )

    def to_array(self) -> List[float]:
        """Return ``[west, south, east, north]``."""
        return [self.west, self.south, self.east, self.north]

    @classmethod
    def from_array(cls, values: Sequence[float]) -> BoundingBox:
        """Build a box from ``[west, south, east, north]``."""
        if len(values) != 4:
            raise ValueError(f"expected 4 values, got {len(values)}")
        west, south, east, north = values
        return cls(north=north, south=south, east=east, west=west)

    def to_polygon(self) -> List[List[float]]:
        """Closed ``[lon, lat]`` ring, counter-clockwise from south-west."""
        return [
            [self.west, self.south],
            [self.east, self.south],
            [self.east, self.north],
            [self.west, self.north],
            [self.west, self.south],
        ]


# =============================================================================
# Statistical models
# =============================================================================


class TimeSeriesSample(BaseModel):
    """One observation of a daily series."""

    date: Date
    value: float

    model_config = ConfigDict(frozen=True)


class AnomalyResult(BaseModel):
    """Z-score anomaly of an observation against its history.

    Attributes:
        value: The observation tested.
        anomaly: Z-score against the population mean and deviation.
        percentile_rank: Share of history strictly below ``value`` (0-100).
        is_anomaly: True when ``|anomaly|`` exceeds the threshold.
        severity: Bucket of ``|anomaly|``.
        degenerate: True when the history had zero variance and the
            anomaly was forced to 0.
    """

    value: float
    anomaly: float
    percentile_rank: float = Field(..., ge=0.0, le=100.0)
    is_anomaly: bool
    severity: AnomalySeverity
    degenerate: bool = False

    model_config = ConfigDict(frozen=True)


class SeriesSummary(BaseModel):
    """Descriptive statistics of a group of values."""

    count: int
    mean: float
    median: float
    min: float
    max: float
    std_dev: float

    model_config = ConfigDict(frozen=True)


# =============================================================================
# Risk models
# =============================================================================


class RiskScore(BaseModel):
    """Bounded risk score with its derived level.

    Attributes:
        value: Score in [0, 1].
        level: Level derived from ``value`` via the shared breakpoints.
        confidence: Share of model inputs that were actually available.
    """

    value: float = Field(..., ge=0.0, le=1.0)
    level: RiskLevel
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)

    model_config = ConfigDict(frozen=True)


class ModelResult(BaseModel):
    """Output of a single risk model.

    Attributes:
        score: Clamped score and level.
        factors: Human-readable contributing factors, in a fixed order.
        trend: Direction of the model's main driver.
        components: Normalised sub-factor scores keyed by name.
    """

    score: RiskScore
    factors: List[str] = Field(default_factory=list)
    trend: Trend = Trend.STABLE
    components: Dict[str, float] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)


class RiskAssessment(BaseModel):
    """Risk assessment of a single location.

    Attributes:
        location: Assessed point.
        components: Score per risk component.
        overall: Composite climate risk score.
        factors: Contributing factors per component.
        trends: Trend per component.
        anomalies: Precipitation and temperature anomalies keyed by
            variable name.
        rainfall_trend: Long-window rainfall trend over the fetched history.
        as_of: Last day of the observation window.
        timestamp: When the assessment was computed.
    """

    location: Coordinate
    components: Dict[RiskComponent, RiskScore]
    overall: RiskScore
    factors: Dict[RiskComponent, List[str]] = Field(default_factory=dict)
    trends: Dict[RiskComponent, Trend] = Field(default_factory=dict)
    anomalies: Dict[str, AnomalyResult] = Field(default_factory=dict)
    rainfall_trend: Trend = Trend.STABLE
    as_of: Date
    timestamp: datetime = Field(default_factory=_utcnow)

    model_config = ConfigDict(frozen=True)

    @field_validator("components")
    @classmethod
    def validate_components(
        cls, v: Dict[RiskComponent, RiskScore]
    ) -> Dict[RiskComponent, RiskScore]:
        """Every risk component must be scored."""
        missing = [c.value for c in RiskComponent if c not in v]
        if missing:
            raise ValueError(f"missing risk components: {missing}")
        return v


# =============================================================================
# Batch and request models
# =============================================================================


class GridCellAssessment(BaseModel):
    """Assessment of one grid point."""

    coordinates: Coordinate
    assessment: RiskAssessment

    model_config = ConfigDict(frozen=True)


class TimeSeriesPointAssessment(BaseModel):
    """Assessment of one location as of one date."""

    date: Date
    assessment: RiskAssessment

    model_config = ConfigDict(frozen=True)


class HeatmapCell(BaseModel):
    """Interpolated value at one grid point."""

    lat: float
    lon: float
    value: float

    model_config = ConfigDict(frozen=True)


class AssessmentOptions(BaseModel):
    """Per-request knobs for engine assessments.

    Attributes:
        as_of: Last day of the observation window; defaults to today (UTC).
        history_days: Overrides ``config.history_days``.
        ndvi: Vegetation index of the location when known; adjusts flood
            and landslide scores.
        vegetation_anomaly: Vegetation z-score folded into the composite.
        historical_landslide_density: Past landslides per 100 km^2.
        use_cache: Read and write the result cache.
        cache_ttl: Overrides ``config.cache_ttl`` for writes.
    """

    as_of: Optional[Date] = None
    history_days: Optional[int] = Field(default=None, gt=0)
    ndvi: Optional[float] = Field(default=None, ge=-1.0, le=1.0)
    vegetation_anomaly: float = 0.0
    historical_landslide_density: float = Field(default=0.0, ge=0.0)
    use_cache: bool = True
    cache_ttl: Optional[int] = Field(default=None, gt=0)

    model_config = ConfigDict(frozen=True, extra="forbid")


# =============================================================================
# Climate index and event models
# =============================================================================


class ClimateIndexResult(BaseModel):
    """One value of a standardised or comfort climate index.

    Attributes:
        index: Index name (``spi``, ``spei``, ``pdsi``, ``heat_index``,
            ``wind_chill``).
        value: Index value in its native unit or scale.
        category: Snake-case category label, e.g. ``moderately_dry``.
        description: Human-readable description of the category.
        date: Last day of the window the value describes, for rolling
            series.
        timescale: Window length in observations, for standardised indices.
        feels_like: Apparent temperature, for comfort indices.
    """

    index: str
    value: float
    category: str
    description: str
    date: Optional[Date] = None
    timescale: Optional[int] = None
    feels_like: Optional[float] = None

    model_config = ConfigDict(frozen=True)


class ExtremeEvent(BaseModel):
    """A run of consecutive days that crossed an extreme-weather threshold.

    Attributes:
        event_type: Heat wave, drought or flood.
        severity: Bucket of ``intensity``.
        start_date: First qualifying day.
        end_date: Last qualifying day.
        duration_days: Number of qualifying days.
        intensity: Event strength in [0, 1].
        description: Human-readable summary.
        metrics: Event-specific measurements (peak, totals, deficits).
    """

    event_type: EventType
    severity: EventSeverity
    start_date: Date
    end_date: Date
    duration_days: int = Field(..., ge=1)
    intensity: float = Field(..., ge=0.0, le=1.0)
    description: str
    metrics: Dict[str, float] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)


class WeatherAlert(BaseModel):
    """Alert raised from current conditions at a location."""

    alert_type: AlertType
    severity: EventSeverity
    event: str
    description: str
    issued_at: datetime
    expires_at: datetime
    location: Coordinate
    recommendations: List[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


__all__ = [
    "RiskLevel",
    "AnomalySeverity",
    "RiskComponent",
    "Trend",
    "Coordinate",
    "BoundingBox",
    "TimeSeriesSample",
    "AnomalyResult",
    "SeriesSummary",
    "RiskScore",
    "ModelResult",
    "RiskAssessment",
    "GridCellAssessment",
    "TimeSeriesPointAssessment",
    "HeatmapCell",
    "AssessmentOptions",
    "EventType",
    "EventSeverity",
    "AlertType",
    "ClimateIndexResult",
    "ExtremeEvent",
    "WeatherAlert",
]
