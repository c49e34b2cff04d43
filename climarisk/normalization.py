# -*- coding: utf-8 -*-
"""
Normalizer

Min-max rescaling to [0, 1] and threshold-table bucketing of values into
colors, risk levels and anomaly severities.

Color tables:
    Each data type owns an ordered tuple of ``(threshold, color)`` pairs
    over [0, 1]. A value is normalised against the scale's ``{min, max}``
    and receives the color of the first threshold it does not exceed. A
    value above every threshold gets the last color.

    precipitation  9 blues, dark (dry) to light (wet)
    temperature    9 diverging blue-red
    ndvi           5 dark red (bare) to dark green (dense)
    elevation      11 green-yellow-red
    risk           6 sea green to dark red (fallback for unknown types)

Breakpoint classifiers:
    classify_risk_level  value >= bp[2] extreme, >= bp[1] high,
                         >= bp[0] medium, else low
    classify_severity    |z| > bp[2] extreme, > bp[1] high,
                         > bp[0] medium, else low

Example:
    >>> from climarisk.normalization import normalize_data, color_scale, color_for_value
    >>> normalize_data([10, 20, 30])
    [0.0, 0.5, 1.0]
    >>> color_for_value(0.9, color_scale("risk", 0, 1))
    '#8b0000'
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from climarisk.models import AnomalySeverity, RiskLevel

__all__ = [
    "COLOR_TABLES",
    "ColorScale",
    "normalize_data",
    "normalize_value",
    "color_scale",
    "color_for_value",
    "classify_risk_level",
    "classify_severity",
]


# ---------------------------------------------------------------------------
# Color tables
# ---------------------------------------------------------------------------

COLOR_TABLES: Dict[str, Tuple[Tuple[float, str], ...]] = {
    "precipitation": (
        (0.0, "#08306b"),
        (0.125, "#08519c"),
        (0.25, "#2171b5"),
        (0.375, "#4292c6"),
        (0.5, "#6baed6"),
        (0.625, "#9ecae1"),
        (0.75, "#c6dbef"),
        (0.875, "#deebf7"),
        (1.0, "#f7fbff"),
    ),
    "temperature": (
        (0.0, "#2166ac"),
        (0.125, "#4393c3"),
        (0.25, "#92c5de"),
        (0.375, "#d1e5f0"),
        (0.5, "#f7f7f7"),
        (0.625, "#fddbc7"),
        (0.75, "#f4a582"),
        (0.875, "#d6604d"),
        (1.0, "#b2182b"),
    ),
    "ndvi": (
        (0.0, "#8b0000"),
        (0.25, "#ff0000"),
        (0.5, "#ffff00"),
        (0.75, "#00ff00"),
        (1.0, "#006400"),
    ),
    "elevation": (
        (0.0, "#006837"),
        (0.1, "#1a9850"),
        (0.2, "#66bd63"),
        (0.3, "#a6d96a"),
        (0.4, "#d9ef8b"),
        (0.5, "#ffffbf"),
        (0.6, "#fee08b"),
        (0.7, "#fdae61"),
        (0.8, "#f46d43"),
        (0.9, "#d73027"),
        (1.0, "#a50026"),
    ),
    "risk": (
        (0.0, "#2e8b57"),
        (0.2, "#90ee90"),
        (0.4, "#ffff00"),
        (0.6, "#ffa500"),
        (0.8, "#ff4500"),
        (1.0, "#8b0000"),
    ),
}

_DEFAULT_TABLE = "risk"


@dataclass(frozen=True)
class ColorScale:
    """A color table bound to the value range it is normalised against."""

    data_type: str
    min: float
    max: float
    stops: Tuple[Tuple[float, str], ...]

    @property
    def colors(self) -> List[str]:
        return [color for _, color in self.stops]

    @property
    def thresholds(self) -> List[float]:
        return [threshold for threshold, _ in self.stops]


# ---------------------------------------------------------------------------
# Rescaling
# ---------------------------------------------------------------------------


def normalize_value(value: float, lo: float, hi: float) -> float:
    """Rescale one value against ``[lo, hi]``; a flat range maps to 0.5."""
    if hi == lo:
        return 0.5
    return (value - lo) / (hi - lo)


def normalize_data(
    values: Sequence[float],
    min_value: Optional[float] = None,
    max_value: Optional[float] = None,
) -> List[float]:
    """Min-max scale ``values`` to [0, 1].

    Bounds default to the data's own minimum and maximum. When the bounds
    coincide every output is 0.5. Supplied bounds narrower than the data
    produce values outside [0, 1]; they are not clipped.
    """
    if not values:
        return []
    lo = min(values) if min_value is None else min_value
    hi = max(values) if max_value is None else max_value
    return [normalize_value(v, lo, hi) for v in values]


# ---------------------------------------------------------------------------
# Colors
# ---------------------------------------------------------------------------


def color_scale(data_type: str, min_value: float, max_value: float) -> ColorScale:
    """Build the scale for ``data_type``; unknown types use the risk table."""
    key = data_type.lower()
    stops = COLOR_TABLES.get(key)
    if stops is None:
        key = _DEFAULT_TABLE
        stops = COLOR_TABLES[key]
    return ColorScale(data_type=key, min=min_value, max=max_value, stops=stops)


def color_for_value(value: float, scale: ColorScale) -> str:
    """Color of the first stop whose threshold ``value`` does not exceed."""
    normalized = normalize_value(value, scale.min, scale.max)
    for threshold, color in scale.stops:
        if normalized <= threshold:
            return color
    return scale.stops[-1][1]


# ---------------------------------------------------------------------------
# Breakpoint classifiers
# ---------------------------------------------------------------------------


def classify_risk_level(
    value: float,
    breakpoints: Sequence[float] = (0.25, 0.5, 0.75),
) -> RiskLevel:
    """Map a score in [0, 1] to a level; boundaries belong to the upper level."""
    medium, high, extreme = breakpoints
    if value >= extreme:
        return RiskLevel.EXTREME
    if value >= high:
        return RiskLevel.HIGH
    if value >= medium:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def classify_severity(
    magnitude: float,
    breakpoints: Sequence[float] = (1.0, 2.0, 3.0),
) -> AnomalySeverity:
    """Map ``|z|`` to a severity; boundaries belong to the lower bucket."""
    medium, high, extreme = breakpoints
    if magnitude > extreme:
        return AnomalySeverity.EXTREME
    if magnitude > high:
        return AnomalySeverity.HIGH
    if magnitude > medium:
        return AnomalySeverity.MEDIUM
    return AnomalySeverity.LOW
