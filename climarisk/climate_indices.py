# -*- coding: utf-8 -*-
"""
Climate Indices

Standardised drought indices and apparent-temperature comfort indices over
daily series. All functions are synchronous and side-effect free.

Standardised Precipitation Index (SPI):
    window = last ``timescale`` observations
    SPI    = (window[-1] - mean(window)) / std(window)      (population std)

Standardised Precipitation-Evapotranspiration Index (SPEI):
    balance = precipitation - evapotranspiration (element-wise)
    SPEI    = SPI computed over the water balance

    Both share one category table (value at or above the threshold):
        >= 2.0 extremely_wet, >= 1.5 very_wet, >= 1.0 moderately_wet,
        >= -1.0 near_normal, >= -1.5 moderately_dry, >= -2.0 severely_dry,
        otherwise extremely_dry

    A window shorter than ``timescale`` is reported as
    ``insufficient_data`` and a constant window as ``no_variability``,
    both with value 0.

Simplified Palmer Drought Severity Index (PDSI):
    PDSI = clamp(mean(precipitation - evapotranspiration) / 10, -4, 4)

Heat index (Rothfusz regression, deg F and % relative humidity):
    HI = -42.379 + 2.04901523 T + 10.14333127 RH - 0.22475541 T RH
         - 6.83783e-3 T^2 - 5.481717e-2 RH^2 + 1.22874e-3 T^2 RH
         + 8.5282e-4 T RH^2 - 1.99e-6 T^2 RH^2

Wind chill (NWS 2001, deg F and mph):
    WC = 35.74 + 0.6215 T - 35.75 V^0.16 + 0.4275 T V^0.16
    Below 3 mph there is no wind chill and WC = T.

Example:
    >>> from climarisk.climate_indices import spi
    >>> spi([10, 10, 10, 10, 30], timescale=5).value
    2.0
    >>> spi([10, 10, 10, 10, 30], timescale=5).category
    'extremely_wet'
"""

from __future__ import annotations

import logging
import math
from typing import List, Optional, Sequence, Tuple

from climarisk.exceptions import InvalidInput
from climarisk.models import ClimateIndexResult, TimeSeriesSample
from climarisk.statistics import clean, mean, population_variance

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_TIMESCALE",
    "spi",
    "spei",
    "pdsi",
    "heat_index",
    "wind_chill",
    "spi_series",
    "spei_series",
    "celsius_to_fahrenheit",
    "fahrenheit_to_celsius",
]

DEFAULT_TIMESCALE = 12

# ---------------------------------------------------------------------------
# Category tables: (threshold, category, description), first match wins
# ---------------------------------------------------------------------------

# At or above
STANDARDISED_CATEGORIES: Tuple[Tuple[float, str, str], ...] = (
    (2.0, "extremely_wet", "Extremely wet conditions"),
    (1.5, "very_wet", "Very wet conditions"),
    (1.0, "moderately_wet", "Moderately wet conditions"),
    (-1.0, "near_normal", "Near normal conditions"),
    (-1.5, "moderately_dry", "Moderately dry conditions"),
    (-2.0, "severely_dry", "Severely dry conditions"),
)
STANDARDISED_FLOOR = ("extremely_dry", "Extremely dry conditions")

# At or above; the PDSI is clamped to [-4, 4] so -4 itself is the floor
PDSI_CATEGORIES: Tuple[Tuple[float, str, str], ...] = (
    (4.0, "extremely_wet", "Extremely wet conditions"),
    (2.0, "moderately_wet", "Moderately wet conditions"),
    (1.0, "slightly_wet", "Slightly wet conditions"),
    (-1.0, "near_normal", "Near normal conditions"),
    (-2.0, "mild_drought", "Mild drought conditions"),
    (-3.0, "moderate_drought", "Moderate drought conditions"),
)
PDSI_FLOOR_SEVERE = ("severe_drought", "Severe drought conditions")
PDSI_FLOOR_EXTREME = ("extreme_drought", "Extreme drought conditions")
PDSI_LIMIT = 4.0
PDSI_SCALE = 10.0

# Heat index (deg F), at or above
HEAT_INDEX_CATEGORIES: Tuple[Tuple[float, str, str], ...] = (
    (130.0, "extreme_danger", "Heat stroke highly likely"),
    (105.0, "danger", "Heat stroke likely, sunstroke possible"),
    (90.0, "extreme_caution", "Heat stroke possible with prolonged exposure"),
    (80.0, "caution", "Fatigue possible with prolonged exposure"),
)
HEAT_INDEX_FLOOR = ("comfortable", "Comfortable conditions")

# Wind chill (deg F), at or below
WIND_CHILL_CATEGORIES: Tuple[Tuple[float, str, str], ...] = (
    (-50.0, "extreme_danger", "Frostbite in less than 5 minutes"),
    (-30.0, "danger", "Frostbite in 10-30 minutes"),
    (-20.0, "high_risk", "Frostbite in 30 minutes"),
    (-10.0, "moderate_risk", "Frostbite possible in 30 minutes"),
    (0.0, "low_risk", "Frostbite unlikely"),
)
WIND_CHILL_FLOOR = ("no_risk", "No frostbite risk")
WIND_CHILL_MIN_SPEED_MPH = 3.0


def _at_least(value: float, table, floor) -> Tuple[str, str]:
    for threshold, category, description in table:
        if value >= threshold:
            return category, description
    return floor


def _at_most(value: float, table, floor) -> Tuple[str, str]:
    for threshold, category, description in table:
        if value <= threshold:
            return category, description
    return floor


def _require_finite(name: str, value: float) -> None:
    if not math.isfinite(value):
        raise InvalidInput(f"{name} must be finite", field=name, value=value)


def celsius_to_fahrenheit(celsius: float) -> float:
    return celsius * 9.0 / 5.0 + 32.0


def fahrenheit_to_celsius(fahrenheit: float) -> float:
    return (fahrenheit - 32.0) * 5.0 / 9.0


# ---------------------------------------------------------------------------
# Standardised indices
# ---------------------------------------------------------------------------


def _check_timescale(timescale: int) -> None:
    if isinstance(timescale, bool) or not isinstance(timescale, int) or timescale < 2:
        raise InvalidInput(
            "timescale must be an integer >= 2", field="timescale", value=timescale
        )


def _standardised(index: str, values: List[float], timescale: int) -> ClimateIndexResult:
    if len(values) < timescale:
        return ClimateIndexResult(
            index=index,
            value=0.0,
            category="insufficient_data",
            description="Not enough data for calculation",
            timescale=timescale,
        )

    window = values[-timescale:]
    if max(window) == min(window):
        logger.debug("%s window of %d values has no variability", index, timescale)
        return ClimateIndexResult(
            index=index,
            value=0.0,
            category="no_variability",
            description="No variability detected in the window",
            timescale=timescale,
        )

    z = (window[-1] - mean(window)) / math.sqrt(population_variance(window))
    category, description = _at_least(z, STANDARDISED_CATEGORIES, STANDARDISED_FLOOR)
    return ClimateIndexResult(
        index=index,
        value=z,
        category=category,
        description=description,
        timescale=timescale,
    )


def spi(
    precipitation: Sequence[Optional[float]],
    timescale: int = DEFAULT_TIMESCALE,
) -> ClimateIndexResult:
    """Standardised Precipitation Index of the latest observation.

    Missing values are dropped before windowing.

    Raises:
        InvalidInput: If ``timescale`` is not an integer of at least 2.
    """
    _check_timescale(timescale)
    return _standardised("spi", clean(precipitation), timescale)


def _water_balance(
    precipitation: Sequence[Optional[float]],
    evapotranspiration: Sequence[Optional[float]],
) -> List[float]:
    if len(precipitation) != len(evapotranspiration):
        raise InvalidInput(
            "precipitation and evapotranspiration must have equal length",
            field="evapotranspiration",
            value=f"{len(precipitation)} != {len(evapotranspiration)}",
        )
    # Days missing either side are dropped as a pair
    return clean(
        p - et if p is not None and et is not None else None
        for p, et in zip(precipitation, evapotranspiration)
    )


def spei(
    precipitation: Sequence[Optional[float]],
    evapotranspiration: Sequence[Optional[float]],
    timescale: int = DEFAULT_TIMESCALE,
) -> ClimateIndexResult:
    """Standardised Precipitation-Evapotranspiration Index.

    Args:
        precipitation: Daily precipitation (mm).
        evapotranspiration: Daily reference evapotranspiration (mm), aligned
            with ``precipitation``.
        timescale: Window length in observations.

    Raises:
        InvalidInput: If the series lengths differ or ``timescale`` is
            invalid.
    """
    _check_timescale(timescale)
    return _standardised("spei", _water_balance(precipitation, evapotranspiration), timescale)


def pdsi(
    precipitation: Sequence[Optional[float]],
    evapotranspiration: Sequence[Optional[float]],
) -> ClimateIndexResult:
    """Simplified Palmer Drought Severity Index on the [-4, 4] scale."""
    balance = _water_balance(precipitation, evapotranspiration)
    if not balance:
        return ClimateIndexResult(
            index="pdsi",
            value=0.0,
            category="insufficient_data",
            description="Not enough data for calculation",
        )
    value = max(-PDSI_LIMIT, min(PDSI_LIMIT, mean(balance) / PDSI_SCALE))
    if value <= -PDSI_LIMIT:
        category, description = PDSI_FLOOR_EXTREME
    else:
        category, description = _at_least(value, PDSI_CATEGORIES, PDSI_FLOOR_SEVERE)
    return ClimateIndexResult(
        index="pdsi", value=value, category=category, description=description
    )


def _rolling(
    index: str,
    dates: List,
    values: List[float],
    timescale: int,
) -> List[ClimateIndexResult]:
    results = []
    for end in range(timescale, len(values) + 1):
        result = _standardised(index, values[end - timescale:end], timescale)
        results.append(result.model_copy(update={"date": dates[end - 1]}))
    return results


def spi_series(
    samples: Sequence[TimeSeriesSample],
    timescale: int = DEFAULT_TIMESCALE,
) -> List[ClimateIndexResult]:
    """Rolling SPI, one result per sample from the ``timescale``-th onwards.

    Samples are ordered by date first; each result carries the date of the
    last sample in its window.
    """
    _check_timescale(timescale)
    ordered = sorted(
        (s for s in samples if math.isfinite(s.value)), key=lambda s: s.date
    )
    return _rolling(
        "spi", [s.date for s in ordered], [s.value for s in ordered], timescale
    )


def spei_series(
    precipitation: Sequence[TimeSeriesSample],
    evapotranspiration: Sequence[TimeSeriesSample],
    timescale: int = DEFAULT_TIMESCALE,
) -> List[ClimateIndexResult]:
    """Rolling SPEI over the dates present in both series."""
    _check_timescale(timescale)
    et_by_date = {s.date: s.value for s in evapotranspiration}
    paired = sorted(
        (s.date, s.value - et_by_date[s.date])
        for s in precipitation
        if s.date in et_by_date
    )
    paired = [(d, v) for d, v in paired if math.isfinite(v)]
    return _rolling(
        "spei", [d for d, _ in paired], [v for _, v in paired], timescale
    )


# ---------------------------------------------------------------------------
# Comfort indices
# ---------------------------------------------------------------------------


def heat_index(temperature_f: float, relative_humidity: float) -> ClimateIndexResult:
    """Apparent temperature from air temperature and humidity.

    Args:
        temperature_f: Air temperature in degrees Fahrenheit.
        relative_humidity: Relative humidity in percent (0-100).

    Raises:
        InvalidInput: If an argument is not finite or humidity is outside
            [0, 100].
    """
    _require_finite("temperature_f", temperature_f)
    _require_finite("relative_humidity", relative_humidity)
    if not 0.0 <= relative_humidity <= 100.0:
        raise InvalidInput(
            "relative_humidity must be in [0, 100]",
            field="relative_humidity",
            value=relative_humidity,
        )

    t, rh = temperature_f, relative_humidity
    hi = (
        -42.379
        + 2.04901523 * t
        + 10.14333127 * rh
        - 0.22475541 * t * rh
        - 6.83783e-3 * t * t
        - 5.481717e-2 * rh * rh
        + 1.22874e-3 * t * t * rh
        + 8.5282e-4 * t * rh * rh
        - 1.99e-6 * t * t * rh * rh
    )
    category, description = _at_least(hi, HEAT_INDEX_CATEGORIES, HEAT_INDEX_FLOOR)
    return ClimateIndexResult(
        index="heat_index",
        value=hi,
        category=category,
        description=description,
        feels_like=hi,
    )


def wind_chill(temperature_f: float, wind_speed_mph: float) -> ClimateIndexResult:
    """Apparent temperature from air temperature and wind speed."""
    _require_finite("temperature_f", temperature_f)
    _require_finite("wind_speed_mph", wind_speed_mph)
    if wind_speed_mph < 0:
        raise InvalidInput(
            "wind_speed_mph must be >= 0", field="wind_speed_mph", value=wind_speed_mph
        )

    if wind_speed_mph < WIND_CHILL_MIN_SPEED_MPH:
        return ClimateIndexResult(
            index="wind_chill",
            value=temperature_f,
            category="no_wind_chill",
            description="Wind speed too low for wind chill effect",
            feels_like=temperature_f,
        )

    v = wind_speed_mph ** 0.16
    wc = 35.74 + 0.6215 * temperature_f - 35.75 * v + 0.4275 * temperature_f * v
    category, description = _at_most(wc, WIND_CHILL_CATEGORIES, WIND_CHILL_FLOOR)
    return ClimateIndexResult(
        index="wind_chill",
        value=wc,
        category=category,
        description=description,
        feels_like=wc,
    )
