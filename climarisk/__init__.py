# -*- coding: utf-8 -*-
"""
ClimaRisk - Climate Risk Analytics Engine

Point, grid and time-series assessment of flood, drought and landslide risk
from historical weather and terrain data, folded into a composite climate
risk index.

Modules:
    statistics      - anomaly z-scores, descriptive stats, period grouping
    climate_indices - SPI, SPEI, PDSI, heat index and wind chill
    extreme_events  - heat wave, drought and flood runs, weather alerts
    normalization   - min-max scaling, color scales, level classifiers
    geometry        - haversine distance, bounding boxes, grids
    interpolation   - inverse distance weighting, heatmaps
    risk_models     - flood, drought and landslide models
    risk_index      - composite climate risk index
    cache           - in-memory LRU/TTL and Redis result caches
    providers       - weather and terrain provider interfaces, Open-Meteo adapters
    engine          - async assess_point / assess_grid / assess_time_series
"""

from climarisk.cache import RedisResultCache, ResultCache, make_cache_key
from climarisk.climate_indices import heat_index, pdsi, spei, spi, wind_chill
from climarisk.config import (
    ClimaRiskConfig,
    configure_logging,
    get_config,
    reset_config,
    set_config,
)
from climarisk.engine import ClimateRiskEngine
from climarisk.exceptions import (
    CacheUnavailable,
    ClimaRiskException,
    ConfigurationError,
    DataUnavailable,
    InvalidInput,
)
from climarisk.extreme_events import (
    detect_droughts,
    detect_floods,
    detect_heat_waves,
    generate_alerts,
)
from climarisk.models import (
    AnomalyResult,
    AssessmentOptions,
    BoundingBox,
    ClimateIndexResult,
    Coordinate,
    EventSeverity,
    EventType,
    ExtremeEvent,
    GridCellAssessment,
    HeatmapCell,
    RiskAssessment,
    RiskComponent,
    RiskLevel,
    RiskScore,
    TimeSeriesPointAssessment,
    Trend,
    WeatherAlert,
)
from climarisk.providers import (
    OpenMeteoTerrainProvider,
    OpenMeteoWeatherProvider,
    TerrainProvider,
    TerrainSample,
    WeatherProvider,
    WeatherSeries,
)

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Engine
    "ClimateRiskEngine",
    # Config
    "ClimaRiskConfig",
    "configure_logging",
    "get_config",
    "set_config",
    "reset_config",
    # Cache
    "ResultCache",
    "RedisResultCache",
    "make_cache_key",
    # Providers
    "WeatherProvider",
    "TerrainProvider",
    "WeatherSeries",
    "TerrainSample",
    "OpenMeteoWeatherProvider",
    "OpenMeteoTerrainProvider",
    # Models
    "Coordinate",
    "BoundingBox",
    "AssessmentOptions",
    "AnomalyResult",
    "RiskScore",
    "RiskLevel",
    "RiskComponent",
    "Trend",
    "RiskAssessment",
    "GridCellAssessment",
    "TimeSeriesPointAssessment",
    "HeatmapCell",
    "ClimateIndexResult",
    "ExtremeEvent",
    "EventType",
    "EventSeverity",
    "WeatherAlert",
    # Climate indices and events
    "spi",
    "spei",
    "pdsi",
    "heat_index",
    "wind_chill",
    "detect_heat_waves",
    "detect_droughts",
    "detect_floods",
    "generate_alerts",
    # Exceptions
    "ClimaRiskException",
    "InvalidInput",
    "ConfigurationError",
    "DataUnavailable",
    "CacheUnavailable",
]
