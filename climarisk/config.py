# -*- coding: utf-8 -*-
"""
ClimaRisk Engine Configuration

Centralized, immutable configuration for the climate risk analytics engine
covering:
- Logging and cache connection defaults
- Geodesy constants (Earth radius, kilometres per degree)
- Anomaly detection threshold and severity breakpoints
- Shared risk level breakpoints (low / medium / high / extreme)
- Composite index weights (precipitation, temperature, vegetation,
  flood, drought)
- Per-model sub-factor weights (flood, drought, landslide)
- Interpolation power and grid size limits
- Observation windows (history, recent, drought) and trend dead band
- Result cache TTL and capacity
- Batch concurrency, retry policy, and provider request timeout
- Prometheus metrics export toggle

Every component receives a ``ClimaRiskConfig`` at construction so weight and
threshold values are inspectable and overridable in tests rather than
hidden in module bodies.

All settings can be overridden via environment variables with the
``CLIMARISK_`` prefix (e.g. ``CLIMARISK_MAX_CONCURRENCY``,
``CLIMARISK_CACHE_TTL``). Tuple-valued settings accept a comma-separated
list (e.g. ``CLIMARISK_RISK_BREAKPOINTS=0.2,0.5,0.8``).

Environment Variable Reference (CLIMARISK_ prefix):
    CLIMARISK_LOG_LEVEL                  - Logging level (DEBUG/INFO/WARNING/ERROR)
    CLIMARISK_REDIS_URL                  - Redis connection URL for the shared cache
    CLIMARISK_EARTH_RADIUS_KM            - Mean Earth radius used by haversine
    CLIMARISK_KM_PER_DEGREE              - Kilometres per degree of latitude
    CLIMARISK_ANOMALY_THRESHOLD          - |z| above which a value is anomalous
    CLIMARISK_ANOMALY_SATURATION         - |z| treated as maximal in the composite
    CLIMARISK_SEVERITY_BREAKPOINTS       - |z| breakpoints for medium,high,extreme
    CLIMARISK_RISK_BREAKPOINTS           - Score breakpoints for medium,high,extreme
    CLIMARISK_WEIGHT_PRECIPITATION       - Composite weight for precipitation anomaly
    CLIMARISK_WEIGHT_TEMPERATURE         - Composite weight for temperature anomaly
    CLIMARISK_WEIGHT_VEGETATION          - Composite weight for vegetation anomaly
    CLIMARISK_WEIGHT_FLOOD               - Composite weight for flood score
    CLIMARISK_WEIGHT_DROUGHT             - Composite weight for drought score
    CLIMARISK_IDW_POWER                  - Inverse distance weighting exponent
    CLIMARISK_DEFAULT_GRID_SIZE          - Grid subdivisions when none is requested
    CLIMARISK_MAX_GRID_SIZE              - Largest accepted grid subdivision count
    CLIMARISK_HISTORY_DAYS               - Days of history fetched per assessment
    CLIMARISK_RECENT_DAYS                - Days in the recent (flood) window
    CLIMARISK_DROUGHT_DAYS               - Days in the drought accumulation window
    CLIMARISK_TREND_DELTA_MM             - Dead band (mm/day) for trend direction
    CLIMARISK_CACHE_TTL                  - Result cache time-to-live in seconds
    CLIMARISK_CACHE_MAX_ENTRIES          - In-memory cache capacity
    CLIMARISK_MAX_CONCURRENCY            - Concurrent elements in batch operations
    CLIMARISK_MAX_RETRIES                - Retries per failing provider fetch (0-2)
    CLIMARISK_RETRY_BASE_DELAY           - Base retry delay in seconds
    CLIMARISK_RETRY_MAX_DELAY            - Cap on retry delay in seconds
    CLIMARISK_REQUEST_TIMEOUT            - Provider HTTP timeout in seconds
    CLIMARISK_ENABLE_METRICS             - Enable Prometheus metrics export

Example:
    >>> from climarisk.config import get_config
    >>> cfg = get_config()
    >>> cfg.risk_breakpoints
    (0.25, 0.5, 0.75)

    >>> # Override for testing
    >>> from climarisk.config import ClimaRiskConfig, set_config, reset_config
    >>> set_config(ClimaRiskConfig(max_concurrency=2))
    >>> reset_config()  # teardown
"""

from __future__ import annotations

import logging
import os
import threading
from dataclasses import dataclass, fields
from typing import Any, Dict, Optional, Tuple

from climarisk.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Environment variable prefix
# ---------------------------------------------------------------------------

_ENV_PREFIX = "CLIMARISK_"

# ---------------------------------------------------------------------------
# Valid log levels
# ---------------------------------------------------------------------------

_VALID_LOG_LEVELS = frozenset(
    {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
)


# ---------------------------------------------------------------------------
# ClimaRiskConfig
# ---------------------------------------------------------------------------


@dataclass(frozen=True, repr=False)
class ClimaRiskConfig:
    """Complete configuration for the ClimaRisk analytics engine.

    Instances are immutable; build a new one (or use
    :func:`dataclasses.replace`) to change a value.

    Attributes:
        log_level: Logging verbosity level. Accepts DEBUG, INFO, WARNING,
            ERROR, or CRITICAL.
        redis_url: Redis connection URL for :class:`RedisResultCache`.
            Empty means the in-memory cache is used.
        earth_radius_km: Mean Earth radius for haversine distances.
        km_per_degree: Approximate kilometres per degree of latitude, used
            to build bounding boxes around a point.
        anomaly_threshold: ``|z|`` strictly above which an observation is
            flagged as anomalous.
        anomaly_saturation: Divisor applied to ``|z|`` when anomalies are
            folded into the composite index (3 standard deviations count
            as a full-weight term). Terms above it are not capped; only the
            final index is clamped.
        severity_breakpoints: ``|z|`` breakpoints (strictly exceeded) for
            medium, high and extreme severity.
        risk_breakpoints: Score breakpoints (reached or exceeded) for
            medium, high and extreme risk levels. Shared by every model and
            by the composite combiner.
        weight_precipitation: Composite weight of the precipitation anomaly.
        weight_temperature: Composite weight of the temperature anomaly.
        weight_vegetation: Composite weight of the vegetation anomaly.
        weight_flood: Composite weight of the flood model score.
        weight_drought: Composite weight of the drought model score.
        flood_weight_rainfall: Flood sub-factor weight for rainfall.
        flood_weight_elevation: Flood sub-factor weight for elevation.
        flood_weight_slope: Flood sub-factor weight for slope.
        drought_weight_deficit: Drought sub-factor weight for the
            precipitation deficit against baseline.
        drought_weight_temperature: Drought sub-factor weight for the
            temperature anomaly.
        drought_weight_low_rainfall: Drought sub-factor weight for low
            absolute rainfall.
        landslide_weight_slope: Landslide sub-factor weight for slope.
        landslide_weight_rainfall: Landslide sub-factor weight for rainfall.
        landslide_weight_soil: Landslide sub-factor weight for soil
            saturation.
        landslide_weight_history: Landslide sub-factor weight for historical
            event density.
        idw_power: Exponent applied to distance in inverse distance
            weighting.
        default_grid_size: Subdivisions per side when a caller does not
            request a grid size.
        max_grid_size: Largest subdivision count accepted by grid
            assessments.
        history_days: Days of weather history fetched per assessment.
        recent_days: Days in the recent window that drives flood intensity
            and the shared rainfall trend.
        drought_days: Days in the drought accumulation window.
        trend_delta_mm: Dead band in mm/day around the baseline inside which
            the rainfall trend is reported as stable.
        cache_ttl: TTL (seconds) for cached assessments.
        cache_max_entries: Capacity of the in-memory result cache.
        max_concurrency: Maximum elements processed concurrently by grid and
            time-series batches.
        max_retries: Retries for a failing provider fetch (0-2; 0 disables
            retrying).
        retry_base_delay: Base delay in seconds for capped exponential
            backoff between retries.
        retry_max_delay: Cap on the backoff delay in seconds.
        request_timeout: HTTP timeout in seconds for provider adapters.
        enable_metrics: When True, Prometheus metrics are recorded under the
            ``climarisk_`` prefix.
    """

    # -- Logging -------------------------------------------------------------
    log_level: str = "INFO"

    # -- Connections ---------------------------------------------------------
    redis_url: str = ""

    # -- Geodesy -------------------------------------------------------------
    earth_radius_km: float = 6371.0
    km_per_degree: float = 111.0

    # -- Anomaly detection ---------------------------------------------------
    anomaly_threshold: float = 2.0
    anomaly_saturation: float = 3.0
    severity_breakpoints: Tuple[float, float, float] = (1.0, 2.0, 3.0)

    # -- Risk level breakpoints ----------------------------------------------
    # value >= bp[2] -> extreme, >= bp[1] -> high, >= bp[0] -> medium
    risk_breakpoints: Tuple[float, float, float] = (0.25, 0.5, 0.75)

    # -- Composite index weights ---------------------------------------------
    # Must sum to 1.0 (validated in __post_init__)
    weight_precipitation: float = 0.25
    weight_temperature: float = 0.20
    weight_vegetation: float = 0.20
    weight_flood: float = 0.20
    weight_drought: float = 0.15

    # -- Flood model weights -------------------------------------------------
    flood_weight_rainfall: float = 0.5
    flood_weight_elevation: float = 0.3
    flood_weight_slope: float = 0.2

    # -- Drought model weights -----------------------------------------------
    drought_weight_deficit: float = 0.60
    drought_weight_temperature: float = 0.25
    drought_weight_low_rainfall: float = 0.15

    # -- Landslide model weights ---------------------------------------------
    landslide_weight_slope: float = 0.35
    landslide_weight_rainfall: float = 0.30
    landslide_weight_soil: float = 0.20
    landslide_weight_history: float = 0.15

    # -- Spatial -------------------------------------------------------------
    idw_power: float = 2.0
    default_grid_size: int = 10
    max_grid_size: int = 100

    # -- Observation windows -------------------------------------------------
    history_days: int = 365
    recent_days: int = 7
    drought_days: int = 30
    trend_delta_mm: float = 2.0

    # -- Result cache --------------------------------------------------------
    cache_ttl: int = 1800
    cache_max_entries: int = 10_000

    # -- Concurrency and retries ---------------------------------------------
    max_concurrency: int = 5
    max_retries: int = 2
    retry_base_delay: float = 0.5
    retry_max_delay: float = 4.0
    request_timeout: float = 30.0

    # -- Metrics export ------------------------------------------------------
    enable_metrics: bool = True

    # ------------------------------------------------------------------
    # Post-init validation
    # ------------------------------------------------------------------

    def __post_init__(self) -> None:
        """Validate configuration constraints after initialisation.

        Raises:
            ConfigurationError: If any value is outside its valid range or
                violates a relational constraint. The message lists all
                detected errors, not just the first one.
        """
        errors: list[str] = []

        # -- Logging ---------------------------------------------------------
        normalised_log = self.log_level.upper()
        if normalised_log not in _VALID_LOG_LEVELS:
            errors.append(
                f"log_level must be one of {sorted(_VALID_LOG_LEVELS)}, "
                f"got '{self.log_level}'"
            )
        else:
            object.__setattr__(self, "log_level", normalised_log)

        # Tuples may arrive as lists from callers
        object.__setattr__(
            self, "severity_breakpoints", tuple(self.severity_breakpoints)
        )
        object.__setattr__(self, "risk_breakpoints", tuple(self.risk_breakpoints))

        # -- Geodesy ---------------------------------------------------------
        if self.earth_radius_km <= 0:
            errors.append(
                f"earth_radius_km must be > 0, got {self.earth_radius_km}"
            )
        if self.km_per_degree <= 0:
            errors.append(
                f"km_per_degree must be > 0, got {self.km_per_degree}"
            )

        # -- Anomaly detection -----------------------------------------------
        if self.anomaly_threshold <= 0:
            errors.append(
                f"anomaly_threshold must be > 0, got {self.anomaly_threshold}"
            )
        if self.anomaly_saturation <= 0:
            errors.append(
                f"anomaly_saturation must be > 0, "
                f"got {self.anomaly_saturation}"
            )
        errors.extend(
            _check_breakpoints("severity_breakpoints", self.severity_breakpoints)
        )

        # -- Risk breakpoints ------------------------------------------------
        errors.extend(
            _check_breakpoints("risk_breakpoints", self.risk_breakpoints)
        )
        if len(self.risk_breakpoints) == 3 and not all(
            0.0 < bp < 1.0 for bp in self.risk_breakpoints
        ):
            errors.append(
                f"risk_breakpoints must lie strictly inside (0, 1), "
                f"got {self.risk_breakpoints}"
            )

        # -- Weight groups ---------------------------------------------------
        for group, weights in self.weight_groups().items():
            for wname, wval in weights.items():
                if not (0.0 <= wval <= 1.0):
                    errors.append(
                        f"{wname} must be in [0.0, 1.0], got {wval}"
                    )
            total = sum(weights.values())
            if abs(total - 1.0) > 1e-6:
                detail = ", ".join(f"{k}={v}" for k, v in weights.items())
                errors.append(
                    f"{group} weights must sum to 1.0, "
                    f"got {total:.6f} ({detail})"
                )

        # -- Spatial ---------------------------------------------------------
        if self.idw_power <= 0:
            errors.append(f"idw_power must be > 0, got {self.idw_power}")
        if self.max_grid_size <= 0:
            errors.append(
                f"max_grid_size must be > 0, got {self.max_grid_size}"
            )
        if not (0 < self.default_grid_size <= max(self.max_grid_size, 1)):
            errors.append(
                f"default_grid_size must be in [1, max_grid_size], "
                f"got {self.default_grid_size}"
            )

        # -- Observation windows ---------------------------------------------
        for wname, wval in [
            ("history_days", self.history_days),
            ("recent_days", self.recent_days),
            ("drought_days", self.drought_days),
        ]:
            if wval <= 0:
                errors.append(f"{wname} must be > 0, got {wval}")
        if self.recent_days > self.history_days:
            errors.append(
                f"recent_days ({self.recent_days}) must not exceed "
                f"history_days ({self.history_days})"
            )
        if self.drought_days > self.history_days:
            errors.append(
                f"drought_days ({self.drought_days}) must not exceed "
                f"history_days ({self.history_days})"
            )
        if self.trend_delta_mm < 0:
            errors.append(
                f"trend_delta_mm must be >= 0, got {self.trend_delta_mm}"
            )

        # -- Cache -----------------------------------------------------------
        if self.cache_ttl <= 0:
            errors.append(f"cache_ttl must be > 0, got {self.cache_ttl}")
        if self.cache_max_entries <= 0:
            errors.append(
                f"cache_max_entries must be > 0, "
                f"got {self.cache_max_entries}"
            )

        # -- Concurrency and retries -----------------------------------------
        if self.max_concurrency <= 0:
            errors.append(
                f"max_concurrency must be > 0, got {self.max_concurrency}"
            )
        if not (0 <= self.max_retries <= 2):
            errors.append(
                f"max_retries must be in [0, 2], got {self.max_retries}"
            )
        if self.retry_base_delay < 0:
            errors.append(
                f"retry_base_delay must be >= 0, got {self.retry_base_delay}"
            )
        if self.retry_max_delay < self.retry_base_delay:
            errors.append(
                f"retry_max_delay ({self.retry_max_delay}) must be >= "
                f"retry_base_delay ({self.retry_base_delay})"
            )
        if self.request_timeout <= 0:
            errors.append(
                f"request_timeout must be > 0, got {self.request_timeout}"
            )

        if errors:
            raise ConfigurationError(
                "ClimaRiskConfig validation failed:\n"
                + "\n".join(f"  - {e}" for e in errors),
                errors=errors,
            )

        logger.debug(
            "ClimaRiskConfig validated successfully: "
            "risk_breakpoints=%s, severity_breakpoints=%s, "
            "composite=(precip=%.2f, temp=%.2f, veg=%.2f, flood=%.2f, "
            "drought=%.2f), cache_ttl=%ds, max_concurrency=%d, "
            "max_retries=%d, metrics=%s",
            self.risk_breakpoints,
            self.severity_breakpoints,
            self.weight_precipitation,
            self.weight_temperature,
            self.weight_vegetation,
            self.weight_flood,
            self.weight_drought,
            self.cache_ttl,
            self.max_concurrency,
            self.max_retries,
            self.enable_metrics,
        )

    # ------------------------------------------------------------------
    # Derived views
    # ------------------------------------------------------------------

    def weight_groups(self) -> Dict[str, Dict[str, float]]:
        """Return every weight group that must sum to 1.0."""
        return {
            "composite": {
                "weight_precipitation": self.weight_precipitation,
                "weight_temperature": self.weight_temperature,
                "weight_vegetation": self.weight_vegetation,
                "weight_flood": self.weight_flood,
                "weight_drought": self.weight_drought,
            },
            "flood": {
                "flood_weight_rainfall": self.flood_weight_rainfall,
                "flood_weight_elevation": self.flood_weight_elevation,
                "flood_weight_slope": self.flood_weight_slope,
            },
            "drought": {
                "drought_weight_deficit": self.drought_weight_deficit,
                "drought_weight_temperature": self.drought_weight_temperature,
                "drought_weight_low_rainfall": self.drought_weight_low_rainfall,
            },
            "landslide": {
                "landslide_weight_slope": self.landslide_weight_slope,
                "landslide_weight_rainfall": self.landslide_weight_rainfall,
                "landslide_weight_soil": self.landslide_weight_soil,
                "landslide_weight_history": self.landslide_weight_history,
            },
        }

    # ------------------------------------------------------------------
    # Factory helpers
    # ------------------------------------------------------------------

    @classmethod
    def from_env(cls) -> ClimaRiskConfig:
        """Build a ClimaRiskConfig from environment variables.

        Every field can be overridden via ``CLIMARISK_<FIELD_UPPER>``.
        Boolean values accept ``true/1/yes`` (case-insensitive).
        Unknown or malformed values fall back to the class-level default
        and emit a WARNING log so the issue is visible in deployment logs.

        Returns:
            Populated ClimaRiskConfig instance, validated via
            ``__post_init__``.

        Example:
            >>> import os
            >>> os.environ["CLIMARISK_MAX_CONCURRENCY"] = "8"
            >>> ClimaRiskConfig.from_env().max_concurrency
            8
        """
        prefix = _ENV_PREFIX

        def _env(name: str) -> Optional[str]:
            return os.environ.get(f"{prefix}{name}")

        def _bool(name: str, default: bool) -> bool:
            val = _env(name)
            if val is None:
                return default
            return val.strip().lower() in ("true", "1", "yes")

        def _int(name: str, default: int) -> int:
            val = _env(name)
            if val is None:
                return default
            try:
                return int(val.strip())
            except ValueError:
                logger.warning(
                    "Invalid integer for %s%s=%r, using default %d",
                    prefix,
                    name,
                    val,
                    default,
                )
                return default

        def _float(name: str, default: float) -> float:
            val = _env(name)
            if val is None:
                return default
            try:
                return float(val.strip())
            except ValueError:
                logger.warning(
                    "Invalid float for %s%s=%r, using default %f",
                    prefix,
                    name,
                    val,
                    default,
                )
                return default

        def _floats(name: str, default: Tuple[float, ...]) -> Tuple[float, ...]:
            val = _env(name)
            if val is None:
                return default
            try:
                return tuple(float(p.strip()) for p in val.split(",") if p.strip())
            except ValueError:
                logger.warning(
                    "Invalid float list for %s%s=%r, using default %s",
                    prefix,
                    name,
                    val,
                    default,
                )
                return default

        def _str(name: str, default: str) -> str:
            val = _env(name)
            if val is None:
                return default
            return val.strip()

        parsers = {bool: _bool, int: _int, float: _float, str: _str}
        kwargs: Dict[str, Any] = {}
        for f in fields(cls):
            default = f.default
            if isinstance(default, tuple):
                kwargs[f.name] = _floats(f.name.upper(), default)
            else:
                kwargs[f.name] = parsers[type(default)](f.name.upper(), default)

        config = cls(**kwargs)

        logger.info(
            "ClimaRiskConfig loaded: "
            "risk_breakpoints=%s, history_days=%d, recent_days=%d, "
            "cache_ttl=%ds, cache_max_entries=%d, redis=%s, "
            "max_concurrency=%d, max_retries=%d, metrics=%s",
            config.risk_breakpoints,
            config.history_days,
            config.recent_days,
            config.cache_ttl,
            config.cache_max_entries,
            bool(config.redis_url),
            config.max_concurrency,
            config.max_retries,
            config.enable_metrics,
        )
        return config

    # ------------------------------------------------------------------
    # Serialisation helpers
    # ------------------------------------------------------------------

    def to_dict(self) -> Dict[str, Any]:
        """Serialise the configuration to a plain Python dictionary.

        ``redis_url`` is redacted so the result is safe to log.

        Example:
            >>> ClimaRiskConfig(redis_url="redis://:secret@host").to_dict()["redis_url"]
            '***'
        """
        result: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, tuple):
                value = list(value)
            result[f.name] = value
        result["redis_url"] = "***" if self.redis_url else ""
        return result

    def __repr__(self) -> str:
        d = self.to_dict()
        pairs = ", ".join(f"{k}={v!r}" for k, v in d.items())
        return f"ClimaRiskConfig({pairs})"


def _check_breakpoints(name: str, values: Tuple[float, ...]) -> list:
    """Validate a three-element strictly increasing breakpoint tuple."""
    if len(values) != 3:
        return [f"{name} must have exactly 3 values, got {len(values)}"]
    if not (values[0] < values[1] < values[2]):
        return [f"{name} must be strictly increasing, got {values}"]
    if values[0] <= 0:
        return [f"{name} must be positive, got {values}"]
    return []


# ---------------------------------------------------------------------------
# Logging setup
# ---------------------------------------------------------------------------


def configure_logging(config: Optional[ClimaRiskConfig] = None) -> None:
    """Apply ``config.log_level`` to the ``climarisk`` logger hierarchy."""
    cfg = config or get_config()
    logging.getLogger("climarisk").setLevel(cfg.log_level)


# ---------------------------------------------------------------------------
# Thread-safe singleton accessor
# ---------------------------------------------------------------------------

_config_instance: Optional[ClimaRiskConfig] = None
_config_lock = threading.Lock()


def get_config() -> ClimaRiskConfig:
    """Return the singleton ClimaRiskConfig, creating from env if needed.

    Uses double-checked locking so the hot path takes no lock.
    """
    global _config_instance
    if _config_instance is None:
        with _config_lock:
            if _config_instance is None:
                _config_instance = ClimaRiskConfig.from_env()
    return _config_instance


def set_config(config: ClimaRiskConfig) -> None:
    """Replace the singleton ClimaRiskConfig.

    Args:
        config: New :class:`ClimaRiskConfig` to install as the singleton.
    """
    global _config_instance
    with _config_lock:
        _config_instance = config
    logger.info(
        "ClimaRiskConfig replaced programmatically: "
        "risk_breakpoints=%s, max_concurrency=%d, cache_ttl=%ds",
        config.risk_breakpoints,
        config.max_concurrency,
        config.cache_ttl,
    )


def reset_config() -> None:
    """Reset the singleton so the next :func:`get_config` re-reads env vars."""
    global _config_instance
    with _config_lock:
        _config_instance = None
    logger.debug("ClimaRiskConfig singleton reset")


# ---------------------------------------------------------------------------
# Public surface
# ---------------------------------------------------------------------------

__all__ = [
    "ClimaRiskConfig",
    "configure_logging",
    "get_config",
    "set_config",
    "reset_config",
]
