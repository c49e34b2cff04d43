# -*- coding: utf-8 -*-
"""
Climate Risk Engine

Async entry points that pull raw samples from injected providers, run the
statistics, risk models and composite combiner, and cache one assessment per
location and observation date.

Operations:
    assess_point(coordinates, options)                    -> RiskAssessment
    assess_grid(bbox, grid_size, options)                 -> [GridCellAssessment]
    assess_time_series(coordinates, date_range,
                       interval_days, options)            -> [TimeSeriesPointAssessment]
    heatmap(bbox, cells, grid_size, component)            -> [HeatmapCell]

Pipeline per location:
    1. Validate inputs (InvalidInput, before any I/O)
    2. Cache lookup keyed by (operation, location, parameters)
    3. Fetch weather history and terrain concurrently, with capped
       exponential retries per fetch
    4. Precipitation / temperature anomalies, flood, drought and landslide
       models, composite index
    5. Cache write (failures are logged and ignored)

Batches (grid, time series):
    Each element is an independent task keyed and cached on its own. At most
    ``config.max_concurrency`` elements run at once. A failing element is
    logged and dropped, never failing the batch. Element tasks are shielded
    from caller cancellation so fetches already in flight still complete and
    populate the cache.

Example:
    >>> from climarisk import ClimateRiskEngine
    >>> from climarisk.providers import OpenMeteoWeatherProvider, OpenMeteoTerrainProvider
    >>> engine = ClimateRiskEngine(OpenMeteoWeatherProvider(), OpenMeteoTerrainProvider())
    >>> assessment = await engine.assess_point({"lat": -1.9441, "lon": 30.0619})
    >>> assessment.overall.level
    <RiskLevel.MEDIUM: 'medium'>
"""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import date, datetime, timedelta, timezone
from typing import (
    Any,
    Awaitable,
    Callable,
    List,
    Mapping,
    Optional,
    Sequence,
    Set,
    Tuple,
    TypeVar,
    Union,
)

from pydantic import ValidationError

from climarisk import metrics
from climarisk.cache import CacheBackend, ResultCache, make_cache_key
from climarisk.config import ClimaRiskConfig, get_config
from climarisk.exceptions import DataUnavailable, InvalidInput, is_retriable
from climarisk.geometry import grid
from climarisk.interpolation import Sample, heatmap
from climarisk.models import (
    AnomalyResult,
    AssessmentOptions,
    BoundingBox,
    Coordinate,
    GridCellAssessment,
    HeatmapCell,
    RiskAssessment,
    RiskComponent,
    TimeSeriesPointAssessment,
)
from climarisk.providers import TerrainProvider, TerrainSample, WeatherProvider, WeatherSeries
from climarisk.risk_index import RiskIndexCombiner
from climarisk.risk_models import (
    DroughtInputs,
    DroughtRiskModel,
    FloodInputs,
    FloodRiskModel,
    LandslideInputs,
    LandslideRiskModel,
)
from climarisk.statistics import block_means, calculate_anomaly, clean, mean, rainfall_trend

logger = logging.getLogger(__name__)

__all__ = ["ClimateRiskEngine", "DAILY_FIELDS", "HOURLY_FIELDS"]

T = TypeVar("T")
I = TypeVar("I")

DAILY_FIELDS = ("precipitation_sum", "temperature_2m_mean")
HOURLY_FIELDS = ("soil_moisture_0_to_10cm",)

CoordinateLike = Union[Coordinate, Mapping[str, float], Tuple[float, float]]
BoundingBoxLike = Union[BoundingBox, Mapping[str, float]]


# ---------------------------------------------------------------------------
# Input coercion
# ---------------------------------------------------------------------------


def _coerce_coordinate(value: CoordinateLike) -> Coordinate:
    """Accept a Coordinate, a ``{lat, lon}`` mapping, or a ``(lat, lon)`` pair."""
    if isinstance(value, Coordinate):
        return value
    try:
        if isinstance(value, Mapping):
            return Coordinate(**value)
        lat, lon = value
        return Coordinate(lat=lat, lon=lon)
    except (ValidationError, TypeError, ValueError) as exc:
        raise InvalidInput(
            f"invalid coordinate: {exc}", field="coordinates", value=repr(value)
        ) from exc


def _coerce_bbox(value: BoundingBoxLike) -> BoundingBox:
    if isinstance(value, BoundingBox):
        return value
    try:
        return BoundingBox(**value)
    except (ValidationError, TypeError) as exc:
        raise InvalidInput(
            f"invalid bounding box: {exc}", field="bbox", value=repr(value)
        ) from exc


def _today() -> date:
    return datetime.now(timezone.utc).date()


# ---------------------------------------------------------------------------
# ClimateRiskEngine
# ---------------------------------------------------------------------------


class ClimateRiskEngine:
    """Point, grid and time-series climate risk assessments.

    Attributes:
        config: Immutable engine configuration.
        cache: Result cache backend (in-memory unless one is injected).
    """

    def __init__(
        self,
        weather_provider: WeatherProvider,
        terrain_provider: TerrainProvider,
        cache: Optional[CacheBackend] = None,
        config: Optional[ClimaRiskConfig] = None,
    ) -> None:
        """Initialize the engine.

        Args:
            weather_provider: Historical weather source.
            terrain_provider: Elevation and slope source.
            cache: Result cache; a bounded in-memory cache when omitted.
            config: Engine configuration; the singleton when omitted.
        """
        self._config = config or get_config()
        self._weather = weather_provider
        self._terrain = terrain_provider
        self._cache = cache if cache is not None else ResultCache(config=self._config)

        self._flood = FloodRiskModel(self._config)
        self._drought = DroughtRiskModel(self._config)
        self._landslide = LandslideRiskModel(self._config)
        self._combiner = RiskIndexCombiner(self._config)

        # Strong references so shielded batch tasks are not garbage collected
        self._inflight: Set[asyncio.Future] = set()

        logger.info(
            "ClimateRiskEngine initialized: cache=%s, max_concurrency=%d, "
            "max_retries=%d, history_days=%d",
            type(self._cache).__name__,
            self._config.max_concurrency,
            self._config.max_retries,
            self._config.history_days,
        )

    @property
    def config(self) -> ClimaRiskConfig:
        return self._config

    @property
    def cache(self) -> CacheBackend:
        return self._cache

    async def wait_for_inflight(self) -> None:
        """Wait for batch elements still running after their batch was cancelled."""
        pending = list(self._inflight)
        if pending:
            logger.info("Waiting for %d in-flight batch elements", len(pending))
            await asyncio.gather(*pending, return_exceptions=True)

    # ==================================================================
    # PUBLIC API -- 1. assess_point
    # ==================================================================

    async def assess_point(
        self,
        coordinates: CoordinateLike,
        options: Optional[AssessmentOptions] = None,
    ) -> RiskAssessment:
        """Assess flood, drought, landslide and composite risk at a point.

        Args:
            coordinates: Location to assess.
            options: Per-request knobs; defaults apply when omitted.

        Returns:
            Frozen RiskAssessment.

        Raises:
            InvalidInput: Coordinates out of range (before any I/O).
            DataUnavailable: A provider fetch failed after retries.
        """
        point = _coerce_coordinate(coordinates)
        opts = options or AssessmentOptions()
        started = time.perf_counter()
        try:
            assessment = await self._assess(point, opts)
        except DataUnavailable:
            self._metric(metrics.record_assessment, "point", "failure")
            raise
        self._metric(metrics.record_assessment, "point", "success")
        self._metric(
            metrics.observe_assessment_duration, "point", time.perf_counter() - started
        )
        return assessment

    # ==================================================================
    # PUBLIC API -- 2. assess_grid
    # ==================================================================

    async def assess_grid(
        self,
        bbox: BoundingBoxLike,
        grid_size: Optional[int] = None,
        options: Optional[AssessmentOptions] = None,
    ) -> List[GridCellAssessment]:
        """Assess every point of a ``(grid_size + 1)^2`` grid over ``bbox``.

        Cells whose fetch fails are dropped from the result.

        Raises:
            InvalidInput: Bad bounding box, or ``grid_size`` outside
                ``[1, config.max_grid_size]``.
        """
        box = _coerce_bbox(bbox)
        size = self._config.default_grid_size if grid_size is None else grid_size
        if (
            isinstance(size, bool)
            or not isinstance(size, int)
            or not 0 < size <= self._config.max_grid_size
        ):
            raise InvalidInput(
                f"grid_size must be an integer in [1, {self._config.max_grid_size}]",
                field="grid_size",
                value=size,
            )
        opts = options or AssessmentOptions()
        points = grid(box, size)

        started = time.perf_counter()
        results = await self._run_batch(
            "grid", points, lambda p: self._assess(p, opts)
        )
        self._metric(metrics.record_assessment, "grid", "success")
        self._metric(
            metrics.observe_assessment_duration, "grid", time.perf_counter() - started
        )
        logger.info(
            "Grid assessment complete: %d/%d cells (grid_size=%d)",
            len(results),
            len(points),
            size,
        )
        return [
            GridCellAssessment(coordinates=p, assessment=a) for p, a in results
        ]

    # ==================================================================
    # PUBLIC API -- 3. assess_time_series
    # ==================================================================

    async def assess_time_series(
        self,
        coordinates: CoordinateLike,
        date_range: Tuple[date, date],
        interval_days: int,
        options: Optional[AssessmentOptions] = None,
    ) -> List[TimeSeriesPointAssessment]:
        """Assess one location as of every ``interval_days`` within ``date_range``.

        Dates run from the range start up to and including the end. Dates
        whose fetch fails are dropped from the result.

        Raises:
            InvalidInput: Bad coordinates, an inverted range, or a
                non-positive interval.
        """
        point = _coerce_coordinate(coordinates)
        try:
            start, end = date_range
        except (TypeError, ValueError) as exc:
            raise InvalidInput(
                "date_range must be a (start, end) pair",
                field="date_range",
                value=repr(date_range),
            ) from exc
        if not isinstance(start, date) or not isinstance(end, date):
            raise InvalidInput(
                "date_range bounds must be dates", field="date_range", value=repr(date_range)
            )
        if end < start:
            raise InvalidInput(
                "date_range end precedes start", field="date_range", value=repr(date_range)
            )
        if isinstance(interval_days, bool) or not isinstance(interval_days, int) or interval_days <= 0:
            raise InvalidInput(
                "interval_days must be a positive integer",
                field="interval_days",
                value=interval_days,
            )

        dates: List[date] = []
        current = start
        while current <= end:
            dates.append(current)
            current += timedelta(days=interval_days)

        base = options or AssessmentOptions()
        started = time.perf_counter()
        results = await self._run_batch(
            "time_series",
            dates,
            lambda d: self._assess(point, base.model_copy(update={"as_of": d})),
        )
        self._metric(metrics.record_assessment, "time_series", "success")
        self._metric(
            metrics.observe_assessment_duration,
            "time_series",
            time.perf_counter() - started,
        )
        logger.info(
            "Time-series assessment complete: %d/%d dates (interval=%dd)",
            len(results),
            len(dates),
            interval_days,
        )
        return [
            TimeSeriesPointAssessment(date=d, assessment=a) for d, a in results
        ]

    # ==================================================================
    # PUBLIC API -- 4. heatmap
    # ==================================================================

    def heatmap(
        self,
        bbox: BoundingBoxLike,
        cells: Sequence[GridCellAssessment],
        grid_size: Optional[int] = None,
        component: Optional[RiskComponent] = None,
    ) -> List[HeatmapCell]:
        """Interpolate assessed cells onto a (usually finer) grid.

        Args:
            bbox: Area to cover.
            cells: Assessed points, e.g. from :meth:`assess_grid`.
            grid_size: Output subdivisions; ``config.default_grid_size`` when
                omitted.
            component: Component to map; the overall score when omitted.
        """
        box = _coerce_bbox(bbox)
        size = self._config.default_grid_size if grid_size is None else grid_size
        samples = [
            Sample(
                cell.coordinates,
                cell.assessment.overall.value
                if component is None
                else cell.assessment.components[component].value,
            )
            for cell in cells
        ]
        return heatmap(box, samples, size, config=self._config)

    # ------------------------------------------------------------------
    # Single-location pipeline
    # ------------------------------------------------------------------

    async def _assess(self, point: Coordinate, opts: AssessmentOptions) -> RiskAssessment:
        cfg = self._config
        as_of = opts.as_of or _today()
        history_days = opts.history_days or cfg.history_days

        key = make_cache_key(
            "point",
            {
                "lat": point.lat,
                "lon": point.lon,
                "as_of": as_of,
                "history_days": history_days,
                "ndvi": opts.ndvi,
                "vegetation_anomaly": opts.vegetation_anomaly,
                "landslide_density": opts.historical_landslide_density,
            },
        )

        if opts.use_cache:
            cached = await self._cache_get(key)
            if cached is not None:
                try:
                    return RiskAssessment.model_validate(cached)
                except ValidationError as exc:
                    logger.warning("Discarding unreadable cache entry %s: %s", key, exc)

        start_date = as_of - timedelta(days=history_days - 1)
        weather, terrain = await asyncio.gather(
            self._with_retries(
                "weather",
                lambda: self._weather.fetch(
                    point.lat,
                    point.lon,
                    start_date,
                    as_of,
                    list(DAILY_FIELDS),
                    list(HOURLY_FIELDS),
                ),
            ),
            self._with_retries("terrain", lambda: self._terrain.fetch(point)),
        )

        assessment = self._build_assessment(point, as_of, weather, terrain, opts)

        if opts.use_cache:
            await self._cache_set(
                key,
                assessment.model_dump(mode="json"),
                opts.cache_ttl or cfg.cache_ttl,
            )
        return assessment

    def _build_assessment(
        self,
        point: Coordinate,
        as_of: date,
        weather: WeatherSeries,
        terrain: TerrainSample,
        opts: AssessmentOptions,
    ) -> RiskAssessment:
        cfg = self._config
        rain = clean(weather.daily.get("precipitation_sum", []))
        temp = clean(weather.daily.get("temperature_2m_mean", []))
        soil = clean(weather.hourly.get("soil_moisture_0_to_10cm", []))

        if not rain:
            raise DataUnavailable(
                "weather history contains no rainfall observations",
                provider="weather",
                context={"lat": point.lat, "lon": point.lon, "as_of": as_of.isoformat()},
            )

        # Baseline excludes the drought window when there is enough history
        split = cfg.drought_days if len(rain) > cfg.drought_days else 0
        baseline = mean(rain[:-split] if split else rain)
        model_rain = rain[-cfg.drought_days:]

        temperature_anomaly_c = None
        if len(temp) > cfg.drought_days:
            temperature_anomaly_c = (
                mean(temp[-cfg.drought_days:]) - mean(temp[:-cfg.drought_days])
            )

        anomalies = {}
        precip_anomaly = self._window_anomaly(rain)
        if precip_anomaly is not None:
            anomalies["precipitation"] = precip_anomaly
        temp_anomaly = self._window_anomaly(temp)
        if temp_anomaly is not None:
            anomalies["temperature"] = temp_anomaly

        soil_moisture = None
        if soil:
            soil_moisture = max(0.0, min(1.0, mean(soil[-24:])))

        flood = self._flood.evaluate(
            FloodInputs(
                daily_rainfall=model_rain,
                baseline_mm_per_day=baseline,
                elevation_m=terrain.elevation_m,
                slope_degrees=terrain.slope_degrees,
                ndvi=opts.ndvi,
            )
        )
        drought = self._drought.evaluate(
            DroughtInputs(
                daily_rainfall=model_rain,
                baseline_mm_per_day=baseline,
                temperature_anomaly_c=temperature_anomaly_c,
            )
        )
        landslide = self._landslide.evaluate(
            LandslideInputs(
                slope_degrees=terrain.slope_degrees,
                aspect_degrees=terrain.aspect_degrees,
                rainfall_24h=rain[-1],
                rainfall_72h=sum(rain[-3:]),
                rainfall_7d=sum(rain[-7:]),
                soil_moisture=soil_moisture,
                historical_density=opts.historical_landslide_density,
                ndvi=opts.ndvi,
            )
        )

        overall = self._combiner.composite_score(
            precip_anomaly.anomaly if precip_anomaly else 0.0,
            temp_anomaly.anomaly if temp_anomaly else 0.0,
            opts.vegetation_anomaly,
            flood.score.value,
            drought.score.value,
            confidence=(flood.score.confidence + drought.score.confidence) / 2,
        )

        results = {
            RiskComponent.FLOOD: flood,
            RiskComponent.DROUGHT: drought,
            RiskComponent.LANDSLIDE: landslide,
        }
        for component, result in results.items():
            self._metric(metrics.record_risk_level, component.value, result.score.level.value)
        self._metric(metrics.record_risk_level, "overall", overall.level.value)

        logger.debug(
            "Assessed (%.4f, %.4f) as of %s: overall=%.3f (%s) flood=%.3f "
            "drought=%.3f landslide=%.3f",
            point.lat,
            point.lon,
            as_of,
            overall.value,
            overall.level.value,
            flood.score.value,
            drought.score.value,
            landslide.score.value,
        )

        return RiskAssessment(
            location=point,
            components={c: r.score for c, r in results.items()},
            overall=overall,
            factors={c: list(r.factors) for c, r in results.items()},
            trends={c: r.trend for c, r in results.items()},
            anomalies=anomalies,
            rainfall_trend=rainfall_trend(rain, cfg.trend_delta_mm),
            as_of=as_of,
        )

    def _window_anomaly(self, values: List[float]) -> Optional[AnomalyResult]:
        """Anomaly of the recent window mean against earlier window means."""
        window = self._config.recent_days
        if len(values) < 2 * window:
            return None
        history = block_means(values[:-window], window)
        if not history:
            return None
        return calculate_anomaly(mean(values[-window:]), history, config=self._config)

    # ------------------------------------------------------------------
    # Batches
    # ------------------------------------------------------------------

    async def _run_batch(
        self,
        operation: str,
        items: Sequence[I],
        work: Callable[[I], Awaitable[T]],
    ) -> List[Tuple[I, T]]:
        """Run ``work`` for every item under the concurrency bound.

        Returns (item, result) pairs for the items that succeeded, in input
        order.
        """
        semaphore = asyncio.Semaphore(self._config.max_concurrency)

        async def run(item: I) -> T:
            async with semaphore:
                return await work(item)

        tasks = [asyncio.ensure_future(run(item)) for item in items]
        for task in tasks:
            self._inflight.add(task)
            task.add_done_callback(self._element_done)

        outcomes = await asyncio.gather(
            *(asyncio.shield(task) for task in tasks), return_exceptions=True
        )

        succeeded: List[Tuple[I, T]] = []
        for item, outcome in zip(items, outcomes):
            if isinstance(outcome, BaseException):
                logger.warning(
                    "Dropping %s element %s: %s: %s",
                    operation,
                    item,
                    type(outcome).__name__,
                    outcome,
                )
                self._metric(metrics.record_dropped_element, operation)
                continue
            succeeded.append((item, outcome))
        return succeeded

    def _element_done(self, task: asyncio.Future) -> None:
        """Untrack a finished element, retrieving its outcome.

        After the caller is cancelled nobody awaits the shielded task, so its
        exception is consumed here.
        """
        self._inflight.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.debug("Batch element finished with %s: %s", type(exc).__name__, exc)

    # ------------------------------------------------------------------
    # Provider fetches
    # ------------------------------------------------------------------

    async def _with_retries(self, provider: str, fetch: Callable[[], Awaitable[T]]) -> T:
        """Call ``fetch`` with capped exponential backoff.

        Raises:
            DataUnavailable: Once retries are exhausted or the failure is not
                retriable.
        """
        cfg = self._config
        last_error: Optional[BaseException] = None
        attempts = 0
        for attempt in range(cfg.max_retries + 1):
            attempts = attempt + 1
            try:
                result = await fetch()
            except InvalidInput:
                raise
            except Exception as exc:
                last_error = exc
                self._metric(metrics.record_provider_fetch, provider, "failure")
                if attempt >= cfg.max_retries or not is_retriable(exc):
                    break
                delay = min(cfg.retry_base_delay * (2 ** attempt), cfg.retry_max_delay)
                logger.warning(
                    "%s fetch failed (attempt %d/%d), retrying in %.2fs: %s",
                    provider,
                    attempts,
                    cfg.max_retries + 1,
                    delay,
                    exc,
                )
                self._metric(metrics.record_provider_fetch, provider, "retry")
                await asyncio.sleep(delay)
            else:
                self._metric(metrics.record_provider_fetch, provider, "success")
                return result

        raise DataUnavailable(
            f"{provider} data unavailable after {attempts} attempt(s): {last_error}",
            provider=provider,
            attempts=attempts,
            cause=last_error,
        ) from last_error

    # ------------------------------------------------------------------
    # Cache access (fails open)
    # ------------------------------------------------------------------

    async def _cache_get(self, key: str) -> Optional[Any]:
        try:
            value = await self._cache.get(key)
        except Exception as exc:
            logger.warning("Cache read failed for %s, treating as miss: %s", key, exc)
            self._metric(metrics.record_cache, "error")
            return None
        self._metric(metrics.record_cache, "miss" if value is None else "hit")
        return value

    async def _cache_set(self, key: str, value: Any, ttl: int) -> None:
        try:
            await self._cache.set(key, value, ttl)
        except Exception as exc:
            logger.warning("Cache write failed for %s, skipping: %s", key, exc)
            self._metric(metrics.record_cache, "error")

    # ------------------------------------------------------------------
    # Metrics
    # ------------------------------------------------------------------

    def _metric(self, record: Callable[..., None], *args: Any) -> None:
        """Record a metric if enabled; metric failures never fail a request."""
        if not self._config.enable_metrics:
            return
        try:
            record(*args)
        except Exception as exc:
            logger.debug("Metric %s failed: %s", record.__name__, exc)
