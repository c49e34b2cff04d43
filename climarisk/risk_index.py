# -*- coding: utf-8 -*-
"""
Risk Index Combiner

Folds climate anomalies and model scores into a single composite climate
risk index in [0, 1].

Composite Formula:
    index = clamp(
        |precip_z| / s * w_precip
        + |temp_z| / s * w_temp
        + |veg_z| / s * w_veg
        + flood * w_flood
        + drought * w_drought
    )

    Where:
        - s is ``config.anomaly_saturation`` (3 standard deviations)
        - anomaly terms are not capped individually; only the sum is clamped
        - default weights: precip=0.25, temp=0.20, veg=0.20,
          flood=0.20, drought=0.15 (sum asserted to be 1.0)

Every term is non-negative and non-decreasing in its input magnitude, so the
index is monotonic in each argument when the others are held fixed.

Example:
    >>> from climarisk.risk_index import RiskIndexCombiner
    >>> combiner = RiskIndexCombiner()
    >>> combiner.composite_index(0, 0, 0, 1, 0)
    0.2
"""

from __future__ import annotations

import logging
import math
from typing import Dict, Optional

from climarisk.config import ClimaRiskConfig, get_config
from climarisk.exceptions import ConfigurationError, InvalidInput
from climarisk.models import RiskScore
from climarisk.normalization import classify_risk_level

logger = logging.getLogger(__name__)

__all__ = ["RiskIndexCombiner", "composite_index"]


class RiskIndexCombiner:
    """Fixed-weight aggregation of anomalies and model scores.

    Weights and the anomaly divisor are read once from the configuration
    at construction and are immutable afterwards.

    Attributes:
        weights: Mapping of term name to weight; sums to 1.0.
        saturation: Divisor applied to ``|z|`` for each anomaly term.
    """

    def __init__(self, config: Optional[ClimaRiskConfig] = None) -> None:
        """Initialize the combiner.

        Args:
            config: Engine configuration; the singleton when omitted.

        Raises:
            ConfigurationError: If the composite weights do not sum to 1.0.
        """
        self._config = config or get_config()
        cfg = self._config
        self._weights: Dict[str, float] = {
            "precipitation": cfg.weight_precipitation,
            "temperature": cfg.weight_temperature,
            "vegetation": cfg.weight_vegetation,
            "flood": cfg.weight_flood,
            "drought": cfg.weight_drought,
        }
        total = sum(self._weights.values())
        if abs(total - 1.0) > 1e-6:
            raise ConfigurationError(
                f"composite weights must sum to 1.0, got {total:.6f}",
                context={"weights": dict(self._weights)},
            )
        self._saturation = cfg.anomaly_saturation

        logger.debug(
            "RiskIndexCombiner initialized: weights=%s saturation=%.1f",
            self._weights,
            self._saturation,
        )

    @property
    def weights(self) -> Dict[str, float]:
        return dict(self._weights)

    @property
    def saturation(self) -> float:
        return self._saturation

    def _anomaly_term(self, name: str, z: float) -> float:
        if not math.isfinite(z):
            raise InvalidInput(f"{name} anomaly must be finite", field=name, value=z)
        return abs(z) / self._saturation

    @staticmethod
    def _score_term(name: str, score: float) -> float:
        if not math.isfinite(score):
            raise InvalidInput(f"{name} score must be finite", field=name, value=score)
        return max(0.0, min(1.0, score))

    def composite_index(
        self,
        precip_anomaly: float,
        temp_anomaly: float,
        vegetation_anomaly: float,
        flood_score: float,
        drought_score: float,
    ) -> float:
        """Composite climate risk index in [0, 1].

        Args:
            precip_anomaly: Precipitation z-score (sign ignored).
            temp_anomaly: Temperature z-score (sign ignored).
            vegetation_anomaly: Vegetation index z-score (sign ignored).
            flood_score: Flood model score in [0, 1].
            drought_score: Drought model score in [0, 1].

        Raises:
            InvalidInput: If any argument is NaN or infinite.
        """
        w = self._weights
        index = (
            self._anomaly_term("precipitation", precip_anomaly) * w["precipitation"]
            + self._anomaly_term("temperature", temp_anomaly) * w["temperature"]
            + self._anomaly_term("vegetation", vegetation_anomaly) * w["vegetation"]
            + self._score_term("flood", flood_score) * w["flood"]
            + self._score_term("drought", drought_score) * w["drought"]
        )
        return max(0.0, min(1.0, index))

    def composite_score(
        self,
        precip_anomaly: float,
        temp_anomaly: float,
        vegetation_anomaly: float,
        flood_score: float,
        drought_score: float,
        confidence: float = 1.0,
    ) -> RiskScore:
        """:meth:`composite_index` wrapped as a :class:`RiskScore`."""
        value = self.composite_index(
            precip_anomaly,
            temp_anomaly,
            vegetation_anomaly,
            flood_score,
            drought_score,
        )
        return RiskScore(
            value=value,
            level=classify_risk_level(value, self._config.risk_breakpoints),
            confidence=max(0.0, min(1.0, confidence)),
        )


def composite_index(
    precip_anomaly: float,
    temp_anomaly: float,
    vegetation_anomaly: float,
    flood_score: float,
    drought_score: float,
    config: Optional[ClimaRiskConfig] = None,
) -> float:
    """Module-level shortcut for :meth:`RiskIndexCombiner.composite_index`."""
    return RiskIndexCombiner(config).composite_index(
        precip_anomaly, temp_anomaly, vegetation_anomaly, flood_score, drought_score
    )
