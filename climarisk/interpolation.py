# -*- coding: utf-8 -*-
"""
Spatial Interpolator

Inverse distance weighting (IDW) of sparse ``(point, value)`` samples and
heatmaps over a uniform grid.

Rules:
    - no samples: 0.0
    - one sample: its value, whatever the distance
    - a sample exactly at the query point: that sample's value verbatim,
      with no blending of the others
    - otherwise: sum(value * w) / sum(w), w = 1 / distance ** power

Heatmaps apply :func:`interpolate` at every point of
:func:`climarisk.geometry.grid`; there is no smoothing or kriging.

Example:
    >>> from climarisk.interpolation import Sample, interpolate
    >>> from climarisk.models import Coordinate
    >>> p = Coordinate(lat=0, lon=0)
    >>> interpolate(p, [Sample(p, 7.0), Sample(Coordinate(lat=1, lon=1), 99.0)])
    7.0
"""

from __future__ import annotations

import logging
from typing import List, NamedTuple, Optional, Sequence

from climarisk.config import ClimaRiskConfig, get_config
from climarisk.geometry import distance, grid
from climarisk.models import BoundingBox, Coordinate, HeatmapCell

logger = logging.getLogger(__name__)

__all__ = ["Sample", "interpolate", "heatmap"]


class Sample(NamedTuple):
    """A measured value at a point."""

    point: Coordinate
    value: float


def interpolate(
    point: Coordinate,
    samples: Sequence[Sample],
    power: Optional[float] = None,
    config: Optional[ClimaRiskConfig] = None,
) -> float:
    """Estimate the value at ``point`` from ``samples`` by IDW.

    Args:
        point: Query location.
        samples: Known values.
        power: Distance exponent; defaults to ``config.idw_power`` (2).
        config: Engine configuration; the singleton when omitted.
    """
    if not samples:
        return 0.0
    if len(samples) == 1:
        return samples[0].value

    cfg = config or get_config()
    exponent = cfg.idw_power if power is None else power

    weighted_sum = 0.0
    weight_total = 0.0
    for sample in samples:
        d = distance(point, sample.point, cfg)
        if d == 0.0:
            return sample.value
        weight = 1.0 / d ** exponent
        weighted_sum += sample.value * weight
        weight_total += weight

    return weighted_sum / weight_total


def heatmap(
    bbox: BoundingBox,
    samples: Sequence[Sample],
    grid_size: int,
    power: Optional[float] = None,
    config: Optional[ClimaRiskConfig] = None,
) -> List[HeatmapCell]:
    """Interpolated value at each of the ``(grid_size + 1)^2`` grid points."""
    cfg = config or get_config()
    cells = [
        HeatmapCell(
            lat=p.lat,
            lon=p.lon,
            value=interpolate(p, samples, power, cfg),
        )
        for p in grid(bbox, grid_size)
    ]
    logger.debug(
        "Heatmap built: %d cells from %d samples", len(cells), len(samples)
    )
    return cells
