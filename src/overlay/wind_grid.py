"""Synthesised wind vector grid from one authoritative point reading.

The grid is a visual plausibility heuristic, NOT a forecast: a single
center-point measurement is spread over the box and given spatial texture
by two fixed sinusoids. Consumers must not treat individual cells as
meteorological data. Replacing this module with real gridded data leaves
the texture encoder untouched.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Callable, Optional

import numpy as np

from .models import Bounds, VectorGrid, WindMeasurement

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

DEFAULT_WIND_SPEED = 5.0  # m/s
DEFAULT_WIND_DIRECTION = 270.0  # degrees from (westerly)
GUST_FACTOR = 1.3  # gust estimate when the reading has none

DEFAULT_MEASUREMENT = WindMeasurement(
    speed=DEFAULT_WIND_SPEED,
    direction_from=DEFAULT_WIND_DIRECTION,
    gust=DEFAULT_WIND_SPEED * GUST_FACTOR,
)

# Perturbation: sin(2*pi*dLat) * 0.3 + cos(3*pi*dLon) * 0.2, bounded to +-0.5.
_LAT_FREQUENCY = 2.0 * math.pi
_LON_FREQUENCY = 3.0 * math.pi
_LAT_AMPLITUDE = 0.3
_LON_AMPLITUDE = 0.2
_V_DAMPING = 0.8

SOURCE_LABEL = "GFS via Open-Meteo API (simplified grid)"

MeasurementFetcher = Callable[[float, float], Optional[WindMeasurement]]


def wind_components(speed: float, direction_from: float) -> tuple[float, float]:
    """Convert speed + meteorological direction to ``(u, v)``.

    ``u`` is positive eastward, ``v`` positive northward: a westerly wind
    (from 270 degrees) has positive ``u``.
    """
    theta = math.radians(270.0 - direction_from)
    return speed * math.cos(theta), speed * math.sin(theta)


def _usable(value: Any) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def resolve_measurement(
    speed: Any, direction_from: Any, gust: Any = None
) -> WindMeasurement:
    """Validate a raw reading, substituting defaults for unusable values.

    A missing, non-numeric or negative speed, or a missing direction,
    replaces the whole reading with :data:`DEFAULT_MEASUREMENT`. A missing
    gust alone becomes ``GUST_FACTOR * speed``.
    """
    speed_value = _usable(speed)
    direction_value = _usable(direction_from)
    if speed_value is None or speed_value < 0 or direction_value is None:
        logger.warning(
            "Unusable wind reading (speed=%r, direction=%r); using defaults",
            speed,
            direction_from,
        )
        return DEFAULT_MEASUREMENT

    gust_value = _usable(gust)
    if gust_value is None or gust_value < 0:
        gust_value = speed_value * GUST_FACTOR
    return WindMeasurement(
        speed=speed_value,
        direction_from=direction_value % 360.0,
        gust=gust_value,
    )


def grid_axis(lower: float, upper: float, resolution: float) -> np.ndarray:
    """Inclusive ``lower..upper`` in ``resolution`` steps, indexed to avoid drift."""
    count = int(math.floor((upper - lower) / resolution + 1e-9)) + 1
    return lower + np.arange(count, dtype=float) * resolution


def _offsets(values: np.ndarray, center: float, extent: float) -> np.ndarray:
    if extent == 0:
        return np.zeros_like(values)
    return (values - center) / extent


def build_vector_grid(
    measurement: WindMeasurement, bounds: Bounds, resolution: float
) -> VectorGrid:
    """Spread ``measurement`` over ``bounds`` at ``resolution`` degrees per cell."""
    if not resolution > 0:
        raise ValueError(f"resolution must be positive, got {resolution}")

    base_u, base_v = wind_components(measurement.speed, measurement.direction_from)
    center_lat, center_lon = bounds.center

    lat_axis = grid_axis(bounds.min_lat, bounds.max_lat, resolution)
    lon_axis = grid_axis(bounds.min_lon, bounds.max_lon, resolution)
    lats, lons = np.meshgrid(lat_axis, lon_axis, indexing="ij")
    lats = lats.ravel()
    lons = lons.ravel()

    dist_lat = _offsets(lats, center_lat, bounds.max_lat - bounds.min_lat)
    dist_lon = _offsets(lons, center_lon, bounds.max_lon - bounds.min_lon)
    variation = np.sin(dist_lat * _LAT_FREQUENCY) * _LAT_AMPLITUDE + np.cos(
        dist_lon * _LON_FREQUENCY
    ) * _LON_AMPLITUDE

    u = base_u * (1.0 + variation)
    v = base_v * (1.0 + variation * _V_DAMPING)
    speed = np.hypot(u, v)
    direction = (np.degrees(np.arctan2(-v, -u)) + 360.0) % 360.0

    grid = VectorGrid(
        width=lon_axis.size,
        height=lat_axis.size,
        lats=lats,
        lons=lons,
        u=u,
        v=v,
        speed=speed,
        direction=direction,
        u_min=float(u.min()),
        u_max=float(u.max()),
        v_min=float(v.min()),
        v_max=float(v.max()),
        measurement=measurement,
    )
    logger.info(
        "Generated %dx%d wind grid (%d points), U[%.2f, %.2f] V[%.2f, %.2f]",
        grid.width,
        grid.height,
        len(grid),
        grid.u_min,
        grid.u_max,
        grid.v_min,
        grid.v_max,
    )
    return grid


def build_wind_field(
    bounds: Bounds, resolution: float, fetch: MeasurementFetcher
) -> VectorGrid:
    """Fetch the center reading and build the grid, never failing on upstream errors."""
    center_lat, center_lon = bounds.center
    try:
        measurement = fetch(center_lat, center_lon)
    except Exception:
        logger.exception(
            "Center wind fetch failed for (%.2f, %.2f); using defaults",
            center_lat,
            center_lon,
        )
        measurement = None

    if measurement is None:
        measurement = DEFAULT_MEASUREMENT
    logger.info(
        "Center point wind: %.1f m/s from %.0f deg",
        measurement.speed,
        measurement.direction_from,
    )
    return build_vector_grid(measurement, bounds, resolution)
