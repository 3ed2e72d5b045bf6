"""Utilities for fetching current conditions from the Open-Meteo API."""

from __future__ import annotations

import logging
import time
from typing import Optional

import requests

from src.overlay.models import Bounds, Sample, WindMeasurement
from src.overlay.wind_grid import grid_axis, resolve_measurement

logger = logging.getLogger(__name__)

# Open-Meteo endpoints (GFS for the center wind, best-match for precipitation)
_GFS_URL = "https://api.open-meteo.com/v1/gfs"
_FORECAST_URL = "https://api.open-meteo.com/v1/forecast"

DEFAULT_TIMEOUT = 10
BATCH_SIZE = 100


def fetch_center_wind(
    lat: float, lon: float, timeout: float = DEFAULT_TIMEOUT
) -> Optional[WindMeasurement]:
    """Fetch the current 10 m wind at one point.

    Returns
    -------
    WindMeasurement or None
        The validated reading, or None when the request fails.
    """
    params = {
        "latitude": lat,
        "longitude": lon,
        "current": "wind_speed_10m,wind_direction_10m,wind_gusts_10m",
        "wind_speed_unit": "ms",
    }
    try:
        response = requests.get(_GFS_URL, params=params, timeout=timeout)
        response.raise_for_status()
        current = response.json()["current"]
    except requests.RequestException:
        logger.exception("Open-Meteo wind request failed for %s,%s", lat, lon)
        return None
    except (ValueError, KeyError, TypeError):
        logger.warning("Malformed Open-Meteo wind response for %s,%s", lat, lon)
        return None
    if not isinstance(current, dict):
        logger.warning("Open-Meteo wind response has no current block for %s,%s", lat, lon)
        return None

    return resolve_measurement(
        current.get("wind_speed_10m"),
        current.get("wind_direction_10m"),
        current.get("wind_gusts_10m"),
    )


def _precipitation_from_entry(entry: dict) -> float:
    current = entry.get("current") or {}
    value = current.get("precipitation")
    if value is None:
        return 0.0
    return max(0.0, float(value))


def fetch_precipitation_samples(
    bounds: Bounds,
    resolution: float,
    timeout: float = DEFAULT_TIMEOUT,
    batch_size: int = BATCH_SIZE,
    pause_seconds: float = 0.1,
) -> Optional[list[Sample]]:
    """Fetch current precipitation (mm) on a regular grid over ``bounds``.

    Points are requested ``batch_size`` at a time. A failed batch is logged
    and skipped; None is returned only when every batch failed.
    """
    lat_axis = grid_axis(bounds.min_lat, bounds.max_lat, resolution)
    lon_axis = grid_axis(bounds.min_lon, bounds.max_lon, resolution)
    points = [(float(lat), float(lon)) for lat in lat_axis for lon in lon_axis]
    logger.info(
        "Fetching precipitation for %d x %d grid points from Open-Meteo",
        lat_axis.size,
        lon_axis.size,
    )

    samples: list[Sample] = []
    failed_batches = 0
    batch_count = 0
    for start in range(0, len(points), batch_size):
        batch = points[start : start + batch_size]
        batch_count += 1
        params = {
            "latitude": ",".join(f"{lat:g}" for lat, _ in batch),
            "longitude": ",".join(f"{lon:g}" for _, lon in batch),
            "current": "precipitation",
            "forecast_days": 1,
        }
        try:
            response = requests.get(_FORECAST_URL, params=params, timeout=timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError):
            logger.warning("Precipitation batch %d failed", batch_count, exc_info=True)
            failed_batches += 1
            continue

        entries = data if isinstance(data, list) else [data]
        for (lat, lon), entry in zip(batch, entries):
            try:
                rate = _precipitation_from_entry(entry)
            except (AttributeError, TypeError, ValueError):
                continue
            samples.append(Sample(lat=lat, lon=lon, value=rate))

        if pause_seconds and start + batch_size < len(points):
            time.sleep(pause_seconds)

    if batch_count and failed_batches == batch_count:
        logger.error("All %d precipitation batches failed", batch_count)
        return None
    logger.info("Fetched %d precipitation samples", len(samples))
    return samples


if __name__ == "__main__":
    reading = fetch_center_wind(46.5, 2.5)
    if reading is not None:
        print(f"Wind: {reading.speed:.1f} m/s from {reading.direction_from:.0f} deg")
