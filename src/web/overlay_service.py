"""Overlay refresh jobs, snapshot history, and server-side heatmap rendering.

Each pipeline runs as a one-shot batch per data refresh:
- ``refresh_wind()``: build + encode the wind texture, publish a snapshot
- ``refresh_precipitation()``: fetch precipitation samples, publish a snapshot
- ``render_heatmap()``: paint a viewport PNG from the latest samples

Snapshots are built completely before being published with a single
assignment, so readers never see a partial refresh. The last
``settings.history_size`` snapshots stay addressable by index.
"""

from __future__ import annotations

import datetime as dt
import functools
import logging
import threading
from collections import OrderedDict
from typing import Callable, Generic, Optional, TypeVar

import openmeteo_utils
from src.overlay.heatmap import (
    PRECIPITATION_STYLE,
    WIND_SPEED_STYLE,
    HeatmapRasterPainter,
)
from src.overlay.models import Bounds, Sample, VectorGrid, WindMeasurement
from src.overlay.projection import WebMercatorViewport
from src.overlay.wind_grid import build_wind_field
from src.overlay.wind_texture import encode, texture_metadata

from .config import settings
from .models import (
    CacheEntry,
    HeatmapRequest,
    PrecipitationSnapshot,
    WindPoint,
    WindSnapshot,
)

logger = logging.getLogger(__name__)

S = TypeVar("S", WindSnapshot, PrecipitationSnapshot)

PRECIPITATION_SOURCE = "Open-Meteo current precipitation"
HEATMAP_LAYERS = ("precipitation", "wind_speed")


class DataUnavailable(RuntimeError):
    """No snapshot has been published yet (or the refresh failed)."""


class SnapshotNotFound(LookupError):
    """The requested snapshot index is not (or no longer) in the history."""


def _now() -> dt.datetime:
    return dt.datetime.now(dt.timezone.utc)


# ---------------------------------------------------------------------------
# Snapshot history
# ---------------------------------------------------------------------------


class SnapshotHistory(Generic[S]):
    """Bounded, index-addressable history of published snapshots."""

    def __init__(self, max_size: int) -> None:
        self.max_size = max(1, max_size)
        self._entries: OrderedDict[int, CacheEntry[S]] = OrderedDict()
        self._next_index = 0
        self._lock = threading.Lock()
        # Held for a whole refresh so concurrent stale readers wait for it.
        self.refresh_lock = threading.Lock()

    def allocate(self) -> int:
        with self._lock:
            index = self._next_index
            self._next_index += 1
            return index

    def publish(self, snapshot: S) -> None:
        entry = CacheEntry(loaded_at=snapshot.generated_at, data=snapshot)
        with self._lock:
            self._entries[snapshot.index] = entry
            while len(self._entries) > self.max_size:
                dropped, _ = self._entries.popitem(last=False)
                logger.debug("Dropped snapshot %d from history", dropped)

    def latest_entry(self) -> Optional[CacheEntry[S]]:
        with self._lock:
            if not self._entries:
                return None
            return next(reversed(self._entries.values()))

    def latest(self) -> Optional[S]:
        entry = self.latest_entry()
        return entry.data if entry is not None else None

    def get(self, index: int) -> Optional[S]:
        with self._lock:
            entry = self._entries.get(index)
        return entry.data if entry is not None else None

    def snapshots(self) -> list[S]:
        """All kept snapshots, newest first."""
        with self._lock:
            entries = list(self._entries.values())
        return [entry.data for entry in reversed(entries)]

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._next_index = 0


_WIND_HISTORY: SnapshotHistory[WindSnapshot] = SnapshotHistory(settings.history_size)
_PRECIP_HISTORY: SnapshotHistory[PrecipitationSnapshot] = SnapshotHistory(
    settings.history_size
)
# Set when a precipitation refresh fails, to avoid hammering the upstream API.
_PRECIP_FAILURE: CacheEntry[str] | None = None


def _is_fresh(entry: Optional[CacheEntry]) -> bool:
    return entry is not None and entry.is_fresh(settings.data_ttl_seconds)


def _cooling_down() -> bool:
    return _PRECIP_FAILURE is not None and _PRECIP_FAILURE.is_fresh(
        settings.failure_cooldown_seconds
    )


def clear_snapshots() -> None:
    """Forget every published snapshot (used on shutdown and in tests)."""
    global _PRECIP_FAILURE  # noqa: PLW0603
    _WIND_HISTORY.clear()
    _PRECIP_HISTORY.clear()
    _PRECIP_FAILURE = None


# ---------------------------------------------------------------------------
# Wind refresh
# ---------------------------------------------------------------------------


def _wind_points(grid: VectorGrid) -> list[WindPoint]:
    gust = round(grid.measurement.gust, 1)
    return [
        WindPoint(
            lat=round(float(grid.lats[i]), 2),
            lon=round(float(grid.lons[i]), 2),
            u=round(float(grid.u[i]), 2),
            v=round(float(grid.v[i]), 2),
            speed=round(float(grid.speed[i]), 1),
            direction=round(float(grid.direction[i])),
            gusts=gust,
        )
        for i in range(len(grid))
    ]


def _speed_samples(grid: VectorGrid) -> list[Sample]:
    """Full-precision speeds for the server-side heatmap."""
    return [
        Sample(lat=float(lat), lon=float(lon), value=float(speed))
        for lat, lon, speed in zip(grid.lats, grid.lons, grid.speed)
    ]


def refresh_wind(
    fetch: Optional[Callable[[float, float], Optional[WindMeasurement]]] = None,
) -> WindSnapshot:
    """Build, encode and publish a new wind snapshot.

    Upstream failures fall back to the default calm westerly, so this always
    publishes something renderable.
    """
    if fetch is None:
        fetch = functools.partial(
            openmeteo_utils.fetch_center_wind,
            timeout=settings.request_timeout_seconds,
        )
    bounds = settings.wind_bounds
    grid = build_wind_field(bounds, settings.wind_resolution, fetch)
    encoded = encode(grid, channels=settings.wind_texture_channels)
    generated_at = _now()

    snapshot = WindSnapshot(
        index=_WIND_HISTORY.allocate(),
        generated_at=generated_at,
        resolution=settings.wind_resolution,
        bounds=bounds,
        points=_wind_points(grid),
        speed_samples=_speed_samples(grid),
        metadata=texture_metadata(encoded, generated_at=generated_at),
        png=encoded.to_png(),
    )
    _WIND_HISTORY.publish(snapshot)
    logger.info(
        "Published wind snapshot %d (%d points, %d byte PNG)",
        snapshot.index,
        len(snapshot.points),
        len(snapshot.png),
    )
    return snapshot


def get_wind_snapshot(index: Optional[int] = None) -> WindSnapshot:
    """Return snapshot ``index``, or the latest one (refreshing it when stale)."""
    if index is not None:
        snapshot = _WIND_HISTORY.get(index)
        if snapshot is None:
            raise SnapshotNotFound(f"Wind data not found at index {index}")
        return snapshot

    entry = _WIND_HISTORY.latest_entry()
    if settings.auto_refresh and not _is_fresh(entry):
        with _WIND_HISTORY.refresh_lock:
            # another request may have refreshed while this one waited
            entry = _WIND_HISTORY.latest_entry()
            if not _is_fresh(entry):
                return refresh_wind()
    if entry is None:
        raise DataUnavailable("Wind data not yet available")
    return entry.data


def get_wind_history() -> list[WindSnapshot]:
    return _WIND_HISTORY.snapshots()


# ---------------------------------------------------------------------------
# Precipitation refresh
# ---------------------------------------------------------------------------


def refresh_precipitation(
    fetch: Optional[Callable[[Bounds, float], Optional[list[Sample]]]] = None,
) -> Optional[PrecipitationSnapshot]:
    """Fetch and publish a new precipitation snapshot.

    Returns None (keeping the previous snapshot as latest) when the fetch fails.
    """
    global _PRECIP_FAILURE  # noqa: PLW0603
    if fetch is None:
        fetch = functools.partial(
            openmeteo_utils.fetch_precipitation_samples,
            timeout=settings.request_timeout_seconds,
        )
    bounds = settings.precip_bounds
    samples = fetch(bounds, settings.precip_resolution)
    if samples is None:
        logger.warning("Precipitation refresh failed; keeping previous snapshot")
        _PRECIP_FAILURE = CacheEntry(loaded_at=_now(), data="fetch failed")
        return None

    snapshot = PrecipitationSnapshot(
        index=_PRECIP_HISTORY.allocate(),
        generated_at=_now(),
        resolution=settings.precip_resolution,
        bounds=bounds,
        source=PRECIPITATION_SOURCE,
        samples=samples,
    )
    _PRECIP_HISTORY.publish(snapshot)
    _PRECIP_FAILURE = None
    logger.info(
        "Published precipitation snapshot %d (%d samples)",
        snapshot.index,
        len(snapshot.samples),
    )
    return snapshot


def get_precipitation_snapshot(index: Optional[int] = None) -> PrecipitationSnapshot:
    """Return snapshot ``index``, or the latest one (refreshing it when stale)."""
    if index is not None:
        snapshot = _PRECIP_HISTORY.get(index)
        if snapshot is None:
            raise SnapshotNotFound(f"Precipitation data not found at index {index}")
        return snapshot

    entry = _PRECIP_HISTORY.latest_entry()
    if settings.auto_refresh and not _is_fresh(entry) and not _cooling_down():
        with _PRECIP_HISTORY.refresh_lock:
            entry = _PRECIP_HISTORY.latest_entry()
            if not _is_fresh(entry) and not _cooling_down():
                refreshed = refresh_precipitation()
                if refreshed is not None:
                    return refreshed

    if entry is None:
        raise DataUnavailable("Precipitation data not yet available")
    return entry.data


def get_precipitation_history() -> list[PrecipitationSnapshot]:
    return _PRECIP_HISTORY.snapshots()


# ---------------------------------------------------------------------------
# Heatmap rendering
# ---------------------------------------------------------------------------


def _heatmap_samples(layer: str, index: Optional[int]) -> list[Sample]:
    if layer == "precipitation":
        return get_precipitation_snapshot(index).samples
    if layer == "wind_speed":
        snapshot = get_wind_snapshot(index)
        return snapshot.speed_samples
    raise ValueError(f"Unknown heatmap layer '{layer}' (expected one of {HEATMAP_LAYERS})")


def render_heatmap(request: HeatmapRequest, layer: str = "precipitation") -> bytes:
    """Paint ``layer`` for the requested viewport and return PNG bytes.

    A fresh painter is created per call so concurrent requests never share
    a buffer.
    """
    samples = _heatmap_samples(layer, request.index)
    style = PRECIPITATION_STYLE if layer == "precipitation" else WIND_SPEED_STYLE
    bounds = request.bounds

    painter = HeatmapRasterPainter(
        request.width, request.height, samples, bounds=bounds, style=style
    )
    if request.opacity is not None:
        painter.set_opacity(request.opacity)
    painter.set_moving(request.moving)
    painter.draw(WebMercatorViewport(bounds, request.width, request.height))
    return painter.to_png()
