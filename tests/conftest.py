from __future__ import annotations

import pytest

from src.overlay.models import Bounds, Sample
from src.web import overlay_service
from src.web.config import settings


class LinearProjection:
    """Plate-carree screen mapping: x -> lon, y -> lat (north at the top)."""

    def __init__(self, bounds: Bounds, width: int, height: int) -> None:
        self.bounds = bounds
        self.width = width
        self.height = height

    def project(self, lng_lat):
        lng, lat = lng_lat
        b = self.bounds
        x = (lng - b.min_lon) / (b.max_lon - b.min_lon) * self.width
        y = (b.max_lat - lat) / (b.max_lat - b.min_lat) * self.height
        return x, y

    def unproject(self, xy):
        x, y = xy
        b = self.bounds
        lng = b.min_lon + x / self.width * (b.max_lon - b.min_lon)
        lat = b.max_lat - y / self.height * (b.max_lat - b.min_lat)
        return lng, lat


@pytest.fixture
def paris_bounds() -> Bounds:
    return Bounds(min_lat=47.0, max_lat=49.0, min_lon=1.0, max_lon=3.0)


@pytest.fixture
def paris_projection(paris_bounds) -> LinearProjection:
    return LinearProjection(paris_bounds, 100, 100)


@pytest.fixture
def heavy_rain() -> list[Sample]:
    return [Sample(lat=48.0, lon=2.0, value=12.0)]


@pytest.fixture(autouse=True)
def _isolated_service(monkeypatch):
    """Empty snapshot history and no lazy network refresh for every test."""
    overlay_service.clear_snapshots()
    monkeypatch.setattr(settings, "auto_refresh", False)
    yield
    overlay_service.clear_snapshots()
