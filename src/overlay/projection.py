"""Screen <-> geographic projection used by the heatmap painter.

The painter only relies on the two-method :class:`Projection` protocol, so
any host map widget can supply its own implementation. For server-side
rendering :class:`WebMercatorViewport` fits a bounding box onto a canvas.
"""

from __future__ import annotations

from typing import Protocol

from pyproj import Transformer

from .models import Bounds

# WGS84 lon/lat -> spherical Web Mercator metres (what slippy maps render in)
_TO_MERCATOR = Transformer.from_crs(4326, 3857, always_xy=True)
_FROM_MERCATOR = Transformer.from_crs(3857, 4326, always_xy=True)


class Projection(Protocol):
    def project(self, lng_lat: tuple[float, float]) -> tuple[float, float]:
        """Geographic ``(lng, lat)`` to screen ``(x, y)`` pixels."""
        ...

    def unproject(self, xy: tuple[float, float]) -> tuple[float, float]:
        """Screen ``(x, y)`` pixels to geographic ``(lng, lat)``."""
        ...


class WebMercatorViewport:
    """Map ``bounds`` onto a ``width x height`` canvas in Web Mercator.

    Screen ``(0, 0)`` is the north-west corner; y grows southwards.
    """

    def __init__(self, bounds: Bounds, width: int, height: int) -> None:
        if width <= 0 or height <= 0:
            raise ValueError(f"Canvas size must be positive, got {width}x{height}")
        self.bounds = bounds
        self.width = width
        self.height = height
        self._x0, self._y0 = _TO_MERCATOR.transform(bounds.min_lon, bounds.min_lat)
        self._x1, self._y1 = _TO_MERCATOR.transform(bounds.max_lon, bounds.max_lat)
        self._sx = (self._x1 - self._x0) / width if self._x1 != self._x0 else 1.0
        self._sy = (self._y1 - self._y0) / height if self._y1 != self._y0 else 1.0

    def project(self, lng_lat: tuple[float, float]) -> tuple[float, float]:
        lng, lat = lng_lat
        mx, my = _TO_MERCATOR.transform(lng, lat)
        return (mx - self._x0) / self._sx, (self._y1 - my) / self._sy

    def unproject(self, xy: tuple[float, float]) -> tuple[float, float]:
        x, y = xy
        mx = self._x0 + x * self._sx
        my = self._y1 - y * self._sy
        lng, lat = _FROM_MERCATOR.transform(mx, my)
        # Canvas edges map exactly onto the bounds; the pyproj round trip
        # is a few ULPs off otherwise.
        b = self.bounds
        if x == 0:
            lng = b.min_lon
        elif x == self.width:
            lng = b.max_lon
        if y == 0:
            lat = b.max_lat
        elif y == self.height:
            lat = b.min_lat
        return float(lng), float(lat)
