"""Screen-space heatmap painter for scalar point samples.

Each redraw scans the canvas in square cells, unprojects the cell origin to
lng/lat, estimates the field there by IDW and fills the cell with the ramp
colour. The painted layer is then low-pass filtered onto the output buffer.

While the map is moving the painter uses larger cells and skips smoothing;
both trade fidelity for frame time and have no functional effect.

Setters only change state. Nothing redraws until :meth:`HeatmapRasterPainter.draw`
is called, which lets the caller coalesce bursts of viewport events. A draw
must finish before the next one starts: the layer buffer is shared state.
"""

from __future__ import annotations

import io
import logging
from typing import Iterable, Optional, Union

import numpy as np
from PIL import Image
from pydantic import BaseModel, ConfigDict, Field, model_validator
from scipy.ndimage import gaussian_filter

from .color_ramp import RAMPS, ColorRampEncoder
from .interpolation import estimate_many
from .models import Bounds, Sample
from .projection import Projection
from .samples import DEFAULT_MARGIN, SampleStore

logger = logging.getLogger(__name__)


class HeatmapStyle(BaseModel):
    """Rendering parameters owned by one painter instance."""

    model_config = ConfigDict(frozen=True)

    ramp: str = "precipitation"
    opacity: float = Field(default=0.7, ge=0.0, le=1.0)
    max_distance: float = Field(default=1.5, gt=0.0)
    """IDW influence radius (degrees)."""
    margin: float = DEFAULT_MARGIN
    """Extra degrees around the viewport kept for interpolation."""
    static_cell_size: int = Field(default=25, gt=0)
    moving_cell_size: int = Field(default=40, gt=0)
    blur_sigma: float = Field(default=15.0, ge=0.0)
    """Smoothing kernel standard deviation in pixels; 0 disables it."""
    visibility_floor: float = 0.1
    """Estimates below this are not painted at all."""

    @model_validator(mode="after")
    def _check(self) -> HeatmapStyle:
        if self.ramp not in RAMPS:
            raise ValueError(f"Unknown colour ramp '{self.ramp}'")
        if self.margin < self.max_distance:
            raise ValueError(
                f"margin ({self.margin}) must be >= max_distance "
                f"({self.max_distance}) or edge cells lose contributing samples"
            )
        return self


PRECIPITATION_STYLE = HeatmapStyle()
WIND_SPEED_STYLE = HeatmapStyle(
    ramp="wind_speed", opacity=0.6, max_distance=2.0, visibility_floor=0.0
)


def _smooth(layer: np.ndarray, sigma: float) -> np.ndarray:
    """Separable Gaussian low-pass on straight-alpha RGBA (alpha in 0..1)."""
    if sigma <= 0:
        return layer
    alpha = layer[..., 3]
    premultiplied = layer[..., :3] * alpha[..., None]
    premultiplied = gaussian_filter(premultiplied, sigma=(sigma, sigma, 0), mode="constant")
    alpha = gaussian_filter(alpha, sigma=sigma, mode="constant")

    out = np.zeros_like(layer)
    visible = alpha > 1e-6
    out[visible, :3] = premultiplied[visible] / alpha[visible][:, None]
    out[..., 3] = np.where(visible, alpha, 0.0)
    return out


def _to_bytes(layer: np.ndarray) -> np.ndarray:
    rgba = np.empty(layer.shape, dtype=float)
    rgba[..., :3] = layer[..., :3]
    rgba[..., 3] = layer[..., 3] * 255.0
    return np.clip(np.floor(rgba + 0.5), 0, 255).astype(np.uint8)


class HeatmapRasterPainter:
    """Paint an IDW heatmap of ``samples`` onto an RGBA pixel buffer."""

    def __init__(
        self,
        width: int,
        height: int,
        samples: Union[SampleStore, Iterable[Sample]] = (),
        bounds: Optional[Bounds] = None,
        style: HeatmapStyle = PRECIPITATION_STYLE,
        projection: Optional[Projection] = None,
    ) -> None:
        self.style = style
        self._opacity = style.opacity
        self._bounds = bounds
        self._moving = False
        self._projection = projection
        self._store = SampleStore()
        self.set_samples(samples)
        self.pixels = np.zeros((0, 0, 4), dtype=np.uint8)
        self._layer = np.zeros((0, 0, 4), dtype=np.float32)
        self.resize(width, height)

    # ------------------------------------------------------------------
    # State setters (never redraw)
    # ------------------------------------------------------------------

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def opacity(self) -> float:
        return self._opacity

    @property
    def bounds(self) -> Optional[Bounds]:
        return self._bounds

    @property
    def moving(self) -> bool:
        return self._moving

    def set_projection(self, projection: Optional[Projection]) -> None:
        self._projection = projection

    def set_samples(self, samples: Union[SampleStore, Iterable[Sample]]) -> None:
        """Replace the whole sample collection."""
        if not isinstance(samples, SampleStore):
            samples = SampleStore(list(samples))
        self._store = samples

    def resize(self, width: int, height: int) -> None:
        """Reallocate the buffers; like a canvas resize this clears the output."""
        if width < 0 or height < 0:
            raise ValueError(f"Canvas size must not be negative, got {width}x{height}")
        self.pixels = np.zeros((height, width, 4), dtype=np.uint8)
        self._layer = np.zeros((height, width, 4), dtype=np.float32)

    def clear(self) -> None:
        self.pixels.fill(0)

    def set_opacity(self, opacity: float) -> None:
        self._opacity = min(1.0, max(0.0, float(opacity)))

    def update_bounds(self, bounds: Bounds) -> None:
        self._bounds = bounds

    def set_moving(self, moving: bool) -> None:
        self._moving = bool(moving)

    # ------------------------------------------------------------------
    # Drawing
    # ------------------------------------------------------------------

    @property
    def cell_size(self) -> int:
        if self._moving:
            return self.style.moving_cell_size
        return self.style.static_cell_size

    def _scan_cells(
        self, projection: Projection, bounds: Bounds, cell: int
    ) -> tuple[list[tuple[int, int]], np.ndarray, np.ndarray]:
        """Unproject each cell origin; keep only cells inside ``bounds``."""
        origins: list[tuple[int, int]] = []
        lats: list[float] = []
        lngs: list[float] = []
        for screen_x in range(0, self.width, cell):
            for screen_y in range(0, self.height, cell):
                lng, lat = projection.unproject((screen_x, screen_y))
                if not bounds.contains(lat, lng):
                    continue
                origins.append((screen_x, screen_y))
                lats.append(lat)
                lngs.append(lng)
        return origins, np.array(lats, dtype=float), np.array(lngs, dtype=float)

    def draw(self, projection: Optional[Projection] = None) -> None:
        """Repaint the output buffer for the current state.

        Without a projection (or bounds) this is a no-op.
        """
        if projection is None:
            projection = self._projection
        if projection is None or self._bounds is None:
            return

        style = self.style
        visible = self._store.within(self._bounds, style.margin)

        self.pixels.fill(0)
        self._layer.fill(0.0)
        if not visible or self.width == 0 or self.height == 0:
            return

        cell = self.cell_size
        origins, lats, lngs = self._scan_cells(projection, self._bounds, cell)
        rates = estimate_many(
            lats, lngs, visible.lats, visible.lons, visible.values, style.max_distance
        )

        ramp = ColorRampEncoder.named(style.ramp, opacity=self._opacity)
        painted = 0
        for (screen_x, screen_y), rate in zip(origins, rates):
            if rate < style.visibility_floor:
                continue
            color = ramp.color_for(float(rate))
            if color.a <= 0.0:
                continue
            self._layer[screen_y : screen_y + cell, screen_x : screen_x + cell] = color
            painted += 1

        if self._moving:
            composited = self._layer
        else:
            composited = _smooth(self._layer, style.blur_sigma)
        self.pixels[...] = _to_bytes(composited)
        logger.debug(
            "Painted %d of %d in-bounds cells (cell=%dpx, moving=%s)",
            painted,
            len(origins),
            cell,
            self._moving,
        )

    def to_png(self) -> bytes:
        buf = io.BytesIO()
        Image.fromarray(self.pixels).save(buf, format="PNG")
        return buf.getvalue()
