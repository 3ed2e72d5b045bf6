"""Pack a wind grid into an 8-bit U/V texture for the particle renderer."""

from __future__ import annotations

import datetime as dt
import logging
from typing import Optional

import numpy as np

from .models import EncodedGrid, VectorGrid, WindTextureMetadata
from .wind_grid import SOURCE_LABEL

logger = logging.getLogger(__name__)


def normalize_channel(values: np.ndarray, lower: float, upper: float) -> np.ndarray:
    """Linearly rescale ``values`` from ``[lower, upper]`` to bytes ``0..255``.

    Rounds half up. A zero-width range maps every value to 0.
    """
    values = np.asarray(values, dtype=float)
    if upper == lower:
        return np.zeros(values.shape, dtype=np.uint8)
    scaled = (values - lower) / (upper - lower) * 255.0
    return np.clip(np.floor(scaled + 0.5), 0, 255).astype(np.uint8)


def _frozen(array: np.ndarray) -> np.ndarray:
    array.setflags(write=False)
    return array


def encode(grid: VectorGrid, channels: int = 4) -> EncodedGrid:
    """Quantise ``grid.u`` into channel A and ``grid.v`` into channel B.

    The mapping is lossy; decode with the returned min/max. With
    ``channels=4`` the raster is packed as ``(u, v, 0, 255)``.
    """
    encoded = EncodedGrid(
        width=grid.width,
        height=grid.height,
        channel_a=_frozen(normalize_channel(grid.u, grid.u_min, grid.u_max)),
        channel_b=_frozen(normalize_channel(grid.v, grid.v_min, grid.v_max)),
        a_min=grid.u_min,
        a_max=grid.u_max,
        b_min=grid.v_min,
        b_max=grid.v_max,
        channels=channels,
    )
    logger.info("Encoded %dx%d wind texture", encoded.width, encoded.height)
    return encoded


def texture_metadata(
    encoded: EncodedGrid,
    source: str = SOURCE_LABEL,
    generated_at: Optional[dt.datetime] = None,
) -> WindTextureMetadata:
    """Metadata the renderer needs to decode ``encoded``."""
    generated_at = generated_at or dt.datetime.now(dt.timezone.utc)
    return WindTextureMetadata(
        source=source,
        date=generated_at.isoformat(),
        width=encoded.width,
        height=encoded.height,
        u_min=encoded.a_min,
        u_max=encoded.a_max,
        v_min=encoded.b_min,
        v_max=encoded.b_max,
    )
