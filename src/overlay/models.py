"""Typed data structures shared by the heatmap and wind-texture pipelines."""

from __future__ import annotations

import io
import math
from typing import NamedTuple

import numpy as np
from PIL import Image
from pydantic import BaseModel, ConfigDict, Field, model_validator

# ---------------------------------------------------------------------------
# Point samples
# ---------------------------------------------------------------------------


class Sample(BaseModel):
    """One scalar observation, e.g. a precipitation rate in mm/h."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    lat: float
    lon: float
    value: float = Field(ge=0.0, alias="rate")


class VectorSample(BaseModel):
    """One vector observation in a local planar approximation.

    ``u`` is the eastward component, ``v`` the northward component.
    """

    model_config = ConfigDict(frozen=True)

    lat: float
    lon: float
    u: float
    v: float

    @property
    def speed(self) -> float:
        return math.hypot(self.u, self.v)

    @property
    def bearing(self) -> float:
        """Meteorological direction (where the wind comes FROM) in [0, 360)."""
        return (180.0 + math.degrees(math.atan2(self.u, self.v))) % 360.0


class Bounds(BaseModel):
    """Geographic bounding box in degrees."""

    model_config = ConfigDict(frozen=True)

    min_lat: float
    max_lat: float
    min_lon: float
    max_lon: float

    @model_validator(mode="after")
    def _check_order(self) -> Bounds:
        if self.min_lat > self.max_lat or self.min_lon > self.max_lon:
            raise ValueError(
                f"Inverted bounds: lat [{self.min_lat}, {self.max_lat}] "
                f"lon [{self.min_lon}, {self.max_lon}]"
            )
        return self

    @property
    def center(self) -> tuple[float, float]:
        """``(lat, lon)`` of the box center."""
        return (
            (self.min_lat + self.max_lat) / 2.0,
            (self.min_lon + self.max_lon) / 2.0,
        )

    def expanded(self, margin: float) -> Bounds:
        return Bounds(
            min_lat=self.min_lat - margin,
            max_lat=self.max_lat + margin,
            min_lon=self.min_lon - margin,
            max_lon=self.max_lon + margin,
        )

    def contains(self, lat: float, lon: float) -> bool:
        return (
            self.min_lat <= lat <= self.max_lat
            and self.min_lon <= lon <= self.max_lon
        )


# ---------------------------------------------------------------------------
# Colours
# ---------------------------------------------------------------------------


class RGBA(NamedTuple):
    """Colour with 0-255 channels and a 0-1 alpha, as a canvas fill style."""

    r: int
    g: int
    b: int
    a: float


TRANSPARENT = RGBA(0, 0, 0, 0.0)


class ColorStop(BaseModel):
    """Lower-inclusive threshold of one colour band."""

    model_config = ConfigDict(frozen=True)

    threshold: float
    rgb: tuple[int, int, int]
    alpha_multiplier: float = Field(ge=0.0, le=1.0)


# ---------------------------------------------------------------------------
# Wind field
# ---------------------------------------------------------------------------


class WindMeasurement(BaseModel):
    """Authoritative single-point wind reading (m/s, degrees from)."""

    model_config = ConfigDict(frozen=True)

    speed: float
    direction_from: float
    gust: float


class VectorGrid(BaseModel):
    """Dense lat/lon grid of wind vectors stored as parallel arrays.

    Cells are ordered row-major: rows by ascending latitude, columns by
    ascending longitude, so cell ``i`` sits at ``(i // width, i % width)``.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    width: int = Field(gt=0)
    height: int = Field(gt=0)
    lats: np.ndarray
    lons: np.ndarray
    u: np.ndarray
    v: np.ndarray
    speed: np.ndarray
    direction: np.ndarray
    u_min: float
    u_max: float
    v_min: float
    v_max: float
    measurement: WindMeasurement

    def __len__(self) -> int:
        return int(self.u.size)


class WindTextureMetadata(BaseModel):
    """Decode bounds handed to the particle renderer alongside the PNG."""

    model_config = ConfigDict(populate_by_name=True)

    source: str
    date: str
    width: int
    height: int
    u_min: float = Field(alias="uMin")
    u_max: float = Field(alias="uMax")
    v_min: float = Field(alias="vMin")
    v_max: float = Field(alias="vMax")


class EncodedGrid(BaseModel):
    """Two-channel 8-bit raster with the min/max needed to decode it.

    Decoding cell ``i`` of channel A gives
    ``a_min + channel_a[i] / 255 * (a_max - a_min)``; channel B likewise.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    width: int = Field(gt=0)
    height: int = Field(gt=0)
    channel_a: np.ndarray
    channel_b: np.ndarray
    a_min: float
    a_max: float
    b_min: float
    b_max: float
    channels: int = 4

    @model_validator(mode="after")
    def _check_shape(self) -> EncodedGrid:
        expected = self.width * self.height
        if self.channel_a.size != expected or self.channel_b.size != expected:
            raise ValueError(
                f"Channel length mismatch: expected {expected}, got "
                f"{self.channel_a.size} and {self.channel_b.size}"
            )
        if self.channels not in (2, 4):
            raise ValueError(f"channels must be 2 or 4, got {self.channels}")
        return self

    def decode_a(self) -> np.ndarray:
        return self.a_min + (self.channel_a / 255.0) * (self.a_max - self.a_min)

    def decode_b(self) -> np.ndarray:
        return self.b_min + (self.channel_b / 255.0) * (self.b_max - self.b_min)

    def to_raster(self) -> np.ndarray:
        """Return a ``(height, width, channels)`` uint8 array."""
        planes = [self.channel_a, self.channel_b]
        if self.channels == 4:
            planes.append(np.zeros_like(self.channel_a))
            planes.append(np.full_like(self.channel_a, 255))
        stacked = np.stack(planes, axis=-1)
        return stacked.reshape(self.height, self.width, self.channels)

    def to_png(self) -> bytes:
        raster = self.to_raster()
        buf = io.BytesIO()
        Image.fromarray(raster).save(buf, format="PNG")
        return buf.getvalue()
