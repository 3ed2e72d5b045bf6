"""Typed models for API responses, cache entries, and shared data structures."""

from __future__ import annotations

import datetime as dt
from typing import Generic, Optional, TypeVar

from pydantic import BaseModel, Field, model_validator

from src.overlay.models import Bounds, Sample, WindTextureMetadata

T = TypeVar("T")


# ---------------------------------------------------------------------------
# Cache wrapper
# ---------------------------------------------------------------------------


class CacheEntry(BaseModel, Generic[T]):
    """Generic TTL-aware cache wrapper."""

    model_config = {"arbitrary_types_allowed": True}

    loaded_at: dt.datetime
    data: T

    def is_fresh(self, ttl_seconds: int) -> bool:
        age = (dt.datetime.now(dt.timezone.utc) - self.loaded_at).total_seconds()
        return age < ttl_seconds


# ---------------------------------------------------------------------------
# Published snapshots (one per refresh)
# ---------------------------------------------------------------------------


class WindPoint(BaseModel):
    """Per-point wind metadata handed to the particle renderer."""

    lat: float
    lon: float
    u: float
    v: float
    speed: float
    direction: float
    gusts: float


class AxisRange(BaseModel):
    lat: list[float]
    lon: list[float]

    @classmethod
    def from_bounds(cls, bounds: Bounds) -> AxisRange:
        return cls(lat=[bounds.min_lat, bounds.max_lat], lon=[bounds.min_lon, bounds.max_lon])


class WindSnapshot(BaseModel):
    """Everything produced by one wind refresh. Never mutated once published."""

    model_config = {"frozen": True}

    index: int
    generated_at: dt.datetime
    resolution: float
    bounds: Bounds
    points: list[WindPoint]
    speed_samples: list[Sample] = Field(default_factory=list, exclude=True)
    """Unrounded per-cell speeds, used for the wind-speed heatmap."""
    metadata: WindTextureMetadata
    png: bytes


class PrecipitationSnapshot(BaseModel):
    model_config = {"frozen": True}

    index: int
    generated_at: dt.datetime
    resolution: float
    bounds: Bounds
    source: str
    samples: list[Sample]


# ---------------------------------------------------------------------------
# API response models
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    status: str
    wind_index: Optional[int] = None
    wind_age_seconds: Optional[float] = None
    precipitation_index: Optional[int] = None
    precipitation_age_seconds: Optional[float] = None
    detail: Optional[str] = None


class SnapshotIndexEntry(BaseModel):
    index: int
    timestamp: str


class WindPointsResponse(BaseModel):
    index: int
    timestamp: str
    source: str
    resolution: float
    region: str
    bounds: AxisRange
    points: list[WindPoint]


class PrecipitationPoint(BaseModel):
    lat: float
    lon: float
    rate: float


class PrecipitationResponse(BaseModel):
    index: int
    timestamp: str
    source: str
    resolution: float
    unit: str = "mm/h"
    bounds: AxisRange
    points: list[PrecipitationPoint]


# ---------------------------------------------------------------------------
# API request models
# ---------------------------------------------------------------------------


class HeatmapRequest(BaseModel):
    """Viewport of the host map for a server-rendered heatmap."""

    min_lat: float = Field(ge=-85.0, le=85.0)
    max_lat: float = Field(ge=-85.0, le=85.0)
    min_lon: float = Field(ge=-180.0, le=180.0)
    max_lon: float = Field(ge=-180.0, le=180.0)
    width: int = Field(gt=0, le=4096)
    height: int = Field(gt=0, le=4096)
    opacity: Optional[float] = None
    moving: bool = False
    index: Optional[int] = None
    """Snapshot index to render; latest when omitted."""

    @model_validator(mode="after")
    def _check_bounds(self) -> HeatmapRequest:
        if self.min_lat > self.max_lat or self.min_lon > self.max_lon:
            raise ValueError("min_lat/min_lon must not exceed max_lat/max_lon")
        return self

    @property
    def bounds(self) -> Bounds:
        return Bounds(
            min_lat=self.min_lat,
            max_lat=self.max_lat,
            min_lon=self.min_lon,
            max_lon=self.max_lon,
        )
