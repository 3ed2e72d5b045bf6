"""Centralised configuration loaded from environment variables via pydantic-settings."""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from src.overlay.models import Bounds


class Settings(BaseSettings):
    """Overlay settings, read from WXOVERLAY_* variables and .env once at import."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="WXOVERLAY_",
        extra="ignore",
    )

    # Wind field box (default: France and surroundings)
    wind_lat_min: float = 41.0
    wind_lat_max: float = 52.0
    wind_lon_min: float = -5.0
    wind_lon_max: float = 10.0
    wind_resolution: float = Field(default=0.5, gt=0)
    """Degrees per wind grid cell."""
    wind_texture_channels: int = 4
    """4 for an RGBA texture (u, v, 0, 255), 2 for a luminance-alpha one."""

    # Precipitation sample grid
    precip_lat_min: float = 41.0
    precip_lat_max: float = 52.0
    precip_lon_min: float = -5.0
    precip_lon_max: float = 10.0
    precip_resolution: float = Field(default=0.5, gt=0)

    # Refresh cadence
    data_ttl_seconds: int = 3600
    """How long (seconds) a snapshot is served before the next request refreshes it.

    The upstream GFS data updates hourly."""

    history_size: int = 10
    """Number of past snapshots kept addressable by index."""

    request_timeout_seconds: float = 10.0

    failure_cooldown_seconds: int = 300
    """After a failed precipitation refresh, wait this long before trying again."""

    auto_refresh: bool = True
    """Refresh stale snapshots lazily when the API serves a request."""

    @property
    def wind_bounds(self) -> Bounds:
        return Bounds(
            min_lat=self.wind_lat_min,
            max_lat=self.wind_lat_max,
            min_lon=self.wind_lon_min,
            max_lon=self.wind_lon_max,
        )

    @property
    def precip_bounds(self) -> Bounds:
        return Bounds(
            min_lat=self.precip_lat_min,
            max_lat=self.precip_lat_max,
            min_lon=self.precip_lon_min,
            max_lon=self.precip_lon_max,
        )


settings = Settings()  # type: ignore[call-arg]
