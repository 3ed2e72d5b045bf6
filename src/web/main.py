"""HTTP API for the wind texture, precipitation samples and heatmap overlays.

Run with ``uvicorn src.web.main:app``.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from fastapi import FastAPI, HTTPException
from fastapi.responses import JSONResponse, Response

from . import overlay_service
from .models import (
    AxisRange,
    HealthResponse,
    HeatmapRequest,
    PrecipitationPoint,
    PrecipitationResponse,
    PrecipitationSnapshot,
    SnapshotIndexEntry,
    WindPointsResponse,
    WindSnapshot,
)

logger = logging.getLogger(__name__)

app = FastAPI(title="wxoverlay", version="0.1.0")

_CACHE_HEADERS = {"Cache-Control": "public, max-age=300"}


def _wind(index: int | None = None) -> WindSnapshot:
    try:
        return overlay_service.get_wind_snapshot(index)
    except overlay_service.SnapshotNotFound as exc:
        logger.error("%s", exc)
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except overlay_service.DataUnavailable as exc:
        logger.error("%s", exc)
        raise HTTPException(status_code=503, detail=str(exc)) from exc


def _precipitation(index: int | None = None) -> PrecipitationSnapshot:
    try:
        return overlay_service.get_precipitation_snapshot(index)
    except overlay_service.SnapshotNotFound as exc:
        logger.error("%s", exc)
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except overlay_service.DataUnavailable as exc:
        logger.error("%s", exc)
        raise HTTPException(status_code=503, detail=str(exc)) from exc


def _age_seconds(generated_at: datetime) -> float:
    return round((datetime.now(timezone.utc) - generated_at).total_seconds(), 1)


@app.get("/api/health", response_model=HealthResponse)
def health() -> HealthResponse:
    wind = overlay_service.get_wind_history()
    precip = overlay_service.get_precipitation_history()
    response = HealthResponse(status="ok")
    if wind:
        response.wind_index = wind[0].index
        response.wind_age_seconds = _age_seconds(wind[0].generated_at)
    if precip:
        response.precipitation_index = precip[0].index
        response.precipitation_age_seconds = _age_seconds(precip[0].generated_at)
    if not wind and not precip:
        response.detail = "warming up, no overlay data published yet"
    return response


# ---------------------------------------------------------------------------
# Wind points and texture
# ---------------------------------------------------------------------------


def _wind_points_response(snapshot: WindSnapshot) -> WindPointsResponse:
    return WindPointsResponse(
        index=snapshot.index,
        timestamp=snapshot.generated_at.isoformat(),
        source=snapshot.metadata.source,
        resolution=snapshot.resolution,
        region="France",
        bounds=AxisRange.from_bounds(snapshot.bounds),
        points=snapshot.points,
    )


@app.get("/api/wind-global", response_model=WindPointsResponse)
def wind_global() -> WindPointsResponse:
    return _wind_points_response(_wind())


@app.get("/api/wind-global/{index}", response_model=WindPointsResponse)
def wind_global_by_index(index: int) -> WindPointsResponse:
    return _wind_points_response(_wind(index))


@app.get("/api/wind-indices", response_model=list[SnapshotIndexEntry])
def wind_indices() -> list[SnapshotIndexEntry]:
    return [
        SnapshotIndexEntry(index=s.index, timestamp=s.generated_at.isoformat())
        for s in overlay_service.get_wind_history()
    ]


@app.get("/api/windgl/metadata.json")
def windgl_metadata() -> JSONResponse:
    snapshot = _wind()
    return JSONResponse(
        snapshot.metadata.model_dump(by_alias=True), headers=_CACHE_HEADERS
    )


@app.get("/api/windgl/metadata.json/{index}")
def windgl_metadata_by_index(index: int) -> JSONResponse:
    snapshot = _wind(index)
    return JSONResponse(
        snapshot.metadata.model_dump(by_alias=True), headers=_CACHE_HEADERS
    )


@app.get("/api/windgl/wind.png")
def windgl_png() -> Response:
    return Response(_wind().png, media_type="image/png", headers=_CACHE_HEADERS)


@app.get("/api/windgl/wind.png/{index}")
def windgl_png_by_index(index: int) -> Response:
    return Response(_wind(index).png, media_type="image/png", headers=_CACHE_HEADERS)


# ---------------------------------------------------------------------------
# Precipitation samples
# ---------------------------------------------------------------------------


def _precipitation_response(snapshot: PrecipitationSnapshot) -> PrecipitationResponse:
    return PrecipitationResponse(
        index=snapshot.index,
        timestamp=snapshot.generated_at.isoformat(),
        source=snapshot.source,
        resolution=snapshot.resolution,
        bounds=AxisRange.from_bounds(snapshot.bounds),
        points=[
            PrecipitationPoint(lat=s.lat, lon=s.lon, rate=s.value)
            for s in snapshot.samples
        ],
    )


@app.get("/api/precipitation-global", response_model=PrecipitationResponse)
def precipitation_global() -> PrecipitationResponse:
    return _precipitation_response(_precipitation())


@app.get("/api/precipitation-global/{index}", response_model=PrecipitationResponse)
def precipitation_global_by_index(index: int) -> PrecipitationResponse:
    return _precipitation_response(_precipitation(index))


@app.get("/api/precipitation-indices", response_model=list[SnapshotIndexEntry])
def precipitation_indices() -> list[SnapshotIndexEntry]:
    return [
        SnapshotIndexEntry(index=s.index, timestamp=s.generated_at.isoformat())
        for s in overlay_service.get_precipitation_history()
    ]


# ---------------------------------------------------------------------------
# Server-rendered heatmaps
# ---------------------------------------------------------------------------


def _heatmap(payload: HeatmapRequest, layer: str) -> Response:
    try:
        png = overlay_service.render_heatmap(payload, layer=layer)
    except overlay_service.SnapshotNotFound as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    except overlay_service.DataUnavailable as exc:
        raise HTTPException(status_code=503, detail=str(exc)) from exc
    return Response(png, media_type="image/png", headers={"Cache-Control": "no-store"})


@app.post("/api/precipitation/heatmap")
def precipitation_heatmap(payload: HeatmapRequest) -> Response:
    return _heatmap(payload, "precipitation")


@app.post("/api/wind/heatmap")
def wind_heatmap(payload: HeatmapRequest) -> Response:
    return _heatmap(payload, "wind_speed")
