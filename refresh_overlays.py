"""Overlay refresh entry point.

Runs one refresh of the wind texture and precipitation pipelines and
optionally writes the results to a directory for a static host.

Usage::

    uv run python refresh_overlays.py
    uv run python refresh_overlays.py --only wind --output-dir public/windgl
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

from src.web import overlay_service
from src.web.models import PrecipitationSnapshot, WindSnapshot

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)
logger = logging.getLogger(__name__)


def write_wind_snapshot(snapshot: WindSnapshot, output_dir: Path) -> None:
    output_dir.mkdir(parents=True, exist_ok=True)
    (output_dir / "wind.png").write_bytes(snapshot.png)
    (output_dir / "metadata.json").write_text(
        snapshot.metadata.model_dump_json(by_alias=True, indent=2)
    )
    points = [p.model_dump() for p in snapshot.points]
    (output_dir / "wind-points.json").write_text(json.dumps(points))
    logger.info("Wrote wind texture, metadata and %d points to %s", len(points), output_dir)


def write_precipitation_snapshot(snapshot: PrecipitationSnapshot, output_dir: Path) -> None:
    output_dir.mkdir(parents=True, exist_ok=True)
    points = [{"lat": s.lat, "lon": s.lon, "rate": s.value} for s in snapshot.samples]
    (output_dir / "precipitation.json").write_text(json.dumps(points))
    logger.info("Wrote %d precipitation samples to %s", len(points), output_dir)


def run_refresh(only: Optional[str] = None, output_dir: Optional[Path] = None) -> bool:
    """Refresh the selected pipelines. Returns False if precipitation failed."""
    ok = True
    if only in (None, "wind"):
        wind = overlay_service.refresh_wind()
        if output_dir is not None:
            write_wind_snapshot(wind, output_dir)

    if only in (None, "precipitation"):
        precip = overlay_service.refresh_precipitation()
        if precip is None:
            logger.error("Precipitation refresh failed")
            ok = False
        elif output_dir is not None:
            write_precipitation_snapshot(precip, output_dir)
    return ok


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description="Refresh wind and precipitation overlays")
    parser.add_argument(
        "--only",
        type=str,
        default=None,
        choices=["wind", "precipitation"],
        help="Refresh a single pipeline.",
    )
    parser.add_argument(
        "--output-dir",
        type=Path,
        default=None,
        help="Directory to write wind.png, metadata.json and the point JSON files to.",
    )
    args = parser.parse_args()

    if not run_refresh(only=args.only, output_dir=args.output_dir):
        raise SystemExit(1)
