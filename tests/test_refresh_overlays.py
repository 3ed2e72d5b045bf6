import json

import openmeteo_utils
import refresh_overlays
from src.overlay.models import Sample, WindMeasurement


def _stub_upstream(monkeypatch, samples):
    monkeypatch.setattr(
        openmeteo_utils,
        "fetch_center_wind",
        lambda lat, lon, timeout: WindMeasurement(speed=4.0, direction_from=90.0, gust=5.0),
    )
    monkeypatch.setattr(
        openmeteo_utils,
        "fetch_precipitation_samples",
        lambda bounds, resolution, timeout: samples,
    )


def test_refresh_writes_static_files(monkeypatch, tmp_path):
    _stub_upstream(monkeypatch, [Sample(lat=48.0, lon=2.0, value=1.2)])

    assert refresh_overlays.run_refresh(output_dir=tmp_path)

    assert (tmp_path / "wind.png").read_bytes().startswith(b"\x89PNG")
    metadata = json.loads((tmp_path / "metadata.json").read_text())
    assert {"uMin", "uMax", "vMin", "vMax"} <= set(metadata)
    assert len(json.loads((tmp_path / "wind-points.json").read_text())) == 713
    assert json.loads((tmp_path / "precipitation.json").read_text()) == [
        {"lat": 48.0, "lon": 2.0, "rate": 1.2}
    ]


def test_only_wind_skips_precipitation(monkeypatch, tmp_path):
    _stub_upstream(monkeypatch, None)
    assert refresh_overlays.run_refresh(only="wind", output_dir=tmp_path)
    assert not (tmp_path / "precipitation.json").exists()


def test_failed_precipitation_is_reported(monkeypatch, tmp_path):
    _stub_upstream(monkeypatch, None)
    assert not refresh_overlays.run_refresh(only="precipitation", output_dir=tmp_path)
    assert list(tmp_path.iterdir()) == []
