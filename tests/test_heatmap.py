import io

import numpy as np
import pytest
from PIL import Image

from src.overlay.heatmap import HeatmapRasterPainter, HeatmapStyle
from src.overlay.models import Bounds, Sample
from src.overlay.projection import WebMercatorViewport

# 12 mm/h at opacity 0.7 -> blue-violet band, alpha 0.7 * 0.85
HEAVY_RGB = (138, 43, 226)
HEAVY_ALPHA = 152


def _painter(samples, bounds, **kwargs) -> HeatmapRasterPainter:
    return HeatmapRasterPainter(100, 100, samples, bounds=bounds, **kwargs)


def test_draw_without_projection_is_a_noop(heavy_rain, paris_bounds):
    painter = _painter(heavy_rain, paris_bounds)
    painter.pixels[...] = 7
    painter.draw()
    assert np.all(painter.pixels == 7)


def test_moving_draw_fills_cells_without_smoothing(heavy_rain, paris_bounds, paris_projection):
    painter = _painter(heavy_rain, paris_bounds)
    painter.set_moving(True)
    painter.draw(paris_projection)

    assert painter.cell_size == 40
    assert np.all(painter.pixels[..., :3] == HEAVY_RGB)
    assert np.all(painter.pixels[..., 3] == HEAVY_ALPHA)


def test_static_draw_is_smoothed(heavy_rain, paris_bounds, paris_projection):
    painter = _painter(heavy_rain, paris_bounds, projection=paris_projection)
    painter.draw()

    center = painter.pixels[50, 50]
    corner = painter.pixels[0, 0]
    assert painter.cell_size == 25
    assert np.all(np.abs(center[:3].astype(int) - HEAVY_RGB) <= 1)
    assert 0 < corner[3] < center[3] <= HEAVY_ALPHA


def test_static_draw_is_idempotent(heavy_rain, paris_bounds, paris_projection):
    samples = heavy_rain + [Sample(lat=47.4, lon=2.8, value=0.7)]
    painter = _painter(samples, paris_bounds, projection=paris_projection)
    painter.draw()
    first = painter.pixels.copy()
    painter.draw()
    np.testing.assert_array_equal(painter.pixels, first)


def test_rates_below_floor_are_not_painted(paris_bounds, paris_projection):
    painter = _painter([Sample(lat=48.0, lon=2.0, value=0.05)], paris_bounds)
    painter.draw(paris_projection)
    assert not painter.pixels.any()


def test_empty_samples_paint_nothing(paris_bounds, paris_projection):
    painter = _painter([], paris_bounds)
    painter.pixels[...] = 9
    painter.draw(paris_projection)
    assert not painter.pixels.any()


def test_cells_outside_bounds_are_skipped(heavy_rain, paris_projection):
    west_half = Bounds(min_lat=47.0, max_lat=49.0, min_lon=1.0, max_lon=2.0)
    painter = _painter(heavy_rain, west_half)
    painter.set_moving(True)
    painter.draw(paris_projection)

    # cell origins at x=0, 40 are at lon 1.0, 1.8; x=80 is lon 2.6
    assert painter.pixels[10, 10, 3] == HEAVY_ALPHA
    assert painter.pixels[10, 70, 3] == HEAVY_ALPHA
    assert painter.pixels[10, 90, 3] == 0


def test_samples_in_margin_contribute(paris_bounds, paris_projection):
    just_east = Sample(lat=48.0, lon=3.5, value=12.0)
    painter = _painter([just_east], paris_bounds)
    painter.set_moving(True)
    painter.draw(paris_projection)
    assert painter.pixels[50, 90, 3] == HEAVY_ALPHA


def test_setters_do_not_redraw(heavy_rain, paris_bounds, paris_projection):
    painter = _painter(heavy_rain, paris_bounds, projection=paris_projection)
    painter.draw()
    before = painter.pixels.copy()

    painter.set_opacity(0.1)
    painter.update_bounds(Bounds(min_lat=0.0, max_lat=1.0, min_lon=0.0, max_lon=1.0))
    painter.set_moving(True)
    painter.set_samples([])
    np.testing.assert_array_equal(painter.pixels, before)


def test_opacity_is_clamped_and_scales_alpha(heavy_rain, paris_bounds, paris_projection):
    painter = _painter(heavy_rain, paris_bounds)
    painter.set_opacity(5.0)
    assert painter.opacity == 1.0
    painter.set_moving(True)
    painter.draw(paris_projection)
    assert painter.pixels[50, 50, 3] == round(0.85 * 255)

    painter.set_opacity(-2.0)
    assert painter.opacity == 0.0
    painter.draw(paris_projection)
    assert not painter.pixels.any()


def test_resize_and_clear(heavy_rain, paris_bounds, paris_projection):
    painter = _painter(heavy_rain, paris_bounds)
    painter.set_moving(True)
    painter.draw(paris_projection)
    painter.clear()
    assert not painter.pixels.any()

    painter.resize(60, 30)
    assert painter.pixels.shape == (30, 60, 4)
    assert (painter.width, painter.height) == (60, 30)


def test_style_rejects_margin_below_influence_radius():
    with pytest.raises(ValueError):
        HeatmapStyle(max_distance=3.0, margin=2.0)


@pytest.mark.parametrize(
    "bounds",
    [
        Bounds(min_lat=47.1, max_lat=48.9, min_lon=1.3, max_lon=2.7),
        Bounds(min_lat=43.7, max_lat=45.3, min_lon=4.1, max_lon=6.3),
    ],
)
def test_mercator_edge_cells_are_painted(bounds):
    viewport = WebMercatorViewport(bounds, 200, 200)
    lng, lat = viewport.unproject((0, 0))
    assert (lng, lat) == (bounds.min_lon, bounds.max_lat)

    center_lat, center_lon = bounds.center
    painter = HeatmapRasterPainter(
        200, 200, [Sample(lat=center_lat, lon=center_lon, value=50.0)], bounds=bounds
    )
    painter.set_moving(True)
    painter.draw(viewport)
    assert np.all(painter.pixels[:, 0, 3] > 0)
    assert np.all(painter.pixels[0, :, 3] > 0)


def test_png_output_with_mercator_viewport(heavy_rain, paris_bounds):
    viewport = WebMercatorViewport(paris_bounds, 120, 80)
    painter = HeatmapRasterPainter(120, 80, heavy_rain, bounds=paris_bounds)
    painter.draw(viewport)

    image = Image.open(io.BytesIO(painter.to_png()))
    assert image.size == (120, 80)
    assert image.mode == "RGBA"
    assert np.asarray(image)[40, 60, 3] > 0
