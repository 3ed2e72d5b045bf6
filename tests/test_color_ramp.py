import math

import pytest

from src.overlay.color_ramp import PRECIPITATION_STOPS, ColorRampEncoder
from src.overlay.models import RGBA, ColorStop


@pytest.fixture
def ramp() -> ColorRampEncoder:
    return ColorRampEncoder.named("precipitation", opacity=0.7)


@pytest.mark.parametrize("rate", [-1.0, 0.0, 0.05, 0.0999])
def test_below_visibility_is_transparent(ramp, rate):
    assert ramp.color_for(rate).a == 0


def test_heavy_rain_color(ramp):
    color = ramp.color_for(12.0)
    assert color[:3] == (138, 43, 226)
    assert color.a == pytest.approx(0.7 * 0.85)


def test_thresholds_are_lower_inclusive(ramp):
    assert ramp.color_for(0.1)[:3] == (173, 216, 230)
    assert ramp.color_for(0.5)[:3] == (135, 206, 250)
    assert ramp.color_for(40.0)[:3] == (220, 20, 60)
    assert ramp.color_for(1e6)[:3] == (220, 20, 60)


def test_alpha_never_decreases_across_bands():
    ramp = ColorRampEncoder(PRECIPITATION_STOPS, opacity=1.0)
    probes = [0.0, 0.1, 0.5, 1.0, 2.5, 5.0, 10.0, 20.0, 40.0]
    bands = [ramp.band_index(r) for r in probes]
    assert bands == list(range(9))
    alphas = [ramp.color_for(r).a for r in probes]
    assert alphas == sorted(alphas)
    assert alphas[1] == pytest.approx(0.3)
    assert alphas[-1] == pytest.approx(0.95)


def test_opacity_scales_alpha_only():
    full = ColorRampEncoder.named("precipitation", opacity=1.0)
    half = ColorRampEncoder.named("precipitation", opacity=0.5)
    for rate in (0.2, 3.0, 15.0, 50.0):
        assert half.color_for(rate)[:3] == full.color_for(rate)[:3]
        assert half.color_for(rate).a == pytest.approx(full.color_for(rate).a / 2)


def test_opacity_is_clamped(ramp):
    ramp.opacity = 3.0
    assert ramp.opacity == 1.0
    ramp.opacity = -1.0
    assert ramp.opacity == 0.0
    assert ramp.color_for(12.0) == RGBA(0, 0, 0, 0.0)


def test_nan_falls_in_first_band(ramp):
    assert ramp.color_for(float("nan")).a == 0


def test_wind_speed_ramp_colors_calm_air():
    ramp = ColorRampEncoder.named("wind_speed", opacity=0.6)
    assert ramp.color_for(0.0) == RGBA(50, 136, 189, pytest.approx(0.6))
    assert ramp.color_for(30.0)[:3] == (165, 0, 38)


def test_rejects_unordered_stops():
    stops = [
        ColorStop(threshold=-math.inf, rgb=(0, 0, 0), alpha_multiplier=0.0),
        ColorStop(threshold=5.0, rgb=(1, 1, 1), alpha_multiplier=0.5),
        ColorStop(threshold=5.0, rgb=(2, 2, 2), alpha_multiplier=0.6),
    ]
    with pytest.raises(ValueError):
        ColorRampEncoder(stops)


def test_rejects_ramp_without_open_lower_band():
    with pytest.raises(ValueError):
        ColorRampEncoder([ColorStop(threshold=0.0, rgb=(0, 0, 0), alpha_multiplier=0.0)])


def test_unknown_ramp_name():
    with pytest.raises(ValueError):
        ColorRampEncoder.named("temperature")
