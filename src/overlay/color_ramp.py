"""Table-driven step colour ramps for scalar overlays."""

from __future__ import annotations

import bisect
import math
from typing import Sequence

from .models import RGBA, TRANSPARENT, ColorStop

# ---------------------------------------------------------------------------
# Ramp tables
# ---------------------------------------------------------------------------

# Precipitation rate (mm/h): transparent -> blues -> purples -> red.
PRECIPITATION_STOPS: tuple[ColorStop, ...] = (
    ColorStop(threshold=-math.inf, rgb=(0, 0, 0), alpha_multiplier=0.0),
    ColorStop(threshold=0.1, rgb=(173, 216, 230), alpha_multiplier=0.3),  # light blue
    ColorStop(threshold=0.5, rgb=(135, 206, 250), alpha_multiplier=0.5),  # sky blue
    ColorStop(threshold=1.0, rgb=(70, 130, 180), alpha_multiplier=0.6),  # steel blue
    ColorStop(threshold=2.5, rgb=(30, 144, 255), alpha_multiplier=0.7),  # dodger blue
    ColorStop(threshold=5.0, rgb=(75, 0, 130), alpha_multiplier=0.8),  # indigo
    ColorStop(threshold=10.0, rgb=(138, 43, 226), alpha_multiplier=0.85),  # blue-violet
    ColorStop(threshold=20.0, rgb=(199, 21, 133), alpha_multiplier=0.9),  # violet red
    ColorStop(threshold=40.0, rgb=(220, 20, 60), alpha_multiplier=0.95),  # crimson
)

# Wind speed (m/s): calm blue -> green -> yellow -> red.
WIND_SPEED_STOPS: tuple[ColorStop, ...] = (
    ColorStop(threshold=-math.inf, rgb=(50, 136, 189), alpha_multiplier=1.0),
    ColorStop(threshold=2.0, rgb=(102, 194, 165), alpha_multiplier=1.0),
    ColorStop(threshold=5.0, rgb=(171, 221, 164), alpha_multiplier=1.0),
    ColorStop(threshold=8.0, rgb=(230, 245, 152), alpha_multiplier=1.0),
    ColorStop(threshold=11.0, rgb=(254, 224, 139), alpha_multiplier=1.0),
    ColorStop(threshold=14.0, rgb=(253, 174, 97), alpha_multiplier=1.0),
    ColorStop(threshold=17.0, rgb=(244, 109, 67), alpha_multiplier=1.0),
    ColorStop(threshold=20.0, rgb=(215, 48, 39), alpha_multiplier=1.0),
    ColorStop(threshold=24.0, rgb=(165, 0, 38), alpha_multiplier=1.0),
)

RAMPS: dict[str, tuple[ColorStop, ...]] = {
    "precipitation": PRECIPITATION_STOPS,
    "wind_speed": WIND_SPEED_STOPS,
}


class ColorRampEncoder:
    """Map a scalar to the colour of the band whose lower bound it reaches.

    Band alpha is ``opacity * alpha_multiplier``; changing the opacity
    never alters hue or thresholds.
    """

    def __init__(self, stops: Sequence[ColorStop], opacity: float = 1.0) -> None:
        stops = tuple(stops)
        if not stops:
            raise ValueError("A colour ramp needs at least one stop")
        if stops[0].threshold != -math.inf:
            raise ValueError("The first colour stop must start at -inf")
        thresholds = [s.threshold for s in stops]
        for lower, upper in zip(thresholds, thresholds[1:]):
            if not upper > lower:
                raise ValueError(
                    f"Colour stop thresholds must strictly increase ({lower} -> {upper})"
                )
        self._stops = stops
        self._thresholds = thresholds
        self.opacity = opacity

    @classmethod
    def named(cls, name: str, opacity: float = 1.0) -> ColorRampEncoder:
        try:
            stops = RAMPS[name]
        except KeyError:
            raise ValueError(
                f"Unknown colour ramp '{name}' (available: {sorted(RAMPS)})"
            ) from None
        return cls(stops, opacity=opacity)

    @property
    def stops(self) -> tuple[ColorStop, ...]:
        return self._stops

    @property
    def opacity(self) -> float:
        return self._opacity

    @opacity.setter
    def opacity(self, value: float) -> None:
        self._opacity = min(1.0, max(0.0, float(value)))

    def band_index(self, value: float) -> int:
        """Index of the band containing ``value`` (NaN falls in band 0)."""
        if math.isnan(value):
            return 0
        return bisect.bisect_right(self._thresholds, value) - 1

    def color_for(self, value: float) -> RGBA:
        stop = self._stops[self.band_index(value)]
        alpha = self._opacity * stop.alpha_multiplier
        if alpha <= 0.0:
            return TRANSPARENT
        r, g, b = stop.rgb
        return RGBA(r, g, b, alpha)
