"""Sample collections and viewport-bounded subsetting."""

from __future__ import annotations

import logging
from typing import Iterable, Sequence

import numpy as np

from .models import Bounds, Sample

logger = logging.getLogger(__name__)

# Default search margin (degrees) around the viewport. Must stay >= the
# interpolator's max influence radius or cells near the edge lose neighbours.
DEFAULT_MARGIN = 5.0


def filter_by_bounds(
    samples: Iterable[Sample], bounds: Bounds, margin: float
) -> list[Sample]:
    """Return every sample inside ``bounds`` expanded by ``margin`` degrees."""
    box = bounds.expanded(margin)
    return [s for s in samples if box.contains(s.lat, s.lon)]


class SampleStore:
    """Immutable snapshot of scalar samples with array views for numpy.

    The collection is replaced wholesale on every data refresh; use
    :meth:`within` to get the viewport subset.
    """

    def __init__(self, samples: Sequence[Sample] = ()) -> None:
        self._samples: tuple[Sample, ...] = tuple(samples)
        self.lats = np.array([s.lat for s in self._samples], dtype=float)
        self.lons = np.array([s.lon for s in self._samples], dtype=float)
        self.values = np.array([s.value for s in self._samples], dtype=float)

    @classmethod
    def from_records(cls, records: Iterable[dict]) -> SampleStore:
        """Build from ingestion dicts shaped ``{lat, lon, rate}`` or ``{lat, lon, value}``."""
        return cls([Sample.model_validate(r) for r in records])

    @property
    def samples(self) -> tuple[Sample, ...]:
        return self._samples

    def __len__(self) -> int:
        return len(self._samples)

    def __bool__(self) -> bool:
        return bool(self._samples)

    def within(self, bounds: Bounds, margin: float = DEFAULT_MARGIN) -> SampleStore:
        subset = filter_by_bounds(self._samples, bounds, margin)
        logger.debug(
            "Filtered samples: %d points (from %d)", len(subset), len(self._samples)
        )
        return SampleStore(subset)
