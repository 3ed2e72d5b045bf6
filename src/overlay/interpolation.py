"""Inverse-distance-weighted estimation of scalar fields.

Distances are Euclidean in degree space, which is an acceptable
approximation at the scale of a single map viewport.

Both entry points are pure: the result depends only on the arguments, so
queries can be evaluated in any order or in bulk.
"""

from __future__ import annotations

from typing import Sequence, Union

import numpy as np

from .models import Sample
from .samples import SampleStore

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

# Distances below EPSILON (degrees) count as coincident with the sample.
EPSILON = 1e-3
# Weight of a coincident sample; equals 1 / EPSILON**2 so weight never drops
# when a query moves from just outside EPSILON to inside it.
W_MAX = 1.0 / EPSILON**2

DEFAULT_MAX_DISTANCE = 1.5

# Number of query points evaluated per numpy block.
_QUERY_CHUNK = 512

SampleSource = Union[SampleStore, Sequence[Sample]]


def _as_arrays(samples: SampleSource) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    if isinstance(samples, SampleStore):
        return samples.lats, samples.lons, samples.values
    store = SampleStore(samples)
    return store.lats, store.lons, store.values


def idw_weights(distance: np.ndarray) -> np.ndarray:
    """``1 / d**2`` weights, clamped to :data:`W_MAX` for coincident points."""
    safe = np.maximum(distance, EPSILON)
    return np.where(distance < EPSILON, W_MAX, 1.0 / (safe * safe))


def estimate_many(
    query_lats: np.ndarray,
    query_lons: np.ndarray,
    sample_lats: np.ndarray,
    sample_lons: np.ndarray,
    sample_values: np.ndarray,
    max_distance: float = DEFAULT_MAX_DISTANCE,
) -> np.ndarray:
    """Vectorised IDW over many query points.

    Samples farther than ``max_distance`` are ignored. A query with no
    sample in range yields ``0.0`` ("no signal").
    """
    query_lats = np.asarray(query_lats, dtype=float).ravel()
    query_lons = np.asarray(query_lons, dtype=float).ravel()
    out = np.zeros(query_lats.size, dtype=float)
    if query_lats.size == 0 or len(sample_values) == 0:
        return out

    for start in range(0, query_lats.size, _QUERY_CHUNK):
        stop = start + _QUERY_CHUNK
        dlat = sample_lats[None, :] - query_lats[start:stop, None]
        dlon = sample_lons[None, :] - query_lons[start:stop, None]
        distance = np.sqrt(dlat * dlat + dlon * dlon)

        weights = np.where(distance <= max_distance, idw_weights(distance), 0.0)
        total = weights.sum(axis=1)
        weighted = (weights * sample_values[None, :]).sum(axis=1)

        block = out[start:stop]
        has_signal = total > 0.0
        block[has_signal] = weighted[has_signal] / total[has_signal]
    return out


def estimate(
    query_lat: float,
    query_lon: float,
    samples: SampleSource,
    max_distance: float = DEFAULT_MAX_DISTANCE,
) -> float:
    """Estimate the field value at one point from nearby samples."""
    lats, lons, values = _as_arrays(samples)
    result = estimate_many(
        np.array([query_lat]), np.array([query_lon]), lats, lons, values, max_distance
    )
    return float(result[0])
