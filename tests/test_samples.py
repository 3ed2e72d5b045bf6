import numpy as np
import pytest

from src.overlay.models import Bounds, Sample
from src.overlay.samples import SampleStore, filter_by_bounds


def _random_samples(n: int, seed: int = 3) -> list[Sample]:
    rng = np.random.default_rng(seed)
    return [
        Sample(lat=float(lat), lon=float(lon), value=float(v))
        for lat, lon, v in zip(
            rng.uniform(30, 65, n), rng.uniform(-20, 25, n), rng.uniform(0, 20, n)
        )
    ]


def test_filter_keeps_only_points_inside_margin(paris_bounds):
    samples = _random_samples(500)
    margin = 5.0
    kept = filter_by_bounds(samples, paris_bounds, margin)

    assert set(kept) <= set(samples)
    for s in kept:
        assert paris_bounds.min_lat - margin <= s.lat <= paris_bounds.max_lat + margin
        assert paris_bounds.min_lon - margin <= s.lon <= paris_bounds.max_lon + margin
    dropped = [s for s in samples if s not in kept]
    assert all(not paris_bounds.expanded(margin).contains(s.lat, s.lon) for s in dropped)


def test_filter_includes_points_on_the_margin_edge(paris_bounds):
    edge = Sample(lat=paris_bounds.max_lat + 1.5, lon=paris_bounds.min_lon - 1.5, value=1.0)
    outside = Sample(lat=paris_bounds.max_lat + 1.6, lon=2.0, value=1.0)
    assert filter_by_bounds([edge, outside], paris_bounds, 1.5) == [edge]


def test_filter_of_nothing_is_empty(paris_bounds):
    assert filter_by_bounds([], paris_bounds, 5.0) == []


def test_store_from_ingestion_records():
    store = SampleStore.from_records(
        [{"lat": 48.0, "lon": 2.0, "rate": 1.5}, {"lat": 49.0, "lon": 3.0, "value": 0.0}]
    )
    assert len(store) == 2
    np.testing.assert_array_equal(store.values, [1.5, 0.0])


def test_store_within_returns_subset(paris_bounds, heavy_rain):
    far = Sample(lat=60.0, lon=20.0, value=4.0)
    store = SampleStore(heavy_rain + [far])
    subset = store.within(paris_bounds, margin=5.0)
    assert isinstance(subset, SampleStore)
    assert subset.samples == tuple(heavy_rain)
    assert not SampleStore()


def test_negative_sample_value_rejected():
    with pytest.raises(ValueError):
        Sample(lat=0.0, lon=0.0, value=-1.0)


def test_inverted_bounds_rejected():
    with pytest.raises(ValueError):
        Bounds(min_lat=10.0, max_lat=0.0, min_lon=0.0, max_lon=1.0)
