import numpy as np
import pandas as pd
import pytest

from tile_xenium.tiling import Bounds, Tiler
from tile_xenium.transcripts import TranscriptStore


def _store(xs, ys) -> TranscriptStore:
    return TranscriptStore.from_frame(pd.DataFrame({"x_location": xs, "y_location": ys}))


def _uniform_store(n, extent, seed=0) -> TranscriptStore:
    rng = np.random.default_rng(seed)
    xs = np.concatenate([[0.0, extent], rng.uniform(0, extent, size=n - 2)])
    ys = np.concatenate([[0.0, extent], rng.uniform(0, extent, size=n - 2)])
    return _store(xs, ys)


def _union_covers(tiles, extent: Bounds) -> bool:
    """Whether the union of tile bounds covers ``extent`` (checked on the cell edges)."""
    xs = sorted({t.bounds.x_min for t in tiles} | {t.bounds.x_max for t in tiles} | {extent.x_min, extent.x_max})
    ys = sorted({t.bounds.y_min for t in tiles} | {t.bounds.y_max for t in tiles} | {extent.y_min, extent.y_max})
    for x0, x1 in zip(xs, xs[1:]):
        for y0, y1 in zip(ys, ys[1:]):
            cx, cy = (x0 + x1) / 2, (y0 + y1) / 2
            if not extent.contains(cx, cy):
                continue
            if not any(t.bounds.contains(cx, cy) for t in tiles):
                return False
    return True


def test_bounds_helpers():
    b = Bounds(0.0, 10.0, 0.0, 20.0)
    assert b.expand(5.0) == Bounds(-5.0, 15.0, -5.0, 25.0)
    assert b.expand(5.0).clip(b) == b
    assert b.expand(1.0).covers(b)
    assert not b.covers(b.expand(1.0))
    assert (b.width, b.height) == (10.0, 20.0)


def test_grid_shape_and_partial_last_cell():
    store = _store([0.0, 9000.0], [0.0, 3000.0])
    tiler = Tiler(store, width=4000, height=4000, overlap=500)
    assert tiler.grid_shape == (1, 3)
    assert tiler.core_bounds(0, 2) == Bounds(8000.0, 9000.0, 0.0, 3000.0)


def test_degenerate_extent_has_one_cell():
    tiler = Tiler(_store([5.0, 5.0], [5.0, 5.0]), width=100, height=100, overlap=10)
    assert tiler.grid_shape == (1, 1)
    tiles = list(tiler.tiles())
    assert len(tiles) == 1
    assert tiles[0].count == 2


def test_every_point_in_exactly_one_core_cell():
    store = _uniform_store(3000, 1000.0)
    tiler = Tiler(store, width=300, height=300, overlap=50)
    hits = np.zeros(len(store), dtype=int)
    for row in range(tiler.n_rows):
        for col in range(tiler.n_cols):
            hits[tiler.select(tiler.core_bounds(row, col))] += 1
    assert (hits == 1).all()


def test_locate_matches_core_membership():
    store = _uniform_store(500, 1000.0, seed=3)
    tiler = Tiler(store, width=300, height=300, overlap=50)
    for i in range(len(store)):
        row, col = tiler.locate(store.x[i], store.y[i])
        assert i in tiler.select(tiler.core_bounds(row, col))


def test_uniform_scenario_four_tiles_without_expansion():
    store = _uniform_store(200_000, 8000.0)
    assert store.bounds == Bounds(0.0, 8000.0, 0.0, 8000.0)
    tiler = Tiler(store, width=4000, height=4000, overlap=500, minimal_transcripts=10000, n_workers=4)
    tiles = list(tiler.tiles())

    assert len(tiles) == 4
    assert [t.bounds for t in tiles] == [
        Bounds(0.0, 4500.0, 0.0, 4500.0),
        Bounds(3500.0, 8000.0, 0.0, 4500.0),
        Bounds(0.0, 4500.0, 3500.0, 8000.0),
        Bounds(3500.0, 8000.0, 3500.0, 8000.0),
    ]
    for tile in tiles:
        assert tile.expansions == 0
        assert tile.count >= 10000
    assert _union_covers(tiles, store.bounds)

    band = np.flatnonzero(np.abs(store.x - 4000.0) < 250.0)
    membership = np.zeros(len(store), dtype=int)
    for tile in tiles:
        membership[tile.indices] += 1
    assert (membership[band] >= 2).all()


def test_transcripts_near_internal_boundaries_are_shared():
    store = _uniform_store(5000, 1000.0, seed=1)
    tiler = Tiler(store, width=250, height=250, overlap=40)
    tiles = list(tiler.tiles())
    membership = np.zeros(len(store), dtype=int)
    for tile in tiles:
        membership[tile.indices] += 1

    internal = np.arange(250.0, 1000.0, 250.0)
    near = np.zeros(len(store), dtype=bool)
    for edge in internal:
        near |= np.abs(store.x - edge) < 40.0
        near |= np.abs(store.y - edge) < 40.0
    assert near.any()
    assert (membership[near] >= 2).all()
    assert (membership >= 1).all()


def test_sparse_tile_is_expanded_until_dense():
    rng = np.random.default_rng(2)
    # dense left half, a handful of points on the right
    xs = np.concatenate([[0.0], rng.uniform(0, 500, 5000), [600.0, 700.0, 800.0, 1000.0]])
    ys = np.concatenate([[0.0], rng.uniform(0, 1000, 5000), [100.0, 500.0, 900.0, 1000.0]])
    store = _store(xs, ys)
    tiler = Tiler(store, width=500, height=1000, overlap=50, minimal_transcripts=1000)
    tiles = list(tiler.tiles())

    assert len(tiles) == 2
    left, right = tiles
    assert left.expansions == 0
    assert right.expansions > 0
    assert right.count >= 1000
    assert right.bounds.covers(right.core)
    assert right.bounds.x_min < right.core.x_min - 50


def test_expansion_stops_at_saturation():
    store = _store([0.0, 10.0, 990.0, 1000.0], [0.0, 10.0, 990.0, 1000.0])
    tiler = Tiler(store, width=300, height=300, overlap=100, minimal_transcripts=100)
    tiles = list(tiler.tiles())
    assert tiles
    for tile in tiles:
        assert tile.bounds == store.bounds
        assert tile.count == 4


def test_density_invariant():
    rng = np.random.default_rng(4)
    xs = np.concatenate([rng.normal(200, 50, 3000), rng.uniform(0, 2000, 300)])
    ys = np.concatenate([rng.normal(200, 50, 3000), rng.uniform(0, 2000, 300)])
    store = _store(xs, ys)
    tiler = Tiler(store, width=400, height=400, overlap=100, minimal_transcripts=500, n_workers=3)
    tiles = list(tiler.tiles())
    for tile in tiles:
        assert tile.count >= 500 or tile.bounds == store.bounds
        assert tile.count == len(tile.indices)
        assert np.all(np.diff(tile.indices) > 0)
    assert _union_covers(tiles, store.bounds)


def test_empty_tiles_are_dropped():
    # two clusters, nothing in the middle cells
    xs = [0.0, 1.0, 2.0, 998.0, 999.0, 1000.0]
    ys = [0.0, 1.0, 2.0, 998.0, 999.0, 1000.0]
    tiler = Tiler(_store(xs, ys), width=100, height=100, overlap=10, minimal_transcripts=0)
    tiles = list(tiler.tiles())
    assert {(t.row, t.col) for t in tiles} == {(0, 0), (9, 9)}


def test_parallel_and_serial_results_match():
    store = _uniform_store(4000, 1000.0, seed=5)
    serial = list(Tiler(store, 200, 300, 60, minimal_transcripts=400, n_workers=1).tiles())
    parallel = list(Tiler(store, 200, 300, 60, minimal_transcripts=400, n_workers=4).tiles())
    assert [(t.row, t.col, t.bounds) for t in serial] == [(t.row, t.col, t.bounds) for t in parallel]
    for a, b in zip(serial, parallel):
        np.testing.assert_array_equal(a.indices, b.indices)


def test_non_positive_overlap_is_rejected():
    with pytest.raises(ValueError):
        Tiler(_store([0.0, 1.0], [0.0, 1.0]), width=10, height=10, overlap=0)


def test_select_with_known_count_matches_counting_pass():
    store = _uniform_store(1000, 500.0, seed=8)
    tiler = Tiler(store, width=200, height=200, overlap=50)
    bounds = tiler.core_bounds(1, 1).expand(50).clip(store.bounds)
    np.testing.assert_array_equal(tiler.select(bounds, tiler.count(bounds)), tiler.select(bounds))
