import itertools

import numpy as np
import pytest

from buddhabrot import DimensionMismatch, HistogramGrid, merge_all


def _random_grid(rng, width=7, height=5):
    return HistogramGrid.from_counts(rng.integers(0, 1000, size=(height, width)))


def test_increment_targets_column_then_row():
    grid = HistogramGrid(4, 3)
    grid.increment(3, 1)
    grid.increment(3, 1)
    grid.increment(0, 2)
    assert grid.counts[1, 3] == 2
    assert grid.counts[2, 0] == 1
    assert grid.total() == 3
    assert grid.max() == 2
    assert (grid.width_px, grid.height_px) == (4, 3)


def test_merge_adds_elementwise_and_returns_self():
    a = HistogramGrid.from_counts(np.array([[1, 2], [3, 4]]))
    b = HistogramGrid.from_counts(np.array([[10, 0], [0, 10]]))
    assert a.merge(b) is a
    np.testing.assert_array_equal(a.counts, [[11, 2], [3, 14]])
    np.testing.assert_array_equal(b.counts, [[10, 0], [0, 10]])


def test_merge_is_commutative_and_associative():
    rng = np.random.default_rng(3)
    grids = [_random_grid(rng) for _ in range(3)]
    expected = grids[0].counts + grids[1].counts + grids[2].counts
    for order in itertools.permutations(grids):
        merged = order[0].copy().merge(order[1]).merge(order[2])
        np.testing.assert_array_equal(merged.counts, expected)
        nested = order[0].copy().merge(order[1].copy().merge(order[2]))
        np.testing.assert_array_equal(nested.counts, expected)


def test_merge_all_leaves_inputs_untouched():
    rng = np.random.default_rng(5)
    grids = [_random_grid(rng) for _ in range(4)]
    before = [g.counts.copy() for g in grids]
    merged = merge_all(grids)
    np.testing.assert_array_equal(merged.counts, sum(before))
    for grid, original in zip(grids, before):
        np.testing.assert_array_equal(grid.counts, original)


def test_merge_dimension_mismatch():
    with pytest.raises(DimensionMismatch):
        HistogramGrid(4, 3).merge(HistogramGrid(3, 4))


def test_from_counts_rejects_non_2d():
    with pytest.raises(DimensionMismatch):
        HistogramGrid.from_counts(np.zeros(5))
