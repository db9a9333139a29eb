"""Per-pixel visitation counters."""

from __future__ import annotations

from functools import reduce
from typing import Iterable

import numpy as np

from .errors import DimensionMismatch
from .viewport import Viewport

COUNT_DTYPE = np.int64


class HistogramGrid:
    """Fixed-size ``(height, width)`` grid of orbit visit counts.

    A grid is owned by a single worker while sampling; combining work from
    several workers goes through :meth:`merge` once they have finished.
    """

    def __init__(self, width_px: int, height_px: int):
        self.counts = np.zeros((int(height_px), int(width_px)), dtype=COUNT_DTYPE)

    @classmethod
    def for_viewport(cls, viewport: Viewport) -> HistogramGrid:
        return cls(viewport.width_px, viewport.height_px)

    @classmethod
    def from_counts(cls, counts: np.ndarray) -> HistogramGrid:
        counts = np.asarray(counts)
        if counts.ndim != 2:
            raise DimensionMismatch(f"Histogram counts must be 2-D, got shape {counts.shape}.")
        grid = cls(counts.shape[1], counts.shape[0])
        grid.counts[...] = counts
        return grid

    @property
    def width_px(self) -> int:
        return self.counts.shape[1]

    @property
    def height_px(self) -> int:
        return self.counts.shape[0]

    @property
    def shape(self) -> tuple[int, int]:
        return self.counts.shape

    def increment(self, i: int, j: int) -> None:
        self.counts[j, i] += 1

    def merge(self, other: HistogramGrid) -> HistogramGrid:
        """Add ``other`` into this grid element-wise and return ``self``."""

        if other.shape != self.shape:
            raise DimensionMismatch(f"Cannot merge grid of shape {other.shape} into {self.shape}.")
        self.counts += other.counts
        return self

    def total(self) -> int:
        return int(self.counts.sum())

    def max(self) -> int:
        return int(self.counts.max()) if self.counts.size else 0

    def copy(self) -> HistogramGrid:
        return HistogramGrid.from_counts(self.counts)

    def __repr__(self) -> str:
        return f"HistogramGrid({self.width_px}x{self.height_px}, total={self.total()})"


def merge_all(grids: Iterable[HistogramGrid]) -> HistogramGrid:
    """Reduce ``grids`` into a new grid; the inputs are left untouched."""

    grids = list(grids)
    if not grids:
        raise ValueError("merge_all() needs at least one grid.")
    return reduce(HistogramGrid.merge, grids[1:], grids[0].copy())
