"""Overlapping spatial tiles with density-driven expansion."""

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Iterator, Optional

import numpy as np
from numba import njit

from .bounds import Bounds

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Tile:
    """A grid cell, the bounds it was expanded to and the transcripts inside."""

    row: int
    col: int
    core: Bounds  # grid cell
    bounds: Bounds  # realized query bounds
    indices: np.ndarray  # sorted store row indices
    expansions: int = 0

    @property
    def count(self) -> int:
        return int(self.indices.shape[0])


class Tiler:
    """Partitions a transcript store into overlapping tiles.

    The store extent is cut into a grid of ``width x height`` core cells
    anchored at the lower-left corner; the last column and row end at the
    extent and may be narrower. Each core cell is padded by ``overlap`` on
    every side and clipped to the extent. While a tile holds fewer than
    ``minimal_transcripts`` it grows by another ``overlap`` per side, until
    it reaches the threshold or covers the whole extent.

    Membership is half-open ``[min, max)``; an upper edge lying on the
    extent's maximum is closed so that every transcript lands in exactly one
    core cell.
    """

    def __init__(
        self,
        store,
        width: float,
        height: float,
        overlap: float,
        minimal_transcripts: int = 0,
        n_workers: int = 1,
    ):
        """Initialize the tiler.

        Args:
            store: TranscriptStore providing ``x``, ``y`` and ``bounds``
            width: Core cell width
            height: Core cell height
            overlap: Padding and expansion increment, must be positive
            minimal_transcripts: Expansion target per tile
            n_workers: Threads used to compute tiles
        """
        if overlap <= 0:
            raise ValueError(f"overlap must be positive, got {overlap}")
        self.x = store.x
        self.y = store.y
        self.extent: Bounds = store.bounds
        self.width = float(width)
        self.height = float(height)
        self.overlap = float(overlap)
        self.minimal_transcripts = int(minimal_transcripts)
        self.n_workers = max(1, int(n_workers))

        self.n_cols = max(1, math.ceil(self.extent.width / self.width))
        self.n_rows = max(1, math.ceil(self.extent.height / self.height))

    @classmethod
    def from_config(cls, store, config) -> "Tiler":
        return cls(
            store,
            width=config.width,
            height=config.height,
            overlap=config.overlap,
            minimal_transcripts=config.minimal_transcripts,
            n_workers=config.n_workers,
        )

    @property
    def grid_shape(self) -> tuple[int, int]:
        """(rows, cols) of the core grid."""
        return (self.n_rows, self.n_cols)

    def core_bounds(self, row: int, col: int) -> Bounds:
        """Bounds of the core cell at grid position (row, col)."""
        if not (0 <= row < self.n_rows and 0 <= col < self.n_cols):
            raise ValueError(f"Cell ({row}, {col}) outside grid {self.grid_shape}")
        e = self.extent
        x_max = e.x_max if col == self.n_cols - 1 else e.x_min + (col + 1) * self.width
        y_max = e.y_max if row == self.n_rows - 1 else e.y_min + (row + 1) * self.height
        return Bounds(
            x_min=e.x_min + col * self.width,
            x_max=x_max,
            y_min=e.y_min + row * self.height,
            y_max=y_max,
        )

    def locate(self, x: float, y: float) -> tuple[int, int]:
        """Grid position (row, col) of the core cell containing a point."""
        if not self.extent.contains(x, y):
            raise ValueError(f"Point ({x}, {y}) outside {self.extent}")
        col = min(int((x - self.extent.x_min) // self.width), self.n_cols - 1)
        row = min(int((y - self.extent.y_min) // self.height), self.n_rows - 1)
        return (row, col)

    def count(self, bounds: Bounds) -> int:
        """Number of transcripts inside ``bounds``."""
        close_x, close_y = self._closed_edges(bounds)
        return int(
            _count_in_bounds(
                self.x, self.y,
                bounds.x_min, bounds.x_max, bounds.y_min, bounds.y_max,
                close_x, close_y,
            )
        )

    def select(self, bounds: Bounds, count: Optional[int] = None) -> np.ndarray:
        """Sorted indices of transcripts inside ``bounds``.

        ``count`` skips the counting pass when already known for ``bounds``.
        """
        close_x, close_y = self._closed_edges(bounds)
        n = self.count(bounds) if count is None else count
        return _select_in_bounds(
            self.x, self.y,
            bounds.x_min, bounds.x_max, bounds.y_min, bounds.y_max,
            close_x, close_y, n,
        )

    def _closed_edges(self, bounds: Bounds) -> tuple[bool, bool]:
        return (bounds.x_max >= self.extent.x_max, bounds.y_max >= self.extent.y_max)

    def expand(self, core: Bounds) -> tuple[Bounds, int, int]:
        """Pad a core cell and grow it until it is dense enough or saturated.

        Returns:
            Tuple of (realized bounds, transcript count, extra expansion steps)
        """
        bounds = core.expand(self.overlap).clip(self.extent)
        count = self.count(bounds)
        expansions = 0
        while count < self.minimal_transcripts and bounds != self.extent:
            bounds = bounds.expand(self.overlap).clip(self.extent)
            count = self.count(bounds)
            expansions += 1
            logger.debug(
                f"... expanded tile to X={bounds.x_min}-{bounds.x_max} "
                f"Y={bounds.y_min}-{bounds.y_max}: {count:,} transcripts"
            )
        return bounds, count, expansions

    def build_tile(self, row: int, col: int) -> Optional[Tile]:
        """Compute the tile for one core cell, or None if it holds no transcripts."""
        core = self.core_bounds(row, col)
        bounds, count, expansions = self.expand(core)
        if count == 0:
            logger.debug(f"Dropping empty tile ({row}, {col})")
            return None
        if count < self.minimal_transcripts:
            logger.warning(
                f"Tile ({row}, {col}) covers the full extent with only {count:,} "
                f"transcripts (< {self.minimal_transcripts:,})"
            )
        return Tile(
            row=row,
            col=col,
            core=core,
            bounds=bounds,
            indices=self.select(bounds, count),
            expansions=expansions,
        )

    def tiles(self) -> Iterator[Tile]:
        """Yield non-empty tiles in row-major grid order.

        Tiles are computed concurrently on ``n_workers`` threads; the store is
        only read.
        """
        cells = [(row, col) for row in range(self.n_rows) for col in range(self.n_cols)]
        if self.n_workers == 1:
            results = (self.build_tile(row, col) for row, col in cells)
            yield from (tile for tile in results if tile is not None)
            return

        with ThreadPoolExecutor(max_workers=self.n_workers) as executor:
            for tile in executor.map(lambda rc: self.build_tile(*rc), cells):
                if tile is not None:
                    yield tile


@njit(cache=True, nogil=True)
def _inside(xi, yi, x_min, x_max, y_min, y_max, close_x, close_y):
    if xi < x_min or yi < y_min:
        return False
    if xi > x_max or (xi == x_max and not close_x):
        return False
    if yi > y_max or (yi == y_max and not close_y):
        return False
    return True


@njit(cache=True, nogil=True)
def _count_in_bounds(x, y, x_min, x_max, y_min, y_max, close_x, close_y):
    n = 0
    for i in range(x.shape[0]):
        if _inside(x[i], y[i], x_min, x_max, y_min, y_max, close_x, close_y):
            n += 1
    return n


@njit(cache=True, nogil=True)
def _select_in_bounds(x, y, x_min, x_max, y_min, y_max, close_x, close_y, n):
    out = np.empty(n, dtype=np.int64)
    k = 0
    for i in range(x.shape[0]):
        if _inside(x[i], y[i], x_min, x_max, y_min, y_max, close_x, close_y):
            out[k] = i
            k += 1
    return out
