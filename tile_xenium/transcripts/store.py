"""In-memory store of filtered transcripts."""

import math
from dataclasses import dataclass

import numpy as np
import pandas as pd

from ..errors import InputFormatError
from ..tiling.bounds import Bounds


@dataclass(frozen=True)
class TranscriptStore:
    """Read-only table of filtered transcripts plus their extent.

    Rows are addressed by position (0..n-1). ``x``/``y`` are read-only float64
    views used by the tiler; tiles refer to rows by index instead of copying.
    """

    frame: pd.DataFrame
    x: np.ndarray
    y: np.ndarray
    bounds: Bounds

    @classmethod
    def from_frame(cls, frame: pd.DataFrame) -> "TranscriptStore":
        """Build a store from the concatenated filtered chunks.

        The bounds are rounded outward to whole microns.
        """
        if len(frame) == 0:
            raise InputFormatError("No transcripts remain after filtering")

        frame = frame.reset_index(drop=True)
        x = np.ascontiguousarray(frame["x_location"].to_numpy(dtype=np.float64))
        y = np.ascontiguousarray(frame["y_location"].to_numpy(dtype=np.float64))
        if not (np.isfinite(x).all() and np.isfinite(y).all()):
            raise InputFormatError("x_location/y_location contain missing or non-finite values")
        x.flags.writeable = False
        y.flags.writeable = False

        bounds = Bounds(
            x_min=float(math.floor(x.min())),
            x_max=float(math.ceil(x.max())),
            y_min=float(math.floor(y.min())),
            y_max=float(math.ceil(y.max())),
        )
        return cls(frame=frame, x=x, y=y, bounds=bounds)

    def __len__(self) -> int:
        return len(self.frame)

    def select(self, indices: np.ndarray) -> pd.DataFrame:
        """Rows at ``indices`` in ascending index order."""
        return self.frame.iloc[np.sort(np.asarray(indices, dtype=np.int64))]
