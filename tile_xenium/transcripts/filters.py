"""Quality, control-probe and nucleus filters for transcripts."""

import logging
from collections.abc import Mapping
from typing import Iterable

import numpy as np
import pandas as pd

from .cell_id import decode_cell_id, decode_cell_ids

logger = logging.getLogger(__name__)


class TranscriptFilter:
    """Drops low-quality and control transcripts and decodes cell ids.

    A transcript is kept when ``qv >= min_qv`` and its feature name starts with
    none of ``exclude_prefixes``. With ``nucleus_only`` set, kept transcripts
    that do not overlap the nucleus stay in the table but lose their cell
    assignment (cell id 0).
    """

    def __init__(
        self,
        min_qv: float = 20.0,
        exclude_prefixes: Iterable[str] = (),
        nucleus_only: bool = False,
    ):
        """Initialize the filter.

        Args:
            min_qv: Minimum Phred-scaled quality score
            exclude_prefixes: Feature name prefixes to drop (case-sensitive)
            nucleus_only: Unassign transcripts outside the nucleus
        """
        self.min_qv = float(min_qv)
        self.exclude_prefixes = tuple(exclude_prefixes)
        self.nucleus_only = nucleus_only

    @classmethod
    def from_config(cls, config) -> "TranscriptFilter":
        return cls(
            min_qv=config.min_qv,
            exclude_prefixes=config.exclude_prefixes,
            nucleus_only=config.nucleus_only,
        )

    def is_excluded(self, feature_name: str) -> bool:
        return bool(self.exclude_prefixes) and feature_name.startswith(self.exclude_prefixes)

    def accepts(self, transcript: Mapping) -> bool:
        """Whether a single transcript record passes the quality and exclusion checks."""
        if float(transcript["qv"]) < self.min_qv:
            return False
        return not self.is_excluded(str(transcript["feature_name"]))

    def cell_id(self, transcript: Mapping) -> int:
        """Decoded cell id of an accepted record after the nucleus override."""
        if self.nucleus_only and not bool(transcript.get("overlaps_nucleus", False)):
            return 0
        return decode_cell_id(str(transcript["cell_id"]))

    def mask(self, frame: pd.DataFrame) -> np.ndarray:
        """Boolean mask of rows passing the quality and exclusion checks."""
        keep = frame["qv"].to_numpy(dtype=np.float64) >= self.min_qv
        if self.exclude_prefixes:
            names = frame["feature_name"].astype(str)
            keep &= ~names.str.startswith(self.exclude_prefixes).to_numpy(dtype=bool)
        return keep

    def apply(self, frame: pd.DataFrame) -> pd.DataFrame:
        """Filter a chunk of transcripts and replace ``cell_id`` by its decoded integer.

        Args:
            frame: Transcript chunk as produced by the reader

        Returns:
            The kept rows (original row labels preserved) with an int64 ``cell_id``

        Raises:
            DecodeError: If a kept row has a malformed cell id
        """
        kept = frame.loc[self.mask(frame)].copy()
        cell_ids = decode_cell_ids(kept["cell_id"])

        if self.nucleus_only:
            in_nucleus = kept["overlaps_nucleus"].to_numpy(dtype=bool)
            cell_ids[~in_nucleus] = 0

        kept["cell_id"] = cell_ids
        logger.debug(f"Kept {len(kept):,} of {len(frame):,} transcripts in chunk")
        return kept
