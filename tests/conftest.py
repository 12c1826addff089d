"""Shared fixtures: synthetic Xenium transcript tables."""

from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from tile_xenium.transcripts.cell_id import encode_cell_id


def make_transcripts(
    n: int,
    x_range: tuple[float, float] = (0.0, 1000.0),
    y_range: tuple[float, float] = (0.0, 1000.0),
    seed: int = 0,
) -> pd.DataFrame:
    """Uniformly spread, fully passing transcripts with assigned cells."""
    rng = np.random.default_rng(seed)
    cells = rng.integers(1, 5000, size=n)
    return pd.DataFrame({
        "transcript_id": np.arange(1, n + 1, dtype=np.int64),
        "cell_id": [encode_cell_id(c) for c in cells],
        "overlaps_nucleus": rng.integers(0, 2, size=n),
        "feature_name": rng.choice(["CD3E", "EPCAM", "PTPRC", "ACTA2"], size=n),
        "x_location": rng.uniform(*x_range, size=n),
        "y_location": rng.uniform(*y_range, size=n),
        "z_location": rng.uniform(5.0, 25.0, size=n),
        "qv": np.full(n, 40.0),
    })


@pytest.fixture
def transcripts() -> pd.DataFrame:
    return make_transcripts(2000)


@pytest.fixture
def transcripts_csv(tmp_path: Path, transcripts: pd.DataFrame) -> Path:
    path = tmp_path / "transcripts.csv"
    transcripts.to_csv(path, index=False)
    return path
