"""Chunked reader for Xenium transcript tables."""

import logging
from pathlib import Path
from typing import Iterator

import numpy as np
import pandas as pd
import pyarrow as pa
import pyarrow.parquet as pq

from ..errors import InputFormatError

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = (
    "cell_id",
    "feature_name",
    "x_location",
    "y_location",
    "z_location",
    "qv",
)
OPTIONAL_COLUMNS = ("transcript_id", "overlaps_nucleus")


def table_format(path: Path) -> str:
    """Return "csv" or "parquet" from the file suffix."""
    name = Path(path).name.lower()
    if name.endswith(".parquet"):
        return "parquet"
    if name.endswith(".csv") or name.endswith(".csv.gz"):
        return "csv"
    raise InputFormatError(f"Input file should be either CSV or Parquet: {path}")


def _check_columns(path: Path, available) -> list[str]:
    available = list(available)
    missing = [c for c in REQUIRED_COLUMNS if c not in available]
    if missing:
        raise InputFormatError(f"{path} is missing required columns: {', '.join(missing)}")
    return [c for c in REQUIRED_COLUMNS + OPTIONAL_COLUMNS if c in available]


def _as_text(values: pd.Series) -> pd.Series:
    if values.dtype == object:
        values = values.map(lambda v: v.decode("utf-8") if isinstance(v, bytes) else v)
    return values.astype(str)


def _as_flag(values: pd.Series) -> pd.Series:
    if pd.api.types.is_bool_dtype(values):
        return values.fillna(False).astype(bool)
    if pd.api.types.is_numeric_dtype(values):
        return values.fillna(0).astype(np.float64) != 0
    text = _as_text(values).str.strip().str.lower()
    return text.isin(["1", "true"])


def normalize_chunk(chunk: pd.DataFrame) -> pd.DataFrame:
    """Coerce a raw chunk to the column types the pipeline expects."""
    chunk["cell_id"] = _as_text(chunk["cell_id"].fillna("UNASSIGNED"))
    chunk["feature_name"] = _as_text(chunk["feature_name"])
    for col in ("x_location", "y_location", "z_location", "qv"):
        chunk[col] = pd.to_numeric(chunk[col], errors="raise").astype(np.float64)
    if "overlaps_nucleus" in chunk.columns:
        chunk["overlaps_nucleus"] = _as_flag(chunk["overlaps_nucleus"])
    else:
        chunk["overlaps_nucleus"] = False
    return chunk


def _read_csv(path: Path, batch_size: int) -> Iterator[pd.DataFrame]:
    header = pd.read_csv(path, nrows=0).columns
    columns = _check_columns(path, header)
    reader = pd.read_csv(
        path,
        usecols=columns,
        dtype={"cell_id": str, "feature_name": str},
        chunksize=batch_size,
    )
    with reader:
        for chunk in reader:
            yield chunk


def _read_parquet(path: Path, batch_size: int) -> Iterator[pd.DataFrame]:
    parquet = pq.ParquetFile(path)
    columns = _check_columns(path, parquet.schema_arrow.names)
    offset = 0
    for batch in parquet.iter_batches(batch_size=batch_size, columns=columns):
        chunk = batch.to_pandas()
        chunk.index = pd.RangeIndex(offset, offset + len(chunk))
        offset += len(chunk)
        yield chunk


def read_transcripts(path: Path, batch_size: int = 1_000_000) -> Iterator[pd.DataFrame]:
    """Yield normalized transcript chunks.

    Chunk indexes hold absolute input row numbers (0-based, header excluded).

    Args:
        path: transcripts.csv, transcripts.csv.gz or transcripts.parquet
        batch_size: Rows per chunk

    Raises:
        InputFormatError: Unsupported suffix, missing columns or unreadable data
    """
    path = Path(path)
    fmt = table_format(path)
    logger.info(f"Reading {fmt} transcripts from: {path}")

    chunks = _read_csv(path, batch_size) if fmt == "csv" else _read_parquet(path, batch_size)
    try:
        for chunk in chunks:
            yield normalize_chunk(chunk)
    except InputFormatError:
        raise
    except (ValueError, OSError, EOFError, pa.ArrowException) as e:
        raise InputFormatError(f"Failed to read {path}: {e}") from e
