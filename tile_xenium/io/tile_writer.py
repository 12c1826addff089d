"""CSV output for tiles."""

import logging
from pathlib import Path

from ..tiling import Bounds, Tile

logger = logging.getLogger(__name__)

OUTPUT_COLUMNS = (
    "transcript_id",
    "cell_id",
    "overlaps_nucleus",
    "feature_name",
    "x_location",
    "y_location",
    "z_location",
    "qv",
)


def _format_coord(value: float) -> str:
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


def tile_filename(bounds: Bounds, nucleus_only: bool) -> str:
    """File name of a tile, e.g. X0-4500_Y0-4500_filtered_transcripts_nucleus_only_false.csv."""
    return (
        f"X{_format_coord(bounds.x_min)}-{_format_coord(bounds.x_max)}"
        f"_Y{_format_coord(bounds.y_min)}-{_format_coord(bounds.y_max)}"
        f"_filtered_transcripts_nucleus_only_{str(bool(nucleus_only)).lower()}.csv"
    )


class TileWriter:
    """Writes each tile's transcripts to its own CSV file."""

    def __init__(self, output_dir: Path, nucleus_only: bool = False):
        self.output_dir = Path(output_dir)
        self.nucleus_only = nucleus_only
        self.output_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, tile: Tile) -> Path:
        return self.output_dir / tile_filename(tile.bounds, self.nucleus_only)

    def write(self, tile: Tile, store) -> Path:
        """Write a tile's rows in ascending store order.

        Returns:
            Path of the written file
        """
        rows = store.select(tile.indices)
        columns = [c for c in OUTPUT_COLUMNS if c in rows.columns]
        path = self.path_for(tile)
        rows.to_csv(path, columns=columns, index=False)
        logger.info(f"... ... Tile created: {path} ({tile.count:,} transcripts, {tile.expansions} expansions)")
        return path
