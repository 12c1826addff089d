"""Main tiling pipeline."""

import json
import logging
from pathlib import Path
from typing import Optional

import pandas as pd
from tqdm import tqdm

from .config import TileConfig
from .errors import ConfigError
from .io.reader import read_transcripts
from .io.tile_writer import TileWriter
from .tiling import Tiler
from .transcripts import TranscriptFilter, TranscriptStore

logger = logging.getLogger(__name__)


class TilingPipeline:
    """Filters a Xenium transcript table and splits it into overlapping tiles."""

    def __init__(self, config: TileConfig):
        """Initialize the tiling pipeline.

        Args:
            config: Tiling configuration
        """
        self.config = config
        self.store: Optional[TranscriptStore] = None
        self.n_rows_read: int = 0
        self.written: list[dict] = []

    def run(self) -> list[Path]:
        """Execute the full pipeline.

        Returns:
            Paths of the written tile files, in grid order
        """
        self.config.validate()
        logger.info("Starting tiling pipeline")

        # Step 1: Read, filter and decode
        self._load_transcripts()

        # Step 2: Split into tiles and write them
        paths = self._build_and_write_tiles()

        # Step 3: Parameters and tile manifest
        self._write_metadata()

        logger.info("Pipeline completed successfully")
        return paths

    def _load_transcripts(self) -> None:
        """Read the input in chunks, keep passing transcripts and build the store."""
        transcript_filter = TranscriptFilter.from_config(self.config)
        logger.info(
            f"Filtering: qv >= {transcript_filter.min_qv}, "
            f"excluding prefixes {list(transcript_filter.exclude_prefixes)}, "
            f"nucleus_only={transcript_filter.nucleus_only}"
        )

        kept: list[pd.DataFrame] = []
        self.n_rows_read = 0
        chunks = read_transcripts(self.config.input_path, batch_size=self.config.batch_size)
        for chunk in tqdm(chunks, desc="Reading transcripts", unit="chunk"):
            self.n_rows_read += len(chunk)
            kept.append(transcript_filter.apply(chunk))

        frame = pd.concat(kept) if kept else pd.DataFrame()
        logger.info(f"Kept {len(frame):,} of {self.n_rows_read:,} transcripts")

        self.store = TranscriptStore.from_frame(frame)
        if len(self.store) < self.config.minimal_transcripts:
            raise ConfigError(
                f"Only {len(self.store):,} transcripts remain after filtering, fewer than "
                f"the required minimal transcript number per tile "
                f"({self.config.minimal_transcripts:,}). Please consider adjusting that value."
            )

        b = self.store.bounds
        logger.info(f"... x: {b.x_min} - {b.x_max}")
        logger.info(f"... y: {b.y_min} - {b.y_max}")

    def _build_and_write_tiles(self) -> list[Path]:
        """Compute tiles on the worker pool and write each one as it completes."""
        tiler = Tiler.from_config(self.store, self.config)
        n_rows, n_cols = tiler.grid_shape
        logger.info(f"Creating tiles on a {n_cols} x {n_rows} grid ({self.config.n_workers} workers)")

        writer = TileWriter(self.config.output_dir, nucleus_only=self.config.nucleus_only)
        paths: list[Path] = []
        self.written = []
        # Cells that expand to the same rectangle share one file
        by_bounds: dict = {}
        for tile in tqdm(tiler.tiles(), total=n_rows * n_cols, desc="Tiles", unit="tile"):
            cell = {
                "row": tile.row,
                "col": tile.col,
                "core_bounds": tile.core.to_dict(),
                "expansions": tile.expansions,
            }
            entry = by_bounds.get(tile.bounds)
            if entry is not None:
                logger.info(
                    f"... ... Tile ({tile.row}, {tile.col}) has the same bounds as {entry['file']}"
                )
                entry["core_cells"].append(cell)
                continue

            path = writer.write(tile, self.store)
            paths.append(path)
            entry = {
                "file": path.name,
                "bounds": tile.bounds.to_dict(),
                "n_transcripts": tile.count,
                "core_cells": [cell],
            }
            by_bounds[tile.bounds] = entry
            self.written.append(entry)

        logger.info(f"Wrote {len(paths)} tiles to: {self.config.output_dir}")
        return paths

    def _write_metadata(self) -> None:
        """Write params.yaml and tiles.json next to the tiles."""
        output_dir = Path(self.config.output_dir)
        self.config.to_yaml(output_dir / "params.yaml")

        manifest = {
            "input_path": str(self.config.input_path),
            "nucleus_only": bool(self.config.nucleus_only),
            "n_transcripts_read": int(self.n_rows_read),
            "n_transcripts_kept": len(self.store),
            "bounds": self.store.bounds.to_dict(),
            "tiles": self.written,
        }
        with open(output_dir / "tiles.json", "w") as f:
            json.dump(manifest, f, indent=2)

        logger.info(f"Metadata written to: {output_dir}")
