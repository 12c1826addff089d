"""IO module for reading transcripts and writing tiles."""

from .reader import read_transcripts, REQUIRED_COLUMNS
from .tile_writer import TileWriter, tile_filename

__all__ = ["read_transcripts", "REQUIRED_COLUMNS", "TileWriter", "tile_filename"]
