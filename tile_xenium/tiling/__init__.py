"""Spatial tiling of transcripts."""

from .bounds import Bounds
from .tiler import Tile, Tiler

__all__ = ["Bounds", "Tile", "Tiler"]
