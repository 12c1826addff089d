"""Tile-Xenium.

Filter Xenium transcripts and split them into overlapping tiles for segmentation.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

__version__ = "0.1.0"

# Cached tiling kernels need a writable directory outside the install tree
if "NUMBA_CACHE_DIR" not in os.environ:
    _cache_dir = Path(os.environ.get("XDG_CACHE_HOME") or Path.home() / ".cache") / "numba"
    try:
        _cache_dir.mkdir(parents=True, exist_ok=True)
    except OSError:
        _cache_dir = Path(tempfile.gettempdir()) / "tile_xenium_numba"
        _cache_dir.mkdir(parents=True, exist_ok=True)
    os.environ["NUMBA_CACHE_DIR"] = str(_cache_dir)

from .pipeline import TilingPipeline
from .config import TileConfig

__all__ = ["TilingPipeline", "TileConfig", "__version__"]
