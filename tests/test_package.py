import os
from pathlib import Path

import tile_xenium


def test_numba_cache_dir_is_writable():
    cache_dir = Path(os.environ["NUMBA_CACHE_DIR"])
    assert cache_dir.is_dir()
    assert os.access(cache_dir, os.W_OK)
    assert tile_xenium.__version__
