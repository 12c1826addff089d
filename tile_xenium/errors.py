"""Exceptions raised by the tiling pipeline."""

from typing import Optional


class TileXeniumError(Exception):
    """Base class for all pipeline errors."""


class ConfigError(TileXeniumError, ValueError):
    """Invalid run configuration."""


class InputFormatError(TileXeniumError, ValueError):
    """The transcript table is unreadable or lacks required columns."""


class DecodeError(TileXeniumError, ValueError):
    """A cell identifier does not match the encoded shape."""

    def __init__(self, code: str, reason: str, row: Optional[int] = None):
        self.code = code
        self.reason = reason
        self.row = row
        where = f" at row {row}" if row is not None else ""
        super().__init__(f"Cannot decode cell id {code!r}{where}: {reason}")
