"""Transcript decoding, filtering and storage."""

from .cell_id import decode_cell_id, decode_cell_ids, encode_cell_id
from .filters import TranscriptFilter
from .store import TranscriptStore

__all__ = [
    "decode_cell_id",
    "decode_cell_ids",
    "encode_cell_id",
    "TranscriptFilter",
    "TranscriptStore",
]
