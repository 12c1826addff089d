"""Xenium cell identifier codec.

Xenium writes cell ids as ``<token>-<suffix>``: the token is the 32-bit cell
integer as 8 hex nibbles, most significant first, with each nibble shifted
into the letters ``a``..``p``. The suffix is a dataset discriminator and does
not contribute to the value, e.g. ``ffkpbaba-1`` is ``0x55af1010``.
"""

import re

import numpy as np
import pandas as pd

from ..errors import DecodeError

CELL_ID_ALPHABET = "abcdefghijklmnop"
CELL_ID_TOKEN_LENGTH = 8
CELL_ID_MAX = 16**CELL_ID_TOKEN_LENGTH - 1
UNASSIGNED_CELL_IDS = frozenset({"UNASSIGNED", "-1"})

_HEX_TO_AP = str.maketrans("0123456789abcdef", CELL_ID_ALPHABET)
_AP_TO_HEX = str.maketrans(CELL_ID_ALPHABET, "0123456789abcdef")
_SUFFIX_RE = re.compile(r"[0-9]+")


def encode_cell_id(value: int, suffix: int = 1) -> str:
    """Encode an integer into a Xenium cell id such as ``ffkpbaba-1``."""
    value = int(value)
    if value < 0 or value > CELL_ID_MAX:
        raise ValueError(f"Cell id {value} out of range [0, {CELL_ID_MAX}]")
    token = f"{value:0{CELL_ID_TOKEN_LENGTH}x}".translate(_HEX_TO_AP)
    return f"{token}-{int(suffix)}"


def decode_cell_id(code: str) -> int:
    """Decode a Xenium cell id into its integer value.

    Unassigned sentinels decode to 0. Plain decimal ids are returned as is.

    Raises:
        DecodeError: If the token length, alphabet or suffix is malformed.
    """
    if code in UNASSIGNED_CELL_IDS:
        return 0
    if code.isascii() and code.isdigit():
        value = int(code)
        if value > CELL_ID_MAX:
            raise DecodeError(code, f"numeric id out of range [0, {CELL_ID_MAX}]")
        return value

    token, sep, suffix = code.partition("-")
    if sep and not _SUFFIX_RE.fullmatch(suffix):
        raise DecodeError(code, f"suffix {suffix!r} is not a decimal number")
    if len(token) != CELL_ID_TOKEN_LENGTH:
        raise DecodeError(
            code, f"expected {CELL_ID_TOKEN_LENGTH} symbols, got {len(token)}"
        )
    bad = sorted(set(token) - set(CELL_ID_ALPHABET))
    if bad:
        raise DecodeError(code, f"symbols {''.join(bad)!r} outside a-p")

    return int(token.translate(_AP_TO_HEX), 16)


def decode_cell_ids(codes: pd.Series) -> np.ndarray:
    """Decode a column of cell ids.

    Each distinct code is decoded once. Missing values count as unassigned.

    Returns:
        int64 array aligned with ``codes``

    Raises:
        DecodeError: For the first malformed code, with its row label.
    """
    if len(codes) == 0:
        return np.zeros(0, dtype=np.int64)

    positions, uniques = pd.factorize(codes, use_na_sentinel=True)
    values = np.zeros(len(uniques), dtype=np.int64)
    for i, code in enumerate(uniques):
        try:
            values[i] = decode_cell_id(str(code))
        except DecodeError as e:
            row = codes.index[int(np.argmax(positions == i))]
            raise DecodeError(e.code, e.reason, row=int(row)) from None

    decoded = np.zeros(len(codes), dtype=np.int64)
    known = positions >= 0
    decoded[known] = values[positions[known]]
    return decoded
