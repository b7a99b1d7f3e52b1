"""Spreadsheet-style column letters (A, B, ..., Z, AA, AB, ...)."""

from __future__ import annotations

import re

_LETTERS_RE = re.compile(r"^[A-Z]+$")


def column_index_to_letter(index: int) -> str:
    """Convert a 0-based column index to its A1 letter.

    Bijective base-26: 0 -> "A", 25 -> "Z", 26 -> "AA", 701 -> "ZZ".
    """
    if index < 0:
        raise ValueError(f"Column index must be >= 0, got {index}")

    n = index + 1
    letters = ""
    while n > 0:
        n, rem = divmod(n - 1, 26)
        letters = chr(rem + ord("A")) + letters
    return letters


def letter_to_column_index(letter: str) -> int:
    """Convert an A1 column letter back to its 0-based index."""
    letter = letter.strip().upper()
    if not _LETTERS_RE.match(letter):
        raise ValueError(f"Invalid column letter: {letter!r}")

    n = 0
    for ch in letter:
        n = n * 26 + (ord(ch) - ord("A") + 1)
    return n - 1
