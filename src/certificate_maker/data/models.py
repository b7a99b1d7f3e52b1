"""Data models for tabular sources and the records loaded from them."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Iterator, Optional

logger = logging.getLogger(__name__)


@dataclass
class TableMetadata:
    column_count: int
    row_count: int                      # data rows (CSV) or grid rows (Sheets)
    header: list[str] = field(default_factory=list)
    frozen_rows: Optional[int] = None   # Sheets only


class HeaderIndex:
    """Column name -> position lookup built from the header row."""

    def __init__(self, header: list[str]):
        self.header = list(header)
        self.positions: dict[str, int] = {}
        for i, name in enumerate(self.header):
            if name in self.positions:
                logger.warning(
                    "Duplicate column %r at position %d (keeping %d)",
                    name, i, self.positions[name],
                )
                continue
            self.positions[name] = i

    def index_of(self, name: str) -> int:
        return self.positions[name]

    def get(self, name: str) -> Optional[int]:
        return self.positions.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self.positions

    def __len__(self) -> int:
        return len(self.header)

    def __iter__(self) -> Iterator[str]:
        return iter(self.header)


@dataclass
class RecordRow:
    """One data row, kept both positionally and by column name.

    ``values`` is the write path back to the source; ``fields`` is what
    templates see.  RecordStore keeps the two in step.
    """
    index: int                          # 0-based, excludes the header row
    values: list[str]
    fields: dict[str, str]

    def __getitem__(self, name: str) -> str:
        return self.fields[name]

    def get(self, name: str, default: str = "") -> str:
        return self.fields.get(name, default)
