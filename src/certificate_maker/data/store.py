"""Backend-agnostic record access on top of a TabularSource."""

from __future__ import annotations

import logging
from typing import Iterator, Optional

from certificate_maker.data.models import HeaderIndex, RecordRow, TableMetadata
from certificate_maker.data.sources import TabularSource
from certificate_maker.exceptions import PersistError

logger = logging.getLogger(__name__)


def build_index(header: list[str]) -> HeaderIndex:
    """Derive the column name -> position index from a header row."""
    return HeaderIndex(header)


class RecordStore:
    """Loads a table into records and writes changes back through its source."""

    def __init__(
        self,
        source: TabularSource,
        *,
        template_header: str = "Template",
        file_header: str = "File",
    ):
        self.source = source
        self.template_header = template_header
        self.file_header = file_header
        self.metadata: Optional[TableMetadata] = None
        self.index = HeaderIndex([])
        self.values: list[list[str]] = []
        self.records: list[RecordRow] = []

    # -- Loading ------------------------------------------------------------

    def load(self) -> "RecordStore":
        """Fetch header and rows from the source and build the records."""
        self.source.load()
        self.metadata = self.source.metadata()
        self.index = build_index(self.metadata.header)
        self.values = self.load_values()
        self.records = self.build_records()

        logger.info(
            "Data source (%s) loaded: %d columns, %d records",
            self.source.kind, len(self.index), len(self.records),
        )
        if not self.has_template_column:
            logger.info("No %r column; every record uses the default template", self.template_header)
        if not self.has_file_column:
            logger.info("No %r column; file references will not be tracked", self.file_header)
        return self

    def load_values(self) -> list[list[str]]:
        """Read data rows, padding short rows to the header width."""
        width = len(self.index)
        rows = []
        for raw in self.source.read_rows():
            row = ["" if v is None else str(v) for v in raw]
            if len(row) < width:
                row.extend([""] * (width - len(row)))
            rows.append(row)
        return rows

    def build_records(self) -> list[RecordRow]:
        records = []
        for i, values in enumerate(self.values):
            fields = {name: values[pos] for name, pos in self.index.positions.items()}
            records.append(RecordRow(index=i, values=values, fields=fields))
        return records

    # -- Access -------------------------------------------------------------

    @property
    def has_template_column(self) -> bool:
        return self.template_header in self.index

    @property
    def has_file_column(self) -> bool:
        return self.file_header in self.index

    def get(self, row_index: int) -> RecordRow:
        if not 0 <= row_index < len(self.records):
            raise IndexError(f"Row {row_index} was not loaded ({len(self.records)} records)")
        return self.records[row_index]

    def template_for(self, record: RecordRow) -> Optional[str]:
        """The record's template override, or None to use the default."""
        if not self.has_template_column:
            return None
        return record.get(self.template_header).strip() or None

    def file_reference(self, record: RecordRow) -> str:
        if not self.has_file_column:
            return ""
        return record.get(self.file_header)

    def __len__(self) -> int:
        return len(self.records)

    def __iter__(self) -> Iterator[RecordRow]:
        return iter(self.records)

    # -- Saving -------------------------------------------------------------

    def save(self, row_index: int, fields: dict[str, str]) -> None:
        """Update the given fields of one row and persist them.

        Names missing from the header update the record's field mapping
        only; they are never written to the source as new columns.
        """
        try:
            record = self.get(row_index)
        except IndexError as exc:
            raise PersistError(str(exc)) from exc

        partial_row: list[Optional[str]] = [None] * len(self.index)
        for name, value in fields.items():
            record.fields[name] = value
            pos = self.index.get(name)
            if pos is None:
                logger.warning("Column %r not in header; not written to the source", name)
                continue
            record.values[pos] = value
            partial_row[pos] = value

        self.source.save(row_index, partial_row, self.index.header, self.values)

    def save_file_reference(self, row_index: int, value: str) -> None:
        self.save(row_index, {self.file_header: value})
