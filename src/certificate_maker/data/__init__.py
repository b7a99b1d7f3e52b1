"""Tabular data package: sources, records and column helpers."""

from certificate_maker.data.columns import column_index_to_letter, letter_to_column_index
from certificate_maker.data.models import HeaderIndex, RecordRow, TableMetadata
from certificate_maker.data.sources import (
    CsvSource,
    GoogleSheetSource,
    TabularSource,
    create_source,
)
from certificate_maker.data.store import RecordStore, build_index

__all__ = [
    "column_index_to_letter",
    "letter_to_column_index",
    "HeaderIndex",
    "RecordRow",
    "TableMetadata",
    "CsvSource",
    "GoogleSheetSource",
    "TabularSource",
    "create_source",
    "RecordStore",
    "build_index",
]
