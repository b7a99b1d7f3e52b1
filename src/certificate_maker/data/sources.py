"""Tabular source adapters: CSV file and Google Sheets worksheet.

Both adapters implement the same four operations used by RecordStore:
``load``, ``metadata``, ``read_rows`` and ``save``.  Everything else
about records is backend-agnostic and lives in ``store.py``.
"""

from __future__ import annotations

import csv
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Optional, Protocol
from urllib.parse import quote

from certificate_maker.data.columns import column_index_to_letter
from certificate_maker.data.models import TableMetadata
from certificate_maker.exceptions import (
    CertificateError,
    ConfigError,
    PersistError,
    SourceUnavailable,
)

if TYPE_CHECKING:
    from certificate_maker.config import Settings
    from certificate_maker.google.client import GoogleClient

logger = logging.getLogger(__name__)

SOURCE_CSV = "csv"
SOURCE_GOOGLE_SHEET = "google_sheet"

SHEETS_BASE = "https://sheets.googleapis.com/v4/spreadsheets"


class TabularSource(Protocol):
    kind: str

    def load(self) -> None: ...

    def metadata(self) -> TableMetadata: ...

    def read_rows(self) -> list[list[str]]: ...

    def save(
        self,
        row_index: int,
        partial_row: list[Optional[str]],
        header: list[str],
        rows: list[list[str]],
    ) -> None: ...


# ── CSV file ──────────────────────────────────────────────────────────


class CsvSource:
    """A local CSV file.  Every save rewrites the whole file."""

    kind = SOURCE_CSV

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._rows: list[list[str]] = []

    def load(self) -> None:
        logger.info("Loading CSV file %s", self.path)
        try:
            with open(self.path, mode="r", encoding="utf-8-sig", newline="") as f:
                self._rows = [row for row in csv.reader(f)]
        except FileNotFoundError as exc:
            raise SourceUnavailable(f"CSV file not found: {self.path}") from exc
        except (OSError, UnicodeDecodeError, csv.Error) as exc:
            raise SourceUnavailable(f"Could not read CSV file {self.path}: {exc}") from exc

        if not self._rows:
            raise SourceUnavailable(f"CSV file {self.path} has no header row")

    def metadata(self) -> TableMetadata:
        header = [h.strip() for h in self._rows[0]]
        return TableMetadata(
            column_count=len(header),
            row_count=len(self._rows) - 1,
            header=header,
        )

    def read_rows(self) -> list[list[str]]:
        return [list(row) for row in self._rows[1:]]

    def save(self, row_index, partial_row, header, rows) -> None:
        try:
            with open(self.path, mode="w", encoding="utf-8", newline="") as f:
                writer = csv.writer(f)
                writer.writerow(header)
                writer.writerows(rows)
        except OSError as exc:
            raise PersistError(f"Could not write CSV file {self.path}: {exc}") from exc
        logger.debug("Rewrote %s after updating row %d", self.path, row_index)


# ── Google Sheets ─────────────────────────────────────────────────────


def quote_sheet_name(name: str) -> str:
    """Quote a worksheet title for use in an A1 range."""
    return "'" + name.replace("'", "''") + "'"


class GoogleSheetSource:
    """One worksheet of a Google spreadsheet.  Saves update a single row."""

    kind = SOURCE_GOOGLE_SHEET

    def __init__(self, client: GoogleClient, spreadsheet_id: str, worksheet: str):
        self.client = client
        self.spreadsheet_id = spreadsheet_id
        self.worksheet = worksheet
        self._properties: dict = {}
        self._metadata: Optional[TableMetadata] = None

    def _values_url(self, a1_range: str) -> str:
        return f"{SHEETS_BASE}/{self.spreadsheet_id}/values/{quote(a1_range, safe='')}"

    def _range(self, suffix: str) -> str:
        return f"{quote_sheet_name(self.worksheet)}!{suffix}"

    def load(self) -> None:
        logger.info("Loading Google Sheet %s (worksheet %r)", self.spreadsheet_id, self.worksheet)
        try:
            data = self.client.get_json(
                f"{SHEETS_BASE}/{self.spreadsheet_id}",
                params={"fields": "sheets.properties"},
            )
        except CertificateError as exc:
            raise SourceUnavailable(
                f"Could not open spreadsheet {self.spreadsheet_id}: {exc}"
            ) from exc

        for sheet in data.get("sheets", []):
            props = sheet.get("properties", {})
            if props.get("title") == self.worksheet:
                self._properties = props
                logger.debug("Found worksheet %r (sheetId=%s)", self.worksheet, props.get("sheetId"))
                return

        raise SourceUnavailable(
            f"Could not locate worksheet {self.worksheet!r} in spreadsheet {self.spreadsheet_id}"
        )

    def metadata(self) -> TableMetadata:
        grid = self._properties.get("gridProperties", {})
        try:
            data = self.client.get_json(self._values_url(self._range("1:1")))
        except CertificateError as exc:
            raise SourceUnavailable(f"Could not read header row: {exc}") from exc

        values = data.get("values") or [[]]
        header = [str(h).strip() for h in values[0]]
        if not header:
            raise SourceUnavailable(f"Worksheet {self.worksheet!r} has an empty header row")

        self._metadata = TableMetadata(
            column_count=grid.get("columnCount", len(header)),
            row_count=grid.get("rowCount", 0),
            header=header,
            frozen_rows=grid.get("frozenRowCount"),
        )
        return self._metadata

    def read_rows(self) -> list[list[str]]:
        row_count = self._metadata.row_count if self._metadata else 0
        if row_count < 2:
            return []
        try:
            data = self.client.get_json(self._values_url(self._range(f"2:{row_count}")))
        except CertificateError as exc:
            raise SourceUnavailable(f"Could not read worksheet values: {exc}") from exc
        return [[str(v) for v in row] for row in data.get("values", [])]

    def save(self, row_index, partial_row, header, rows) -> None:
        row = row_index + 2  # 1-based, plus the header row
        last = column_index_to_letter(len(partial_row) - 1)
        a1_range = self._range(f"A{row}:{last}{row}")
        try:
            self.client.request(
                "PUT",
                self._values_url(a1_range),
                params={"valueInputOption": "RAW"},
                json={"range": a1_range, "majorDimension": "ROWS", "values": [partial_row]},
            )
        except CertificateError as exc:
            raise PersistError(f"Could not update {a1_range}: {exc}") from exc
        logger.debug("Updated %s", a1_range)


# ── Selection ─────────────────────────────────────────────────────────


def create_source(settings: Settings, client: GoogleClient | None = None) -> TabularSource:
    """Build the adapter named by ``settings.source``."""
    if settings.source == SOURCE_CSV:
        return CsvSource(settings.csv_file)
    if settings.source == SOURCE_GOOGLE_SHEET:
        if client is None:
            raise ConfigError("A Google client is required for a google_sheet source")
        return GoogleSheetSource(client, settings.google_sheet_id, settings.worksheet)
    raise ConfigError(f"Unknown data source {settings.source!r}")
