"""Export committed book records to an .xlsx workbook."""

from __future__ import annotations

import io
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

import structlog
from openpyxl import Workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.utils import get_column_letter

from .errors import ExportCancelled, ExportPreconditionError
from .models import HEADERS, BookRecord

log = structlog.get_logger()

SHEET_NAME = "Books"
XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
EMPTY_NOTICE = "No books to export."


def build_grid(records: Sequence[BookRecord]) -> list[list[str]]:
    """Header row followed by one row per record, in column order."""
    return [list(HEADERS)] + [record.as_row() for record in records]


def column_widths(grid: list[list[str]]) -> list[int]:
    """Width hint per column: longest cell (header included) plus two."""
    widths = []
    for i in range(len(HEADERS)):
        longest = max(len(row[i]) if row[i] else 0 for row in grid)
        widths.append(longest + 2)
    return widths


class SpreadsheetEncoder(Protocol):
    def encode(self, rows: list[list[str]], widths: list[int], sheet_name: str) -> bytes: ...


class OpenpyxlEncoder:
    """Writes the grid as a single-sheet workbook with openpyxl."""

    def encode(self, rows: list[list[str]], widths: list[int], sheet_name: str) -> bytes:
        wb = Workbook()
        ws = wb.active
        ws.title = sheet_name
        for row in rows:
            ws.append([ILLEGAL_CHARACTERS_RE.sub("", value) for value in row])

        # openpyxl turns any string starting with "=" into a formula.
        for cells in ws.iter_rows():
            for cell in cells:
                if cell.data_type == "f":
                    cell.data_type = "s"

        for i, width in enumerate(widths, start=1):
            ws.column_dimensions[get_column_letter(i)].width = width

        buf = io.BytesIO()
        wb.save(buf)
        return buf.getvalue()


@dataclass(frozen=True)
class ExportFile:
    filename: str
    content: bytes
    media_type: str = XLSX_MEDIA_TYPE


class ExportEncoder:
    def __init__(self, encoder: SpreadsheetEncoder | None = None) -> None:
        self.encoder = encoder or OpenpyxlEncoder()

    def export(self, records: Sequence[BookRecord], filename: str | None) -> ExportFile:
        """Build the workbook for ``records`` as ``<filename>.xlsx``."""
        if not records:
            raise ExportPreconditionError(EMPTY_NOTICE)
        if not filename or not filename.strip():
            raise ExportCancelled("no filename given")

        grid = build_grid(records)
        content = self.encoder.encode(grid, column_widths(grid), SHEET_NAME)
        out = ExportFile(filename=f"{filename}.xlsx", content=content)
        log.info("export_written", filename=out.filename, books=len(records), size=len(content))
        return out
