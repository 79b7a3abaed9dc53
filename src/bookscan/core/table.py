"""Rows shown in the page's records table."""

from __future__ import annotations

from .models import BookRecord


class RowBuffer:
    """Renders each committed record as a row of cells.

    Rows are only ever added. ``drain`` hands over the rows rendered since
    the last call so the page can append them to its table.
    """

    def __init__(self) -> None:
        self.rows: list[list[str]] = []
        self._sent = 0

    def render(self, record: BookRecord) -> None:
        self.rows.append(record.as_row())

    def drain(self) -> list[list[str]]:
        fresh = self.rows[self._sent :]
        self._sent = len(self.rows)
        return fresh
