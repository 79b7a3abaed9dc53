"""Session-scoped list of committed book records."""

from __future__ import annotations

from .models import BookRecord


class RecordStore:
    """Append-only, in insertion order. Nothing is ever removed or replaced."""

    def __init__(self) -> None:
        self._records: list[BookRecord] = []

    def append(self, record: BookRecord) -> None:
        self._records.append(record)

    def all(self) -> tuple[BookRecord, ...]:
        return tuple(self._records)

    def __len__(self) -> int:
        return len(self._records)
