"""The scan form: lookup, edit, save and export for one page session."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field

import structlog

from .errors import ExportPreconditionError, FormStateError, ValidationError
from .export import EMPTY_NOTICE, ExportEncoder, ExportFile
from .lookup import LookupClient, validate_isbn
from .models import EDITABLE_FIELDS, BookRecord, FormState
from .notify import Notifier, Prompter
from .store import RecordStore
from .table import RowBuffer

log = structlog.get_logger()

FILENAME_PROMPT = "Enter a file name for your export (without extension):"
DEFAULT_FILENAME = "scanned_books"


@dataclass
class AppState:
    store: RecordStore = field(default_factory=RecordStore)
    form: FormState = field(default_factory=FormState)
    table: RowBuffer = field(default_factory=RowBuffer)


class FormController:
    """Moves the form between hidden and visible.

    hidden -> visible when a lookup completes; visible -> hidden when the
    edited record is saved. Only the latest lookup may fill the form: a
    response that comes back after a newer lookup was started is dropped.
    """

    def __init__(
        self,
        notifier: Notifier,
        lookup: LookupClient | None = None,
        exporter: ExportEncoder | None = None,
        state: AppState | None = None,
    ) -> None:
        self.notifier = notifier
        self.lookup_client = lookup or LookupClient(notifier)
        self.exporter = exporter or ExportEncoder()
        self.state = state or AppState()
        self._lookup_seq = 0

    @property
    def form(self) -> FormState:
        return self.state.form

    async def lookup(self, isbn_input: str) -> bool:
        """Look up the typed ISBN and open the form with the result.

        Returns False when the ISBN was rejected. A response that went stale
        still counts as accepted but leaves the form alone.
        """
        self.form.isbn = isbn_input.strip()
        try:
            isbn = validate_isbn(isbn_input)
        except ValidationError as e:
            self.notifier.notify(str(e))
            return False

        self._lookup_seq += 1
        seq = self._lookup_seq
        book = await self.lookup_client.resolve(isbn)
        if seq != self._lookup_seq:
            log.info("stale_lookup_discarded", isbn=isbn, seq=seq, latest=self._lookup_seq)
            return True

        self.form.populate(book)
        self.form.visible = True
        return True

    def save(self, values: Mapping[str, str] | None = None) -> BookRecord:
        """Commit the edited fields as a new record and reset the form."""
        if not self.form.visible:
            raise FormStateError("Nothing to save: look up an ISBN first.")

        values = values or {}
        isbn = values.get("isbn")
        record = BookRecord(
            isbn=(isbn if isbn is not None else self.form.isbn).strip(),
            **{
                name: (values.get(name, self.form.fields.get(name, "")) or "").strip()
                for name in EDITABLE_FIELDS
            },
        )

        self.state.store.append(record)
        self.state.table.render(record)

        self.form.clear()
        self.form.visible = False
        self.form.focus = "isbn"
        log.info("record_saved", isbn=record.isbn, title=record.title, count=len(self.state.store))
        return record

    def export(self, prompter: Prompter) -> ExportFile | None:
        """Export every saved record, asking the user for a filename.

        Returns None when there is nothing to export or the prompt was
        cancelled.
        """
        records = self.state.store.all()
        if not records:
            self.notifier.notify(EMPTY_NOTICE)
            return None

        filename = prompter.prompt(FILENAME_PROMPT, DEFAULT_FILENAME)
        try:
            return self.exporter.export(records, filename)
        except ExportPreconditionError as e:
            log.debug("export_aborted", reason=str(e))
            return None
