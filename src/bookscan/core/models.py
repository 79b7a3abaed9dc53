"""Data models for scanned book records."""

from __future__ import annotations

from dataclasses import astuple, dataclass, field

HEADERS: tuple[str, ...] = (
    "ISBN",
    "Title",
    "Author",
    "Publisher",
    "Publication Date",
    "LCCN",
    "Notes",
)

# Fields the user can edit once a lookup has filled the form.
EDITABLE_FIELDS: tuple[str, ...] = (
    "title",
    "author",
    "publisher",
    "publish_date",
    "lccn",
    "notes",
)


@dataclass(frozen=True)
class BookRecord:
    isbn: str = ""
    title: str = ""
    author: str = ""
    publisher: str = ""
    publish_date: str = ""
    lccn: str = ""
    notes: str = ""

    @classmethod
    def empty(cls, isbn: str) -> BookRecord:
        """A record with nothing but the ISBN, for the user to fill in."""
        return cls(isbn=isbn)

    def as_row(self) -> list[str]:
        """Cells in column order (matches HEADERS)."""
        return list(astuple(self))

    def editable(self) -> dict[str, str]:
        return {name: getattr(self, name) for name in EDITABLE_FIELDS}


@dataclass
class FormState:
    visible: bool = False
    isbn: str = ""
    fields: dict[str, str] = field(default_factory=lambda: dict.fromkeys(EDITABLE_FIELDS, ""))
    focus: str = "isbn"

    def populate(self, record: BookRecord) -> None:
        self.fields = record.editable()

    def clear(self) -> None:
        self.isbn = ""
        self.fields = dict.fromkeys(EDITABLE_FIELDS, "")

    def to_dict(self) -> dict:
        return {
            "visible": self.visible,
            "isbn": self.isbn,
            "fields": dict(self.fields),
            "focus": self.focus,
        }
