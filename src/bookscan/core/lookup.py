"""Resolve an ISBN to book metadata through the Open Library Books API."""

from __future__ import annotations

import os
import re

import httpx
import structlog

from .errors import LookupMiss, TransportError, ValidationError
from .models import BookRecord
from .notify import Notifier

log = structlog.get_logger()

ISBN_PATTERN = re.compile(r"^\d{10,13}$")

DEFAULT_LOOKUP_URL = "https://openlibrary.org/api/books"

# Open Library API etiquette (https://openlibrary.org/developers/api):
# identify the application, and give a contact address when there is one.
_OL_CONTACT = os.environ.get("OL_CONTACT_EMAIL", "")
_OL_USER_AGENT = f"bookscan/0.1.0 ({_OL_CONTACT})" if _OL_CONTACT else "bookscan/0.1.0"

MISS_NOTICE = "Book not found. You may enter data manually."
TRANSPORT_NOTICE = "Network error during lookup."


def validate_isbn(value: str) -> str:
    """Return the trimmed ISBN, or raise ValidationError."""
    isbn = value.strip()
    if not ISBN_PATTERN.match(isbn):
        raise ValidationError("Please enter a 10- or 13-digit ISBN.")
    return isbn


def _join_names(entries: list | None) -> str:
    names = []
    for entry in entries or []:
        name = entry.get("name", "") if isinstance(entry, dict) else ""
        if name:
            names.append(str(name))
    return ", ".join(names)


def _text(value: object) -> str:
    return value if isinstance(value, str) else ""


def parse_book(isbn: str, data: dict) -> BookRecord:
    """Map a Books API ``jscmd=data`` entry onto a BookRecord.

    Raises AttributeError or TypeError when the entry is not shaped like
    the Books API documents it.
    """
    identifiers = data.get("identifiers") or {}
    return BookRecord(
        isbn=isbn,
        title=_text(data.get("title")),
        author=_join_names(data.get("authors")),
        publisher=_join_names(data.get("publishers")),
        publish_date=_text(data.get("publish_date")),
        lccn=", ".join(str(v) for v in identifiers.get("lccn") or []),
    )


def _env_timeout() -> float | None:
    raw = os.environ.get("LOOKUP_TIMEOUT", "")
    return float(raw) if raw else None


class LookupClient:
    """Looks up one ISBN per call against the catalog.

    Never raises: a miss or any failure is reported through the notifier and
    answered with an empty record carrying only the ISBN.
    """

    def __init__(
        self,
        notifier: Notifier,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.notifier = notifier
        self.base_url = base_url or os.environ.get("LOOKUP_URL", DEFAULT_LOOKUP_URL)
        self.timeout = timeout if timeout is not None else _env_timeout()
        self._transport = transport

    async def fetch(self, client: httpx.AsyncClient, isbn: str) -> dict:
        """Fetch the raw catalog entry for an ISBN.

        Raises LookupMiss when the catalog has no entry and TransportError on
        any network, status or decoding failure.
        """
        key = f"ISBN:{isbn}"
        try:
            resp = await client.get(
                self.base_url,
                params={"bibkeys": key, "format": "json", "jscmd": "data"},
                headers={"User-Agent": _OL_USER_AGENT},
                timeout=self.timeout,
            )
            resp.raise_for_status()
            payload = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            raise TransportError(str(e)) from e

        if not isinstance(payload, dict):
            raise TransportError(f"unexpected payload type {type(payload).__name__}")
        entry = payload.get(key)
        if not entry:
            raise LookupMiss(isbn)
        if not isinstance(entry, dict):
            raise TransportError(f"unexpected entry type {type(entry).__name__}")
        return entry

    async def resolve(self, isbn: str) -> BookRecord:
        async with httpx.AsyncClient(transport=self._transport) as client:
            try:
                entry = await self.fetch(client, isbn)
                try:
                    book = parse_book(isbn, entry)
                except (AttributeError, TypeError) as e:
                    raise TransportError(f"malformed entry: {e}") from e
            except LookupMiss:
                log.info("lookup_miss", isbn=isbn)
                self.notifier.notify(MISS_NOTICE)
                return BookRecord.empty(isbn)
            except TransportError as e:
                log.warning("lookup_transport_error", isbn=isbn, error=str(e))
                self.notifier.notify(TRANSPORT_NOTICE)
                return BookRecord.empty(isbn)

        log.debug("lookup_hit", isbn=isbn, title=book.title, author=book.author)
        return book
