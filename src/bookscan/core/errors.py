"""Errors raised while scanning, looking up and exporting books."""

from __future__ import annotations


class BookscanError(Exception):
    """Base class for all bookscan errors."""


class ValidationError(BookscanError):
    """The ISBN input is not 10 to 13 digits."""


class LookupMiss(BookscanError):
    """The catalog has no entry for the ISBN."""


class TransportError(BookscanError):
    """The catalog request failed or returned something unreadable."""


class ExportPreconditionError(BookscanError):
    """An export was requested that cannot produce a file."""


class ExportCancelled(ExportPreconditionError):
    """No filename was given for the export."""


class FormStateError(BookscanError):
    """An action was attempted that the form's current state does not allow."""
