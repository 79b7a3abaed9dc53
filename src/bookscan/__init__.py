"""bookscan: look up books by ISBN, collect them, export to a spreadsheet."""

__version__ = "0.1.0"
