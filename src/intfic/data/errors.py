"""Custom exceptions for story loading, parsing and lookup."""
from __future__ import annotations


class DataError(Exception):
    """Base exception for the data layer."""


class DataLoadError(DataError):
    """Raised when a story file is missing or unreadable."""


class ParseError(DataError):
    """Raised when story markup is malformed.

    Carries the 1-based line and column of the offending construct so authors
    can jump straight to it.
    """

    def __init__(
        self,
        message: str,
        *,
        line: int,
        column: int = 1,
        construct: str = "",
        file_id: str = "<string>",
    ) -> None:
        self.message = message
        self.line = line
        self.column = column
        self.construct = construct
        self.file_id = file_id
        super().__init__(f"{file_id}:{line}:{column}: {message}")


class ResolutionError(DataError):
    """Raised when a destination names an unknown story file or block."""

    def __init__(self, message: str, *, file_id: str | None = None, block: str | None = None) -> None:
        self.file_id = file_id
        self.block = block
        super().__init__(message)
