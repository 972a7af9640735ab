"""Service-layer exceptions."""
from __future__ import annotations


class EngineError(Exception):
    """Base exception for story execution."""


class DestinationError(EngineError):
    """Raised when a jump or option points at a file or block that cannot be resolved.

    The underlying ResolutionError is chained as ``__cause__``.
    """

    def __init__(self, message: str, *, destination: object = None) -> None:
        self.destination = destination
        super().__init__(message)


class InputError(EngineError):
    """Raised when the reader's choice cannot be applied; the caller should re-prompt."""
