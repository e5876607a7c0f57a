from __future__ import annotations

from typing import Iterable, List, Optional


class SaveError(Exception):
    """Base exception for save/load errors."""

    code = "ERROR"


class SaveValidationError(SaveError):
    """Raised when a document violates its schema.

    ``errors`` holds every path-qualified violation, in discovery order.
    """

    code = "VALIDATION"

    def __init__(self, errors: Iterable[str], message: Optional[str] = None) -> None:
        self.errors: List[str] = list(errors)
        super().__init__(message or "; ".join(self.errors) or "Invalid save data")


class SaveNotFoundError(SaveError):
    """Raised when there is no current document or the requested slot is missing."""

    code = "NOT_FOUND"


class SaveParseError(SaveError):
    """Raised when stored or imported text cannot be decoded."""

    code = "PARSE"


class CloudTransportError(SaveError):
    """Raised when a cloud sync call fails or the server reports failure."""

    code = "TRANSPORT"
