"""Error taxonomy for the run model and tagging engine."""

from __future__ import annotations

from typing import Iterable, Optional


class TemplaterError(RuntimeError):
    """Base class for every error raised by the tagging engine."""


class MalformedDocument(TemplaterError):
    """Raised when the body markup cannot be parsed into a complete run list."""


class DocumentPackageError(TemplaterError):
    """Raised when a .docx package cannot be opened or lacks its main part."""


class TextNotFound(TemplaterError):
    """Raised by the strict substitution helper when no text node holds the search text."""

    def __init__(self, search_text: str) -> None:
        self.search_text = search_text
        super().__init__(f"Could not find text {search_text!r} in document content.")


class AlreadyTagged(TemplaterError):
    """Raised when a substitution target already carries a ``{{tag}}``."""

    def __init__(self, search_text: str, tag: Optional[str] = None) -> None:
        self.search_text = search_text
        self.tag = tag
        detail = f" (tag {tag!r} already present)" if tag else ""
        super().__init__(f"Text {search_text!r} is already tagged{detail}.")


class OracleCountMismatch(TemplaterError):
    """Raised in strict mode when the suggestion oracle returns the wrong number of items."""

    def __init__(self, expected: int, received: int) -> None:
        self.expected = expected
        self.received = received
        super().__init__(f"Suggestion oracle returned {received} items, expected {expected}.")


class MissingValues(TemplaterError):
    """Raised by strict filling when placeholders have no value."""

    def __init__(self, names: Iterable[str]) -> None:
        self.names = sorted(set(names))
        super().__init__("No value provided for: " + ", ".join(self.names))


__all__ = [
    "TemplaterError",
    "MalformedDocument",
    "DocumentPackageError",
    "TextNotFound",
    "AlreadyTagged",
    "OracleCountMismatch",
    "MissingValues",
]
