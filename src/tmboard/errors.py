"""Exception types and failure classification for the task store boundary."""

from __future__ import annotations

from pathlib import Path

PERMISSION_PATTERNS: tuple[str, ...] = (
    "permission denied",
    "eacces",
    "read-only file system",
    "operation not permitted",
)

MISSING_PATTERNS: tuple[str, ...] = (
    "no such file",
    "enoent",
    "not a directory",
)

CORRUPT_PATTERNS: tuple[str, ...] = (
    "expecting value",
    "expecting property name",
    "unterminated string",
    "extra data",
    "invalid control character",
    "codec can't decode",
)


class TmboardError(Exception):
    """Base class for errors raised by tmboard."""


class StoreError(TmboardError):
    """The task store could not read or write a document.

    The mutation that triggered it is considered not applied. Callers must
    not retry blindly: the document they hold may already be stale.
    """

    def __init__(self, message: str, path: Path | str | None = None) -> None:
        super().__init__(message)
        self.path = str(path) if path is not None else ""


def _contains_any(text: str, patterns: tuple[str, ...]) -> bool:
    lower = text.lower()
    return any(pattern in lower for pattern in patterns)


def looks_like_permission_error(text: str) -> bool:
    if not text:
        return False
    return _contains_any(text, PERMISSION_PATTERNS)


def looks_like_missing_file(text: str) -> bool:
    if not text:
        return False
    return _contains_any(text, MISSING_PATTERNS)


def looks_like_corrupt_document(text: str) -> bool:
    """Return ``True`` when the failure came from unparsable JSON."""
    if not text:
        return False
    return _contains_any(text, CORRUPT_PATTERNS)


def describe_store_error(exc: StoreError) -> str:
    """One-line operator hint for a store failure."""
    text = str(exc)
    where = f" ({exc.path})" if exc.path else ""
    if looks_like_permission_error(text):
        return f"Task file is not writable{where}: {text}"
    if looks_like_missing_file(text):
        return f"Task file is missing{where}: {text}"
    if looks_like_corrupt_document(text):
        return f"Task file is not valid JSON{where}: {text}"
    return f"Task store failure{where}: {text}"
