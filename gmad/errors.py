from __future__ import annotations

from typing import Optional


class GmaError(Exception):
    """Base class for gmad-specific errors."""


# Header
class BadMagic(GmaError):
    pass


class UnsupportedVersion(GmaError):
    def __init__(self, found: int):
        super().__init__(f"Unsupported format version: {found}")
        self.found = found


# Structure/bounds
class BadFileTable(GmaError):
    pass


class UnexpectedEof(GmaError):
    pass


# Integrity
class ChecksumMismatch(GmaError):
    def __init__(self, message: str, expected: Optional[int] = None, actual: Optional[int] = None):
        super().__init__(message)
        self.expected = expected
        self.actual = actual


# Builder input
class InvalidField(GmaError):
    pass


# Sink failures while writing
class GmaIOError(GmaError):
    pass
