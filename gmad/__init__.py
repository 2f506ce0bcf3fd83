"""
gmad: reader and builder for .gma addon archives.

Format (all integers little-endian):

- "GMAD" magic (4 bytes), format version (u8; 1, 2 and 3 are read, 3 is written)
- owner id (u64), creation timestamp (u64)
- required content: NUL-terminated strings ended by an empty one (version 2+)
- title, description, author (NUL-terminated UTF-8)
- addon version (i32)
- file table rows {number u32, name, size u64, crc32 u32} ended by number 0
- file contents, concatenated in table order
- optional trailing CRC-32 of every preceding byte (always written)

The reader hands back entries that view the input buffer without copying;
the builder keeps files in insertion order so output is reproducible.
"""

from .builder import Builder
from .errors import (
    GmaError,
    BadMagic,
    UnsupportedVersion,
    BadFileTable,
    UnexpectedEof,
    ChecksumMismatch,
    InvalidField,
    GmaIOError,
)
from .header import Header
from .reader import Archive, Entry, read, read_archive, read_file

__version__ = "0.1"

__all__ = [
    "Archive",
    "BadFileTable",
    "BadMagic",
    "Builder",
    "ChecksumMismatch",
    "Entry",
    "GmaError",
    "GmaIOError",
    "Header",
    "InvalidField",
    "UnexpectedEof",
    "UnsupportedVersion",
    "read",
    "read_archive",
    "read_file",
]
