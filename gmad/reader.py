from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from .checksum import crc32
from .constants import NO_CHECKSUM
from .cursor import ByteCursor
from .errors import BadFileTable, UnexpectedEof, ChecksumMismatch
from .filetable import read_file_table
from .header import Header, read_header


_TRAILER_SIZE = 4


@dataclass(frozen=True)
class Entry:
    """One packaged file, viewed in place inside the archive buffer.

    ``content`` is a memoryview over the buffer passed to the reader; it stays
    valid only as long as that buffer does. Use ``to_bytes()`` to detach.
    """

    number: int
    name: str
    size: int
    crc: int
    offset: int
    content: memoryview = field(repr=False, compare=False)

    def to_bytes(self) -> bytes:
        return bytes(self.content)

    def verify(self) -> bool:
        # A zero CRC in the table means the writer did not record one
        return self.crc == NO_CHECKSUM or crc32(self.content) == self.crc


@dataclass
class Archive:
    header: Header
    entries: List[Entry]
    checksum: Optional[int] = None
    # None when the archive has no trailing checksum
    checksum_ok: Optional[bool] = None

    def find(self, name: str) -> Optional[Entry]:
        for e in self.entries:
            if e.name == name:
                return e
        return None


def read_archive(buffer, *, verify_checksum: bool = True, verify_files: bool = False) -> Archive:
    """
    Parses a complete .gma archive held in memory.

    The buffer is consumed in a single forward pass:
    1.  Header: magic, version, owner id, timestamp, required content (v2+),
        title, description, author, addon version.
    2.  File table: rows numbered 1, 2, 3... up to the 0 terminator.
    3.  Payload: one slice per table row, in table order, sized as declared.
    4.  Trailer: an optional CRC-32 over every preceding byte; a stored 0
        is the end marker of writers that do not checksum.

    Args:
        buffer: bytes, bytearray, mmap or any other buffer object.
        verify_checksum: When False a wrong trailing checksum is reported via
            ``Archive.checksum_ok`` instead of raising.
        verify_files: Also check each entry's own CRC-32 from the file table.

    Raises:
        BadMagic, UnsupportedVersion, BadFileTable, UnexpectedEof,
        ChecksumMismatch.
    """
    cur = ByteCursor(buffer)
    header = read_header(cur)
    records = read_file_table(cur)

    entries: List[Entry] = []
    for rec in records:
        offset = cur.pos
        content = cur.take(rec.size, f"payload of {rec.name!r}")
        entries.append(
            Entry(number=rec.number, name=rec.name, size=rec.size, crc=rec.crc, offset=offset, content=content)
        )

    archive = Archive(header=header, entries=entries)
    # Nothing left, or a zero u32 end marker, means no checksum was written
    left = cur.remaining()
    if 0 < left < _TRAILER_SIZE:
        raise UnexpectedEof(f"Truncated trailing checksum: {left} of {_TRAILER_SIZE} bytes present")
    if left > _TRAILER_SIZE:
        raise BadFileTable(f"{left - _TRAILER_SIZE} bytes after the payload are not covered by the file table")
    if left == _TRAILER_SIZE:
        body_end = cur.pos
        stored = cur.read_u32("trailing checksum")
        if stored != NO_CHECKSUM:
            actual = crc32(cur.view[:body_end])
            archive.checksum = stored
            archive.checksum_ok = stored == actual
            if verify_checksum and not archive.checksum_ok:
                raise ChecksumMismatch(
                    f"Archive checksum mismatch: stored {stored:08x}, computed {actual:08x}",
                    expected=stored,
                    actual=actual,
                )

    if verify_files:
        for e in entries:
            if not e.verify():
                actual = crc32(e.content)
                raise ChecksumMismatch(
                    f"Checksum mismatch for {e.name!r}: stored {e.crc:08x}, computed {actual:08x}",
                    expected=e.crc,
                    actual=actual,
                )
    return archive


def read(buffer) -> List[Entry]:
    """Strictly parse ``buffer`` and return its entries in file-table order."""
    return read_archive(buffer).entries


def read_file(path: str, **kwargs) -> Archive:
    with open(path, "rb") as f:
        data = f.read()
    return read_archive(data, **kwargs)
