from __future__ import annotations

import struct
from dataclasses import dataclass
from typing import Iterable, List

from .constants import U32_MAX
from .cursor import ByteCursor
from .errors import BadFileTable, InvalidField
from .header import encode_cstring


# File table row
#  - number u32 (1-based; 0 terminates the table and carries nothing else)
#  - name (NUL-terminated UTF-8)
#  - size u64
#  - crc32 u32 (of the entry's own payload bytes)
_NUMBER_STRUCT = struct.Struct("<I")
_ROW_TAIL_STRUCT = struct.Struct("<QI")

TABLE_END = _NUMBER_STRUCT.pack(0)


@dataclass
class FileRecord:
    number: int
    name: str
    size: int
    crc: int


def read_file_table(cur: ByteCursor) -> List[FileRecord]:
    records: List[FileRecord] = []
    expected = 1
    while True:
        number = cur.unpack(_NUMBER_STRUCT, "file number")[0]
        if number == 0:
            break
        if number != expected:
            raise BadFileTable(f"File number {number} out of sequence; expected {expected}")
        name = cur.read_cstring(f"name of file {number}")
        size, crc = cur.unpack(_ROW_TAIL_STRUCT, f"size/crc of file {number}")
        records.append(FileRecord(number=number, name=name, size=size, crc=crc))
        expected += 1
    return records


def pack_file_table(records: Iterable[FileRecord]) -> bytes:
    out = bytearray()
    expected = 1
    for rec in records:
        if rec.number != expected:
            raise BadFileTable(f"File number {rec.number} out of sequence; expected {expected}")
        if rec.number > U32_MAX:
            raise InvalidField("Too many files for a 32-bit file number")
        if not rec.name:
            raise InvalidField(f"File {rec.number} has an empty name")
        out += _NUMBER_STRUCT.pack(rec.number)
        out += encode_cstring(rec.name, f"name of file {rec.number}")
        out += _ROW_TAIL_STRUCT.pack(rec.size, rec.crc)
        expected += 1
    out += TABLE_END
    return bytes(out)
