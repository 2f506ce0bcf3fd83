"""
CRC-32 (IEEE 802.3, the zlib/PNG polynomial).

Both the per-file checksums in the file table and the trailing whole-archive
checksum use this one function; zlib's table-driven implementation matches
archives produced by other tools bit for bit.
"""

import zlib


def crc32(data: bytes, crc: int = 0) -> int:
    return zlib.crc32(data, crc) & 0xFFFFFFFF
