from __future__ import annotations

import struct
from typing import Tuple

from .errors import UnexpectedEof


_U8 = struct.Struct("<B")
_I32 = struct.Struct("<i")
_U32 = struct.Struct("<I")
_U64 = struct.Struct("<Q")


class ByteCursor:
    """Forward-only reader over an in-memory archive buffer.

    Every read is bounds-checked against the end of the buffer and raises
    UnexpectedEof instead of returning short data. The buffer must support
    ``find`` (bytes, bytearray, mmap); other buffer objects are copied once.
    """

    def __init__(self, buffer):
        if not hasattr(buffer, "find"):
            buffer = bytes(buffer)
        self.buffer = buffer
        self.view = memoryview(buffer)
        self.pos = 0
        self.end = len(self.view)

    def remaining(self) -> int:
        return self.end - self.pos

    def _need(self, n: int, what: str) -> None:
        if n > self.end - self.pos:
            raise UnexpectedEof(
                f"Unexpected EOF reading {what} at offset {self.pos}: need {n} bytes, {self.end - self.pos} left"
            )

    def unpack(self, st: struct.Struct, what: str) -> Tuple:
        self._need(st.size, what)
        vals = st.unpack_from(self.buffer, self.pos)
        self.pos += st.size
        return vals

    def read_u8(self, what: str) -> int:
        return self.unpack(_U8, what)[0]

    def read_i32(self, what: str) -> int:
        return self.unpack(_I32, what)[0]

    def read_u32(self, what: str) -> int:
        return self.unpack(_U32, what)[0]

    def read_u64(self, what: str) -> int:
        return self.unpack(_U64, what)[0]

    def take(self, n: int, what: str) -> memoryview:
        """Return a zero-copy view of the next n bytes and advance past them."""
        self._need(n, what)
        out = self.view[self.pos : self.pos + n]
        self.pos += n
        return out

    def read_cstring(self, what: str) -> str:
        nul = self.buffer.find(b"\x00", self.pos, self.end)
        if nul < 0:
            raise UnexpectedEof(f"Unterminated string for {what} at offset {self.pos}")
        raw = bytes(self.view[self.pos : nul])
        self.pos = nul + 1
        return raw.decode("utf-8", "surrogateescape")
