from __future__ import annotations

import io
import struct
import time
from typing import BinaryIO, Dict, List, Optional

from .constants import VERSION, DEFAULT_ADDON_VERSION
from .checksum import crc32
from .errors import GmaIOError, InvalidField
from .filetable import FileRecord, pack_file_table
from .header import Header, pack_header, encode_cstring, check_u64, check_i32


_TRAILER_STRUCT = struct.Struct("<I")  # CRC-32 of everything before it


class Builder:
    """Accumulates addon metadata and files, then serializes a .gma archive.

    Files keep insertion order; that order becomes the file-table order. With
    a fixed timestamp, repeated ``write_to`` calls produce identical bytes.
    """

    def __init__(self, title: str, owner_id: int):
        encode_cstring(title, "title")
        self.title = title
        self.owner_id = check_u64(owner_id, "owner id")
        self.description = ""
        self.author = ""
        self.addon_version = DEFAULT_ADDON_VERSION
        self.timestamp: Optional[int] = None
        self.required_content: List[str] = []
        self._files: Dict[str, bytes] = {}

    @classmethod
    def from_archive(cls, archive) -> "Builder":
        """Rebuild a builder from a parsed Archive, timestamp and required content included."""
        h = archive.header
        b = cls(h.title, h.owner_id)
        b.set_description(h.description)
        b.set_author(h.author)
        b.set_addon_version(h.addon_version)
        b.set_timestamp(h.timestamp)
        for name in h.required_content:
            b.add_required_content(name)
        for e in archive.entries:
            b.file_from_bytes(e.name, e.to_bytes())
        return b

    def __len__(self) -> int:
        return len(self._files)

    @property
    def files(self) -> List[str]:
        return list(self._files)

    def set_title(self, title: str) -> None:
        encode_cstring(title, "title")
        self.title = title

    def set_author(self, author: str) -> None:
        encode_cstring(author, "author")
        self.author = author

    def set_description(self, description: str) -> None:
        encode_cstring(description, "description")
        self.description = description

    def set_addon_version(self, version: int) -> None:
        self.addon_version = check_i32(version, "addon version")

    def set_timestamp(self, timestamp: Optional[int]) -> None:
        # None means "current time at write"
        if timestamp is not None:
            check_u64(timestamp, "timestamp")
        self.timestamp = timestamp

    def add_required_content(self, name: str) -> None:
        if not name:
            raise InvalidField("Required content names must be non-empty")
        encode_cstring(name, "required content")
        if name not in self.required_content:
            self.required_content.append(name)

    def file_from_bytes(self, path: str, data: bytes) -> None:
        if not isinstance(path, str) or not path:
            raise InvalidField("File path must be a non-empty string")
        encode_cstring(path, "file path")
        # Replacing an existing key keeps its position in the dict
        self._files[path] = bytes(data)

    def file_from_string(self, path: str, text: str, encoding: str = "utf-8") -> None:
        self.file_from_bytes(path, text.encode(encoding))

    def remove_file(self, path: str) -> None:
        del self._files[path]

    def _header(self) -> Header:
        ts = self.timestamp if self.timestamp is not None else int(time.time())
        return Header(
            version=VERSION,
            owner_id=self.owner_id,
            timestamp=ts,
            title=self.title,
            description=self.description,
            author=self.author,
            addon_version=self.addon_version,
            required_content=list(self.required_content),
        )

    def write_to(self, sink: BinaryIO) -> None:
        """Serialize the archive into a binary sink (anything with ``write``).

        Raises:
            InvalidField: metadata that cannot be encoded.
            GmaIOError: the sink failed to accept the bytes.
        """
        records = [
            FileRecord(number=i, name=name, size=len(data), crc=crc32(data))
            for i, (name, data) in enumerate(self._files.items(), start=1)
        ]
        head = pack_header(self._header()) + pack_file_table(records)
        crc = 0
        try:
            sink.write(head)
            crc = crc32(head, crc)
            for data in self._files.values():
                sink.write(data)
                crc = crc32(data, crc)
            sink.write(_TRAILER_STRUCT.pack(crc))
        except OSError as exc:
            raise GmaIOError(f"Failed to write archive: {exc}") from exc

    def to_bytes(self) -> bytes:
        buf = io.BytesIO()
        self.write_to(buf)
        return buf.getvalue()
