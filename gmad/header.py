from __future__ import annotations

import struct
from dataclasses import dataclass, field
from typing import List

from .constants import (
    MAGIC,
    SUPPORTED_VERSIONS,
    REQUIRED_CONTENT_MIN_VERSION,
    DEFAULT_ADDON_VERSION,
    U64_MAX,
    I32_MIN,
    I32_MAX,
)
from .cursor import ByteCursor
from .errors import BadMagic, UnsupportedVersion, InvalidField


# Fixed prefix (21 bytes)
# struct: <4s B Q Q
#  - magic[4]
#  - version u8
#  - owner_id u64
#  - timestamp u64
_PREFIX_STRUCT = struct.Struct("<4sBQQ")
_ADDON_VERSION_STRUCT = struct.Struct("<i")


@dataclass
class Header:
    version: int
    owner_id: int
    timestamp: int
    title: str
    description: str = ""
    author: str = ""
    addon_version: int = DEFAULT_ADDON_VERSION
    required_content: List[str] = field(default_factory=list)


def encode_cstring(value: str, what: str) -> bytes:
    """Encode a string field as UTF-8 followed by its NUL terminator.

    Raises InvalidField if the text contains a NUL (it would end the field
    early on read) or cannot be encoded.
    """
    if not isinstance(value, str):
        raise InvalidField(f"{what} must be a string, got {type(value).__name__}")
    if "\x00" in value:
        raise InvalidField(f"{what} contains a NUL byte")
    try:
        raw = value.encode("utf-8", "surrogateescape")
    except UnicodeEncodeError as exc:
        raise InvalidField(f"{what} is not encodable as UTF-8: {exc}") from exc
    return raw + b"\x00"


def check_u64(value: int, what: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value <= U64_MAX:
        raise InvalidField(f"{what} must be an unsigned 64-bit integer, got {value!r}")
    return value


def check_i32(value: int, what: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or not I32_MIN <= value <= I32_MAX:
        raise InvalidField(f"{what} must be a signed 32-bit integer, got {value!r}")
    return value


def read_header(cur: ByteCursor) -> Header:
    # Magic and version are checked before the rest of the prefix is needed,
    # so a short foreign file reports BadMagic rather than EOF.
    magic = bytes(cur.take(len(MAGIC), "magic"))
    if magic != MAGIC:
        raise BadMagic(f"Bad magic {magic!r}, expected {MAGIC!r}")
    version = cur.read_u8("version")
    if version not in SUPPORTED_VERSIONS:
        raise UnsupportedVersion(version)
    owner_id = cur.read_u64("owner id")
    timestamp = cur.read_u64("timestamp")
    required: List[str] = []
    if version >= REQUIRED_CONTENT_MIN_VERSION:
        while True:
            s = cur.read_cstring("required content")
            if not s:
                break
            required.append(s)
    title = cur.read_cstring("title")
    description = cur.read_cstring("description")
    author = cur.read_cstring("author")
    addon_version = cur.unpack(_ADDON_VERSION_STRUCT, "addon version")[0]
    return Header(
        version=version,
        owner_id=owner_id,
        timestamp=timestamp,
        title=title,
        description=description,
        author=author,
        addon_version=addon_version,
        required_content=required,
    )


def pack_header(header: Header) -> bytes:
    if header.version not in SUPPORTED_VERSIONS:
        raise UnsupportedVersion(header.version)
    out = bytearray(
        _PREFIX_STRUCT.pack(
            MAGIC,
            header.version,
            check_u64(header.owner_id, "owner id"),
            check_u64(header.timestamp, "timestamp"),
        )
    )
    if header.version >= REQUIRED_CONTENT_MIN_VERSION:
        for s in header.required_content:
            if not s:
                raise InvalidField("required content entries must be non-empty")
            out += encode_cstring(s, "required content")
        out += b"\x00"
    elif header.required_content:
        raise InvalidField(f"format version {header.version} cannot carry required content")
    out += encode_cstring(header.title, "title")
    out += encode_cstring(header.description, "description")
    out += encode_cstring(header.author, "author")
    out += _ADDON_VERSION_STRUCT.pack(check_i32(header.addon_version, "addon version"))
    return bytes(out)
