from __future__ import annotations

import io
import os
import struct
import tempfile
import unittest
import zlib
from pathlib import Path
from typing import Iterable, List, Optional, Sequence, Tuple

from gmad import (
    Builder,
    read,
    read_archive,
    read_file,
    BadMagic,
    UnsupportedVersion,
    BadFileTable,
    UnexpectedEof,
    ChecksumMismatch,
    GmaError,
)


FIXED_TS = 1_700_000_000
OWNER = 76561197960287930


def _crc(data: bytes) -> int:
    return zlib.crc32(data) & 0xFFFFFFFF


def _craft(
    files: Sequence[Tuple[int, str, bytes]],
    *,
    version: int = 3,
    required: Iterable[str] = (),
    crcs: Optional[List[int]] = None,
    trailer: Optional[bool] = True,
) -> bytes:
    """Assemble an archive by hand, independently of the package writer.

    files: (file number, name, content) rows in table order.
    trailer: True for a correct CRC, False for none, None for a zero trailer.
    """
    out = bytearray(b"GMAD")
    out += struct.pack("<BQQ", version, OWNER, FIXED_TS)
    if version >= 2:
        for r in required:
            out += r.encode("utf-8") + b"\x00"
        out += b"\x00"
    out += b"Crafted\x00" + b"desc\x00" + b"someone\x00"
    out += struct.pack("<i", 5)
    for i, (num, name, content) in enumerate(files):
        crc = crcs[i] if crcs is not None else _crc(content)
        out += struct.pack("<I", num) + name.encode("utf-8") + b"\x00" + struct.pack("<QI", len(content), crc)
    out += struct.pack("<I", 0)
    for _num, _name, content in files:
        out += content
    if trailer is True:
        out += struct.pack("<I", _crc(bytes(out)))
    elif trailer is None:
        out += struct.pack("<I", 0)
    return bytes(out)


def _sample_builder() -> Builder:
    b = Builder("Sample Addon", OWNER)
    b.set_author("someone")
    b.set_description('{"description": "test", "type": "tool", "tags": ["fun"]}')
    b.set_timestamp(FIXED_TS)
    b.file_from_bytes("lua/autorun/first.lua", b"print('hello')\n" * 20)
    b.file_from_bytes("materials/empty.vmt", b"")
    b.file_from_bytes("sound/blob.wav", os.urandom(3000))
    b.file_from_string("addon.json", '{"title": "Sample Addon"}')
    return b


class WireFormatTests(unittest.TestCase):
    def test_builder_output_matches_hand_layout(self):
        b = Builder("t", 0x0102030405060708)
        b.set_author("a")
        b.set_description("d")
        b.set_timestamp(FIXED_TS)
        b.file_from_bytes("x.txt", b"hi")

        expected = bytearray(b"GMAD\x03")
        expected += struct.pack("<QQ", 0x0102030405060708, FIXED_TS)
        expected += b"\x00"  # empty required-content list
        expected += b"t\x00d\x00a\x00"
        expected += struct.pack("<i", 1)
        expected += struct.pack("<I", 1) + b"x.txt\x00" + struct.pack("<QI", 2, _crc(b"hi"))
        expected += struct.pack("<I", 0)
        expected += b"hi"
        expected += struct.pack("<I", _crc(bytes(expected)))
        self.assertEqual(b.to_bytes(), bytes(expected))

    def test_reads_hand_crafted_archive(self):
        data = _craft([(1, "a.txt", b"alpha"), (2, "dir/b.bin", b"\x00\x01\x02")])
        a = read_archive(data)
        self.assertEqual(a.header.version, 3)
        self.assertEqual(a.header.owner_id, OWNER)
        self.assertEqual(a.header.timestamp, FIXED_TS)
        self.assertEqual(a.header.title, "Crafted")
        self.assertEqual(a.header.description, "desc")
        self.assertEqual(a.header.author, "someone")
        self.assertEqual(a.header.addon_version, 5)
        self.assertEqual([e.name for e in a.entries], ["a.txt", "dir/b.bin"])
        self.assertEqual([e.number for e in a.entries], [1, 2])
        self.assertEqual(a.entries[1].to_bytes(), b"\x00\x01\x02")
        self.assertTrue(a.checksum_ok)

    def test_version_1_has_no_required_content(self):
        data = _craft([(1, "a.txt", b"alpha")], version=1)
        a = read_archive(data)
        self.assertEqual(a.header.version, 1)
        self.assertEqual(a.header.required_content, [])
        self.assertEqual(a.entries[0].to_bytes(), b"alpha")

    def test_required_content_list(self):
        data = _craft([(1, "a.txt", b"alpha")], version=2, required=["base", "extra"])
        a = read_archive(data)
        self.assertEqual(a.header.required_content, ["base", "extra"])
        self.assertEqual(a.header.title, "Crafted")

    def test_missing_trailer_is_valid(self):
        data = _craft([(1, "a.txt", b"alpha")], trailer=False)
        a = read_archive(data)
        self.assertIsNone(a.checksum)
        self.assertIsNone(a.checksum_ok)
        self.assertEqual(len(a.entries), 1)


class RoundTripTests(unittest.TestCase):
    def test_roundtrip_preserves_order_and_content(self):
        b = _sample_builder()
        data = b.to_bytes()
        entries = read(data)
        self.assertEqual([e.name for e in entries], b.files)
        for e in entries:
            self.assertEqual(e.to_bytes(), b._files[e.name])
            self.assertEqual(e.size, len(b._files[e.name]))
            self.assertTrue(e.verify())

    def test_zero_files(self):
        b = Builder("Nothing", 1)
        entries = read(b.to_bytes())
        self.assertEqual(entries, [])

    def test_empty_file(self):
        b = Builder("Empty", 1)
        b.file_from_bytes("empty.txt", b"")
        (e,) = read(b.to_bytes())
        self.assertEqual(e.size, 0)
        self.assertEqual(e.to_bytes(), b"")

    def test_unicode_names_and_metadata(self):
        b = Builder("Ünïcødé ✓", 2)
        b.set_author("作者")
        b.file_from_bytes("materials/ñame/файл.txt", b"x")
        a = read_archive(b.to_bytes())
        self.assertEqual(a.header.title, "Ünïcødé ✓")
        self.assertEqual(a.header.author, "作者")
        self.assertEqual(a.entries[0].name, "materials/ñame/файл.txt")

    def test_entries_view_input_buffer(self):
        data = _sample_builder().to_bytes()
        entries = read(data)
        first = entries[0]
        self.assertIsInstance(first.content, memoryview)
        self.assertIs(first.content.obj, data)
        self.assertEqual(bytes(data[first.offset : first.offset + first.size]), first.to_bytes())
        self.assertIsInstance(first.to_bytes(), bytes)

    def test_payload_is_contiguous(self):
        entries = read(_sample_builder().to_bytes())
        for prev, cur in zip(entries, entries[1:]):
            self.assertEqual(prev.offset + prev.size, cur.offset)

    def test_reads_bytearray_and_memoryview(self):
        data = _sample_builder().to_bytes()
        self.assertEqual(len(read(bytearray(data))), 4)
        self.assertEqual(len(read(memoryview(data))), 4)

    def test_read_file(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "sample.gma"
            with open(path, "wb") as fh:
                _sample_builder().write_to(fh)
            a = read_file(str(path))
            self.assertEqual(len(a.entries), 4)
            self.assertEqual(a.find("addon.json").to_bytes(), b'{"title": "Sample Addon"}')
            self.assertIsNone(a.find("missing"))

    def test_idempotent_reserialization(self):
        first = _sample_builder().to_bytes()
        again = Builder.from_archive(read_archive(first)).to_bytes()
        self.assertEqual(first, again)

    def test_rebuild_keeps_required_content(self):
        data = _craft([(1, "a.txt", b"alpha")], version=2, required=["base", "extra"])
        b = Builder.from_archive(read_archive(data))
        self.assertEqual(b.required_content, ["base", "extra"])
        again = read_archive(b.to_bytes())
        self.assertEqual(again.header.version, 3)
        self.assertEqual(again.header.required_content, ["base", "extra"])
        self.assertEqual(again.entries[0].to_bytes(), b"alpha")

    def test_deterministic_output(self):
        b = _sample_builder()
        first = b.to_bytes()
        self.assertEqual(first, b.to_bytes())
        sink = io.BytesIO()
        b.write_to(sink)
        self.assertEqual(sink.getvalue(), first)


class CorruptionTests(unittest.TestCase):
    def setUp(self):
        self.builder = _sample_builder()
        self.data = self.builder.to_bytes()
        self.entries = read(self.data)

    def _flip(self, offset: int) -> bytes:
        buf = bytearray(self.data)
        buf[offset] ^= 0xFF
        return bytes(buf)

    def test_payload_flip_detected(self):
        for e in self.entries:
            if e.size == 0:
                continue
            for within in (0, e.size // 2, e.size - 1):
                with self.assertRaises(ChecksumMismatch):
                    read(self._flip(e.offset + within))

    def test_file_table_flip_detected(self):
        name_at = self.data.index(b"lua/autorun/first.lua\x00")
        with self.assertRaises(ChecksumMismatch):
            read(self._flip(name_at))
        # CRC field of the first row sits right after its name and size
        crc_at = name_at + len(b"lua/autorun/first.lua\x00") + 8
        with self.assertRaises(ChecksumMismatch):
            read(self._flip(crc_at))

    def test_metadata_flip_detected(self):
        title_at = self.data.index(b"Sample Addon\x00")
        with self.assertRaises(ChecksumMismatch):
            read(self._flip(title_at + 3))

    def test_trailer_flip_detected(self):
        with self.assertRaises(ChecksumMismatch) as ctx:
            read(self._flip(len(self.data) - 1))
        self.assertNotEqual(ctx.exception.expected, ctx.exception.actual)

    def test_lenient_read_reports_mismatch(self):
        bad = self._flip(self.entries[0].offset)
        a = read_archive(bad, verify_checksum=False)
        self.assertFalse(a.checksum_ok)
        self.assertEqual(len(a.entries), 4)
        self.assertFalse(a.entries[0].verify())

    def test_verify_files_checks_per_file_crc(self):
        data = _craft([(1, "a.txt", b"alpha"), (2, "b.txt", b"beta")], crcs=[_crc(b"alpha"), 0xDEADBEEF])
        # Trailer is correct, so only the per-file check catches it
        self.assertEqual(len(read(data)), 2)
        with self.assertRaises(ChecksumMismatch) as ctx:
            read_archive(data, verify_files=True)
        self.assertEqual(ctx.exception.expected, 0xDEADBEEF)

    def test_zero_trailer_from_other_writers(self):
        data = _craft([(1, "a.txt", b"alpha")], crcs=[0], trailer=None)
        a = read_archive(data, verify_files=True)
        self.assertIsNone(a.checksum)
        self.assertIsNone(a.checksum_ok)
        self.assertEqual(a.entries[0].to_bytes(), b"alpha")
        self.assertTrue(a.entries[0].verify())

    def test_writer_without_checksums_layout(self):
        # Exact layout of a writer that records no checksums: zero file CRCs
        # and a zero u32 end marker
        out = bytearray(b"GMAD\x03")
        out += struct.pack("<qQ", 76561198000000000, FIXED_TS)
        out += b"\x00"
        out += b"My Addon\x00" + b"\x00" + b"unknown\x00"
        out += struct.pack("<i", 1)
        out += struct.pack("<I", 1) + b"lua/init.lua\x00" + struct.pack("<qI", 6, 0)
        out += struct.pack("<I", 0)
        out += b"print1"
        out += struct.pack("<I", 0)
        (e,) = read(bytes(out))
        self.assertEqual(e.name, "lua/init.lua")
        self.assertEqual(e.to_bytes(), b"print1")

    def test_nonzero_wrong_trailer_is_fatal(self):
        data = _craft([(1, "a.txt", b"alpha")], trailer=False) + struct.pack("<I", 1)
        with self.assertRaises(ChecksumMismatch):
            read(data)
        self.assertFalse(read_archive(data, verify_checksum=False).checksum_ok)

    def test_size_field_flip_is_structural(self):
        name = b"lua/autorun/first.lua\x00"
        size_at = self.data.index(name) + len(name)
        # High byte of the declared size: far more than the buffer holds
        with self.assertRaises(UnexpectedEof):
            read(self._flip(size_at + 7))

    def test_file_number_flip_is_structural(self):
        number_at = self.data.index(b"materials/empty.vmt\x00") - 4
        with self.assertRaises(BadFileTable):
            read(self._flip(number_at))


class MalformedInputTests(unittest.TestCase):
    def setUp(self):
        self.data = _sample_builder().to_bytes()

    def test_bad_magic(self):
        for magic in (b"GMAX", b"PK\x03\x04", b"\x00\x00\x00\x00", b"gmad"):
            with self.assertRaises(BadMagic):
                read(magic + self.data[4:])

    def test_unsupported_version(self):
        for version in (0, 4, 0xFF):
            buf = bytearray(self.data)
            buf[4] = version
            with self.assertRaises(UnsupportedVersion) as ctx:
                read(bytes(buf))
            self.assertEqual(ctx.exception.found, version)

    def test_file_number_gap(self):
        data = _craft([(1, "a.txt", b"a"), (3, "b.txt", b"b")])
        with self.assertRaises(BadFileTable):
            read(data)

    def test_file_number_repeat_and_bad_start(self):
        with self.assertRaises(BadFileTable):
            read(_craft([(1, "a.txt", b"a"), (1, "b.txt", b"b")]))
        with self.assertRaises(BadFileTable):
            read(_craft([(2, "a.txt", b"a")]))

    def test_truncated_payload(self):
        entries = read(self.data)
        start = entries[0].offset
        end = entries[-1].offset + entries[-1].size
        for cut in range(start, end, 97):
            with self.assertRaises(UnexpectedEof):
                read(self.data[:cut])
        with self.assertRaises(UnexpectedEof):
            read(self.data[: end - 1])

    def test_truncated_trailer(self):
        for missing in (1, 2, 3):
            with self.assertRaises(UnexpectedEof):
                read(self.data[:-missing])
        # Dropping the whole trailer leaves a valid archive without a checksum
        self.assertIsNone(read_archive(self.data[:-4]).checksum)

    def test_truncated_header(self):
        for cut in (0, 2, 4, 5, 12, 21, 25):
            with self.assertRaises(UnexpectedEof):
                read(self.data[:cut])

    def test_unterminated_string(self):
        data = b"GMAD\x03" + bytes(16) + b"\x00" + b"no terminator here"
        with self.assertRaises(UnexpectedEof):
            read(data)

    def test_trailing_garbage(self):
        with self.assertRaises(BadFileTable):
            read(self.data + b"extra bytes")

    def test_oversized_declared_length(self):
        data = bytearray(_craft([(1, "a.txt", b"alpha")], trailer=False))
        size_at = data.index(b"a.txt\x00") + 6
        data[size_at : size_at + 8] = struct.pack("<Q", 2**63)
        with self.assertRaises(UnexpectedEof):
            read(bytes(data))

    def test_every_error_is_a_gma_error(self):
        samples = [b"", b"GMAD", b"GMAD\x09", self.data[:30], self.data + b"xx"]
        for s in samples:
            with self.assertRaises(GmaError):
                read(s)


if __name__ == "__main__":
    unittest.main()
