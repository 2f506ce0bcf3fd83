from __future__ import annotations

import unittest
import zlib

from gmad.checksum import crc32


class CRC32Tests(unittest.TestCase):
    def test_check_value(self):
        # Standard CRC-32/ISO-HDLC check value
        self.assertEqual(crc32(b"123456789"), 0xCBF43926)

    def test_empty(self):
        self.assertEqual(crc32(b""), 0)

    def test_running_checksum_matches_one_shot(self):
        data = bytes(range(256)) * 7
        running = 0
        for i in range(0, len(data), 100):
            running = crc32(data[i : i + 100], running)
        self.assertEqual(running, crc32(data))

    def test_accepts_buffer_views(self):
        data = bytearray(b"hello world")
        self.assertEqual(crc32(memoryview(data)[6:]), crc32(b"world"))

    def test_unsigned_result(self):
        for sample in (b"\xff" * 4, b"negative?", bytes(1000)):
            v = crc32(sample)
            self.assertGreaterEqual(v, 0)
            self.assertLessEqual(v, 0xFFFFFFFF)
            self.assertEqual(v, zlib.crc32(sample) & 0xFFFFFFFF)


if __name__ == "__main__":
    unittest.main()
