"""
Tests for the payload codec and download units.

Uses Python's unittest module.
"""

from __future__ import annotations

import base64
import shutil
import tempfile
import unittest
from pathlib import Path

from dreamdress.backup.codec import (
    DEFAULT_CONTENT_TYPE,
    DownloadUnit,
    decode,
    encode,
    guess_content_type,
    sanitize_filename,
    sniff_content_type,
)
from dreamdress.backup.errors import MalformedEncoding

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"\x00\x00\x00\rIHDR" + bytes(range(32))
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"\x00\x10JFIF" + bytes(16)
MP4_BYTES = b"\x00\x00\x00\x18ftypmp42" + bytes(24)


class TestSniffing(unittest.TestCase):
    """Tests for content type inference."""

    def test_known_signatures(self) -> None:
        """Test magic bytes map to their content types."""
        self.assertEqual(sniff_content_type(PNG_BYTES), "image/png")
        self.assertEqual(sniff_content_type(JPEG_BYTES), "image/jpeg")
        self.assertEqual(sniff_content_type(MP4_BYTES), "video/mp4")
        self.assertEqual(sniff_content_type(b"GIF89a" + bytes(8)), "image/gif")
        self.assertEqual(sniff_content_type(b"RIFF\x00\x00\x00\x00WEBPVP8 "), "image/webp")

    def test_unknown_bytes(self) -> None:
        """Test unrecognized payloads fall back to octet-stream."""
        self.assertEqual(sniff_content_type(b"hello"), DEFAULT_CONTENT_TYPE)
        self.assertEqual(sniff_content_type(b""), DEFAULT_CONTENT_TYPE)

    def test_guess_prefers_extension(self) -> None:
        """Test filename extension wins over magic bytes."""
        self.assertEqual(guess_content_type("photo.png", b"not really"), "image/png")
        self.assertEqual(guess_content_type("noext", PNG_BYTES), "image/png")


class TestEncodeDecode(unittest.TestCase):
    """Tests for encode() and decode()."""

    def test_encode_infers_type(self) -> None:
        """Test encode produces a data URL with the sniffed type."""
        text = encode(PNG_BYTES)

        self.assertTrue(text.startswith("data:image/png;base64,"))

    def test_encode_explicit_type(self) -> None:
        """Test an explicit content type is kept."""
        text = encode(b"abc", "text/plain")

        self.assertEqual(text, "data:text/plain;base64,YWJj")

    def test_encode_empty(self) -> None:
        """Test encoding is total, including empty input."""
        self.assertEqual(encode(b""), f"data:{DEFAULT_CONTENT_TYPE};base64,")

    def test_decode_data_url(self) -> None:
        """Test decoding a base64 data URL recovers bytes and type."""
        blob = decode(encode(JPEG_BYTES))

        self.assertEqual(blob.data, JPEG_BYTES)
        self.assertEqual(blob.content_type, "image/jpeg")

    def test_decode_bare_base64(self) -> None:
        """Test bare base64 decodes to raw bytes with a generic type."""
        blob = decode(base64.b64encode(PNG_BYTES).decode("ascii"))

        self.assertEqual(blob.data, PNG_BYTES)
        self.assertEqual(blob.content_type, DEFAULT_CONTENT_TYPE)

    def test_decode_bare_base64_with_whitespace(self) -> None:
        """Test line-wrapped base64 is accepted."""
        raw = base64.encodebytes(PNG_BYTES).decode("ascii")
        self.assertIn("\n", raw)

        self.assertEqual(decode(raw).data, PNG_BYTES)

    def test_decode_percent_encoded_data_url(self) -> None:
        """Test non-base64 data URLs are percent-decoded."""
        blob = decode("data:text/plain,hello%20world")

        self.assertEqual(blob.data, b"hello world")
        self.assertEqual(blob.content_type, "text/plain")

    def test_decode_data_url_with_parameters(self) -> None:
        """Test parameters between type and base64 marker are ignored."""
        blob = decode("data:image/png;name=a.png;base64," + base64.b64encode(PNG_BYTES).decode())

        self.assertEqual(blob.content_type, "image/png")
        self.assertEqual(blob.data, PNG_BYTES)

    def test_decode_invalid(self) -> None:
        """Test invalid text raises MalformedEncoding."""
        for text in ("not base64!!", "", "data:image/png;base64", "data:image/png;base64,@@@"):
            with self.subTest(text=text):
                with self.assertRaises(MalformedEncoding):
                    decode(text)

    def test_decode_non_string(self) -> None:
        """Test non-text input raises MalformedEncoding."""
        with self.assertRaises(MalformedEncoding):
            decode(b"abc")  # type: ignore[arg-type]


class TestSanitizeFilename(unittest.TestCase):
    """Tests for sanitize_filename()."""

    def test_replaces_illegal_characters(self) -> None:
        """Test every illegal character becomes a dash."""
        name = sanitize_filename('1-a/b\\c?d%e*f:g|h"i<j>k.png')

        self.assertEqual(name, "1-a-b-c-d-e-f-g-h-i-j-k.png")
        for ch in '/\\?%*:|"<>':
            self.assertNotIn(ch, name)

    def test_keeps_unicode(self) -> None:
        """Test non-ASCII dream text is preserved."""
        self.assertEqual(sanitize_filename("1-宇航员.png"), "1-宇航员.png")


class TestDownloadUnit(unittest.TestCase):
    """Tests for DownloadUnit."""

    def setUp(self) -> None:
        self.temp_dir = Path(tempfile.mkdtemp())

    def tearDown(self) -> None:
        shutil.rmtree(self.temp_dir, ignore_errors=True)

    def test_from_encoded(self) -> None:
        """Test a payload becomes a unit with its content type."""
        unit = DownloadUnit.from_encoded(encode(PNG_BYTES), "photo.png")

        self.assertEqual(unit.filename, "photo.png")
        self.assertEqual(unit.content, PNG_BYTES)
        self.assertEqual(unit.content_type, "image/png")
        self.assertEqual(unit.size_bytes, len(PNG_BYTES))

    def test_write_to(self) -> None:
        """Test the unit is written into the directory."""
        unit = DownloadUnit("out.bin", b"payload", DEFAULT_CONTENT_TYPE)

        path = unit.write_to(self.temp_dir / "nested")

        self.assertEqual(path, self.temp_dir / "nested" / "out.bin")
        self.assertEqual(path.read_bytes(), b"payload")
        self.assertEqual([p.name for p in path.parent.iterdir()], ["out.bin"])

    def test_write_to_overwrites(self) -> None:
        """Test writing twice replaces the file."""
        DownloadUnit("out.bin", b"first", DEFAULT_CONTENT_TYPE).write_to(self.temp_dir)
        path = DownloadUnit("out.bin", b"second", DEFAULT_CONTENT_TYPE).write_to(self.temp_dir)

        self.assertEqual(path.read_bytes(), b"second")


if __name__ == "__main__":
    unittest.main()
