"""
Portable text encoding for binary payloads.

Blobs travel through the stores and legacy backups as data URLs
(``data:<type>;base64,<payload>``). Older payloads may be bare base64.
This module converts between bytes and that encoding, and packages bytes
as a downloadable unit.
"""

from __future__ import annotations

import base64
import binascii
import logging
import mimetypes
import os
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path
from urllib.parse import unquote_to_bytes

from dreamdress.backup.errors import MalformedEncoding

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "application/octet-stream"

ILLEGAL_FILENAME_RE = re.compile(r'[/\\?%*:|"<>]')

_DATA_URL_RE = re.compile(r"^data:(?P<meta>[^,]*),(?P<payload>.*)$", re.DOTALL)
_WHITESPACE_RE = re.compile(r"\s+")

# (magic prefix, offset, content type)
_SIGNATURES: tuple[tuple[bytes, int, str], ...] = (
    (b"\x89PNG\r\n\x1a\n", 0, "image/png"),
    (b"\xff\xd8\xff", 0, "image/jpeg"),
    (b"GIF87a", 0, "image/gif"),
    (b"GIF89a", 0, "image/gif"),
    (b"\x1a\x45\xdf\xa3", 0, "video/webm"),
    (b"ftyp", 4, "video/mp4"),
)


@dataclass(frozen=True)
class DecodedBlob:
    """Bytes recovered from an encoded payload."""

    data: bytes
    content_type: str


def sniff_content_type(data: bytes) -> str:
    """Infer a content type from magic bytes."""
    if data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "image/webp"
    for magic, offset, content_type in _SIGNATURES:
        if data[offset:offset + len(magic)] == magic:
            return content_type
    return DEFAULT_CONTENT_TYPE


def guess_content_type(filename: str, data: bytes) -> str:
    """Content type from the filename extension, falling back to magic bytes."""
    content_type, _ = mimetypes.guess_type(filename)
    return content_type or sniff_content_type(data)


def encode(data: bytes, content_type: str | None = None) -> str:
    """
    Encode bytes as a base64 data URL.

    Args:
        data: Binary payload.
        content_type: MIME type; inferred from the payload when omitted.

    Returns:
        Data URL text.
    """
    if content_type is None:
        content_type = sniff_content_type(data)
    payload = base64.b64encode(data).decode("ascii")
    return f"data:{content_type};base64,{payload}"


def decode(text: str) -> DecodedBlob:
    """
    Decode a data URL or bare base64 text.

    Data URLs keep their declared content type (base64 or percent-encoded
    payloads). Bare base64 decodes to raw bytes with a generic type.

    Raises:
        MalformedEncoding: If the text is valid under neither form.
    """
    if not isinstance(text, str):
        raise MalformedEncoding(f"Expected encoded text, got {type(text).__name__}")

    if text.startswith("data:"):
        match = _DATA_URL_RE.match(text)
        if match is None:
            raise MalformedEncoding("Data URL has no payload separator")

        params = [p.strip() for p in match.group("meta").split(";")]
        is_base64 = bool(params) and params[-1].lower() == "base64"
        if is_base64:
            params = params[:-1]
        content_type = params[0] if params and params[0] else "text/plain"
        payload = match.group("payload")

        if is_base64:
            return DecodedBlob(_b64decode(payload), content_type)
        return DecodedBlob(unquote_to_bytes(payload), content_type)

    return DecodedBlob(_b64decode(text), DEFAULT_CONTENT_TYPE)


def _b64decode(payload: str) -> bytes:
    compact = _WHITESPACE_RE.sub("", payload)
    if not compact:
        raise MalformedEncoding("Encoded payload is empty")
    try:
        return base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as e:
        raise MalformedEncoding(f"Invalid base64 payload: {e}") from e


def sanitize_filename(name: str) -> str:
    """Replace characters that are illegal in filenames with '-'."""
    return ILLEGAL_FILENAME_RE.sub("-", name)


@dataclass
class DownloadUnit:
    """
    A file ready to hand to the user.

    Attributes:
        filename: Suggested file name (already sanitized).
        content: File bytes.
        content_type: MIME type of the content.
    """

    filename: str
    content: bytes
    content_type: str

    @property
    def size_bytes(self) -> int:
        return len(self.content)

    @classmethod
    def from_encoded(cls, text: str, filename: str) -> DownloadUnit:
        """Materialize an encoded payload as a download."""
        blob = decode(text)
        return cls(filename=filename, content=blob.data, content_type=blob.content_type)

    def write_to(self, directory: Path) -> Path:
        """
        Write the unit into a directory atomically.

        Returns:
            Path of the written file.
        """
        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        target = directory / self.filename

        temp_fd, temp_path = tempfile.mkstemp(
            suffix=".part",
            dir=str(directory),
        )
        try:
            with os.fdopen(temp_fd, "wb") as f:
                f.write(self.content)
            os.replace(temp_path, target)
        except Exception:
            if os.path.exists(temp_path):
                os.unlink(temp_path)
            raise

        logger.info(f"Wrote {target} ({self.size_bytes:,} bytes)")
        return target
