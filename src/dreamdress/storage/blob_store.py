"""
Blob store for Dreamdress.

Holds the image blobs behind the history ledger and the virtual camera
media set. Payloads are kept in their portable text encoding (data URLs),
so bulk reads and writes move text in and out without re-encoding.

Storage Structure:
    data/
        blobs.db        # images and virtual_media tables
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Callable, Generator, Mapping
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from dreamdress.storage.models import MediaKind, VirtualMediaItem
from dreamdress.storage.record_store import StorageError

logger = logging.getLogger(__name__)

# (current, total, message)
BlobProgressCallback = Callable[[int, int, str], None]

SCHEMA_VERSION = 1

CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS images (
    key TEXT PRIMARY KEY,
    data TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS virtual_media (
    position INTEGER PRIMARY KEY,
    id TEXT NOT NULL,
    kind TEXT NOT NULL,
    data TEXT NOT NULL,
    duration REAL
);
"""


class BlobStore:
    """
    Persistent key -> encoded payload storage.

    Keys are opaque strings. History images use the record id for the
    result and the record id plus "-original" for the original capture,
    but the store does not enforce that convention.

    Example:
        blobs = BlobStore(data_dir=Path("./data"))
        images = blobs.read_all(lambda cur, total, msg: print(cur, total, msg))
        blobs.write_all({"1700000000000": "data:image/png;base64,..."})
    """

    DATABASE_FILE = "blobs.db"

    def __init__(self, data_dir: Path | str | None = None) -> None:
        if data_dir is None:
            data_dir = Path.home() / ".dreamdress" / "data"
        elif isinstance(data_dir, str):
            data_dir = Path(data_dir)

        self.data_dir = data_dir
        self.db_path = data_dir / self.DATABASE_FILE

        self.data_dir.mkdir(parents=True, exist_ok=True)
        self._init_database()

    def _init_database(self) -> None:
        """Initialize the database schema."""
        with self._get_connection() as conn:
            conn.executescript(CREATE_TABLES_SQL)

            row = conn.execute(
                "SELECT version FROM schema_version ORDER BY version DESC LIMIT 1"
            ).fetchone()
            if row is None:
                conn.execute(
                    "INSERT INTO schema_version (version, applied_at) VALUES (?, ?)",
                    (SCHEMA_VERSION, datetime.now(UTC).isoformat()),
                )
                logger.debug(f"Initialized blob store schema version {SCHEMA_VERSION}")

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        conn = sqlite3.connect(
            str(self.db_path),
            isolation_level=None,
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    # -------------------------------------------------------------------------
    # Image blobs
    # -------------------------------------------------------------------------

    def read_all(self, progress: BlobProgressCallback | None = None) -> dict[str, str]:
        """
        Read every image blob.

        Args:
            progress: Called after each blob with (current, total, message).

        Returns:
            Mapping of blob key to encoded payload.
        """
        with self._get_connection() as conn:
            keys = [row["key"] for row in conn.execute("SELECT key FROM images ORDER BY key")]
            total = len(keys)
            images: dict[str, str] = {}
            for index, key in enumerate(keys, start=1):
                row = conn.execute("SELECT data FROM images WHERE key = ?", (key,)).fetchone()
                if row is not None:
                    images[key] = row["data"]
                if progress is not None:
                    progress(index, total, f"Reading images {index}/{total}...")

        logger.debug(f"Read {len(images)} image blobs")
        return images

    def write_all(self, images: Mapping[str, str]) -> None:
        """
        Write a batch of image blobs in one transaction.

        Existing blobs with the same keys are replaced; other blobs are kept.
        """
        for key, data in images.items():
            if not isinstance(data, str):
                raise StorageError(f"Blob {key!r} must be encoded text")

        with self._get_connection() as conn:
            try:
                conn.execute("BEGIN TRANSACTION")
                now = datetime.now(UTC).isoformat()
                conn.executemany(
                    """
                    INSERT INTO images (key, data, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        data = excluded.data,
                        updated_at = excluded.updated_at
                    """,
                    [(key, data, now) for key, data in images.items()],
                )
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise

        logger.info(f"Wrote {len(images)} image blobs")

    def put(self, key: str, data: str) -> None:
        self.write_all({key: data})

    def get(self, key: str) -> str | None:
        with self._get_connection() as conn:
            row = conn.execute("SELECT data FROM images WHERE key = ?", (key,)).fetchone()
        return row["data"] if row else None

    def delete(self, key: str) -> bool:
        with self._get_connection() as conn:
            cursor = conn.execute("DELETE FROM images WHERE key = ?", (key,))
        return cursor.rowcount > 0

    def keys(self) -> list[str]:
        with self._get_connection() as conn:
            return [row["key"] for row in conn.execute("SELECT key FROM images ORDER BY key")]

    def count(self) -> int:
        with self._get_connection() as conn:
            (count,) = conn.execute("SELECT COUNT(*) FROM images").fetchone()
        return int(count)

    # -------------------------------------------------------------------------
    # Virtual camera media
    # -------------------------------------------------------------------------

    def list_virtual_media(self) -> list[VirtualMediaItem]:
        """Return the virtual media set in its saved order."""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT id, kind, data, duration FROM virtual_media ORDER BY position"
            ).fetchall()
        return [
            VirtualMediaItem(
                id=row["id"],
                kind=MediaKind(row["kind"]),
                data_url=row["data"],
                duration=row["duration"],
            )
            for row in rows
        ]

    def replace_virtual_media(self, items: list[VirtualMediaItem]) -> None:
        """Replace the whole virtual media set."""
        with self._get_connection() as conn:
            try:
                conn.execute("BEGIN TRANSACTION")
                conn.execute("DELETE FROM virtual_media")
                conn.executemany(
                    """
                    INSERT INTO virtual_media (id, position, kind, data, duration)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    [
                        (item.id, position, MediaKind(item.kind).value, item.data_url, item.duration)
                        for position, item in enumerate(items)
                    ],
                )
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise

        logger.info(f"Saved {len(items)} virtual media items")

    def get_statistics(self) -> dict[str, Any]:
        """Get statistics about stored blobs."""
        with self._get_connection() as conn:
            image_count, image_chars = conn.execute(
                "SELECT COUNT(*), COALESCE(SUM(LENGTH(data)), 0) FROM images"
            ).fetchone()
            media_rows = conn.execute(
                "SELECT kind, COUNT(*) AS n FROM virtual_media GROUP BY kind"
            ).fetchall()
        return {
            "image_count": image_count,
            "image_encoded_chars": image_chars,
            "virtual_media": {row["kind"]: row["n"] for row in media_rows},
            "database_path": str(self.db_path),
        }
