"""
Small-record store for Dreamdress.

Persists the booth's configuration records and the history ledger as a
flat slot -> text mapping in a SQLite database. Values are opaque text;
the store never interprets them.

Storage Structure:
    data/
        records.db      # slot/value table
"""

from __future__ import annotations

import logging
import sqlite3
from collections.abc import Generator
from contextlib import contextmanager
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from dreamdress.storage.models import CONFIG_FIELDS, ConfigSnapshot, RecordSlot

logger = logging.getLogger(__name__)


class StorageError(Exception):
    """Base exception for storage errors."""

    pass


SCHEMA_VERSION = 1

CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS schema_version (
    version INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS records (
    slot TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);
"""


class RecordStore:
    """
    Persistent slot -> text storage.

    Example:
        store = RecordStore(data_dir=Path("./data"))
        store.set(RecordSlot.SETTINGS, '{"model": "gpt-4o-image"}')
        snapshot = store.read_config()

    Attributes:
        data_dir: Base directory for data storage.
        db_path: Path to the SQLite database file.
    """

    DATABASE_FILE = "records.db"

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
                logger.debug(f"Initialized record store schema version {SCHEMA_VERSION}")

    @contextmanager
    def _get_connection(self) -> Generator[sqlite3.Connection, None, None]:
        """
        Get a database connection with proper settings.

        Yields:
            SQLite connection with row factory set.
        """
        conn = sqlite3.connect(
            str(self.db_path),
            isolation_level=None,  # Autocommit mode, we manage transactions manually
            check_same_thread=False,
        )
        conn.row_factory = sqlite3.Row
        try:
            yield conn
        finally:
            conn.close()

    # -------------------------------------------------------------------------
    # Slot access
    # -------------------------------------------------------------------------

    def get(self, slot: RecordSlot) -> str | None:
        """Read a slot, or None if it has never been written."""
        with self._get_connection() as conn:
            row = conn.execute(
                "SELECT value FROM records WHERE slot = ?", (RecordSlot(slot).value,)
            ).fetchone()
        return row["value"] if row else None

    def set(self, slot: RecordSlot, value: str) -> None:
        """Write a slot, replacing any previous value."""
        if not isinstance(value, str):
            raise StorageError(f"Slot values must be text, got {type(value).__name__}")
        with self._get_connection() as conn:
            conn.execute(
                """
                INSERT INTO records (slot, value, updated_at) VALUES (?, ?, ?)
                ON CONFLICT(slot) DO UPDATE SET
                    value = excluded.value,
                    updated_at = excluded.updated_at
                """,
                (RecordSlot(slot).value, value, datetime.now(UTC).isoformat()),
            )
        logger.debug(f"Wrote slot {RecordSlot(slot).value} ({len(value)} chars)")

    def delete(self, slot: RecordSlot) -> bool:
        """Remove a slot. Returns True if it existed."""
        with self._get_connection() as conn:
            cursor = conn.execute(
                "DELETE FROM records WHERE slot = ?", (RecordSlot(slot).value,)
            )
        return cursor.rowcount > 0

    # -------------------------------------------------------------------------
    # Named accessors
    # -------------------------------------------------------------------------

    def read_history(self) -> str | None:
        return self.get(RecordSlot.HISTORY)

    def write_history(self, text: str) -> None:
        self.set(RecordSlot.HISTORY, text)

    def read_config(self) -> ConfigSnapshot:
        """Read every configuration slot into a snapshot."""
        return ConfigSnapshot(
            **{attr: self.get(slot) for attr, _, slot in CONFIG_FIELDS}
        )

    def apply_config(self, snapshot: ConfigSnapshot) -> list[RecordSlot]:
        """
        Write the present slots of a snapshot.

        Absent slots are left untouched.

        Returns:
            The slots that were written.
        """
        slots = snapshot.present_slots()
        with self._get_connection() as conn:
            try:
                conn.execute("BEGIN TRANSACTION")
                now = datetime.now(UTC).isoformat()
                for slot, value in slots.items():
                    conn.execute(
                        """
                        INSERT INTO records (slot, value, updated_at) VALUES (?, ?, ?)
                        ON CONFLICT(slot) DO UPDATE SET
                            value = excluded.value,
                            updated_at = excluded.updated_at
                        """,
                        (slot.value, value, now),
                    )
                conn.execute("COMMIT")
            except Exception:
                conn.execute("ROLLBACK")
                raise
        logger.info(f"Applied {len(slots)} configuration slots")
        return list(slots)

    def get_statistics(self) -> dict[str, Any]:
        """Get statistics about stored records."""
        with self._get_connection() as conn:
            rows = conn.execute(
                "SELECT slot, LENGTH(value) AS size, updated_at FROM records ORDER BY slot"
            ).fetchall()
        return {
            "slot_count": len(rows),
            "slots": {
                row["slot"]: {"size": row["size"], "updated_at": row["updated_at"]}
                for row in rows
            },
            "database_path": str(self.db_path),
        }
