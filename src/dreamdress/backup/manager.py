"""
Backup and restore manager for Dreamdress.

Wires the record and blob stores in a data directory to the archive writer
and reader, and turns their exceptions into result objects for callers
that want a success flag rather than a traceback (the CLI).
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from pathlib import Path

from dreamdress.backup.models import (
    ArchiveManifest,
    BackupResult,
    ExportCategory,
    RestoreResult,
)
from dreamdress.backup.progress import ProgressCallback
from dreamdress.backup.reader import ArchiveReader
from dreamdress.backup.writer import ArchiveWriter
from dreamdress.config.settings import ExportConfig, Settings
from dreamdress.storage.blob_store import BlobStore
from dreamdress.storage.record_store import RecordStore

logger = logging.getLogger(__name__)


class BackupManager:
    """
    Manages export and import of Dreamdress data.

    Callers must not run two operations against the same data directory at
    the same time; the stores are not locked for the duration of a run.
    """

    def __init__(
        self,
        data_dir: Path,
        export_config: ExportConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """
        Initialize backup manager.

        Args:
            data_dir: Directory holding records.db and blobs.db
            export_config: File naming and compression settings
            clock: Time source for export names and manifests
        """
        self.data_dir = Path(data_dir)
        self.export_config = export_config or ExportConfig()
        self.records = RecordStore(self.data_dir)
        self.blobs = BlobStore(self.data_dir)
        self.writer = ArchiveWriter(self.records, self.blobs, self.export_config, clock)
        self.reader = ArchiveReader(self.records, self.blobs)

    @classmethod
    def from_settings(cls, settings: Settings) -> BackupManager:
        return cls(Path(settings.data_dir).expanduser(), settings.export)

    def create_backup(
        self,
        category: ExportCategory | str = ExportCategory.ALL,
        output_path: Path | None = None,
        progress: ProgressCallback | None = None,
    ) -> BackupResult:
        """
        Export a category and write the result to a directory.

        Args:
            category: photos, config or all
            output_path: Directory to save into (default: configured output_dir)
            progress: Progress sink (percent, total, message)

        Returns:
            BackupResult with success status and file details
        """
        try:
            category = ExportCategory(category)

            if output_path is None:
                output_path = Path(self.export_config.output_dir).expanduser()
            output_path = Path(output_path)

            if output_path.is_file():
                return BackupResult(
                    success=False,
                    category=category,
                    error=f"Output path is a file: {output_path}",
                )

            unit = self.writer.export(category, progress)
            path = unit.write_to(output_path)

            logger.info(f"Backup created: {path} ({unit.size_bytes:,} bytes)")
            return BackupResult(
                success=True,
                path=path,
                category=category,
                size_bytes=unit.size_bytes,
            )

        except Exception as e:
            logger.exception("Backup failed")
            return BackupResult(success=False, error=str(e))

    def restore_backup(
        self,
        backup_path: Path,
        progress: ProgressCallback | None = None,
    ) -> RestoreResult:
        """
        Import a backup file.

        Args:
            backup_path: Path to a .zip archive or a JSON backup

        Returns:
            RestoreResult with success status and import details
        """
        try:
            backup_path = Path(backup_path)

            if not backup_path.exists():
                return RestoreResult(
                    success=False,
                    error=f"Backup file not found: {backup_path}",
                )

            result = self.reader.import_file(backup_path, progress)
            return RestoreResult(success=True, result=result)

        except Exception as e:
            logger.exception("Restore failed")
            return RestoreResult(success=False, error=str(e))

    def verify_backup(self, backup_path: Path) -> tuple[bool, list[str]]:
        """
        Verify that a backup's manifests and entries agree.

        Returns:
            Tuple of (is_valid, list_of_errors)
        """
        backup_path = Path(backup_path)
        try:
            if not backup_path.exists():
                return False, [f"Backup file not found: {backup_path}"]
            return self.reader.verify(backup_path.name, backup_path.read_bytes())
        except Exception as e:
            return False, [f"Verification error: {str(e)}"]

    def get_backup_info(self, backup_path: Path) -> ArchiveManifest | None:
        """
        Get information about a backup without importing it.

        Returns:
            ArchiveManifest or None if unable to read
        """
        backup_path = Path(backup_path)
        try:
            return self.reader.read_manifest(backup_path.name, backup_path.read_bytes())
        except Exception as e:
            logger.debug(f"Could not read backup info from {backup_path}: {e}")
            return None
