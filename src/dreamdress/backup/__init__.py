"""
Backup and restore engine for Dreamdress.

Exports the booth's configuration, history ledger and image blobs as a
single portable file, and restores them from such a file or from the older
single-file JSON backups.

Usage:
    from dreamdress.backup import BackupManager, ExportCategory

    manager = BackupManager(data_dir)

    # Export everything into a ZIP
    result = manager.create_backup(ExportCategory.ALL, output_path)

    # Restore from an archive or a legacy JSON backup
    result = manager.restore_backup(backup_path)

    # Check manifest/entry consistency
    valid, errors = manager.verify_backup(backup_path)
"""

from dreamdress.backup.codec import (
    DecodedBlob,
    DownloadUnit,
    decode,
    encode,
    sanitize_filename,
)
from dreamdress.backup.errors import (
    BackupError,
    EmptyArchive,
    EmptyExport,
    InvalidBackupFormat,
    MalformedEncoding,
)
from dreamdress.backup.manager import BackupManager
from dreamdress.backup.models import (
    MANIFEST_VERSION,
    ArchiveManifest,
    BackupResult,
    ExportCategory,
    ImportResult,
    MediaIndexEntry,
    RestoreResult,
)
from dreamdress.backup.progress import ProgressReporter
from dreamdress.backup.reader import ArchiveReader
from dreamdress.backup.writer import ArchiveWriter

__all__ = [
    # Engine
    "BackupManager",
    "ArchiveWriter",
    "ArchiveReader",
    "ProgressReporter",
    # Codec
    "encode",
    "decode",
    "sanitize_filename",
    "DecodedBlob",
    "DownloadUnit",
    # Models
    "MANIFEST_VERSION",
    "ArchiveManifest",
    "ExportCategory",
    "MediaIndexEntry",
    "ImportResult",
    "BackupResult",
    "RestoreResult",
    # Exceptions
    "BackupError",
    "EmptyExport",
    "EmptyArchive",
    "InvalidBackupFormat",
    "MalformedEncoding",
]
