"""
Exceptions raised by the backup engine.

Category-level failures (nothing to export, unusable input) surface to the
caller before any store is written. I/O, ZIP and JSON errors from the
underlying libraries are not wrapped.
"""


class BackupError(Exception):
    """Base exception for backup and restore errors."""

    pass


class EmptyExport(BackupError):
    """Raised when the requested export category has no data."""

    pass


class EmptyArchive(BackupError):
    """Raised when an archive carries none of the known backup entries."""

    pass


class InvalidBackupFormat(BackupError):
    """Raised when a single-file backup fails the minimal shape check."""

    pass


class MalformedEncoding(BackupError):
    """Raised when a payload is neither a data URL nor bare base64."""

    pass
