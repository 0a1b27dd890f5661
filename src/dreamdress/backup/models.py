"""
Data models for backup archives and the results of backup operations.

Archive layout (ZIP):
    config.json                 configuration manifest
    history.json                history ledger (raw, or payload-free metadata)
    metadata.json               summary for full backups
    photos/<name>.png           image blobs
    virtual-media/<n>-<id>.ext  virtual camera media
    virtual-media/index.json    media index
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any

from dreamdress.storage.models import MediaKind

MANIFEST_VERSION = 3

ARCHIVE_EXTENSION = ".zip"
CONFIG_ENTRY = "config.json"
HISTORY_ENTRY = "history.json"
METADATA_ENTRY = "metadata.json"
PHOTOS_DIR = "photos/"
MEDIA_DIR = "virtual-media/"
MEDIA_INDEX_ENTRY = MEDIA_DIR + "index.json"


class ExportCategory(str, Enum):
    """What an export contains."""

    PHOTOS = "photos"
    CONFIG = "config"
    ALL = "all"


@dataclass
class MediaIndexEntry:
    """Index entry tying a virtual media item to its archive entry."""

    id: str
    kind: MediaKind
    filename: str
    duration: float | None = None

    @property
    def entry_name(self) -> str:
        return MEDIA_DIR + self.filename

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "type": MediaKind(self.kind).value,
            "filename": self.filename,
        }
        if self.duration is not None:
            data["duration"] = self.duration
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MediaIndexEntry:
        kind = data.get("type", MediaKind.IMAGE.value)
        return cls(
            id=str(data["id"]),
            kind=MediaKind.VIDEO if kind == MediaKind.VIDEO.value else MediaKind.IMAGE,
            filename=str(data["filename"]),
            duration=data.get("duration"),
        )


@dataclass
class ArchiveManifest:
    """
    Metadata describing an archive without its payloads.

    A manifest without a version was written by the legacy single-file
    format.
    """

    version: int | None
    export_time: str
    category: str | None
    photo_count: int | None = None
    virtual_media_count: int | None = None
    media: list[MediaIndexEntry] = field(default_factory=list)

    @property
    def is_legacy(self) -> bool:
        return self.version is None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the metadata.json representation."""
        data: dict[str, Any] = {
            "version": self.version,
            "exportTime": self.export_time,
            "type": self.category,
        }
        if self.photo_count is not None:
            data["photoCount"] = self.photo_count
        if self.virtual_media_count is not None:
            data["virtualMediaCount"] = self.virtual_media_count
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ArchiveManifest:
        """Create manifest from dictionary."""
        version = data.get("version")
        return cls(
            version=int(version) if version is not None else None,
            export_time=data.get("exportTime", ""),
            category=data.get("type"),
            photo_count=data.get("photoCount"),
            virtual_media_count=data.get("virtualMediaCount"),
        )


@dataclass
class ImportResult:
    """Outcome of an import."""

    category: str | None
    summary: str
    source_format: str
    imported_config: bool = False
    imported_history: bool = False
    photo_count: int = 0
    media_count: int = 0
    skipped_entries: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class BackupResult:
    """Result of a backup operation."""

    success: bool
    path: Path | None = None
    category: ExportCategory | None = None
    size_bytes: int = 0
    error: str | None = None


@dataclass
class RestoreResult:
    """Result of a restore operation."""

    success: bool
    result: ImportResult | None = None
    error: str | None = None
