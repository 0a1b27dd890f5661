"""
Normalization of backup payloads across schema versions.

Two input shapes exist:
    - ArchivePayload: the current multi-file ZIP layout (manifest version 3)
    - LegacyPayload: a single JSON document with an optional ``data`` object
      and an optional top-level ``images`` mapping

Field presence is the only migration signal. normalize() maps either shape
onto the same set of categories, keeping only fields that are present and
not empty, so an import never overwrites stored data with nothing and
unknown fields from newer writers are ignored.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from dreamdress.backup.errors import InvalidBackupFormat
from dreamdress.backup.models import ExportCategory
from dreamdress.storage.models import (
    ConfigSnapshot,
    VirtualMediaItem,
    as_slot_text,
    present,
)

logger = logging.getLogger(__name__)

ARCHIVE_FORMAT = "archive"
LEGACY_FORMAT = "legacy"


@dataclass
class ArchivePayload:
    """
    Contents read from a ZIP archive.

    None means the archive has no such entry; payload decoding has already
    happened, with unusable entries listed in ``skipped``.
    """

    config: dict[str, Any] | None = None
    history: str | None = None
    metadata: dict[str, Any] | None = None
    media: list[VirtualMediaItem] | None = None
    photos: dict[str, str] | None = None
    skipped: list[str] = field(default_factory=list)


@dataclass
class LegacyPayload:
    """A parsed single-file JSON backup."""

    document: dict[str, Any]


BackupPayload = ArchivePayload | LegacyPayload


@dataclass
class NormalizedBackup:
    """
    Backup contents mapped onto the canonical categories.

    Attributes:
        source_format: "archive" or "legacy".
        category: Declared or inferred export category, if any.
        config: Configuration slots to apply; None if the source has no config.
        history: Ledger text replacing the stored ledger, if present.
        images: Blob key -> encoded payload to bulk-import.
        virtual_media: Replacement virtual media set, if non-empty.
        skipped: Archive entries that could not be used.
    """

    source_format: str
    category: str | None = None
    config: ConfigSnapshot | None = None
    history: str | None = None
    images: dict[str, str] = field(default_factory=dict)
    virtual_media: list[VirtualMediaItem] | None = None
    skipped: list[str] = field(default_factory=list)


def is_legacy_manifest(data: dict[str, Any]) -> bool:
    """A manifest without a version predates the multi-file layout."""
    return data.get("version") is None


def check_legacy_document(document: Any) -> dict[str, Any]:
    """
    Minimal shape check for single-file backups.

    Raises:
        InvalidBackupFormat: If the document has neither ``data`` nor ``type``.
    """
    if not isinstance(document, dict):
        raise InvalidBackupFormat("Backup file must contain a JSON object")
    # An empty ``data`` object still counts; it just applies nothing.
    if document.get("data") is None and not present(document.get("type")):
        raise InvalidBackupFormat(
            "Invalid backup file format: expected a 'data' or 'type' field"
        )
    return document


def normalize(payload: BackupPayload) -> NormalizedBackup:
    """Map an archive or legacy payload onto the canonical categories."""
    if isinstance(payload, ArchivePayload):
        return _normalize_archive(payload)
    if isinstance(payload, LegacyPayload):
        return _normalize_legacy(payload)
    raise TypeError(f"Unsupported payload type: {type(payload).__name__}")


def _normalize_archive(payload: ArchivePayload) -> NormalizedBackup:
    config = None
    if payload.config is not None:
        config = ConfigSnapshot.from_dict(_config_slots(payload.config))

    return NormalizedBackup(
        source_format=ARCHIVE_FORMAT,
        category=_archive_category(payload),
        config=config,
        history=payload.history if present(payload.history) else None,
        images=dict(payload.photos or {}),
        virtual_media=list(payload.media) if payload.media else None,
        skipped=list(payload.skipped),
    )


def _config_slots(config: dict[str, Any]) -> dict[str, Any]:
    """
    Slot mapping of a config.json document.

    Version 3 manifests nest the slots under ``data``; full backups written
    before that stored the slots at the top level.
    """
    data = config.get("data")
    if isinstance(data, dict):
        return data
    if not is_legacy_manifest(config):
        logger.warning("Versioned config manifest has no 'data' object")
    return config


def _archive_category(payload: ArchivePayload) -> str | None:
    for document in (payload.metadata, payload.config):
        if document is not None and present(document.get("type")):
            return str(document["type"])
    if payload.history is not None or payload.photos:
        return ExportCategory.PHOTOS.value
    if payload.media:
        return ExportCategory.CONFIG.value
    return None


def _normalize_legacy(payload: LegacyPayload) -> NormalizedBackup:
    document = check_legacy_document(payload.document)

    config = None
    history = None
    data = document.get("data")
    if isinstance(data, dict):
        config = ConfigSnapshot.from_dict(data)
        if present(data.get("history")):
            history = as_slot_text(data["history"])
    elif present(data):
        logger.warning(f"Ignoring non-object 'data' field of type {type(data).__name__}")

    images: dict[str, str] = {}
    raw_images = document.get("images")
    if isinstance(raw_images, dict):
        images = {str(k): v for k, v in raw_images.items() if isinstance(v, str) and v}

    category = document.get("type")
    return NormalizedBackup(
        source_format=LEGACY_FORMAT,
        category=str(category) if present(category) else None,
        config=config,
        history=history,
        images=images,
    )
