"""
Archive reader for Dreamdress imports.

Restores store contents from a file produced by ArchiveWriter or by the
older single-file JSON backup. Files ending in ``.zip`` are read as
archives; anything else is parsed as a legacy JSON document.

Import is full-replace per category: the history ledger and the virtual
media set are replaced wholesale, configuration slots present in the
backup overwrite stored ones, and image blobs are upserted by key.
Unusable entries inside an otherwise valid archive are skipped.
"""

from __future__ import annotations

import io
import json
import logging
import zipfile
import zlib
from pathlib import Path, PurePosixPath
from typing import Any

from dreamdress.backup.codec import encode, guess_content_type
from dreamdress.backup.errors import EmptyArchive, InvalidBackupFormat
from dreamdress.backup.migration import (
    ARCHIVE_FORMAT,
    ArchivePayload,
    LegacyPayload,
    NormalizedBackup,
    normalize,
)
from dreamdress.backup.models import (
    ARCHIVE_EXTENSION,
    CONFIG_ENTRY,
    HISTORY_ENTRY,
    MEDIA_DIR,
    MEDIA_INDEX_ENTRY,
    METADATA_ENTRY,
    PHOTOS_DIR,
    ArchiveManifest,
    ExportCategory,
    ImportResult,
    MediaIndexEntry,
)
from dreamdress.backup.progress import ProgressCallback, ProgressReporter
from dreamdress.storage.blob_store import BlobStore
from dreamdress.storage.models import MediaKind, VirtualMediaItem
from dreamdress.storage.record_store import RecordStore

logger = logging.getLogger(__name__)

LEGACY_SUMMARY = "Imported configuration data"


def is_archive_name(filename: str) -> bool:
    return filename.lower().endswith(ARCHIVE_EXTENSION)


def photo_key(entry_name: str) -> str:
    """Blob key of a ``photos/`` entry: the path below the folder, minus its extension."""
    relative = entry_name[len(PHOTOS_DIR):]
    name = PurePosixPath(relative)
    if name.suffix:
        return relative[: -len(name.suffix)]
    return relative


class ArchiveReader:
    """
    Imports backup files into the stores.

    Example:
        reader = ArchiveReader(RecordStore(data_dir), BlobStore(data_dir))
        result = reader.import_file(Path("dream-dress-backup-2024-06-01.zip"))
        print(result.summary)
    """

    def __init__(self, records: RecordStore, blobs: BlobStore) -> None:
        self.records = records
        self.blobs = blobs

    def import_file(
        self,
        path: Path,
        progress: ProgressCallback | None = None,
    ) -> ImportResult:
        """Import a backup file from disk."""
        path = Path(path)
        return self.import_bytes(path.name, path.read_bytes(), progress)

    def import_bytes(
        self,
        filename: str,
        content: bytes,
        progress: ProgressCallback | None = None,
    ) -> ImportResult:
        """
        Import a backup given its file name and bytes.

        Raises:
            EmptyArchive: If an archive has none of the known entries.
            InvalidBackupFormat: If a JSON backup fails the shape check.
        """
        reporter = ProgressReporter(progress)
        reporter.start("Reading file...")

        if is_archive_name(filename):
            result = self._import_archive(content, reporter)
        else:
            result = self._import_legacy(content, reporter)

        reporter.finish("Import complete!")
        logger.info(f"Imported {filename}: {result.summary}")
        return result

    # -------------------------------------------------------------------------
    # Archive path
    # -------------------------------------------------------------------------

    def _import_archive(self, content: bytes, reporter: ProgressReporter) -> ImportResult:
        reporter.report(10, "Extracting archive...")

        with zipfile.ZipFile(io.BytesIO(content)) as zf:
            names = set(zf.namelist())
            photo_entries = sorted(
                name for name in names
                if name.startswith(PHOTOS_DIR) and not name.endswith("/")
            )
            has_photos_dir = bool(photo_entries) or PHOTOS_DIR in names

            if not ({CONFIG_ENTRY, HISTORY_ENTRY, MEDIA_INDEX_ENTRY} & names or has_photos_dir):
                raise EmptyArchive("Archive contains no backup data")

            payload = ArchivePayload()
            if CONFIG_ENTRY in names:
                payload.config = _read_json_object(zf, CONFIG_ENTRY)
            if METADATA_ENTRY in names:
                payload.metadata = _read_json_object(zf, METADATA_ENTRY)
            if HISTORY_ENTRY in names:
                payload.history = zf.read(HISTORY_ENTRY).decode("utf-8")

            if MEDIA_INDEX_ENTRY in names:
                reporter.report(30, "Reading virtual camera media...")
                payload.media = self._read_media(zf, names, reporter, payload.skipped)

            if has_photos_dir:
                reporter.report(50, "Reading photos...")
                payload.photos = self._read_photos(zf, photo_entries, reporter, payload.skipped)

        backup = normalize(payload)
        return self._apply(backup, reporter)

    def _read_media(
        self,
        zf: zipfile.ZipFile,
        names: set[str],
        reporter: ProgressReporter,
        skipped: list[str],
    ) -> list[VirtualMediaItem]:
        index = json.loads(zf.read(MEDIA_INDEX_ENTRY).decode("utf-8"))
        if not isinstance(index, list):
            logger.warning(f"{MEDIA_INDEX_ENTRY} is not a list; ignoring media")
            skipped.append(MEDIA_INDEX_ENTRY)
            return []

        stage = reporter.stage(30, 50)
        items: list[VirtualMediaItem] = []
        total = len(index)
        for position, raw in enumerate(index, start=1):
            try:
                entry = MediaIndexEntry.from_dict(raw)
            except (KeyError, TypeError, AttributeError):
                logger.warning(f"Skipping malformed media index entry: {raw!r:.80}")
                skipped.append(f"{MEDIA_INDEX_ENTRY}[{position - 1}]")
                continue

            if entry.entry_name not in names:
                logger.warning(f"Media entry {entry.entry_name} is missing; skipping")
                skipped.append(entry.entry_name)
                continue

            data = _read_entry(zf, entry.entry_name, skipped)
            if data is None:
                continue
            content_type = guess_content_type(entry.filename, data)
            if entry.kind is MediaKind.VIDEO and not content_type.startswith("video/"):
                content_type = "video/mp4"
            items.append(
                VirtualMediaItem(
                    id=entry.id,
                    kind=entry.kind,
                    data_url=encode(data, content_type),
                    duration=entry.duration,
                )
            )
            stage.update(position, total, f"Importing media {position}/{total}...")
        return items

    def _read_photos(
        self,
        zf: zipfile.ZipFile,
        entries: list[str],
        reporter: ProgressReporter,
        skipped: list[str],
    ) -> dict[str, str]:
        stage = reporter.stage(50, 90)
        images: dict[str, str] = {}
        total = len(entries)
        for position, name in enumerate(entries, start=1):
            key = photo_key(name)
            if not key:
                skipped.append(name)
                continue
            data = _read_entry(zf, name, skipped)
            if data is None:
                continue
            images[key] = encode(data, guess_content_type(name, data))
            stage.update(position, total, f"Importing photos {position}/{total}...")
        return images

    # -------------------------------------------------------------------------
    # Legacy path
    # -------------------------------------------------------------------------

    def _import_legacy(self, content: bytes, reporter: ProgressReporter) -> ImportResult:
        reporter.report(10, "Parsing backup file...")
        document = json.loads(content.decode("utf-8"))
        backup = normalize(LegacyPayload(document))
        return self._apply(backup, reporter)

    # -------------------------------------------------------------------------
    # Writing to the stores
    # -------------------------------------------------------------------------

    def _apply(self, backup: NormalizedBackup, reporter: ProgressReporter) -> ImportResult:
        """Write normalized categories to the stores in a fixed order."""
        result = ImportResult(
            category=backup.category,
            summary="",
            source_format=backup.source_format,
            skipped_entries=list(backup.skipped),
        )

        if backup.config is not None:
            reporter.report(90, "Importing configuration...")
            written = self.records.apply_config(backup.config)
            # An archive config manifest counts as imported even with no slots.
            result.imported_config = backup.source_format == ARCHIVE_FORMAT or bool(written)

        if backup.virtual_media:
            reporter.report(92, "Saving virtual camera media...")
            self.blobs.replace_virtual_media(backup.virtual_media)
            result.media_count = len(backup.virtual_media)

        if backup.history is not None:
            reporter.report(94, "Importing history...")
            self.records.write_history(backup.history)
            result.imported_history = True

        if backup.images:
            reporter.report(96, "Saving photos...")
            self.blobs.write_all(backup.images)
            result.photo_count = len(backup.images)

        result.summary = _summary(result)
        return result

    # -------------------------------------------------------------------------
    # Inspection
    # -------------------------------------------------------------------------

    def read_manifest(self, filename: str, content: bytes) -> ArchiveManifest | None:
        """
        Describe a backup without importing it.

        Returns:
            ArchiveManifest, or None if the file carries no manifest.
        """
        if not is_archive_name(filename):
            document = json.loads(content.decode("utf-8"))
            if not isinstance(document, dict):
                return None
            return ArchiveManifest.from_dict(document)

        with zipfile.ZipFile(io.BytesIO(content)) as zf:
            names = set(zf.namelist())
            manifest = None
            for entry in (METADATA_ENTRY, CONFIG_ENTRY):
                if entry in names:
                    manifest = ArchiveManifest.from_dict(_read_json_object(zf, entry))
                    break
            if manifest is None:
                if HISTORY_ENTRY not in names:
                    return None
                manifest = ArchiveManifest(
                    version=None, export_time="", category=ExportCategory.PHOTOS.value
                )
            if MEDIA_INDEX_ENTRY in names:
                index = json.loads(zf.read(MEDIA_INDEX_ENTRY).decode("utf-8"))
                if isinstance(index, list):
                    manifest.media = [
                        MediaIndexEntry.from_dict(raw) for raw in index if isinstance(raw, dict)
                    ]
            if manifest.photo_count is None:
                manifest.photo_count = sum(
                    1 for n in names if n.startswith(PHOTOS_DIR) and not n.endswith("/")
                )
            return manifest

    def verify(self, filename: str, content: bytes) -> tuple[bool, list[str]]:
        """
        Check that archive entries and manifests agree.

        Every media index filename must exist, each media entry must be
        referenced exactly once, and a full backup's photoCount must match
        its photos/ entries.

        Returns:
            Tuple of (is_valid, list_of_errors)
        """
        errors: list[str] = []

        if not is_archive_name(filename):
            try:
                normalize(LegacyPayload(json.loads(content.decode("utf-8"))))
            except (ValueError, UnicodeDecodeError) as e:
                return False, [f"Not a valid JSON backup: {e}"]
            except InvalidBackupFormat as e:
                return False, [str(e)]
            return True, []

        if not zipfile.is_zipfile(io.BytesIO(content)):
            return False, ["Not a valid ZIP archive"]

        with zipfile.ZipFile(io.BytesIO(content)) as zf:
            bad_entry = zf.testzip()
            if bad_entry is not None:
                errors.append(f"Corrupted archive entry: {bad_entry}")

            names = set(zf.namelist())
            media_entries = {
                n for n in names
                if n.startswith(MEDIA_DIR) and n != MEDIA_INDEX_ENTRY and not n.endswith("/")
            }

            if MEDIA_INDEX_ENTRY in names:
                index = json.loads(zf.read(MEDIA_INDEX_ENTRY).decode("utf-8"))
                referenced: dict[str, int] = {}
                for raw in index if isinstance(index, list) else []:
                    filename_ref = raw.get("filename") if isinstance(raw, dict) else None
                    if not filename_ref:
                        errors.append(f"Media index entry without filename: {raw!r:.80}")
                        continue
                    entry_name = MEDIA_DIR + filename_ref
                    referenced[entry_name] = referenced.get(entry_name, 0) + 1
                    if entry_name not in names:
                        errors.append(f"Media entry not found in archive: {entry_name}")

                for entry_name, count in sorted(referenced.items()):
                    if count > 1:
                        errors.append(f"Media entry referenced {count} times: {entry_name}")
                for entry_name in sorted(media_entries - set(referenced)):
                    errors.append(f"Media entry not referenced by index: {entry_name}")
            elif media_entries:
                errors.append(f"{MEDIA_INDEX_ENTRY} missing for {len(media_entries)} media entries")

            if METADATA_ENTRY in names:
                manifest = ArchiveManifest.from_dict(_read_json_object(zf, METADATA_ENTRY))
                photos = sum(
                    1 for n in names if n.startswith(PHOTOS_DIR) and not n.endswith("/")
                )
                if manifest.photo_count is not None and manifest.photo_count != photos:
                    errors.append(
                        f"Photo count mismatch: metadata says {manifest.photo_count}, "
                        f"archive has {photos}"
                    )

        return not errors, errors


def _read_json_object(zf: zipfile.ZipFile, name: str) -> dict[str, Any]:
    data = json.loads(zf.read(name).decode("utf-8"))
    if not isinstance(data, dict):
        raise ValueError(f"{name} must contain a JSON object")
    return data


def _summary(result: ImportResult) -> str:
    if result.source_format != ARCHIVE_FORMAT:
        return LEGACY_SUMMARY

    parts: list[str] = []
    if result.imported_config:
        parts.append("config")
    if result.photo_count > 0:
        parts.append(f"{result.photo_count} photos")
    if result.media_count > 0:
        parts.append(f"{result.media_count} media items")
    if not parts:
        return "Nothing imported"
    return "Imported: " + ", ".join(parts)


def _read_entry(zf: zipfile.ZipFile, name: str, skipped: list[str]) -> bytes | None:
    """Read one payload entry, or None if it is corrupted."""
    try:
        return zf.read(name)
    except (zipfile.BadZipFile, zlib.error) as e:
        logger.warning(f"Skipping unreadable archive entry {name}: {e}")
        skipped.append(name)
        return None
