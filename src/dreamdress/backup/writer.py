"""
Archive writer for Dreamdress exports.

Builds one downloadable unit per export:
    - photos: a single PNG for a one-photo ledger, otherwise a ZIP with a
      ``photos/`` directory and a payload-free ``history.json``
    - config: the config manifest as JSON, or a ZIP when virtual camera
      media has to travel with it
    - all: always a ZIP with config, media, ledger, every blob and a
      ``metadata.json`` summary

Nothing is written to the stores. Failures propagate and no unit is
produced.
"""

from __future__ import annotations

import io
import json
import logging
import zipfile
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from dreamdress.backup.codec import DownloadUnit, decode, sanitize_filename
from dreamdress.backup.errors import EmptyExport
from dreamdress.backup.models import (
    CONFIG_ENTRY,
    HISTORY_ENTRY,
    MANIFEST_VERSION,
    MEDIA_DIR,
    MEDIA_INDEX_ENTRY,
    METADATA_ENTRY,
    PHOTOS_DIR,
    ArchiveManifest,
    ExportCategory,
    MediaIndexEntry,
)
from dreamdress.backup.progress import ProgressCallback, ProgressReporter
from dreamdress.config.settings import ExportConfig
from dreamdress.storage.blob_store import BlobStore
from dreamdress.storage.models import (
    ConfigSnapshot,
    HistoryRecord,
    MediaKind,
    VirtualMediaItem,
    parse_history,
)
from dreamdress.storage.record_store import RecordStore

logger = logging.getLogger(__name__)

ZIP_CONTENT_TYPE = "application/zip"
JSON_CONTENT_TYPE = "application/json"

# Longest dream text, in UTF-8 bytes, used in a generated file name
MAX_NAME_PART_BYTES = 100


class ArchiveWriter:
    """
    Exports store contents by category.

    Example:
        writer = ArchiveWriter(RecordStore(data_dir), BlobStore(data_dir))
        unit = writer.export(ExportCategory.ALL, progress=print)
        unit.write_to(Path("~/Downloads").expanduser())
    """

    def __init__(
        self,
        records: RecordStore,
        blobs: BlobStore,
        export_config: ExportConfig | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        """
        Args:
            records: Small-record store to read configuration and history from.
            blobs: Blob store to read images and virtual media from.
            export_config: File naming and compression settings.
            clock: Returns the current time; defaults to UTC now.
        """
        self.records = records
        self.blobs = blobs
        self.export_config = export_config or ExportConfig()
        self._clock = clock or (lambda: datetime.now(UTC))

    def export(
        self,
        category: ExportCategory | str,
        progress: ProgressCallback | None = None,
    ) -> DownloadUnit:
        """
        Export one category.

        Args:
            category: photos, config or all.
            progress: Sink called as (percent, 100, message).

        Returns:
            The downloadable unit.

        Raises:
            EmptyExport: If the category has no data.
        """
        category = ExportCategory(category)
        reporter = ProgressReporter(progress)
        now = self._clock()

        logger.info(f"Starting {category.value} export")
        if category is ExportCategory.PHOTOS:
            unit = self._export_photos(reporter, now)
        elif category is ExportCategory.CONFIG:
            unit = self._export_config(reporter, now)
        else:
            unit = self._export_all(reporter, now)

        reporter.finish("Export complete!")
        logger.info(f"Exported {category.value} as {unit.filename} ({unit.size_bytes:,} bytes)")
        return unit

    # -------------------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------------------

    def _export_photos(self, reporter: ProgressReporter, now: datetime) -> DownloadUnit:
        reporter.start("Preparing photo export...")

        records = parse_history(self.records.read_history())
        if not records:
            raise EmptyExport("No photos to export")

        reporter.report(10, "Reading images...")
        images = self.blobs.read_all(reporter.stage(10, 80))

        if len(records) == 1:
            reporter.report(90, "Preparing image download...")
            record = records[0]
            payload = images.get(record.result_key) or record.result_photo
            if not payload:
                raise EmptyExport(f"No image stored for history entry {record.id}")
            millis = int(now.timestamp() * 1000)
            filename = self._filename(f"{_name_part(record.dream)}-{millis}.png")
            return DownloadUnit.from_encoded(payload, filename)

        reporter.report(85, "Packing photos...")
        buffer = io.BytesIO()
        with self._open_zip(buffer) as zf:
            for position, record in enumerate(records, start=1):
                self._pack_history_photos(zf, position, record, images)

            history_meta = [record.metadata() for record in records]
            zf.writestr(HISTORY_ENTRY, _to_json(history_meta))

        reporter.report(95, "Compressing archive...")
        return DownloadUnit(
            filename=self._filename(f"photos-{now.strftime('%Y-%m-%d')}.zip"),
            content=buffer.getvalue(),
            content_type=ZIP_CONTENT_TYPE,
        )

    def _export_config(self, reporter: ProgressReporter, now: datetime) -> DownloadUnit:
        reporter.start("Preparing config export...")

        manifest = self._config_manifest(self.records.read_config(), now)
        media = self.blobs.list_virtual_media()
        date = now.strftime("%Y-%m-%d")

        if not media:
            reporter.report(50, "Writing config file...")
            return DownloadUnit(
                filename=self._filename(f"config-{date}.json"),
                content=_to_json(manifest).encode("utf-8"),
                content_type=JSON_CONTENT_TYPE,
            )

        reporter.report(30, "Packing config and media...")
        buffer = io.BytesIO()
        with self._open_zip(buffer) as zf:
            zf.writestr(CONFIG_ENTRY, _to_json(manifest))
            self._pack_virtual_media(zf, media, reporter.stage(30, 90))

        reporter.report(95, "Compressing archive...")
        return DownloadUnit(
            filename=self._filename(f"config-{date}.zip"),
            content=buffer.getvalue(),
            content_type=ZIP_CONTENT_TYPE,
        )

    def _export_all(self, reporter: ProgressReporter, now: datetime) -> DownloadUnit:
        reporter.start("Preparing full export...")

        buffer = io.BytesIO()
        with self._open_zip(buffer) as zf:
            reporter.report(5, "Reading configuration...")
            manifest = self._config_manifest(self.records.read_config(), now)
            zf.writestr(CONFIG_ENTRY, _to_json(manifest))

            media = self.blobs.list_virtual_media()
            if media:
                reporter.report(10, "Packing virtual camera media...")
                self._pack_virtual_media(zf, media, reporter.stage(10, 20))

            reporter.report(20, "Reading history...")
            history = self.records.read_history()
            if history:
                zf.writestr(HISTORY_ENTRY, history)

            reporter.report(25, "Reading images...")
            images = self.blobs.read_all(reporter.stage(25, 85))

            packing = reporter.stage(85, 95)
            total = len(images)
            for index, (key, payload) in enumerate(images.items(), start=1):
                zf.writestr(f"{PHOTOS_DIR}{key}.png", decode(payload).data)
                packing.update(index, total, f"Packing photos {index}/{total}...")

            metadata = ArchiveManifest(
                version=MANIFEST_VERSION,
                export_time=now.isoformat(),
                category=ExportCategory.ALL.value,
                photo_count=total,
                virtual_media_count=len(media),
            )
            zf.writestr(METADATA_ENTRY, _to_json(metadata.to_dict()))

        reporter.report(95, "Compressing archive...")
        return DownloadUnit(
            filename=self._filename(f"backup-{now.strftime('%Y-%m-%d')}.zip"),
            content=buffer.getvalue(),
            content_type=ZIP_CONTENT_TYPE,
        )

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _pack_history_photos(
        self,
        zf: zipfile.ZipFile,
        position: int,
        record: HistoryRecord,
        images: dict[str, str],
    ) -> None:
        """Write the result and, if any, the original image of one record."""
        stem = sanitize_filename(f"{position}-{_name_part(record.dream)}")

        result = images.get(record.result_key) or record.result_photo
        if result:
            zf.writestr(f"{PHOTOS_DIR}{stem}.png", decode(result).data)
        else:
            logger.warning(f"History entry {record.id} has no result image; skipping")

        original = images.get(record.original_key) or record.original_photo
        if original:
            zf.writestr(f"{PHOTOS_DIR}{stem}-original.png", decode(original).data)

    def _pack_virtual_media(
        self,
        zf: zipfile.ZipFile,
        media: list[VirtualMediaItem],
        stage: Callable[[int, int, str], None],
    ) -> None:
        """Write every media item plus the index that names them."""
        index: list[dict[str, Any]] = []
        total = len(media)
        for position, item in enumerate(media, start=1):
            kind = MediaKind(item.kind)
            entry = MediaIndexEntry(
                id=item.id,
                kind=kind,
                filename=sanitize_filename(f"{position}-{item.id}.{kind.extension}"),
                duration=item.duration,
            )
            zf.writestr(entry.entry_name, decode(item.data_url).data)
            index.append(entry.to_dict())
            stage(position, total, f"Packing media {position}/{total}...")

        zf.writestr(MEDIA_INDEX_ENTRY, _to_json(index))
        logger.debug(f"Packed {total} virtual media items under {MEDIA_DIR}")

    def _config_manifest(self, snapshot: ConfigSnapshot, now: datetime) -> dict[str, Any]:
        return {
            "version": MANIFEST_VERSION,
            "exportTime": now.isoformat(),
            "type": ExportCategory.CONFIG.value,
            "data": snapshot.to_dict(),
        }

    def _open_zip(self, buffer: io.BytesIO) -> zipfile.ZipFile:
        level = self.export_config.compress_level
        if level == 0:
            return zipfile.ZipFile(buffer, "w", compression=zipfile.ZIP_STORED)
        return zipfile.ZipFile(
            buffer, "w", compression=zipfile.ZIP_DEFLATED, compresslevel=level
        )

    def _filename(self, suffix: str) -> str:
        return sanitize_filename(f"{self.export_config.file_prefix}-{suffix}")


def _to_json(data: Any) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False)


def _name_part(dream: str | None) -> str:
    """Dream text shortened for use in a file name."""
    if not dream:
        return "photo"
    encoded = dream.encode("utf-8")
    if len(encoded) <= MAX_NAME_PART_BYTES:
        return dream
    return encoded[:MAX_NAME_PART_BYTES].decode("utf-8", errors="ignore")
