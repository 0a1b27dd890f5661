"""
Data models for the record and blob stores.

This module defines the fixed record slots, the configuration snapshot read
from those slots, the history ledger entries and the virtual camera media
items, together with the blob key convention that ties history entries to
their image blobs.

Schema Design Decisions:
    - Record slot values are opaque serialized text; the stores never parse them
    - History entries are parsed leniently; unknown fields are preserved
    - Blob keys are derived from history identifiers in one place only
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

logger = logging.getLogger(__name__)

ORIGINAL_SUFFIX = "-original"


class RecordSlot(str, Enum):
    """Fixed slot names in the small-record store."""

    HISTORY = "dream-dress-history"
    CAMERA_POSITION = "dream-dress-camera-position"
    TEMPLATES = "dream-dress-custom-templates"
    AUTO_TEMPLATES = "dream-dress-auto-templates"
    SOUND_SETTINGS = "dream-dress-sound-settings"
    SETTINGS = "dream-dress-settings"
    VIRTUAL_CAMERA = "dream-dress-virtual-camera-enabled"


class MediaKind(str, Enum):
    """Kind of virtual camera media."""

    IMAGE = "image"
    VIDEO = "video"

    @property
    def extension(self) -> str:
        return "mp4" if self is MediaKind.VIDEO else "png"


def result_blob_key(record_id: str) -> str:
    """Blob key of the generated result image for a history entry."""
    return record_id


def original_blob_key(record_id: str) -> str:
    """Blob key of the original capture for a history entry."""
    if record_id.endswith(ORIGINAL_SUFFIX):
        # The result key of this record doubles as the original key of another.
        logger.warning(
            f"History id {record_id!r} ends with {ORIGINAL_SUFFIX!r}; "
            "its blob key may collide with another entry's original"
        )
    return record_id + ORIGINAL_SUFFIX


def is_original_key(key: str) -> bool:
    """Check whether a blob key names an original capture."""
    return key.endswith(ORIGINAL_SUFFIX)


def present(value: Any) -> bool:
    """
    Check whether a field carries data.

    Absent, null and empty values are never written to a store, so an import
    leaves slots that the source does not carry untouched.
    """
    if value is None:
        return False
    if isinstance(value, (str, dict, list)) and len(value) == 0:
        return False
    return True


def as_slot_text(value: Any) -> str:
    """Serialize a slot value to text, keeping strings verbatim."""
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)


# (attribute name, wire name, record slot) for every configuration slot
CONFIG_FIELDS: tuple[tuple[str, str, RecordSlot], ...] = (
    ("camera_position", "cameraPosition", RecordSlot.CAMERA_POSITION),
    ("templates", "templates", RecordSlot.TEMPLATES),
    ("auto_templates", "autoTemplates", RecordSlot.AUTO_TEMPLATES),
    ("sound_settings", "soundSettings", RecordSlot.SOUND_SETTINGS),
    ("settings", "settings", RecordSlot.SETTINGS),
    ("virtual_camera_enabled", "virtualCameraEnabled", RecordSlot.VIRTUAL_CAMERA),
)


@dataclass
class ConfigSnapshot:
    """
    Values of the configuration slots at one point in time.

    Every attribute is optional; None means the slot is absent and must not
    overwrite an existing value when the snapshot is applied.
    """

    camera_position: str | None = None
    templates: str | None = None
    auto_templates: str | None = None
    sound_settings: str | None = None
    settings: str | None = None
    virtual_camera_enabled: str | None = None

    def to_dict(self) -> dict[str, str | None]:
        """Convert to the wire representation (camelCase keys, nulls kept)."""
        return {wire: getattr(self, attr) for attr, wire, _ in CONFIG_FIELDS}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ConfigSnapshot:
        """Create from a wire mapping, keeping only present values."""
        values: dict[str, str] = {}
        for attr, wire, _ in CONFIG_FIELDS:
            value = data.get(wire)
            if present(value):
                values[attr] = as_slot_text(value)
        return cls(**values)

    def present_slots(self) -> dict[RecordSlot, str]:
        """Map each present slot to its value."""
        slots: dict[RecordSlot, str] = {}
        for attr, _, slot in CONFIG_FIELDS:
            value = getattr(self, attr)
            if present(value):
                slots[slot] = value
        return slots

    def is_empty(self) -> bool:
        return not self.present_slots()


@dataclass
class HistoryRecord:
    """
    One completed generation from the history ledger.

    Attributes:
        id: Unique identifier, also the result blob key.
        name: Display name of the person photographed.
        dream: Dream/prompt text the image was generated from.
        timestamp: Creation time in epoch milliseconds.
        result_photo: Inline result payload (older ledgers only).
        original_photo: Inline original payload (older ledgers only).
        position: Canvas position, if the photo was placed.
        is_on_canvas: Whether the photo is currently on the canvas.
        extra: Any other ledger fields, preserved as-is.
    """

    id: str
    name: str | None = None
    dream: str | None = None
    timestamp: int | float | None = None
    result_photo: str | None = None
    original_photo: str | None = None
    position: dict[str, Any] | None = None
    is_on_canvas: bool | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    _KNOWN = (
        "id", "name", "dream", "timestamp", "resultPhoto",
        "originalPhoto", "position", "isOnCanvas",
    )

    @property
    def result_key(self) -> str:
        return result_blob_key(self.id)

    @property
    def original_key(self) -> str:
        return original_blob_key(self.id)

    def metadata(self) -> dict[str, Any]:
        """Ledger fields without any image payload."""
        meta = {
            "id": self.id,
            "name": self.name,
            "dream": self.dream,
            "timestamp": self.timestamp,
            "position": self.position,
            "isOnCanvas": self.is_on_canvas,
        }
        return {k: v for k, v in meta.items() if v is not None}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> HistoryRecord:
        """Create from a ledger entry."""
        return cls(
            id=str(data["id"]),
            name=data.get("name"),
            dream=data.get("dream"),
            timestamp=data.get("timestamp"),
            result_photo=data.get("resultPhoto") or None,
            original_photo=data.get("originalPhoto") or None,
            position=data.get("position"),
            is_on_canvas=data.get("isOnCanvas"),
            extra={k: v for k, v in data.items() if k not in cls._KNOWN},
        )


def parse_history(text: str | None) -> list[HistoryRecord]:
    """
    Parse the serialized history ledger.

    Entries without an id cannot be paired with blobs and are skipped.

    Raises:
        ValueError: If the ledger is not a JSON list.
    """
    if not text:
        return []
    items = json.loads(text)
    if not isinstance(items, list):
        raise ValueError("History ledger must be a JSON list")

    records = []
    for item in items:
        if not isinstance(item, dict) or item.get("id") is None:
            logger.warning(f"Skipping malformed history entry: {item!r:.80}")
            continue
        records.append(HistoryRecord.from_dict(item))
    return records


@dataclass
class VirtualMediaItem:
    """
    One virtual camera media item.

    Attributes:
        id: Unique identifier.
        kind: Still image or short video clip.
        data_url: Payload in portable text encoding.
        duration: Playback duration in seconds (videos only).
    """

    id: str
    kind: MediaKind
    data_url: str
    duration: float | None = None
