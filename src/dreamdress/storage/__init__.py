"""
Persistent stores behind the Dream Dress booth.

Two independent backends:
    - RecordStore: small slot -> text records (configuration, history ledger)
    - BlobStore: image blobs and virtual camera media, as encoded text

Usage:
    from dreamdress.storage import BlobStore, RecordStore, RecordSlot

    records = RecordStore(data_dir)
    history = records.read_history()

    blobs = BlobStore(data_dir)
    images = blobs.read_all()
"""

from dreamdress.storage.blob_store import BlobStore
from dreamdress.storage.models import (
    ConfigSnapshot,
    HistoryRecord,
    MediaKind,
    RecordSlot,
    VirtualMediaItem,
    is_original_key,
    original_blob_key,
    parse_history,
    result_blob_key,
)
from dreamdress.storage.record_store import RecordStore, StorageError

__all__ = [
    # Stores
    "RecordStore",
    "BlobStore",
    # Data models
    "RecordSlot",
    "ConfigSnapshot",
    "HistoryRecord",
    "MediaKind",
    "VirtualMediaItem",
    # Blob key convention
    "result_blob_key",
    "original_blob_key",
    "is_original_key",
    "parse_history",
    # Exceptions
    "StorageError",
]
