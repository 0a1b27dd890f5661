"""
Dreamdress - backup and restore engine for the Dream Dress photo booth.

Serializes the booth's persisted state (configuration records, the
generation history ledger and the image blobs behind it) into a single
portable archive, and rebuilds that state from such an archive, including
the older single-file JSON backups.

Key Features:
    - Category exports: photos only, configuration only, or everything
    - ZIP archives with JSON manifests, or a single file when one item suffices
    - Imports of both the current archive layout and legacy JSON backups
    - Monotonic multi-stage progress reporting for long-running I/O
"""

__version__ = "0.1.0"
__author__ = ""
__email__ = ""

from dreamdress.config.settings import Settings, load_config

__all__ = [
    "__version__",
    "Settings",
    "load_config",
]
