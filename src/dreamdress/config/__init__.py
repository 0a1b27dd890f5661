"""
Configuration management for Dreamdress.

This module handles loading, validating, and saving configuration settings.
"""

from dreamdress.config.settings import (
    DEFAULT_CONFIG_DIR,
    ConfigurationError,
    ExportConfig,
    Settings,
    load_config,
    save_config,
)

__all__ = [
    "Settings",
    "ExportConfig",
    "load_config",
    "save_config",
    "ConfigurationError",
    "DEFAULT_CONFIG_DIR",
]
