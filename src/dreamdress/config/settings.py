"""
Configuration settings management for Dreamdress.

This module handles loading, validating, and saving configuration settings
from YAML files with support for environment variable overrides.

Configuration is loaded from ~/.dreamdress/config.yaml by default, with the
path overridable via the DREAMDRESS_CONFIG environment variable.
"""

import os
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

# Default configuration directory
DEFAULT_CONFIG_DIR = Path.home() / ".dreamdress"
DEFAULT_CONFIG_FILE = DEFAULT_CONFIG_DIR / "config.yaml"

# Characters that may not appear in generated download filenames
ILLEGAL_FILENAME_CHARS = '/\\?%*:|"<>'


@dataclass
class ExportConfig:
    """Export settings."""

    output_dir: str = str(DEFAULT_CONFIG_DIR / "exports")
    file_prefix: str = "dream-dress"
    compress_level: int = 6


@dataclass
class Settings:
    """
    Complete Dreamdress configuration settings.

    Settings are loaded from a YAML configuration file and can be overridden
    by environment variables prefixed with DREAMDRESS_.

    Attributes:
        data_dir: Directory holding the record and blob databases.
        log_level: Logging verbosity (DEBUG, INFO, WARNING, ERROR).
        export: Export naming and compression settings.
    """

    data_dir: str = str(DEFAULT_CONFIG_DIR / "data")
    log_level: str = "INFO"

    export: ExportConfig = field(default_factory=ExportConfig)


class ConfigurationError(Exception):
    """Raised when configuration is invalid or cannot be loaded."""

    pass


def get_config_path() -> Path:
    """
    Get the configuration file path.

    Returns the path from DREAMDRESS_CONFIG environment variable if set,
    otherwise returns the default path (~/.dreamdress/config.yaml).
    """
    env_path = os.environ.get("DREAMDRESS_CONFIG")
    if env_path:
        return Path(env_path)
    return DEFAULT_CONFIG_FILE


def load_config(config_path: Path | None = None) -> Settings:
    """
    Load configuration from YAML file.

    Reads configuration from the specified path (or default if not provided),
    applies environment variable overrides, and validates the configuration.

    Args:
        config_path: Optional path to configuration file. If not provided,
                    uses DREAMDRESS_CONFIG environment variable or default path.

    Returns:
        Validated Settings instance.

    Raises:
        ConfigurationError: If the configuration file cannot be read or
                          contains invalid settings.
    """
    if config_path is None:
        config_path = get_config_path()

    settings = Settings()

    if config_path.exists():
        try:
            with open(config_path) as f:
                config_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in config file: {e}") from e
        except OSError as e:
            raise ConfigurationError(f"Cannot read config file: {e}") from e

        if not isinstance(config_data, dict):
            raise ConfigurationError("Config file must contain a mapping")

        settings = _apply_config_data(settings, config_data)

    settings = _apply_environment_overrides(settings)

    _validate_config(settings)

    return settings


def save_config(settings: Settings, config_path: Path | None = None) -> None:
    """
    Save configuration to YAML file.

    Raises:
        ConfigurationError: If the configuration cannot be written.
    """
    if config_path is None:
        config_path = get_config_path()

    config_path.parent.mkdir(parents=True, exist_ok=True)

    config_data = _settings_to_dict(settings)

    try:
        with open(config_path, "w") as f:
            yaml.safe_dump(config_data, f, default_flow_style=False, sort_keys=False)
    except OSError as e:
        raise ConfigurationError(f"Cannot write config file: {e}") from e


def _apply_config_data(settings: Settings, data: dict[str, Any]) -> Settings:
    """Apply configuration data from parsed YAML to settings."""
    core = data.get("dreamdress", {}) or {}

    if "data_dir" in core:
        settings.data_dir = str(core["data_dir"])
    if "log_level" in core:
        settings.log_level = str(core["log_level"]).upper()

    export = data.get("export", {}) or {}
    if "output_dir" in export:
        settings.export.output_dir = str(export["output_dir"])
    if "file_prefix" in export:
        settings.export.file_prefix = str(export["file_prefix"])
    if "compress_level" in export:
        try:
            settings.export.compress_level = int(export["compress_level"])
        except (TypeError, ValueError) as e:
            raise ConfigurationError(
                f"compress_level must be an integer, got {export['compress_level']!r}"
            ) from e

    return settings


def _apply_environment_overrides(settings: Settings) -> Settings:
    """Apply environment variable overrides to settings."""
    env_map: dict[str, tuple[str, Callable[[str], Any]]] = {
        "DREAMDRESS_DATA_DIR": ("data_dir", str),
        "DREAMDRESS_LOG_LEVEL": ("log_level", lambda x: x.upper()),
        "DREAMDRESS_EXPORT_DIR": ("export.output_dir", str),
        "DREAMDRESS_FILE_PREFIX": ("export.file_prefix", str),
        "DREAMDRESS_COMPRESS_LEVEL": ("export.compress_level", int),
    }

    for env_var, (attr_path, converter) in env_map.items():
        value = os.environ.get(env_var)
        if value is not None:
            try:
                converted = converter(value)
            except ValueError as e:
                raise ConfigurationError(f"Invalid value for {env_var}: {value!r}") from e
            _set_nested_attr(settings, attr_path, converted)

    return settings


def _set_nested_attr(obj: Any, path: str, value: Any) -> None:
    """Set a nested attribute on an object using dot notation."""
    parts = path.split(".")
    for part in parts[:-1]:
        obj = getattr(obj, part)
    setattr(obj, parts[-1], value)


def _validate_config(settings: Settings) -> None:
    """
    Validate configuration settings.

    Raises:
        ConfigurationError: If configuration is invalid.
    """
    valid_log_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
    if settings.log_level not in valid_log_levels:
        raise ConfigurationError(
            f"Invalid log_level: {settings.log_level}. "
            f"Must be one of: {', '.join(sorted(valid_log_levels))}"
        )

    if not 0 <= settings.export.compress_level <= 9:
        raise ConfigurationError("compress_level must be between 0 and 9")

    prefix = settings.export.file_prefix
    if not prefix:
        raise ConfigurationError("file_prefix must not be empty")
    if any(ch in ILLEGAL_FILENAME_CHARS for ch in prefix):
        raise ConfigurationError(
            f"file_prefix contains illegal filename characters: {prefix!r}"
        )


def _settings_to_dict(settings: Settings) -> dict[str, Any]:
    """Convert Settings instance to dictionary for YAML serialization."""
    return {
        "dreamdress": {
            "data_dir": settings.data_dir,
            "log_level": settings.log_level,
        },
        "export": {
            "output_dir": settings.export.output_dir,
            "file_prefix": settings.export.file_prefix,
            "compress_level": settings.export.compress_level,
        },
    }
