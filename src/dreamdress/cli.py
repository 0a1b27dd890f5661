"""
Command-line interface for Dreamdress.

Provides commands to inspect the local stores, export them by category,
import backups (current archives and legacy JSON files), and verify
archives before importing them.

Uses Python's argparse module (no external CLI libraries).
"""

from __future__ import annotations

import argparse
import json
import logging
import platform
import sys
from pathlib import Path
from typing import Any, NoReturn

from dreamdress import __version__
from dreamdress.config.settings import (
    ConfigurationError,
    Settings,
    get_config_path,
    load_config,
    save_config,
)

# Set up logging
logger = logging.getLogger(__name__)

# Global verbosity settings (set during main() based on args)
_quiet_mode = False
_verbose_level = 0


def set_output_mode(quiet: bool = False, verbose: int = 0) -> None:
    """
    Set the output mode for the CLI.

    Args:
        quiet: If True, suppress non-essential output.
        verbose: Verbosity level (0=normal, 1+=verbose).
    """
    global _quiet_mode, _verbose_level
    _quiet_mode = quiet
    _verbose_level = verbose


def output(message: str = "", force: bool = False) -> None:
    """
    Print a message to stdout, respecting quiet mode.

    Args:
        message: The message to print.
        force: If True, print even in quiet mode (for essential output like JSON).
    """
    if force or not _quiet_mode:
        print(message)


def output_error(message: str) -> None:
    """Print an error message (always shown, even in quiet mode)."""
    print(message, file=sys.stderr)


def console_progress(percent: int, total: int, message: str) -> None:
    """Progress sink printing one line per update."""
    output(f"  [{percent:3d}/{total}] {message}")


def create_parser() -> argparse.ArgumentParser:
    """Create and configure the argument parser for the Dreamdress CLI."""
    parser = argparse.ArgumentParser(
        prog="dreamdress",
        description="Back up and restore Dream Dress photo booth data",
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"dreamdress {__version__}",
    )

    parser.add_argument(
        "--config",
        metavar="PATH",
        help="Override config file location (default: ~/.dreamdress/config.yaml)",
    )

    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Increase output verbosity (can be repeated)",
    )

    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress non-essential output",
    )

    subparsers = parser.add_subparsers(
        title="commands",
        dest="command",
        metavar="<command>",
    )

    # info command
    info_parser = subparsers.add_parser(
        "info",
        help="Show configuration paths and store statistics",
        description="Display version, configuration paths, and what the stores hold.",
    )
    info_parser.add_argument(
        "--json",
        action="store_true",
        help="Output as JSON",
    )
    info_parser.set_defaults(func=cmd_info)

    # init command
    init_parser = subparsers.add_parser(
        "init",
        help="Write a default configuration file",
        description="Create the config directory and a default config.yaml.",
    )
    init_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing config file",
    )
    init_parser.set_defaults(func=cmd_init)

    # export command
    export_parser = subparsers.add_parser(
        "export",
        help="Export photos, configuration, or everything",
        description=(
            "Export one category. A single photo or a config without media is "
            "written as a plain file; everything else becomes a ZIP archive."
        ),
    )
    export_parser.add_argument(
        "--type",
        choices=["photos", "config", "all"],
        default="all",
        dest="category",
        help="What to export (default: all)",
    )
    export_parser.add_argument(
        "--output",
        "-o",
        metavar="PATH",
        help="Output directory (default: export.output_dir from config)",
    )
    export_parser.set_defaults(func=cmd_export)

    # import command
    import_parser = subparsers.add_parser(
        "import",
        help="Import a backup file",
        description="Import a .zip archive or a legacy JSON backup.",
    )
    import_parser.add_argument(
        "backup_file",
        metavar="FILE",
        help="Path to backup file (.zip or .json)",
    )
    import_parser.add_argument(
        "--force",
        action="store_true",
        help="Skip confirmation prompt",
    )
    import_parser.set_defaults(func=cmd_import)

    # verify command
    verify_parser = subparsers.add_parser(
        "verify",
        help="Check a backup file without importing it",
        description="Check that an archive's manifests and entries agree.",
    )
    verify_parser.add_argument(
        "backup_file",
        metavar="FILE",
        help="Path to backup file (.zip or .json)",
    )
    verify_parser.set_defaults(func=cmd_verify)

    return parser


def setup_logging(verbose: int, quiet: bool) -> None:
    """Configure logging based on verbosity level."""
    if quiet:
        level = logging.WARNING
    elif verbose == 0:
        level = logging.INFO
    else:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def _load_settings(args: argparse.Namespace) -> Settings:
    config_path = Path(args.config) if args.config else None
    return load_config(config_path)


def cmd_info(args: argparse.Namespace) -> int:
    """Show configuration paths and store statistics."""
    from dreamdress.backup import BackupManager

    settings = _load_settings(args)
    manager = BackupManager.from_settings(settings)

    info: dict[str, Any] = {
        "version": __version__,
        "python": platform.python_version(),
        "config_file": str(Path(args.config) if args.config else get_config_path()),
        "data_dir": settings.data_dir,
        "export_dir": settings.export.output_dir,
        "records": manager.records.get_statistics(),
        "blobs": manager.blobs.get_statistics(),
    }

    if args.json:
        output(json.dumps(info, indent=2), force=True)
        return 0

    output("Dreamdress Info")
    output("=" * 50)
    output()
    output(f"  Version: {info['version']} (Python {info['python']})")
    output(f"  Config file: {info['config_file']}")
    output(f"  Data directory: {info['data_dir']}")
    output(f"  Export directory: {info['export_dir']}")
    output()
    output(f"  Records: {info['records']['slot_count']}")
    for slot, details in info["records"]["slots"].items():
        output(f"    - {slot}: {details['size']:,} chars")
    output(f"  Images: {info['blobs']['image_count']}")
    media = info["blobs"]["virtual_media"]
    output(f"  Virtual media: {sum(media.values())}")
    for kind, count in sorted(media.items()):
        output(f"    - {kind}: {count}")
    return 0


def cmd_init(args: argparse.Namespace) -> int:
    """Write a default configuration file."""
    config_path = Path(args.config) if args.config else get_config_path()

    if config_path.exists() and not args.force:
        output_error(f"Config file already exists: {config_path} (use --force to overwrite)")
        return 1

    settings = Settings()
    if args.config:
        # A relocated config keeps its data beside it.
        settings.data_dir = str(config_path.parent / "data")
    save_config(settings, config_path)
    Path(settings.data_dir).expanduser().mkdir(parents=True, exist_ok=True)

    output(f"Wrote {config_path}")
    output(f"Data directory: {settings.data_dir}")
    return 0


def cmd_export(args: argparse.Namespace) -> int:
    """Export a category to a file."""
    from dreamdress.backup import BackupManager

    settings = _load_settings(args)
    output_path = Path(args.output) if args.output else Path(settings.export.output_dir)

    output("Dreamdress Export")
    output("=" * 50)
    output()
    output(f"Data directory: {settings.data_dir}")
    output(f"Output directory: {output_path}")
    output(f"Category: {args.category}")
    output()

    manager = BackupManager.from_settings(settings)
    result = manager.create_backup(
        category=args.category,
        output_path=output_path.expanduser(),
        progress=console_progress,
    )

    if result.success:
        output()
        output("Export created successfully!")
        output()
        output(f"  File: {result.path}")
        output(f"  Size: {result.size_bytes:,} bytes ({result.size_bytes / 1024 / 1024:.2f} MB)")
        output()
        output("To restore from this file, run:")
        output(f"  dreamdress import {result.path}")
        return 0
    else:
        output()
        output_error(f"Export failed: {result.error}")
        return 1


def cmd_import(args: argparse.Namespace) -> int:
    """Import a backup file."""
    from dreamdress.backup import BackupManager

    backup_path = Path(args.backup_file)

    if not backup_path.exists():
        output_error(f"Error: Backup file not found: {backup_path}")
        return 1

    settings = _load_settings(args)
    manager = BackupManager.from_settings(settings)

    output("Dreamdress Import")
    output("=" * 50)
    output()
    output(f"Backup file: {backup_path}")
    output()

    manifest = manager.get_backup_info(backup_path)
    if manifest:
        output("Backup information:")
        output(f"  Format: {'legacy' if manifest.is_legacy else f'version {manifest.version}'}")
        if manifest.export_time:
            output(f"  Exported: {manifest.export_time}")
        if manifest.category:
            output(f"  Category: {manifest.category}")
        if manifest.photo_count is not None:
            output(f"  Photos: {manifest.photo_count}")
        if manifest.media:
            output(f"  Virtual media: {len(manifest.media)}")
        output()

    if not args.force:
        output("WARNING: Imported categories replace the existing data.")
        output()
        response = input("Proceed with import? [y/N]: ").strip().lower()
        if response not in ("y", "yes"):
            output("Import cancelled.")
            return 0

    output()
    output("Importing...")
    result = manager.restore_backup(backup_path, progress=console_progress)

    if result.success and result.result is not None:
        output()
        output(result.result.summary)
        if result.result.imported_history:
            output("  History ledger replaced")
        if result.result.skipped_entries:
            output(f"  Skipped entries: {len(result.result.skipped_entries)}")
            for name in result.result.skipped_entries:
                output(f"    - {name}")
        return 0
    else:
        output()
        output_error(f"Import failed: {result.error}")
        return 1


def cmd_verify(args: argparse.Namespace) -> int:
    """Check a backup file without importing it."""
    from dreamdress.backup import BackupManager

    backup_path = Path(args.backup_file)
    settings = _load_settings(args)
    manager = BackupManager.from_settings(settings)

    output(f"Verifying {backup_path}...")
    valid, errors = manager.verify_backup(backup_path)

    if not valid:
        output()
        output_error("Backup verification failed:")
        for error in errors:
            output(f"  - {error}")
        return 1

    output("Backup verified successfully.")
    return 0


def main() -> NoReturn:
    """Main entry point for the Dreamdress CLI."""
    parser = create_parser()
    args = parser.parse_args()

    setup_logging(args.verbose, args.quiet)
    set_output_mode(args.quiet, args.verbose)

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    try:
        exit_code = args.func(args)
        sys.exit(exit_code)
    except KeyboardInterrupt:
        output("\nOperation cancelled.")
        sys.exit(130)
    except ConfigurationError as e:
        output_error(f"Configuration error: {e}")
        sys.exit(2)
    except Exception as e:
        if args.verbose > 0:
            raise
        output_error(f"Error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
