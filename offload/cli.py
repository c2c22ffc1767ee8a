"""CLI with subcommands: import, scan, formats."""
from __future__ import annotations

import argparse
import logging
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from rich.logging import RichHandler

from .core.config import DestinationType, ImportJobConfig
from .core.errors import ConfigurationError, NotRunningError, OffloadError
from .core.events import EventType
from .logging.rich_logger import QuietProgressReporter, RichProgressReporter


def create_parser() -> argparse.ArgumentParser:
    """Create the main argument parser with subcommands."""
    parser = argparse.ArgumentParser(
        prog="offload",
        description="Import media from cards and folders into local and backup libraries.",
    )

    # Global options
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose output",
    )
    parser.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Suppress non-essential output",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # ============ IMPORT command ============
    import_parser = subparsers.add_parser(
        "import",
        help="Copy media files from a source directory into destinations",
    )
    import_parser.add_argument(
        "source",
        type=Path,
        nargs="?",
        help="Source directory (e.g. a mounted camera card)",
    )
    import_parser.add_argument(
        "-d", "--destination",
        type=Path,
        default=None,
        help="Local destination directory",
    )
    import_parser.add_argument(
        "-b", "--backup",
        type=Path,
        default=None,
        help="Optional backup destination directory",
    )
    import_parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="JSON job configuration; command-line paths override it",
    )
    _add_scan_options(import_parser)
    import_parser.add_argument(
        "--organize",
        choices=["none", "date", "custom"],
        default="none",
        help="Subfolder organization (default: none)",
    )
    import_parser.add_argument(
        "--date-format",
        default="YYYY/MM/DD",
        help="Date folder format, see 'offload formats' (default: YYYY/MM/DD)",
    )
    import_parser.add_argument(
        "--folder-name",
        default="",
        help="Folder name for --organize custom (default: 'Imported Files')",
    )
    import_parser.add_argument(
        "--keep-duplicates",
        action="store_true",
        help="Copy same-sized files under a new name instead of skipping them",
    )

    # ============ SCAN command ============
    scan_parser = subparsers.add_parser(
        "scan",
        help="Show what an import of a source directory would pick up",
    )
    scan_parser.add_argument(
        "source",
        type=Path,
        help="Source directory",
    )
    _add_scan_options(scan_parser)

    # ============ FORMATS command ============
    subparsers.add_parser(
        "formats",
        help="List date folder formats rendered for today",
    )

    return parser


def _add_scan_options(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--no-subdirs",
        action="store_true",
        help="Do not descend into subdirectories",
    )
    parser.add_argument(
        "--ext",
        nargs="+",
        default=None,
        metavar="EXT",
        help="Only these extensions (default: all supported media)",
    )


def configure_logging(verbose: bool = False) -> None:
    """Route stdlib logging through Rich."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=verbose, show_path=verbose)],
        force=True,
    )


def build_job_config(args: argparse.Namespace) -> ImportJobConfig:
    """Merge --config with command-line options into a job configuration."""
    data: dict[str, Any] = {}
    if args.config is not None:
        data = ImportJobConfig.from_file(args.config).model_dump(by_alias=True)

    if args.source is not None:
        data["sourcePath"] = args.source
    if "sourcePath" not in data:
        raise ConfigurationError("A source directory is required")

    destinations = [
        d for d in data.get("destinations", [])
        if not (args.destination and d["type"] == DestinationType.LOCAL)
        and not (args.backup and d["type"] == DestinationType.BACKUP)
    ]
    if args.destination is not None:
        destinations.append({"type": "local", "path": args.destination})
    if args.backup is not None:
        destinations.append({"type": "backup", "path": args.backup})
    if not destinations:
        raise ConfigurationError("At least one destination (-d/--destination) is required")
    data["destinations"] = destinations

    if args.config is None:
        data["options"] = {
            "includeSubdirectories": not args.no_subdirs,
            "fileExtensions": args.ext,
            "skipDuplicates": not args.keep_duplicates,
            "folderOrganization": {
                "enabled": args.organize != "none",
                "mode": "custom" if args.organize == "custom" else "date",
                "dateFormat": args.date_format,
                "customName": args.folder_name,
            },
        }
    return ImportJobConfig.parse(data)


# ============ Command Handlers ============

def cmd_import(args: argparse.Namespace, reporter) -> int:
    """Handle the import command."""
    from .services.controller import ImportController

    config = build_job_config(args)

    reporter.print_header("offload import")
    reporter.print_config({
        "Source": str(config.source_path),
        **{
            dest.type.display_name: str(dest.path)
            for dest in config.destinations
            if dest.enabled and dest.path is not None
        },
        "Subdirectories": config.options.include_subdirectories,
        "Skip Duplicates": config.options.skip_duplicates,
        "Folders": (
            config.options.folder_organization.mode
            if config.options.folder_organization.enabled else "none"
        ),
    })

    with ImportController() as controller:
        job_id = controller.start(config)
        terminal = None
        interrupted = False
        while terminal is None:
            try:
                finished = not controller.is_processing
                for event in controller.channel.iter_until_terminal(timeout=0.2):
                    reporter.handle(event)
                    if event.type.is_terminal and event.job_id == job_id:
                        terminal = event.type
                if terminal is None and finished:
                    break
            except KeyboardInterrupt:
                if interrupted:
                    raise
                interrupted = True
                reporter.warning("Cancelling after the current file...")
                try:
                    controller.cancel()
                except NotRunningError:
                    # Finished before the interrupt landed.
                    pass

        state = controller.wait()

    if terminal == EventType.CANCELLED:
        return 130
    if terminal == EventType.COMPLETED and state is not None and state.failed_files == 0:
        return 0
    return 1


def cmd_scan(args: argparse.Namespace, reporter) -> int:
    """Handle the scan command."""
    from .core.config import ImportOptions
    from .services.scanner import DirectoryScanner, summarize, validate_source

    validation = validate_source(args.source)
    if not validation.valid:
        reporter.error(f"{validation.error}: {args.source}")
        return 1
    if validation.is_empty:
        reporter.warning("Source directory is empty")

    extensions = ImportOptions(file_extensions=args.ext).file_extensions
    records = DirectoryScanner(on_warning=reporter.warning).scan(
        args.source,
        recursive=not args.no_subdirs,
        allowed_extensions=extensions,
    )
    if not records:
        reporter.warning("No supported files found")
        return 0

    reporter.print_scan_summary(summarize(records))
    return 0


def cmd_formats(args: argparse.Namespace, reporter) -> int:
    """Handle the formats command."""
    from .services.folders import DATE_FORMATS, format_date_folder

    today = datetime.now()
    reporter.print_formats(
        {selector: format_date_folder(today, selector) for selector in DATE_FORMATS},
        today,
    )
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    configure_logging(getattr(args, "verbose", False))

    # Create reporter
    if getattr(args, "quiet", False):
        reporter = QuietProgressReporter()
    else:
        reporter = RichProgressReporter(verbose=getattr(args, "verbose", False))

    # No command specified - show help
    if not args.command:
        parser.print_help()
        return 0

    # Dispatch to command handler
    try:
        match args.command:
            case "import":
                return cmd_import(args, reporter)
            case "scan":
                return cmd_scan(args, reporter)
            case "formats":
                return cmd_formats(args, reporter)
        reporter.error(f"Unknown command: {args.command}")
        return 1

    except KeyboardInterrupt:
        # Clean exit on Ctrl+C - no stack trace
        return 130
    except OffloadError as e:
        reporter.error(str(e))
        return 1
    except Exception as e:
        reporter.error(f"Error: {e}")
        if getattr(args, "verbose", False):
            import traceback
            traceback.print_exc()
        return 1


if __name__ == "__main__":
    sys.exit(main())
