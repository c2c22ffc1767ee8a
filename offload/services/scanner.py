"""Directory scanning service."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Iterable, Iterator, Optional

from ..core.errors import SourceInvalidError
from ..core.models import FileRecord, MediaType, SUPPORTED_EXTENSIONS, media_type_for
from .cancellation import CancellationToken


logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class SourceValidation:
    """Result of checking a source directory before an import."""
    valid: bool = False
    exists: bool = False
    readable: bool = False
    is_empty: bool = False
    error: Optional[str] = None


@dataclass(slots=True)
class ScanSummary:
    """Statistics over a scan result."""
    total_files: int = 0
    total_bytes: int = 0
    by_type: dict[MediaType, tuple[int, int]] = field(default_factory=dict)
    largest: Optional[FileRecord] = None
    oldest: Optional[FileRecord] = None
    newest: Optional[FileRecord] = None


def validate_source(path: Path) -> SourceValidation:
    """Check that ``path`` is an existing, readable directory."""
    path = Path(path)
    if not path.exists():
        return SourceValidation(error="Source directory does not exist")
    if not path.is_dir():
        return SourceValidation(exists=True, error="Source path is not a directory")
    if not os.access(path, os.R_OK):
        return SourceValidation(exists=True, error="Source directory is not readable")
    try:
        is_empty = next(path.iterdir(), None) is None
    except OSError as e:
        return SourceValidation(exists=True, error=str(e))
    return SourceValidation(valid=True, exists=True, readable=True, is_empty=is_empty)


def _timestamps(stat: os.stat_result) -> tuple[datetime, datetime]:
    modified = datetime.fromtimestamp(stat.st_mtime)
    birthtime = getattr(stat, "st_birthtime", None)
    created = datetime.fromtimestamp(birthtime) if birthtime else modified
    return created, modified


class DirectoryScanner:
    """Scans a source directory for media files.

    The result is a list built eagerly, in a deterministic order: the
    entries of each directory sorted by name, descending into
    subdirectories as they are met.
    """

    def __init__(
        self,
        follow_symlinks: bool = False,
        on_warning: Optional[Callable[[str], None]] = None,
    ):
        """Initialize the scanner.

        Args:
            follow_symlinks: Whether to descend into symlinked directories.
                Symlinked files are always read through their target.
            on_warning: Called with a message for every skipped item.
        """
        self._follow_symlinks = follow_symlinks
        self._on_warning = on_warning

    def scan(
        self,
        source_root: Path,
        recursive: bool = True,
        allowed_extensions: Optional[Iterable[str]] = None,
        token: Optional[CancellationToken] = None,
    ) -> list[FileRecord]:
        """Scan ``source_root`` and return its matching files.

        Args:
            source_root: Directory to scan.
            recursive: Whether to descend into subdirectories.
            allowed_extensions: Lower-case extensions with dot; None means
                every supported media extension.
            token: Checked before each directory is read.

        Returns:
            FileRecords in traversal order.

        Raises:
            SourceInvalidError: Root is missing or not a directory.
            JobCancelled: Cancellation observed at a checkpoint.
        """
        root = Path(source_root)
        validation = validate_source(root)
        if not validation.valid:
            raise SourceInvalidError(f"{validation.error}: {root}")

        allowed = frozenset(
            ext.lower() for ext in (allowed_extensions if allowed_extensions is not None else SUPPORTED_EXTENSIONS)
        )
        records = list(self._scan_directory(root, root, recursive, allowed, token))
        logger.info("Scanned %s: %d matching files", root, len(records))
        return records

    def _scan_directory(
        self,
        directory: Path,
        source_root: Path,
        recursive: bool,
        allowed: frozenset[str],
        token: Optional[CancellationToken],
    ) -> Iterator[FileRecord]:
        """Scan a single directory."""
        if token is not None:
            token.raise_if_cancelled(f"scan {directory}")

        try:
            entries = sorted(directory.iterdir(), key=lambda p: p.name)
        except OSError as e:
            if directory == source_root:
                raise SourceInvalidError(f"Failed to scan source directory: {e}") from e
            self._warn(f"Failed to read directory {directory}: {e}")
            return

        for entry in entries:
            try:
                stat = entry.stat()
                if entry.is_dir():
                    if entry.is_symlink() and not self._follow_symlinks:
                        continue
                    if recursive:
                        yield from self._scan_directory(entry, source_root, recursive, allowed, token)
                    continue
                if not entry.is_file():
                    continue
            except OSError as e:
                self._warn(f"Failed to process item {entry}: {e}")
                continue

            extension = entry.suffix.lower()
            if extension not in allowed:
                continue

            created, modified = _timestamps(stat)
            yield FileRecord(
                name=entry.name,
                path=entry,
                relative_path=entry.relative_to(source_root).as_posix(),
                size=stat.st_size,
                media_type=media_type_for(extension),
                extension=extension,
                created=created,
                modified=modified,
            )

    def _warn(self, message: str) -> None:
        logger.warning(message)
        if self._on_warning is not None:
            self._on_warning(message)


def summarize(records: Iterable[FileRecord]) -> ScanSummary:
    """Count files and bytes per media type and pick out notable files."""
    summary = ScanSummary()
    for record in records:
        summary.total_files += 1
        summary.total_bytes += record.size
        count, size = summary.by_type.get(record.media_type, (0, 0))
        summary.by_type[record.media_type] = (count + 1, size + record.size)

        if summary.largest is None or record.size > summary.largest.size:
            summary.largest = record
        if record.created is not None:
            if summary.oldest is None or record.created < summary.oldest.created:
                summary.oldest = record
            if summary.newest is None or record.created > summary.newest.created:
                summary.newest = record
    return summary


SIZE_UNITS = ("B", "KB", "MB", "GB", "TB")


def format_file_size(size: int) -> str:
    """Human-readable size, base 1024, one decimal: ``1536`` -> ``1.5 KB``."""
    if size <= 0:
        return "0 B"
    exponent = 0
    value = float(size)
    while value >= 1024 and exponent < len(SIZE_UNITS) - 1:
        value /= 1024
        exponent += 1
    value = round(value, 1)
    text = f"{value:.1f}".rstrip("0").rstrip(".")
    return f"{text} {SIZE_UNITS[exponent]}"


def estimate_duration(total_bytes: int, mb_per_second: float = 50.0) -> float:
    """Seconds needed to copy ``total_bytes`` at the given throughput."""
    return (total_bytes / (1024 * 1024)) / mb_per_second


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}{'' if count == 1 else 's'}"


def format_duration(seconds: float) -> str:
    """``42`` -> ``42 seconds``, ``120`` -> ``2 minutes``, ``3900`` -> ``1 hour 5 minutes``."""
    if seconds < 60:
        return f"{round(seconds)} seconds"
    if seconds < 3600:
        return _plural(round(seconds / 60), "minute")
    hours = int(seconds // 3600)
    minutes = round((seconds % 3600) / 60)
    return f"{_plural(hours, 'hour')} {_plural(minutes, 'minute')}"
