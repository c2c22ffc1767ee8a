"""File operations service: copying, unique naming and the duplicate test."""
from __future__ import annotations

import logging
import shutil
import time
from pathlib import Path


logger = logging.getLogger(__name__)

# Highest " (n)" counter tried before falling back to a timestamp suffix.
MAX_NAME_COUNTER = 1000


def split_name(filename: str) -> tuple[str, str]:
    """Split ``photo.jpg`` into ``("photo", ".jpg")``.

    Dotfiles like ``.hidden`` have no extension.
    """
    suffix = Path(filename).suffix
    if not suffix or suffix == filename:
        return filename, ""
    return filename[: -len(suffix)], suffix


def numbered_name(filename: str, counter: int) -> str:
    """``photo.jpg`` -> ``photo (2).jpg``."""
    base, ext = split_name(filename)
    return f"{base} ({counter}){ext}"


def timestamped_name(filename: str, timestamp_ms: int | None = None) -> str:
    """``photo.jpg`` -> ``photo_1716712345678.jpg``."""
    base, ext = split_name(filename)
    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"{base}_{timestamp_ms}{ext}"


class FileManager:
    """Filesystem primitives used by the copy destinations.

    Errors propagate as ``OSError``; destinations turn them into results.
    """

    def __init__(self, max_counter: int = MAX_NAME_COUNTER):
        """Initialize file manager.

        Args:
            max_counter: Highest counter tried by find_unique_path before
                falling back to a timestamped name.
        """
        self._max_counter = max_counter

    def copy_file(self, source: Path, target: Path) -> Path:
        """Copy a file with metadata preservation.

        Args:
            source: Source file path.
            target: Target file path.

        Returns:
            The target path.
        """
        target.parent.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, target)
        return target

    def ensure_directory(self, path: Path) -> None:
        """Ensure directory exists.

        Args:
            path: Directory to create.
        """
        path.mkdir(parents=True, exist_ok=True)

    def is_duplicate(self, source_size: int, target: Path) -> bool:
        """Whether ``target`` exists with exactly ``source_size`` bytes.

        Size is the only thing compared; contents are never read.
        """
        try:
            return target.is_file() and target.stat().st_size == source_size
        except OSError:
            return False

    def find_unique_path(self, candidate: Path) -> Path:
        """Find a non-colliding path for ``candidate``.

        Args:
            candidate: Natural target path.

        Returns:
            ``candidate`` itself when free, else the first free
            ``name (n).ext`` for n = 1, 2, ..., and past the counter cap a
            millisecond-timestamped name.
        """
        if not candidate.exists():
            return candidate

        directory = candidate.parent
        for counter in range(1, self._max_counter):
            path = directory / numbered_name(candidate.name, counter)
            if not path.exists():
                return path

        fallback = directory / timestamped_name(candidate.name)
        logger.warning("Name counter exhausted for %s, using %s", candidate, fallback.name)
        return fallback
