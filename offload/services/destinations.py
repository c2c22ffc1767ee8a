"""Destination variants: local/backup copy roots and the remote upload hand-off.

The variant set is closed (see DestinationType); ``create_destination``
dispatches a DestinationConfig to the matching class.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from ..core.config import DestinationConfig, DestinationType, FolderOrganizationConfig, ImportOptions
from ..core.models import DestinationResult, FileRecord
from .file_ops import FileManager
from .folders import resolve_folder


logger = logging.getLogger(__name__)


class _BaseDestination:
    """Shared priority/display-name/readiness plumbing."""

    def __init__(self, kind: DestinationType, enabled: bool = True):
        self._kind = kind
        self._enabled = enabled

    @property
    def kind(self) -> DestinationType:
        return self._kind

    @property
    def enabled(self) -> bool:
        return self._enabled

    def get_priority(self) -> int:
        return self._kind.priority

    def get_display_name(self) -> str:
        return self._kind.display_name

    def is_ready(self) -> bool:
        return self._enabled

    def cleanup(self) -> None:
        pass

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._kind.value}, enabled={self._enabled})"


class CopyDestination(_BaseDestination):
    """Copies files under a root directory (local or backup).

    Layout: ``root / <folder organization> / <file name>``. A same-sized file
    already at the natural path is skipped when duplicates are skipped;
    any other collision gets a ``name (n).ext`` variant.
    """

    def __init__(
        self,
        kind: DestinationType,
        root: Optional[Path],
        enabled: bool = True,
        skip_duplicates: bool = True,
        file_manager: Optional[FileManager] = None,
    ):
        """Initialize a copy destination.

        Args:
            kind: LOCAL or BACKUP.
            root: Destination root; None or blank makes it not ready.
            enabled: Whether it takes part in the job.
            skip_duplicates: Skip same-size files already at the target.
            file_manager: Filesystem primitives (default FileManager()).
        """
        if not kind.is_landing:
            raise ValueError(f"CopyDestination cannot be {kind.value}")
        super().__init__(kind, enabled)
        self._root = Path(root) if root is not None and str(root).strip() else None
        self._skip_duplicates = skip_duplicates
        self._files = file_manager or FileManager()

    @property
    def root(self) -> Optional[Path]:
        return self._root

    def is_ready(self) -> bool:
        return self._enabled and self._root is not None

    def initialize(self) -> bool:
        if self._root is None:
            logger.error("%s: destination path not specified", self.get_display_name())
            return False
        try:
            self._files.ensure_directory(self._root)
        except OSError as e:
            logger.error("%s: failed to create %s: %s", self.get_display_name(), self._root, e)
            return False
        return True

    def process_file(
        self,
        record: FileRecord,
        source_path: Path,
        folder_config: FolderOrganizationConfig,
    ) -> DestinationResult:
        if self._root is None:
            return DestinationResult.failed("Destination path not specified")
        try:
            folder = resolve_folder(record, folder_config)
            target_dir = self._root / folder if folder else self._root
            if not target_dir.resolve().is_relative_to(self._root.resolve()):
                return DestinationResult.failed(f"Destination folder escapes {self._root}: {folder}")
            try:
                self._files.ensure_directory(target_dir)
            except OSError as e:
                return DestinationResult.failed(f"Failed to create destination directory: {target_dir} ({e})")

            candidate = target_dir / record.name
            if candidate.exists():
                if self._skip_duplicates and self._files.is_duplicate(record.size, candidate):
                    logger.debug("%s: duplicate %s, skipped", self.get_display_name(), candidate)
                    return DestinationResult.skip(folderPath=folder, existingPath=str(candidate))
                final = self._files.find_unique_path(candidate)
            else:
                final = candidate

            self._files.copy_file(Path(source_path), final)
            return DestinationResult.landed(
                final,
                folderPath=folder,
                destinationDir=str(target_dir),
                renamed=final != candidate,
            )
        except Exception as e:
            logger.warning("%s: failed to copy %s: %s", self.get_display_name(), record.name, e)
            return DestinationResult.failed(str(e) or type(e).__name__)

    def __repr__(self) -> str:
        return f"CopyDestination({self._kind.value}, root={self._root}, enabled={self._enabled})"


@dataclass(frozen=True, slots=True)
class QueuedUpload:
    """A file waiting for the upload worker."""
    source_path: Path
    record: FileRecord
    folder_config: FolderOrganizationConfig


class RemoteHandoffDestination(_BaseDestination):
    """Queues files for upload; no network I/O happens here."""

    def __init__(
        self,
        enabled: bool = True,
        services: Optional[list[str]] = None,
        options: Optional[dict] = None,
    ):
        super().__init__(DestinationType.REMOTE, enabled)
        self._services = list(services or [])
        self._options = dict(options or {})
        self._queue: list[QueuedUpload] = []

    @property
    def services(self) -> list[str]:
        return list(self._services)

    @property
    def options(self) -> dict:
        return dict(self._options)

    @property
    def queued(self) -> tuple[QueuedUpload, ...]:
        return tuple(self._queue)

    def initialize(self) -> bool:
        self._queue = []
        return True

    def get_queue_size(self) -> int:
        return len(self._queue)

    def process_file(
        self,
        record: FileRecord,
        source_path: Path,
        folder_config: FolderOrganizationConfig,
    ) -> DestinationResult:
        try:
            self._queue.append(QueuedUpload(Path(source_path), record, folder_config))
        except Exception as e:
            return DestinationResult.failed(f"Failed to queue for upload: {e}")
        return DestinationResult.landed(
            source_path,
            queuedForUpload=True,
            uploadQueueSize=len(self._queue),
        )

    def cleanup(self) -> None:
        self._queue = []


def create_destination(
    config: DestinationConfig,
    options: Optional[ImportOptions] = None,
    file_manager: Optional[FileManager] = None,
) -> CopyDestination | RemoteHandoffDestination:
    """Build the destination variant for a configuration entry."""
    options = options or ImportOptions()
    match config.type:
        case DestinationType.LOCAL | DestinationType.BACKUP:
            return CopyDestination(
                config.type,
                config.path,
                enabled=config.enabled,
                skip_duplicates=options.skip_duplicates,
                file_manager=file_manager,
            )
        case DestinationType.REMOTE:
            return RemoteHandoffDestination(
                enabled=config.enabled,
                services=config.services,
                options=config.options,
            )
    raise ValueError(f"Unknown destination type: {config.type}")
