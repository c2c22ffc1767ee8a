"""Destination router: fans each file out across the ready destinations."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Iterable, Optional

from ..core.config import DestinationType, FolderOrganizationConfig
from ..core.models import DestinationResult, FileOutcome, FileRecord, RoutedResult
from ..core.protocols import Destination
from .destinations import RemoteHandoffDestination


logger = logging.getLogger(__name__)


class DestinationRouter:
    """Routes files through destinations in priority order.

    Each destination's result is independent: a failure in one never stops
    or alters the others. When a local copy lands, the remote hand-off
    receives that copy instead of the original source.
    """

    def __init__(self, destinations: Iterable[Destination]):
        # sorted() is stable: equal priorities keep configuration order.
        self._destinations = sorted(destinations, key=lambda d: d.get_priority())
        self._active: Optional[list[Destination]] = None

    @property
    def destinations(self) -> list[Destination]:
        return list(self._destinations)

    @property
    def active(self) -> list[Destination]:
        """Destinations that are ready and initialized, in routing order."""
        if self._active is None:
            return [d for d in self._destinations if d.is_ready()]
        return list(self._active)

    def initialize(self) -> list[str]:
        """Initialize every ready destination.

        Returns:
            Error messages for destinations that failed to initialize;
            those are left out of routing.
        """
        self._active = []
        errors = []
        for dest in self._destinations:
            if not dest.is_ready():
                logger.info("%s not ready, skipped", dest.get_display_name())
                continue
            try:
                ok = dest.initialize()
            except Exception as e:
                logger.error("%s failed to initialize: %s", dest.get_display_name(), e)
                ok = False
            if ok:
                self._active.append(dest)
            else:
                errors.append(f"Failed to initialize {dest.get_display_name()}")
        return errors

    def route(
        self,
        record: FileRecord,
        folder_config: FolderOrganizationConfig,
        on_destination: Optional[Callable[[Destination], None]] = None,
    ) -> FileOutcome:
        """Send one file to every active destination.

        Args:
            record: File to route.
            folder_config: Folder organization policy for this job.
            on_destination: Called before each destination handles the file.

        Returns:
            The per-destination results for the file.
        """
        results = []
        local_path = ""
        for dest in self.active:
            if on_destination is not None:
                on_destination(dest)

            source = record.path
            if dest.kind == DestinationType.REMOTE and local_path:
                source = Path(local_path)

            try:
                result = dest.process_file(record, source, folder_config)
            except Exception as e:
                logger.warning("%s raised on %s: %s", dest.get_display_name(), record.name, e)
                result = DestinationResult.failed(str(e) or type(e).__name__)

            if dest.kind == DestinationType.LOCAL and result.success and result.destination_path:
                local_path = result.destination_path
            results.append(RoutedResult(dest.kind, dest.get_display_name(), result))

        return FileOutcome(record, tuple(results))

    def handoffs(self) -> list[RemoteHandoffDestination]:
        """Active remote hand-off destinations."""
        return [d for d in self.active if isinstance(d, RemoteHandoffDestination)]

    def cleanup(self) -> None:
        for dest in self._destinations:
            try:
                dest.cleanup()
            except Exception as e:
                logger.warning("%s cleanup failed: %s", dest.get_display_name(), e)
