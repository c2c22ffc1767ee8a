"""Protocol definitions (interfaces) for dependency injection."""
from __future__ import annotations

from abc import abstractmethod
from pathlib import Path
from typing import Any, Optional, Protocol

from .config import DestinationType, FolderOrganizationConfig
from .events import ImportEvent
from .models import DestinationResult, FileRecord


class Destination(Protocol):
    """A target that receives a copy (or a queued reference) of each file.

    Implementations:
    - CopyDestination: local and backup roots
    - RemoteHandoffDestination: queues files for the upload worker
    """

    @property
    @abstractmethod
    def kind(self) -> DestinationType:
        """Variant tag; fixes priority and display name."""
        ...

    @abstractmethod
    def initialize(self) -> bool:
        """Prepare the destination. Idempotent, called once per job."""
        ...

    @abstractmethod
    def is_ready(self) -> bool:
        """Enabled and minimally configured."""
        ...

    @abstractmethod
    def get_priority(self) -> int:
        """Lower value is routed first."""
        ...

    @abstractmethod
    def get_display_name(self) -> str:
        ...

    @abstractmethod
    def process_file(
        self,
        record: FileRecord,
        source_path: Path,
        folder_config: FolderOrganizationConfig,
    ) -> DestinationResult:
        """Copy or queue one file. Never raises; failures go in the result."""
        ...

    @abstractmethod
    def cleanup(self) -> None:
        """Release per-job state."""
        ...


class UploadService(Protocol):
    """Remote storage client used by the upload worker.

    The core only relies on this shape; concrete stores live outside it.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        ...

    @abstractmethod
    def validate_configuration(self) -> dict[str, Any]:
        """Returns ``{"valid": bool, "errors": list[str]}``."""
        ...

    @abstractmethod
    def test_connection(self) -> dict[str, Any]:
        """Returns ``{"success": bool, "message": str, "details": ...}``."""
        ...

    @abstractmethod
    def check_if_duplicate(self, remote_name: str, expected_size: int) -> bool:
        ...

    @abstractmethod
    def generate_unique_remote_name(self, name: str, size: int) -> str:
        ...

    @abstractmethod
    def upload_file(
        self,
        path: Path,
        remote_name: str,
        mime_type: str,
        options: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """Returns ``{"success", "url", "skipped", "message", "details"}``."""
        ...


class ProgressReporter(Protocol):
    """Interface for rendering import events to a user."""

    @abstractmethod
    def handle(self, event: ImportEvent) -> None:
        """Render one event."""
        ...

    @abstractmethod
    def info(self, message: str) -> None:
        ...

    @abstractmethod
    def warning(self, message: str) -> None:
        ...

    @abstractmethod
    def error(self, message: str) -> None:
        ...
