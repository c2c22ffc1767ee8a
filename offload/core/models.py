"""Domain models - immutable records plus the mutable job state."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Optional

from .config import DestinationType
from .errors import InvalidTransitionError


class MediaType(str, Enum):
    """Coarse media classification by extension."""
    IMAGE = "image"
    VIDEO = "video"
    OTHER = "other"


IMAGE_EXTENSIONS = (
    ".jpg", ".jpeg", ".png", ".gif", ".bmp", ".tiff",
    ".raw", ".cr2", ".nef", ".arw", ".dng",
)
VIDEO_EXTENSIONS = (
    ".mp4", ".mov", ".avi", ".mkv", ".wmv", ".flv", ".webm", ".m4v",
)
SUPPORTED_EXTENSIONS = IMAGE_EXTENSIONS + VIDEO_EXTENSIONS


def media_type_for(extension: str) -> MediaType:
    """Classify an extension (with leading dot, any case)."""
    ext = extension.lower()
    if ext in IMAGE_EXTENSIONS:
        return MediaType.IMAGE
    if ext in VIDEO_EXTENSIONS:
        return MediaType.VIDEO
    return MediaType.OTHER


@dataclass(frozen=True, slots=True)
class FileRecord:
    """A source file discovered by the scanner."""
    name: str
    path: Path
    relative_path: str
    size: int
    media_type: MediaType
    extension: str
    created: Optional[datetime] = None
    modified: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class DestinationResult:
    """Outcome of handing one file to one destination.

    A duplicate skip is ``success=True`` with an empty ``destination_path``
    and ``metadata["skipped"]`` set.
    """
    success: bool
    destination_path: str = ""
    error: str = ""
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def skipped(self) -> bool:
        return self.success and bool(self.metadata.get("skipped"))

    @classmethod
    def landed(cls, path: Path | str, **metadata: Any) -> "DestinationResult":
        return cls(success=True, destination_path=str(path), metadata=metadata)

    @classmethod
    def skip(cls, **metadata: Any) -> "DestinationResult":
        return cls(success=True, destination_path="", metadata={"skipped": True, **metadata})

    @classmethod
    def failed(cls, error: str, **metadata: Any) -> "DestinationResult":
        return cls(success=False, destination_path="", error=error, metadata=metadata)


@dataclass(frozen=True, slots=True)
class RoutedResult:
    """A destination result tagged with the destination that produced it."""
    kind: DestinationType
    display_name: str
    result: DestinationResult


@dataclass(frozen=True, slots=True)
class FileOutcome:
    """Aggregated routing outcome of one file across all destinations."""
    record: FileRecord
    results: tuple[RoutedResult, ...] = ()

    @property
    def _landing(self) -> tuple[RoutedResult, ...]:
        return tuple(r for r in self.results if r.kind.is_landing)

    @property
    def successful(self) -> bool:
        """Landed (copied or skip-accepted) in at least one local/backup root.

        Without any landing destination the file succeeds only if every
        hand-off succeeded.
        """
        landing = self._landing
        if landing:
            return any(r.result.success for r in landing)
        return bool(self.results) and all(r.result.success for r in self.results)

    @property
    def skipped(self) -> bool:
        """Duplicate-skipped in every landing destination, nothing written."""
        landing = self._landing
        return bool(landing) and all(r.result.skipped for r in landing)

    @property
    def errors(self) -> list[str]:
        return [
            f"{self.record.name} ({r.display_name}): {r.result.error}"
            for r in self.results
            if not r.result.success
        ]


class JobPhase(str, Enum):
    """Lifecycle phases of an import job."""
    PENDING = "pending"
    SCANNING = "scanning"
    COPYING = "copying"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (JobPhase.COMPLETED, JobPhase.FAILED, JobPhase.CANCELLED)


_TERMINAL = {JobPhase.COMPLETED, JobPhase.FAILED, JobPhase.CANCELLED}

ALLOWED_TRANSITIONS: dict[JobPhase, frozenset[JobPhase]] = {
    JobPhase.PENDING: frozenset({JobPhase.SCANNING, JobPhase.FAILED, JobPhase.CANCELLED}),
    # Scanning -> Completed is the "no files found" outcome.
    JobPhase.SCANNING: frozenset({JobPhase.COPYING} | _TERMINAL),
    JobPhase.COPYING: frozenset({JobPhase.UPLOADING} | _TERMINAL),
    JobPhase.UPLOADING: frozenset(_TERMINAL),
    JobPhase.COMPLETED: frozenset(),
    JobPhase.FAILED: frozenset(),
    JobPhase.CANCELLED: frozenset(),
}


@dataclass(frozen=True, slots=True)
class UploadFileResult:
    """Result of submitting one file to one upload service."""
    path: str
    service: str
    remote_name: str
    success: bool
    skipped: bool = False
    url: str = ""
    message: str = ""


@dataclass(slots=True)
class UploadReport:
    """Summary of an upload batch handled by the upload worker."""
    job_id: str
    results: list[UploadFileResult] = field(default_factory=list)
    cancelled: bool = False
    error: str = ""

    @property
    def uploaded(self) -> int:
        return sum(1 for r in self.results if r.success and not r.skipped)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if r.skipped)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def errors(self) -> list[str]:
        errors = [
            f"{Path(r.path).name} ({r.service}): {r.message}"
            for r in self.results
            if not r.success
        ]
        if self.error:
            errors.append(self.error)
        return errors

    def summary(self) -> dict[str, Any]:
        return {
            "uploaded": self.uploaded,
            "skipped": self.skipped,
            "failed": self.failed,
            "cancelled": self.cancelled,
            "errors": self.errors,
        }


@dataclass(slots=True)
class JobState:
    """Mutable state of one job, owned by the pipeline runner thread.

    Counters only ever grow; totals are fixed once, when scanning ends.
    """
    job_id: str
    phase: JobPhase = JobPhase.PENDING
    total_files: int = 0
    processed_files: int = 0
    successful_files: int = 0
    failed_files: int = 0
    skipped_files: int = 0
    bytes_processed: int = 0
    total_bytes: int = 0
    current_file: Optional[str] = None
    current_destination: str = ""
    errors: list[str] = field(default_factory=list)
    cancelled: bool = False
    upload_queue_count: int = 0
    upload_report: Optional[UploadReport] = None
    _totals_fixed: bool = field(default=False, repr=False)

    def transition(self, phase: JobPhase) -> None:
        """Move to a new phase, enforcing the job state machine."""
        if phase not in ALLOWED_TRANSITIONS[self.phase]:
            raise InvalidTransitionError(
                f"Job {self.job_id}: cannot go from {self.phase.value} to {phase.value}"
            )
        self.phase = phase
        if phase == JobPhase.CANCELLED:
            self.cancelled = True

    def fix_totals(self, total_files: int, total_bytes: int) -> None:
        if self._totals_fixed:
            raise InvalidTransitionError(f"Job {self.job_id}: totals already fixed")
        self.total_files = total_files
        self.total_bytes = total_bytes
        self._totals_fixed = True

    def record(self, outcome: FileOutcome) -> None:
        """Account for one routed file."""
        self.processed_files += 1
        if outcome.successful:
            self.successful_files += 1
        else:
            self.failed_files += 1
        if outcome.skipped:
            self.skipped_files += 1
        self.bytes_processed += outcome.record.size
        self.errors.extend(outcome.errors)

    def add_error(self, message: str) -> None:
        self.errors.append(message)

    def merge_upload_report(self, report: UploadReport) -> None:
        """Fold one hand-off batch report into the job's upload report."""
        if self.upload_report is None:
            self.upload_report = report
        else:
            self.upload_report.results.extend(report.results)
            self.upload_report.cancelled = self.upload_report.cancelled or report.cancelled
            self.upload_report.error = "; ".join(e for e in (self.upload_report.error, report.error) if e)
        for message in report.errors:
            self.add_error(message)

    def progress(self) -> dict[str, Any]:
        """Snapshot for a ``progress`` event."""
        return {
            "jobId": self.job_id,
            "phase": self.phase.value,
            "totalFiles": self.total_files,
            "processedFiles": self.processed_files,
            "successfulFiles": self.successful_files,
            "failedFiles": self.failed_files,
            "skippedFiles": self.skipped_files,
            "currentFile": self.current_file,
            "currentDestination": self.current_destination,
            "bytesProcessed": self.bytes_processed,
            "totalBytes": self.total_bytes,
        }

    def result(self) -> dict[str, Any]:
        """Final summary carried by terminal events."""
        result = self.progress()
        result.update({
            "errors": list(self.errors),
            "uploadQueueCount": self.upload_queue_count,
            "wasCancelled": self.cancelled,
        })
        if self.upload_report is not None:
            result["upload"] = self.upload_report.summary()
        return result
