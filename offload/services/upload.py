"""Upload hand-off: pushes queued files to remote upload services.

The network transfer itself belongs to UploadService implementations
registered in an UploadServiceRegistry. This module owns the worker that
feeds them: one batch in flight, cooperative per-job cancellation, and a
completion callback into the pipeline runner.
"""
from __future__ import annotations

import logging
import mimetypes
import threading
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional

from ..core.errors import ConfigurationError, WorkerBusyError
from ..core.models import UploadFileResult, UploadReport
from ..core.protocols import UploadService
from .destinations import QueuedUpload
from .file_ops import MAX_NAME_COUNTER, numbered_name, timestamped_name
from .folders import resolve_folder


logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"

# Extensions the platform mimetypes table commonly lacks.
_FALLBACK_MIME_TYPES = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
    ".tiff": "image/tiff",
    ".cr2": "image/x-canon-cr2",
    ".nef": "image/x-nikon-nef",
    ".arw": "image/x-sony-arw",
    ".dng": "image/x-adobe-dng",
    ".mp4": "video/mp4",
    ".mov": "video/quicktime",
    ".avi": "video/x-msvideo",
    ".mkv": "video/x-matroska",
    ".wmv": "video/x-ms-wmv",
    ".flv": "video/x-flv",
    ".webm": "video/webm",
    ".m4v": "video/mp4",
}


def mime_type_for(path: Path | str) -> str:
    """MIME type from the file extension, defaulting to octet-stream."""
    guessed, _ = mimetypes.guess_type(str(path), strict=False)
    if guessed:
        return guessed
    return _FALLBACK_MIME_TYPES.get(Path(path).suffix.lower(), DEFAULT_MIME_TYPE)


def remote_name_for(path: Path, local_root: Optional[Path] = None, folder: str = "") -> str:
    """Object name for an uploaded file.

    Files under the local destination root keep their relative layout;
    anything else is named ``<folder>/<file name>``.
    """
    if local_root is not None:
        try:
            return Path(path).relative_to(local_root).as_posix()
        except ValueError:
            pass
    name = Path(path).name
    return f"{folder}/{name}" if folder else name


class RemoteServiceBase(ABC):
    """Base class for concrete upload service clients.

    Subclasses implement the transport-specific calls; the base handles
    settings bookkeeping, unique remote naming and test-result caching.
    """

    service_name = "remote"

    SENSITIVE_FIELDS = (
        "password", "secret", "key", "token", "accessKey", "secretKey",
        "connectionString", "privateKey", "serviceAccountKey",
    )

    def __init__(self, settings: Optional[dict[str, Any]] = None):
        self._settings: dict[str, Any] = dict(settings or {})
        self._configured: Optional[bool] = None
        self._last_test: Optional[dict[str, Any]] = None
        self._last_test_time: Optional[float] = None

    @property
    def name(self) -> str:
        return self.service_name

    @property
    def settings(self) -> dict[str, Any]:
        """Current settings with secrets redacted."""
        return {
            key: "[REDACTED]" if key in self.SENSITIVE_FIELDS and value else value
            for key, value in self._settings.items()
        }

    @abstractmethod
    def validate_configuration(self) -> dict[str, Any]:
        ...

    @abstractmethod
    def _test_connection(self) -> dict[str, Any]:
        """Transport-specific connectivity probe."""
        ...

    @abstractmethod
    def check_if_duplicate(self, remote_name: str, expected_size: int) -> bool:
        ...

    @abstractmethod
    def upload_file(
        self,
        path: Path,
        remote_name: str,
        mime_type: str,
        options: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        ...

    def test_connection(self) -> dict[str, Any]:
        try:
            result = self._test_connection()
        except Exception as e:
            result = {"success": False, "message": str(e), "details": None}
        self._last_test = result
        self._last_test_time = time.monotonic()
        return result

    def generate_unique_remote_name(self, name: str, size: int) -> str:
        """First of ``name``, ``name (1)``, ... not already taken remotely."""
        if not self.check_if_duplicate(name, size):
            return name
        for counter in range(1, MAX_NAME_COUNTER):
            candidate = numbered_name(name, counter)
            if not self.check_if_duplicate(candidate, size):
                return candidate
        return timestamped_name(name)

    def is_configured(self) -> bool:
        if self._configured is None:
            self._configured = bool(self.validate_configuration().get("valid"))
        return self._configured

    def update_settings(self, settings: dict[str, Any]) -> None:
        self._settings.update(settings)
        self._configured = None
        self._last_test = None
        self._last_test_time = None

    @property
    def last_test_result(self) -> Optional[dict[str, Any]]:
        return self._last_test

    def has_recent_successful_test(self, max_age: float = 300.0) -> bool:
        if self._last_test is None or self._last_test_time is None:
            return False
        fresh = time.monotonic() - self._last_test_time < max_age
        return bool(self._last_test.get("success")) and fresh


ServiceFactory = Callable[[dict[str, Any]], UploadService]


class UploadServiceRegistry:
    """Named upload service instances, created from registered factories."""

    def __init__(self) -> None:
        self._factories: dict[str, ServiceFactory] = {}
        self._services: dict[str, UploadService] = {}

    def register(self, service_type: str, factory: ServiceFactory) -> None:
        self._factories[service_type] = factory

    def create(self, service_type: str, settings: Optional[dict[str, Any]] = None) -> dict[str, Any]:
        """Instantiate (or replace) the service of a registered type."""
        factory = self._factories.get(service_type)
        if factory is None:
            raise ConfigurationError(f"Unknown service type: {service_type}")
        self._services[service_type] = factory(dict(settings or {}))
        return self._info(service_type)

    def add(self, service_type: str, service: UploadService) -> None:
        """Register an already-built service instance."""
        self._services[service_type] = service

    def get(self, service_type: str) -> Optional[UploadService]:
        return self._services.get(service_type)

    def update(self, service_type: str, settings: dict[str, Any]) -> dict[str, Any]:
        service = self._services.get(service_type)
        if service is None:
            raise ConfigurationError(f"Service not found: {service_type}")
        update_settings = getattr(service, "update_settings", None)
        if update_settings is None:
            raise ConfigurationError(f"Service {service_type} does not accept new settings")
        update_settings(settings)
        return self._info(service_type)

    def test(self, service_type: str) -> dict[str, Any]:
        service = self._services.get(service_type)
        if service is None:
            return {"success": False, "message": f"Service not found: {service_type}"}
        return service.test_connection()

    def list_services(self) -> list[dict[str, Any]]:
        return [self._info(service_type) for service_type in self._services]

    def remove(self, service_type: str) -> bool:
        return self._services.pop(service_type, None) is not None

    def clear(self) -> None:
        self._services.clear()

    def _info(self, service_type: str) -> dict[str, Any]:
        service = self._services[service_type]
        is_configured = getattr(service, "is_configured", None)
        return {
            "type": service_type,
            "name": service.name,
            "configured": is_configured() if callable(is_configured) else None,
            "lastTest": getattr(service, "last_test_result", None),
        }


@dataclass
class UploadBatch:
    """Everything the upload worker needs for one job's queued files."""
    job_id: str
    items: list[QueuedUpload]
    services: list[str]
    local_root: Optional[Path] = None
    skip_duplicates: bool = True
    metadata: dict[str, Any] = field(default_factory=dict)
    options: dict[str, Any] = field(default_factory=dict)


CompletionCallback = Callable[[UploadReport], None]
FileCallback = Callable[[UploadFileResult], None]


class UploadHandoff:
    """Upload worker running one batch at a time on its own thread."""

    def __init__(self, registry: UploadServiceRegistry):
        self._registry = registry
        self._lock = threading.Lock()
        self._current_job: Optional[str] = None
        self._cancelled: set[str] = set()
        self._thread: Optional[threading.Thread] = None

    @property
    def registry(self) -> UploadServiceRegistry:
        return self._registry

    @property
    def busy(self) -> bool:
        with self._lock:
            return self._current_job is not None

    def submit(
        self,
        batch: UploadBatch,
        on_complete: CompletionCallback,
        on_file: Optional[FileCallback] = None,
    ) -> None:
        """Start uploading ``batch`` in the background.

        Raises:
            WorkerBusyError: Another batch is still in flight.
        """
        with self._lock:
            if self._current_job is not None:
                raise WorkerBusyError()
            self._current_job = batch.job_id
            self._cancelled.discard(batch.job_id)

        self._thread = threading.Thread(
            target=self._run,
            args=(batch, on_complete, on_file),
            name=f"upload-{batch.job_id}",
            daemon=True,
        )
        self._thread.start()

    def cancel(self, job_id: str) -> bool:
        """Ask the in-flight batch of ``job_id`` to stop after its current file."""
        with self._lock:
            if self._current_job != job_id:
                return False
            self._cancelled.add(job_id)
        logger.info("Upload job %s marked for cancellation", job_id)
        return True

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)

    def _is_cancelled(self, job_id: str) -> bool:
        with self._lock:
            return job_id in self._cancelled

    def _run(
        self,
        batch: UploadBatch,
        on_complete: CompletionCallback,
        on_file: Optional[FileCallback],
    ) -> None:
        try:
            report = self.run_batch(batch, on_file)
        except Exception as e:
            logger.exception("Upload job %s failed", batch.job_id)
            report = UploadReport(batch.job_id, error=str(e))
        finally:
            with self._lock:
                self._current_job = None
                self._cancelled.discard(batch.job_id)
        on_complete(report)

    def run_batch(self, batch: UploadBatch, on_file: Optional[FileCallback] = None) -> UploadReport:
        """Upload every queued file to every selected service, in order."""
        report = UploadReport(batch.job_id)
        if not batch.services:
            report.error = "No upload service selected"
            return report

        services: list[UploadService] = []
        for service_type in batch.services:
            problem = self._check_service(service_type)
            if problem is None:
                services.append(self._registry.get(service_type))
                continue
            logger.warning("Upload service %s unusable: %s", service_type, problem)
            for item in batch.items:
                result = UploadFileResult(
                    path=str(item.source_path),
                    service=service_type,
                    remote_name="",
                    success=False,
                    message=problem,
                )
                report.results.append(result)
                if on_file is not None:
                    on_file(result)

        for item in batch.items:
            if self._is_cancelled(batch.job_id):
                report.cancelled = True
                break
            for service in services:
                result = self._upload_one(service, item, batch)
                report.results.append(result)
                if on_file is not None:
                    on_file(result)

        logger.info(
            "Upload job %s: %d uploaded, %d skipped, %d failed",
            batch.job_id, report.uploaded, report.skipped, report.failed,
        )
        return report

    def _check_service(self, service_type: str) -> Optional[str]:
        service = self._registry.get(service_type)
        if service is None:
            return f"Upload service not available: {service_type}"
        validation = service.validate_configuration()
        if not validation.get("valid"):
            errors = "; ".join(validation.get("errors") or []) or "invalid configuration"
            return f"Incomplete {service.name} configuration: {errors}"
        return None

    def _upload_one(self, service: UploadService, item: QueuedUpload, batch: UploadBatch) -> UploadFileResult:
        path = item.source_path
        folder = resolve_folder(item.record, item.folder_config)
        remote_name = remote_name_for(path, batch.local_root, folder)
        try:
            if service.check_if_duplicate(remote_name, item.record.size):
                if batch.skip_duplicates:
                    return UploadFileResult(
                        path=str(path),
                        service=service.name,
                        remote_name=remote_name,
                        success=True,
                        skipped=True,
                        message="Duplicate, skipped",
                    )
                remote_name = service.generate_unique_remote_name(remote_name, item.record.size)

            options = {
                "skipDuplicates": batch.skip_duplicates,
                "metadata": {"originalName": item.record.name, "jobId": batch.job_id, **batch.metadata},
            }
            if batch.options.get("timeout") is not None:
                options["timeout"] = batch.options["timeout"]
            response = service.upload_file(path, remote_name, mime_type_for(path), options)
        except Exception as e:
            logger.warning("Upload of %s to %s failed: %s", path.name, service.name, e)
            return UploadFileResult(
                path=str(path),
                service=service.name,
                remote_name=remote_name,
                success=False,
                message=str(e) or type(e).__name__,
            )

        return UploadFileResult(
            path=str(path),
            service=service.name,
            remote_name=remote_name,
            success=bool(response.get("success")),
            skipped=bool(response.get("skipped")),
            url=response.get("url") or "",
            message=response.get("message") or "",
        )
