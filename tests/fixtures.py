"""Test fixtures: real media files on disk, a fake upload service and an event recorder."""
from __future__ import annotations

import os
import threading
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

from PIL import Image

from offload.core.events import EventType, ImportEvent
from offload.core.models import FileRecord, MediaType, media_type_for
from offload.services.upload import RemoteServiceBase


def make_jpeg(
    path: Path,
    size: tuple[int, int] = (16, 16),
    color: tuple[int, int, int] = (200, 30, 30),
    mtime: Optional[datetime] = None,
) -> Path:
    """Write a small real JPEG and return its path."""
    path.parent.mkdir(parents=True, exist_ok=True)
    Image.new("RGB", size, color).save(path, "JPEG")
    if mtime is not None:
        stamp = mtime.timestamp()
        os.utime(path, (stamp, stamp))
    return path


def make_source(root: Path, names: list[str]) -> Path:
    """Create a source tree of JPEGs; names may contain subfolders."""
    root.mkdir(parents=True, exist_ok=True)
    for i, name in enumerate(names):
        make_jpeg(root / name, size=(16 + i, 16 + i), color=(10 * i % 255, 80, 160))
    return root


def record_for(path: Path, created: Optional[datetime] = None, root: Optional[Path] = None) -> FileRecord:
    """FileRecord for an existing file, without going through the scanner."""
    stat = path.stat()
    return FileRecord(
        name=path.name,
        path=path,
        relative_path=path.relative_to(root).as_posix() if root else path.name,
        size=stat.st_size,
        media_type=media_type_for(path.suffix),
        extension=path.suffix.lower(),
        created=created,
        modified=datetime.fromtimestamp(stat.st_mtime),
    )


def fake_record(name: str = "photo.jpg", size: int = 100, created: Optional[datetime] = None) -> FileRecord:
    """FileRecord for a file that does not need to exist."""
    return FileRecord(
        name=name,
        path=Path("/nowhere") / name,
        relative_path=name,
        size=size,
        media_type=MediaType.IMAGE,
        extension=Path(name).suffix.lower(),
        created=created,
    )


class EventRecorder:
    """Event sink that keeps every event it receives."""

    def __init__(self) -> None:
        self.events: list[ImportEvent] = []

    def __call__(self, event: ImportEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: EventType) -> list[ImportEvent]:
        return [e for e in self.events if e.type == event_type]

    @property
    def types(self) -> list[EventType]:
        return [e.type for e in self.events]

    @property
    def terminal(self) -> Optional[ImportEvent]:
        terminals = [e for e in self.events if e.type.is_terminal]
        return terminals[-1] if terminals else None

    @property
    def messages(self) -> list[str]:
        return [e.data.get("message", "") for e in self.of_type(EventType.LOG)]


class FakeUploadService(RemoteServiceBase):
    """In-memory remote store."""

    service_name = "fake"

    def __init__(
        self,
        settings: Optional[dict[str, Any]] = None,
        existing: Optional[dict[str, int]] = None,
        fail_names: Optional[set[str]] = None,
        gate: Optional[threading.Event] = None,
    ):
        super().__init__(settings if settings is not None else {"bucket": "photos", "secretKey": "s3cr3t"})
        self.existing: dict[str, int] = dict(existing or {})
        self.fail_names = set(fail_names or ())
        self.gate = gate
        self.started = threading.Event()
        self.uploads: list[dict[str, Any]] = []

    def validate_configuration(self) -> dict[str, Any]:
        errors = [] if self._settings.get("bucket") else ["bucket is required"]
        return {"valid": not errors, "errors": errors}

    def _test_connection(self) -> dict[str, Any]:
        if self._settings.get("unreachable"):
            raise ConnectionError("connection refused")
        return {"success": True, "message": "Connected", "details": {"bucket": self._settings.get("bucket")}}

    def check_if_duplicate(self, remote_name: str, expected_size: int) -> bool:
        return self.existing.get(remote_name) == expected_size

    def upload_file(self, path, remote_name, mime_type, options=None):
        self.started.set()
        if self.gate is not None:
            self.gate.wait(5)
        if Path(path).name in self.fail_names:
            return {"success": False, "url": "", "skipped": False, "message": "quota exceeded", "details": None}
        self.existing[remote_name] = Path(path).stat().st_size
        self.uploads.append({
            "path": Path(path),
            "remote_name": remote_name,
            "mime_type": mime_type,
            "options": options or {},
        })
        return {"success": True, "url": f"fake://photos/{remote_name}", "skipped": False, "message": "ok", "details": None}
