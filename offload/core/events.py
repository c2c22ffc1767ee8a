"""Events flowing from the pipeline runner back to the controller's caller.

Events are plain messages: a ``type`` tag plus a camelCase payload, so a host
process can forward them unchanged over whatever transport it uses.
"""
from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterator, Optional


logger = logging.getLogger(__name__)


class EventType(str, Enum):
    """Event tags of the runner -> caller protocol."""
    PROGRESS = "progress"
    LOG = "log"
    UPLOAD_READY = "upload-ready"
    COMPLETED = "completed"
    ERROR = "error"
    CANCELLED = "cancelled"
    STATUS = "status"

    @property
    def is_terminal(self) -> bool:
        return self in (EventType.COMPLETED, EventType.ERROR, EventType.CANCELLED)


@dataclass(frozen=True, slots=True)
class ImportEvent:
    """A single protocol event."""
    type: EventType
    data: dict[str, Any] = field(default_factory=dict)
    job_id: Optional[str] = None

    def to_message(self) -> dict[str, Any]:
        """Flatten into a transport message: ``{"type": ..., **data}``."""
        message: dict[str, Any] = {"type": self.type.value}
        if self.job_id is not None:
            message["jobId"] = self.job_id
        message.update(self.data)
        return message


EventSink = Callable[[ImportEvent], None]


class EventChannel:
    """Thread-safe FIFO of events, written by workers and read by the caller."""

    def __init__(self) -> None:
        self._queue: queue.Queue[ImportEvent] = queue.Queue()

    def put(self, event: ImportEvent) -> None:
        self._queue.put(event)

    __call__ = put

    def get(self, timeout: Optional[float] = None) -> Optional[ImportEvent]:
        """Next event, or None if nothing arrived within ``timeout``."""
        try:
            return self._queue.get(timeout=timeout)
        except queue.Empty:
            return None

    def drain(self) -> list[ImportEvent]:
        """Everything currently queued, without blocking."""
        events = []
        while True:
            try:
                events.append(self._queue.get_nowait())
            except queue.Empty:
                return events

    def iter_until_terminal(self, timeout: Optional[float] = None) -> Iterator[ImportEvent]:
        """Yield events until (and including) a terminal one.

        Stops early when no event arrives within ``timeout`` seconds.
        """
        while True:
            event = self.get(timeout=timeout)
            if event is None:
                return
            yield event
            if event.type.is_terminal and event.job_id is not None:
                return


class JobEventEmitter:
    """Emits the events of one job and closes after the terminal one.

    Anything emitted after a terminal event is dropped, so consumers never
    see progress for a job that already finished.
    """

    def __init__(self, job_id: str, sink: EventSink):
        self._job_id = job_id
        self._sink = sink
        self._closed = False
        self._lock = threading.Lock()

    @property
    def closed(self) -> bool:
        return self._closed

    def emit(self, event_type: EventType, data: Optional[dict[str, Any]] = None) -> bool:
        """Send an event; returns False if the job was already closed."""
        with self._lock:
            if self._closed:
                logger.debug("Job %s: dropping %s after terminal event", self._job_id, event_type.value)
                return False
            if event_type.is_terminal:
                self._closed = True
        self._sink(ImportEvent(event_type, data or {}, job_id=self._job_id))
        return True

    def progress(self, snapshot: dict[str, Any]) -> bool:
        return self.emit(EventType.PROGRESS, snapshot)

    def log(self, message: str) -> bool:
        return self.emit(EventType.LOG, {"message": message})

    def upload_ready(self, file_paths: list[str], settings: dict[str, Any]) -> bool:
        return self.emit(EventType.UPLOAD_READY, {
            "filePaths": list(file_paths),
            "count": len(file_paths),
            "importSettings": settings,
        })

    def completed(self, result: dict[str, Any]) -> bool:
        return self.emit(EventType.COMPLETED, {"result": result})

    def error(self, message: str, result: Optional[dict[str, Any]] = None) -> bool:
        data: dict[str, Any] = {"message": message}
        if result is not None:
            data["result"] = result
        return self.emit(EventType.ERROR, data)

    def cancelled(self, result: Optional[dict[str, Any]] = None) -> bool:
        return self.emit(EventType.CANCELLED, {"result": result} if result is not None else {})
