"""Controller: the command/event boundary in front of a pipeline runner.

Callers send plain message dicts (``start-import``, ``cancel-import``,
``get-status``) and read events from the controller's EventChannel. Jobs run
on a single dedicated worker thread; commands are answered on the caller's
thread.
"""
from __future__ import annotations

import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Optional

from ..core.config import ImportJobConfig
from ..core.errors import ConfigurationError, NotRunningError, OffloadError
from ..core.events import EventChannel, EventType, ImportEvent
from ..core.models import JobState
from .runner import PipelineRunner
from .upload import UploadHandoff


logger = logging.getLogger(__name__)


class ImportController:
    """Accepts commands and runs import jobs one at a time."""

    def __init__(
        self,
        channel: Optional[EventChannel] = None,
        uploader: Optional[UploadHandoff] = None,
        runner: Optional[PipelineRunner] = None,
    ):
        self._channel = channel or EventChannel()
        self._runner = runner or PipelineRunner(self._channel.put, uploader=uploader)
        self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="offload-import")
        self._future: Optional[Future] = None

    @property
    def channel(self) -> EventChannel:
        return self._channel

    @property
    def runner(self) -> PipelineRunner:
        return self._runner

    @property
    def is_processing(self) -> bool:
        return self._runner.is_processing

    # --- Message protocol ---

    def handle(self, message: dict[str, Any]) -> None:
        """Dispatch one command message; failures become ``error`` events."""
        msg_type = message.get("type")
        try:
            match msg_type:
                case "start-import":
                    payload = message.get("jobConfig", message.get("importSettings"))
                    if payload is None:
                        raise ConfigurationError("Missing job configuration")
                    self.start(payload)
                case "cancel-import":
                    self.cancel()
                case "get-status":
                    self._channel.put(ImportEvent(EventType.STATUS, self.status()))
                case _:
                    raise OffloadError(f"Unknown message type: {msg_type}")
        except OffloadError as e:
            logger.warning("Command %s rejected: %s", msg_type, e)
            self._channel.put(ImportEvent(EventType.ERROR, {"message": str(e)}))

    # --- Direct API ---

    def start(self, config: ImportJobConfig | dict[str, Any]) -> str:
        """Start a job on the worker thread.

        Returns:
            The job id.

        Raises:
            ConfigurationError: The configuration is invalid.
            AlreadyRunningError: A job is already in progress.
        """
        job_config = ImportJobConfig.parse(config)
        ctx = self._runner.begin(job_config)
        self._future = self._executor.submit(self._runner.execute, ctx)
        return ctx.job_id

    def cancel(self) -> str:
        """Cancel the active job; raises NotRunningError when idle."""
        return self._runner.cancel()

    def status(self) -> dict[str, Any]:
        return self._runner.status()

    def wait(self, timeout: Optional[float] = None) -> Optional[JobState]:
        """Block until the last started job ends; returns its final state."""
        if self._future is None:
            return None
        return self._future.result(timeout)

    def shutdown(self, wait: bool = True) -> None:
        """Cancel any active job and stop the worker thread."""
        if self._runner.is_processing:
            try:
                self._runner.cancel()
            except NotRunningError:
                # Finished in the meantime.
                pass
        self._executor.shutdown(wait=wait)

    def __enter__(self) -> "ImportController":
        return self

    def __exit__(self, *args) -> None:
        self.shutdown()
