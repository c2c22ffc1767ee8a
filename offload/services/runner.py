"""Pipeline runner: the import job state machine.

One job at a time per runner. A job goes

    pending -> scanning -> copying [-> uploading] -> completed

or ends early in ``failed`` or ``cancelled``. All JobState mutation happens
on the thread that calls :meth:`PipelineRunner.execute`; other threads only
request cancellation or read status snapshots.
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

from ..core.config import DestinationType, ImportJobConfig
from ..core.errors import (
    AlreadyRunningError,
    ConfigurationError,
    JobCancelled,
    NotRunningError,
    OffloadError,
    WorkerBusyError,
)
from ..core.events import EventSink, JobEventEmitter
from ..core.models import JobPhase, JobState, UploadFileResult, UploadReport
from ..core.protocols import Destination
from .cancellation import CancellationToken
from .destinations import RemoteHandoffDestination, create_destination
from .file_ops import FileManager
from .router import DestinationRouter
from .scanner import DirectoryScanner
from .upload import UploadBatch, UploadHandoff


logger = logging.getLogger(__name__)


@dataclass
class JobContext:
    """Everything owned by one running job."""
    config: ImportJobConfig
    state: JobState
    token: CancellationToken
    emitter: JobEventEmitter
    destinations: list[Destination] = field(default_factory=list)

    @property
    def job_id(self) -> str:
        return self.config.id


class PipelineRunner:
    """Drives scanning, routing and the upload hand-off for one job at a time."""

    def __init__(
        self,
        sink: EventSink,
        uploader: Optional[UploadHandoff] = None,
        file_manager: Optional[FileManager] = None,
        follow_symlinks: bool = False,
        upload_poll_interval: float = 0.1,
        upload_cancel_timeout: float = 30.0,
    ):
        """Initialize the runner.

        Args:
            sink: Receives every event the runner emits.
            uploader: Upload worker; without one, uploading ends once the
                upload-ready event is out.
            file_manager: Filesystem primitives for copy destinations.
            follow_symlinks: Whether scanning descends into symlinked directories.
            upload_poll_interval: Seconds between cancellation checks while
                waiting on the upload worker.
            upload_cancel_timeout: Seconds to wait for the upload worker to
                stop after a cancel.
        """
        self._sink = sink
        self._uploader = uploader
        self._file_manager = file_manager or FileManager()
        self._follow_symlinks = follow_symlinks
        self._poll_interval = upload_poll_interval
        self._cancel_timeout = upload_cancel_timeout
        self._lock = threading.Lock()
        self._active: Optional[JobContext] = None

    # --- Job lifecycle ---

    @property
    def is_processing(self) -> bool:
        with self._lock:
            return self._active is not None

    @property
    def current_job(self) -> Optional[JobContext]:
        with self._lock:
            return self._active

    def begin(self, config: ImportJobConfig) -> JobContext:
        """Claim the runner for a new job.

        Raises:
            AlreadyRunningError: A job is in progress; nothing changes.
        """
        with self._lock:
            if self._active is not None:
                raise AlreadyRunningError(self._active.job_id)
            ctx = JobContext(
                config=config,
                state=JobState(job_id=config.id),
                token=CancellationToken(),
                emitter=JobEventEmitter(config.id, self._sink),
            )
            self._active = ctx
        logger.info("Job %s accepted: %s", config.id, config.source_path)
        return ctx

    def execute(self, ctx: JobContext) -> JobState:
        """Run a job claimed with :meth:`begin` to a terminal phase."""
        try:
            self._execute(ctx)
        finally:
            with self._lock:
                if self._active is ctx:
                    self._active = None
        return ctx.state

    def run(self, config: ImportJobConfig) -> JobState:
        """Claim and run a job on the calling thread."""
        return self.execute(self.begin(config))

    def cancel(self) -> str:
        """Request cancellation of the active job.

        Returns:
            The cancelled job's id.

        Raises:
            NotRunningError: No job is in progress.
        """
        with self._lock:
            ctx = self._active
        if ctx is None:
            raise NotRunningError()
        logger.info("Job %s: cancellation requested", ctx.job_id)
        ctx.token.cancel()
        if self._uploader is not None:
            self._uploader.cancel(ctx.job_id)
        return ctx.job_id

    def status(self) -> dict[str, Any]:
        """Snapshot for a ``status`` event."""
        ctx = self.current_job
        return {
            "isProcessing": ctx is not None,
            "currentJob": ctx.job_id if ctx is not None else None,
            "progress": ctx.state.progress() if ctx is not None else None,
        }

    # --- Phases ---

    def _execute(self, ctx: JobContext) -> None:
        state, token, emit = ctx.state, ctx.token, ctx.emitter
        config = ctx.config
        router: Optional[DestinationRouter] = None
        try:
            token.raise_if_cancelled("start")
            self._enter(ctx, JobPhase.SCANNING)

            emit.log(f"Scanning {config.source_path}")
            scanner = DirectoryScanner(follow_symlinks=self._follow_symlinks, on_warning=emit.log)
            records = scanner.scan(
                config.source_path,
                recursive=config.options.include_subdirectories,
                allowed_extensions=config.options.file_extensions,
                token=token,
            )
            state.fix_totals(len(records), sum(r.size for r in records))
            if not records:
                emit.log("No supported files found")
                self._finish(ctx)
                return

            router = self._prepare_destinations(ctx)

            emit.log(f"Found {len(records)} files to import")
            self._enter(ctx, JobPhase.COPYING)
            self._copy(ctx, router, records)

            handoffs = [h for h in router.handoffs() if h.get_queue_size() > 0]
            state.upload_queue_count = sum(h.get_queue_size() for h in handoffs)
            if handoffs:
                self._upload(ctx, handoffs)

            self._finish(ctx)

        except JobCancelled as e:
            if state.phase.is_terminal:
                return
            logger.info("Job %s cancelled (%s)", ctx.job_id, e.checkpoint or "checkpoint")
            state.current_file = None
            state.current_destination = ""
            state.transition(JobPhase.CANCELLED)
            emit.log("Import cancelled")
            emit.cancelled(state.result())

        except Exception as e:
            if state.phase.is_terminal:
                logger.exception("Job %s: error after terminal phase", ctx.job_id)
                return
            if isinstance(e, (OffloadError, OSError)):
                logger.error("Job %s failed: %s", ctx.job_id, e)
            else:
                logger.exception("Job %s failed", ctx.job_id)
            message = str(e) or type(e).__name__
            state.add_error(message)
            state.transition(JobPhase.FAILED)
            emit.error(message, state.result())

        finally:
            if router is not None:
                router.cleanup()

    def _enter(self, ctx: JobContext, phase: JobPhase) -> None:
        ctx.state.transition(phase)
        logger.info("Job %s: %s", ctx.job_id, phase.value)
        ctx.emitter.progress(ctx.state.progress())

    def _finish(self, ctx: JobContext) -> None:
        state = ctx.state
        state.current_file = None
        state.current_destination = ""
        state.transition(JobPhase.COMPLETED)
        logger.info(
            "Job %s completed: %d successful, %d failed, %d skipped",
            ctx.job_id, state.successful_files, state.failed_files, state.skipped_files,
        )
        ctx.emitter.log(
            f"Import completed: {state.successful_files} successful, "
            f"{state.failed_files} failed, {state.skipped_files} skipped"
        )
        ctx.emitter.completed(state.result())

    def _prepare_destinations(self, ctx: JobContext) -> DestinationRouter:
        config = ctx.config
        ctx.destinations = [
            create_destination(dest, config.options, self._file_manager)
            for dest in config.destinations
        ]
        router = DestinationRouter(ctx.destinations)
        for message in router.initialize():
            ctx.state.add_error(message)
            ctx.emitter.log(message)
        if not router.active:
            raise ConfigurationError("No destinations are ready")
        names = ", ".join(d.get_display_name() for d in router.active)
        ctx.emitter.log(f"Destinations: {names}")
        return router

    def _copy(self, ctx: JobContext, router: DestinationRouter, records: list) -> None:
        state, token, emit = ctx.state, ctx.token, ctx.emitter
        folder_config = ctx.config.options.folder_organization

        def on_destination(dest: Destination) -> None:
            state.current_destination = dest.get_display_name()

        for record in records:
            token.raise_if_cancelled(f"before {record.name}")
            state.current_file = record.name
            outcome = router.route(record, folder_config, on_destination)
            state.record(outcome)
            for message in outcome.errors:
                emit.log(message)
            emit.progress(state.progress())
            token.raise_if_cancelled(f"after {record.name}")

        state.current_file = None
        state.current_destination = ""

    def _upload(self, ctx: JobContext, handoffs: list[RemoteHandoffDestination]) -> None:
        state, token, emit = ctx.state, ctx.token, ctx.emitter
        token.raise_if_cancelled("before upload hand-off")
        self._enter(ctx, JobPhase.UPLOADING)

        queued = [item for handoff in handoffs for item in handoff.queued]
        emit.upload_ready([str(item.source_path) for item in queued], ctx.config.to_settings())

        if self._uploader is None:
            logger.info("Job %s: no upload worker, %d files left to the caller", ctx.job_id, len(queued))
            return

        local = ctx.config.destination(DestinationType.LOCAL)
        local_root: Optional[Path] = local.path if local is not None else None
        for handoff in handoffs:
            batch = UploadBatch(
                job_id=ctx.job_id,
                items=list(handoff.queued),
                services=handoff.services,
                local_root=local_root,
                skip_duplicates=ctx.config.options.skip_duplicates,
                options=handoff.options,
            )
            report = self._wait_for_upload(ctx, batch)
            if report is None:
                continue
            state.merge_upload_report(report)
            token.raise_if_cancelled("after upload hand-off")

    def _wait_for_upload(self, ctx: JobContext, batch: UploadBatch) -> Optional[UploadReport]:
        token, emit = ctx.token, ctx.emitter
        done = threading.Event()
        reports: list[UploadReport] = []

        def on_complete(report: UploadReport) -> None:
            reports.append(report)
            done.set()

        def on_file(result: UploadFileResult) -> None:
            name = Path(result.path).name
            if result.skipped:
                emit.log(f"{name}: already on {result.service}, skipped")
            elif result.success:
                emit.log(f"{name}: uploaded to {result.service}")
            else:
                emit.log(f"{name}: upload to {result.service} failed: {result.message}")

        try:
            self._uploader.submit(batch, on_complete, on_file)
        except WorkerBusyError as e:
            message = f"Upload not started: {e}"
            logger.warning("Job %s: %s", ctx.job_id, message)
            ctx.state.add_error(message)
            emit.log(message)
            return None

        while not done.wait(self._poll_interval):
            if token.cancelled:
                self._uploader.cancel(ctx.job_id)
                if not done.wait(self._cancel_timeout):
                    logger.warning("Job %s: upload worker did not stop in time", ctx.job_id)
                if reports:
                    ctx.state.merge_upload_report(reports[0])
                token.raise_if_cancelled("upload")
        return reports[0] if reports else None
