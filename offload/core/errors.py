"""Exception hierarchy for the import pipeline."""
from __future__ import annotations


class OffloadError(Exception):
    """Base class for all offload errors."""


class ConfigurationError(OffloadError):
    """Job configuration could not be parsed or is incomplete."""


class SourceInvalidError(OffloadError):
    """Source path is missing, not a directory, or unreadable."""


class AlreadyRunningError(OffloadError):
    """A job is already in progress on this runner."""

    def __init__(self, job_id: str | None = None):
        self.job_id = job_id
        super().__init__("Import already in progress")


class NotRunningError(OffloadError):
    """Cancellation requested while no job is active."""

    def __init__(self) -> None:
        super().__init__("No import in progress")


class InvalidTransitionError(OffloadError):
    """A job phase transition outside the state machine."""


class JobCancelled(OffloadError):
    """Raised at a checkpoint once cancellation has been requested."""

    def __init__(self, checkpoint: str = ""):
        self.checkpoint = checkpoint
        super().__init__(f"Cancelled at {checkpoint}" if checkpoint else "Cancelled")


class WorkerBusyError(OffloadError):
    """The upload worker already has a batch in flight."""

    def __init__(self) -> None:
        super().__init__("Worker is busy")
