"""Core domain models, configuration, events and protocols."""
from .protocols import (
    Destination,
    UploadService,
    ProgressReporter,
)
from .models import (
    MediaType,
    FileRecord,
    DestinationResult,
    FileOutcome,
    JobPhase,
    JobState,
    UploadReport,
    SUPPORTED_EXTENSIONS,
)
from .config import (
    DestinationType,
    DestinationConfig,
    FolderOrganizationConfig,
    ImportOptions,
    ImportJobConfig,
)
from .events import EventType, ImportEvent, EventChannel, JobEventEmitter
from .errors import (
    OffloadError,
    ConfigurationError,
    SourceInvalidError,
    AlreadyRunningError,
    NotRunningError,
    InvalidTransitionError,
    JobCancelled,
    WorkerBusyError,
)

__all__ = [
    # Protocols
    "Destination",
    "UploadService",
    "ProgressReporter",
    # Models
    "MediaType",
    "FileRecord",
    "DestinationResult",
    "FileOutcome",
    "JobPhase",
    "JobState",
    "UploadReport",
    "SUPPORTED_EXTENSIONS",
    # Config
    "DestinationType",
    "DestinationConfig",
    "FolderOrganizationConfig",
    "ImportOptions",
    "ImportJobConfig",
    # Events
    "EventType",
    "ImportEvent",
    "EventChannel",
    "JobEventEmitter",
    # Errors
    "OffloadError",
    "ConfigurationError",
    "SourceInvalidError",
    "AlreadyRunningError",
    "NotRunningError",
    "InvalidTransitionError",
    "JobCancelled",
    "WorkerBusyError",
]
