"""Media import pipeline: scan a source, fan files out to local, backup and
remote-upload destinations, report progress and honor cancellation.
"""

__version__ = "1.0.0"

# Core exports
from .core.config import (
    DestinationType,
    DestinationConfig,
    FolderOrganizationConfig,
    ImportOptions,
    ImportJobConfig,
)
from .core.models import FileRecord, DestinationResult, JobPhase, JobState, MediaType
from .core.events import EventType, ImportEvent, EventChannel
from .core.protocols import Destination, UploadService, ProgressReporter
from .core.errors import OffloadError

# Service exports
from .services.scanner import DirectoryScanner
from .services.router import DestinationRouter
from .services.runner import PipelineRunner
from .services.controller import ImportController
from .services.upload import UploadHandoff, UploadServiceRegistry, RemoteServiceBase

# Logging exports
from .logging.rich_logger import RichProgressReporter

__all__ = [
    # Core
    "DestinationType",
    "DestinationConfig",
    "FolderOrganizationConfig",
    "ImportOptions",
    "ImportJobConfig",
    "FileRecord",
    "DestinationResult",
    "JobPhase",
    "JobState",
    "MediaType",
    "EventType",
    "ImportEvent",
    "EventChannel",
    "Destination",
    "UploadService",
    "ProgressReporter",
    "OffloadError",
    # Services
    "DirectoryScanner",
    "DestinationRouter",
    "PipelineRunner",
    "ImportController",
    "UploadHandoff",
    "UploadServiceRegistry",
    "RemoteServiceBase",
    # Logging
    "RichProgressReporter",
]
