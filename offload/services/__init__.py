"""Service layer - scanning, routing, the job runner and the upload hand-off."""
from .scanner import (
    DirectoryScanner,
    ScanSummary,
    SourceValidation,
    validate_source,
    summarize,
    format_file_size,
    estimate_duration,
    format_duration,
)
from .folders import resolve_folder, format_date_folder, DATE_FORMATS
from .file_ops import FileManager
from .destinations import CopyDestination, RemoteHandoffDestination, QueuedUpload, create_destination
from .router import DestinationRouter
from .cancellation import CancellationToken
from .runner import PipelineRunner, JobContext
from .controller import ImportController
from .upload import (
    UploadHandoff,
    UploadBatch,
    UploadServiceRegistry,
    RemoteServiceBase,
    mime_type_for,
    remote_name_for,
)

__all__ = [
    # Scanning
    "DirectoryScanner",
    "ScanSummary",
    "SourceValidation",
    "validate_source",
    "summarize",
    "format_file_size",
    "estimate_duration",
    "format_duration",
    # Folders and files
    "resolve_folder",
    "format_date_folder",
    "DATE_FORMATS",
    "FileManager",
    # Destinations
    "CopyDestination",
    "RemoteHandoffDestination",
    "QueuedUpload",
    "create_destination",
    "DestinationRouter",
    # Jobs
    "CancellationToken",
    "PipelineRunner",
    "JobContext",
    "ImportController",
    # Upload
    "UploadHandoff",
    "UploadBatch",
    "UploadServiceRegistry",
    "RemoteServiceBase",
    "mime_type_for",
    "remote_name_for",
]
