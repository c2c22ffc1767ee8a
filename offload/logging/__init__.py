"""Terminal output for import jobs."""
from .rich_logger import FilesPerSecondColumn, QuietProgressReporter, RichProgressReporter

__all__ = ["FilesPerSecondColumn", "QuietProgressReporter", "RichProgressReporter"]
