"""Tests for Rich progress reporter."""
from datetime import datetime
from io import StringIO
from pathlib import Path

import pytest
from rich.console import Console

from offload.core.events import EventType, ImportEvent
from offload.core.models import FileRecord, MediaType
from offload.logging.rich_logger import QuietProgressReporter, RichProgressReporter
from offload.services.scanner import summarize


def event(event_type: EventType, **data) -> ImportEvent:
    return ImportEvent(event_type, data, job_id="job")


def result(**overrides) -> dict:
    base = {
        "totalFiles": 3,
        "processedFiles": 3,
        "successfulFiles": 2,
        "failedFiles": 1,
        "skippedFiles": 1,
        "bytesProcessed": 2048,
        "errors": ["c.jpg (Backup): disk full"],
        "uploadQueueCount": 0,
    }
    base.update(overrides)
    return base


class TestRichProgressReporter:
    """Tests for Rich progress reporter."""

    @pytest.fixture
    def output(self):
        return StringIO()

    @pytest.fixture
    def reporter(self, output):
        """Create a reporter writing to a buffer."""
        return RichProgressReporter(console=Console(file=output, width=120, force_terminal=False))

    @pytest.fixture
    def verbose_reporter(self, output):
        return RichProgressReporter(verbose=True, console=Console(file=output, width=120, force_terminal=False))

    def test_create_default(self):
        reporter = RichProgressReporter()
        assert reporter._verbose is False
        assert reporter._progress is None

    def test_start_and_end_phase(self, reporter):
        reporter.start_phase("Copying", 10)
        assert reporter._progress is not None
        assert reporter._task_id is not None
        reporter.update_phase(5, "a.jpg")
        reporter.end_phase()
        assert reporter._progress is None

    def test_update_without_phase(self, reporter):
        reporter.update_phase(5)

    def test_copying_progress_starts_bar(self, reporter):
        reporter.handle(event(EventType.PROGRESS, phase="scanning", totalFiles=0, processedFiles=0))
        assert reporter._progress is None
        reporter.handle(event(EventType.PROGRESS, phase="copying", totalFiles=3, processedFiles=0))
        assert reporter._progress is not None
        reporter.handle(event(EventType.PROGRESS, phase="copying", totalFiles=3, processedFiles=1, currentFile="a.jpg"))
        reporter.handle(event(EventType.COMPLETED, result=result()))
        assert reporter._progress is None

    def test_completed_prints_summary(self, reporter, output):
        reporter.handle(event(EventType.COMPLETED, result=result()))
        text = output.getvalue()
        assert "Import completed" in text
        assert "Import Summary" in text
        assert "2 KB" in text
        assert "c.jpg (Backup): disk full" in text

    def test_upload_summary(self, reporter, output):
        reporter.print_summary(result(upload={"uploaded": 4, "skipped": 1, "failed": 0}))
        assert "Uploaded" in output.getvalue()

    def test_queue_count_summary(self, reporter, output):
        reporter.print_summary(result(uploadQueueCount=3))
        assert "Queued for Upload" in output.getvalue()

    def test_error_list_truncated(self, reporter, output):
        reporter.print_summary(result(errors=[f"file{i}.jpg: boom" for i in range(15)]))
        assert "... and 5 more errors" in output.getvalue()

    def test_error_event(self, reporter, output):
        reporter.handle(event(EventType.ERROR, message="Source directory does not exist"))
        assert "Source directory does not exist" in output.getvalue()

    def test_cancelled_event(self, reporter, output):
        reporter.handle(event(EventType.CANCELLED, result=result(wasCancelled=True)))
        assert "Import cancelled" in output.getvalue()

    def test_upload_ready(self, reporter, output):
        reporter.handle(event(EventType.UPLOAD_READY, count=3, filePaths=[]))
        assert "3 files queued for upload" in output.getvalue()

    def test_log_only_verbose(self, reporter, verbose_reporter, output):
        reporter.handle(event(EventType.LOG, message="quiet line"))
        assert "quiet line" not in output.getvalue()
        verbose_reporter.handle(event(EventType.LOG, message="loud line"))
        assert "loud line" in output.getvalue()

    def test_status_event(self, reporter, output):
        reporter.handle(ImportEvent(EventType.STATUS, {"isProcessing": True, "currentJob": "job-9"}))
        assert "job-9" in output.getvalue()

    def test_scan_summary(self, reporter, output):
        records = [
            FileRecord("a.jpg", Path("/c/a.jpg"), "a.jpg", 1024, MediaType.IMAGE, ".jpg",
                       created=datetime(2020, 1, 1)),
            FileRecord("b.mov", Path("/c/b.mov"), "b.mov", 4096, MediaType.VIDEO, ".mov",
                       created=datetime(2024, 6, 1)),
        ]
        reporter.print_scan_summary(summarize(records))
        text = output.getvalue()
        assert "Source Contents" in text
        assert "Largest: b.mov (4 KB)" in text
        assert "2020-01-01 to 2024-06-01" in text

    def test_formats(self, reporter, output):
        reporter.print_formats({"YYYY/mon": "2025/may"}, datetime(2025, 5, 26))
        text = output.getvalue()
        assert "2025-05-26" in text
        assert "2025/may" in text

    def test_context_manager(self, reporter):
        with reporter:
            reporter.start_phase("Copying", 1)
        assert reporter._progress is None


class TestQuietProgressReporter:
    """Tests for quiet reporter."""

    def test_only_errors(self, capsys):
        reporter = QuietProgressReporter()
        reporter.handle(event(EventType.LOG, message="hidden"))
        reporter.handle(event(EventType.COMPLETED, result=result()))
        reporter.handle(event(EventType.ERROR, message="broken"))
        reporter.info("hidden")
        reporter.print_summary(result())
        captured = capsys.readouterr()
        assert captured.out == ""
        assert "ERROR: broken" in captured.err
        assert "hidden" not in captured.err

    def test_warning(self, capsys):
        QuietProgressReporter().warning("careful")
        assert "WARNING: careful" in capsys.readouterr().err
