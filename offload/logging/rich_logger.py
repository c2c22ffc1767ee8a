"""Rich-based progress reporter rendering import events."""
from __future__ import annotations

import sys
import time
from collections import deque
from datetime import datetime
from typing import Any, Optional

from rich.console import Console
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    ProgressColumn,
    SpinnerColumn,
    Task,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)
from rich.table import Table
from rich.text import Text

from ..core.events import EventType, ImportEvent
from ..services.scanner import ScanSummary, estimate_duration, format_duration, format_file_size


class FilesPerSecondColumn(ProgressColumn):
    """Files per second over a rolling window of progress samples."""

    def __init__(self, window_size: int = 10):
        super().__init__()
        self._samples: deque[tuple[float, int]] = deque(maxlen=window_size)

    def render(self, task: Task) -> Text:
        now = time.monotonic()
        completed = int(task.completed)
        if not self._samples or completed > self._samples[-1][1]:
            self._samples.append((now, completed))

        if len(self._samples) >= 2:
            (t0, c0), (t1, c1) = self._samples[0], self._samples[-1]
            if t1 > t0:
                return Text(f"{(c1 - c0) / (t1 - t0):.1f} f/s", style="magenta")
        return Text("-- f/s", style="magenta")


class RichProgressReporter:
    """Progress reporter using Rich for terminal output.

    Feed it events with :meth:`handle`; a progress bar runs while files are
    copied and a summary table is printed when the job ends.
    """

    def __init__(
        self,
        verbose: bool = False,
        console: Optional[Console] = None,
    ):
        """Initialize the reporter.

        Args:
            verbose: Also print per-file log events.
            console: Console to draw on (default: stderr).
        """
        self._console = console or Console(stderr=True)
        self._verbose = verbose
        self._progress: Optional[Progress] = None
        self._task_id: Optional[TaskID] = None
        self._phase = ""

    # --- Events ---

    def handle(self, event: ImportEvent) -> None:
        """Render one import event."""
        data = event.data
        match event.type:
            case EventType.PROGRESS:
                self._on_progress(data)
            case EventType.LOG:
                self.debug(data.get("message", ""))
            case EventType.UPLOAD_READY:
                self.end_phase()
                self.info(f"{data.get('count', 0)} files queued for upload")
            case EventType.COMPLETED:
                self.end_phase()
                self.success("Import completed")
                self.print_summary(data.get("result") or {})
            case EventType.CANCELLED:
                self.end_phase()
                self.warning("Import cancelled")
                if data.get("result"):
                    self.print_summary(data["result"])
            case EventType.ERROR:
                self.end_phase()
                self.error(data.get("message", "Unknown error"))
                if data.get("result"):
                    self.print_summary(data["result"])
            case EventType.STATUS:
                self.print_config({
                    "Processing": data.get("isProcessing"),
                    "Current Job": data.get("currentJob") or "-",
                })

    def _on_progress(self, data: dict[str, Any]) -> None:
        phase = data.get("phase", "")
        if phase != self._phase:
            self.end_phase()
            self._phase = phase
            if phase == "copying":
                self.start_phase("Copying", data.get("totalFiles", 0))
            elif phase == "scanning":
                self.info("Scanning source...")
        if self._progress is not None:
            self.update_phase(data.get("processedFiles", 0), data.get("currentFile"))

    # --- Phase Management ---

    def start_phase(self, name: str, total: int) -> None:
        """Start a progress bar."""
        self._progress = Progress(
            SpinnerColumn(),
            TextColumn("[bold blue]{task.description}"),
            BarColumn(bar_width=40),
            MofNCompleteColumn(),
            TextColumn("[cyan]•"),
            FilesPerSecondColumn(),
            TextColumn("[cyan]•"),
            TimeElapsedColumn(),
            TextColumn("[cyan]•"),
            TimeRemainingColumn(),
            console=self._console,
            transient=False,
        )
        self._progress.start()
        self._task_id = self._progress.add_task(name, total=total)

    def update_phase(self, completed: int, description: Optional[str] = None) -> None:
        if self._progress is None or self._task_id is None:
            return
        if description:
            self._progress.update(self._task_id, completed=completed, description=description)
        else:
            self._progress.update(self._task_id, completed=completed)

    def end_phase(self) -> None:
        if self._progress is not None:
            self._progress.stop()
            self._progress = None
            self._task_id = None

    # --- Logging Methods ---

    def info(self, message: str) -> None:
        self._console.print(f"[blue]ℹ[/blue] {message}")

    def success(self, message: str) -> None:
        self._console.print(f"[green]✓[/green] {message}")

    def warning(self, message: str) -> None:
        self._console.print(f"[yellow]⚠[/yellow] {message}")

    def error(self, message: str) -> None:
        self._console.print(f"[red]✗[/red] {message}", style="red")

    def debug(self, message: str) -> None:
        """Only shown in verbose mode."""
        if self._verbose and message:
            self._console.print(f"[dim]  {message}[/dim]")

    # --- Specialized Output ---

    def print_header(self, title: str) -> None:
        self._console.print(Panel(Text(title, style="bold cyan"), border_style="cyan"))

    def print_config(self, config_items: dict) -> None:
        table = Table(title="Configuration", show_header=True, header_style="bold")
        table.add_column("Setting", style="cyan")
        table.add_column("Value", style="white")
        for key, value in config_items.items():
            table.add_row(key, str(value))
        self._console.print(table)

    def print_summary(self, result: dict[str, Any]) -> None:
        """Print the final counters of a job."""
        table = Table(title="Import Summary", show_header=False)
        table.add_column("Metric", style="cyan")
        table.add_column("Count", style="green", justify="right")

        table.add_row("Total Files", str(result.get("totalFiles", 0)))
        table.add_row("Processed", str(result.get("processedFiles", 0)))
        table.add_row("Successful", str(result.get("successfulFiles", 0)))
        table.add_row("Skipped (duplicates)", str(result.get("skippedFiles", 0)))
        table.add_row("Failed", str(result.get("failedFiles", 0)))
        table.add_row("Data Copied", format_file_size(result.get("bytesProcessed", 0)))

        upload = result.get("upload")
        if upload:
            table.add_row("", "")
            table.add_row("Uploaded", str(upload.get("uploaded", 0)))
            table.add_row("Upload Skipped", str(upload.get("skipped", 0)))
            table.add_row("Upload Failed", str(upload.get("failed", 0)))
        elif result.get("uploadQueueCount"):
            table.add_row("Queued for Upload", str(result["uploadQueueCount"]))

        self._console.print(table)

        errors = result.get("errors") or []
        for message in errors[:10]:
            self._console.print(f"  [red]•[/red] {message}")
        if len(errors) > 10:
            self._console.print(f"  [dim]... and {len(errors) - 10} more errors[/dim]")

    def print_scan_summary(self, summary: ScanSummary) -> None:
        """Print statistics of a scanned source directory."""
        table = Table(title="Source Contents", show_header=True, header_style="bold")
        table.add_column("Type", style="cyan")
        table.add_column("Files", justify="right")
        table.add_column("Size", justify="right")
        for media_type, (count, size) in sorted(summary.by_type.items(), key=lambda kv: kv[0].value):
            table.add_row(media_type.value, str(count), format_file_size(size))
        table.add_row("[bold]total[/bold]", str(summary.total_files), format_file_size(summary.total_bytes))
        self._console.print(table)

        if summary.largest is not None:
            self.info(f"Largest: {summary.largest.relative_path} ({format_file_size(summary.largest.size)})")
        if summary.oldest is not None and summary.newest is not None:
            self.info(
                f"Dates: {summary.oldest.created:%Y-%m-%d} to {summary.newest.created:%Y-%m-%d}"
            )
        if summary.total_bytes:
            self.info(f"Estimated copy time: {format_duration(estimate_duration(summary.total_bytes))}")

    def print_formats(self, formats: dict[str, str], today: Optional[datetime] = None) -> None:
        """Print date-folder selectors next to their rendering."""
        table = Table(title=f"Date folder formats ({(today or datetime.now()):%Y-%m-%d})")
        table.add_column("Selector", style="cyan")
        table.add_column("Folder", style="white")
        for selector, rendered in formats.items():
            table.add_row(selector, rendered)
        self._console.print(table)

    # --- Context Managers ---

    def __enter__(self) -> "RichProgressReporter":
        return self

    def __exit__(self, *args) -> None:
        self.end_phase()


class QuietProgressReporter:
    """Minimal progress reporter that only shows errors."""

    def handle(self, event: ImportEvent) -> None:
        if event.type == EventType.ERROR:
            self.error(event.data.get("message", "Unknown error"))

    def info(self, message: str) -> None:
        pass

    def success(self, message: str) -> None:
        pass

    def warning(self, message: str) -> None:
        print(f"WARNING: {message}", file=sys.stderr)

    def error(self, message: str) -> None:
        print(f"ERROR: {message}", file=sys.stderr)

    def debug(self, message: str) -> None:
        pass

    def print_header(self, title: str) -> None:
        pass

    def print_config(self, config_items: dict) -> None:
        pass

    def print_summary(self, result: dict[str, Any]) -> None:
        pass

    def print_scan_summary(self, summary: ScanSummary) -> None:
        pass

    def print_formats(self, formats: dict[str, str], today: Optional[datetime] = None) -> None:
        pass

    def __enter__(self) -> "QuietProgressReporter":
        return self

    def __exit__(self, *args) -> None:
        pass
