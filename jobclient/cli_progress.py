"""Console rendering and progress helpers for jobclient CLI."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Optional
import time

from rich.console import Console
from rich.live import Live
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    Progress,
    SpinnerColumn,
    TaskID,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table

from .models import Job, JobState


console = Console()

_STATE_STYLE = {
    JobState.IDLE: "white",
    JobState.PRESIGNING: "cyan",
    JobState.UPLOADING: "cyan",
    JobState.POLLING: "blue",
    JobState.COMPLETED: "green",
    JobState.FAILED: "red",
}


def _echo(message: str) -> None:
    console.print(message)


def human_size(value: int) -> str:
    size = float(max(value, 0))
    units = ["B", "KB", "MB", "GB", "TB"]
    unit_idx = 0
    while size >= 1024.0 and unit_idx < len(units) - 1:
        size /= 1024.0
        unit_idx += 1
    if unit_idx == 0:
        return f"{int(size)} {units[unit_idx]}"
    return f"{size:.2f} {units[unit_idx]}"


def render_configuration_summary(config: Dict[str, Any]) -> None:
    """Render startup configuration summary."""
    table = Table.grid(padding=(0, 2))
    table.add_column(style="bold cyan", justify="right")
    table.add_column(style="white")

    for key, value in config.items():
        rendered = "-" if value is None else str(value)
        table.add_row(key, rendered)

    panel = Panel(
        table,
        title="[bold green]jobclient[/bold green]",
        subtitle="[dim]presigned job client[/dim]",
        border_style="blue",
    )
    console.print(panel)


class JobProgressDisplay:
    """Renders orchestrator ``job`` events as a single live progress line."""

    def __init__(self, file_path: Path, live: bool = True):
        self.file_path = Path(file_path)
        self.filename = self.file_path.name
        self._last_state: Optional[JobState] = None
        self._task_id: Optional[TaskID] = None
        self._live: Optional[Live] = None
        self._progress: Optional[Progress] = None
        if live:
            self._progress = Progress(
                SpinnerColumn(),
                TextColumn("[bold cyan]{task.fields[filename]}", justify="left"),
                TextColumn("{task.fields[phase]}"),
                BarColumn(bar_width=42),
                TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
                TimeElapsedColumn(),
                expand=False,
                console=console,
            )

    def start(self) -> None:
        if self._progress is None or self._live is not None:
            return
        self._live = Live(self._progress, console=console, refresh_per_second=5)
        self._live.start()
        self._task_id = self._progress.add_task(
            "job",
            filename=self.filename[:60],
            phase="starting",
            total=100,
        )

    def stop(self) -> None:
        if self._live is not None:
            self._live.stop()
            self._live = None

    def on_job(self, job: Job) -> None:
        if job.state != self._last_state:
            stamp = time.strftime("%H:%M:%S")
            style = _STATE_STYLE.get(job.state, "white")
            suffix = f" job={job.job_id}" if job.job_id else ""
            console.log(f"[dim]{stamp}[/dim] [{style}]{job.state.name}[/{style}]{suffix}")
            self._last_state = job.state

        if self._progress is None or self._task_id is None:
            return
        phase = job.remote_state.value if job.remote_state else job.state.name.lower()
        self._progress.update(
            self._task_id,
            phase=phase,
            completed=job.progress_percent or 0,
        )

    def finish(self, job: Job) -> None:
        self.stop()
        if job.state is JobState.COMPLETED:
            _echo(f"[green]Completed:[/green] {self.filename} -> {job.output_key or '(no output key)'}")
        elif job.state is JobState.FAILED:
            _echo(f"[red]Failed:[/red] {self.filename} - {job.last_error}")
        else:
            _echo(f"[yellow]Stopped:[/yellow] {self.filename} (left in {job.state.name})")
