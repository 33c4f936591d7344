"""
Progress bar for batch ingestion, built on Rich.

Usage:
    from audio_catalog.core.progress import IngestProgressBar

    with IngestProgressBar(total=len(paths)) as progress:
        report = await orchestrator.ingest_batch(paths, on_item_done=progress.update_from_result)
"""

from pathlib import Path

from rich import get_console
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TaskID, TextColumn
from rich.theme import Theme

from audio_catalog.ingest.report import ItemResult


PROGRESS_THEME = Theme({
    "bar.back": "grey23",
    "bar.complete": "rgb(165,66,129)",
    "bar.finished": "rgb(114,156,31)",
    "bar.pulse": "rgb(165,66,129)",
})

# Longest file name shown in the "last item" column
_NAME_WIDTH = 28


class IngestProgressBar:
    """
    Displays:
        Ingesting  ✓ 45  ⚠ 3  ✗ 2   ━━━━━━━━━━━━━━━━━  50/100  trackA.mp3
    """

    def __init__(self, total: int, description: str = "Ingesting") -> None:
        self.total = total
        self.succeeded = 0
        self.partial = 0
        self.failed = 0
        self.last_item = ""

        self.console = get_console()
        self.progress = Progress(
            TextColumn("[white]{task.description}"),
            TextColumn("{task.fields[counts]}"),
            BarColumn(bar_width=40),
            MofNCompleteColumn(),
            TextColumn("[grey62]{task.fields[last]}"),
            console=self.console,
            refresh_per_second=10,
        )
        self.description = description
        self.task_id: TaskID | None = None

    def __enter__(self) -> "IngestProgressBar":
        self.console.push_theme(PROGRESS_THEME)
        self.progress.start()
        self.task_id = self.progress.add_task(
            self.description, total=self.total, counts=self.counts_text(), last=""
        )
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.progress.stop()
        self.console.pop_theme()

    @property
    def completed(self) -> int:
        return self.succeeded + self.partial + self.failed

    def counts_text(self) -> str:
        parts = [f"[green]✓ {self.succeeded}[/green]"]
        if self.partial:
            parts.append(f"[yellow]⚠ {self.partial}[/yellow]")
        parts.append(f"[red]✗ {self.failed}[/red]")
        return "  ".join(parts)

    def update_from_result(self, result: ItemResult) -> None:
        """Item callback for Orchestrator.ingest_batch."""
        if not result.succeeded:
            self.failed += 1
        elif result.is_partial:
            self.partial += 1
        else:
            self.succeeded += 1

        name = Path(result.source).name
        if len(name) > _NAME_WIDTH:
            name = name[:_NAME_WIDTH - 1] + "…"
        self.last_item = name

        if self.task_id is not None:
            self.progress.update(
                self.task_id, completed=self.completed, counts=self.counts_text(), last=name
            )
