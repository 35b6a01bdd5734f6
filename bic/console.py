from __future__ import annotations

from typing import List, Optional

from rich.console import Console
from rich.markup import escape
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    TextColumn,
    TimeElapsedColumn,
    TimeRemainingColumn,
)

from .batch import BatchSummary
from .results import FileTask, ProcessResult


def format_bytes(n: int) -> str:
    """1536 -> '1.50 KB', 3 MiB -> '3.00 MB'. Negative values stay negative."""
    if abs(n) >= 1048576:
        return f"{n / 1048576:.2f} MB"
    return f"{n / 1024:.2f} KB"


def format_duration(seconds: float) -> str:
    if seconds < 60:
        return f"{seconds:.2f}s"
    minutes, rest = divmod(seconds, 60)
    return f"{int(minutes)}m {rest:.1f}s"


class ConsoleReporter:
    """
    Human readable run output.

    blue = counts, green = success, yellow = skips and advisories,
    red = errors.
    """

    def __init__(self, console: Optional[Console] = None) -> None:
        self.console = console or Console(highlight=False)

    def found(self, tasks: List[FileTask], large_batch_threshold: int) -> None:
        count = len(tasks)
        self.console.print(f"[blue]Found {count} files in the input directory.[/blue]")
        if count > large_batch_threshold:
            self.console.print(
                f"[yellow]Processing more than {large_batch_threshold} files, "
                f"this may take some time...[/yellow]"
            )

    def result(self, r: ProcessResult) -> None:
        name = escape(r.out_path.name)
        if r.status == "converted":
            self.console.print(f"[green]Image processed: {name}[/green]")
            self.console.print(
                f"Compressed from: {format_bytes(r.src_bytes)} ==> {format_bytes(r.out_bytes)}"
            )
        elif r.status == "skipped":
            self.console.print(f"[yellow]Image already exists, skipping: {name}[/yellow]")
        else:
            self.console.print(
                f"[red]Error processing image {escape(r.src_path.name)}: {escape(r.error or '')}[/red]"
            )

    def summary(self, s: BatchSummary) -> None:
        if s.cancelled:
            self.console.print("[yellow]Run cancelled, remaining files were not processed.[/yellow]")

        self.console.print(f"[green]Job done! {s.total_files} files compressed.[/green]")
        if s.skipped or s.failed:
            self.console.print(
                f"[blue]Converted: {s.converted}  Skipped: {s.skipped}[/blue]  "
                f"[red]Failed: {s.failed}[/red]"
            )
        self.console.print(f"[green]Hooray! {format_bytes(s.saved_bytes)} saved.[/green]")
        self.console.print(f"Image processing time: {format_duration(s.elapsed_seconds)}")

    def error(self, message: str) -> None:
        self.console.print(f"[red]{escape(message)}[/red]")

    def progress(self) -> Progress:
        return Progress(
            TextColumn("{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TextColumn("•"),
            TimeElapsedColumn(),
            TextColumn("•"),
            TimeRemainingColumn(),
            console=self.console,
        )
