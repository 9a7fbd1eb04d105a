from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

from rich.console import Console
from rich.filesize import decimal
from rich.markup import escape
from rich.table import Table
from rich.text import Text

from incbackup.generations import Generation, source_leaf
from incbackup.models import BackupEvent, CopyReason, EventKind

if TYPE_CHECKING:
    from incbackup.runner import BackupResult


REASON_LABELS = {
    CopyReason.NEW: "new",
    CopyReason.SIZE_CHANGED: "size changed",
    CopyReason.MTIME_CHANGED: "modified",
    CopyReason.MTIME_INCONCLUSIVE: "timestamp unreadable",
    CopyReason.FIRST_GENERATION: "first backup",
}


class BackupReporter:
    """Renders backup events on a Rich console.

    Copies and warnings are always shown; links and created directories only
    in verbose mode.
    """

    def __init__(self, console: Console | None = None, *, verbose: bool = False) -> None:
        self.console = console or Console()
        self.verbose = verbose
        self.linked_files = 0
        self.linked_bytes = 0
        self.skipped: list[Path] = []

    def __call__(self, event: BackupEvent) -> None:
        handler = getattr(self, f"_on_{event.kind.value}")
        handler(event)

    def _on_generation(self, event: BackupEvent) -> None:
        self.console.print(f"Backup directory: [bold]{escape(str(event.path))}[/bold]")
        if event.target is None:
            self.console.print("[yellow]First backup, everything will be copied[/yellow]")
        else:
            self.console.print(f"Previous backup directory: {escape(str(event.target))}")

    def _on_source(self, event: BackupEvent) -> None:
        self.console.print(
            f'Backing up "[bold]{escape(str(event.path))}[/bold]" to "{escape(str(event.target))}"'
        )

    def _on_directory(self, event: BackupEvent) -> None:
        if self.verbose:
            self.console.print(Text(f"  mkdir {event.target}", style="dim"))

    def _on_copied(self, event: BackupEvent) -> None:
        reason = REASON_LABELS.get(event.reason, "") if event.reason else ""
        line = Text("  copy ", style="green")
        line.append(str(event.path))
        line.append(f" ({decimal(event.size)}", style="dim")
        line.append(f", {reason})" if reason else ")", style="dim")
        self.console.print(line)

    def _on_linked(self, event: BackupEvent) -> None:
        self.linked_files += 1
        self.linked_bytes += event.size
        if self.verbose:
            self.console.print(Text(f"  link {event.path} -> {event.target}", style="cyan"))

    def _on_skipped(self, event: BackupEvent) -> None:
        self.skipped.append(event.path)
        self.console.print(
            Text(f"  skip {event.path} (not a regular file or directory)", style="yellow")
        )

    def _on_inconclusive(self, event: BackupEvent) -> None:
        self.console.print(
            Text(f"  cannot compare modification times of {event.path}; copying", style="yellow")
        )


def render_summary(
    console: Console,
    result: "BackupResult",
    reporter: BackupReporter | None = None,
) -> None:
    table = Table(title=f"Backup {result.generation.name}")
    table.add_column("Source")
    table.add_column("Stored as")
    table.add_column("Files copied", justify="right")
    table.add_column("Bytes copied", justify="right")

    for source_result in result.sources:
        table.add_row(
            escape(str(source_result.source)),
            escape(source_leaf(source_result.source)) or ".",
            str(source_result.stats.files_copied),
            decimal(source_result.stats.bytes_copied),
        )
    console.print(table)

    console.print(f"Total bytes copied: {result.stats.bytes_copied}")
    console.print(f"Total files copied: {result.stats.files_copied}")
    if reporter is not None and reporter.linked_files:
        console.print(
            f"Linked unchanged: {reporter.linked_files} file(s), {decimal(reporter.linked_bytes)}"
        )
    if result.stats_file is not None:
        console.print(f"Stats appended to {escape(str(result.stats_file))}")
    if result.stats_error is not None:
        console.print(f"[red]Failed to write stats file:[/red] {escape(result.stats_error)}")


def render_generations(console: Console, generations: list[Generation], unfinished: list[Path]) -> None:
    if not generations and not unfinished:
        console.print("[yellow]No backups found.[/yellow]")
        return

    table = Table(title="Generations")
    table.add_column("Name")
    table.add_column("Started", justify="right")
    table.add_column("State")

    for generation in generations:
        table.add_row(escape(generation.name), generation.started_at.isoformat(sep=" "), "[green]complete[/green]")
    for path in unfinished:
        table.add_row(escape(path.name), "", "[yellow]in progress / aborted[/yellow]")

    console.print(table)
