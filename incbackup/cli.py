from __future__ import annotations

from pathlib import Path

import typer
from loguru import logger
from rich.console import Console
from rich.markup import escape

from incbackup.config import build_config, default_log_level, load_config
from incbackup.errors import BackupError
from incbackup.generations import list_generations, list_unfinished
from incbackup.report import BackupReporter, render_generations, render_summary
from incbackup.runner import run_backup
from incbackup.utils import setup_logging


app = typer.Typer(help="Incremental hardlink backups")
console = Console()


def _run(
    backup_path: str | None,
    sources: tuple[str, ...],
    exclude: tuple[str, ...],
    stats_path: str | None,
    min_diff_secs: int | None,
    verbose: bool,
    config_file: str | None,
) -> int:
    try:
        file_values = load_config(Path(config_file)) if config_file else None
        config = build_config(
            file_values,
            backup_root=backup_path,
            sources=list(sources),
            exclude=list(exclude),
            stats_path=stats_path,
            min_diff_secs=min_diff_secs,
            verbose=verbose or None,
        )
    except (FileNotFoundError, BackupError) as exc:
        console.print(f"[red]{escape(str(exc))}[/red]")
        return 1

    reporter = BackupReporter(console, verbose=config.verbose)
    try:
        result = run_backup(config, on_event=reporter)
    except KeyboardInterrupt:
        console.print(
            "[yellow]Backup interrupted.[/yellow] The -inprogress directory was left in place."
        )
        return 130
    except BackupError as exc:
        logger.error(str(exc))
        console.print(f"[red]{escape(str(exc))}[/red]")
        return 1
    except Exception as exc:
        logger.exception("Backup failed")
        console.print(f"[red]Backup failed:[/red] {escape(str(exc))}")
        return 1

    render_summary(console, result, reporter)
    return 0


@app.command()
def run(
    backup_path: str | None = typer.Argument(
        None,
        help="Directory holding the generations. May come from --config instead.",
    ),
    sources: list[str] | None = typer.Option(
        None,
        "--dir",
        "-d",
        help="The source directories to be included in the backup (repeatable).",
    ),
    exclude: list[str] | None = typer.Option(
        None,
        "--exclude",
        "-x",
        help="Any files or directories with one of these names will be excluded from the backup (repeatable).",
    ),
    stats_path: str | None = typer.Option(
        None,
        "--stats",
        "-s",
        help="Append stats to this file as comma-separated values (date,total_bytes_copied,total_files_copied).",
    ),
    min_diff_secs: int | None = typer.Option(
        None,
        "--min-diff",
        "-m",
        help="If the file modification time differs by at least this many seconds, the file is copied. [default: 1]",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Also report every hardlink and directory created.",
    ),
    config_file: str | None = typer.Option(
        None,
        "--config",
        "-c",
        help="JSON file with default values for these options.",
    ),
    log_level: str | None = typer.Option(
        None,
        "--log-level",
        help="Log level for stderr diagnostics (default: $INCBACKUP_LOG_LEVEL or WARNING).",
    ),
    log_file: str | None = typer.Option(
        None,
        "--log-file",
        help="Also append detailed logs to this file.",
    ),
) -> None:
    """Create a new generation, hardlinking files unchanged since the previous one."""
    setup_logging(log_level or default_log_level(), Path(log_file) if log_file else None)
    raise typer.Exit(
        code=_run(
            backup_path,
            tuple(sources or ()),
            tuple(exclude or ()),
            stats_path,
            min_diff_secs,
            verbose,
            config_file,
        )
    )


@app.command()
def generations(backup_path: str) -> None:
    """List the generations stored in a backup directory."""
    root = Path(backup_path).expanduser()
    if not root.is_dir():
        console.print(f"[red]Backup directory does not exist: {escape(str(root))}[/red]")
        raise typer.Exit(code=1)
    render_generations(console, list_generations(root), list_unfinished(root))
