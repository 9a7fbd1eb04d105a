from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path

from loguru import logger

from incbackup.config import BackupConfig
from incbackup.errors import BackupError
from incbackup.filters import NameExclusions, build_exclusions
from incbackup.generations import (
    IN_PROGRESS_SUFFIX,
    Generation,
    backup_lock,
    check_source_layout,
    create_working_directory,
    finalize_generation,
    generation_name,
    latest_generation,
    source_subdirectory,
)
from incbackup.models import BackupEvent, CopyStats, EventKind
from incbackup.stats_log import append_stats
from incbackup.visitors import (
    DEFAULT_MIN_DIFF_SECS,
    CopyVisitor,
    EventSink,
    LinkOrCopyVisitor,
    scan_prior_generation,
)
from incbackup.walker import walk


@dataclass(slots=True)
class SourceResult:
    source: Path
    destination: Path
    previous: Path | None
    stats: CopyStats


@dataclass(slots=True)
class BackupResult:
    generation: Path
    previous: Generation | None
    stats: CopyStats = field(default_factory=CopyStats)
    sources: list[SourceResult] = field(default_factory=list)
    stats_file: Path | None = None
    stats_error: str | None = None


def backup_source(
    source: Path,
    destination: Path,
    previous: Path | None,
    exclusions: NameExclusions,
    *,
    min_diff_secs: int = DEFAULT_MIN_DIFF_SECS,
    on_event: EventSink | None = None,
) -> CopyStats:
    """Mirror one source tree into ``destination``.

    Files unchanged since ``previous`` (the same source inside the prior
    generation) are hardlinked; without a prior counterpart everything is copied.
    OSErrors propagate and leave whatever was already written in place.
    """
    destination.mkdir(parents=True, exist_ok=True)
    stats = CopyStats()

    if previous is not None and previous.is_dir():
        prior_files = scan_prior_generation(previous, exclusions)
        logger.info(f"Previous copy of {source}: {previous} ({len(prior_files)} files)")
        visitor = LinkOrCopyVisitor(
            prior_files,
            source,
            destination,
            previous,
            min_diff_secs=min_diff_secs,
            stats=stats,
            on_event=on_event,
        )
    else:
        logger.info(f"No previous copy of {source}; copying everything")
        visitor = CopyVisitor(source, destination, stats=stats, on_event=on_event)

    walk(source, exclusions, visitor)
    return stats


def run_backup(
    config: BackupConfig,
    *,
    on_event: EventSink | None = None,
    now: datetime | None = None,
) -> BackupResult:
    config.validate()
    backup_root = config.backup_root_path
    sources = config.source_paths
    exclusions = build_exclusions(config.exclude)
    check_source_layout(sources)

    if not backup_root.exists():
        backup_root.mkdir(parents=True)
        logger.info(f"Created backup directory {backup_root}")

    with backup_lock(backup_root):
        previous = latest_generation(backup_root)
        started_at = now or datetime.now()
        try:
            working, final = create_working_directory(backup_root, started_at)
        except OSError as exc:
            raise BackupError(f"Failed to create directory for this backup: {exc}") from exc

        logger.info(f"Backup directory: {working}")
        if previous is None:
            logger.info("First backup, everything will be copied")
        if on_event is not None:
            on_event(
                BackupEvent(
                    kind=EventKind.GENERATION,
                    path=working,
                    target=previous.path if previous is not None else None,
                )
            )

        result = BackupResult(generation=final, previous=previous)
        for source in sources:
            destination = source_subdirectory(source, working)
            prior = source_subdirectory(source, previous.path) if previous is not None else None
            if on_event is not None:
                on_event(BackupEvent(kind=EventKind.SOURCE, path=source, target=destination))

            try:
                stats = backup_source(
                    source,
                    destination,
                    prior,
                    exclusions,
                    min_diff_secs=config.min_diff_secs,
                    on_event=on_event,
                )
            except OSError as exc:
                raise BackupError(
                    f"Error occurred for source directory {source} while doing backup: {exc}"
                ) from exc

            result.stats += stats
            result.sources.append(
                SourceResult(source=source, destination=destination, previous=prior, stats=stats)
            )

        try:
            finalize_generation(working, final)
        except OSError as exc:
            raise BackupError(
                f"Failed to remove {IN_PROGRESS_SUFFIX} from directory {working}: {exc}"
            ) from exc

    if config.stats_file_path is not None:
        try:
            result.stats_file = append_stats(config.stats_file_path, generation_name(started_at), result.stats)
        except OSError as exc:
            logger.error(f"Failed to write stats file {config.stats_file_path}: {exc}")
            result.stats_error = str(exc)

    return result
