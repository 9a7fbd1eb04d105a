from __future__ import annotations

import os
import shutil
from pathlib import Path
from typing import Callable

from loguru import logger

from incbackup.errors import InvariantViolation
from incbackup.filters import NameExclusions
from incbackup.models import (
    BackupEvent,
    CopyReason,
    CopyStats,
    EventKind,
    FileRecord,
    PriorGeneration,
)
from incbackup.walker import walk


NS_PER_SECOND = 1_000_000_000
DEFAULT_MIN_DIFF_SECS = 1

EventSink = Callable[[BackupEvent], None]


class TimestampError(ValueError):
    pass


def whole_seconds_since_epoch(mtime_ns: int) -> int:
    if mtime_ns < 0:
        raise TimestampError(f"Timestamp {mtime_ns}ns predates the Unix epoch")
    return mtime_ns // NS_PER_SECOND


def decide(
    size: int,
    mtime_ns: int,
    prior: FileRecord | None,
    min_diff_secs: int = DEFAULT_MIN_DIFF_SECS,
) -> CopyReason | None:
    """Return why a file must be copied, or ``None`` when it can be hardlinked."""
    if prior is None:
        return CopyReason.NEW
    if size != prior.size:
        return CopyReason.SIZE_CHANGED
    try:
        whole_seconds_since_epoch(mtime_ns)
        whole_seconds_since_epoch(prior.mtime_ns)
    except TimestampError:
        return CopyReason.MTIME_INCONCLUSIVE
    # Truncate the gap, not the instants.
    diff = abs(mtime_ns - prior.mtime_ns) // NS_PER_SECOND
    if diff >= min_diff_secs:
        return CopyReason.MTIME_CHANGED
    return None


def relative_key(path: Path, root: Path) -> Path:
    try:
        return path.relative_to(root)
    except ValueError as exc:
        raise InvariantViolation(f"{path} was reported outside of its walk root {root}") from exc


class PriorGenerationScanner:
    """Collects size and modification time of every file under a generation."""

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self.files: PriorGeneration = {}

    def on_file(self, path: Path, stat_result: os.stat_result) -> None:
        relative = relative_key(path, self.root).as_posix()
        self.files[relative] = FileRecord(
            path=relative,
            size=stat_result.st_size,
            mtime_ns=stat_result.st_mtime_ns,
        )

    def on_directory(self, path: Path, stat_result: os.stat_result) -> None:
        # Directory structure is rebuilt from the sources, not the prior generation.
        return None


class CopyVisitor:
    """Mirrors a source tree by copying every file (first generation)."""

    def __init__(
        self,
        source_root: Path,
        dest_root: Path,
        *,
        stats: CopyStats | None = None,
        on_event: EventSink | None = None,
    ) -> None:
        self.source_root = Path(source_root)
        self.dest_root = Path(dest_root)
        self.stats = stats if stats is not None else CopyStats()
        self._on_event = on_event

    def _emit(self, event: BackupEvent) -> None:
        if self._on_event is not None:
            self._on_event(event)

    def on_directory(self, path: Path, stat_result: os.stat_result) -> None:
        dest = self.dest_root / relative_key(path, self.source_root)
        dest.mkdir(parents=True, exist_ok=True)
        self._emit(BackupEvent(kind=EventKind.DIRECTORY, path=path, target=dest))

    def on_file(self, path: Path, stat_result: os.stat_result) -> None:
        dest = self.dest_root / relative_key(path, self.source_root)
        self._copy(path, dest, CopyReason.FIRST_GENERATION)

    def on_other(self, path: Path, stat_result: os.stat_result) -> None:
        logger.warning(f"Skipping {path}: not a regular file or directory")
        self._emit(BackupEvent(kind=EventKind.SKIPPED, path=path))

    def _copy(self, src: Path, dest: Path, reason: CopyReason) -> None:
        shutil.copy2(src, dest)
        size = dest.stat().st_size
        self.stats.record_copy(size)
        logger.debug(f"Copied {src} -> {dest} ({reason.value}, {size} bytes)")
        self._emit(
            BackupEvent(kind=EventKind.COPIED, path=src, target=dest, size=size, reason=reason)
        )


class LinkOrCopyVisitor(CopyVisitor):
    """Hardlinks files unchanged since the prior generation and copies the rest."""

    def __init__(
        self,
        prior_files: PriorGeneration,
        source_root: Path,
        dest_root: Path,
        prior_root: Path,
        *,
        min_diff_secs: int = DEFAULT_MIN_DIFF_SECS,
        stats: CopyStats | None = None,
        on_event: EventSink | None = None,
    ) -> None:
        super().__init__(source_root, dest_root, stats=stats, on_event=on_event)
        self.prior_files = prior_files
        self.prior_root = Path(prior_root)
        self.min_diff_secs = min_diff_secs

    def on_file(self, path: Path, stat_result: os.stat_result) -> None:
        relative = relative_key(path, self.source_root)
        dest = self.dest_root / relative
        prior_path = self.prior_root / relative

        reason = decide(
            stat_result.st_size,
            stat_result.st_mtime_ns,
            self.prior_files.get(relative.as_posix()),
            self.min_diff_secs,
        )
        if reason is CopyReason.MTIME_INCONCLUSIVE:
            logger.warning(f"Cannot compare modification times of {path}; copying it")
            self._emit(BackupEvent(kind=EventKind.INCONCLUSIVE, path=path, target=dest))

        if reason is not None:
            self._copy(path, dest, reason)
            return

        os.link(prior_path, dest)
        logger.debug(f"Linked {dest} -> {prior_path}")
        self._emit(
            BackupEvent(kind=EventKind.LINKED, path=path, target=prior_path, size=stat_result.st_size)
        )


def scan_prior_generation(prior_root: Path, exclusions: NameExclusions) -> PriorGeneration:
    prior_root = Path(prior_root)
    if not prior_root.is_dir():
        return {}
    scanner = PriorGenerationScanner(prior_root)
    walk(prior_root, exclusions, scanner)
    return scanner.files
