from __future__ import annotations

import os
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Iterator

from loguru import logger

from incbackup.errors import BackupLockedError, SourceLayoutError


GENERATION_FORMAT = "%Y-%m-%d %H-%M-%S"
IN_PROGRESS_SUFFIX = "-inprogress"
LOCK_FILENAME = ".incbackup.lock"


@dataclass(slots=True, frozen=True)
class Generation:
    name: str
    path: Path
    started_at: datetime


def generation_name(started_at: datetime) -> str:
    return started_at.strftime(GENERATION_FORMAT)


def parse_generation_name(name: str) -> datetime | None:
    try:
        return datetime.strptime(name, GENERATION_FORMAT)
    except ValueError:
        return None


def list_generations(backup_root: Path) -> list[Generation]:
    """Completed generations under ``backup_root``, oldest first."""
    generations: list[Generation] = []
    with os.scandir(backup_root) as entries:
        for entry in entries:
            if not entry.is_dir(follow_symlinks=False):
                continue
            started_at = parse_generation_name(entry.name)
            if started_at is None:
                continue
            generations.append(Generation(name=entry.name, path=Path(entry.path), started_at=started_at))
    return sorted(generations, key=lambda g: g.started_at)


def list_unfinished(backup_root: Path) -> list[Path]:
    unfinished: list[Path] = []
    for path in sorted(Path(backup_root).iterdir()):
        if not path.is_dir() or not path.name.endswith(IN_PROGRESS_SUFFIX):
            continue
        if parse_generation_name(path.name[: -len(IN_PROGRESS_SUFFIX)]) is not None:
            unfinished.append(path)
    return unfinished


def latest_generation(backup_root: Path) -> Generation | None:
    generations = list_generations(backup_root)
    return generations[-1] if generations else None


def create_working_directory(backup_root: Path, started_at: datetime) -> tuple[Path, Path]:
    """Create the in-progress directory for a run; return it with its final path."""
    name = generation_name(started_at)
    final = Path(backup_root) / name
    working = Path(backup_root) / f"{name}{IN_PROGRESS_SUFFIX}"
    if final.exists():
        raise FileExistsError(f"Generation already exists: {final}")
    working.mkdir()
    return working, final


def finalize_generation(working: Path, final: Path) -> Path:
    os.rename(working, final)
    logger.info(f"Finalized generation {final}")
    return final


def source_leaf(source_root: Path) -> str:
    return Path(os.path.abspath(source_root)).name


def source_subdirectory(source_root: Path, base: Path) -> Path:
    """Where ``source_root`` lives inside a generation rooted at ``base``.

    Sources are stored under their leaf name; a source without one (a
    filesystem root) is stored directly in ``base``.
    """
    leaf = source_leaf(source_root)
    return Path(base) / leaf if leaf else Path(base)


def check_source_layout(sources: list[Path] | tuple[Path, ...]) -> None:
    seen: dict[str, Path] = {}
    for source in sources:
        leaf = source_leaf(source)
        if not leaf and len(sources) > 1:
            raise SourceLayoutError(
                f"Source directory {source} has no final name and would be stored in the "
                "generation root, overlapping the other sources; back it up on its own."
            )
        if leaf in seen:
            raise SourceLayoutError(
                f"Source directories {seen[leaf]} and {source} would both be stored as "
                f"{leaf!r}; give them distinct final names."
            )
        seen[leaf] = source


@contextmanager
def backup_lock(backup_root: Path) -> Iterator[Path]:
    lock_path = Path(backup_root) / LOCK_FILENAME
    try:
        fd = os.open(lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
    except FileExistsError as exc:
        raise BackupLockedError(
            f"Another backup appears to be running in {backup_root} (lock file {lock_path}). "
            "Remove the lock file if no run is active."
        ) from exc
    try:
        os.write(fd, f"{os.getpid()}\n".encode("ascii"))
    finally:
        os.close(fd)

    try:
        yield lock_path
    finally:
        lock_path.unlink(missing_ok=True)
