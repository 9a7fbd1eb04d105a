from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path


@dataclass(slots=True, frozen=True)
class FileRecord:
    path: str
    size: int
    mtime_ns: int


@dataclass(slots=True)
class CopyStats:
    bytes_copied: int = 0
    files_copied: int = 0

    def record_copy(self, size: int) -> None:
        self.bytes_copied += size
        self.files_copied += 1

    def __iadd__(self, other: "CopyStats") -> "CopyStats":
        self.bytes_copied += other.bytes_copied
        self.files_copied += other.files_copied
        return self


class EventKind(str, Enum):
    GENERATION = "generation"
    SOURCE = "source"
    DIRECTORY = "directory"
    COPIED = "copied"
    LINKED = "linked"
    SKIPPED = "skipped"
    INCONCLUSIVE = "inconclusive"


class CopyReason(str, Enum):
    NEW = "new"
    SIZE_CHANGED = "size_changed"
    MTIME_CHANGED = "mtime_changed"
    MTIME_INCONCLUSIVE = "mtime_inconclusive"
    FIRST_GENERATION = "first_generation"


@dataclass(slots=True, frozen=True)
class BackupEvent:
    kind: EventKind
    path: Path
    target: Path | None = None
    size: int = 0
    reason: CopyReason | None = None


# Relative POSIX path (under one source directory of a generation) -> record.
PriorGeneration = dict[str, FileRecord]
