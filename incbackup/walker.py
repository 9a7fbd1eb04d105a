from __future__ import annotations

import os
import stat
from pathlib import Path
from typing import Protocol, runtime_checkable

from loguru import logger

from incbackup.filters import NameExclusions


@runtime_checkable
class Visitor(Protocol):
    """Receives entries from :func:`walk`.

    Both hooks may raise ``OSError``; the walk stops and re-raises it.
    A visitor can also define ``on_other(path, stat_result)`` to be told about
    entries that are neither regular files nor directories (symlinks, devices,
    fifos, sockets). Without it those entries are ignored.
    """

    def on_file(self, path: Path, stat_result: os.stat_result) -> None: ...

    def on_directory(self, path: Path, stat_result: os.stat_result) -> None: ...


def walk(root: Path, exclusions: NameExclusions, visitor: Visitor) -> None:
    """Feed every entry under ``root`` to ``visitor``, depth first.

    A directory is handed to ``on_directory`` when it is discovered, and only
    descended into later, so the visitor always sees a directory before any
    entry beneath it. ``root`` itself is not reported.
    """
    root = Path(root)
    on_other = getattr(visitor, "on_other", None)
    pending: list[Path] = [root]

    while pending:
        directory = pending.pop()
        logger.debug(f"Reading directory {directory}")
        with os.scandir(directory) as entries:
            for entry in entries:
                entry_stat = entry.stat(follow_symlinks=False)
                if exclusions.excludes(entry.name):
                    logger.debug(f"Excluded {entry.path}")
                    continue

                path = Path(entry.path)
                if stat.S_ISDIR(entry_stat.st_mode):
                    visitor.on_directory(path, entry_stat)
                    pending.append(path)
                elif stat.S_ISREG(entry_stat.st_mode):
                    visitor.on_file(path, entry_stat)
                elif on_other is not None:
                    on_other(path, entry_stat)
