import os
from datetime import datetime
from pathlib import Path

import pytest
from loguru import logger

from incbackup.config import BackupConfig


T0 = 1_700_000_000  # fixed mtime (seconds) used for source files


@pytest.fixture(autouse=True)
def _reset_logging():
    """Drop loguru sinks added by a test so later tests don't write to closed streams."""
    yield
    logger.remove()


def write_file(path: Path, size: int, mtime: int = T0, fill: bytes = b"x") -> Path:
    """Create ``path`` with ``size`` bytes and a fixed modification time."""
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes((fill * size)[:size])
    os.utime(path, (mtime, mtime))
    return path


@pytest.fixture
def source_dir(tmp_path):
    """A source tree holding a single 100 byte ``data.txt``."""
    source = tmp_path / "source"
    source.mkdir()
    write_file(source / "data.txt", 100)
    return source


@pytest.fixture
def backup_root(tmp_path):
    return tmp_path / "backups"


@pytest.fixture
def make_config(backup_root, source_dir):
    def _make(**overrides) -> BackupConfig:
        values = {
            "backup_root": str(backup_root),
            "sources": [str(source_dir)],
        }
        values.update(overrides)
        return BackupConfig(**values)

    return _make


FIRST_RUN = datetime(2024, 1, 1, 10, 0, 0)
SECOND_RUN = datetime(2024, 1, 2, 10, 0, 0)
THIRD_RUN = datetime(2024, 1, 3, 10, 0, 0)


def relative_tree(root: Path) -> tuple[set[str], set[str]]:
    """Return (directories, files) under ``root`` as POSIX relative paths."""
    dirs: set[str] = set()
    files: set[str] = set()
    for path in root.rglob("*"):
        rel = path.relative_to(root).as_posix()
        if path.is_dir():
            dirs.add(rel)
        else:
            files.add(rel)
    return dirs, files
