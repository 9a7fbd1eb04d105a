from __future__ import annotations

from pathlib import Path

from incbackup.models import CopyStats


def format_stats_line(generation_name: str, stats: CopyStats) -> str:
    return f"{generation_name},{stats.bytes_copied},{stats.files_copied}\n"


def append_stats(path: Path, generation_name: str, stats: CopyStats) -> Path:
    """Append ``date,total_bytes_copied,total_files_copied`` to ``path``."""
    path = Path(path).expanduser()
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("a", encoding="utf-8") as fh:
        fh.write(format_stats_line(generation_name, stats))
    return path
