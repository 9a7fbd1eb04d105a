from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger


LOG_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} - {message}"


def setup_logging(level: str = "WARNING", log_file: Path | None = None) -> None:
    """Route loguru output to stderr at ``level`` and, optionally, to an appending file."""
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format="<level>{level: <8}</level> {message}")
    if log_file is not None:
        log_file = Path(log_file).expanduser()
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(log_file, level="DEBUG", format=LOG_FORMAT, mode="a", encoding="utf-8")
