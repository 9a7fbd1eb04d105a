from __future__ import annotations

import json
import os
from dataclasses import dataclass, field, fields
from pathlib import Path

from incbackup.errors import ConfigError
from incbackup.visitors import DEFAULT_MIN_DIFF_SECS


LOG_LEVEL_ENV = "INCBACKUP_LOG_LEVEL"
DEFAULT_LOG_LEVEL = "WARNING"


@dataclass(slots=True)
class BackupConfig:
    backup_root: str
    sources: list[str] = field(default_factory=list)
    exclude: list[str] = field(default_factory=list)
    stats_path: str | None = None
    min_diff_secs: int = DEFAULT_MIN_DIFF_SECS
    verbose: bool = False

    @property
    def backup_root_path(self) -> Path:
        return Path(self.backup_root).expanduser()

    @property
    def source_paths(self) -> list[Path]:
        return [Path(source).expanduser() for source in self.sources]

    @property
    def stats_file_path(self) -> Path | None:
        return Path(self.stats_path).expanduser() if self.stats_path else None

    def validate(self) -> "BackupConfig":
        if not self.backup_root:
            raise ConfigError("A backup directory is required.")
        if not self.sources:
            raise ConfigError("At least one source directory is required (--dir).")
        if self.min_diff_secs < 0:
            raise ConfigError(f"--min-diff must not be negative (got {self.min_diff_secs}).")
        return self


def load_config(path: Path) -> dict:
    """Read a JSON config file and return its known keys."""
    path = Path(path).expanduser()
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with path.open("r", encoding="utf-8") as fh:
        try:
            data = json.load(fh)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"Invalid JSON in {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigError(f"Config file {path} must contain a JSON object.")

    known = {f.name for f in fields(BackupConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigError(f"Unknown key(s) in {path}: {', '.join(unknown)}")
    return data


def build_config(file_values: dict | None = None, **overrides) -> BackupConfig:
    """Merge config-file values with command-line values; ``None`` means unset."""
    values = dict(file_values or {})
    for key, value in overrides.items():
        if value is None:
            continue
        if isinstance(value, (list, tuple)) and not value and key in values:
            continue
        values[key] = value

    if "backup_root" not in values:
        raise ConfigError("A backup directory is required.")
    values["backup_root"] = str(values["backup_root"])
    try:
        values["min_diff_secs"] = int(values.get("min_diff_secs", DEFAULT_MIN_DIFF_SECS))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"min_diff_secs must be an integer: {exc}") from exc
    values["sources"] = [str(source) for source in values.get("sources", [])]
    values["exclude"] = [str(name) for name in values.get("exclude", [])]
    return BackupConfig(**values).validate()


def default_log_level() -> str:
    return os.getenv(LOG_LEVEL_ENV, DEFAULT_LOG_LEVEL).strip().upper() or DEFAULT_LOG_LEVEL
