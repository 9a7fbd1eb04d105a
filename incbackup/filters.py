from __future__ import annotations

from dataclasses import dataclass

from incbackup.errors import ConfigError


def _normalize_name(name: str) -> str:
    normalized = name.strip().replace("\\", "/")
    return normalized.rstrip("/")


@dataclass(slots=True, frozen=True)
class NameExclusions:
    """Bare entry names skipped anywhere in a tree, along with their subtrees."""

    names: frozenset[str] = frozenset()

    def excludes(self, name: str) -> bool:
        return name in self.names


def build_exclusions(names: list[str] | tuple[str, ...] | None = None) -> NameExclusions:
    normalized: set[str] = set()
    for raw in names or ():
        name = _normalize_name(raw)
        if not name:
            continue
        # Exclusions match the final path component only.
        if "/" in name:
            raise ConfigError(f"Exclusion must be a bare name, not a path: {raw!r}")
        normalized.add(name)
    return NameExclusions(names=frozenset(normalized))
