"""Incremental, generation-based backups that hardlink unchanged files."""

__version__ = "0.1.0"
