"""Naming utilities for catalog entries, archive copies and backups.

All functions are pure (no I/O).
"""

import os
import re
from datetime import datetime
from pathlib import Path

BACKUP_DIR_NAME = "backup"

_UNSAFE_NAME_CHARS = re.compile(r'[\\/:*?"<>|]')
_BACKUP_TIMESTAMP_SUFFIX = re.compile(r"-\d{8}_\d{6}$")


def sanitize_software_name(name: str, now: datetime) -> str:
    """Make a display name usable as a directory name.

    Trims whitespace and replaces characters that are invalid in Windows file
    names with ``_``. An empty result falls back to ``software_<epoch millis>``.

    Args:
        name: Raw name (file stem, directory name, or user input)
        now: Current time, used only for the empty-name fallback

    Examples:
        >>> sanitize_software_name(" My:App ", datetime.now())
        'My_App'
    """
    sanitized = _UNSAFE_NAME_CHARS.sub("_", name.strip())
    if not sanitized:
        return f"software_{int(now.timestamp() * 1000)}"
    return sanitized


def build_archive_file_name(sanitized_name: str, source_file_name: str) -> str:
    """Name of the archive copy stored in the archive root.

    Appends the source's last extension unless the name already ends with it.

    Examples:
        >>> build_archive_file_name("MyApp", "myapp-1.2.zip")
        'MyApp.zip'
        >>> build_archive_file_name("tool.exe", "tool.exe")
        'tool.exe'
    """
    extension = Path(source_file_name).suffix
    if not extension:
        return sanitized_name
    if sanitized_name.lower().endswith(extension.lower()):
        return sanitized_name
    return f"{sanitized_name}{extension}"


def source_stem(path: Path) -> str:
    """Base name without its last extension, or the full name if that is empty."""
    return path.stem or path.name


def is_backup_path(path: Path | None) -> bool:
    """Whether path lives directly in a backup subdirectory."""
    if path is None:
        return False
    return path.parent.name == BACKUP_DIR_NAME


def strip_backup_timestamp(name: str) -> str:
    """Remove a trailing ``-YYYYMMDD_HHMMSS`` backup suffix.

    Examples:
        >>> strip_backup_timestamp("MyApp-20250101_120000")
        'MyApp'
    """
    return _BACKUP_TIMESTAMP_SUFFIX.sub("", name)


def backup_timestamp(now: datetime) -> str:
    """Timestamp fragment used in backup file names (``YYYYMMDD_HHMMSS``)."""
    return now.strftime("%Y%m%d_%H%M%S")


def backup_file_name(sanitized_name: str, now: datetime) -> str:
    return f"{sanitized_name}-{backup_timestamp(now)}.zip"


def same_path(a: Path | None, b: Path | None) -> bool:
    """Compare two paths after normalization; None never matches."""
    if a is None or b is None:
        return False
    return _normalized(a) == _normalized(b)


def _normalized(path: Path) -> str:
    return os.path.normcase(os.path.abspath(path))


def backup_name_prefix(name: str) -> str | None:
    """Prefix shared by every backup of an entry named ``name``.

    Returns None when the name sanitizes to nothing, since no backup can then
    be attributed to it.

    Examples:
        >>> backup_name_prefix("My:App")
        'My_App-'
    """
    sanitized = _UNSAFE_NAME_CHARS.sub("_", name.strip())
    if not sanitized:
        return None
    return f"{sanitized}-"
