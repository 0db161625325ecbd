"""Path sanitization for archive entries.

Archive entry names are attacker-controlled. Every entry is normalized and
resolved against the extraction root before anything is written, so that a
crafted name (``../../evil.exe``, ``/etc/passwd``, ``C:\\Windows\\x.dll``) can
never produce a file outside the destination ("zip-slip").

Functions here never raise for hostile input; they return None and leave the
skip/warn decision to the caller.
"""

import re
from pathlib import Path

_LEADING_DOT_SLASH = re.compile(r"^(?:\./+)+")
_REPEATED_SLASHES = re.compile(r"/+")
_DRIVE_PREFIX = re.compile(r"^[A-Za-z]:")


def normalize_entry_name(raw: str) -> str:
    """Normalize an archive entry name to a forward-slash relative form.

    - Converts backslashes to ``/``
    - Strips leading ``./`` segments
    - Collapses repeated separators
    - Trims surrounding whitespace

    Examples:
        >>> normalize_entry_name(".\\\\MyApp\\\\app.exe")
        'MyApp/app.exe'
        >>> normalize_entry_name("./././bin//tool")
        'bin/tool'
    """
    normalized = raw.replace("\\", "/")
    normalized = _LEADING_DOT_SLASH.sub("", normalized)
    normalized = _REPEATED_SLASHES.sub("/", normalized)
    return normalized.strip()


def resolve_entry_path(root: Path, raw: str) -> Path | None:
    """Resolve an archive entry name to an absolute path confined to root.

    Args:
        root: Extraction root directory
        raw: Raw entry name as stored in the archive

    Returns:
        Canonical absolute target path, or None if the entry is empty or would
        land outside root (``..`` climbing, absolute names, drive-letter
        overrides, symlink escapes through directories already on disk)
    """
    normalized = normalize_entry_name(raw)
    if not normalized:
        return None

    # Drive-letter and absolute names would replace root when joined.
    if _DRIVE_PREFIX.match(normalized) or normalized.startswith("/"):
        return None

    canonical_root = root.resolve()
    canonical_target = (canonical_root / normalized).resolve()

    if canonical_target == canonical_root:
        return canonical_target
    if not canonical_target.is_relative_to(canonical_root):
        return None
    return canonical_target
