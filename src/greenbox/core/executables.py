"""Depth-bounded executable discovery inside install directories."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanWarning:
    """A subtree that could not be read during a scan."""

    path: Path
    message: str


@dataclass(frozen=True)
class ExecutableScan:
    """Result of find_executables().

    Fields:
        paths: Matching files, de-duplicated, sorted case-insensitively
        warnings: One entry per unreadable subtree; the scan continues past them
    """

    paths: list[Path] = field(default_factory=list)
    warnings: list[ScanWarning] = field(default_factory=list)


def normalize_extensions(extensions: Iterable[str]) -> frozenset[str]:
    """Lowercase extensions and strip leading dots, dropping empty values."""
    normalized: set[str] = set()
    for ext in extensions:
        cleaned = ext.strip().lower().lstrip(".")
        if cleaned:
            normalized.add(cleaned)
    return frozenset(normalized)


def has_allowed_extension(path: Path, extensions: frozenset[str]) -> bool:
    return path.suffix.lower().lstrip(".") in extensions


def find_executables(root: Path, extensions: Iterable[str], max_depth: int) -> ExecutableScan:
    """Recursively collect files whose extension is in the allow-list.

    Files directly in root are at depth 0. Subdirectories are entered while the
    current depth is below max_depth; symlinked directories are not followed.

    Args:
        root: Directory to scan
        extensions: Allowed extensions, with or without leading dot
        max_depth: Maximum directory depth to descend (negative means 0)

    Returns:
        ExecutableScan with matches and per-subtree warnings
    """
    allowed = normalize_extensions(extensions)
    found: set[Path] = set()
    warnings: list[ScanWarning] = []

    pending: list[tuple[Path, int]] = [(root, 0)]
    limit = max(0, max_depth)
    while pending:
        directory, depth = pending.pop()
        try:
            entries = list(directory.iterdir())
        except OSError as e:
            logger.warning("Failed to scan directory %s: %s", directory, e)
            warnings.append(ScanWarning(path=directory, message=str(e)))
            continue

        for entry in entries:
            if entry.is_symlink() and entry.is_dir():
                continue
            if entry.is_file():
                if has_allowed_extension(entry, allowed):
                    found.add(entry)
            elif entry.is_dir() and depth < limit:
                pending.append((entry, depth + 1))

    ordered = sorted(found, key=lambda p: str(p).lower())
    return ExecutableScan(paths=ordered, warnings=warnings)


def pick_shallowest(paths: list[Path], root: Path) -> Path | None:
    """Pick the match closest to root; ties go to the lexically smaller path."""
    if not paths:
        return None
    return min(paths, key=lambda p: (_relative_depth(p, root), str(p)))


def _relative_depth(path: Path, root: Path) -> int:
    if path.is_relative_to(root):
        return len(path.relative_to(root).parts)
    return len(path.parts)
