"""Types produced and consumed by the batch archiver."""

from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from greenbox.core.errors import GreenboxError

# (completed, total, current directory name)
ProgressCallback = Callable[[int, int, str], None]


@dataclass(frozen=True)
class BatchArchiveFailure:
    name: str
    error: GreenboxError | OSError


@dataclass(frozen=True)
class ArchiveAssociationSuggestion:
    """Existing archives that may belong to an install directory.

    Never resolved automatically; the caller answers with an
    ArchiveAssociationResolution.
    """

    display_name: str
    install_path: Path
    candidates: list[Path]


@dataclass(frozen=True)
class ArchiveAssociationResolution:
    install_path: Path
    selected_archive_path: Path | None


@dataclass(frozen=True)
class BatchArchiveSummary:
    """Outcome of archive_install_subdirectories().

    Fields:
        total: Immediate subdirectories seen (reserved ones included)
        archived: Backups created
        failures: Per-directory errors; the scan continued past each one
        backup_dir: Where backups were written
        install_root: Directory that was scanned
        suggestions: Directories with candidate archives awaiting a decision
    """

    total: int
    archived: int
    backup_dir: Path
    install_root: Path
    failures: list[BatchArchiveFailure] = field(default_factory=list)
    suggestions: list[ArchiveAssociationSuggestion] = field(default_factory=list)
