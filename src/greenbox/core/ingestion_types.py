"""Result and decision types returned by the ingestion workflow.

AddResult is a tagged union: callers dispatch with isinstance() on
AddSuccess, AddCancelled, NeedsSelection, DuplicateFound and AddFailed.
NeedsSelection and DuplicateFound carry the state needed to call back into
the workflow (complete_selection / cancel_pending / resolve_duplicate).
"""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path

from greenbox.core.errors import GreenboxError
from greenbox.core.registry.types import SoftwareEntry


class SourceType(Enum):
    ARCHIVE = "archive"
    EXECUTABLE = "executable"


@dataclass(frozen=True)
class PendingAddition:
    """An installed source waiting for the user to pick its executable.

    Fields:
        install_path: Directory the source was installed into
        archive_path: Archive copy in the archive root (or the rehost archive)
        executable_paths: Candidates, sorted case-insensitively
        preferred_sort_order: Slot to insert into (reused from an overwritten entry)
        existing_software_id: Entry being rehosted, None for new additions
        owns_archive_copy: Whether cancelling may delete archive_path
    """

    install_path: Path
    archive_path: Path
    executable_paths: list[Path] = field(default_factory=list)
    preferred_sort_order: int | None = None
    existing_software_id: str | None = None
    owns_archive_copy: bool = True


@dataclass(frozen=True)
class DuplicateInfo:
    """Conflict detected before anything was written."""

    source_type: SourceType
    source_path: Path
    install_root: Path
    intended_name: str
    target_install_path: Path
    target_archive_path: Path
    install_dir_exists: bool
    archive_exists: bool
    existing_entry: SoftwareEntry | None


@dataclass(frozen=True)
class AddSuccess:
    entry: SoftwareEntry


@dataclass(frozen=True)
class AddCancelled:
    pass


@dataclass(frozen=True)
class NeedsSelection:
    pending: PendingAddition


@dataclass(frozen=True)
class DuplicateFound:
    info: DuplicateInfo


@dataclass(frozen=True)
class AddFailed:
    error: GreenboxError | OSError

    @property
    def message(self) -> str:
        return str(self.error)


AddResult = AddSuccess | AddCancelled | NeedsSelection | DuplicateFound | AddFailed
