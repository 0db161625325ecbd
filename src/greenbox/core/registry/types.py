"""Core types for the software catalog."""

from dataclasses import dataclass, replace
from enum import Enum
from pathlib import Path
from typing import Any

from greenbox.core.errors import DuplicateEntryError
from greenbox.core.naming import same_path

CATALOG_FILE_NAME = "software_list.json"
LOCK_FILE_NAME = "software_list.lock"
CATALOG_TEMP_FILE_NAME = f"{CATALOG_FILE_NAME}.tmp"

# Files the catalog itself keeps in the archive root.
CATALOG_STORAGE_FILE_NAMES = frozenset(
    name.lower() for name in (CATALOG_FILE_NAME, LOCK_FILE_NAME, CATALOG_TEMP_FILE_NAME)
)


class SoftwareStatus(Enum):
    """How an entry relates to the persisted catalog."""

    MANAGED = "managed"
    UNKNOWN_INSTALL = "unknown_install"
    UNKNOWN_ARCHIVE = "unknown_archive"


@dataclass(frozen=True)
class SoftwareEntry:
    """A portable application known to the catalog.

    Persisted fields:
        id: Opaque, stable, unique identifier (for unmanaged entries: the path)
        name: Display name, also the install directory name
        install_path: Directory the application lives in
        executable_path: Main executable inside install_path
        archive_path: Archive (or executable) copy kept in the archive root
        backup_path: Backup archive associated with this entry
        icon_path: Icon reference (extracted by an external collaborator)
        sort_order: Dense zero-based rank among managed entries

    Runtime fields (never persisted, recomputed by reconcile()):
        status: MANAGED for catalog records, UNKNOWN_* for synthesized entries
        archive_exists: archive_path exists on disk
        install_exists: install_path exists on disk
        is_backup_archive: A backup archive is associated with this entry
    """

    id: str
    name: str
    install_path: Path | None = None
    executable_path: Path | None = None
    archive_path: Path | None = None
    backup_path: Path | None = None
    icon_path: Path | None = None
    sort_order: int = 0
    status: SoftwareStatus = SoftwareStatus.MANAGED
    archive_exists: bool = False
    install_exists: bool = False
    is_backup_archive: bool = False

    @property
    def is_managed(self) -> bool:
        return self.status == SoftwareStatus.MANAGED


@dataclass(frozen=True)
class ArchiveListing:
    """A file in the archive root (or its backup directory)."""

    path: Path
    is_backup: bool
    linked_entry_id: str | None


def entry_to_record(entry: SoftwareEntry) -> dict[str, Any]:
    """Serialize the persisted fields of an entry to a JSON record."""
    return {
        "id": entry.id,
        "name": entry.name,
        "installPath": _path_to_json(entry.install_path),
        "executablePath": _path_to_json(entry.executable_path),
        "archivePath": _path_to_json(entry.archive_path),
        "backupPath": _path_to_json(entry.backup_path),
        "iconPath": _path_to_json(entry.icon_path),
        "sortOrder": entry.sort_order,
    }


def entry_from_record(record: dict[str, Any]) -> SoftwareEntry:
    """Deserialize a JSON record into a managed entry.

    Raises:
        KeyError: If id or name is missing
    """
    sort_order = record.get("sortOrder")
    return SoftwareEntry(
        id=str(record["id"]),
        name=str(record["name"]),
        install_path=_path_from_json(record.get("installPath")),
        executable_path=_path_from_json(record.get("executablePath")),
        archive_path=_path_from_json(record.get("archivePath")),
        backup_path=_path_from_json(record.get("backupPath")),
        icon_path=_path_from_json(record.get("iconPath")),
        sort_order=sort_order if isinstance(sort_order, int) else 0,
    )


def normalize_managed(entries: list[SoftwareEntry]) -> list[SoftwareEntry]:
    """Keep managed entries, sort by sort_order (stable), renumber 0..n-1.

    Raises:
        DuplicateEntryError: If two managed entries share an id, install path or archive path
    """
    managed = [e for e in entries if e.is_managed]
    ensure_unique(managed)
    managed.sort(key=lambda e: e.sort_order)
    return [replace(e, sort_order=index) for index, e in enumerate(managed)]


def find_path_conflict(
    entries: list[SoftwareEntry], candidate: SoftwareEntry
) -> SoftwareEntry | None:
    """Return another entry sharing candidate's install path or archive path."""
    for other in entries:
        if other.id == candidate.id:
            continue
        if same_path(other.install_path, candidate.install_path) or same_path(
            other.archive_path, candidate.archive_path
        ):
            return other
    return None


def ensure_unique(entries: list[SoftwareEntry]) -> None:
    seen_ids: set[str] = set()
    for index, entry in enumerate(entries):
        if entry.id in seen_ids:
            raise DuplicateEntryError(f"Catalog id '{entry.id}' is used by more than one entry")
        seen_ids.add(entry.id)
        conflict = find_path_conflict(entries[:index], entry)
        if conflict is not None:
            raise DuplicateEntryError(
                f"'{entry.name}' and '{conflict.name}' share an install or archive path",
                conflict,
            )


def next_sort_order(entries: list[SoftwareEntry]) -> int:
    orders = [e.sort_order for e in entries if e.is_managed]
    if not orders:
        return 0
    return max(orders) + 1


def _path_to_json(path: Path | None) -> str | None:
    if path is None:
        return None
    return str(path)


def _path_from_json(value: object) -> Path | None:
    if value is None:
        return None
    text = str(value)
    if not text:
        return None
    return Path(text)
