"""Software catalog interface.

Every write goes through update(): implementations take the catalog lock,
re-read the stored snapshot, apply the caller's mutation, normalize sort order
and write the result atomically. Higher-level operations below are expressed
as mutations so that they all share that critical section.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import replace
from pathlib import Path

from greenbox.core.errors import EntryNotFoundError
from greenbox.core.naming import BACKUP_DIR_NAME, is_backup_path, same_path
from greenbox.core.registry.reconcile import reconcile_entries
from greenbox.core.registry.types import (
    CATALOG_STORAGE_FILE_NAMES,
    ArchiveListing,
    SoftwareEntry,
)

Mutation = Callable[[list[SoftwareEntry]], list[SoftwareEntry]]


class SoftwareRegistry(ABC):
    """Durable catalog of managed software entries."""

    @abstractmethod
    def load(self) -> list[SoftwareEntry]:
        """Read managed entries without locking.

        sort_order is reassigned from each entry's position in the returned list.
        """
        ...

    @abstractmethod
    def update(self, mutate: Mutation) -> list[SoftwareEntry]:
        """Apply mutate to a fresh snapshot under the catalog lock and persist it.

        The mutation receives a copy of the current entries and returns the new
        list. Non-managed entries are dropped, the rest are stably sorted by
        sort_order and renumbered 0..n-1. Nothing is written when two managed
        entries would share an id, install path or archive path.

        Returns:
            The entries as written

        Raises:
            LockUnavailableError: If the lock could not be acquired in time
            PersistenceError: If the catalog could not be read or written
            DuplicateEntryError: If the result would hold duplicate ids or paths
        """
        ...

    def save(self, entries: Iterable[SoftwareEntry]) -> list[SoftwareEntry]:
        """Replace the catalog with entries."""
        replacement = list(entries)
        return self.update(lambda _current: list(replacement))

    def get(self, entry_id: str) -> SoftwareEntry | None:
        for entry in self.load():
            if entry.id == entry_id:
                return entry
        return None

    def require(self, entry_id: str) -> SoftwareEntry:
        entry = self.get(entry_id)
        if entry is None:
            raise EntryNotFoundError(f"No catalog entry with id '{entry_id}'")
        return entry

    def find_by_paths(
        self, install_path: Path | None, archive_path: Path | None
    ) -> SoftwareEntry | None:
        """First managed entry referencing either path."""
        for entry in self.load():
            if same_path(entry.install_path, install_path):
                return entry
            if same_path(entry.archive_path, archive_path):
                return entry
        return None

    def remove(self, entry_id: str) -> SoftwareEntry:
        """Delete an entry from the catalog; files on disk are left alone."""
        removed: list[SoftwareEntry] = []

        def mutate(entries: list[SoftwareEntry]) -> list[SoftwareEntry]:
            index = _index_of(entries, entry_id)
            removed.append(entries[index])
            return entries[:index] + entries[index + 1 :]

        self.update(mutate)
        return removed[0]

    def update_executable(self, entry_id: str, executable_path: Path) -> SoftwareEntry:
        def mutate(entries: list[SoftwareEntry]) -> list[SoftwareEntry]:
            index = _index_of(entries, entry_id)
            entries[index] = replace(entries[index], executable_path=executable_path)
            return entries

        return _find(self.update(mutate), entry_id)

    def link_archive(self, entry_id: str, archive_path: Path) -> SoftwareEntry:
        """Associate an archive with an entry.

        Files inside the backup directory become the entry's backup_path,
        anything else its archive_path.
        """

        def mutate(entries: list[SoftwareEntry]) -> list[SoftwareEntry]:
            index = _index_of(entries, entry_id)
            if is_backup_path(archive_path):
                entries[index] = replace(entries[index], backup_path=archive_path)
            else:
                entries[index] = replace(entries[index], archive_path=archive_path)
            return entries

        return _find(self.update(mutate), entry_id)

    def clear_backup_associations(self, backup_path: Path) -> int:
        """Forget a (deleted) backup archive wherever it is referenced.

        Returns:
            Number of entries changed
        """
        changed = 0

        def mutate(entries: list[SoftwareEntry]) -> list[SoftwareEntry]:
            nonlocal changed
            changed = 0
            result: list[SoftwareEntry] = []
            for entry in entries:
                updated = entry
                if same_path(entry.backup_path, backup_path):
                    updated = replace(updated, backup_path=None)
                if same_path(entry.archive_path, backup_path):
                    updated = replace(updated, archive_path=None)
                if updated is not entry:
                    changed += 1
                result.append(updated)
            return result

        self.update(mutate)
        return changed

    def reorder(self, ordered_ids: list[str]) -> list[SoftwareEntry]:
        """Move the listed entries to the front in the given order.

        Unlisted entries follow in their current relative order. Unknown ids
        raise EntryNotFoundError and nothing is written.
        """

        def mutate(entries: list[SoftwareEntry]) -> list[SoftwareEntry]:
            by_id = {entry.id: entry for entry in entries}
            for entry_id in ordered_ids:
                if entry_id not in by_id:
                    raise EntryNotFoundError(f"No catalog entry with id '{entry_id}'")
            listed = list(dict.fromkeys(ordered_ids))
            rest = [entry.id for entry in sorted(entries, key=lambda e: e.sort_order)]
            sequence = listed + [entry_id for entry_id in rest if entry_id not in listed]
            return [replace(by_id[entry_id], sort_order=i) for i, entry_id in enumerate(sequence)]

        return self.update(mutate)

    def reconcile(self, install_root: Path | None, archive_root: Path | None) -> list[SoftwareEntry]:
        """Managed entries with fresh runtime flags, followed by unmanaged content."""
        return reconcile_entries(self.load(), install_root, archive_root)

    def list_archives(self, archive_root: Path, include_backups: bool = True) -> list[ArchiveListing]:
        """Files in the archive root (and optionally backup/), with their linked entry."""
        entries = self.load()
        directories = [archive_root]
        if include_backups:
            directories.append(archive_root / BACKUP_DIR_NAME)

        listings: list[ArchiveListing] = []
        for directory in directories:
            if not directory.is_dir():
                continue
            for path in sorted(directory.iterdir(), key=lambda p: p.name.lower()):
                if not path.is_file() or path.name.lower() in CATALOG_STORAGE_FILE_NAMES:
                    continue
                linked = next(
                    (
                        e.id
                        for e in entries
                        if same_path(e.archive_path, path) or same_path(e.backup_path, path)
                    ),
                    None,
                )
                listings.append(
                    ArchiveListing(path=path, is_backup=is_backup_path(path), linked_entry_id=linked)
                )
        return listings


def _index_of(entries: list[SoftwareEntry], entry_id: str) -> int:
    for index, entry in enumerate(entries):
        if entry.id == entry_id:
            return index
    raise EntryNotFoundError(f"No catalog entry with id '{entry_id}'")


def _find(entries: list[SoftwareEntry], entry_id: str) -> SoftwareEntry:
    return entries[_index_of(entries, entry_id)]
