"""Bulk registration and backup of install-root subdirectories."""

import logging
import os
import uuid
import zipfile
from dataclasses import dataclass, replace
from pathlib import Path

from greenbox.core.archives import archive_base_name
from greenbox.core.batch_types import (
    ArchiveAssociationResolution,
    ArchiveAssociationSuggestion,
    BatchArchiveFailure,
    BatchArchiveSummary,
    ProgressCallback,
)
from greenbox.core.errors import GreenboxError, SourceMissingError
from greenbox.core.executables import find_executables, pick_shallowest
from greenbox.core.naming import (
    backup_file_name,
    is_backup_path,
    same_path,
    sanitize_software_name,
)
from greenbox.core.registry.reconcile import reserved_names_for
from greenbox.core.registry.store import SoftwareRegistry
from greenbox.core.registry.types import (
    CATALOG_STORAGE_FILE_NAMES,
    SoftwareEntry,
    next_sort_order,
)
from greenbox.core.settings import CatalogSettings
from greenbox.core.time.abc import Time

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class _DirectoryRecord:
    """What the scan learned about one directory, merged into the catalog later."""

    install_path: Path
    name: str
    executable: Path | None
    archive_path: Path | None = None
    backup_path: Path | None = None


class BatchArchiver:
    """Scans the install root, backs up unarchived directories, registers them."""

    def __init__(self, registry: SoftwareRegistry, settings: CatalogSettings, time: Time) -> None:
        self.registry = registry
        self.settings = settings
        self.time = time

    def archive_install_subdirectories(
        self,
        *,
        on_progress: ProgressCallback | None = None,
        manage_recognized: bool = True,
        create_backup: bool = True,
    ) -> BatchArchiveSummary:
        """Process every immediate subdirectory of the install root.

        Directories with candidate archives in the archive root become
        suggestions. Otherwise a timestamped zip backup is created when
        create_backup is set. With manage_recognized, each directory is
        registered (or its entry updated) in a single catalog write at the end.

        on_progress runs inline after every directory, reserved ones included.

        Raises:
            ConfigurationMissingError: If the install root is not configured
            LockUnavailableError: If the final catalog write cannot take the lock
            PersistenceError: If the final catalog write fails
        """
        install_root = self.settings.require_install_root()
        archive_root = self.settings.resolve_archive_root()
        backup_dir = self.settings.resolve_backup_dir()
        reserved = reserved_names_for(archive_root)

        directories = _list_subdirectories(install_root)
        linked_archives = [e.archive_path for e in self.registry.load() if e.archive_path]

        archived = 0
        failures: list[BatchArchiveFailure] = []
        suggestions: list[ArchiveAssociationSuggestion] = []
        records: list[_DirectoryRecord] = []

        for index, directory in enumerate(directories):
            name = directory.name
            if name.lower() in reserved or same_path(directory, archive_root):
                logger.debug("Skipping reserved directory %s", directory)
            else:
                try:
                    candidates = self._find_archive_candidates(name, archive_root, linked_archives)
                    backup: Path | None = None
                    if candidates:
                        suggestions.append(
                            ArchiveAssociationSuggestion(
                                display_name=name, install_path=directory, candidates=candidates
                            )
                        )
                    elif create_backup:
                        backup = self.create_backup_from_directory(directory, name)
                        archived += 1

                    if manage_recognized:
                        records.append(
                            _DirectoryRecord(
                                install_path=directory,
                                name=name,
                                executable=self._shallowest_executable(directory),
                                backup_path=backup,
                            )
                        )
                except (GreenboxError, OSError) as e:
                    logger.warning("Batch archiving %s failed: %s", directory, e)
                    failures.append(BatchArchiveFailure(name=name, error=e))

            if on_progress is not None:
                on_progress(index + 1, len(directories), name)

        if records:
            self.registry.update(lambda entries: _merge_records(entries, records))

        return BatchArchiveSummary(
            total=len(directories),
            archived=archived,
            backup_dir=backup_dir,
            install_root=install_root,
            failures=failures,
            suggestions=suggestions,
        )

    def create_backup_from_directory(self, source_dir: Path, display_name: str | None = None) -> Path:
        """Zip source_dir into ``<archive_root>/backup/<name>-<timestamp>.zip``.

        The archive keeps the directory's own name as its top-level folder.
        A partially written backup is removed when zipping fails.
        """
        if not source_dir.is_dir():
            raise SourceMissingError(f"Directory not found: {source_dir}")

        now = self.time.now()
        sanitized = sanitize_software_name(display_name or source_dir.name, now)
        backup_dir = self.settings.resolve_backup_dir()
        backup_dir.mkdir(parents=True, exist_ok=True)
        target = _unused_path(backup_dir / backup_file_name(sanitized, now))

        try:
            with zipfile.ZipFile(
                target, "w", compression=zipfile.ZIP_DEFLATED, strict_timestamps=False
            ) as zf:
                _write_directory(zf, source_dir)
        except OSError:
            target.unlink(missing_ok=True)
            raise

        logger.info("Created backup %s", target)
        return target

    def create_backup_for_entry(self, entry_id: str) -> Path:
        """Back up an entry's install directory and record it as the entry's backup."""
        entry = self.registry.require(entry_id)
        if entry.install_path is None or not entry.install_path.is_dir():
            raise SourceMissingError(f"Install directory for '{entry.name}' does not exist")

        backup = self.create_backup_from_directory(entry.install_path, entry.name)
        self.registry.link_archive(entry_id, backup)
        return backup

    def apply_archive_associations(
        self,
        resolutions: list[ArchiveAssociationResolution],
        create_backup_for_unselected: bool,
    ) -> list[SoftwareEntry]:
        """Apply the caller's answers to association suggestions.

        A selected archive becomes the entry's archive_path. With nothing
        selected, a backup is created when requested and the entry has no
        existing archive on disk. Install paths without an entry get one.

        Returns:
            The saved entries for the resolved install paths
        """
        current = self.registry.load()
        records: list[_DirectoryRecord] = []
        for resolution in resolutions:
            install_path = resolution.install_path
            existing = next((e for e in current if same_path(e.install_path, install_path)), None)

            backup: Path | None = None
            if resolution.selected_archive_path is None and create_backup_for_unselected:
                has_archive = (
                    existing is not None
                    and existing.archive_path is not None
                    and existing.archive_path.is_file()
                )
                if not has_archive:
                    backup = self.create_backup_from_directory(install_path, install_path.name)

            executable = None
            if existing is None or existing.executable_path is None:
                executable = self._shallowest_executable(install_path)

            records.append(
                _DirectoryRecord(
                    install_path=install_path,
                    name=install_path.name,
                    executable=executable,
                    archive_path=resolution.selected_archive_path,
                    backup_path=backup,
                )
            )

        if not records:
            return []
        saved = self.registry.update(lambda entries: _merge_records(entries, records))
        return [
            entry
            for entry in saved
            if any(same_path(entry.install_path, r.install_path) for r in records)
        ]

    def _find_archive_candidates(
        self, directory_name: str, archive_root: Path, linked: list[Path]
    ) -> list[Path]:
        if not archive_root.is_dir():
            return []

        wanted = sanitize_software_name(directory_name, self.time.now()).lower()
        candidates: list[Path] = []
        for child in sorted(archive_root.iterdir(), key=lambda p: p.name.lower()):
            if not child.is_file() or child.name.lower() in CATALOG_STORAGE_FILE_NAMES:
                continue
            if any(same_path(child, path) for path in linked):
                continue
            base = archive_base_name(child).lower()
            if base == wanted or base.startswith(f"{wanted}-"):
                candidates.append(child)
        return candidates

    def _shallowest_executable(self, directory: Path) -> Path | None:
        scan = find_executables(
            directory, self.settings.executable_extensions, self.settings.max_search_depth
        )
        return pick_shallowest(scan.paths, directory)


def _merge_records(
    entries: list[SoftwareEntry], records: list[_DirectoryRecord]
) -> list[SoftwareEntry]:
    merged = list(entries)
    for record in records:
        index = next(
            (i for i, e in enumerate(merged) if same_path(e.install_path, record.install_path)),
            None,
        )
        if index is None:
            merged.append(
                SoftwareEntry(
                    id=uuid.uuid4().hex,
                    name=record.name,
                    install_path=record.install_path,
                    executable_path=record.executable,
                    archive_path=record.archive_path,
                    backup_path=record.backup_path,
                    sort_order=next_sort_order(merged),
                )
            )
            continue

        entry = merged[index]
        if record.archive_path is not None:
            if is_backup_path(record.archive_path):
                entry = replace(entry, backup_path=record.archive_path)
            else:
                entry = replace(entry, archive_path=record.archive_path)
        if record.backup_path is not None:
            entry = replace(entry, backup_path=record.backup_path)
        if entry.executable_path is None or not entry.executable_path.exists():
            if record.executable is not None:
                entry = replace(entry, executable_path=record.executable)
        merged[index] = entry
    return merged


def _list_subdirectories(root: Path) -> list[Path]:
    if not root.is_dir():
        return []
    return sorted(
        (child for child in root.iterdir() if child.is_dir()),
        key=lambda p: p.name.lower(),
    )


def _unused_path(path: Path) -> Path:
    if not path.exists():
        return path
    counter = 1
    while True:
        candidate = path.with_name(f"{path.stem}_{counter}{path.suffix}")
        if not candidate.exists():
            return candidate
        counter += 1


def _write_directory(zf: zipfile.ZipFile, source_dir: Path) -> None:
    top = source_dir.name
    zf.write(source_dir, f"{top}/")
    for current, dirnames, filenames in os.walk(source_dir):
        dirnames.sort()
        current_path = Path(current)
        relative = current_path.relative_to(source_dir)
        for dirname in dirnames:
            zf.write(current_path / dirname, (Path(top) / relative / dirname).as_posix() + "/")
        for filename in sorted(filenames):
            zf.write(current_path / filename, (Path(top) / relative / filename).as_posix())
