"""Add, rehost and duplicate-resolution flows for portable software.

An add runs: duplicate check, override preparation, archive copy, extraction
(or executable placement), optional flatten, executable discovery, finalize.
Anything that fails after the filesystem was touched is cleaned up before an
AddFailed result is returned. Decisions the workflow cannot make itself come
back as NeedsSelection or DuplicateFound and are answered through
complete_selection(), cancel_pending() or resolve_duplicate().
"""

import logging
import shutil
import uuid
from dataclasses import replace
from pathlib import Path

from greenbox.core.archives import (
    ARCHIVE_SELECTOR_EXTENSIONS,
    ArchiveFormat,
    archive_base_name,
    detect_format,
    extract_archive,
)
from greenbox.core.errors import (
    ConfigurationMissingError,
    DuplicateEntryError,
    EntryNotFoundError,
    GreenboxError,
    NoExecutableFoundError,
    SourceMissingError,
    UnsupportedSourceError,
)
from greenbox.core.executables import (
    find_executables,
    has_allowed_extension,
    normalize_extensions,
)
from greenbox.core.flatten import flatten_redundant_top_directory
from greenbox.core.ingestion_types import (
    AddCancelled,
    AddFailed,
    AddResult,
    AddSuccess,
    DuplicateFound,
    DuplicateInfo,
    NeedsSelection,
    PendingAddition,
    SourceType,
)
from greenbox.core.naming import (
    build_archive_file_name,
    is_backup_path,
    same_path,
    sanitize_software_name,
    source_stem,
    strip_backup_timestamp,
)
from greenbox.core.registry.store import SoftwareRegistry
from greenbox.core.registry.types import (
    CATALOG_STORAGE_FILE_NAMES,
    SoftwareEntry,
    find_path_conflict,
    next_sort_order,
)
from greenbox.core.settings import CatalogSettings
from greenbox.core.time.abc import Time
from greenbox.core.user_feedback import UserFeedback

logger = logging.getLogger(__name__)

CONFIGURATION_HINT_TITLE = "Configuration required"
CONFIGURATION_HINT_MESSAGE = "Set an install root with 'greenbox init --install-root PATH' first."


class IngestionWorkflow:
    """Orchestrates adding archives and executables to the catalog."""

    def __init__(
        self,
        registry: SoftwareRegistry,
        settings: CatalogSettings,
        time: Time,
        feedback: UserFeedback,
    ) -> None:
        self.registry = registry
        self.settings = settings
        self.time = time
        self.feedback = feedback

    # Entry points

    def add_from_file(
        self,
        source: Path,
        *,
        allow_override: bool = False,
        custom_name: str | None = None,
    ) -> AddResult:
        """Add a file, choosing the archive or executable flow by its name."""
        if detect_format(source) is not None:
            return self.add_archive(source, allow_override=allow_override, custom_name=custom_name)
        if has_allowed_extension(source, self._extensions()):
            return self.add_executable(
                source, allow_override=allow_override, custom_name=custom_name
            )
        if not source.is_file():
            return AddFailed(SourceMissingError(f"Source not found: {source}"))
        return AddFailed(
            UnsupportedSourceError(
                f"{source.name} is neither a supported archive "
                f"({', '.join(ARCHIVE_SELECTOR_EXTENSIONS)}) nor an allowed executable"
            )
        )

    def add_archive(
        self,
        source: Path,
        *,
        allow_override: bool = False,
        custom_name: str | None = None,
    ) -> AddResult:
        return self._add(SourceType.ARCHIVE, source, allow_override, custom_name)

    def add_executable(
        self,
        source: Path,
        *,
        allow_override: bool = False,
        custom_name: str | None = None,
    ) -> AddResult:
        return self._add(SourceType.EXECUTABLE, source, allow_override, custom_name)

    def complete_selection(self, pending: PendingAddition, executable: Path) -> AddResult:
        """Finalize a pending addition with the user's executable choice.

        Raises:
            ValueError: If executable is not one of the pending candidates
        """
        if not any(same_path(executable, candidate) for candidate in pending.executable_paths):
            raise ValueError(f"{executable} is not a candidate executable for {pending.install_path}")

        try:
            entry = self._finalize(pending, executable)
        except (GreenboxError, OSError) as e:
            self._discard(pending, e)
            return AddFailed(e)
        return AddSuccess(entry)

    def cancel_pending(self, pending: PendingAddition) -> AddCancelled:
        """Discard a pending addition and remove what it installed."""
        self._cleanup(pending.install_path, pending.archive_path, pending.owns_archive_copy)
        return AddCancelled()

    def resolve_duplicate(
        self,
        info: DuplicateInfo,
        *,
        overwrite: bool = False,
        rename_to: str | None = None,
    ) -> AddResult:
        """Retry an add that hit a duplicate, overwriting and/or renaming.

        Raises:
            ValueError: If neither overwrite nor a non-blank rename_to is given
        """
        new_name = rename_to.strip() if rename_to is not None else ""
        if not overwrite and not new_name:
            raise ValueError("Resolving a duplicate requires overwrite or a new name")

        return self._add(
            info.source_type,
            info.source_path,
            allow_override=overwrite,
            custom_name=new_name or info.intended_name,
        )

    def rehost(self, entry_id: str) -> AddResult:
        """Reinstall an entry whose install directory is gone from its archive.

        The entry keeps its id and sort order. When the archive used lives in
        the backup directory it is also recorded as the entry's backup.
        """
        roots = self._roots_or_hint()
        if isinstance(roots, AddFailed):
            return roots
        install_root, archive_root = roots

        entry = self.registry.get(entry_id)
        if entry is None:
            return AddFailed(EntryNotFoundError(f"No catalog entry with id '{entry_id}'"))

        install_path = entry.install_path
        if install_path is None:
            install_path = install_root / sanitize_software_name(entry.name, self.time.now())
        if install_path.exists():
            return AddFailed(
                GreenboxError(f"Install directory {install_path} already exists; nothing to rehost")
            )

        archive = self._locate_rehost_archive(entry, archive_root)
        if archive is None:
            return AddFailed(SourceMissingError(f"No archive found to rehost '{entry.name}'"))

        self.feedback.info(f"Rehosting {entry.name} from {archive.name}...")
        pending = PendingAddition(
            install_path=install_path,
            archive_path=archive,
            existing_software_id=entry.id,
            owns_archive_copy=False,
        )
        try:
            fmt = detect_format(archive)
            if fmt is not None:
                self._extract(archive, install_path, fmt)
            elif has_allowed_extension(archive, self._extensions()):
                self._place_executable(archive, install_path)
            else:
                raise UnsupportedSourceError(f"Cannot rehost from {archive.name}")
            return self._discover(pending)
        except (GreenboxError, OSError) as e:
            self._discard(pending, e)
            return AddFailed(e)

    # Add state machine

    def _add(
        self,
        source_type: SourceType,
        source: Path,
        allow_override: bool,
        custom_name: str | None,
    ) -> AddResult:
        roots = self._roots_or_hint()
        if isinstance(roots, AddFailed):
            return roots
        install_root, archive_root = roots

        if not source.is_file():
            return AddFailed(SourceMissingError(f"Source not found: {source}"))

        name = self._derive_name(source, custom_name)
        target_install = install_root / name
        target_archive = archive_root / build_archive_file_name(name, source.name)
        source_is_archive_copy = same_path(source, target_archive)

        existing = self.registry.find_by_paths(target_install, target_archive)
        install_dir_exists = target_install.exists()
        archive_exists = target_archive.exists() and not source_is_archive_copy

        preferred_sort_order: int | None = None
        if install_dir_exists or archive_exists or existing is not None:
            if not allow_override:
                return DuplicateFound(
                    DuplicateInfo(
                        source_type=source_type,
                        source_path=source,
                        install_root=install_root,
                        intended_name=name,
                        target_install_path=target_install,
                        target_archive_path=target_archive,
                        install_dir_exists=install_dir_exists,
                        archive_exists=archive_exists,
                        existing_entry=existing,
                    )
                )
            try:
                preferred_sort_order = self._prepare_override(
                    target_install, target_archive, source_is_archive_copy
                )
            except (GreenboxError, OSError) as e:
                return AddFailed(e)

        pending = PendingAddition(
            install_path=target_install,
            archive_path=target_archive,
            preferred_sort_order=preferred_sort_order,
            owns_archive_copy=not source_is_archive_copy,
        )
        try:
            archive_root.mkdir(parents=True, exist_ok=True)
            if not source_is_archive_copy:
                shutil.copy2(source, target_archive)

            if source_type == SourceType.ARCHIVE:
                fmt = detect_format(source)
                if fmt is None:
                    raise UnsupportedSourceError(f"{source.name} is not a supported archive")
                self.feedback.info(f"Extracting {source.name}...")
                self._extract(target_archive, target_install, fmt)
            else:
                self._place_executable(source, target_install)

            return self._discover(pending)
        except (GreenboxError, OSError) as e:
            logger.warning("Adding %s failed: %s", source, e)
            self._discard(pending, e)
            return AddFailed(e)

    def _prepare_override(
        self, target_install: Path, target_archive: Path, source_is_archive_copy: bool
    ) -> int | None:
        """Remove conflicting entries and files; return the freed sort slot."""
        freed: list[int] = []

        def mutate(entries: list[SoftwareEntry]) -> list[SoftwareEntry]:
            freed.clear()
            kept: list[SoftwareEntry] = []
            for entry in entries:
                if same_path(entry.install_path, target_install) or same_path(
                    entry.archive_path, target_archive
                ):
                    freed.append(entry.sort_order)
                else:
                    kept.append(entry)
            return kept

        self.registry.update(mutate)

        if target_install.is_dir():
            shutil.rmtree(target_install)
        elif target_install.exists():
            target_install.unlink()
        if target_archive.exists() and not source_is_archive_copy:
            target_archive.unlink()

        if not freed:
            return None
        return min(freed)

    def _extract(self, archive: Path, install_path: Path, fmt: ArchiveFormat) -> None:
        extract_archive(archive, install_path, fmt)
        if self.settings.flatten_nested_dirs:
            flatten_redundant_top_directory(install_path)

    def _place_executable(self, source: Path, install_path: Path) -> None:
        install_path.mkdir(parents=True, exist_ok=True)
        shutil.copy2(source, install_path / source.name)

    def _discover(self, pending: PendingAddition) -> AddResult:
        scan = find_executables(
            pending.install_path,
            self.settings.executable_extensions,
            self.settings.max_search_depth,
        )
        if not scan.paths:
            raise NoExecutableFoundError(
                f"No executable matching {', '.join(self.settings.executable_extensions)} "
                f"found in {pending.install_path.name}"
            )
        if len(scan.paths) > 1:
            return NeedsSelection(replace(pending, executable_paths=scan.paths))
        return AddSuccess(self._finalize(pending, scan.paths[0]))

    def _finalize(self, pending: PendingAddition, executable: Path) -> SoftwareEntry:
        if pending.existing_software_id is not None:
            return self._finalize_rehost(pending, pending.existing_software_id, executable)

        created = SoftwareEntry(
            id=uuid.uuid4().hex,
            name=pending.install_path.name,
            install_path=pending.install_path,
            executable_path=executable,
            archive_path=pending.archive_path,
        )

        def mutate(entries: list[SoftwareEntry]) -> list[SoftwareEntry]:
            _reject_conflict(entries, created)
            slot = pending.preferred_sort_order
            if slot is None:
                return entries + [replace(created, sort_order=next_sort_order(entries))]
            shifted = [
                replace(e, sort_order=e.sort_order + 1) if e.sort_order >= slot else e
                for e in entries
            ]
            return shifted + [replace(created, sort_order=slot)]

        saved = self.registry.update(mutate)
        entry = next(e for e in saved if e.id == created.id)
        self.feedback.success(f"Added {entry.name}")
        return entry

    def _finalize_rehost(
        self, pending: PendingAddition, entry_id: str, executable: Path
    ) -> SoftwareEntry:
        from_backup = is_backup_path(pending.archive_path)

        def mutate(entries: list[SoftwareEntry]) -> list[SoftwareEntry]:
            for index, entry in enumerate(entries):
                if entry.id != entry_id:
                    continue
                updated = replace(
                    entry,
                    install_path=pending.install_path,
                    executable_path=executable,
                    archive_path=entry.archive_path if from_backup else pending.archive_path,
                    backup_path=pending.archive_path if from_backup else entry.backup_path,
                )
                _reject_conflict(entries, updated)
                entries[index] = updated
                return entries
            raise EntryNotFoundError(f"No catalog entry with id '{entry_id}'")

        saved = self.registry.update(mutate)
        entry = next(e for e in saved if e.id == entry_id)
        self.feedback.success(f"Rehosted {entry.name}")
        return entry

    # Helpers

    def _roots_or_hint(self) -> tuple[Path, Path] | AddFailed:
        try:
            install_root = self.settings.require_install_root()
            archive_root = self.settings.resolve_archive_root()
        except ConfigurationMissingError as e:
            self.feedback.hint(CONFIGURATION_HINT_TITLE, CONFIGURATION_HINT_MESSAGE)
            return AddFailed(e)
        return install_root, archive_root

    def _derive_name(self, source: Path, custom_name: str | None) -> str:
        if custom_name is not None and custom_name.strip():
            return sanitize_software_name(custom_name, self.time.now())
        stem = source_stem(source)
        if is_backup_path(source):
            stem = strip_backup_timestamp(stem)
        return sanitize_software_name(stem, self.time.now())

    def _extensions(self) -> frozenset[str]:
        return normalize_extensions(self.settings.executable_extensions)

    def _locate_rehost_archive(self, entry: SoftwareEntry, archive_root: Path) -> Path | None:
        if entry.archive_path is not None:
            if entry.archive_path.is_file():
                return entry.archive_path
            relocated = archive_root / entry.archive_path.name
            if relocated.is_file():
                return relocated
        elif archive_root.is_dir():
            wanted = sanitize_software_name(entry.name, self.time.now()).lower()
            matches = [
                child
                for child in archive_root.iterdir()
                if child.is_file()
                and child.name.lower() not in CATALOG_STORAGE_FILE_NAMES
                and _matches_entry_name(archive_base_name(child).lower(), wanted)
            ]
            if len(matches) == 1:
                return matches[0]

        if entry.backup_path is not None and entry.backup_path.is_file():
            return entry.backup_path
        return None

    def _discard(self, pending: PendingAddition, error: Exception) -> None:
        """Undo a failed addition, sparing files a conflicting entry now records."""
        owner = error.existing if isinstance(error, DuplicateEntryError) else None
        if owner is None:
            self._cleanup(pending.install_path, pending.archive_path, pending.owns_archive_copy)
            return

        logger.warning(
            "%s was claimed by '%s' while it was being added", pending.install_path, owner.name
        )
        keep_install = same_path(owner.install_path, pending.install_path)
        keep_archive = same_path(owner.archive_path, pending.archive_path)
        if not keep_install:
            self._cleanup(pending.install_path, pending.archive_path, owns_archive_copy=False)
        if pending.owns_archive_copy and not keep_archive:
            self._remove_archive_copy(pending.archive_path)

    def _cleanup(self, install_path: Path, archive_path: Path, owns_archive_copy: bool) -> None:
        try:
            if install_path.is_dir():
                shutil.rmtree(install_path)
        except OSError as e:
            logger.warning("Failed to remove install directory %s: %s", install_path, e)

        if owns_archive_copy:
            self._remove_archive_copy(archive_path)

    def _remove_archive_copy(self, archive_path: Path) -> None:
        try:
            archive_path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Failed to remove archive copy %s: %s", archive_path, e)


def _reject_conflict(entries: list[SoftwareEntry], candidate: SoftwareEntry) -> None:
    conflict = find_path_conflict(entries, candidate)
    if conflict is not None:
        raise DuplicateEntryError(
            f"'{conflict.name}' already uses the install or archive path of '{candidate.name}'",
            conflict,
        )


def _matches_entry_name(base: str, wanted: str) -> bool:
    return base == wanted or base.startswith(f"{wanted}-")
