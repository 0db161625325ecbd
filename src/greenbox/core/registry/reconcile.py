"""Merge the persisted catalog with what is actually on disk."""

import logging
from dataclasses import replace
from pathlib import Path

from greenbox.core.archives import archive_base_name
from greenbox.core.naming import (
    BACKUP_DIR_NAME,
    backup_name_prefix,
    is_backup_path,
    same_path,
)
from greenbox.core.registry.types import (
    CATALOG_STORAGE_FILE_NAMES,
    SoftwareEntry,
    SoftwareStatus,
)
from greenbox.core.settings import DEFAULT_ARCHIVE_DIR_NAME

logger = logging.getLogger(__name__)


def reconcile_entries(
    managed: list[SoftwareEntry],
    install_root: Path | None,
    archive_root: Path | None,
) -> list[SoftwareEntry]:
    """Refresh runtime flags and append unmanaged filesystem content.

    Returns managed entries (in catalog order) followed by UNKNOWN_INSTALL
    entries, then UNKNOWN_ARCHIVE entries. A missing root contributes no
    synthesized entries.
    """
    backup_dir = archive_root / BACKUP_DIR_NAME if archive_root is not None else None
    backup_names = _list_file_names(backup_dir)

    refreshed = [_refresh_flags(entry, backup_names) for entry in managed]
    unknown_installs = _unknown_installs(managed, install_root, archive_root)
    unknown_archives = _unknown_archives(managed, archive_root)
    return refreshed + unknown_installs + unknown_archives


def reserved_names_for(archive_root: Path | None) -> frozenset[str]:
    """Lowercased install-root child names that are never catalog content."""
    names = {DEFAULT_ARCHIVE_DIR_NAME.lower(), BACKUP_DIR_NAME.lower()}
    if archive_root is not None:
        names.add(archive_root.name.lower())
    return frozenset(names)


def has_backup(entry: SoftwareEntry, backup_names: list[str]) -> bool:
    """Backup heuristic: archive lives in backup/ or a backup file carries the name prefix."""
    if is_backup_path(entry.archive_path):
        return True
    prefix = backup_name_prefix(entry.name)
    if prefix is None:
        return False
    prefix = prefix.lower()
    return any(name.lower().startswith(prefix) for name in backup_names)


def _refresh_flags(entry: SoftwareEntry, backup_names: list[str]) -> SoftwareEntry:
    return replace(
        entry,
        status=SoftwareStatus.MANAGED,
        archive_exists=entry.archive_path is not None and entry.archive_path.is_file(),
        install_exists=entry.install_path is not None and entry.install_path.is_dir(),
        is_backup_archive=has_backup(entry, backup_names),
    )


def _unknown_installs(
    managed: list[SoftwareEntry],
    install_root: Path | None,
    archive_root: Path | None,
) -> list[SoftwareEntry]:
    if install_root is None or not install_root.is_dir():
        return []

    reserved = reserved_names_for(archive_root)
    results: list[SoftwareEntry] = []
    for child in _sorted_children(install_root):
        if not child.is_dir():
            continue
        if child.name.lower() in reserved or same_path(child, archive_root):
            continue
        if any(same_path(child, e.install_path) for e in managed):
            continue
        results.append(
            SoftwareEntry(
                id=str(child),
                name=child.name,
                install_path=child,
                status=SoftwareStatus.UNKNOWN_INSTALL,
                install_exists=True,
            )
        )
    return results


def _unknown_archives(managed: list[SoftwareEntry], archive_root: Path | None) -> list[SoftwareEntry]:
    if archive_root is None or not archive_root.is_dir():
        return []

    results: list[SoftwareEntry] = []
    for child in _sorted_children(archive_root):
        if not child.is_file():
            continue
        if child.name.lower() in CATALOG_STORAGE_FILE_NAMES:
            continue
        if any(same_path(child, e.archive_path) for e in managed):
            continue
        results.append(
            SoftwareEntry(
                id=str(child),
                name=archive_base_name(child),
                archive_path=child,
                status=SoftwareStatus.UNKNOWN_ARCHIVE,
                archive_exists=True,
            )
        )
    return results


def _sorted_children(directory: Path) -> list[Path]:
    try:
        return sorted(directory.iterdir(), key=lambda p: p.name.lower())
    except OSError as e:
        logger.warning("Failed to list %s: %s", directory, e)
        return []


def _list_file_names(directory: Path | None) -> list[str]:
    if directory is None or not directory.is_dir():
        return []
    return [child.name for child in _sorted_children(directory) if child.is_file()]
