"""Collapse a redundant wrapping directory produced by archive packaging.

Many archives wrap everything in a single top-level folder
(``MyApp.zip -> MyApp/...``). Extracting such an archive into ``<root>/MyApp``
yields ``<root>/MyApp/MyApp/...``; flattening lifts the inner folder's children
up one level.
"""

import logging
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)

_IGNORABLE_FILE_NAMES = frozenset({".ds_store", "thumbs.db", "desktop.ini"})
_IGNORABLE_DIR_NAMES = frozenset({"__macosx"})


def is_ignorable_artifact(name: str, is_dir: bool) -> bool:
    """Whether an extracted entry is platform metadata junk.

    Examples:
        >>> is_ignorable_artifact("__MACOSX", True)
        True
        >>> is_ignorable_artifact("._app.exe", False)
        True
        >>> is_ignorable_artifact("app.exe", False)
        False
    """
    lower = name.lower()
    if is_dir and lower in _IGNORABLE_DIR_NAMES:
        return True
    if lower in _IGNORABLE_FILE_NAMES:
        return True
    return lower.startswith("._")


def flatten_redundant_top_directory(root: Path) -> bool:
    """Lift the children of a lone top-level directory into root.

    Ignorable artifacts at root level are deleted first. Flattening happens only
    when exactly one entry remains and it is a (non-hidden) directory. If any
    child's name already exists in root the structure is left as-is; nothing is
    ever overwritten.

    Returns:
        True if the directory structure was flattened
    """
    if not root.is_dir():
        return False

    retained: list[Path] = []
    for entry in root.iterdir():
        is_dir = entry.is_dir() and not entry.is_symlink()
        if is_ignorable_artifact(entry.name, is_dir):
            _remove_artifact(entry, is_dir)
            continue
        retained.append(entry)

    if len(retained) != 1:
        return False

    nested = retained[0]
    if not nested.is_dir() or nested.is_symlink():
        return False
    if nested.name.startswith("."):
        return False

    children = list(nested.iterdir())
    for child in children:
        target = root / child.name
        if target == nested:
            continue
        if target.exists() or target.is_symlink():
            logger.warning("Name conflict while flattening, left as-is: %s", target)
            return False

    # A child may share the wrapper's own name (MyApp/MyApp/MyApp.exe).
    if any(child.name == nested.name for child in children):
        staging = _unused_sibling(root, nested.name)
        nested = nested.rename(staging)
        children = list(nested.iterdir())

    for child in children:
        child.rename(root / child.name)

    nested.rmdir()
    return True


def _unused_sibling(root: Path, name: str) -> Path:
    counter = 0
    while True:
        candidate = root / f".{name}.flatten{counter}"
        if not candidate.exists():
            return candidate
        counter += 1


def _remove_artifact(entry: Path, is_dir: bool) -> None:
    try:
        if is_dir:
            shutil.rmtree(entry)
        else:
            entry.unlink()
    except OSError as e:
        logger.warning("Failed to delete archive metadata %s: %s", entry, e)
