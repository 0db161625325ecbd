"""Catalog settings data structures and loading.

Provides immutable settings loaded from ~/.greenbox/config.toml. The catalog
core only reads these values; persisting them is the job of SettingsStore.
"""

import os
import tomllib
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

import tomlkit

from greenbox.core.errors import ConfigurationMissingError
from greenbox.core.naming import BACKUP_DIR_NAME

DEFAULT_ARCHIVE_DIR_NAME = "~archives"
DEFAULT_EXECUTABLE_EXTENSIONS: tuple[str, ...] = ("exe", "bat")
DEFAULT_MAX_SEARCH_DEPTH = 3
DEFAULT_FLATTEN_NESTED_DIRS = True

CONFIG_PATH_ENV_VAR = "GREENBOX_CONFIG"


def normalize_extension_list(extensions: Iterable[str] | None) -> tuple[str, ...]:
    """Normalize an executable extension allow-list.

    Trims, lowercases and strips leading dots, dropping empties and duplicates
    (first occurrence wins). An empty result falls back to the defaults.

    Examples:
        >>> normalize_extension_list([".EXE", " cmd ", "exe", ""])
        ('exe', 'cmd')
        >>> normalize_extension_list([])
        ('exe', 'bat')
    """
    normalized: list[str] = []
    for ext in extensions or ():
        cleaned = str(ext).strip().lower().lstrip(".")
        if cleaned and cleaned not in normalized:
            normalized.append(cleaned)
    if not normalized:
        return DEFAULT_EXECUTABLE_EXTENSIONS
    return tuple(normalized)


@dataclass(frozen=True)
class CatalogSettings:
    """Immutable catalog configuration.

    Loaded once at CLI entry point and stored in GreenboxContext.
    install_root is None until the user runs `greenbox init`.
    """

    install_root: Path | None
    archive_root: Path | None = None
    executable_extensions: tuple[str, ...] = DEFAULT_EXECUTABLE_EXTENSIONS
    max_search_depth: int = DEFAULT_MAX_SEARCH_DEPTH
    flatten_nested_dirs: bool = DEFAULT_FLATTEN_NESTED_DIRS

    def require_install_root(self) -> Path:
        """Return install_root or raise ConfigurationMissingError."""
        if self.install_root is None:
            raise ConfigurationMissingError()
        return self.install_root

    def resolve_archive_root(self) -> Path:
        """Configured archive root, or ``<install_root>/~archives``.

        Raises:
            ConfigurationMissingError: If neither root is configured
        """
        if self.archive_root is not None:
            return self.archive_root
        if self.install_root is None:
            raise ConfigurationMissingError(
                "Install root is not configured; cannot determine the archive directory"
            )
        return self.install_root / DEFAULT_ARCHIVE_DIR_NAME

    def resolve_backup_dir(self) -> Path:
        return self.resolve_archive_root() / BACKUP_DIR_NAME


class SettingsStore(ABC):
    """Abstract interface for settings persistence.

    Provides dependency injection for settings access, enabling in-memory
    implementations for tests without touching the filesystem.
    """

    @abstractmethod
    def exists(self) -> bool:
        """Check if settings exist."""
        ...

    @abstractmethod
    def load(self) -> CatalogSettings:
        """Load settings.

        Returns:
            CatalogSettings with loaded values; missing keys use defaults

        Raises:
            FileNotFoundError: If settings don't exist
            ValueError: If settings are malformed
        """
        ...

    @abstractmethod
    def save(self, settings: CatalogSettings) -> None:
        """Save settings.

        Args:
            settings: CatalogSettings instance to save
        """
        ...

    @abstractmethod
    def path(self) -> Path:
        """Get the path to the settings file (for error messages and debugging)."""
        ...


class FilesystemSettingsStore(SettingsStore):
    """Production implementation that reads/writes ~/.greenbox/config.toml."""

    def __init__(self, config_path: Path | None = None) -> None:
        self._config_path = config_path

    def exists(self) -> bool:
        return self.path().exists()

    def load(self) -> CatalogSettings:
        """Load settings from the TOML file.

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If a value has the wrong type
        """
        config_path = self.path()
        if not config_path.exists():
            raise FileNotFoundError(f"Config not found at {config_path}")

        data = tomllib.loads(config_path.read_text(encoding="utf-8"))

        depth = data.get("max_search_depth", DEFAULT_MAX_SEARCH_DEPTH)
        if not isinstance(depth, int) or isinstance(depth, bool):
            raise ValueError(f"'max_search_depth' must be an integer in {config_path}")
        if depth < 0:
            depth = DEFAULT_MAX_SEARCH_DEPTH

        extensions = data.get("executable_extensions")
        if extensions is not None and not isinstance(extensions, list):
            raise ValueError(f"'executable_extensions' must be a list in {config_path}")

        return CatalogSettings(
            install_root=_optional_path(data.get("install_root")),
            archive_root=_optional_path(data.get("archive_root")),
            executable_extensions=normalize_extension_list(extensions),
            max_search_depth=depth,
            flatten_nested_dirs=bool(data.get("flatten_nested_dirs", DEFAULT_FLATTEN_NESTED_DIRS)),
        )

    def save(self, settings: CatalogSettings) -> None:
        """Save settings, creating the parent directory if needed.

        Uses tomlkit so the file stays human-editable.
        """
        config_path = self.path()
        config_path.parent.mkdir(parents=True, exist_ok=True)

        doc = tomlkit.document()
        doc.add(tomlkit.comment("Global greenbox configuration"))
        if settings.install_root is not None:
            doc["install_root"] = str(settings.install_root)
        if settings.archive_root is not None:
            doc["archive_root"] = str(settings.archive_root)
        doc["executable_extensions"] = list(settings.executable_extensions)
        doc["max_search_depth"] = settings.max_search_depth
        doc["flatten_nested_dirs"] = settings.flatten_nested_dirs

        config_path.write_text(tomlkit.dumps(doc), encoding="utf-8")

    def path(self) -> Path:
        if self._config_path is not None:
            return self._config_path
        env_path = os.environ.get(CONFIG_PATH_ENV_VAR)
        if env_path:
            return Path(env_path).expanduser()
        return Path.home() / ".greenbox" / "config.toml"


class FakeSettingsStore(SettingsStore):
    """In-memory settings store for testing."""

    def __init__(self, settings: CatalogSettings | None = None) -> None:
        self._settings = settings

    @property
    def saved_settings(self) -> CatalogSettings | None:
        """Last saved settings, for test assertions."""
        return self._settings

    def exists(self) -> bool:
        return self._settings is not None

    def load(self) -> CatalogSettings:
        if self._settings is None:
            raise FileNotFoundError(f"Config not found at {self.path()}")
        return self._settings

    def save(self, settings: CatalogSettings) -> None:
        self._settings = settings

    def path(self) -> Path:
        return Path("/fake/greenbox/config.toml")


def _optional_path(value: object) -> Path | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    return Path(text).expanduser().resolve()
