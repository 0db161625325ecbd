"""Tests for catalog settings and the TOML settings store."""

from pathlib import Path

import pytest

from greenbox.core.errors import ConfigurationMissingError
from greenbox.core.settings import (
    CONFIG_PATH_ENV_VAR,
    CatalogSettings,
    FakeSettingsStore,
    FilesystemSettingsStore,
    normalize_extension_list,
)


def test_normalize_extension_list() -> None:
    assert normalize_extension_list([".EXE", " cmd ", "exe", ""]) == ("exe", "cmd")
    assert normalize_extension_list([]) == ("exe", "bat")
    assert normalize_extension_list(None) == ("exe", "bat")


def test_archive_root_defaults_under_install_root(tmp_path: Path) -> None:
    settings = CatalogSettings(install_root=tmp_path)

    assert settings.resolve_archive_root() == tmp_path / "~archives"
    assert settings.resolve_backup_dir() == tmp_path / "~archives" / "backup"


def test_missing_install_root_raises() -> None:
    settings = CatalogSettings(install_root=None)

    with pytest.raises(ConfigurationMissingError):
        settings.require_install_root()
    with pytest.raises(ConfigurationMissingError):
        settings.resolve_archive_root()


def test_filesystem_store_round_trip(tmp_path: Path) -> None:
    store = FilesystemSettingsStore(tmp_path / "config" / "config.toml")
    settings = CatalogSettings(
        install_root=tmp_path / "Install",
        archive_root=tmp_path / "Archives",
        executable_extensions=("exe", "cmd"),
        max_search_depth=5,
        flatten_nested_dirs=False,
    )

    assert not store.exists()
    store.save(settings)

    assert store.exists()
    assert store.load() == CatalogSettings(
        install_root=(tmp_path / "Install").resolve(),
        archive_root=(tmp_path / "Archives").resolve(),
        executable_extensions=("exe", "cmd"),
        max_search_depth=5,
        flatten_nested_dirs=False,
    )


def test_filesystem_store_applies_defaults_and_normalization(tmp_path: Path) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text(
        f'install_root = "{(tmp_path / "Install").as_posix()}"\n'
        'executable_extensions = [".EXE", ""]\n'
        "max_search_depth = -2\n",
        encoding="utf-8",
    )

    settings = FilesystemSettingsStore(config_path).load()

    assert settings.archive_root is None
    assert settings.executable_extensions == ("exe",)
    assert settings.max_search_depth == 3
    assert settings.flatten_nested_dirs is True


def test_filesystem_store_rejects_bad_types(tmp_path: Path) -> None:
    config_path = tmp_path / "config.toml"
    config_path.write_text('max_search_depth = "deep"\n', encoding="utf-8")

    with pytest.raises(ValueError, match="max_search_depth"):
        FilesystemSettingsStore(config_path).load()


def test_filesystem_store_honors_env_override(
    tmp_path: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setenv(CONFIG_PATH_ENV_VAR, str(tmp_path / "custom.toml"))

    assert FilesystemSettingsStore().path() == tmp_path / "custom.toml"


def test_fake_store() -> None:
    store = FakeSettingsStore()
    assert not store.exists()
    with pytest.raises(FileNotFoundError):
        store.load()

    settings = CatalogSettings(install_root=Path("/Install"))
    store.save(settings)

    assert store.saved_settings == settings
    assert store.load() == settings
