"""Tests for entry, archive and backup naming helpers."""

from datetime import datetime
from pathlib import Path

from greenbox.core.naming import (
    backup_file_name,
    backup_name_prefix,
    build_archive_file_name,
    is_backup_path,
    same_path,
    sanitize_software_name,
    source_stem,
    strip_backup_timestamp,
)

NOW = datetime(2025, 1, 15, 12, 30, 45)


def test_sanitize_replaces_characters_invalid_in_windows_names() -> None:
    assert sanitize_software_name(' My:App*<1>?"|\\/ ', NOW) == "My_App__1______"


def test_sanitize_empty_name_falls_back_to_timestamp() -> None:
    assert sanitize_software_name("   ", NOW) == f"software_{int(NOW.timestamp() * 1000)}"


def test_build_archive_file_name() -> None:
    assert build_archive_file_name("MyApp", "myapp-1.2.zip") == "MyApp.zip"
    assert build_archive_file_name("MyApp.tar", "MyApp.tar.gz") == "MyApp.tar.gz"
    assert build_archive_file_name("tool.EXE", "tool.exe") == "tool.EXE"
    assert build_archive_file_name("noext", "noext") == "noext"


def test_source_stem_drops_only_last_extension() -> None:
    assert source_stem(Path("MyApp.zip")) == "MyApp"
    assert source_stem(Path("MyApp.tar.gz")) == "MyApp.tar"


def test_backup_names() -> None:
    assert backup_file_name("MyApp", NOW) == "MyApp-20250115_123045.zip"
    assert strip_backup_timestamp("MyApp-20250115_123045") == "MyApp"
    assert strip_backup_timestamp("My-App") == "My-App"
    assert backup_name_prefix("My:App") == "My_App-"
    assert backup_name_prefix("  ") is None


def test_is_backup_path() -> None:
    assert is_backup_path(Path("/Install/~archives/backup/MyApp-20250115_123045.zip"))
    assert not is_backup_path(Path("/Install/~archives/MyApp.zip"))
    assert not is_backup_path(None)


def test_same_path_normalizes(tmp_path: Path) -> None:
    assert same_path(tmp_path / "a" / ".." / "b", tmp_path / "b")
    assert not same_path(tmp_path / "a", tmp_path / "b")
    assert not same_path(None, tmp_path)
    assert not same_path(None, None)
