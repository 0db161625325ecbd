"""Tests for archive entry path sanitization."""

import os
from pathlib import Path

import pytest

from greenbox.core.entry_paths import normalize_entry_name, resolve_entry_path


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("MyApp\\bin\\app.exe", "MyApp/bin/app.exe"),
        ("./MyApp/app.exe", "MyApp/app.exe"),
        ("././/MyApp//app.exe", "MyApp/app.exe"),
        ("  MyApp/app.exe  ", "MyApp/app.exe"),
        ("", ""),
    ],
)
def test_normalize_entry_name(raw: str, expected: str) -> None:
    assert normalize_entry_name(raw) == expected


@pytest.mark.parametrize(
    "hostile",
    [
        "../evil.exe",
        "../../evil.exe",
        "MyApp/../../evil.exe",
        "..\\..\\evil.exe",
        "/etc/passwd",
        "\\Windows\\system32\\evil.dll",
        "C:\\Windows\\evil.dll",
        "c:evil.dll",
        "",
        "   ",
    ],
)
def test_resolve_entry_path_rejects_escapes(tmp_path: Path, hostile: str) -> None:
    assert resolve_entry_path(tmp_path, hostile) is None


def test_resolve_entry_path_accepts_nested_entries(tmp_path: Path) -> None:
    target = resolve_entry_path(tmp_path, "MyApp/bin/app.exe")

    assert target == tmp_path.resolve() / "MyApp" / "bin" / "app.exe"


def test_resolve_entry_path_allows_dotdot_that_stays_inside(tmp_path: Path) -> None:
    target = resolve_entry_path(tmp_path, "MyApp/bin/../app.exe")

    assert target == tmp_path.resolve() / "MyApp" / "app.exe"


def test_resolve_entry_path_root_itself_is_accepted(tmp_path: Path) -> None:
    assert resolve_entry_path(tmp_path, "MyApp/..") == tmp_path.resolve()


@pytest.mark.skipif(os.name == "nt", reason="symlinks need privileges on Windows")
def test_resolve_entry_path_rejects_symlink_escape(tmp_path: Path) -> None:
    root = tmp_path / "root"
    outside = tmp_path / "outside"
    root.mkdir()
    outside.mkdir()
    (root / "link").symlink_to(outside, target_is_directory=True)

    assert resolve_entry_path(root, "link/evil.exe") is None
