"""Tests for adding, resolving and rehosting software."""

import sys
import threading
from pathlib import Path

import pytest

from greenbox.core.errors import (
    ConfigurationMissingError,
    DuplicateEntryError,
    EntryNotFoundError,
    ExtractionError,
    GreenboxError,
    LockUnavailableError,
    NoExecutableFoundError,
    SourceMissingError,
    UnsupportedSourceError,
)
from greenbox.core.ingestion import CONFIGURATION_HINT_TITLE, IngestionWorkflow
from greenbox.core.ingestion_types import (
    AddCancelled,
    AddFailed,
    AddResult,
    AddSuccess,
    DuplicateFound,
    NeedsSelection,
    SourceType,
)
from greenbox.core.registry import FakeSoftwareRegistry, SoftwareEntry
from greenbox.core.registry.json_store import JsonSoftwareRegistry
from greenbox.core.registry.store import Mutation
from greenbox.core.settings import CatalogSettings
from greenbox.core.time.abc import Time
from greenbox.core.time.real import RealTime
from tests.fakes.time import FakeTime
from tests.fakes.user_feedback import FakeUserFeedback
from tests.test_utils.archives import make_tar, make_zip
from tests.test_utils.env_helpers import CatalogEnv


def _my_app_zip(env: CatalogEnv, name: str = "MyApp.zip") -> Path:
    return make_zip(
        env.downloads / name,
        {
            "MyApp/app.exe": b"MZ",
            "MyApp/readme.txt": b"hello",
            "../../evil.exe": b"MZ",
        },
    )


def _added(result: object) -> SoftwareEntry:
    assert isinstance(result, AddSuccess), result
    return result.entry


def test_add_archive_extracts_flattens_and_records(tmp_path: Path) -> None:
    env = CatalogEnv.create(tmp_path)

    entry = _added(env.workflow().add_from_file(_my_app_zip(env)))

    install = env.install_root / "MyApp"
    assert entry.name == "MyApp"
    assert entry.install_path == install
    assert entry.executable_path == install / "app.exe"
    assert entry.archive_path == env.archive_root / "MyApp.zip"
    assert entry.sort_order == 0
    assert (install / "readme.txt").read_bytes() == b"hello"
    assert (env.archive_root / "MyApp.zip").is_file()
    assert not (tmp_path / "evil.exe").exists()
    assert not (env.install_root / "evil.exe").exists()
    assert [e.id for e in env.registry.load()] == [entry.id]
    assert env.feedback.messages[-1] == "SUCCESS: Added MyApp"


def test_second_add_reports_duplicate_without_writing(tmp_path: Path) -> None:
    env = CatalogEnv.create(tmp_path)
    source = _my_app_zip(env)
    first = _added(env.workflow().add_from_file(source))

    result = env.workflow().add_from_file(source)

    assert isinstance(result, DuplicateFound)
    info = result.info
    assert info.source_type == SourceType.ARCHIVE
    assert info.intended_name == "MyApp"
    assert info.install_dir_exists
    assert info.archive_exists
    assert info.existing_entry is not None and info.existing_entry.id == first.id
    assert [e.id for e in env.registry.load()] == [first.id]


def test_resolve_duplicate_overwrite_reuses_sort_slot(tmp_path: Path) -> None:
    env = CatalogEnv.create(tmp_path)
    workflow = env.workflow()
    source = _my_app_zip(env)
    old = _added(workflow.add_from_file(source))
    other = _added(
        workflow.add_from_file(make_zip(env.downloads / "Other.zip", {"other.exe": b"MZ"}))
    )
    (env.install_root / "MyApp" / "stale.dat").write_bytes(b"old")
    duplicate = workflow.add_from_file(source)
    assert isinstance(duplicate, DuplicateFound)

    replaced = _added(workflow.resolve_duplicate(duplicate.info, overwrite=True))

    assert replaced.id != old.id
    assert [(e.name, e.sort_order) for e in env.registry.load()] == [
        ("MyApp", 0),
        ("Other", 1),
    ]
    assert env.registry.get(other.id) is not None
    assert not (env.install_root / "MyApp" / "stale.dat").exists()


def test_resolve_duplicate_with_new_name(tmp_path: Path) -> None:
    env = CatalogEnv.create(tmp_path)
    workflow = env.workflow()
    source = _my_app_zip(env)
    _added(workflow.add_from_file(source))
    duplicate = workflow.add_from_file(source)
    assert isinstance(duplicate, DuplicateFound)

    renamed = _added(workflow.resolve_duplicate(duplicate.info, rename_to="  MyApp 2 "))

    assert renamed.name == "MyApp 2"
    assert renamed.archive_path == env.archive_root / "MyApp 2.zip"
    assert (env.install_root / "MyApp 2" / "app.exe").is_file()
    assert len(env.registry.load()) == 2


def test_resolve_duplicate_requires_a_decision(tmp_path: Path) -> None:
    env = CatalogEnv.create(tmp_path)
    workflow = env.workflow()
    source = _my_app_zip(env)
    _added(workflow.add_from_file(source))
    duplicate = workflow.add_from_file(source)
    assert isinstance(duplicate, DuplicateFound)

    with pytest.raises(ValueError):
        workflow.resolve_duplicate(duplicate.info, rename_to="   ")


def test_add_executable(tmp_path: Path) -> None:
    env = CatalogEnv.create(tmp_path)
    source = env.downloads / "tool.exe"
    source.write_bytes(b"MZ")

    entry = _added(env.workflow().add_from_file(source))

    assert entry.name == "tool"
    assert entry.install_path == env.install_root / "tool"
    assert entry.executable_path == env.install_root / "tool" / "tool.exe"
    assert entry.archive_path == env.archive_root / "tool.exe"
    assert source.is_file()


def test_custom_name_is_sanitized(tmp_path: Path) -> None:
    env = CatalogEnv.create(tmp_path)

    entry = _added(env.workflow().add_from_file(_my_app_zip(env), custom_name="My:App"))

    assert entry.name == "My_App"
    assert entry.archive_path == env.archive_root / "My_App.zip"


def test_multiple_executables_need_selection(tmp_path: Path) -> None:
    env = CatalogEnv.create(tmp_path)
    workflow = env.workflow()
    source = make_zip(env.downloads / "Suite.zip", {"b.exe": b"MZ", "a.exe": b"MZ"})

    result = workflow.add_from_file(source)

    assert isinstance(result, NeedsSelection)
    install = env.install_root / "Suite"
    assert result.pending.executable_paths == [install / "a.exe", install / "b.exe"]
    assert env.registry.load() == []

    with pytest.raises(ValueError):
        workflow.complete_selection(result.pending, install / "missing.exe")

    entry = _added(workflow.complete_selection(result.pending, install / "b.exe"))
    assert entry.executable_path == install / "b.exe"


def test_cancel_pending_removes_installed_files(tmp_path: Path) -> None:
    env = CatalogEnv.create(tmp_path)
    workflow = env.workflow()
    source = make_zip(env.downloads / "Suite.zip", {"a.exe": b"MZ", "b.exe": b"MZ"})
    result = workflow.add_from_file(source)
    assert isinstance(result, NeedsSelection)

    assert isinstance(workflow.cancel_pending(result.pending), AddCancelled)

    assert not (env.install_root / "Suite").exists()
    assert not (env.archive_root / "Suite.zip").exists()
    assert source.is_file()
    assert env.registry.load() == []


def test_no_executable_fails_and_cleans_up(tmp_path: Path) -> None:
    env = CatalogEnv.create(tmp_path)
    source = make_zip(env.downloads / "Docs.zip", {"Docs/readme.txt": b"hi"})

    result = env.workflow().add_from_file(source)

    assert isinstance(result, AddFailed)
    assert isinstance(result.error, NoExecutableFoundError)
    assert not (env.install_root / "Docs").exists()
    assert not (env.archive_root / "Docs.zip").exists()
    assert env.registry.load() == []


def test_corrupt_archive_fails_and_cleans_up(tmp_path: Path) -> None:
    env = CatalogEnv.create(tmp_path)
    source = env.downloads / "Broken.zip"
    source.write_bytes(b"this is not a zip file")

    result = env.workflow().add_from_file(source)

    assert isinstance(result, AddFailed)
    assert isinstance(result.error, ExtractionError)
    assert not (env.install_root / "Broken").exists()
    assert not (env.archive_root / "Broken.zip").exists()


def test_unsupported_and_missing_sources(tmp_path: Path) -> None:
    env = CatalogEnv.create(tmp_path)
    notes = env.downloads / "notes.txt"
    notes.write_text("x", encoding="utf-8")

    unsupported = env.workflow().add_from_file(notes)
    missing = env.workflow().add_from_file(env.downloads / "missing.zip")

    assert isinstance(unsupported, AddFailed)
    assert isinstance(unsupported.error, UnsupportedSourceError)
    assert isinstance(missing, AddFailed)
    assert isinstance(missing.error, SourceMissingError)
    assert not env.archive_root.exists()


def test_missing_configuration_hints_before_touching_disk(tmp_path: Path) -> None:
    feedback = FakeUserFeedback()
    registry = FakeSoftwareRegistry()
    workflow = IngestionWorkflow(registry, CatalogSettings(install_root=None), FakeTime(), feedback)
    source = make_zip(tmp_path / "MyApp.zip", {"app.exe": b"MZ"})

    result = workflow.add_from_file(source)

    assert isinstance(result, AddFailed)
    assert isinstance(result.error, ConfigurationMissingError)
    assert [title for title, _ in feedback.hints] == [CONFIGURATION_HINT_TITLE]
    assert registry.update_count == 0


def test_failed_catalog_write_cleans_up(tmp_path: Path) -> None:
    env = CatalogEnv.create(tmp_path)
    registry = FakeSoftwareRegistry(fail_updates_with=LockUnavailableError("busy"))
    workflow = IngestionWorkflow(registry, env.settings, env.time, env.feedback)

    result = workflow.add_from_file(_my_app_zip(env))

    assert isinstance(result, AddFailed)
    assert isinstance(result.error, LockUnavailableError)
    assert not (env.install_root / "MyApp").exists()
    assert not (env.archive_root / "MyApp.zip").exists()


def test_adding_the_archive_copy_itself_keeps_it(tmp_path: Path) -> None:
    env = CatalogEnv.create(tmp_path)
    copy = make_zip(env.archive_root / "MyApp.zip", {"MyApp/app.exe": b"MZ"})

    entry = _added(env.workflow().add_from_file(copy))

    assert entry.archive_path == copy
    assert copy.is_file()


class _RivalWriterRegistry(JsonSoftwareRegistry):
    """Commits a rival entry right before the next write, as another process would."""

    def __init__(self, archive_root: Path, time: Time, rival: SoftwareEntry) -> None:
        super().__init__(archive_root, time)
        self.rival: SoftwareEntry | None = rival

    def update(self, mutate: Mutation) -> list[SoftwareEntry]:
        rival, self.rival = self.rival, None
        if rival is not None:
            super().update(lambda entries: entries + [rival])
        return super().update(mutate)


def test_entry_committed_after_duplicate_check_wins(tmp_path: Path) -> None:
    env = CatalogEnv.create(tmp_path)
    rival = SoftwareEntry(
        id="rival",
        name="MyApp",
        install_path=env.install_root / "MyApp",
        executable_path=env.install_root / "MyApp" / "app.exe",
        archive_path=env.archive_root / "MyApp.zip",
    )
    registry = _RivalWriterRegistry(env.archive_root, env.time, rival)
    workflow = IngestionWorkflow(registry, env.settings, env.time, env.feedback)

    result = workflow.add_from_file(_my_app_zip(env))

    assert isinstance(result, AddFailed)
    assert isinstance(result.error, DuplicateEntryError)
    assert [e.id for e in registry.load()] == ["rival"]
    # Files now recorded by the rival entry are left in place.
    assert (env.install_root / "MyApp" / "app.exe").is_file()
    assert (env.archive_root / "MyApp.zip").is_file()
    assert not any(m.startswith("SUCCESS") for m in env.feedback.messages)


def test_archive_claimed_during_add_is_kept_while_install_is_removed(tmp_path: Path) -> None:
    env = CatalogEnv.create(tmp_path)
    rival = SoftwareEntry(
        id="rival",
        name="Elsewhere",
        install_path=env.install_root / "Elsewhere",
        archive_path=env.archive_root / "MyApp.zip",
    )
    registry = _RivalWriterRegistry(env.archive_root, env.time, rival)
    workflow = IngestionWorkflow(registry, env.settings, env.time, env.feedback)

    result = workflow.add_from_file(_my_app_zip(env))

    assert isinstance(result, AddFailed)
    assert isinstance(result.error, DuplicateEntryError)
    assert not (env.install_root / "MyApp").exists()
    assert (env.archive_root / "MyApp.zip").is_file()


class _RendezvousRegistry(JsonSoftwareRegistry):
    """Lets each duplicate check return only once every caller has made one."""

    def __init__(self, archive_root: Path, time: Time, parties: int) -> None:
        super().__init__(archive_root, time)
        self._checked = threading.Barrier(parties, timeout=10)

    def find_by_paths(
        self, install_path: Path | None, archive_path: Path | None
    ) -> SoftwareEntry | None:
        found = super().find_by_paths(install_path, archive_path)
        self._checked.wait()
        return found


@pytest.mark.skipif(sys.platform == "win32", reason="flock semantics")
def test_concurrent_adds_of_the_same_source_record_one_entry(tmp_path: Path) -> None:
    env = CatalogEnv.create(tmp_path)
    source = env.downloads / "MyApp.exe"
    source.write_bytes(b"MZ")
    registry = _RendezvousRegistry(env.archive_root, RealTime(), parties=2)
    results: list[AddResult] = []

    def add() -> None:
        workflow = IngestionWorkflow(registry, env.settings, env.time, FakeUserFeedback())
        results.append(workflow.add_from_file(source))

    threads = [threading.Thread(target=add) for _ in range(2)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=30)

    assert len(results) == 2
    assert len([r for r in results if isinstance(r, AddSuccess)]) == 1
    loser = next(r for r in results if not isinstance(r, AddSuccess))
    assert isinstance(loser, DuplicateFound) or (
        isinstance(loser, AddFailed) and isinstance(loser.error, DuplicateEntryError)
    )
    assert [e.install_path for e in registry.load()] == [env.install_root / "MyApp"]
    assert (env.install_root / "MyApp" / "MyApp.exe").read_bytes() == b"MZ"
    assert (env.archive_root / "MyApp.exe").is_file()


def test_rehost_restores_deleted_install(tmp_path: Path) -> None:
    env = CatalogEnv.create(tmp_path)
    workflow = env.workflow()
    entry = _added(workflow.add_from_file(_my_app_zip(env)))
    _added(workflow.add_from_file(make_zip(env.downloads / "Other.zip", {"o.exe": b"MZ"})))
    assert entry.install_path is not None
    (entry.install_path / "app.exe").unlink()
    (entry.install_path / "readme.txt").unlink()
    entry.install_path.rmdir()

    rehosted = _added(workflow.rehost(entry.id))

    assert rehosted.id == entry.id
    assert rehosted.sort_order == 0
    assert (entry.install_path / "app.exe").is_file()
    assert rehosted.archive_path == env.archive_root / "MyApp.zip"
    assert env.feedback.messages[-1] == "SUCCESS: Rehosted MyApp"


def test_rehost_from_backup_records_backup(tmp_path: Path) -> None:
    env = CatalogEnv.create(tmp_path)
    backup = make_zip(env.backup_dir / "MyApp-20250101_120000.zip", {"MyApp/app.exe": b"MZ"})
    env.registry.save(
        [
            SoftwareEntry(
                id="abc",
                name="MyApp",
                install_path=env.install_root / "MyApp",
                archive_path=env.archive_root / "MyApp.zip",
                backup_path=backup,
            )
        ]
    )

    rehosted = _added(env.workflow().rehost("abc"))

    assert rehosted.backup_path == backup
    assert rehosted.archive_path == env.archive_root / "MyApp.zip"
    assert rehosted.executable_path == env.install_root / "MyApp" / "app.exe"
    assert backup.is_file()


def test_rehost_refuses_existing_install_and_unknown_ids(tmp_path: Path) -> None:
    env = CatalogEnv.create(tmp_path)
    workflow = env.workflow()
    entry = _added(workflow.add_from_file(_my_app_zip(env)))

    existing = workflow.rehost(entry.id)
    unknown = workflow.rehost("nope")

    assert isinstance(existing, AddFailed)
    assert type(existing.error) is GreenboxError
    assert isinstance(unknown, AddFailed)
    assert isinstance(unknown.error, EntryNotFoundError)


def test_rehost_without_any_archive_fails(tmp_path: Path) -> None:
    env = CatalogEnv.create(tmp_path)
    env.registry.save(
        [
            SoftwareEntry(
                id="abc",
                name="Gone",
                install_path=env.install_root / "Gone",
                archive_path=env.archive_root / "Gone.zip",
            )
        ]
    )

    result = env.workflow().rehost("abc")

    assert isinstance(result, AddFailed)
    assert isinstance(result.error, SourceMissingError)
    assert not (env.install_root / "Gone").exists()


def test_rehost_finds_unrecorded_archive_by_name_prefix(tmp_path: Path) -> None:
    env = CatalogEnv.create(tmp_path)
    archive = make_zip(env.archive_root / "MyApp-1.0.zip", {"app.exe": b"MZ"})
    env.registry.save([SoftwareEntry(id="abc", name="MyApp")])

    rehosted = _added(env.workflow().rehost("abc"))

    assert rehosted.install_path == env.install_root / "MyApp"
    assert rehosted.archive_path == archive


def test_rehost_name_match_requires_a_version_delimiter(tmp_path: Path) -> None:
    env = CatalogEnv.create(tmp_path)
    make_zip(env.archive_root / "Apple.zip", {"apple.exe": b"MZ"})
    env.registry.save([SoftwareEntry(id="abc", name="App")])

    result = env.workflow().rehost("abc")

    assert isinstance(result, AddFailed)
    assert isinstance(result.error, SourceMissingError)
    assert not (env.install_root / "App").exists()

    archive = make_tar(env.archive_root / "App-2.1.tar.gz", {"app.exe": b"MZ"}, "gz")

    rehosted = _added(env.workflow().rehost("abc"))

    assert rehosted.archive_path == archive
    assert (env.install_root / "App" / "app.exe").is_file()
