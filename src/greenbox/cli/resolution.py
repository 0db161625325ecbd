"""Interactive answers to the decisions an add or rehost can return."""

from pathlib import Path

import click

from greenbox.cli.ensure import Ensure
from greenbox.cli.output import user_output
from greenbox.core.ingestion import IngestionWorkflow
from greenbox.core.ingestion_types import (
    AddCancelled,
    AddFailed,
    AddResult,
    AddSuccess,
    DuplicateFound,
    DuplicateInfo,
    NeedsSelection,
    PendingAddition,
)


def settle(workflow: IngestionWorkflow, result: AddResult, exe_name: str | None) -> AddResult:
    """Prompt until the result no longer needs a decision."""
    while True:
        if isinstance(result, DuplicateFound):
            result = _resolve_duplicate(workflow, result.info)
        elif isinstance(result, NeedsSelection):
            result = _select_executable(workflow, result.pending, exe_name)
        else:
            return result


def report(result: AddResult) -> None:
    """Print the final outcome; failures exit with code 1."""
    if isinstance(result, AddSuccess):
        entry = result.entry
        user_output(f"  id:         {entry.id}")
        user_output(f"  install:    {entry.install_path}")
        user_output(f"  executable: {entry.executable_path}")
        return
    if isinstance(result, AddCancelled):
        user_output("Cancelled.")
        return
    if isinstance(result, AddFailed):
        Ensure.fail(result.message)


def match_executable(candidates: list[Path], root: Path, exe_name: str) -> list[Path]:
    """Candidates whose file name or root-relative path equals exe_name (case-insensitive)."""
    wanted = exe_name.replace("\\", "/").lower()
    matches: list[Path] = []
    for candidate in candidates:
        relative = candidate.relative_to(root).as_posix() if candidate.is_relative_to(root) else ""
        if candidate.name.lower() == wanted or relative.lower() == wanted:
            matches.append(candidate)
    return matches


def _resolve_duplicate(workflow: IngestionWorkflow, info: DuplicateInfo) -> AddResult:
    user_output(click.style(f"'{info.intended_name}' already exists:", fg="yellow"))
    if info.existing_entry is not None:
        user_output(f"  catalog entry {info.existing_entry.id}")
    if info.install_dir_exists:
        user_output(f"  install directory {info.target_install_path}")
    if info.archive_exists:
        user_output(f"  archive {info.target_archive_path}")

    choice = click.prompt(
        "Overwrite, rename or cancel?",
        type=click.Choice(["overwrite", "rename", "cancel"]),
        default="cancel",
        err=True,
    )
    if choice == "overwrite":
        return workflow.resolve_duplicate(info, overwrite=True)
    if choice == "rename":
        new_name = click.prompt("New name", err=True)
        return workflow.resolve_duplicate(info, rename_to=new_name)
    return AddCancelled()


def _select_executable(
    workflow: IngestionWorkflow, pending: PendingAddition, exe_name: str | None
) -> AddResult:
    candidates = pending.executable_paths
    if exe_name is not None:
        matches = match_executable(candidates, pending.install_path, exe_name)
        if len(matches) == 1:
            return workflow.complete_selection(pending, matches[0])
        workflow.cancel_pending(pending)
        Ensure.fail(f"--exe '{exe_name}' matched {len(matches)} of {len(candidates)} executables")

    user_output(f"Several executables found in {pending.install_path}:")
    for number, candidate in enumerate(candidates, start=1):
        user_output(f"  {number}) {candidate.relative_to(pending.install_path)}")
    user_output("  0) cancel")

    choice = click.prompt(
        "Select executable", type=click.IntRange(0, len(candidates)), default=1, err=True
    )
    if choice == 0:
        return workflow.cancel_pending(pending)
    return workflow.complete_selection(pending, candidates[choice - 1])
