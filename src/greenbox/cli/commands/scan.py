import click

from greenbox.cli.ensure import Ensure
from greenbox.cli.output import user_output
from greenbox.core.batch_types import (
    ArchiveAssociationResolution,
    ArchiveAssociationSuggestion,
)
from greenbox.core.context import GreenboxContext
from greenbox.core.errors import GreenboxError


def _print_progress(done: int, total: int, name: str) -> None:
    user_output(click.style(f"[{done}/{total}] ", dim=True) + name)


def _ask(suggestion: ArchiveAssociationSuggestion) -> ArchiveAssociationResolution:
    user_output(f"Existing archives may belong to {click.style(suggestion.display_name, bold=True)}:")
    for number, candidate in enumerate(suggestion.candidates, start=1):
        user_output(f"  {number}) {candidate.name}")
    user_output("  0) none of these")

    choice = click.prompt(
        "Associate archive",
        type=click.IntRange(0, len(suggestion.candidates)),
        default=1,
        err=True,
    )
    selected = suggestion.candidates[choice - 1] if choice else None
    return ArchiveAssociationResolution(
        install_path=suggestion.install_path, selected_archive_path=selected
    )


@click.command("scan")
@click.option("--no-backup", is_flag=True, help="Do not zip directories that have no archive.")
@click.option("--no-manage", is_flag=True, help="Do not add scanned directories to the catalog.")
@click.pass_obj
def scan_cmd(ctx: GreenboxContext, no_backup: bool, no_manage: bool) -> None:
    """Back up and register every directory in the install root."""
    Ensure.configured(ctx)
    batch = ctx.batch

    try:
        summary = batch.archive_install_subdirectories(
            on_progress=_print_progress,
            manage_recognized=not no_manage,
            create_backup=not no_backup,
        )
    except GreenboxError as e:
        Ensure.fail(str(e))

    for failure in summary.failures:
        ctx.feedback.error(f"  {failure.name}: {failure.error}")

    if summary.suggestions:
        resolutions = [_ask(suggestion) for suggestion in summary.suggestions]
        try:
            batch.apply_archive_associations(
                resolutions, create_backup_for_unselected=not no_backup
            )
        except (GreenboxError, OSError) as e:
            Ensure.fail(str(e))

    ctx.feedback.success(
        f"Scanned {summary.total} directories, created {summary.archived} backups "
        f"in {summary.backup_dir}"
    )
    if summary.failures:
        raise SystemExit(1)
