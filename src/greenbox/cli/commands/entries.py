"""Commands that edit a single catalog entry."""

import shutil
from pathlib import Path

import click

from greenbox.cli.ensure import Ensure
from greenbox.cli.output import user_output
from greenbox.core.context import GreenboxContext
from greenbox.core.errors import GreenboxError


@click.command("backup")
@click.argument("entry_id", metavar="ID")
@click.pass_obj
def backup_cmd(ctx: GreenboxContext, entry_id: str) -> None:
    """Zip an entry's install directory into the backup folder."""
    registry = Ensure.configured(ctx)
    Ensure.entry_exists(registry, entry_id)
    try:
        backup = ctx.batch.create_backup_for_entry(entry_id)
    except (GreenboxError, OSError) as e:
        Ensure.fail(str(e))
    ctx.feedback.success(f"Created backup {backup}")


@click.command("remove")
@click.argument("entry_id", metavar="ID")
@click.option("--delete-install", is_flag=True, help="Also delete the install directory.")
@click.option("--delete-archive", is_flag=True, help="Also delete the archive copy.")
@click.pass_obj
def remove_cmd(
    ctx: GreenboxContext, entry_id: str, delete_install: bool, delete_archive: bool
) -> None:
    """Remove an entry from the catalog."""
    registry = Ensure.configured(ctx)
    Ensure.entry_exists(registry, entry_id)
    try:
        removed = registry.remove(entry_id)
    except GreenboxError as e:
        Ensure.fail(str(e))

    try:
        if delete_install and removed.install_path is not None and removed.install_path.is_dir():
            shutil.rmtree(removed.install_path)
            user_output(f"Deleted {removed.install_path}")
        if delete_archive and removed.archive_path is not None and removed.archive_path.is_file():
            removed.archive_path.unlink()
            user_output(f"Deleted {removed.archive_path}")
    except OSError as e:
        Ensure.fail(f"Removed '{removed.name}' from the catalog but could not delete files: {e}")

    ctx.feedback.success(f"Removed {removed.name}")


@click.command("set-exe")
@click.argument("entry_id", metavar="ID")
@click.argument("executable", type=click.Path(dir_okay=False, path_type=Path))
@click.pass_obj
def set_exe_cmd(ctx: GreenboxContext, entry_id: str, executable: Path) -> None:
    """Change the executable an entry launches."""
    registry = Ensure.configured(ctx)
    entry = Ensure.entry_exists(registry, entry_id)

    if not executable.is_absolute() and entry.install_path is not None:
        executable = entry.install_path / executable
    Ensure.file_exists(executable)

    try:
        updated = registry.update_executable(entry_id, executable)
    except GreenboxError as e:
        Ensure.fail(str(e))
    ctx.feedback.success(f"{updated.name} now launches {updated.executable_path}")


@click.command("reorder")
@click.argument("entry_ids", metavar="ID...", nargs=-1, required=True)
@click.pass_obj
def reorder_cmd(ctx: GreenboxContext, entry_ids: tuple[str, ...]) -> None:
    """Move the given entries to the top of the catalog, in order."""
    registry = Ensure.configured(ctx)
    try:
        entries = registry.reorder(list(entry_ids))
    except GreenboxError as e:
        Ensure.fail(str(e))
    for entry in entries:
        user_output(f"  {entry.sort_order}. {entry.name}")
