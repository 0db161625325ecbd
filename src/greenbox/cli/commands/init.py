from dataclasses import replace
from pathlib import Path

import click

from greenbox.cli.ensure import Ensure
from greenbox.cli.output import user_output
from greenbox.core.context import GreenboxContext
from greenbox.core.settings import DEFAULT_ARCHIVE_DIR_NAME


@click.command("init")
@click.option(
    "--install-root",
    type=click.Path(file_okay=False, path_type=Path),
    required=True,
    help="Directory portable applications are installed into.",
)
@click.option(
    "--archive-root",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help=f"Where archive copies and the catalog live (default: <install-root>/{DEFAULT_ARCHIVE_DIR_NAME}).",
)
@click.pass_obj
def init_cmd(ctx: GreenboxContext, install_root: Path, archive_root: Path | None) -> None:
    """Create the global configuration and the catalog directories."""
    install_root = install_root.expanduser().resolve()
    if archive_root is not None:
        archive_root = archive_root.expanduser().resolve()

    settings = replace(ctx.settings, install_root=install_root, archive_root=archive_root)
    resolved_archive_root = settings.resolve_archive_root()

    try:
        install_root.mkdir(parents=True, exist_ok=True)
        resolved_archive_root.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        Ensure.fail(f"Cannot create directories: {e}")

    ctx.settings_store.save(settings)
    user_output(f"Created config at {ctx.settings_store.path()}")
    user_output(f"  install root: {install_root}")
    user_output(f"  archive root: {resolved_archive_root}")
