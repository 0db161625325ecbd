import logging
import os
from pathlib import Path

import click

from greenbox.cli.commands.add import add_cmd
from greenbox.cli.commands.config import config_group
from greenbox.cli.commands.entries import backup_cmd, remove_cmd, reorder_cmd, set_exe_cmd
from greenbox.cli.commands.init import init_cmd
from greenbox.cli.commands.list import list_cmd
from greenbox.cli.commands.rehost import rehost_cmd
from greenbox.cli.commands.scan import scan_cmd
from greenbox.core.context import create_context

CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])  # terse help flags

DEBUG_ENV_VAR = "GREENBOX_DEBUG"


def _configure_logging() -> None:
    if os.environ.get(DEBUG_ENV_VAR):
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        )


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(package_name="greenbox")
@click.option("--quiet", "-q", is_flag=True, help="Only show errors and required actions.")
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file to use instead of ~/.greenbox/config.toml.",
)
@click.pass_context
def cli(ctx: click.Context, quiet: bool, config_path: Path | None) -> None:
    """Manage a catalog of portable applications."""
    _configure_logging()
    # Only create context if not already provided (e.g., by tests)
    if ctx.obj is None:
        ctx.obj = create_context(quiet=quiet, config_path=config_path)


cli.add_command(add_cmd)
cli.add_command(backup_cmd)
cli.add_command(config_group)
cli.add_command(init_cmd)
cli.add_command(list_cmd)
cli.add_command(rehost_cmd)
cli.add_command(remove_cmd)
cli.add_command(reorder_cmd)
cli.add_command(scan_cmd)
cli.add_command(set_exe_cmd)


def main() -> None:
    """CLI entry point used by the `greenbox` console script."""
    cli()
