from pathlib import Path

import click

from greenbox.cli.ensure import Ensure
from greenbox.cli.resolution import report, settle
from greenbox.core.context import GreenboxContext


@click.command("add")
@click.argument("source", type=click.Path(dir_okay=False, path_type=Path))
@click.option("--name", default=None, help="Install under this name instead of the file name.")
@click.option(
    "--overwrite",
    is_flag=True,
    help="Replace an existing install, archive copy and catalog entry of the same name.",
)
@click.option(
    "--exe",
    "exe_name",
    default=None,
    help="Executable to use when several are found (file name or path inside the install).",
)
@click.pass_obj
def add_cmd(
    ctx: GreenboxContext, source: Path, name: str | None, overwrite: bool, exe_name: str | None
) -> None:
    """Install an archive or standalone executable and add it to the catalog."""
    Ensure.configured(ctx)
    source = source.expanduser().absolute()
    Ensure.file_exists(source, f"Source not found: {source}")

    workflow = ctx.workflow
    result = workflow.add_from_file(source, allow_override=overwrite, custom_name=name)
    report(settle(workflow, result, exe_name))
