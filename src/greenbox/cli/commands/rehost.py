import click

from greenbox.cli.ensure import Ensure
from greenbox.cli.resolution import report, settle
from greenbox.core.context import GreenboxContext


@click.command("rehost")
@click.argument("entry_id", metavar="ID")
@click.option(
    "--exe",
    "exe_name",
    default=None,
    help="Executable to use when several are found (file name or path inside the install).",
)
@click.pass_obj
def rehost_cmd(ctx: GreenboxContext, entry_id: str, exe_name: str | None) -> None:
    """Reinstall a catalog entry from its archive after its directory was removed."""
    registry = Ensure.configured(ctx)
    Ensure.entry_exists(registry, entry_id)

    workflow = ctx.workflow
    report(settle(workflow, workflow.rehost(entry_id), exe_name))
