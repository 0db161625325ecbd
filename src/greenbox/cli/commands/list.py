import json
from pathlib import Path
from typing import Any

import click
from rich.console import Console
from rich.table import Table

from greenbox.cli.ensure import Ensure
from greenbox.cli.output import machine_output, user_output
from greenbox.core.context import GreenboxContext
from greenbox.core.errors import GreenboxError
from greenbox.core.registry.types import SoftwareEntry, SoftwareStatus

_STATUS_LABELS = {
    SoftwareStatus.MANAGED: "[green]managed[/green]",
    SoftwareStatus.UNKNOWN_INSTALL: "[yellow]unmanaged dir[/yellow]",
    SoftwareStatus.UNKNOWN_ARCHIVE: "[yellow]unmanaged archive[/yellow]",
}


def _entry_to_json(entry: SoftwareEntry) -> dict[str, Any]:
    def path(value: Path | None) -> str | None:
        return str(value) if value is not None else None

    return {
        "id": entry.id,
        "name": entry.name,
        "status": entry.status.value,
        "sortOrder": entry.sort_order if entry.is_managed else None,
        "installPath": path(entry.install_path),
        "executablePath": path(entry.executable_path),
        "archivePath": path(entry.archive_path),
        "backupPath": path(entry.backup_path),
        "installExists": entry.install_exists,
        "archiveExists": entry.archive_exists,
        "hasBackup": entry.is_backup_archive,
    }


def _flags(entry: SoftwareEntry) -> str:
    if not entry.is_managed:
        return ""
    flags: list[str] = []
    if not entry.install_exists:
        flags.append("[red]missing install[/red]")
    if entry.archive_path is not None and not entry.archive_exists:
        flags.append("[red]missing archive[/red]")
    if entry.is_backup_archive:
        flags.append("backup")
    return ", ".join(flags)


def _render_table(entries: list[SoftwareEntry]) -> None:
    table = Table(show_header=True, header_style="bold")
    table.add_column("#", justify="right", no_wrap=True)
    table.add_column("name", style="cyan", no_wrap=True)
    table.add_column("status", no_wrap=True)
    table.add_column("executable")
    table.add_column("flags", no_wrap=True)
    table.add_column("id", style="dim", no_wrap=True)

    for entry in entries:
        executable = ""
        if entry.executable_path is not None and entry.install_path is not None:
            if entry.executable_path.is_relative_to(entry.install_path):
                executable = entry.executable_path.relative_to(entry.install_path).as_posix()
            else:
                executable = str(entry.executable_path)
        table.add_row(
            str(entry.sort_order) if entry.is_managed else "",
            entry.name,
            _STATUS_LABELS[entry.status],
            executable,
            _flags(entry),
            entry.id if entry.is_managed else "",
        )

    # Tables go to stderr like every other user_output message.
    console = Console(stderr=True, width=200)
    console.print(table)


@click.command("list")
@click.option("--json", "as_json", is_flag=True, help="Print entries as JSON on stdout.")
@click.pass_obj
def list_cmd(ctx: GreenboxContext, as_json: bool) -> None:
    """List catalog entries and unmanaged content in the install and archive roots."""
    registry = Ensure.configured(ctx)
    try:
        entries = registry.reconcile(
            ctx.settings.install_root, ctx.settings.resolve_archive_root()
        )
    except GreenboxError as e:
        Ensure.fail(str(e))

    if as_json:
        machine_output(json.dumps([_entry_to_json(e) for e in entries], indent=2))
        return

    if not entries:
        user_output("No software found. Add some with 'greenbox add FILE'.")
        return
    _render_table(entries)
