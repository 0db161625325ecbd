from dataclasses import replace
from pathlib import Path

import click

from greenbox.cli.ensure import Ensure
from greenbox.cli.output import machine_output, user_output
from greenbox.core.context import GreenboxContext
from greenbox.core.settings import CatalogSettings, normalize_extension_list

CONFIG_KEYS = (
    "install_root",
    "archive_root",
    "executable_extensions",
    "max_search_depth",
    "flatten_nested_dirs",
)


def _parse_boolean_value(value: str, field_name: str) -> bool:
    """Parse "true" or "false" (case-insensitive), exiting on anything else."""
    if value.lower() not in ("true", "false"):
        Ensure.fail(f"Invalid boolean value for {field_name}: {value}")
    return value.lower() == "true"


def _format_value(settings: CatalogSettings, key: str) -> str:
    match key:
        case "install_root":
            return str(settings.install_root) if settings.install_root else ""
        case "archive_root":
            return str(settings.archive_root) if settings.archive_root else ""
        case "executable_extensions":
            return ",".join(settings.executable_extensions)
        case "max_search_depth":
            return str(settings.max_search_depth)
        case "flatten_nested_dirs":
            return str(settings.flatten_nested_dirs).lower()
        case _:
            Ensure.fail(f"Invalid key: {key}")


def _update_field(settings: CatalogSettings, key: str, value: str) -> CatalogSettings:
    """Return settings with one field replaced, exiting on invalid keys or values."""
    match key:
        case "install_root":
            return replace(settings, install_root=Path(value).expanduser().resolve())
        case "archive_root":
            archive_root = Path(value).expanduser().resolve() if value.strip() else None
            return replace(settings, archive_root=archive_root)
        case "executable_extensions":
            return replace(
                settings, executable_extensions=normalize_extension_list(value.split(","))
            )
        case "max_search_depth":
            Ensure.invariant(
                value.isdigit(), f"max_search_depth must be a non-negative integer: {value}"
            )
            return replace(settings, max_search_depth=int(value))
        case "flatten_nested_dirs":
            return replace(settings, flatten_nested_dirs=_parse_boolean_value(value, key))
        case _:
            Ensure.fail(f"Invalid key: {key}")


@click.group("config")
def config_group() -> None:
    """Manage greenbox configuration."""


@config_group.command("list")
@click.pass_obj
def config_list(ctx: GreenboxContext) -> None:
    """Print a list of configuration keys and values."""
    user_output(click.style("Global configuration:", bold=True))
    if not ctx.settings_store.exists():
        user_output("  (not configured - run 'greenbox init' to create)")
        return
    for key in CONFIG_KEYS:
        user_output(f"  {key}={_format_value(ctx.settings, key)}")


@config_group.command("get")
@click.argument("key", metavar="KEY")
@click.pass_obj
def config_get(ctx: GreenboxContext, key: str) -> None:
    """Print the value of a given configuration key."""
    Ensure.invariant(
        ctx.settings_store.exists(), f"Global config not found at {ctx.settings_store.path()}"
    )
    machine_output(_format_value(ctx.settings, key))


@config_group.command("set")
@click.argument("key", metavar="KEY")
@click.argument("value", metavar="VALUE")
@click.pass_obj
def config_set(ctx: GreenboxContext, key: str, value: str) -> None:
    """Update configuration with a value for the given key."""
    if not ctx.settings_store.exists():
        Ensure.fail(
            f"Global config not found at {ctx.settings_store.path()} - "
            "run 'greenbox init' to create it"
        )
    updated = _update_field(ctx.settings, key, value)
    ctx.settings_store.save(updated)
    user_output(f"Set {key}={_format_value(updated, key)}")
