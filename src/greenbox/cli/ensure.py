"""CLI error handling utilities with styled output.

This module provides the Ensure class for asserting invariants in CLI commands
with consistent, user-friendly error messages. All errors use red "Error:" prefix
for visual consistency.
"""

from pathlib import Path
from typing import TYPE_CHECKING, NoReturn

import click

from greenbox.cli.output import user_output
from greenbox.core.ingestion import CONFIGURATION_HINT_MESSAGE, CONFIGURATION_HINT_TITLE
from greenbox.core.registry.store import SoftwareRegistry
from greenbox.core.registry.types import SoftwareEntry

if TYPE_CHECKING:
    from greenbox.core.context import GreenboxContext


class Ensure:
    """Helper class for asserting invariants with consistent error handling."""

    @staticmethod
    def fail(error_message: str) -> NoReturn:
        """Output styled error and exit with code 1."""
        user_output(click.style("Error: ", fg="red") + error_message)
        raise SystemExit(1)

    @staticmethod
    def invariant(condition: bool, error_message: str) -> None:
        """Ensure condition is true, otherwise output styled error and exit.

        Args:
            condition: Boolean condition to check
            error_message: Error message to display if condition is false.
                          "Error: " prefix will be added automatically in red.

        Raises:
            SystemExit: If condition is false (with exit code 1)
        """
        if not condition:
            Ensure.fail(error_message)

    @staticmethod
    def configured(ctx: "GreenboxContext") -> SoftwareRegistry:
        """Ensure an install root is configured and return the catalog.

        Shows the configuration hint through ctx.feedback before exiting so the
        user knows which command fixes the problem.

        Raises:
            SystemExit: If no install root is configured
        """
        if ctx.settings.install_root is None or ctx.registry is None:
            ctx.feedback.hint(CONFIGURATION_HINT_TITLE, CONFIGURATION_HINT_MESSAGE)
            raise SystemExit(1)
        return ctx.registry

    @staticmethod
    def entry_exists(registry: SoftwareRegistry, entry_id: str) -> SoftwareEntry:
        """Ensure a managed entry with entry_id exists, otherwise exit.

        Example:
            >>> entry = Ensure.entry_exists(registry, "3f2a...")
        """
        entry = registry.get(entry_id)
        if entry is None:
            Ensure.fail(f"No catalog entry with id '{entry_id}' - run 'greenbox list' to see ids")
        return entry

    @staticmethod
    def file_exists(path: Path, error_message: str | None = None) -> None:
        """Ensure path is an existing file, otherwise output styled error and exit."""
        if not path.is_file():
            if error_message is None:
                error_message = f"File not found: {path}"
            Ensure.fail(error_message)
