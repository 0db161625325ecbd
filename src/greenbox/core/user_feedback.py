"""User-facing diagnostic output with mode awareness."""

from abc import ABC, abstractmethod

import click

from greenbox.cli.output import user_output


class UserFeedback(ABC):
    """Provides user-facing diagnostic output that's mode-aware.

    Core operations report through ctx.feedback instead of printing, so the
    same workflow code runs quietly under --quiet and in tests.

    Two modes:
    - Interactive: Show all diagnostics (info, success, hints, errors)
    - Quiet: Suppress diagnostics, only show errors and hints

    hint() is the notification hook for conditions the user must act on,
    such as a missing install root. It is never suppressed.
    """

    @abstractmethod
    def info(self, message: str) -> None:
        """Show informational message (suppressed in quiet mode)."""

    @abstractmethod
    def success(self, message: str) -> None:
        """Show success message (suppressed in quiet mode)."""

    @abstractmethod
    def error(self, message: str) -> None:
        """Show error message (always shown)."""

    @abstractmethod
    def hint(self, title: str, message: str) -> None:
        """Ask the user to take an action (always shown)."""


class InteractiveFeedback(UserFeedback):
    """Feedback shown in interactive mode (all messages)."""

    def info(self, message: str) -> None:
        user_output(message)

    def success(self, message: str) -> None:
        user_output(click.style(message, fg="green"))

    def error(self, message: str) -> None:
        user_output(click.style(message, fg="red"))

    def hint(self, title: str, message: str) -> None:
        user_output(click.style(f"{title}: ", fg="yellow", bold=True) + message)


class SuppressedFeedback(UserFeedback):
    """Feedback for --quiet: only errors and hints are shown."""

    def info(self, message: str) -> None:
        pass

    def success(self, message: str) -> None:
        pass

    def error(self, message: str) -> None:
        user_output(click.style(message, fg="red"))

    def hint(self, title: str, message: str) -> None:
        user_output(click.style(f"{title}: ", fg="yellow", bold=True) + message)
