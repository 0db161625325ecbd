"""Fake UserFeedback implementation for testing."""

from greenbox.core.user_feedback import UserFeedback


class FakeUserFeedback(UserFeedback):
    """Records every message instead of printing it.

    Messages are stored as "LEVEL: text" strings in call order, so tests can
    assert on both content and ordering.
    """

    def __init__(self) -> None:
        self._messages: list[str] = []
        self._hints: list[tuple[str, str]] = []

    @property
    def messages(self) -> list[str]:
        return self._messages

    @property
    def hints(self) -> list[tuple[str, str]]:
        """(title, message) pairs passed to hint()."""
        return self._hints

    def info(self, message: str) -> None:
        self._messages.append(f"INFO: {message}")

    def success(self, message: str) -> None:
        self._messages.append(f"SUCCESS: {message}")

    def error(self, message: str) -> None:
        self._messages.append(f"ERROR: {message}")

    def hint(self, title: str, message: str) -> None:
        self._hints.append((title, message))
        self._messages.append(f"HINT: {title}: {message}")
