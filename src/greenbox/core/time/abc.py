"""Time operations abstraction for testing.

This module provides an ABC for clock operations (sleep, now) so that lock
polling and timestamped backup names can be tested without real waiting.
"""

from abc import ABC, abstractmethod
from datetime import datetime


class Time(ABC):
    """Abstract time operations for dependency injection."""

    @abstractmethod
    def sleep(self, seconds: float) -> None:
        """Sleep for specified number of seconds.

        Args:
            seconds: Number of seconds to sleep
        """
        ...

    @abstractmethod
    def now(self) -> datetime:
        """Return the current local time."""
        ...
