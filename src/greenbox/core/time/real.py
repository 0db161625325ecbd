"""Real time implementation using the system clock."""

import time
from datetime import datetime

from greenbox.core.time.abc import Time


class RealTime(Time):
    """Production implementation using actual time.sleep() and datetime.now()."""

    def sleep(self, seconds: float) -> None:
        """Sleep for specified number of seconds using time.sleep().

        Args:
            seconds: Number of seconds to sleep
        """
        time.sleep(seconds)

    def now(self) -> datetime:
        return datetime.now()
