from greenbox.core.time.abc import Time
from greenbox.core.time.real import RealTime

__all__ = [
    "RealTime",
    "Time",
]
