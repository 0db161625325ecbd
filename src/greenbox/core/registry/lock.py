"""Exclusive advisory lock over the catalog's lock sentinel file.

The lock is taken with non-blocking attempts polled at a fixed interval, so a
process that died while holding it stalls writers for at most the timeout
instead of forever.
"""

import logging
import math
import sys
from collections.abc import Generator
from contextlib import contextmanager
from pathlib import Path
from typing import BinaryIO

from greenbox.core.errors import LockUnavailableError, PersistenceError
from greenbox.core.time.abc import Time

logger = logging.getLogger(__name__)

DEFAULT_LOCK_TIMEOUT = 10.0
DEFAULT_POLL_INTERVAL = 0.05


@contextmanager
def catalog_lock(
    lock_path: Path,
    time: Time,
    *,
    timeout: float = DEFAULT_LOCK_TIMEOUT,
    poll_interval: float = DEFAULT_POLL_INTERVAL,
) -> Generator[None]:
    """Hold an exclusive lock on lock_path for the duration of the block.

    Args:
        lock_path: Zero-byte sentinel file (created if missing)
        time: Time implementation used to wait between attempts
        timeout: Maximum total wait in seconds
        poll_interval: Wait between attempts in seconds

    Raises:
        LockUnavailableError: If the lock is still held by someone else after timeout
        PersistenceError: If the lock file cannot be opened or locking fails outright
    """
    attempts = max(1, math.ceil(timeout / poll_interval) + 1) if poll_interval > 0 else 1

    try:
        lock_path.parent.mkdir(parents=True, exist_ok=True)
        handle = open(lock_path, "a+b")
    except OSError as e:
        raise PersistenceError(f"Cannot open catalog lock {lock_path}: {e}") from e

    try:
        acquired = False
        for attempt in range(attempts):
            try:
                locked = _try_lock(handle)
            except OSError as e:
                raise PersistenceError(f"Cannot lock catalog {lock_path}: {e}") from e
            if locked:
                acquired = True
                break
            if attempt + 1 < attempts:
                time.sleep(poll_interval)

        if not acquired:
            raise LockUnavailableError(
                f"Catalog lock {lock_path} is held by another process (waited {timeout:g}s)"
            )

        logger.debug("Acquired catalog lock %s", lock_path)
        try:
            yield
        finally:
            _unlock(handle)
            logger.debug("Released catalog lock %s", lock_path)
    finally:
        handle.close()


def _try_lock(handle: BinaryIO) -> bool:
    if sys.platform == "win32":
        import msvcrt

        handle.seek(0)
        try:
            msvcrt.locking(handle.fileno(), msvcrt.LK_NBLCK, 1)
        except OSError:
            return False
        return True

    import fcntl

    try:
        fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
    except BlockingIOError:
        return False
    return True


def _unlock(handle: BinaryIO) -> None:
    if sys.platform == "win32":
        import msvcrt

        handle.seek(0)
        msvcrt.locking(handle.fileno(), msvcrt.LK_UNLCK, 1)
        return

    import fcntl

    fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
