"""Catalog persisted as software_list.json in the archive root."""

import json
import logging
import os
from dataclasses import replace
from pathlib import Path

from greenbox.core.errors import PersistenceError
from greenbox.core.registry.lock import DEFAULT_LOCK_TIMEOUT, DEFAULT_POLL_INTERVAL, catalog_lock
from greenbox.core.registry.store import Mutation, SoftwareRegistry
from greenbox.core.registry.types import (
    CATALOG_FILE_NAME,
    CATALOG_TEMP_FILE_NAME,
    LOCK_FILE_NAME,
    SoftwareEntry,
    entry_from_record,
    entry_to_record,
    normalize_managed,
)
from greenbox.core.time.abc import Time

logger = logging.getLogger(__name__)


class JsonSoftwareRegistry(SoftwareRegistry):
    """Production registry backed by a lock-protected JSON list file."""

    def __init__(
        self,
        archive_root: Path,
        time: Time,
        *,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
        poll_interval: float = DEFAULT_POLL_INTERVAL,
    ) -> None:
        self.archive_root = archive_root
        self.catalog_path = archive_root / CATALOG_FILE_NAME
        self.lock_path = archive_root / LOCK_FILE_NAME
        self._temp_path = archive_root / CATALOG_TEMP_FILE_NAME
        self._time = time
        self._lock_timeout = lock_timeout
        self._poll_interval = poll_interval

    def load(self) -> list[SoftwareEntry]:
        entries = self._read()
        return [replace(entry, sort_order=index) for index, entry in enumerate(entries)]

    def update(self, mutate: Mutation) -> list[SoftwareEntry]:
        try:
            self.archive_root.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistenceError(f"Cannot create archive directory {self.archive_root}: {e}") from e

        with catalog_lock(
            self.lock_path,
            self._time,
            timeout=self._lock_timeout,
            poll_interval=self._poll_interval,
        ):
            # Never trust an earlier snapshot: another writer may have saved since.
            current = self.load()
            updated = normalize_managed(mutate(list(current)))
            self._write(updated)

        logger.debug("Saved %d catalog entries to %s", len(updated), self.catalog_path)
        return updated

    def _read(self) -> list[SoftwareEntry]:
        if not self.catalog_path.exists():
            return []

        try:
            with open(self.catalog_path, encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"Cannot read catalog {self.catalog_path}: {e}") from e

        if not isinstance(data, list):
            raise PersistenceError(f"Catalog {self.catalog_path} is not a JSON array")

        try:
            return [entry_from_record(record) for record in data]
        except (KeyError, TypeError, AttributeError) as e:
            raise PersistenceError(f"Malformed record in {self.catalog_path}: {e}") from e

    def _write(self, entries: list[SoftwareEntry]) -> None:
        records = [entry_to_record(entry) for entry in entries]
        try:
            with open(self._temp_path, "w", encoding="utf-8") as f:
                json.dump(records, f, indent=2, ensure_ascii=False)
                f.write("\n")
                f.flush()
                os.fsync(f.fileno())
            os.replace(self._temp_path, self.catalog_path)
        except OSError as e:
            self._discard_temp_file()
            raise PersistenceError(f"Cannot write catalog {self.catalog_path}: {e}") from e

    def _discard_temp_file(self) -> None:
        try:
            self._temp_path.unlink(missing_ok=True)
        except OSError as e:
            logger.warning("Failed to remove temporary catalog file %s: %s", self._temp_path, e)
