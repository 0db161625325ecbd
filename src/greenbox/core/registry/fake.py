"""In-memory software registry for testing."""

from dataclasses import replace

from greenbox.core.errors import GreenboxError
from greenbox.core.registry.store import Mutation, SoftwareRegistry
from greenbox.core.registry.types import SoftwareEntry, normalize_managed


class FakeSoftwareRegistry(SoftwareRegistry):
    """In-memory registry applying the same normalization as the JSON store.

    Set fail_updates_with to make every update() raise that error before the
    mutation runs, simulating an unavailable lock or a failing disk.
    """

    def __init__(
        self,
        entries: list[SoftwareEntry] | None = None,
        fail_updates_with: GreenboxError | None = None,
    ) -> None:
        self._entries = normalize_managed(list(entries or []))
        self.fail_updates_with = fail_updates_with
        self._update_count = 0

    @property
    def entries(self) -> list[SoftwareEntry]:
        """Current stored entries, for test assertions."""
        return list(self._entries)

    @property
    def update_count(self) -> int:
        """Number of successful writes, for test assertions."""
        return self._update_count

    def load(self) -> list[SoftwareEntry]:
        return [replace(entry, sort_order=index) for index, entry in enumerate(self._entries)]

    def update(self, mutate: Mutation) -> list[SoftwareEntry]:
        if self.fail_updates_with is not None:
            raise self.fail_updates_with
        updated = normalize_managed(mutate(self.load()))
        self._entries = updated
        self._update_count += 1
        return list(updated)
