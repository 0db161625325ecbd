"""Error taxonomy for catalog operations.

Duplicates spotted before installing are not errors: they are returned as
DuplicateFound results. A conflict that only shows up when the catalog is
written raises DuplicateEntryError.

Path traversal attempts are not errors either: offending archive entries are
skipped and logged while the rest of the archive is extracted.
"""

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from greenbox.core.registry.types import SoftwareEntry


class GreenboxError(Exception):
    """Base class for all catalog errors."""


class ConfigurationMissingError(GreenboxError):
    """Install root (and therefore archive root) has not been configured.

    Raised before any filesystem mutation. Callers are expected to prompt the
    user to configure the install root.
    """

    def __init__(self, message: str = "Install root is not configured") -> None:
        super().__init__(message)


class ExtractionError(GreenboxError):
    """Archive is corrupt, unreadable, or uses an unsupported inner codec."""


class NoExecutableFoundError(GreenboxError):
    """Installed content has no file matching the executable allow-list."""


class UnsupportedSourceError(GreenboxError):
    """Source file is neither a recognized archive nor an allowed executable."""


class SourceMissingError(GreenboxError):
    """Source file (or the archive needed for a rehost) does not exist."""


class EntryNotFoundError(GreenboxError):
    """No managed entry carries the requested id."""


class LockUnavailableError(GreenboxError):
    """Exclusive catalog lock could not be acquired within the bounded wait."""


class PersistenceError(GreenboxError):
    """Catalog file could not be read or written."""


class DuplicateEntryError(GreenboxError):
    """A catalog write would leave two entries sharing an id, install path or archive path.

    existing is the entry already holding the contested value, when known.
    """

    def __init__(self, message: str, existing: "SoftwareEntry | None" = None) -> None:
        super().__init__(message)
        self.existing = existing
