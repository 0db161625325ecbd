"""Software catalog: types, storage and reconciliation."""

from greenbox.core.registry.fake import FakeSoftwareRegistry
from greenbox.core.registry.json_store import JsonSoftwareRegistry
from greenbox.core.registry.store import SoftwareRegistry
from greenbox.core.registry.types import (
    ArchiveListing,
    SoftwareEntry,
    SoftwareStatus,
)

__all__ = [
    "ArchiveListing",
    "FakeSoftwareRegistry",
    "JsonSoftwareRegistry",
    "SoftwareEntry",
    "SoftwareRegistry",
    "SoftwareStatus",
]
