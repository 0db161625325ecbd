"""Application context with dependency injection."""

import logging
from dataclasses import dataclass
from pathlib import Path

from greenbox.core.batch import BatchArchiver
from greenbox.core.errors import ConfigurationMissingError
from greenbox.core.ingestion import IngestionWorkflow
from greenbox.core.registry.json_store import JsonSoftwareRegistry
from greenbox.core.registry.store import SoftwareRegistry
from greenbox.core.settings import CatalogSettings, FilesystemSettingsStore, SettingsStore
from greenbox.core.time.abc import Time
from greenbox.core.time.real import RealTime
from greenbox.core.user_feedback import InteractiveFeedback, SuppressedFeedback, UserFeedback

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GreenboxContext:
    """Immutable context holding all dependencies for catalog operations.

    Created at CLI entry point and threaded through the application.
    Frozen to prevent accidental modification at runtime.

    Note: registry is None until an install root is configured (before
    `greenbox init`). Use require_registry() in commands that need it.
    """

    settings_store: SettingsStore
    settings: CatalogSettings
    registry: SoftwareRegistry | None
    time: Time
    feedback: UserFeedback

    def require_registry(self) -> SoftwareRegistry:
        if self.registry is None:
            raise ConfigurationMissingError()
        return self.registry

    @property
    def workflow(self) -> IngestionWorkflow:
        return IngestionWorkflow(
            registry=self.require_registry(),
            settings=self.settings,
            time=self.time,
            feedback=self.feedback,
        )

    @property
    def batch(self) -> BatchArchiver:
        return BatchArchiver(registry=self.require_registry(), settings=self.settings, time=self.time)

    @staticmethod
    def for_test(
        settings: CatalogSettings | None = None,
        registry: SoftwareRegistry | None = None,
        settings_store: SettingsStore | None = None,
        time: Time | None = None,
        feedback: UserFeedback | None = None,
    ) -> "GreenboxContext":
        """Create test context with optional pre-configured dependencies.

        Args:
            settings: Optional CatalogSettings. If None, uses settings_store's
                         settings, or an unconfigured CatalogSettings.
            registry: Optional SoftwareRegistry. If None and an install root is
                         configured, creates an empty FakeSoftwareRegistry.
            settings_store: Optional SettingsStore. If None, creates a
                         FakeSettingsStore holding settings.
            time: Optional Time implementation. If None, creates FakeTime.
            feedback: Optional UserFeedback implementation.
                         If None, creates FakeUserFeedback.

        Returns:
            GreenboxContext configured with provided values and test defaults

        Example:
            >>> ctx = GreenboxContext.for_test(settings=CatalogSettings(install_root=tmp_path))
            >>> ctx.workflow.add_from_file(tmp_path / "MyApp.zip")
        """
        from tests.fakes.time import FakeTime
        from tests.fakes.user_feedback import FakeUserFeedback

        from greenbox.core.registry.fake import FakeSoftwareRegistry
        from greenbox.core.settings import FakeSettingsStore

        if settings is None:
            if settings_store is not None and settings_store.exists():
                settings = settings_store.load()
            else:
                settings = CatalogSettings(install_root=None)
        if settings_store is None:
            settings_store = FakeSettingsStore(settings if settings.install_root else None)
        if registry is None and settings.install_root is not None:
            registry = FakeSoftwareRegistry()

        return GreenboxContext(
            settings_store=settings_store,
            settings=settings,
            registry=registry,
            time=time if time is not None else FakeTime(),
            feedback=feedback if feedback is not None else FakeUserFeedback(),
        )


def create_context(*, quiet: bool = False, config_path: Path | None = None) -> GreenboxContext:
    """Create production context with real implementations.

    Called at CLI entry point to create the context for the entire
    command execution.

    Args:
        quiet: If True, suppress informational feedback (errors and hints still show)
        config_path: Optional config file, overriding GREENBOX_CONFIG and the default

    Returns:
        GreenboxContext with real implementations. The registry is None when
        no install root is configured yet.
    """
    settings_store = FilesystemSettingsStore(config_path)
    if settings_store.exists():
        settings = settings_store.load()
    else:
        # Only `greenbox init` and `greenbox config` work in this state.
        settings = CatalogSettings(install_root=None)

    time = RealTime()
    registry: SoftwareRegistry | None = None
    if settings.install_root is not None or settings.archive_root is not None:
        registry = JsonSoftwareRegistry(settings.resolve_archive_root(), time)
        logger.debug("Catalog at %s", settings.resolve_archive_root())

    feedback: UserFeedback = SuppressedFeedback() if quiet else InteractiveFeedback()

    return GreenboxContext(
        settings_store=settings_store,
        settings=settings,
        registry=registry,
        time=time,
        feedback=feedback,
    )
