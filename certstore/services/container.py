"""
Startup wiring of the storage layer.

The provider is resolved once from an explicit Settings value. A provider
that is selected but incompletely configured is captured here and raised by
every operation that needs storage, so nothing partially proceeds.
"""

from dataclasses import dataclass

from certstore.core.config import Settings
from certstore.core.exceptions import ConfigurationError
from certstore.core.logging import get_logger
from certstore.services.lifecycle.cleanup import CleanupJob
from certstore.services.lifecycle.urls import UrlResolver
from certstore.services.storage.base import StorageBackend
from certstore.services.storage.factory import create_storage_backend

logger = get_logger(__name__)


@dataclass
class StorageServices:
    """Backend plus the services bound to it."""

    backend: StorageBackend
    resolver: UrlResolver
    cleanup_job: CleanupJob


@dataclass
class StorageContainer:
    """Holds the wired services, or the reason they could not be built."""

    settings: Settings
    services: StorageServices | None = None
    configuration_error: ConfigurationError | None = None

    @property
    def provider(self) -> str:
        return self.settings.storage_provider

    def require(self) -> StorageServices:
        """
        Return the wired services.

        Raises:
            ConfigurationError: If the provider could not be configured.
        """
        if self.services is None:
            raise self.configuration_error or ConfigurationError()
        return self.services


def build_container(settings: Settings) -> StorageContainer:
    """Resolve the active backend and bind the resolver and cleanup job to it."""
    try:
        backend = create_storage_backend(settings)
    except ConfigurationError as e:
        logger.error(
            "storage_not_configured",
            provider=settings.storage_provider,
            error=e.message,
            details=e.details,
        )
        return StorageContainer(settings=settings, configuration_error=e)

    logger.info("storage_configured", provider=backend.provider)
    return StorageContainer(
        settings=settings,
        services=StorageServices(
            backend=backend,
            resolver=UrlResolver(backend),
            cleanup_job=CleanupJob(backend, concurrency=settings.cleanup_concurrency),
        ),
    )
