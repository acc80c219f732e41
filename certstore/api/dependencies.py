"""
FastAPI dependencies.

Settings and the storage container are built once in create_app and read
back from app.state, so tests can hand the app a fully custom Settings.
"""

from typing import Annotated

from fastapi import Depends, Header, Request

from certstore.core.config import Settings
from certstore.core.security import authorize_cleanup
from certstore.services.container import StorageContainer, StorageServices


def get_app_settings(request: Request) -> Settings:
    """Settings the application was created with."""
    return request.app.state.settings


def get_container(request: Request) -> StorageContainer:
    """Storage container built at startup."""
    return request.app.state.storage


def get_storage_services(
    container: Annotated[StorageContainer, Depends(get_container)],
) -> StorageServices:
    """
    Wired storage services.

    Raises:
        ConfigurationError: If the selected provider is incompletely configured.
    """
    return container.require()


def get_authorized_services(
    settings: Annotated[Settings, Depends(get_app_settings)],
    container: Annotated[StorageContainer, Depends(get_container)],
    x_cleanup_key: Annotated[str | None, Header(alias="X-Cleanup-Key")] = None,
) -> StorageServices:
    """
    Storage services for maintenance routes.

    Configuration is checked before the secret, so a misconfigured
    deployment reports 400 even to unauthenticated callers.

    Raises:
        ConfigurationError: If the selected provider is incompletely configured.
        AuthorizationError: If the X-Cleanup-Key header does not match.
    """
    services = container.require()
    authorize_cleanup(settings, x_cleanup_key)
    return services


AppSettings = Annotated[Settings, Depends(get_app_settings)]
Services = Annotated[StorageServices, Depends(get_storage_services)]
AuthorizedServices = Annotated[StorageServices, Depends(get_authorized_services)]
