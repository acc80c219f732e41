"""
Shared-secret authorization for maintenance endpoints.

Cleanup and admin storage routes are triggered by cron jobs and operators,
not end users, so they are gated by a single secret sent in a header.
"""

import hmac

from certstore.core.config import Settings
from certstore.core.exceptions import AuthorizationError
from certstore.core.logging import get_logger

logger = get_logger(__name__)


def authorize_cleanup(settings: Settings, provided_key: str | None) -> None:
    """
    Check the caller-supplied secret against the configured one.

    Args:
        settings: Application settings.
        provided_key: Value of the X-Cleanup-Key header, if any.

    Raises:
        AuthorizationError: On mismatch, or when no secret is configured
            outside development.
    """
    expected = settings.cleanup_secret_key

    if expected:
        if provided_key is None or not hmac.compare_digest(
            provided_key.encode(), expected.encode()
        ):
            raise AuthorizationError()
        return

    if not settings.is_development:
        raise AuthorizationError(message="Authentication not configured")

    logger.warning(
        "cleanup_auth_not_configured",
        detail="maintenance endpoints are unprotected in development",
    )
