"""
Storage lifecycle API router.

Provides the cron-triggered cleanup endpoint and the retention extension
for emailed certificates.
"""

from fastapi import APIRouter, Query

from certstore.api.dependencies import AppSettings, AuthorizedServices, Services
from certstore.core.exceptions import CertStoreError, CleanupFailedError, ValidationError
from certstore.core.logging import get_logger
from certstore.models.storage import (
    CleanupResponse,
    MarkEmailedRequest,
    MarkEmailedResponse,
)
from certstore.services.lifecycle.emailed import mark_as_emailed

logger = get_logger(__name__)

router = APIRouter(prefix="/api", tags=["Storage"])


@router.post(
    "/cleanup-storage",
    response_model=CleanupResponse,
    summary="Delete expired objects",
    description="Scan generated/ and temp_images/ and delete objects past their retention.",
)
async def cleanup_storage(
    services: AuthorizedServices,
    settings: AppSettings,
    dry_run: bool = Query(False, description="Report what would be deleted"),
) -> CleanupResponse:
    """
    Run one cleanup pass against the active backend.

    Requires the X-Cleanup-Key header. A run already in progress yields 409.
    """
    try:
        report = await services.cleanup_job.run(
            dry_run=dry_run,
            deadline=settings.cleanup_deadline_seconds,
        )
    except CertStoreError:
        raise
    except Exception as e:
        logger.exception("cleanup_failed", provider=services.backend.provider)
        raise CleanupFailedError(str(e) or type(e).__name__) from e

    return CleanupResponse(**report.to_dict())


@router.post(
    "/mark-emailed",
    response_model=MarkEmailedResponse,
    response_model_exclude_none=True,
    summary="Mark a file as emailed",
    description="Extend the retention of an emailed certificate to 90 days.",
)
async def mark_emailed(
    request: MarkEmailedRequest,
    services: Services,
) -> MarkEmailedResponse:
    """Flag the object behind a previously issued URL as emailed."""
    if not request.file_url:
        raise ValidationError(message="fileUrl is required")

    result = await mark_as_emailed(services.backend, services.resolver, request.file_url)
    return MarkEmailedResponse(**result.to_dict())
