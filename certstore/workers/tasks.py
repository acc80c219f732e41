"""
Celery tasks for storage maintenance.
"""

import asyncio
from typing import Any

from certstore.core.config import Settings, get_settings
from certstore.core.logging import configure_logging, get_logger
from certstore.services.container import build_container
from certstore.services.lifecycle.cleanup import CleanupReport
from certstore.workers.celery_app import app

logger = get_logger(__name__)


async def run_cleanup(
    settings: Settings,
    dry_run: bool = False,
    deadline: float | None = None,
) -> CleanupReport:
    """
    Build the storage layer from settings and run one cleanup pass.

    Shared by the Celery task and the command-line script. Runs in-process,
    so no cleanup secret is involved.

    Raises:
        ConfigurationError: If the selected provider is incompletely configured.
    """
    services = build_container(settings).require()
    return await services.cleanup_job.run(
        dry_run=dry_run,
        deadline=deadline if deadline is not None else settings.cleanup_deadline_seconds,
    )


@app.task(name="certstore.workers.tasks.cleanup_expired_objects")
def cleanup_expired_objects(dry_run: bool = False) -> dict[str, Any]:
    """Scheduled cleanup of expired objects."""
    settings = get_settings()
    configure_logging(settings)

    report = asyncio.run(run_cleanup(settings, dry_run=dry_run))
    logger.info(
        "scheduled_cleanup_finished",
        provider=report.provider,
        deleted=len(report.deleted_keys),
        errors=len(report.errors),
        incomplete=report.incomplete,
    )
    return report.to_dict()
