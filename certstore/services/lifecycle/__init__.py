"""Object lifecycle: cleanup of expired artifacts, URL mapping, retention extension."""

from certstore.services.lifecycle.cleanup import CleanupJob, CleanupReport
from certstore.services.lifecycle.emailed import MarkEmailedResult, mark_as_emailed
from certstore.services.lifecycle.urls import UrlResolver

__all__ = [
    "CleanupJob",
    "CleanupReport",
    "MarkEmailedResult",
    "UrlResolver",
    "mark_as_emailed",
]
