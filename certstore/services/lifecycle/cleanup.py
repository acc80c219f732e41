"""
Expired-object cleanup.

Scan-then-act batch job: list the managed namespaces, fetch each object's
metadata, evaluate the retention policy and delete what has expired.

Every object the job examines ends up in exactly one bucket of the report
(deleted, kept or errors). Objects that vanish between listing and the
metadata fetch were never evaluated and are not counted. A failure on one
object never aborts the batch.
Re-running after a completed run deletes nothing further; an interrupted
run leaves the remaining expired objects eligible for the next one.
"""

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from certstore.core.exceptions import CertStoreError, CleanupInProgressError
from certstore.core.logging import CleanupLogger, get_logger
from certstore.services.policy.keys import ALLOWED_NAMESPACES, ensure_safe_key
from certstore.services.policy.retention import (
    ObjectMetadata,
    effective_retention,
    format_timestamp,
    is_expired,
)
from certstore.services.storage.base import StorageBackend, StoredObject

logger = get_logger(__name__)


@dataclass
class CleanupReport:
    """Outcome of a cleanup run."""

    provider: str
    dry_run: bool
    started_at: datetime
    finished_at: datetime | None = None
    deleted_keys: list[str] = field(default_factory=list)
    kept_keys: list[str] = field(default_factory=list)
    errors: dict[str, str] = field(default_factory=dict)  # key -> reason
    examined: int = 0
    incomplete: bool = False

    @property
    def error_keys(self) -> list[str]:
        return sorted(self.errors)

    def to_dict(self) -> dict[str, Any]:
        """Convert to the HTTP response shape."""
        return {
            "success": True,
            "storageProvider": self.provider,
            "dryRun": self.dry_run,
            "examined": self.examined,
            "deletedCount": len(self.deleted_keys),
            "deleted": self.deleted_keys,
            "keptCount": len(self.kept_keys),
            "kept": self.kept_keys,
            "errorCount": len(self.errors),
            "errors": [f"{key}: {reason}" for key, reason in sorted(self.errors.items())],
            "incomplete": self.incomplete,
            "timestamp": format_timestamp(self.finished_at or self.started_at),
        }


class CleanupJob:
    """
    Delete expired objects from one storage backend.

    Metadata fetches and deletions fan out with a fixed concurrency cap.
    An in-process lease rejects overlapping runs; overlapping runs would be
    safe but wasteful.
    """

    def __init__(
        self,
        backend: StorageBackend,
        concurrency: int = 8,
        namespaces: tuple[str, ...] = ALLOWED_NAMESPACES,
    ) -> None:
        self.backend = backend
        self.concurrency = concurrency
        self.namespaces = namespaces
        self._lease = asyncio.Lock()
        self.log = CleanupLogger(backend.provider)

    @property
    def running(self) -> bool:
        return self._lease.locked()

    async def run(
        self,
        dry_run: bool = False,
        deadline: float | None = None,
        now: datetime | None = None,
    ) -> CleanupReport:
        """
        Run one cleanup pass.

        Args:
            dry_run: Classify objects without deleting anything.
            deadline: Time budget in seconds. When it runs out, outstanding
                work is cancelled and the report is flagged incomplete.
            now: Reference time for age computation. Defaults to now (UTC).

        Returns:
            CleanupReport covering every examined object.

        Raises:
            CleanupInProgressError: If another run holds the lease.
        """
        if self._lease.locked():
            raise CleanupInProgressError()

        async with self._lease:
            return await self._run(dry_run, deadline, now or datetime.now(timezone.utc))

    async def _run(self, dry_run: bool, deadline: float | None, now: datetime) -> CleanupReport:
        loop = asyncio.get_running_loop()
        expires_at = loop.time() + deadline if deadline is not None else None
        started = time.monotonic()

        report = CleanupReport(
            provider=self.backend.provider,
            dry_run=dry_run,
            started_at=datetime.now(timezone.utc),
        )
        self.log.log_started(dry_run, deadline)

        objects = await self._collect(report, expires_at)

        semaphore = asyncio.Semaphore(self.concurrency)
        tasks = [
            asyncio.create_task(self._process(obj, now, dry_run, semaphore, report))
            for obj in objects
        ]
        if tasks:
            timeout = None if expires_at is None else max(0.0, expires_at - loop.time())
            _, pending = await asyncio.wait(tasks, timeout=timeout)
            if pending:
                report.incomplete = True
                for task in pending:
                    task.cancel()
                await asyncio.gather(*pending, return_exceptions=True)

        report.deleted_keys.sort()
        report.kept_keys.sort()
        report.finished_at = datetime.now(timezone.utc)

        self.log.log_completed(
            examined=report.examined,
            deleted=len(report.deleted_keys),
            kept=len(report.kept_keys),
            errors=len(report.errors),
            incomplete=report.incomplete,
            duration_seconds=time.monotonic() - started,
        )
        return report

    async def _collect(
        self, report: CleanupReport, expires_at: float | None
    ) -> list[StoredObject]:
        """List every namespace; stop early (incomplete) at the deadline."""
        loop = asyncio.get_running_loop()
        collected: list[StoredObject] = []

        async def walk(namespace: str) -> None:
            async for obj in self.backend.iter_objects(namespace):
                if obj.key.endswith("/"):
                    # Directory marker
                    continue
                collected.append(obj)

        for namespace in self.namespaces:
            task = asyncio.create_task(walk(namespace))
            timeout = None if expires_at is None else max(0.0, expires_at - loop.time())
            done, _ = await asyncio.wait({task}, timeout=timeout)

            if not done:
                task.cancel()
                await asyncio.gather(task, return_exceptions=True)
                report.incomplete = True
                break

            error = task.exception()
            if error is not None:
                reason = error.message if isinstance(error, CertStoreError) else str(error)
                report.errors[namespace] = f"listing failed: {reason}"
                report.incomplete = True
                self.log.log_object_failed(namespace, reason)

        return collected

    async def _process(
        self,
        obj: StoredObject,
        now: datetime,
        dry_run: bool,
        semaphore: asyncio.Semaphore,
        report: CleanupReport,
    ) -> None:
        key = obj.key
        async with semaphore:
            try:
                ensure_safe_key(key)
                raw = await self.backend.get_metadata(key)
                if raw is None:
                    logger.debug("cleanup_object_vanished", key=key)
                    return

                metadata = ObjectMetadata.from_wire(raw, key=key)
                if not is_expired(metadata, now, key=key):
                    report.kept_keys.append(key)
                    report.examined += 1
                    return

                if not dry_run:
                    deletion = asyncio.ensure_future(self.backend.delete(key))
                    try:
                        await asyncio.shield(deletion)
                    except asyncio.CancelledError:
                        # A delete in flight at the deadline completes and is reported
                        await deletion
                        self._record_deleted(report, key, metadata)
                        raise
            except CertStoreError as e:
                self._record_error(report, key, e.message)
                return
            except Exception as e:
                logger.exception("cleanup_object_unexpected_error", key=key)
                self._record_error(report, key, str(e) or type(e).__name__)
                return

        self._record_deleted(report, key, metadata)

    def _record_deleted(self, report: CleanupReport, key: str, metadata: ObjectMetadata) -> None:
        report.deleted_keys.append(key)
        report.examined += 1
        self.log.log_object_deleted(key, effective_retention(metadata).value)

    def _record_error(self, report: CleanupReport, key: str, reason: str) -> None:
        report.errors[key] = reason
        report.examined += 1
        self.log.log_object_failed(key, reason)
