"""
Admin storage router.

Operator-facing inventory of the managed namespaces and manual deletes.
Gated by the same shared secret as the cleanup endpoint.
"""

from collections import defaultdict

from fastapi import APIRouter, Query

from certstore.api.dependencies import AuthorizedServices
from certstore.core.exceptions import CertStoreError
from certstore.core.logging import get_logger
from certstore.models.storage import (
    DeleteRequest,
    DeleteResponse,
    PrefixAggregate,
    StorageItem,
    StorageListResponse,
    StorageTotals,
)
from certstore.services.policy.keys import ALLOWED_NAMESPACES, ensure_safe_key, ensure_safe_prefix
from certstore.services.policy.retention import format_timestamp
from certstore.services.storage.base import StorageBackend, StoredObject

logger = get_logger(__name__)

router = APIRouter(prefix="/api/admin/storage", tags=["Admin"])

LARGEST_LIMIT = 10


def aggregate_prefix(key: str) -> str:
    """Group key: the namespace plus its first directory, if any."""
    parts = key.split("/")
    if len(parts) > 2:
        return f"{parts[0]}/{parts[1]}/"
    return f"{parts[0]}/"


def _to_item(obj: StoredObject) -> StorageItem:
    return StorageItem(
        key=obj.key,
        size=obj.size,
        last_modified=format_timestamp(obj.last_modified) if obj.last_modified else None,
    )


@router.get(
    "",
    response_model=StorageListResponse,
    summary="List stored objects",
    description="List managed objects with totals and per-prefix aggregates.",
)
async def list_storage(
    services: AuthorizedServices,
    prefix: str = Query("", description="Restrict the listing to a prefix"),
) -> StorageListResponse:
    """Inventory of generated/ and temp_images/."""
    prefixes = [ensure_safe_prefix(prefix)] if prefix else list(ALLOWED_NAMESPACES)

    objects: list[StoredObject] = []
    for item_prefix in prefixes:
        objects.extend(await services.backend.list_objects(item_prefix))
    objects.sort(key=lambda obj: obj.key)

    groups: dict[str, list[int]] = defaultdict(lambda: [0, 0])
    for obj in objects:
        group = groups[aggregate_prefix(obj.key)]
        group[0] += 1
        group[1] += obj.size

    largest = sorted(objects, key=lambda obj: obj.size, reverse=True)[:LARGEST_LIMIT]

    return StorageListResponse(
        provider=services.backend.provider,
        total=StorageTotals(count=len(objects), size=sum(obj.size for obj in objects)),
        items=[_to_item(obj) for obj in objects],
        by_prefix=[
            PrefixAggregate(prefix=name, count=count, size=size)
            for name, (count, size) in sorted(groups.items())
        ],
        largest=[_to_item(obj) for obj in largest],
    )


async def _delete_prefix(backend: StorageBackend, prefix: str, deleted: list[str]) -> None:
    """Delete every object under prefix, recording each key as it goes."""
    ensure_safe_prefix(prefix)
    async for obj in backend.iter_objects(prefix):
        await backend.delete(obj.key)
        deleted.append(obj.key)


@router.post(
    "/delete",
    response_model=DeleteResponse,
    summary="Delete objects",
    description="Delete single keys or whole prefixes inside the managed namespaces.",
)
async def delete_storage(
    request: DeleteRequest,
    services: AuthorizedServices,
) -> DeleteResponse:
    """Apply each delete; a failing item does not stop the others."""
    backend = services.backend
    response = DeleteResponse()

    for item in request.items:
        try:
            if item.is_prefix:
                await _delete_prefix(backend, item.key, response.deleted)
            else:
                await backend.delete(ensure_safe_key(item.key))
                response.deleted.append(item.key)
        except CertStoreError as e:
            response.errors.append(f"{item.key}: {e.message}")
            logger.warning("admin_delete_failed", key=item.key, error=e.message)

    response.success = not response.errors
    logger.info(
        "admin_delete_completed",
        provider=backend.provider,
        deleted=len(response.deleted),
        errors=len(response.errors),
    )
    return response
