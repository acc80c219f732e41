"""
File proxy router.

Streams objects through the API when no public or signed URL can be
handed out (local production deployments, signing failures).
"""

import mimetypes
from pathlib import PurePosixPath
from urllib.parse import quote

from fastapi import APIRouter, Query
from fastapi.responses import StreamingResponse

from certstore.api.dependencies import Services
from certstore.core.exceptions import ObjectNotFoundError
from certstore.services.policy.keys import ensure_safe_key

router = APIRouter(prefix="/api/files", tags=["Files"])


@router.get(
    "/{key:path}",
    summary="Download a stored file",
    response_class=StreamingResponse,
)
async def get_file(
    key: str,
    services: Services,
    download: bool = Query(False, description="Serve as an attachment"),
) -> StreamingResponse:
    """Stream an object from the active backend."""
    ensure_safe_key(key)
    backend = services.backend

    # Checked up front so a missing object is a 404 and not a broken stream
    if await backend.get_metadata(key) is None:
        raise ObjectNotFoundError(key)

    media_type = mimetypes.guess_type(key)[0] or "application/octet-stream"
    filename = PurePosixPath(key).name
    disposition = "attachment" if download else "inline"

    return StreamingResponse(
        backend.stream(key),
        media_type=media_type,
        headers={
            "Content-Disposition": f"{disposition}; filename*=UTF-8''{quote(filename)}",
        },
    )
