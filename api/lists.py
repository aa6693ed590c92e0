"""Saved list endpoints."""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from fastapi.responses import StreamingResponse

from bizregistry.services import BulkListMaterializer

from .dependencies import get_materializer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/lists", tags=["lists"])

SSE_HEADERS = {
    "Cache-Control": "no-cache, no-transform",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",
}


@router.get("/save/stream")
def save_list_stream(
    name: Optional[str] = Query(None, description="Name of the new list"),
    fq: str = Query("", description="URL-encoded filter query"),
    list_id: Optional[int] = Query(
        None, alias="listId", description="Existing list to resume into"
    ),
    user_id: Optional[str] = Header(None, alias="X-User-Id"),
    materializer: Optional[BulkListMaterializer] = Depends(get_materializer),
) -> StreamingResponse:
    """Materialize every business matching ``fq`` into a saved list.

    Progress is streamed as server-sent events: ``created``, ``progress``,
    ``done`` or ``error``.
    """
    if not user_id:
        raise HTTPException(status_code=401, detail="Unauthorized")
    name = (name or "").strip()
    if not name and list_id is None:
        raise HTTPException(status_code=400, detail="Missing name")
    if materializer is None:
        raise HTTPException(status_code=503, detail="Database not configured")

    logger.info(f"Materializing list '{name}' for owner {user_id}")
    events = materializer.materialize(user_id, name, fq, list_id=list_id)
    return StreamingResponse(
        (event.to_sse() for event in events),
        media_type="text/event-stream",
        headers=SSE_HEADERS,
    )
