from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from storefront.auth import CurrentUser, require_admin
from storefront.queue import replay_dlq

router = APIRouter(prefix="/admin", tags=["admin"])


@router.post("/dlq/replay")
async def dlq_replay(
    limit: int = Query(default=100, ge=1, le=1000),
    _admin: CurrentUser = Depends(require_admin),
) -> JSONResponse:
    """
    Replay dead-lettered notification events to the main queue
    (SQS DLQ when SQS is configured, otherwise the Redis DLQ list).
    Returns number of messages replayed.
    """
    replayed = await replay_dlq(limit=limit)
    return JSONResponse(
        status_code=200,
        content={"status": "ok", "replayed": replayed},
    )
