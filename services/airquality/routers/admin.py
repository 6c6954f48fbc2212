"""
Operational endpoints: stats, cache invalidation and history cleanup.
"""

from typing import Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel, Field

from services.airquality.history.store import RETENTION_DAYS

router = APIRouter(prefix="/api", tags=["admin"])


class CacheClearRequest(BaseModel):
    scope: Optional[str] = None  # sources | validation | descriptions | country_names | history


class HistoryCleanupRequest(BaseModel):
    retentionDays: int = Field(default=RETENTION_DAYS, ge=1, le=3650)


@router.get("/stats")
async def stats(request: Request) -> dict:
    return {
        "success": True,
        "data": await request.app.state.catalog.stats(),
        "requestId": request.state.request_id,
    }


@router.post("/cache/clear")
async def clear_cache(request: Request, body: Optional[CacheClearRequest] = None) -> dict:
    scope = body.scope if body else None
    cleared = request.app.state.catalog.invalidate_cache(scope)
    return {
        "success": True,
        "data": {"scope": scope or "all", "cleared": cleared, "total": sum(cleared.values())},
        "requestId": request.state.request_id,
    }


@router.post("/history/cleanup")
async def cleanup_history(request: Request, body: Optional[HistoryCleanupRequest] = None) -> dict:
    retention = body.retentionDays if body else RETENTION_DAYS
    deleted = await request.app.state.catalog.cleanup_history(retention)
    return {
        "success": True,
        "data": {"deleted": deleted, "retentionDays": retention},
        "requestId": request.state.request_id,
    }
