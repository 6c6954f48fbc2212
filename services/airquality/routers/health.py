"""Health check endpoint."""

from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check(request: Request) -> dict:
    catalog = request.app.state.catalog
    return {
        "success": True,
        "data": {
            "status": "healthy",
            "version": request.app.state.settings.app_version,
            "database": request.app.state.db is not None,
            "sources": [tag.value for tag in catalog.source_tags],
        },
        "requestId": request.state.request_id,
    }
