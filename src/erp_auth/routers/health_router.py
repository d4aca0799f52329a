from __future__ import annotations

from fastapi import APIRouter, Request

from erp_auth.utils.response import success

router = APIRouter()


@router.get("/health")
async def health(request: Request) -> dict:
    settings = request.app.state.settings
    return success(
        {"ok": True, "service": settings.SERVICE_NAME, "sessionCache": settings.session_cache_backend},
        message="healthy",
    )
