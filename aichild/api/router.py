"""
Main API router. Mounts all sub-routers.

Routes live at the root (no /v1 prefix): the mobile client calls them by these paths.
"""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends

from ..core.config import Settings
from ..core.dependencies import get_settings_dep

router = APIRouter()


# ── Health ───────────────────────────────────────────────────────────

@router.get("/health")
async def health():
    return {"status": "OK", "message": "AI Child Server is running"}


@router.get("/test")
async def test(settings: Settings = Depends(get_settings_dep)):
    """Report whether the Replicate token is configured. Never returns the token."""
    return {
        "message": "Server is working",
        "hasApiToken": bool(settings.replicate_api_token),
        "env": settings.env,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


# ── Feature routes ───────────────────────────────────────────────────

from .upload import upload_router
from .generate import generate_router

router.include_router(upload_router)
router.include_router(generate_router)
