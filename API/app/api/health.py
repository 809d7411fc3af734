from fastapi import APIRouter

from app.core.settings import settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    return {
        "status": "ok",
        "service": "smas-api",
        "env": settings.app_env,
        "provider_configured": bool(settings.gemini_api_key),
    }
