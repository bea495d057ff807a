"""
Health check endpoints for the API and its upstream services.
"""
from fastapi import APIRouter

from app.core.config import settings
from app.services.llm_client import get_llm_client

router = APIRouter(prefix="/health", tags=["health"])


@router.get("")
async def health_check():
    """Liveness probe."""
    return {"status": "ok", "service": settings.PROJECT_NAME}


@router.get("/llm")
async def llm_health_check():
    """
    Check that the summarization model server answers.

    Returns:
        Provider, model and status ("healthy", "unhealthy" or "unreachable")
    """
    return await get_llm_client().health_check()


@router.get("/full")
async def full_health_check():
    """
    Readiness overview: LLM connectivity plus upstream configuration.

    The YouTube Data API is not called here; only the presence of a key is
    reported, since every call counts against the daily quota.
    """
    llm_status = await get_llm_client().health_check()
    youtube_configured = bool(settings.YOUTUBE_API_KEY)

    healthy = llm_status.get("status") == "healthy" and youtube_configured
    return {
        "status": "healthy" if healthy else "degraded",
        "services": {
            "api": {"status": "healthy"},
            "llm": llm_status,
            "youtube": {"configured": youtube_configured},
        },
        "config": {
            "llm_provider": settings.LLM_PROVIDER,
            "llm_model": settings.LLM_MODEL,
            "transcript_language": settings.TRANSCRIPT_LANGUAGE,
            "transcript_proxy": bool(settings.TRANSCRIPT_PROXY_URL),
        },
    }
