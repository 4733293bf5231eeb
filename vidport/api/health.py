from fastapi import APIRouter

from vidport.config.settings import config
from vidport.core.state import state
from vidport.i18n import i18n
from vidport.services.credentials import get_cookie_text
from vidport.services.tools import resolve_tools

router = APIRouter()


async def redis_status() -> str:
    if not state.redis:
        return i18n.get("response.redis_disabled")
    try:
        await state.redis.ping()
        return i18n.get("response.redis_connected")
    except Exception:
        return i18n.get("response.redis_disconnected")


@router.get("/")
async def root():
    """Root endpoint"""
    return {
        "status": i18n.get("response.status_running"),
        "service": config.api.title,
        "version": config.api.version,
        "ytdlp_version": state.ytdlp_version,
    }


@router.get("/health")
async def health_check():
    """Lightweight health check"""
    return {"status": i18n.get("health.status")}


@router.get("/health/full")
async def health_check_full():
    """Detailed health check"""
    tools = resolve_tools()
    return {
        "status": i18n.get("health.status"),
        "ytdlp_version": state.ytdlp_version,
        "ytdlp_path": tools.ytdlp,
        "ffmpeg_path": tools.ffmpeg,
        "credential_configured": get_cookie_text() is not None,
        "redis": await redis_status(),
    }
