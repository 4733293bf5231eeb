import functools
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from vidport.core.logging import log_info
from vidport.core.security import SecurityValidator, UrlValidationResult
from vidport.i18n import i18n
from vidport.infra.rate_limit import rate_limiter
from vidport.models.response import MediaInfo
from vidport.services.formats import FormatNegotiator
from vidport.utils.locale import get_locale, safe_url_for_log

router = APIRouter()


async def validate_media_url(request: Request, url: Optional[str]) -> str:
    """Reject missing, malformed or internal URLs before yt-dlp sees them"""
    locale = get_locale(request.headers.get("accept-language"))
    _ = functools.partial(i18n.get, locale=locale)

    if not url or not url.strip():
        raise HTTPException(status_code=400, detail=_("error.url_required"))

    url = url.strip()
    validation_result = await SecurityValidator.validate_url(url)
    if validation_result == UrlValidationResult.BLOCKED:
        raise HTTPException(status_code=403, detail=_("error.private_ip"))
    if validation_result == UrlValidationResult.INVALID:
        raise HTTPException(status_code=400, detail=_("error.invalid_url", reason="Invalid format"))
    return url


@router.get("/metadata", response_model=MediaInfo, dependencies=[Depends(rate_limiter)])
@router.get("/api/ytdl", response_model=MediaInfo, include_in_schema=False, dependencies=[Depends(rate_limiter)])
async def get_metadata(request: Request, url: Optional[str] = Query(None, description="Media page URL")):
    """Title, thumbnail, duration and the downloadable variants of a URL"""
    url = await validate_media_url(request, url)
    log_info(request, i18n.get("log.fetching_metadata", url=safe_url_for_log(url)))

    media_info = await FormatNegotiator.negotiate(url)

    log_info(request, i18n.get("log.metadata_ready", title=media_info.title, count=len(media_info.formats)))
    return media_info
