from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse
from starlette.types import Receive, Scope, Send

from vidport.api.metadata import validate_media_url
from vidport.core.logging import log_info
from vidport.i18n import i18n
from vidport.infra.rate_limit import rate_limiter
from vidport.models.internal import DownloadIntent
from vidport.services.download import DownloadJob, DownloadOrchestrator, JobState
from vidport.utils.locale import safe_url_for_log

router = APIRouter()


class JobStreamingResponse(StreamingResponse):
    """
    Streams a job's output file. The job is finished when the transport is
    done, whether the body was fully sent or the client went away while the
    body iterator was suspended.
    """

    def __init__(self, job: DownloadJob, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.job = job

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        finally:
            self.job.finish(JobState.CANCELLED)


@router.get("/download", dependencies=[Depends(rate_limiter)])
@router.get("/api/ytdl/download", include_in_schema=False, dependencies=[Depends(rate_limiter)])
async def download_media(
    request: Request,
    url: Optional[str] = Query(None, description="Media page URL"),
    variant: Optional[str] = Query(None, description="Variant id from /metadata"),
    itag: Optional[str] = Query(None, include_in_schema=False),
    title: Optional[str] = Query(None, description="Title used for the file name"),
):
    """Run yt-dlp for the selected variant and stream the resulting file"""
    url = await validate_media_url(request, url)
    intent = DownloadIntent(url=url, variant_id=variant or itag, known_title=title)
    log_info(request, i18n.get("log.starting_download", url=safe_url_for_log(url), variant=intent.variant_id))

    result = await DownloadOrchestrator.download(intent)

    log_info(request, i18n.get(
        "log.download_ready",
        size=result.content_length / 1024 / 1024,
        filename=result.job.filename
    ))
    return JobStreamingResponse(
        result.job,
        result.body,
        media_type=result.media_type,
        headers=result.headers
    )
