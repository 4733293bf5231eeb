import asyncio
import functools
import logging
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from vidport.api import download, health, metadata
from vidport.config.settings import config
from vidport.core.errors import MediaError
from vidport.core.logging import log_error, log_warning, setup_logging
from vidport.core.state import state
from vidport.i18n import i18n
from vidport.infra.redis import close_redis, init_redis
from vidport.models.response import ErrorResponse
from vidport.services.tools import resolve_tools
from vidport.services.ytdlp import SubprocessExecutor, YTDLPCommandBuilder
from vidport.utils.locale import get_locale

VERSION_CHECK_TIMEOUT = 15.0

setup_logging(config.logging)
logger = logging.getLogger("vidport")

app = FastAPI(
    title=config.api.title,
    description=config.api.description,
    version=config.api.version,
    docs_url="/docs" if config.api.debug else None,
    redoc_url=None
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.api.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "Content-Length", "X-Request-ID"],
)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    request.state.request_id = request.headers.get("x-request-id") or uuid.uuid4().hex[:12]
    response = await call_next(request)
    response.headers["X-Request-ID"] = request.state.request_id
    return response


def error_response(status_code: int, body: ErrorResponse, headers=None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=body.model_dump(by_alias=True, exclude_none=True),
        headers=headers
    )


@app.exception_handler(MediaError)
async def media_error_handler(request: Request, exc: MediaError):
    _ = functools.partial(i18n.get, locale=get_locale(request.headers.get("accept-language")))

    if exc.requires_credential:
        log_warning(request, f"{type(exc).__name__}: {exc.details}")
    else:
        log_error(request, f"{type(exc).__name__}: {exc.details}")

    body = ErrorResponse(
        error=_(exc.message_key),
        details=_(exc.details_key) if exc.details_key else exc.details,
        requires_credential=True if exc.requires_credential else None,
    )
    return error_response(exc.status_code, body)


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return error_response(exc.status_code, ErrorResponse(error=str(exc.detail)), headers=exc.headers)


# Routes
app.include_router(health.router, tags=["Health"])
app.include_router(metadata.router, tags=["Metadata"])
app.include_router(download.router, tags=["Download"])


async def detect_ytdlp_version() -> str:
    cmd = YTDLPCommandBuilder.build_version_command(resolve_tools().ytdlp)
    try:
        result = await SubprocessExecutor.run(cmd, timeout=VERSION_CHECK_TIMEOUT)
    except asyncio.TimeoutError:
        return "unknown"
    if result.returncode != 0:
        logger.warning(f"yt-dlp is not runnable: {result.error_text}")
        return "unknown"
    return result.stdout.decode(errors="replace").strip() or "unknown"


@app.on_event("startup")
async def startup_event():
    state.redis = await init_redis()
    state.ytdlp_version = await detect_ytdlp_version()
    logger.info(f"yt-dlp version: {state.ytdlp_version}")


@app.on_event("shutdown")
async def shutdown_event():
    await close_redis()
