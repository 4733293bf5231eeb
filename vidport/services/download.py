import asyncio
import glob
import logging
import os
import time
import uuid
from enum import Enum
from typing import AsyncIterator, Dict, NamedTuple, Optional

import aiofiles

from vidport.config.settings import config
from vidport.core.errors import OutputMissing, StreamFailure, ToolTimeout
from vidport.models.internal import DownloadIntent, MediaMetadata
from vidport.services.credentials import get_credential_file, remove_credential_file
from vidport.services.tools import ToolPaths, resolve_tools
from vidport.services.ytdlp import SubprocessExecutor, YTDLPCommandBuilder, raise_for_failure
from vidport.utils.filename import build_download_filename, content_disposition, sanitize_title

logger = logging.getLogger(__name__)


class JobState(str, Enum):
    PREPARING = "preparing"
    EXECUTING_TOOL = "executing_tool"
    VERIFYING_OUTPUT = "verifying_output"
    STREAMING = "streaming"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATES = frozenset({JobState.COMPLETED, JobState.FAILED, JobState.CANCELLED})


def new_job_id() -> str:
    return f"{int(time.time() * 1000)}-{uuid.uuid4().hex[:9]}"


class DownloadJob:
    """
    One download, scoped to one HTTP response.

    Every artefact of the job lives under temp_dir with the `dl-<job_id>.`
    prefix (plus the job's cookie file). The first terminal state reached
    removes them; later terminal transitions are no-ops.
    """

    def __init__(self, intent: DownloadIntent, temp_dir: Optional[str] = None):
        self.job_id = new_job_id()
        self.intent = intent
        self.metadata = MediaMetadata.for_intent(intent)
        self.temp_dir = temp_dir or config.download.temp_dir
        self.output_template = os.path.join(self.temp_dir, f"dl-{self.job_id}.%(ext)s")
        self.output_path = os.path.join(self.temp_dir, f"dl-{self.job_id}.{self.metadata.ext}")
        self.title = sanitize_title(intent.known_title) if intent.known_title else None
        self.cookie_file: Optional[str] = None
        self.state = JobState.PREPARING
        self._cleaned = False

    @property
    def filename(self) -> str:
        return build_download_filename(self.title or "", self.metadata.ext)

    def advance(self, state: JobState) -> None:
        # terminal states are final
        if self.state in TERMINAL_STATES:
            return
        logger.debug(f"Job {self.job_id}: {self.state.value} -> {state.value}")
        self.state = state

    def finish(self, state: JobState) -> None:
        self.advance(state)
        self.cleanup()

    def artefacts(self) -> list:
        pattern = os.path.join(glob.escape(self.temp_dir), f"dl-{self.job_id}.*")
        return glob.glob(pattern)

    def cleanup(self) -> None:
        """Best-effort removal of the output file, partials and cookie file; runs once"""
        if self._cleaned:
            return
        self._cleaned = True

        for path in self.artefacts():
            try:
                os.remove(path)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning(f"Job {self.job_id}: failed to remove {path}: {e}")

        remove_credential_file(self.cookie_file)
        self.cookie_file = None


class DownloadResult(NamedTuple):
    job: DownloadJob
    body: AsyncIterator[bytes]
    headers: Dict[str, str]
    media_type: str
    content_length: int


class DownloadOrchestrator:
    """Run yt-dlp into a temp file, then stream it back"""

    @staticmethod
    async def _run(cmd: list, timeout: Optional[int], what: str):
        try:
            result = await SubprocessExecutor.run(cmd, timeout=timeout)
        except asyncio.TimeoutError:
            raise ToolTimeout(f"{what} exceeded {timeout}s")
        raise_for_failure(result)
        return result

    @staticmethod
    async def resolve_title(job: DownloadJob, tools: ToolPaths) -> str:
        cmd = YTDLPCommandBuilder.build_title_command(tools.ytdlp, job.intent.url, job.cookie_file)
        result = await DownloadOrchestrator._run(cmd, config.download.metadata_timeout_seconds, "--print title")
        lines = result.stdout.decode(errors="replace").strip().splitlines()
        return sanitize_title(lines[0] if lines else "")

    @staticmethod
    async def prepare(job: DownloadJob) -> int:
        """
        Run the tool and verify its output. Returns the output size in bytes.
        Any failure moves the job to FAILED (cleaning up) and re-raises.
        """
        try:
            os.makedirs(job.temp_dir, exist_ok=True)
            tools = resolve_tools()
            job.cookie_file = get_credential_file(job.temp_dir, job.job_id)

            if job.title is None:
                job.title = await DownloadOrchestrator.resolve_title(job, tools)

            cmd = YTDLPCommandBuilder.build_download_command(
                tools.ytdlp,
                tools.ffmpeg,
                job.intent,
                job.output_template,
                job.cookie_file
            )
            job.advance(JobState.EXECUTING_TOOL)
            await DownloadOrchestrator._run(cmd, config.download.tool_timeout_seconds, "download")

            job.advance(JobState.VERIFYING_OUTPUT)
            if not os.path.isfile(job.output_path):
                raise OutputMissing(os.path.basename(job.output_path))
            return os.path.getsize(job.output_path)
        except asyncio.CancelledError:
            job.finish(JobState.CANCELLED)
            raise
        except BaseException:
            job.finish(JobState.FAILED)
            raise

    @staticmethod
    async def iter_file(job: DownloadJob, chunk_size: Optional[int] = None) -> AsyncIterator[bytes]:
        chunk_size = chunk_size or config.download.chunk_size
        job.advance(JobState.STREAMING)
        try:
            async with aiofiles.open(job.output_path, "rb") as f:
                while True:
                    chunk = await f.read(chunk_size)
                    if not chunk:
                        break
                    yield chunk
            job.finish(JobState.COMPLETED)
        except Exception as e:
            logger.error(f"Job {job.job_id}: streaming failed: {e}")
            job.finish(JobState.FAILED)
            raise StreamFailure(str(e)) from e
        finally:
            # cancellation or early close by the consumer
            job.finish(JobState.CANCELLED)

    @staticmethod
    async def download(intent: DownloadIntent) -> DownloadResult:
        job = DownloadJob(intent)
        size = await DownloadOrchestrator.prepare(job)

        headers = {
            "Content-Disposition": content_disposition(job.filename),
            "Content-Type": job.metadata.media_type,
            "Content-Length": str(size),
            "X-Content-Type-Options": "nosniff",
            "Cache-Control": "no-cache",
        }
        return DownloadResult(
            job=job,
            body=DownloadOrchestrator.iter_file(job),
            headers=headers,
            media_type=job.metadata.media_type,
            content_length=size,
        )
