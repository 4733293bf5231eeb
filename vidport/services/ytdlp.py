import asyncio
import re
from enum import Enum, auto
from typing import List, NamedTuple, Optional

from vidport.config.settings import config
from vidport.core.errors import ToolInvocationFailed, VerificationRequired
from vidport.models.internal import DownloadIntent

SPAWN_FAILED_RETURNCODE = 127
STDERR_DETAILS_MAX = 500

VERIFICATION_MARKERS = (
    "sign in to confirm",
    "not a bot",
    "cookies",
)

_NUMERIC_FORMAT_ID = re.compile(r"^\d+$")


class CompletedProcess(NamedTuple):
    """Subprocess result"""
    returncode: int
    stdout: bytes
    stderr: bytes

    @property
    def error_text(self) -> str:
        return self.stderr.decode(errors="replace").strip()


class FailureKind(Enum):
    OK = auto()
    TOOL_FAILED = auto()
    VERIFICATION_REQUIRED = auto()


def classify_failure(result: CompletedProcess) -> FailureKind:
    """Map a finished process to a failure kind without raising"""
    if result.returncode == 0:
        return FailureKind.OK
    error_text = result.error_text.lower()
    if any(marker in error_text for marker in VERIFICATION_MARKERS):
        return FailureKind.VERIFICATION_REQUIRED
    return FailureKind.TOOL_FAILED


def raise_for_failure(result: CompletedProcess) -> None:
    kind = classify_failure(result)
    if kind is FailureKind.OK:
        return
    details = result.error_text[:STDERR_DETAILS_MAX] or f"exit code {result.returncode}"
    if kind is FailureKind.VERIFICATION_REQUIRED:
        raise VerificationRequired(details)
    raise ToolInvocationFailed(details)


class SubprocessExecutor:
    """Execute subprocess with consistent error handling"""

    @staticmethod
    async def run(cmd: List[str], timeout: Optional[float] = None) -> CompletedProcess:
        """
        Run a command with both streams buffered in memory.

        A process that cannot be spawned is reported as a failed result
        (return code 127, OS error on stderr). On timeout the process is
        killed and asyncio.TimeoutError propagates.
        """
        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                stdin=asyncio.subprocess.DEVNULL
            )
        except OSError as e:
            return CompletedProcess(
                returncode=SPAWN_FAILED_RETURNCODE,
                stdout=b"",
                stderr=f"{cmd[0]}: {e}".encode()
            )

        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except BaseException:
            # timeout or request cancellation: never leave the child running
            if process.returncode is None:
                process.kill()
                await process.wait()
            raise

        return CompletedProcess(returncode=process.returncode, stdout=stdout, stderr=stderr)


def video_format_selector(variant_id: Optional[str]) -> str:
    if variant_id and _NUMERIC_FORMAT_ID.match(variant_id):
        return f"{variant_id}+bestaudio/best"
    return "bestvideo+bestaudio/best"


class YTDLPCommandBuilder:
    """Build yt-dlp commands"""

    @staticmethod
    def _common_args(cookie_file: Optional[str]) -> List[str]:
        args = [
            '--no-playlist',
            '--no-warnings',
            '--no-check-certificates',
            '--user-agent', config.tools.user_agent,
        ]
        if cookie_file:
            args.extend(['--cookies', cookie_file])
        return args

    @staticmethod
    def build_version_command(ytdlp: str) -> List[str]:
        return [ytdlp, '--version']

    @staticmethod
    def build_info_command(ytdlp: str, url: str, cookie_file: Optional[str] = None) -> List[str]:
        """Build command dumping one JSON document for the resource"""
        cmd = [ytdlp, '--dump-json']
        cmd.extend(YTDLPCommandBuilder._common_args(cookie_file))
        cmd.append(url)
        return cmd

    @staticmethod
    def build_title_command(ytdlp: str, url: str, cookie_file: Optional[str] = None) -> List[str]:
        cmd = [ytdlp, '--print', 'title']
        cmd.extend(YTDLPCommandBuilder._common_args(cookie_file))
        cmd.append(url)
        return cmd

    @staticmethod
    def build_download_command(
        ytdlp: str,
        ffmpeg: str,
        intent: DownloadIntent,
        output_template: str,
        cookie_file: Optional[str] = None
    ) -> List[str]:
        """Build command writing the selected variant to output_template"""
        cmd = [ytdlp, intent.url, '-o', output_template]
        cmd.extend(YTDLPCommandBuilder._common_args(cookie_file))
        cmd.extend(['--force-overwrites', '--ffmpeg-location', ffmpeg])

        if intent.audio_only:
            cmd.extend(['-x', '--audio-format', 'mp3', '--audio-quality', '0'])
        else:
            cmd.extend(['-f', video_format_selector(intent.variant_id)])
            cmd.extend(['--merge-output-format', 'mp4'])

        return cmd
