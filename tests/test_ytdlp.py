import sys

import pytest

from vidport.config.settings import config
from vidport.core.errors import ToolInvocationFailed, VerificationRequired
from vidport.models.internal import BEST_AUDIO_ID, DownloadIntent
from vidport.services.ytdlp import (
    SPAWN_FAILED_RETURNCODE,
    CompletedProcess,
    FailureKind,
    SubprocessExecutor,
    YTDLPCommandBuilder,
    classify_failure,
    raise_for_failure,
    video_format_selector,
)

URL = "https://www.youtube.com/watch?v=abc123"


def build(variant_id, cookie_file=None):
    intent = DownloadIntent(url=URL, variant_id=variant_id)
    return YTDLPCommandBuilder.build_download_command(
        "/opt/bin/yt-dlp", "/opt/bin/ffmpeg", intent, "/tmp/dl-1.%(ext)s", cookie_file
    )


def option(cmd, flag):
    return cmd[cmd.index(flag) + 1]


@pytest.mark.parametrize("variant_id", ["137", "22", "18", "0400"])
def test_numeric_variant_is_merged_with_best_audio(variant_id):
    cmd = build(variant_id)
    assert option(cmd, "-f") == f"{variant_id}+bestaudio/best"
    assert option(cmd, "--merge-output-format") == "mp4"
    assert "-x" not in cmd


@pytest.mark.parametrize("variant_id", [None, "", "hls-1080p", "137-drc", "dash-video"])
def test_non_numeric_variant_uses_best_video(variant_id):
    cmd = build(variant_id)
    assert option(cmd, "-f") == "bestvideo+bestaudio/best"
    assert option(cmd, "--merge-output-format") == "mp4"


@pytest.mark.parametrize("variant_id", [BEST_AUDIO_ID, "140", "251"])
def test_audio_variants_extract_mp3(variant_id):
    cmd = build(variant_id)
    assert "-x" in cmd
    assert option(cmd, "--audio-format") == "mp3"
    assert option(cmd, "--audio-quality") == "0"
    assert "-f" not in cmd
    assert "--merge-output-format" not in cmd


def test_download_command_common_flags():
    cmd = build("137")
    assert cmd[0] == "/opt/bin/yt-dlp"
    assert cmd[1] == URL
    assert option(cmd, "-o") == "/tmp/dl-1.%(ext)s"
    assert option(cmd, "--ffmpeg-location") == "/opt/bin/ffmpeg"
    assert option(cmd, "--user-agent") == config.tools.user_agent
    for flag in ("--no-playlist", "--no-warnings", "--no-check-certificates", "--force-overwrites"):
        assert flag in cmd


def test_cookie_flag_only_with_credential_file():
    assert "--cookies" not in build("137")
    assert "--cookies" not in YTDLPCommandBuilder.build_info_command("yt-dlp", URL, None)
    assert "--cookies" not in YTDLPCommandBuilder.build_title_command("yt-dlp", URL, None)

    cmd = build("137", cookie_file="/tmp/cookies-1.txt")
    assert option(cmd, "--cookies") == "/tmp/cookies-1.txt"


def test_info_and_title_commands():
    info_cmd = YTDLPCommandBuilder.build_info_command("yt-dlp", URL, "/tmp/c.txt")
    assert info_cmd[:2] == ["yt-dlp", "--dump-json"]
    assert info_cmd[-1] == URL
    assert option(info_cmd, "--cookies") == "/tmp/c.txt"

    title_cmd = YTDLPCommandBuilder.build_title_command("yt-dlp", URL)
    assert title_cmd[:3] == ["yt-dlp", "--print", "title"]
    assert "--no-playlist" in title_cmd


def test_video_format_selector():
    assert video_format_selector("299") == "299+bestaudio/best"
    assert video_format_selector("299a") == "bestvideo+bestaudio/best"


@pytest.mark.parametrize("stderr,expected", [
    (b"", FailureKind.TOOL_FAILED),
    (b"ERROR: Video unavailable", FailureKind.TOOL_FAILED),
    (b"ERROR: [youtube] x: Sign in to confirm you\xe2\x80\x99re not a bot", FailureKind.VERIFICATION_REQUIRED),
    (b"ERROR: Use --cookies-from-browser or --cookies for the authentication", FailureKind.VERIFICATION_REQUIRED),
])
def test_classify_failure(stderr, expected):
    assert classify_failure(CompletedProcess(1, b"", stderr)) is expected


def test_classify_success_ignores_stderr():
    result = CompletedProcess(0, b"ok", b"WARNING: sign in to confirm")
    assert classify_failure(result) is FailureKind.OK
    raise_for_failure(result)


def test_raise_for_failure():
    with pytest.raises(VerificationRequired) as exc_info:
        raise_for_failure(CompletedProcess(1, b"", b"Sign in to confirm your age"))
    assert exc_info.value.status_code == 429
    assert exc_info.value.requires_credential

    with pytest.raises(ToolInvocationFailed) as exc_info:
        raise_for_failure(CompletedProcess(2, b"", b""))
    assert exc_info.value.status_code == 500
    assert exc_info.value.details == "exit code 2"


@pytest.mark.asyncio
async def test_executor_captures_output():
    result = await SubprocessExecutor.run([
        sys.executable, "-c",
        "import sys; sys.stdout.write('out'); sys.stderr.write('err'); sys.exit(3)"
    ])
    assert result == CompletedProcess(returncode=3, stdout=b"out", stderr=b"err")


@pytest.mark.asyncio
async def test_executor_reports_missing_binary_as_result(tmp_path):
    missing = str(tmp_path / "no-such-tool")
    result = await SubprocessExecutor.run([missing, "--version"])
    assert result.returncode == SPAWN_FAILED_RETURNCODE
    assert missing in result.error_text
    assert classify_failure(result) is FailureKind.TOOL_FAILED
