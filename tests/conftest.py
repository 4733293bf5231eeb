import json
import os

import pytest

from vidport.config.settings import config
from vidport.services.ytdlp import CompletedProcess, SubprocessExecutor

FORMATS_FIXTURE = [
    # audio-only m4a
    {"format_id": "140", "ext": "m4a", "protocol": "https", "vcodec": "none", "acodec": "mp4a.40.2",
     "filesize": 3_000_000},
    # audio-only webm, larger: wins the "Audio" label
    {"format_id": "251", "ext": "webm", "protocol": "https", "vcodec": "none", "acodec": "opus",
     "filesize": 3_500_000},
    # 360p muxed
    {"format_id": "18", "ext": "mp4", "protocol": "https", "vcodec": "avc1", "acodec": "mp4a.40.2",
     "height": 360, "filesize": 9_000_000},
    # 720p video-only, then a muxed 720p with the same label base
    {"format_id": "136", "ext": "mp4", "protocol": "https", "vcodec": "avc1", "acodec": "none",
     "height": 720, "filesize": 20_000_000},
    {"format_id": "22", "ext": "mp4", "protocol": "https", "vcodec": "avc1", "acodec": "mp4a.40.2",
     "height": 720, "filesize_approx": 15_000_000},
    # 1080p video-only
    {"format_id": "137", "ext": "mp4", "protocol": "https", "vcodec": "avc1", "acodec": "none",
     "height": 1080, "filesize": 50_000_000},
    # HLS manifest: dropped
    {"format_id": "96", "ext": "mp4", "protocol": "m3u8_native", "vcodec": "avc1", "acodec": "mp4a.40.2",
     "height": 1080},
    # unsupported container
    {"format_id": "sb0", "ext": "mhtml", "protocol": "https", "vcodec": "none", "acodec": "none"},
    # malformed: no id
    {"ext": "mp4", "protocol": "https", "vcodec": "avc1", "acodec": "mp4a.40.2", "height": 240},
]

INFO_FIXTURE = {
    "id": "abc123",
    "title": "Test Clip",
    "thumbnail": "https://i.example.com/abc123.jpg",
    "duration_string": "3:05",
    "formats": FORMATS_FIXTURE,
}


class FakeYtdlp:
    """Stands in for SubprocessExecutor.run and records every command"""

    def __init__(self):
        self.calls = []
        self.info = INFO_FIXTURE
        self.info_stdout = None
        self.title = "Test Clip: part 1/2"
        self.error = None
        self.write_output = True
        self.write_partial = False
        self.payload = os.urandom(5000)

    def find(self, flag):
        return [cmd for cmd in self.calls if flag in cmd]

    async def run(self, cmd, timeout=None):
        self.calls.append(list(cmd))

        if self.error is not None:
            return CompletedProcess(returncode=1, stdout=b"", stderr=self.error.encode())

        if "--dump-json" in cmd:
            stdout = self.info_stdout if self.info_stdout is not None else json.dumps(self.info).encode()
            return CompletedProcess(returncode=0, stdout=stdout, stderr=b"")

        if "--print" in cmd:
            return CompletedProcess(returncode=0, stdout=f"{self.title}\n".encode(), stderr=b"")

        if "-o" in cmd:
            template = cmd[cmd.index("-o") + 1]
            if self.write_partial:
                with open(template.replace("%(ext)s", "f137.mp4.part"), "wb") as f:
                    f.write(b"partial")
            if self.write_output:
                ext = "mp3" if "-x" in cmd else "mp4"
                with open(template.replace("%(ext)s", ext), "wb") as f:
                    f.write(self.payload)
            return CompletedProcess(returncode=0, stdout=b"", stderr=b"")

        return CompletedProcess(returncode=0, stdout=b"2024.12.13\n", stderr=b"")


@pytest.fixture
def anyio_backend():
    return 'asyncio'


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Temp dir per test, no SSRF DNS lookups, no credential from the host"""
    temp_dir = tmp_path / "downloads"
    monkeypatch.setattr(config.download, "temp_dir", str(temp_dir))
    monkeypatch.setattr(config.download, "chunk_size", 1024)
    monkeypatch.setattr(config.security, "enable_ssrf_protection", False)
    monkeypatch.setattr(config.tools, "bin_dir", str(tmp_path / "bin"))
    monkeypatch.delenv("YOUTUBE_COOKIES", raising=False)
    return temp_dir


@pytest.fixture
def temp_dir(isolated_config):
    return isolated_config


@pytest.fixture
def fake_ytdlp(monkeypatch):
    fake = FakeYtdlp()
    monkeypatch.setattr(SubprocessExecutor, "run", fake.run)
    return fake


def leftover_files(directory):
    if not os.path.isdir(directory):
        return []
    return sorted(os.listdir(directory))
