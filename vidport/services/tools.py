"""
Locate the yt-dlp and ffmpeg executables.

Each tool has an ordered list of candidate strategies. A strategy returns a
path (or None); the first path that exists wins. If none does, the bare
command name is returned and PATH resolution happens when the process is
spawned, so a missing binary surfaces as an executor failure.
"""
import logging
import os
import sys
from typing import Callable, List, NamedTuple, Optional

import imageio_ffmpeg

from vidport.config.settings import config

logger = logging.getLogger(__name__)

Candidate = Callable[[], Optional[str]]

IS_WINDOWS = sys.platform.startswith("win")


def _executable_name(name: str) -> str:
    return f"{name}.exe" if IS_WINDOWS else name


def bundled_binary(name: str) -> Candidate:
    """<bin_dir>/<name>, e.g. a release binary fetched at deploy time"""
    def candidate() -> Optional[str]:
        return os.path.join(config.tools.bin_dir, _executable_name(name))
    return candidate


def interpreter_script(name: str) -> Candidate:
    """Console script installed next to the running interpreter (pip install yt-dlp)"""
    def candidate() -> Optional[str]:
        scripts_dir = os.path.dirname(sys.executable)
        return os.path.join(scripts_dir, _executable_name(name))
    return candidate


def imageio_binary() -> Optional[str]:
    """ffmpeg shipped inside the imageio-ffmpeg wheel"""
    try:
        return imageio_ffmpeg.get_ffmpeg_exe()
    except RuntimeError as e:
        logger.debug(f"imageio-ffmpeg has no usable binary: {e}")
        return None


def system_install(name: str) -> List[Candidate]:
    def make(directory: str) -> Candidate:
        return lambda: os.path.join(directory, name)
    return [make(directory) for directory in config.tools.system_dirs]


class ToolLocator:
    """Ordered candidate resolution for one executable"""

    def __init__(self, name: str, candidates: List[Candidate]):
        self.name = name
        self.candidates = candidates

    def resolve(self) -> str:
        for candidate in self.candidates:
            path = candidate()
            if path and os.path.isfile(path):
                return path
        logger.debug(f"No {self.name} candidate found, relying on PATH")
        return self.name


class ToolPaths(NamedTuple):
    ytdlp: str
    ffmpeg: str


def ytdlp_locator() -> ToolLocator:
    return ToolLocator("yt-dlp", [
        bundled_binary("yt-dlp"),
        interpreter_script("yt-dlp"),
        *system_install("yt-dlp"),
    ])


def ffmpeg_locator() -> ToolLocator:
    return ToolLocator("ffmpeg", [
        bundled_binary("ffmpeg"),
        imageio_binary,
        *system_install("ffmpeg"),
    ])


def resolve_tools() -> ToolPaths:
    """Resolve both executables; called once per request, never cached"""
    return ToolPaths(ytdlp=ytdlp_locator().resolve(), ffmpeg=ffmpeg_locator().resolve())
