import asyncio
import json
import logging
import uuid
from typing import Any, Dict, Iterable, List

from vidport.config.settings import config
from vidport.core.errors import NegotiationFailed, ToolTimeout
from vidport.models.internal import BEST_AUDIO_ID
from vidport.models.response import MediaInfo, StreamVariant
from vidport.services.credentials import get_credential_file, remove_credential_file
from vidport.services.tools import resolve_tools
from vidport.services.ytdlp import SubprocessExecutor, YTDLPCommandBuilder, raise_for_failure

logger = logging.getLogger(__name__)

SUPPORTED_CONTAINERS = ("mp4", "m4a", "webm")
DIRECT_PROTOCOLS = ("http", "https")
CODEC_NONE = "none"

SILENT_SUFFIX = " (silent)"
VIDEO_LABEL = "Video"
AUDIO_LABEL = "Audio"
BEST_AUDIO_LABEL = "Best audio (MP3)"


def is_downloadable(descriptor: Dict[str, Any]) -> bool:
    if not descriptor.get("format_id"):
        return False
    protocol = descriptor.get("protocol")
    if config.tools.direct_protocols_only and protocol and protocol not in DIRECT_PROTOCOLS:
        return False
    return True


def quality_label(has_video: bool, has_audio: bool, height: Any) -> str:
    if not has_video:
        return AUDIO_LABEL
    label = f"{height}p" if height else VIDEO_LABEL
    if not has_audio:
        label += SILENT_SUFFIX
    return label


def to_variant(descriptor: Dict[str, Any]) -> StreamVariant:
    has_video = descriptor.get("vcodec") != CODEC_NONE
    has_audio = descriptor.get("acodec") != CODEC_NONE
    height = descriptor.get("height") if has_video else None
    return StreamVariant(
        format_id=str(descriptor["format_id"]),
        quality_label=quality_label(has_video, has_audio, height),
        container=descriptor.get("ext") or "",
        has_audio=has_audio,
        has_video=has_video,
        content_length=int(descriptor.get("filesize") or descriptor.get("filesize_approx") or 0),
        height=height,
    )


def dedup_key(variant: StreamVariant) -> str:
    """Resolution part of the label: "720p" and "720p (silent)" compete"""
    return variant.quality_label.removesuffix(SILENT_SUFFIX)


def deduplicate(variants: Iterable[StreamVariant]) -> List[StreamVariant]:
    """
    One pass in encounter order. A variant whose resolution label is already
    kept replaces it in place when it adds audio, or when audio presence is
    equal and its size estimate is strictly larger.
    """
    kept: List[StreamVariant] = []
    index_by_key: Dict[str, int] = {}
    for variant in variants:
        key = dedup_key(variant)
        index = index_by_key.get(key)
        if index is None:
            index_by_key[key] = len(kept)
            kept.append(variant)
            continue
        existing = kept[index]
        if variant.has_audio and not existing.has_audio:
            kept[index] = variant
        elif variant.has_audio == existing.has_audio and variant.content_length > existing.content_length:
            kept[index] = variant
    return kept


def best_audio_variant() -> StreamVariant:
    return StreamVariant(
        format_id=BEST_AUDIO_ID,
        quality_label=BEST_AUDIO_LABEL,
        container="mp3",
        has_audio=True,
        has_video=False,
    )


def sort_key(variant: StreamVariant):
    # sorted() is stable, equal keys keep encounter order
    if variant.has_video:
        return (0, -(variant.height or 0))
    return (1, 0)


def negotiate_variants(descriptors: Iterable[Dict[str, Any]]) -> List[StreamVariant]:
    """Turn raw yt-dlp format descriptors into the list offered to clients"""
    variants = [to_variant(d) for d in descriptors if isinstance(d, dict) and is_downloadable(d)]
    variants = deduplicate(variants)
    variants = [v for v in variants if v.container in SUPPORTED_CONTAINERS]
    variants.append(best_audio_variant())
    return sorted(variants, key=sort_key)


def parse_media_info(raw: bytes) -> MediaInfo:
    try:
        info = json.loads(raw.decode(errors="replace"))
    except ValueError as e:
        raise NegotiationFailed(str(e))
    if not isinstance(info, dict):
        raise NegotiationFailed("yt-dlp output is not a JSON object")

    return MediaInfo(
        title=info.get("title") or "",
        thumbnail=info.get("thumbnail"),
        duration=info.get("duration_string"),
        formats=negotiate_variants(info.get("formats") or []),
    )


class FormatNegotiator:
    """Fetch metadata and negotiate the variant list for a URL"""

    @staticmethod
    async def negotiate(url: str) -> MediaInfo:
        tools = resolve_tools()
        cookie_file = get_credential_file(config.download.temp_dir, f"meta-{uuid.uuid4().hex}")
        cmd = YTDLPCommandBuilder.build_info_command(tools.ytdlp, url, cookie_file)

        try:
            result = await SubprocessExecutor.run(cmd, timeout=config.download.metadata_timeout_seconds)
        except asyncio.TimeoutError:
            raise ToolTimeout(f"--dump-json exceeded {config.download.metadata_timeout_seconds}s")
        finally:
            remove_credential_file(cookie_file)

        raise_for_failure(result)
        return parse_media_info(result.stdout)
