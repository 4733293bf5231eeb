import re
from urllib.parse import quote

DEFAULT_TITLE = "video"

_UNSAFE_TITLE_CHARS = re.compile(r"[^\w\s-]")


def sanitize_title(title: str) -> str:
    """Keep word characters, whitespace and hyphens; fall back to a placeholder"""
    cleaned = _UNSAFE_TITLE_CHARS.sub("", title or "").strip()
    return cleaned or DEFAULT_TITLE


def build_download_filename(title: str, extension: str) -> str:
    return f"{sanitize_title(title)}.{extension}"


def content_disposition(filename: str) -> str:
    """RFC 5987 attachment header, safe for non-ASCII titles"""
    return f"attachment; filename*=UTF-8''{quote(filename)}"
