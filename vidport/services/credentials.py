import logging
import os
from typing import Optional

from vidport.config.settings import CredentialSettings

logger = logging.getLogger(__name__)


def get_cookie_text() -> Optional[str]:
    """Raw cookie-jar text from YOUTUBE_COOKIES, or None when unset/blank"""
    cookies = CredentialSettings().youtube_cookies
    if not cookies or not cookies.strip():
        return None
    return cookies


def credential_file_path(directory: str, job_id: str) -> str:
    return os.path.join(directory, f"cookies-{job_id}.txt")


def get_credential_file(directory: str, job_id: str) -> Optional[str]:
    """
    Materialize the cookie credential for one job.

    The value is written verbatim, overwriting any previous file, to a path
    owned by the job. Returns None when no credential is configured or the
    write fails; callers then omit --cookies.
    """
    cookies = get_cookie_text()
    if cookies is None:
        return None

    path = credential_file_path(directory, job_id)
    try:
        os.makedirs(directory, exist_ok=True)
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(cookies)
    except OSError as e:
        logger.error(f"Failed to write cookie file {path}: {e}")
        return None
    return path


def remove_credential_file(path: Optional[str]) -> None:
    if not path:
        return
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.warning(f"Failed to remove cookie file {path}: {e}")
