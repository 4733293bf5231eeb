import asyncio
import ipaddress
import socket
from enum import Enum, auto
from urllib.parse import urlparse

from vidport.config.settings import config
from vidport.infra.redis import get_redis
from vidport.utils.hash import hash_stable

SSRF_CACHE_TTL = 300
ALLOWED_SCHEMES = ("http", "https")


class UrlValidationResult(Enum):
    """URL validation result without throwing exceptions"""
    OK = auto()
    BLOCKED = auto()
    INVALID = auto()


class SecurityValidator:
    """
    Validate URLs before they are handed to yt-dlp.
    Returns a result enum; the endpoint decides the HTTP status.
    """

    @staticmethod
    def check_syntax(url: str) -> bool:
        try:
            parsed = urlparse(url)
        except ValueError:
            return False
        return parsed.scheme in ALLOWED_SCHEMES and bool(parsed.hostname)

    @staticmethod
    async def validate_url(url: str) -> UrlValidationResult:
        """
        Validate URL syntax, then guard against SSRF.
        Uses async DNS resolution and Redis caching when available.
        """
        if not SecurityValidator.check_syntax(url):
            return UrlValidationResult.INVALID

        if not config.security.enable_ssrf_protection:
            return UrlValidationResult.OK

        hostname = urlparse(url).hostname
        cache_key = f"ssrf:{hash_stable(hostname)}"

        redis = get_redis()
        if redis:
            try:
                cached = await redis.get(cache_key)
                if cached == "ok":
                    return UrlValidationResult.OK
                if cached == "blocked":
                    return UrlValidationResult.BLOCKED
            except Exception:
                redis = None

        try:
            addr_info = await asyncio.to_thread(socket.getaddrinfo, hostname, None)
            ips = [info[4][0] for info in addr_info]
        except socket.gaierror:
            # DNS failed - let yt-dlp report it
            return UrlValidationResult.OK

        is_blocked = False
        for ip_str in ips:
            try:
                ip = ipaddress.ip_address(ip_str.split("%", 1)[0])
            except ValueError:
                return UrlValidationResult.INVALID

            if not config.security.allow_localhost and ip.is_loopback:
                is_blocked = True
            elif not config.security.allow_private_ips and ip.is_private:
                is_blocked = True
            elif ip.is_link_local or ip.is_multicast:
                is_blocked = True

            if is_blocked:
                break

        if redis:
            try:
                await redis.setex(cache_key, SSRF_CACHE_TTL, "blocked" if is_blocked else "ok")
            except Exception:
                pass

        return UrlValidationResult.BLOCKED if is_blocked else UrlValidationResult.OK
