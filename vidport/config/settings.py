import json
import logging
import os
import tempfile
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

APP_ROOT = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
CONFIG_PATH = os.getenv("CONFIG_PATH", "config.json")

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
    "AppleWebKit/537.36 (KHTML, like Gecko) "
    "Chrome/120.0.0.0 Safari/537.36"
)


class RedisConfig(BaseModel):
    enabled: bool = Field(default=False, description="Connect to Redis on startup")
    url: str = Field(default="redis://redis:6379", description="Redis connection URL")
    socket_timeout: int = Field(default=5, description="Redis socket timeout in seconds")


class RateLimitConfig(BaseModel):
    enabled: bool = Field(default=True, description="Enable rate limiting (requires Redis)")
    max_requests: int = Field(default=10, ge=1, description="Max requests per window")
    window_seconds: int = Field(default=60, ge=1, description="Rate limit window in seconds")


class ToolsConfig(BaseModel):
    bin_dir: str = Field(default=os.path.join(APP_ROOT, "bin"), description="Directory with bundled binaries")
    system_dirs: list = Field(
        default=["/usr/local/bin", "/usr/bin", "/opt/homebrew/bin"],
        description="System install locations probed before PATH"
    )
    user_agent: str = Field(default=DEFAULT_USER_AGENT, description="User-Agent passed to yt-dlp")
    direct_protocols_only: bool = Field(default=True, description="Only offer formats served over plain HTTP(S)")


class DownloadConfig(BaseModel):
    temp_dir: str = Field(default=os.path.join(tempfile.gettempdir(), "vidport"), description="Directory for temporary download files")
    chunk_size: int = Field(default=1024 * 1024, ge=1024, description="Streaming chunk size in bytes")
    tool_timeout_seconds: Optional[int] = Field(default=None, ge=1, description="Deadline for the download run")
    metadata_timeout_seconds: Optional[int] = Field(default=None, ge=1, description="Deadline for metadata/title runs")


class SecurityConfig(BaseModel):
    enable_ssrf_protection: bool = Field(default=True, description="Enable SSRF protection")
    allow_private_ips: bool = Field(default=False, description="Allow private IP ranges")
    allow_localhost: bool = Field(default=False, description="Allow localhost access")


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO", description="Log level (DEBUG, INFO, WARNING, ERROR)")
    format: str = Field(default="%(message)s", description="Log format")
    enable_rich: bool = Field(default=True, description="Enable rich console logging")

    @field_validator("level")
    @classmethod
    def validate_log_level(cls, v):
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()


class I18nConfig(BaseModel):
    default_locale: str = Field(default="en", description="Default locale")
    supported_locales: list = Field(default=["en", "tr"], description="Supported locales")


class ApiConfig(BaseModel):
    title: str = Field(default="vidport", description="API title")
    description: str = Field(default="Media metadata and download proxy", description="API description")
    version: str = Field(default="1.0.0", description="API version")
    cors_origins: list = Field(default=["*"], description="CORS allowed origins")
    debug: bool = Field(default=False, description="Enable debug mode")


class CredentialSettings(BaseSettings):
    """Cookie credential, read from the environment on every access."""
    model_config = SettingsConfigDict(extra="ignore")

    youtube_cookies: Optional[str] = None


class Config(BaseModel):
    """Main configuration model"""
    redis: RedisConfig = Field(default_factory=RedisConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    tools: ToolsConfig = Field(default_factory=ToolsConfig)
    download: DownloadConfig = Field(default_factory=DownloadConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    i18n: I18nConfig = Field(default_factory=I18nConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)

    @classmethod
    def load_from_file(cls, config_path: str = "config.json") -> "Config":
        """Load configuration from JSON file"""
        try:
            with open(config_path, "r", encoding="utf-8") as f:
                config_data = json.load(f)
            logger.info(f"Configuration loaded from {config_path}")
            return cls(**config_data)
        except Exception as e:
            logger.error(f"Failed to load config from {config_path}: {str(e)}")
            logger.info("Using default configuration")
        return cls()

    @classmethod
    def load_from_env(cls) -> "Config":
        """Load configuration from environment variables (fallback)"""
        config_data: Dict[str, Any] = {}

        if os.getenv("REDIS_URL"):
            config_data["redis"] = {"enabled": True, "url": os.getenv("REDIS_URL")}

        rate_limit = {}
        if os.getenv("RATE_LIMIT_REQUESTS"):
            rate_limit["max_requests"] = int(os.getenv("RATE_LIMIT_REQUESTS"))
        if os.getenv("RATE_LIMIT_WINDOW"):
            rate_limit["window_seconds"] = int(os.getenv("RATE_LIMIT_WINDOW"))
        if rate_limit:
            config_data["rate_limit"] = rate_limit

        tools = {}
        if os.getenv("VIDPORT_BIN_DIR"):
            tools["bin_dir"] = os.getenv("VIDPORT_BIN_DIR")
        if tools:
            config_data["tools"] = tools

        download = {}
        if os.getenv("VIDPORT_TEMP_DIR"):
            download["temp_dir"] = os.getenv("VIDPORT_TEMP_DIR")
        if os.getenv("TOOL_TIMEOUT"):
            download["tool_timeout_seconds"] = int(os.getenv("TOOL_TIMEOUT"))
        if os.getenv("METADATA_TIMEOUT"):
            download["metadata_timeout_seconds"] = int(os.getenv("METADATA_TIMEOUT"))
        if download:
            config_data["download"] = download

        if os.getenv("ENABLE_SSRF_PROTECTION"):
            config_data["security"] = {
                "enable_ssrf_protection": os.getenv("ENABLE_SSRF_PROTECTION").lower() == "true"
            }

        if os.getenv("LOG_LEVEL"):
            config_data["logging"] = {"level": os.getenv("LOG_LEVEL")}

        if os.getenv("DEFAULT_LOCALE"):
            config_data["i18n"] = {"default_locale": os.getenv("DEFAULT_LOCALE")}

        return cls(**config_data) if config_data else cls()


def load_config() -> Config:
    """Load configuration with priority: config.json > env vars > defaults"""
    if os.path.exists(CONFIG_PATH):
        return Config.load_from_file(CONFIG_PATH)
    logger.info(f"Config file not found at {CONFIG_PATH}, checking environment variables")
    return Config.load_from_env()


config = load_config()
