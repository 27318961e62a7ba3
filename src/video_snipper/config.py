from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field, BaseModel, computed_field
from typing import Optional, Dict
import logging
import tempfile

logger = logging.getLogger(__name__)

GIB = 1024 * 1024 * 1024


class LoggingSettings(BaseModel):
    """Logging configuration settings."""
    level: str = "INFO"
    file: Optional[str] = None
    console: bool = True
    json_format: Optional[bool] = None  # Auto-detect based on environment

    # Logger-specific levels
    logger_levels: Dict[str, str] = Field(default_factory=lambda: {
        "uvicorn": "WARNING",
        "uvicorn.access": "WARNING",
        "fastapi": "INFO",
        "httpx": "WARNING",
        "httpcore": "WARNING",
    })


class SecuritySettings(BaseModel):
    """CORS configuration settings."""
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    cors_credentials: bool = True
    cors_methods: list[str] = Field(default_factory=lambda: [
        "GET", "POST", "PUT", "DELETE", "OPTIONS"
    ])
    cors_headers: list[str] = Field(default_factory=lambda: [
        "Content-Type", "X-Session-Id", "Authorization", "Range"
    ])


class UploadSettings(BaseModel):
    max_bytes: int = 2 * GIB
    read_chunk_size: int = 1024 * 1024
    allowed_mime_prefix: str = "video/"


class FetchSettings(BaseModel):
    """Remote source download limits."""
    total_timeout_seconds: float = 300.0
    connect_timeout_seconds: float = 10.0
    read_timeout_seconds: float = 60.0
    attempt_timeout_seconds: float = 30.0
    max_bytes: int = 2 * GIB
    max_redirects: int = 10
    chunk_size: int = 1024 * 1024
    html_scan_limit: int = 2 * 1024 * 1024
    user_agent: str = (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
    )


class ClipSettings(BaseModel):
    """Media-cutting engine configuration."""
    duration_seconds: float = Field(default=60.0, gt=0)
    ffmpeg_binary: str = "ffmpeg"
    ffprobe_binary: str = "ffprobe"
    # Reject windows that start past the end of the source before cutting
    check_source_duration: bool = True
    output_format: str = "mp4"
    content_type: str = "video/mp4"
    movflags: str = "frag_keyframe+empty_moov"
    stream_chunk_size: int = 64 * 1024


class WorkspaceSettings(BaseModel):
    root: str = Field(default_factory=tempfile.gettempdir)
    prefix: str = "video-labeling-"
    input_filename: str = "input.mp4"
    sweep_on_startup: bool = True


class Settings(BaseSettings):
    """
    Manages application configuration using a layered approach.
    Values are loaded from environment variables and a .env file; nested
    groups use a double underscore, e.g. ``FETCH__MAX_BYTES``.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        extra="ignore",
    )

    # --- Application Configuration ---
    APP_NAME: str = "Video Snipper API"
    ENVIRONMENT: str = Field(default="development", description="Application environment")
    DEBUG: bool = Field(default=False, description="Enable debug mode")
    HOST: str = "0.0.0.0"
    PORT: int = 3001

    # --- Service Configurations ---
    logging: LoggingSettings = Field(default_factory=LoggingSettings)
    security: SecuritySettings = Field(default_factory=SecuritySettings)
    upload: UploadSettings = Field(default_factory=UploadSettings)
    fetch: FetchSettings = Field(default_factory=FetchSettings)
    clip: ClipSettings = Field(default_factory=ClipSettings)
    workspace: WorkspaceSettings = Field(default_factory=WorkspaceSettings)

    @computed_field
    @property
    def json_logs(self) -> bool:
        if self.logging.json_format is not None:
            return self.logging.json_format
        return self.ENVIRONMENT in ("staging", "production")


# Create a single, importable instance of the settings
settings = Settings()
