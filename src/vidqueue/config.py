"""Configuration management for vidqueue."""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SUPPORTED_DOMAINS: dict[str, str] = {
    "facebook.com": "facebook",
    "fb.watch": "facebook",
    "instagram.com": "instagram",
    "youtube.com": "youtube",
    "youtu.be": "youtube",
}


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="VIDQUEUE_",
        case_sensitive=False,
    )

    # Server
    host: str = "0.0.0.0"
    port: int = 8000
    debug: bool = False
    log_level: str = "INFO"

    # Directories
    download_dir: Path = Path("./downloads")

    # Extraction tool
    ytdlp_path: str = "yt-dlp"
    video_max_height: int = 1080
    video_fallback_height: int = 720
    audio_format: str = "mp3"
    audio_quality: str = "192K"
    probe_metadata: bool = False

    # URL classification (domain -> platform)
    supported_domains: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_SUPPORTED_DOMAINS)
    )

    # Lifecycle
    max_concurrent_downloads: int | None = None  # None = unbounded
    stderr_policy: Literal["fatal", "classify"] = "fatal"

    def ensure_directories(self) -> None:
        """Create required directories if they don't exist."""
        self.download_dir.mkdir(parents=True, exist_ok=True)


# Global settings instance
settings = Settings()
