from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",  # local runs only; Lambda reads the function environment
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── AWS ───────────────────────────────────────────────────────────────────
    # Empty credentials fall back to the default chain (Lambda execution role).
    aws_access_key_id: str = ""
    aws_secret_access_key: str = ""
    aws_region: str = "us-east-1"
    s3_endpoint_url: str = ""  # LocalStack / MinIO

    # ── Conversion ────────────────────────────────────────────────────────────
    source_suffix: str = ".mov"
    target_suffix: str = ".mp4"
    target_content_type: str = "video/mp4"
    scratch_dir: str = "/tmp"
    ffmpeg_path: str = "ffmpeg"
    download_chunk_size: int = 1024 * 1024  # 1 MB

    # ── Logging ───────────────────────────────────────────────────────────────
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    return Settings()
