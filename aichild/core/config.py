"""
Central configuration. API token, Replicate endpoint and polling settings in one place.
"""

from functools import lru_cache
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Environment ---
    env: str = Field(default="development", alias="ENV")
    log_level: str = Field(default="info", alias="LOG_LEVEL")

    # --- Replicate ---
    replicate_api_token: str = Field(default="", alias="REPLICATE_API_TOKEN")
    replicate_base_url: str = Field(
        default="https://api.replicate.com/v1",
        alias="REPLICATE_BASE_URL",
    )
    replicate_model_version: str = Field(
        default="smoosh-sh/baby-mystic:ba5ab694",
        alias="REPLICATE_MODEL_VERSION",
    )
    replicate_submit_timeout: float = Field(default=10.0, alias="REPLICATE_SUBMIT_TIMEOUT")
    replicate_poll_timeout: float = Field(default=10.0, alias="REPLICATE_POLL_TIMEOUT")
    replicate_poll_interval: float = Field(default=2.0, alias="REPLICATE_POLL_INTERVAL")
    replicate_poll_max_attempts: int = Field(default=60, alias="REPLICATE_POLL_MAX_ATTEMPTS")

    # --- Results ---
    mock_image_url: str = Field(
        default="https://images.unsplash.com/photo-1507003211169-0a1dd7228f2d?w=400&h=400&fit=crop&crop=face",
        alias="MOCK_IMAGE_URL",
    )
    # Comma-separated substrings. A result URL containing one is rejected.
    url_denylist: str = Field(default="nsfw,placeholder", alias="URL_DENYLIST")

    # --- Parent images ---
    # When set, parent images go to Replicate as {PUBLIC_BASE_URL}/uploads/... links
    # instead of inline data URIs.
    public_base_url: str = Field(default="", alias="PUBLIC_BASE_URL")
    max_inline_image_bytes: int = Field(default=5 * 1024 * 1024, alias="MAX_INLINE_IMAGE_BYTES")

    # --- Uploads ---
    max_upload_bytes: int = Field(default=20 * 1024 * 1024, alias="MAX_UPLOAD_BYTES")
    upload_dir: str = Field(default="./uploads", alias="UPLOAD_DIR")

    # --- API ---
    api_host: str = Field(default="0.0.0.0", alias="API_HOST")
    api_port: int = Field(default=3000, alias="API_PORT")
    cors_origins: str = Field(default="*", alias="CORS_ORIGINS")

    @property
    def denylist_markers(self) -> list[str]:
        return [m.strip().lower() for m in self.url_denylist.split(",") if m.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()
