"""
Central feature flags. One file controls how the server degrades.

Set via environment variables (prefix FF_) or .env file.
When Replicate is unavailable, the flags decide between a mock image and an error.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class FeatureFlags(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # ── Storage ──────────────────────────────────────────────────────
    use_disk_storage: bool = Field(default=False, alias="FF_USE_DISK_STORAGE")
    # ON  → Uploads written to UPLOAD_DIR/{user}/{child}/. Survive restarts.
    # OFF → Uploads kept in process memory. Cleared on restart.

    # ── Parent images ────────────────────────────────────────────────
    send_parent_images: bool = Field(default=True, alias="FF_SEND_PARENT_IMAGES")
    # ON  → mother/father uploads forwarded to the model as image/image2.
    # OFF → Prompt-only generation. Uploads are stored but not sent.

    # ── Degrade modes ────────────────────────────────────────────────
    on_missing_token: Literal["mock", "error"] = Field(default="mock", alias="FF_ON_MISSING_TOKEN")
    # "mock"  → No REPLICATE_API_TOKEN: return MOCK_IMAGE_URL (flagged as fallback).
    # "error" → No REPLICATE_API_TOKEN: return a structured error.

    on_api_failure: Literal["mock", "error"] = Field(default="error", alias="FF_ON_API_FAILURE")
    # "mock"  → Replicate submit failed (network, HTTP, service error): return MOCK_IMAGE_URL.
    # "error" → Surface the failure to the caller.
    # Never applies to extraction errors or unknown statuses.


@lru_cache
def get_flags() -> FeatureFlags:
    return FeatureFlags()
