"""
FastAPI dependencies. Injected into route handlers, overridden in tests.
"""

from fastapi import Depends

from .config import Settings, get_settings
from .flags import FeatureFlags, get_flags
from .storage import UploadStore, get_upload_store
from ..services.replicate import ReplicateClient


def get_settings_dep() -> Settings:
    return get_settings()


def get_flags_dep() -> FeatureFlags:
    return get_flags()


def get_store_dep() -> UploadStore:
    """Returns the process-wide upload store (memory or disk)."""
    return get_upload_store()


def get_replicate_dep(
    settings: Settings = Depends(get_settings_dep),
) -> ReplicateClient:
    """Replicate client on the shared connection pool."""
    return ReplicateClient.from_settings(settings)
