"""
Parent image storage. Process memory OR local filesystem. Controlled by FF_USE_DISK_STORAGE flag.

Images are keyed by (user_id, child_key, role). A second upload to the same key
replaces the first: last writer wins.
"""

import asyncio
import logging
import mimetypes
import time
from abc import ABC, abstractmethod
from functools import lru_cache
from pathlib import Path
from typing import Optional
from urllib.parse import quote

from .config import get_settings
from .flags import get_flags
from ..models.upload import UploadedImage

logger = logging.getLogger(__name__)


class UploadStore(ABC):
    @abstractmethod
    async def put(
        self,
        user_id: str,
        child_key: str,
        role: str,
        data: bytes,
        content_type: str = "",
        filename: str = "",
    ) -> UploadedImage:
        """Store an image. Returns the stored record (its path is the caller's handle)."""
        ...

    @abstractmethod
    async def get(self, user_id: str, child_key: str, role: str) -> Optional[UploadedImage]:
        """Latest image for the key, or None."""
        ...

    async def get_parents(
        self, user_id: str, child_key: str
    ) -> tuple[Optional[UploadedImage], Optional[UploadedImage]]:
        """Returns (mother, father)."""
        mother = await self.get(user_id, child_key, "mother")
        father = await self.get(user_id, child_key, "father")
        return mother, father


class MemoryUploadStore(UploadStore):
    """Lock-protected dict. Lives as long as the process."""

    def __init__(self):
        self._images: dict[tuple[str, str, str], UploadedImage] = {}
        self._lock = asyncio.Lock()

    async def put(
        self,
        user_id: str,
        child_key: str,
        role: str,
        data: bytes,
        content_type: str = "",
        filename: str = "",
    ) -> UploadedImage:
        ext = _extension(filename, content_type)
        image = UploadedImage(
            user_id=user_id,
            child_key=child_key,
            role=role,
            data=data,
            content_type=content_type or _guess_content_type(filename),
            filename=filename,
            path=f"uploads/{_safe(user_id)}/{_safe(child_key)}/{_safe(role)}_{_millis()}{ext}",
        )
        async with self._lock:
            self._images[(user_id, child_key, role)] = image
        logger.info("Stored in memory: %s (%d bytes)", image.path, image.size)
        return image

    async def get(self, user_id: str, child_key: str, role: str) -> Optional[UploadedImage]:
        async with self._lock:
            return self._images.get((user_id, child_key, role))

    async def clear(self) -> None:
        async with self._lock:
            self._images.clear()


class LocalUploadStore(UploadStore):
    """Files under base_path/{user}/{child}/{role}_{millis}{ext}. Newest file per role wins."""

    def __init__(self, base_path: str = "./uploads"):
        self.base_path = Path(base_path)

    def _dir(self, user_id: str, child_key: str) -> Path:
        return self.base_path / _safe(user_id) / _safe(child_key)

    async def put(
        self,
        user_id: str,
        child_key: str,
        role: str,
        data: bytes,
        content_type: str = "",
        filename: str = "",
    ) -> UploadedImage:
        dir_path = self._dir(user_id, child_key)
        dir_path.mkdir(parents=True, exist_ok=True)

        ext = _extension(filename, content_type)
        file_path = dir_path / f"{_safe(role)}_{_millis()}{ext}"
        file_path.write_bytes(data)

        logger.info("Saved locally: %s (%d bytes)", file_path, len(data))
        return UploadedImage(
            user_id=user_id,
            child_key=child_key,
            role=role,
            data=data,
            content_type=content_type or _guess_content_type(file_path.name),
            filename=filename,
            path=str(file_path),
        )

    async def get(self, user_id: str, child_key: str, role: str) -> Optional[UploadedImage]:
        dir_path = self._dir(user_id, child_key)
        if not dir_path.exists():
            return None

        prefix = f"{_safe(role)}_"
        candidates = [
            p for p in dir_path.iterdir()
            if p.is_file() and p.name.startswith(prefix) and p.stem[len(prefix):].isdigit()
        ]
        if not candidates:
            return None

        path = max(candidates, key=lambda p: int(p.stem[len(prefix):]))
        return UploadedImage(
            user_id=user_id,
            child_key=child_key,
            role=role,
            data=path.read_bytes(),
            content_type=_guess_content_type(path.name),
            filename=path.name,
            path=str(path),
        )


@lru_cache
def get_upload_store() -> UploadStore:
    """Return the active upload store based on feature flags. One per process."""
    flags = get_flags()
    if flags.use_disk_storage:
        return LocalUploadStore(get_settings().upload_dir)
    return MemoryUploadStore()


# ── Helpers ───────────────────────────────────────────────────────────

def _safe(segment: str) -> str:
    """Encode a user-supplied key as one path segment. Distinct keys get distinct names."""
    if not segment:
        return "%"
    return quote(segment, safe="").replace(".", "%2E")


def _millis() -> int:
    return int(time.time() * 1000)


def _extension(filename: str, content_type: str) -> str:
    ext = Path(filename).suffix.lower() if filename else ""
    if not ext and content_type:
        ext = mimetypes.guess_extension(content_type) or ""
    return ext or ".jpg"


def _guess_content_type(filename: str) -> str:
    ct, _ = mimetypes.guess_type(filename)
    return ct or "image/jpeg"
