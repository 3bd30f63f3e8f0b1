"""
Parent image upload API.

POST /uploadImage                          — mother / father image (multipart)
POST /uploadAgingImage                     — image for the aging flow (multipart)
GET  /uploads/{userId}/{childKey}/{role}   — serve a stored image (used as the URL sent to Replicate)
"""

import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, ConfigDict, Field

from ..core.config import Settings
from ..core.dependencies import get_settings_dep, get_store_dep
from ..core.storage import UploadStore

logger = logging.getLogger(__name__)

upload_router = APIRouter(tags=["upload"])

ALLOWED_IMAGE_EXTENSIONS = {".png", ".jpg", ".jpeg", ".gif", ".webp", ".bmp", ".heic", ".heif"}


# ── Response model ────────────────────────────────────────────────────

class UploadResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_path: str = Field(alias="filePath")
    message: str
    user_id: str = Field(alias="userId")
    child_key: str = Field(alias="childKey")
    image_type: Optional[str] = Field(default=None, alias="imageType")
    size: int = 0
    success: bool = True
    status: str = "success"


class UploadError(Exception):
    def __init__(self, status_code: int, message: str):
        self.status_code = status_code
        self.message = message
        super().__init__(message)


def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": message, "success": False, "status": "error"},
    )


# ── POST /uploadImage ────────────────────────────────────────────────

@upload_router.post("/uploadImage", response_model=UploadResponse, response_model_exclude_none=True)
async def upload_image(
    file: Optional[UploadFile] = File(default=None, description="Parent photo"),
    user_id: Optional[str] = Form(default=None, alias="userId"),
    child_key: Optional[str] = Form(default=None, alias="childKey"),
    image_type: Optional[str] = Form(default=None, alias="imageType"),
    user_id_q: Optional[str] = Query(default=None, alias="userId"),
    child_key_q: Optional[str] = Query(default=None, alias="childKey"),
    image_type_q: Optional[str] = Query(default=None, alias="imageType"),
    store: UploadStore = Depends(get_store_dep),
    settings: Settings = Depends(get_settings_dep),
):
    """Store a parent image under (userId, childKey, imageType). Form fields win over query params."""
    user_id = user_id or user_id_q or "default-user"
    child_key = child_key or child_key_q or "default-key"
    image_type = image_type or image_type_q or "unknown"

    try:
        stored = await _store_upload(file, user_id, child_key, image_type, store, settings)
    except UploadError as e:
        logger.warning("Upload rejected (%s/%s/%s): %s", user_id, child_key, image_type, e.message)
        return _error_response(e.status_code, f"Failed to upload image: {e.message}")

    return UploadResponse(
        file_path=stored.path,
        message="Image uploaded successfully",
        user_id=user_id,
        child_key=child_key,
        image_type=image_type,
        size=stored.size,
    )


# ── POST /uploadAgingImage ───────────────────────────────────────────

@upload_router.post("/uploadAgingImage", response_model=UploadResponse, response_model_exclude_none=True)
async def upload_aging_image(
    file: Optional[UploadFile] = File(default=None, description="Photo to age"),
    user_id: Optional[str] = Form(default=None, alias="userId"),
    child_key: Optional[str] = Form(default=None, alias="childKey"),
    user_id_q: Optional[str] = Query(default=None, alias="userId"),
    child_key_q: Optional[str] = Query(default=None, alias="childKey"),
    store: UploadStore = Depends(get_store_dep),
    settings: Settings = Depends(get_settings_dep),
):
    """Store the aging-flow image under role "aging"."""
    user_id = user_id or user_id_q or "default-user"
    child_key = child_key or child_key_q or "default-key"

    try:
        stored = await _store_upload(file, user_id, child_key, "aging", store, settings)
    except UploadError as e:
        logger.warning("Aging upload rejected (%s/%s): %s", user_id, child_key, e.message)
        return _error_response(e.status_code, f"Failed to upload aging image: {e.message}")

    return UploadResponse(
        file_path=stored.path,
        message="Aging image uploaded successfully",
        user_id=user_id,
        child_key=child_key,
        size=stored.size,
    )


# ── GET /uploads/{user_id}/{child_key}/{role} ────────────────────────

@upload_router.get("/uploads/{user_id}/{child_key}/{role}")
async def serve_upload(
    user_id: str,
    child_key: str,
    role: str,
    store: UploadStore = Depends(get_store_dep),
):
    """Serve the latest stored image for the key."""
    image = await store.get(user_id, child_key, role)
    if image is None:
        raise HTTPException(status_code=404, detail="Image not found")
    return Response(content=image.data, media_type=image.content_type)


# ── Helpers ───────────────────────────────────────────────────────────

async def _store_upload(
    file: Optional[UploadFile],
    user_id: str,
    child_key: str,
    role: str,
    store: UploadStore,
    settings: Settings,
):
    if file is None:
        raise UploadError(400, "No image file provided")

    filename = file.filename or "upload.jpg"
    ext = Path(filename).suffix.lower()
    if ext and ext not in ALLOWED_IMAGE_EXTENSIONS:
        raise UploadError(
            400,
            f"File type '{ext}' not allowed. Supported: {', '.join(sorted(ALLOWED_IMAGE_EXTENSIONS))}",
        )

    too_large = UploadError(
        413, f"File too large (max {settings.max_upload_bytes // (1024 * 1024)}MB)"
    )
    if file.size is not None and file.size > settings.max_upload_bytes:
        raise too_large

    # Never buffer more than one byte past the limit
    data = await file.read(settings.max_upload_bytes + 1)
    if not data:
        raise UploadError(400, "Empty file")
    if len(data) > settings.max_upload_bytes:
        raise too_large

    stored = await store.put(
        user_id=user_id,
        child_key=child_key,
        role=role,
        data=data,
        content_type=file.content_type or "",
        filename=filename,
    )
    logger.info("Uploaded %s for %s/%s: %s (%d bytes)", role, user_id, child_key, filename, len(data))
    return stored
