"""
Generate API.

POST /generateChild — run one prediction and return its image URL

Success:  200 {"fileUrl": "..."}  (+ "fallback": true when the mock image was used)
Failure:  4xx/5xx {"error": "...", "status": "failed" | "timeout" | "error"}
"""

import asyncio
import contextlib
import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from ..core.config import Settings
from ..core.dependencies import get_flags_dep, get_replicate_dep, get_settings_dep, get_store_dep
from ..core.flags import FeatureFlags
from ..core.storage import UploadStore
from ..models.generation import GenerationRequest
from ..models.outcome import Outcome, OutcomeKind
from ..services import generation
from ..services.replicate import ReplicateClient

logger = logging.getLogger(__name__)

generate_router = APIRouter(tags=["generate"])

DISCONNECT_CHECK_INTERVAL = 0.5  # seconds

# Client closed the connection (nginx convention)
STATUS_CLIENT_CLOSED = 499


class GenerateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    file_url: str = Field(alias="fileUrl")
    fallback: Optional[bool] = None


class GenerateError(BaseModel):
    error: str
    status: Literal["failed", "timeout", "error"]


async def validation_error_response(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Malformed or out-of-range request fields. 400 in the same {error, status} shape."""
    problems = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        problems.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    message = "Invalid request: " + "; ".join(problems) if problems else "Invalid request"
    logger.warning("Rejected %s %s: %s", request.method, request.url.path, message)
    body = GenerateError(error=message, status="error")
    return JSONResponse(status_code=400, content=body.model_dump())


def outcome_response(outcome: Outcome) -> JSONResponse:
    """Map an Outcome onto the caller-facing JSON contract."""
    if outcome.kind == OutcomeKind.SUCCESS:
        body = GenerateResponse(file_url=outcome.url)
        return JSONResponse(content=body.model_dump(by_alias=True, exclude_none=True))

    if outcome.kind == OutcomeKind.FALLBACK:
        body = GenerateResponse(file_url=outcome.url, fallback=True)
        return JSONResponse(content=body.model_dump(by_alias=True, exclude_none=True))

    if outcome.kind == OutcomeKind.FAILED:
        status_code, status = 502, "failed"
        message = f"Image generation failed: {outcome.reason}"
    elif outcome.kind == OutcomeKind.TIMEOUT:
        status_code, status = 504, "timeout"
        message = f"Image generation timed out: {outcome.reason}"
    elif outcome.kind == OutcomeKind.INVALID_INPUT:
        status_code, status = 400, "error"
        message = outcome.reason or "Invalid request"
    elif outcome.kind == OutcomeKind.CANCELLED:
        status_code, status = STATUS_CLIENT_CLOSED, "error"
        message = outcome.reason or "Request cancelled"
    else:
        status_code, status = 502, "error"
        message = outcome.reason or outcome.kind.value

    body = GenerateError(error=message, status=status)
    return JSONResponse(status_code=status_code, content=body.model_dump())


async def _watch_disconnect(request: Request, cancel: asyncio.Event) -> None:
    """Set `cancel` once the caller drops the connection."""
    while not cancel.is_set():
        if await request.is_disconnected():
            logger.info("Client disconnected, cancelling generation")
            cancel.set()
            return
        await asyncio.sleep(DISCONNECT_CHECK_INTERVAL)


@generate_router.post(
    "/generateChild",
    response_model=GenerateResponse,
    responses={
        400: {"model": GenerateError},
        499: {"model": GenerateError},
        500: {"model": GenerateError},
        502: {"model": GenerateError},
        504: {"model": GenerateError},
    },
)
async def generate_child(
    body: GenerationRequest,
    request: Request,
    store: UploadStore = Depends(get_store_dep),
    client: ReplicateClient = Depends(get_replicate_dep),
    settings: Settings = Depends(get_settings_dep),
    flags: FeatureFlags = Depends(get_flags_dep),
):
    """Generate a child image from the stored parent photos and prompt options."""
    cancel = asyncio.Event()
    watcher = asyncio.create_task(_watch_disconnect(request, cancel))

    try:
        outcome = await generation.generate_child(
            body, store, client, settings, flags, cancel=cancel,
        )
    except Exception as e:
        logger.exception("Unexpected error generating child image")
        error = GenerateError(error=f"Failed to generate image safely: {e}", status="error")
        return JSONResponse(status_code=500, content=error.model_dump())
    finally:
        watcher.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await watcher

    return outcome_response(outcome)
