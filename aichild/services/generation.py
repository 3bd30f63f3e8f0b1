"""
Child image generation pipeline.

  request → prompts → (parent images) → submit → poll → classify → Outcome

Always returns an Outcome. Replicate failures become error outcomes (or the mock
image, depending on FF_ON_MISSING_TOKEN / FF_ON_API_FAILURE); nothing here raises
for a remote failure.
"""

import asyncio
import base64
import logging
import random
from typing import Optional
from urllib.parse import quote

from ..core.config import Settings
from ..core.flags import FeatureFlags
from ..core.storage import UploadStore
from ..models.generation import GenerationRequest
from ..models.outcome import Outcome, OutcomeKind
from ..models.prediction import PollPolicy
from ..models.upload import UploadedImage
from .normalizer import classify
from .prompts import build_model_input, build_prompts
from .replicate import (
    PollCancelled,
    ReplicateClient,
    ReplicateHTTPError,
    ReplicateServiceError,
    ReplicateTransportError,
)

logger = logging.getLogger(__name__)


class ParentImageError(ValueError):
    """Parent images exist but cannot be forwarded."""


def poll_policy(settings: Settings) -> PollPolicy:
    return PollPolicy(
        max_attempts=settings.replicate_poll_max_attempts,
        interval=settings.replicate_poll_interval,
    )


# ── Parent images ────────────────────────────────────────────────────

def _data_uri(image: UploadedImage, max_bytes: int) -> str:
    if image.size > max_bytes:
        raise ParentImageError(
            f"The {image.role} image is too large to send inline "
            f"({image.size // 1024} KB, max {max_bytes // 1024} KB). "
            "Set PUBLIC_BASE_URL to send images by URL."
        )
    encoded = base64.b64encode(image.data).decode("ascii")
    return f"data:{image.content_type};base64,{encoded}"


def _public_url(base_url: str, image: UploadedImage) -> str:
    return (
        f"{base_url.rstrip('/')}/uploads/"
        f"{quote(image.user_id, safe='')}/{quote(image.child_key, safe='')}/{quote(image.role, safe='')}"
    )


async def resolve_parent_images(
    request: GenerationRequest,
    store: UploadStore,
    settings: Settings,
    flags: FeatureFlags,
) -> tuple[Optional[str], Optional[str]]:
    """
    (mother, father) as URLs or data URIs, or (None, None) for prompt-only generation.

    Raises: ParentImageError when an image is too large to inline.
    """
    if not flags.send_parent_images or not request.use_parent_images:
        return None, None
    if not request.user_id or not request.child_key:
        return None, None

    mother, father = await store.get_parents(request.user_id, request.child_key)
    if mother is None or father is None:
        logger.info(
            "Parent images incomplete for %s/%s (mother=%s father=%s), prompt only",
            request.user_id, request.child_key, mother is not None, father is not None,
        )
        return None, None

    if settings.public_base_url:
        return (
            _public_url(settings.public_base_url, mother),
            _public_url(settings.public_base_url, father),
        )
    return (
        _data_uri(mother, settings.max_inline_image_bytes),
        _data_uri(father, settings.max_inline_image_bytes),
    )


# ── Pipeline ─────────────────────────────────────────────────────────

def _unavailable(
    kind: OutcomeKind, reason: str, settings: Settings, flags: FeatureFlags
) -> Outcome:
    if flags.on_api_failure == "mock":
        logger.warning("Replicate unavailable (%s), returning mock image", reason)
        return Outcome.fallback(settings.mock_image_url, reason)
    return Outcome.error(kind, reason)


async def generate_child(
    request: GenerationRequest,
    store: UploadStore,
    client: ReplicateClient,
    settings: Settings,
    flags: FeatureFlags,
    cancel: Optional[asyncio.Event] = None,
    rng: Optional[random.Random] = None,
) -> Outcome:
    """Run one generation end to end. At most one prediction per call."""
    prompts = build_prompts(request, rng)
    logger.info("Generating child: user=%s child=%s", request.user_id, request.child_key)
    logger.debug("Prompt: %s", prompts.prompt)
    logger.debug("Negative prompt: %s", prompts.negative_prompt)

    if not client.configured:
        logger.warning(
            "REPLICATE_API_TOKEN not set (FF_ON_MISSING_TOKEN=%s)", flags.on_missing_token
        )
        if flags.on_missing_token == "mock":
            return Outcome.fallback(settings.mock_image_url, "REPLICATE_API_TOKEN not configured")
        return Outcome.error(
            OutcomeKind.SERVICE_ERROR,
            "Image generation is not configured (REPLICATE_API_TOKEN missing)",
        )

    try:
        image, image2 = await resolve_parent_images(request, store, settings, flags)
    except ParentImageError as e:
        return Outcome.error(OutcomeKind.INVALID_INPUT, str(e))

    model_input = build_model_input(request, prompts, image=image, image2=image2)

    try:
        prediction = await client.submit(model_input)
    except ReplicateTransportError as e:
        return _unavailable(OutcomeKind.TRANSPORT_ERROR, str(e), settings, flags)
    except ReplicateHTTPError as e:
        return _unavailable(OutcomeKind.HTTP_ERROR, str(e), settings, flags)
    except ReplicateServiceError as e:
        return _unavailable(OutcomeKind.SERVICE_ERROR, f"Replicate error: {e}", settings, flags)

    if prediction.is_pending:
        try:
            prediction = await client.poll(prediction, poll_policy(settings), cancel)
        except PollCancelled as e:
            return Outcome.error(OutcomeKind.CANCELLED, str(e))

    outcome = classify(prediction, settings.denylist_markers)
    if outcome.kind == OutcomeKind.SUCCESS:
        logger.info("Prediction %s succeeded: %s", prediction.id, outcome.url)
    else:
        logger.warning(
            "Prediction %s ended as %s: %s", prediction.id, outcome.kind.value, outcome.reason
        )
    return outcome
