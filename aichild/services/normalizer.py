"""
Output normalizer. Turns a Replicate prediction into exactly one Outcome.

Pure functions: same prediction in, same Outcome out.

The denylist check is a substring match on the URL. It catches placeholder and
flagged-result URLs the provider sometimes returns; it is not content moderation.
"""

import logging
from typing import Any, Iterable, Optional

from ..models.outcome import Outcome
from ..models.prediction import (
    OutputKind,
    Prediction,
    PredictionOutput,
    PredictionStatus,
    PENDING_STATUSES,
)

logger = logging.getLogger(__name__)

# Keys checked, in order, when output is an object
URL_FIELDS = ("url", "image_url", "image", "uri")


def decode_output(raw: Any) -> PredictionOutput:
    """Tag the raw `output` value with its shape."""
    if raw is None:
        return PredictionOutput(OutputKind.MISSING)
    if isinstance(raw, str):
        return PredictionOutput(OutputKind.TEXT, raw)
    if isinstance(raw, (list, tuple)):
        return PredictionOutput(OutputKind.LIST, list(raw))
    if isinstance(raw, dict):
        return PredictionOutput(OutputKind.OBJECT, raw)
    return PredictionOutput(OutputKind.UNRECOGNIZED, raw)


def extract_url(prediction: Prediction) -> Optional[str]:
    """
    Find the result URL. The output's shape picks exactly one rule:
      1. output is a string → it
      2. output is a list → first element
      3. output is an object → url / image_url / image / uri
      4. output is missing → top-level urls.get
    Returns None when the chosen rule finds nothing usable.
    """
    output = decode_output(prediction.output)

    if output.kind == OutputKind.TEXT:
        return _usable(output.value)

    if output.kind == OutputKind.LIST:
        return _usable(output.value[0]) if output.value else None

    if output.kind == OutputKind.OBJECT:
        for key in URL_FIELDS:
            url = _usable(output.value.get(key))
            if url:
                return url
        return None

    if output.kind == OutputKind.MISSING:
        return _usable(prediction.urls.get("get"))

    return None


def _usable(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def check_url(url: str, denylist: Iterable[str] = ()) -> Optional[str]:
    """Returns a rejection reason, or None if the URL is acceptable."""
    if not url.lower().startswith(("http://", "https://")):
        return f"Result is not an absolute http(s) URL: {url[:100]}"
    lowered = url.lower()
    for marker in denylist:
        if marker and marker.lower() in lowered:
            return f"Result URL matched denylisted marker '{marker}'"
    return None


def classify(prediction: Prediction, denylist: Iterable[str] = ()) -> Outcome:
    """
    Classify a prediction that is no longer being polled.

    A pending status here means the polling budget ran out, so it maps to TIMEOUT.
    """
    status = prediction.status
    pid = prediction.id

    if status == PredictionStatus.SUCCEEDED.value:
        url = extract_url(prediction)
        if url is None:
            shape = decode_output(prediction.output).kind.value
            logger.warning("Prediction %s succeeded but no URL found (output=%s)", pid, shape)
            return Outcome.extraction_error(
                f"Prediction succeeded but no image URL could be extracted (output shape: {shape})",
                prediction_id=pid,
            )
        rejection = check_url(url, denylist)
        if rejection:
            logger.warning("Prediction %s result rejected: %s", pid, rejection)
            return Outcome.extraction_error(rejection, prediction_id=pid)
        return Outcome.success(url, prediction_id=pid)

    if status == PredictionStatus.FAILED.value:
        return Outcome.failed(prediction.error or "unknown", prediction_id=pid)

    if status == PredictionStatus.CANCELED.value:
        return Outcome.failed(prediction.error or "canceled", status=status, prediction_id=pid)

    if status in PENDING_STATUSES:
        return Outcome.timeout(status, prediction_id=pid)

    return Outcome.unknown_status(status, prediction_id=pid)
