"""
Normalized generation outcome. The only thing a caller of the pipeline ever sees.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class OutcomeKind(str, Enum):
    SUCCESS = "success"
    FALLBACK = "fallback"                   # Designed mock/placeholder URL
    FAILED = "failed"                       # Replicate reported failure
    TIMEOUT = "timeout"                     # Attempts exhausted while pending
    EXTRACTION_ERROR = "extraction_error"   # Succeeded, but no usable URL
    UNKNOWN_STATUS = "unknown_status"
    TRANSPORT_ERROR = "transport_error"     # Network / timeout on submit
    HTTP_ERROR = "http_error"               # Non-2xx on submit
    SERVICE_ERROR = "service_error"         # Replicate error field, or no token in error mode
    CANCELLED = "cancelled"                 # Caller went away mid-poll
    INVALID_INPUT = "invalid_input"


@dataclass(frozen=True)
class Outcome:
    kind: OutcomeKind
    url: Optional[str] = None
    reason: Optional[str] = None
    status: Optional[str] = None            # Raw Replicate status, when known
    prediction_id: Optional[str] = None

    @property
    def has_url(self) -> bool:
        return self.kind in (OutcomeKind.SUCCESS, OutcomeKind.FALLBACK)

    # ── Constructors ────────────────────────────────────────────────

    @classmethod
    def success(cls, url: str, prediction_id: str = "") -> "Outcome":
        return cls(OutcomeKind.SUCCESS, url=url, status="succeeded", prediction_id=prediction_id or None)

    @classmethod
    def fallback(cls, url: str, reason: str) -> "Outcome":
        return cls(OutcomeKind.FALLBACK, url=url, reason=reason)

    @classmethod
    def failed(cls, reason: str, status: str = "failed", prediction_id: str = "") -> "Outcome":
        return cls(OutcomeKind.FAILED, reason=reason, status=status, prediction_id=prediction_id or None)

    @classmethod
    def timeout(cls, status: str, prediction_id: str = "") -> "Outcome":
        return cls(
            OutcomeKind.TIMEOUT,
            reason=f"Prediction still '{status}' after polling budget was exhausted",
            status=status,
            prediction_id=prediction_id or None,
        )

    @classmethod
    def extraction_error(cls, reason: str, prediction_id: str = "") -> "Outcome":
        return cls(OutcomeKind.EXTRACTION_ERROR, reason=reason, status="succeeded", prediction_id=prediction_id or None)

    @classmethod
    def unknown_status(cls, status: str, prediction_id: str = "") -> "Outcome":
        return cls(
            OutcomeKind.UNKNOWN_STATUS,
            reason=f"Unrecognized prediction status: {status!r}",
            status=status,
            prediction_id=prediction_id or None,
        )

    @classmethod
    def error(cls, kind: OutcomeKind, reason: str) -> "Outcome":
        return cls(kind, reason=reason)
