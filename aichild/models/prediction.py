"""
Replicate prediction models.

The status vocabulary and the shape of `output` belong to Replicate and are not
contractually stable, so both are kept raw here and interpreted by the normalizer.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class PredictionStatus(str, Enum):
    STARTING = "starting"
    PROCESSING = "processing"
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    CANCELED = "canceled"


PENDING_STATUSES = {PredictionStatus.STARTING.value, PredictionStatus.PROCESSING.value}
TERMINAL_STATUSES = {
    PredictionStatus.SUCCEEDED.value,
    PredictionStatus.FAILED.value,
    PredictionStatus.CANCELED.value,
}


@dataclass(frozen=True)
class Prediction:
    """One Replicate job as last reported by the API."""

    id: str
    status: str
    output: Any = None
    error: Optional[str] = None
    urls: dict = field(default_factory=dict)

    @classmethod
    def from_api(cls, body: dict) -> "Prediction":
        urls = body.get("urls")
        error = body.get("error")
        return cls(
            id=str(body.get("id") or ""),
            status=str(body.get("status") or ""),
            output=body.get("output"),
            error=str(error) if error else None,
            urls=urls if isinstance(urls, dict) else {},
        )

    @property
    def is_pending(self) -> bool:
        return self.status in PENDING_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class OutputKind(str, Enum):
    """Known shapes of a prediction's `output` field."""
    TEXT = "text"                   # "https://..."
    LIST = "list"                   # ["https://...", ...]
    OBJECT = "object"               # {"url": "https://..."}
    MISSING = "missing"             # null / absent
    UNRECOGNIZED = "unrecognized"   # numbers, booleans, anything else


@dataclass(frozen=True)
class PredictionOutput:
    kind: OutputKind
    value: Any = None


@dataclass(frozen=True)
class PollPolicy:
    """Bounded, fixed-interval polling. interval is in seconds."""

    max_attempts: int
    interval: float

    def __post_init__(self):
        if self.max_attempts < 0:
            raise ValueError("max_attempts must be >= 0")
        if self.interval < 0:
            raise ValueError("interval must be >= 0")
