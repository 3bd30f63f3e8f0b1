"""
Domain models. Plain dataclasses, nothing persisted.
"""

from .prediction import (
    Prediction, PredictionStatus, PredictionOutput, OutputKind, PollPolicy,
    PENDING_STATUSES, TERMINAL_STATUSES,
)
from .outcome import Outcome, OutcomeKind
from .upload import UploadedImage
from .generation import GenerationRequest

__all__ = [
    "GenerationRequest",
    "Prediction", "PredictionStatus", "PredictionOutput", "OutputKind", "PollPolicy",
    "PENDING_STATUSES", "TERMINAL_STATUSES",
    "Outcome", "OutcomeKind",
    "UploadedImage",
]
