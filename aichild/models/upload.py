"""
Uploaded parent / aging images.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone


def utcnow():
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class UploadedImage:
    user_id: str
    child_key: str
    role: str                  # "mother", "father", "aging", ...
    data: bytes = field(repr=False)
    content_type: str = "image/jpeg"
    filename: str = ""
    path: str = ""             # Handle returned to the uploader
    uploaded_at: datetime = field(default_factory=utcnow)

    @property
    def size(self) -> int:
        return len(self.data)
