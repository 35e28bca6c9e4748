"""Job record and request payload models.

Attributes are snake_case in Python and camelCase on the wire
(``jobId``, ``previewUrls``, ``finalUrl`` ...).
"""

import random
import string
import time
from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


_ID_ALPHABET = string.ascii_lowercase + string.digits


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_job_id() -> str:
    """Return a fresh id of the form ``job_<epoch-millis>_<9 base36 chars>``."""
    suffix = "".join(random.choices(_ID_ALPHABET, k=9))
    return f"job_{int(time.time() * 1000)}_{suffix}"


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self not in (JobStatus.PENDING, JobStatus.PROCESSING)


class _WireModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Job(_WireModel):
    """Tracks the lifecycle of one generation or edit request."""
    job_id: str
    model_id: str
    status: JobStatus = JobStatus.PENDING
    progress: int = 0
    preview_urls: List[str] = Field(default_factory=list)
    final_url: Optional[str] = None
    error: Optional[str] = None
    eta: Optional[int] = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def is_active(self) -> bool:
        return not self.status.is_terminal


class GenerationParams(_WireModel):
    """Text-to-image request. Immutable once submitted."""
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    prompt: str
    mode: str
    negative_prompt: Optional[str] = None
    size: str = "1024x1024"
    aspect_ratio: str = "1:1"
    strength: Optional[float] = None
    seed: Optional[int] = None

    def dimensions(self) -> Tuple[int, int]:
        """Parse ``size`` as ``WIDTHxHEIGHT``; unparseable parts default to 1024."""
        parts = self.size.lower().split("x")
        dims = []
        for i in range(2):
            try:
                value = int(parts[i])
            except (IndexError, ValueError):
                value = 0
            dims.append(value if value > 0 else 1024)
        return dims[0], dims[1]


class EditParams(GenerationParams):
    """Image + mask editing request."""
    image_url: str
    mask_url: str
