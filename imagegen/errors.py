"""Exception types shared by the store, adapters, boundary and client."""

from typing import Iterable, Optional


class ImageGenError(Exception):
    """Base class for all service errors."""


class DuplicateJobError(ImageGenError):
    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} already exists")
        self.job_id = job_id


class JobNotFoundError(ImageGenError):
    def __init__(self, job_id: str):
        super().__init__(f"Job {job_id} not found")
        self.job_id = job_id


class ValidationError(ImageGenError):
    """Required request fields are missing. Raised before any job exists."""

    def __init__(self, missing_fields: Iterable[str]):
        self.missing_fields = list(missing_fields)
        super().__init__(f"Missing required fields: {', '.join(self.missing_fields)}")


class ProviderError(ImageGenError):
    """A generation backend reported an error or returned unusable output."""


class GenerationError(ImageGenError):
    """Client side: the boundary rejected or could not accept a new job."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code
