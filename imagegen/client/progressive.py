"""What to display for a job right now, derived from a single snapshot."""

from dataclasses import dataclass, field
from typing import List, Optional

from imagegen.jobs.models import Job, JobStatus


@dataclass(frozen=True)
class ProgressiveImage:
    current_image: Optional[str] = None
    preview_images: List[str] = field(default_factory=list)
    is_loading: bool = False
    progress: int = 0
    eta: Optional[int] = None
    error: Optional[str] = None


def project_progressive_image(job: Optional[Job]) -> ProgressiveImage:
    """Project a job snapshot onto display state.

    While the job runs the newest preview is shown; a completed job shows its
    final image; failed and cancelled jobs keep showing the last preview.
    """
    if job is None:
        return ProgressiveImage()

    previews = list(job.preview_urls)
    current = previews[-1] if previews else None
    if job.status == JobStatus.COMPLETED and job.final_url:
        current = job.final_url

    return ProgressiveImage(
        current_image=current,
        preview_images=previews,
        is_loading=job.status in (JobStatus.PENDING, JobStatus.PROCESSING),
        progress=job.progress or 0,
        eta=job.eta or None,
        error=job.error or None,
    )
