"""Adapter interface and metadata types for the model registry."""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Awaitable, Callable, Dict, List, Optional

from imagegen.errors import JobNotFoundError
from imagegen.jobs.models import EditParams, GenerationParams, Job, JobStatus, new_job_id
from imagegen.jobs.store import JobStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelCapabilities:
    text_to_image: bool = True
    image_to_image: bool = True
    inpainting: bool = True
    max_resolution: str = "1024x1024"
    supported_formats: List[str] = field(default_factory=lambda: ["png", "jpg"])


@dataclass(frozen=True)
class ModelPricing:
    cost_per_image: float
    currency: str = "USD"


class ModelAdapter(ABC):
    """Abstract base class for generation providers.

    An adapter turns a request into a job in the store and then drives that
    job's state from a background task. It only ever holds job ids; every
    write goes through the store.

    To add a provider:
    1. Subclass ModelAdapter and set ``model_id``
    2. Implement _run_generation() and _run_edit()
    3. Register it in ModelRegistry
    """

    model_id: str = ""

    def __init__(self, store: JobStore):
        self._store = store
        # job_id -> background task; the task doubles as the cancellation token
        self._tasks: Dict[str, asyncio.Task] = {}

    async def generate(self, params: GenerationParams) -> Job:
        """Create a pending job and start generating in the background."""
        job = self._create_job()
        self._launch(job.job_id, partial(self._run_generation, job.job_id, params), "generation")
        return job

    async def edit(self, params: EditParams) -> Job:
        """Create a pending job and start editing in the background."""
        job = self._create_job()
        self._launch(job.job_id, partial(self._run_edit, job.job_id, params), "editing")
        return job

    async def status(self, job_id: str) -> Job:
        job = self._store.get(job_id)
        if job is None:
            raise JobNotFoundError(job_id)
        return job

    async def cancel(self, job_id: str) -> bool:
        """Stop in-flight work for ``job_id`` and mark the job cancelled.

        Returns False when this instance is not running the job, including
        when the work already finished.
        """
        task = self._tasks.pop(job_id, None)
        if task is None or task.done():
            return False
        task.cancel()
        self._store.update(job_id, status=JobStatus.CANCELLED, eta=None)
        logger.info("Job %s cancelled on %s", job_id, self.model_id)
        return True

    def is_tracking(self, job_id: str) -> bool:
        task = self._tasks.get(job_id)
        return task is not None and not task.done()

    async def aclose(self) -> None:
        """Abandon all background work (process shutdown)."""
        tasks = list(self._tasks.values())
        self._tasks.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    @abstractmethod
    async def _run_generation(self, job_id: str, params: GenerationParams) -> None:
        """Drive a text-to-image job to a terminal state."""
        ...

    @abstractmethod
    async def _run_edit(self, job_id: str, params: EditParams) -> None:
        """Drive an edit job to a terminal state."""
        ...

    # ------------------------------------------------------------------
    # Store helpers used by subclasses
    # ------------------------------------------------------------------

    def _create_job(self) -> Job:
        return self._store.create(Job(job_id=new_job_id(), model_id=self.model_id))

    def _advance(
        self,
        job_id: str,
        progress: int,
        eta: Optional[int] = None,
        preview_url: Optional[str] = None,
    ) -> Optional[Job]:
        """Move a job forward: status processing, progress up, optional new preview."""
        job = self._store.get(job_id)
        if job is None:
            return None
        fields: Dict[str, Any] = {
            "status": JobStatus.PROCESSING,
            "progress": max(job.progress, min(progress, 99)),
            "eta": eta,
        }
        if preview_url:
            fields["preview_urls"] = job.preview_urls + [preview_url]
        return self._store.update(job_id, **fields)

    def _complete(self, job_id: str, final_url: str) -> Optional[Job]:
        return self._store.update(
            job_id,
            status=JobStatus.COMPLETED,
            progress=100,
            final_url=final_url,
            error=None,
            eta=0,
        )

    def _fail(self, job_id: str, error: str) -> Optional[Job]:
        return self._store.update(
            job_id,
            status=JobStatus.FAILED,
            final_url=None,
            error=error,
            eta=None,
        )

    def _launch(self, job_id: str, work: Callable[[], Awaitable[None]], label: str) -> None:
        self._tasks[job_id] = asyncio.create_task(self._guard(job_id, work, label))

    async def _guard(self, job_id: str, work: Callable[[], Awaitable[None]], label: str) -> None:
        """Run background work; any exception becomes a failed job."""
        try:
            await work()
        except Exception as exc:
            logger.exception("%s %s failed for job %s", self.model_id, label, job_id)
            self._fail(job_id, str(exc) or f"{label.capitalize()} failed")
        finally:
            if self._tasks.get(job_id) is asyncio.current_task():
                del self._tasks[job_id]
