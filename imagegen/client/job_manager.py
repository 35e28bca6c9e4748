"""Client-side job orchestration: submit, poll, reconcile, notify.

One JobManager serves one caller session. It keeps two collections:

- active jobs (pending/processing), refreshed by one poller per job
- completed jobs (history, newest first); failed and cancelled jobs are
  dropped from active without entering history

Every job state it holds is a snapshot fetched from ``GET /job/{id}``; the
manager never edits a job locally.
"""

import asyncio
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Union

import httpx

from imagegen.config import settings
from imagegen.errors import GenerationError
from imagegen.jobs.models import EditParams, GenerationParams, Job, JobStatus

logger = logging.getLogger(__name__)


class NotificationKind(str, Enum):
    GENERATION_STARTED = "generation_started"
    EDITING_STARTED = "editing_started"
    START_FAILED = "start_failed"
    COMPLETED = "completed"
    FAILED = "failed"
    CONNECTION_ERROR = "connection_error"
    NOT_FOUND = "not_found"
    CANCELLED = "cancelled"
    CANCEL_FAILED = "cancel_failed"
    HISTORY_CLEARED = "history_cleared"


@dataclass(frozen=True)
class Notification:
    kind: NotificationKind
    title: str
    message: str
    job_id: Optional[str] = None


Listener = Callable[[Notification], None]
Payload = Union[GenerationParams, Mapping[str, Any]]


class JobManager:
    def __init__(
        self,
        base_url: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        poll_interval: Optional[float] = None,
    ):
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=base_url or settings.api_base_url, timeout=10.0
        )
        self._poll_interval = (
            poll_interval if poll_interval is not None else settings.client_poll_interval_seconds
        )
        # Insertion order is start order
        self._active: Dict[str, Job] = {}
        self._completed: List[Job] = []
        self._pollers: Dict[str, asyncio.Task] = {}
        self._listeners: List[Listener] = []

    async def __aenter__(self) -> "JobManager":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    @property
    def active_jobs(self) -> List[Job]:
        return list(self._active.values())

    @property
    def completed_jobs(self) -> List[Job]:
        return list(self._completed)

    @property
    def is_generating(self) -> bool:
        return any(
            job.status in (JobStatus.PENDING, JobStatus.PROCESSING)
            for job in self._active.values()
        )

    @property
    def current_job(self) -> Optional[Job]:
        """Most recently started active job."""
        if not self._active:
            return None
        return next(reversed(self._active.values()))

    def is_polling(self, job_id: str) -> bool:
        return job_id in self._pollers

    # ------------------------------------------------------------------
    # Notifications
    # ------------------------------------------------------------------

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register a listener; returns a function that unregisters it."""
        self._listeners.append(listener)
        return lambda: self._listeners.remove(listener) if listener in self._listeners else None

    def _notify(self, kind: NotificationKind, title: str, message: str, job_id: Optional[str] = None) -> None:
        notification = Notification(kind, title, message, job_id)
        for listener in list(self._listeners):
            try:
                listener(notification)
            except Exception:
                logger.exception("Notification listener failed")

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def start_generation(self, params: Payload) -> str:
        """Submit a generation request and begin polling. Returns the job id."""
        job = await self._submit("/generate", params, "Generation")
        self._notify(
            NotificationKind.GENERATION_STARTED,
            "Generation started", "Your image is being generated...", job.job_id,
        )
        return job.job_id

    async def start_editing(self, params: Union[EditParams, Mapping[str, Any]]) -> str:
        """Submit an edit request and begin polling. Returns the job id."""
        job = await self._submit("/edit", params, "Editing")
        self._notify(
            NotificationKind.EDITING_STARTED,
            "Editing started", "Your image is being edited...", job.job_id,
        )
        return job.job_id

    async def cancel_job(self, job_id: str) -> bool:
        """Ask the boundary to cancel; local tracking stops either way.

        Returns whether the boundary confirmed the cancellation.
        """
        confirmed = False
        try:
            response = await self._client.delete(f"/job/{job_id}")
            if response.is_success:
                confirmed = bool(response.json().get("cancelled"))
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Cancel request for %s failed: %s", job_id, exc)

        self._stop_polling(job_id)
        self._active.pop(job_id, None)

        if confirmed:
            self._notify(NotificationKind.CANCELLED, "Job cancelled", "Generation has been cancelled", job_id)
        else:
            self._notify(NotificationKind.CANCEL_FAILED, "Cancellation failed", "Could not cancel the job", job_id)
        return confirmed

    async def get_job_status(self, job_id: str) -> Optional[Job]:
        """Fetch a job now, applying the same reconciliation as a poll."""
        return await self._refresh(job_id)

    def clear_completed_jobs(self) -> None:
        self._completed.clear()
        self._notify(
            NotificationKind.HISTORY_CLEARED,
            "History cleared", "All completed jobs have been removed",
        )

    async def aclose(self) -> None:
        """Stop every poller and release the HTTP client if we own it."""
        tasks = list(self._pollers.values())
        self._pollers.clear()
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        if self._owns_client:
            await self._client.aclose()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _submit(self, path: str, params: Payload, label: str) -> Job:
        if isinstance(params, GenerationParams):
            payload = params.model_dump(by_alias=True, exclude_none=True)
        else:
            payload = dict(params)

        try:
            response = await self._client.post(path, json=payload)
        except httpx.HTTPError as exc:
            self._notify(NotificationKind.START_FAILED, f"{label} failed", str(exc) or f"Failed to start {label.lower()}")
            raise GenerationError(f"Failed to start {label.lower()}: {exc}") from exc

        if response.is_error:
            message = _error_detail(response) or f"{label} failed"
            self._notify(NotificationKind.START_FAILED, f"{label} failed", message)
            raise GenerationError(message, status_code=response.status_code)

        job = Job.model_validate(response.json())
        self._active[job.job_id] = job
        self._start_polling(job.job_id)
        return job

    def _start_polling(self, job_id: str) -> None:
        if job_id in self._pollers:
            return
        self._pollers[job_id] = asyncio.create_task(self._poll_loop(job_id))

    def _stop_polling(self, job_id: str) -> None:
        task = self._pollers.pop(job_id, None)
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    async def _poll_loop(self, job_id: str) -> None:
        # First poll right away, then on a fixed interval
        while True:
            job = await self._refresh(job_id)
            if job is None or job.status.is_terminal or job_id not in self._active:
                self._stop_polling(job_id)
                return
            await asyncio.sleep(self._poll_interval)

    async def _refresh(self, job_id: str) -> Optional[Job]:
        try:
            response = await self._client.get(f"/job/{job_id}")
            if response.status_code == 404:
                self._lose_track(
                    job_id, NotificationKind.NOT_FOUND,
                    "Job not found", "The job no longer exists on the server",
                )
                return None
            response.raise_for_status()
            job = Job.model_validate(response.json())
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Error polling job %s: %s", job_id, exc)
            self._lose_track(
                job_id, NotificationKind.CONNECTION_ERROR,
                "Connection error", "Lost connection to generation service",
            )
            return None

        if job_id not in self._active:
            return job

        if not job.status.is_terminal:
            self._active[job_id] = job
            return job

        self._stop_polling(job_id)
        del self._active[job_id]
        if job.status == JobStatus.COMPLETED:
            self._completed.insert(0, job)
            self._notify(
                NotificationKind.COMPLETED,
                "Generation completed", "Your image has been generated successfully", job_id,
            )
        elif job.status == JobStatus.FAILED:
            self._notify(
                NotificationKind.FAILED,
                "Generation failed", job.error or "An error occurred during generation", job_id,
            )
        return job

    def _lose_track(self, job_id: str, kind: NotificationKind, title: str, message: str) -> None:
        self._stop_polling(job_id)
        self._active.pop(job_id, None)
        self._notify(kind, title, message, job_id)


def _error_detail(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        detail = body.get("detail") or body.get("error")
        return detail if isinstance(detail, str) else None
    return None
