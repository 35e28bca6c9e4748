"""Job status API: poll, cancel, list history, download rendered outputs."""

import logging
import mimetypes
from typing import List

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import FileResponse

from imagegen.api.deps import get_registry, get_results, get_store
from imagegen.jobs.models import Job
from imagegen.jobs.store import JobStore
from imagegen.models.registry import ModelRegistry
from imagegen.storage.temp_results import TempResultStore

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/job/{job_id}", response_model=Job)
async def get_job(job_id: str, store: JobStore = Depends(get_store)):
    """Current snapshot of a job."""
    job = store.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


@router.delete("/job/{job_id}")
async def cancel_job(
    job_id: str,
    purge: bool = False,
    store: JobStore = Depends(get_store),
    registry: ModelRegistry = Depends(get_registry),
):
    """Cancel a job that is still running.

    Terminal jobs are left untouched and reported with ``cancelled: false``.
    With ``purge=true`` the record is also removed from the store.
    """
    job = store.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")

    cancelled = False
    if job.is_active:
        adapter = registry.get_adapter_for_job(job.model_id)
        if adapter is not None:
            cancelled = await adapter.cancel(job_id)
        else:
            logger.warning("No adapter registered for %s; cannot cancel %s", job.model_id, job_id)

    if purge:
        store.delete(job_id)
        status = "deleted"
        message = "Job deleted"
    else:
        current = store.get(job_id) or job
        status = current.status.value
        message = "Job cancelled" if cancelled else f"Job not cancelled (status: {status})"

    return {
        "jobId": job_id,
        "cancelled": cancelled,
        "status": status,
        "message": message,
    }


@router.get("/jobs", response_model=List[Job])
async def list_jobs(store: JobStore = Depends(get_store)):
    """All jobs, newest first."""
    return store.list()


@router.get("/outputs/{job_id}/{filename}")
async def get_job_output(
    job_id: str,
    filename: str,
    results: TempResultStore = Depends(get_results),
):
    """Download a rendered preview or final image."""
    if not results.file_exists(job_id, filename):
        raise HTTPException(status_code=404, detail="Output file not found")

    path = results.get_output_path(job_id, filename)
    media_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
    return FileResponse(path, media_type=media_type, filename=filename)
