"""Generation and editing endpoints: validate, sanitize, dispatch to an adapter."""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel

from imagegen.api.deps import get_registry
from imagegen.api.v1.sanitize import sanitize_optional, sanitize_prompt
from imagegen.errors import ValidationError
from imagegen.jobs.models import EditParams, GenerationParams, Job
from imagegen.models.registry import ModelRegistry

logger = logging.getLogger(__name__)

router = APIRouter()


class GenerateRequest(BaseModel):
    """Raw request body. Fields are optional here so that missing ones
    produce a 400 with the list of missing names instead of a 422."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    prompt: Optional[str] = None
    mode: Optional[str] = None
    negative_prompt: Optional[str] = None
    size: str = "1024x1024"
    aspect_ratio: str = "1:1"
    strength: Optional[float] = None
    seed: Optional[int] = None


class EditRequest(GenerateRequest):
    image_url: Optional[str] = None
    mask_url: Optional[str] = None


def _require(request: BaseModel, fields: List[str]) -> None:
    missing = [
        name for name in fields
        if not (getattr(request, name) or "").strip()
    ]
    if missing:
        raise ValidationError(to_camel(name) for name in missing)


def _sanitized(request: GenerateRequest) -> dict:
    values = request.model_dump()
    values["prompt"] = sanitize_prompt(request.prompt)
    values["negative_prompt"] = sanitize_optional(request.negative_prompt)
    return values


@router.post("/generate", response_model=Job)
async def generate(
    request: GenerateRequest,
    registry: ModelRegistry = Depends(get_registry),
):
    """Start a text-to-image job. Returns the freshly created (pending) job."""
    _require(request, ["prompt", "mode"])
    params = GenerationParams(**_sanitized(request))

    adapter = registry.get_adapter_for_mode(params.mode)
    try:
        job = await adapter.generate(params)
    except Exception as e:
        logger.exception("Generation dispatch failed")
        raise HTTPException(status_code=500, detail=str(e) or "Generation failed")

    # Never log the prompt itself
    logger.info("Generation started: %s, mode: %s, model: %s", job.job_id, params.mode, job.model_id)
    return job


@router.post("/edit", response_model=Job)
async def edit(
    request: EditRequest,
    registry: ModelRegistry = Depends(get_registry),
):
    """Start an image + mask edit job."""
    _require(request, ["prompt", "mode", "image_url", "mask_url"])
    params = EditParams(**_sanitized(request))

    adapter = registry.get_adapter_for_mode(params.mode)
    try:
        job = await adapter.edit(params)
    except Exception as e:
        logger.exception("Editing dispatch failed")
        raise HTTPException(status_code=500, detail=str(e) or "Editing failed")

    logger.info("Editing started: %s, mode: %s, model: %s", job.job_id, params.mode, job.model_id)
    return job
