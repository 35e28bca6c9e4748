"""Health check endpoint."""

from fastapi import APIRouter, Depends

from imagegen.api.deps import get_registry, get_store
from imagegen.jobs.store import JobStore
from imagegen.models.registry import ModelRegistry

router = APIRouter()


@router.get("/health")
async def health_check(
    store: JobStore = Depends(get_store),
    registry: ModelRegistry = Depends(get_registry),
):
    """Service liveness, registered models and tracked job count."""
    models = [entry.id for entry in registry.get_available_models()]
    return {
        "status": "healthy",
        "models": models,
        "model_count": len(models),
        "default_model": registry.default_model_id,
        "jobs_tracked": len(store),
    }
