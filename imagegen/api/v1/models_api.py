"""Models API: list registered models."""

from fastapi import APIRouter, Depends

from imagegen.api.deps import get_registry
from imagegen.models.registry import ModelRegistry

router = APIRouter()


@router.get("/models")
async def list_models(registry: ModelRegistry = Depends(get_registry)):
    """List all registered models. Adapter internals are never exposed."""
    entries = registry.get_available_models()
    return {
        "models": [entry.public_dict() for entry in entries],
        "count": len(entries),
    }
