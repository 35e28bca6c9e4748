"""Model registry: configured adapters, their metadata, and mode routing."""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from imagegen.config import Settings
from imagegen.jobs.store import JobStore
from imagegen.models.banana import BANANA_MODEL_ID, BananaAdapter
from imagegen.models.base import ModelAdapter, ModelCapabilities, ModelPricing
from imagegen.models.gemini import GEMINI_MODEL_ID, GeminiAdapter
from imagegen.models.local_mock import LOCAL_MODEL_ID, LocalMockAdapter
from imagegen.storage.temp_results import TempResultStore

logger = logging.getLogger(__name__)

# Modes that are better served by a specific provider
MODE_MODEL_MAP: Dict[str, str] = {
    "add-girlfriend": GEMINI_MODEL_ID,  # people generation
    "studio-portrait": BANANA_MODEL_ID,  # portraits
    "cartoonize": GEMINI_MODEL_ID,  # style transfer
}

PRODUCTION_DEFAULT_MODEL_ID = GEMINI_MODEL_ID


@dataclass(frozen=True)
class ModelRegistryEntry:
    """Metadata describing a registered model, paired with its adapter."""
    id: str
    name: str
    provider: str
    capabilities: ModelCapabilities
    adapter: ModelAdapter
    pricing: Optional[ModelPricing] = None

    def public_dict(self) -> Dict[str, Any]:
        """Wire representation for the models listing (adapter omitted)."""
        caps = self.capabilities
        return {
            "id": self.id,
            "name": self.name,
            "provider": self.provider,
            "capabilities": {
                "textToImage": caps.text_to_image,
                "imageToImage": caps.image_to_image,
                "inpainting": caps.inpainting,
                "maxResolution": caps.max_resolution,
                "supportedFormats": list(caps.supported_formats),
            },
            "pricing": (
                {"costPerImage": self.pricing.cost_per_image, "currency": self.pricing.currency}
                if self.pricing
                else None
            ),
        }


class ModelRegistry:
    """Holds the adapters available in this process and routes modes to them.

    - Entries are built once from configuration; there is no hot reload
    - A provider is registered only when its credentials are configured
    - The local adapter is always registered and is the fallback for any
      mode whose preferred model is unavailable
    """

    def __init__(self, settings: Settings, store: JobStore, results: TempResultStore):
        self._models: Dict[str, ModelRegistryEntry] = {}
        self._default_model_id = (
            PRODUCTION_DEFAULT_MODEL_ID if settings.is_production else LOCAL_MODEL_ID
        )
        self._register_configured(settings, store, results)

    def _register_configured(
        self, settings: Settings, store: JobStore, results: TempResultStore
    ) -> None:
        self.register(ModelRegistryEntry(
            id=LOCAL_MODEL_ID,
            name="Local Mock Generator",
            provider="local",
            capabilities=ModelCapabilities(
                max_resolution="1024x1024",
                supported_formats=["png", "jpg", "webp"],
            ),
            adapter=LocalMockAdapter(store, results, stage_delays=settings.local_stage_delays),
        ))

        if settings.gemini_api_key:
            self.register(ModelRegistryEntry(
                id=GEMINI_MODEL_ID,
                name="Gemini Pro Vision",
                provider="google",
                capabilities=ModelCapabilities(
                    max_resolution="1536x1536",
                    supported_formats=["png", "jpg", "webp"],
                ),
                pricing=ModelPricing(cost_per_image=0.05),
                adapter=GeminiAdapter(
                    store, results,
                    api_key=settings.gemini_api_key,
                    model=settings.gemini_model,
                ),
            ))

        if settings.banana_api_key:
            self.register(ModelRegistryEntry(
                id=BANANA_MODEL_ID,
                name="Stable Diffusion XL",
                provider="banana",
                capabilities=ModelCapabilities(
                    max_resolution="1024x1024",
                    supported_formats=["png", "jpg"],
                ),
                pricing=ModelPricing(cost_per_image=0.02),
                adapter=BananaAdapter(
                    store,
                    api_key=settings.banana_api_key,
                    model_key=settings.banana_model_key,
                    poll_interval=settings.banana_poll_interval_seconds,
                    max_poll_attempts=settings.banana_max_poll_attempts,
                ),
            ))

    def register(self, entry: ModelRegistryEntry) -> None:
        self._models[entry.id] = entry
        logger.info("Registered model: %s (%s)", entry.id, entry.name)

    @property
    def default_model_id(self) -> str:
        return self._default_model_id

    def select_model_for_mode(self, mode: str) -> str:
        """Model id a mode should use, before availability is considered."""
        return MODE_MODEL_MAP.get(mode) or self._default_model_id

    def get_adapter_for_mode(self, mode: str) -> ModelAdapter:
        model_id = self.select_model_for_mode(mode)
        entry = self._models.get(model_id)
        if entry is None:
            logger.warning("Model %s not found, falling back to %s", model_id, LOCAL_MODEL_ID)
            return self._models[LOCAL_MODEL_ID].adapter
        return entry.adapter

    def get_adapter_for_job(self, model_id: str) -> Optional[ModelAdapter]:
        """Adapter that owns jobs created under ``model_id``; no fallback."""
        entry = self._models.get(model_id)
        return entry.adapter if entry else None

    def get_available_models(self) -> List[ModelRegistryEntry]:
        return list(self._models.values())

    def get_model(self, model_id: str) -> Optional[ModelRegistryEntry]:
        return self._models.get(model_id)

    def is_model_available(self, model_id: str) -> bool:
        return model_id in self._models

    async def shutdown(self) -> None:
        """Stop background work and close provider HTTP clients."""
        for entry in self._models.values():
            await entry.adapter.aclose()
