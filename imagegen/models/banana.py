"""Banana (hosted Stable Diffusion XL) adapter.

Submits a call to ``/start/v4/`` and polls ``/check/v4/{call_id}`` until
the provider reports completion or failure, mirroring provider progress
into the job store as it goes.
"""

import asyncio
import base64
import logging
import random
import time
from typing import Any, Dict, Optional

import httpx

from imagegen.errors import ProviderError
from imagegen.jobs.models import EditParams, GenerationParams
from imagegen.jobs.store import JobStore
from imagegen.models.base import ModelAdapter

logger = logging.getLogger(__name__)

BANANA_MODEL_ID = "banana-stable-diffusion"
BANANA_BASE_URL = "https://api.banana.dev"
BANANA_API_VERSION = "2023-09-15"

DEFAULT_NEGATIVE_PROMPT = "low quality, blurry, distorted"

_MODE_MODIFIERS = {
    "studio-portrait": "studio lighting, professional photography",
    "cartoonize": "cartoon style, vibrant colors, clean lines",
    "add-girlfriend": "photorealistic, natural lighting",
}


class BananaAdapter(ModelAdapter):
    model_id = BANANA_MODEL_ID

    def __init__(
        self,
        store: JobStore,
        api_key: str,
        model_key: str = "stable-diffusion-xl",
        base_url: str = BANANA_BASE_URL,
        poll_interval: float = 5.0,
        max_poll_attempts: int = 60,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(store)
        if not api_key:
            logger.warning("BANANA_API_KEY not set. Banana adapter will not work.")
        self._api_key = api_key
        self._model_key = model_key
        self._base_url = base_url.rstrip("/")
        self._poll_interval = poll_interval
        self._max_poll_attempts = max_poll_attempts
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=30.0)

    def build_generation_prompt(self, params: GenerationParams) -> str:
        prompt = f"{params.prompt}, highly detailed, professional quality, sharp focus"
        modifier = _MODE_MODIFIERS.get(params.mode)
        if modifier:
            prompt += f", {modifier}"
        return prompt

    def build_editing_prompt(self, params: EditParams) -> str:
        return f"{params.prompt}, seamless blend, natural integration, maintain original style"

    async def _run_generation(self, job_id: str, params: GenerationParams) -> None:
        self._advance(job_id, progress=10)
        width, height = params.dimensions()
        model_inputs = {
            "prompt": self.build_generation_prompt(params),
            "negative_prompt": params.negative_prompt or DEFAULT_NEGATIVE_PROMPT,
            "width": width,
            "height": height,
            "num_inference_steps": 50,
            "guidance_scale": 7.5,
            "seed": _seed(params),
            "scheduler": "DPMSolverMultistepScheduler",
            "safety_check": True,
        }
        call_id = await self._start(job_id, model_inputs)
        await self._poll_for_completion(job_id, call_id)

    async def _run_edit(self, job_id: str, params: EditParams) -> None:
        self._advance(job_id, progress=15)
        model_inputs = {
            "prompt": self.build_editing_prompt(params),
            "negative_prompt": params.negative_prompt or DEFAULT_NEGATIVE_PROMPT,
            "image": await self._image_to_base64(params.image_url),
            "mask_image": await self._image_to_base64(params.mask_url),
            "strength": params.strength if params.strength is not None else 0.8,
            "num_inference_steps": 50,
            "guidance_scale": 7.5,
            "seed": _seed(params),
        }
        call_id = await self._start(job_id, model_inputs)
        await self._poll_for_completion(job_id, call_id)

    async def aclose(self) -> None:
        await super().aclose()
        if self._owns_client:
            await self._client.aclose()

    async def _start(self, job_id: str, model_inputs: Dict[str, Any]) -> str:
        payload = {
            "id": job_id,
            "created": int(time.time() * 1000),
            "apiVersion": BANANA_API_VERSION,
            "modelKey": self._model_key,
            "modelInputs": model_inputs,
        }
        response = await self._client.post(
            f"{self._base_url}/start/v4/", json=payload, headers=self._headers()
        )
        if response.status_code != 200:
            raise ProviderError(f"Banana API error {response.status_code}: {response.text[:200]}")
        result = response.json()
        call_id = result.get("callID") or result.get("id")
        if not call_id:
            raise ProviderError("Banana did not return a call id")
        return call_id

    async def _poll_for_completion(self, job_id: str, call_id: str) -> None:
        for attempt in range(1, self._max_poll_attempts + 1):
            response = await self._client.get(
                f"{self._base_url}/check/v4/{call_id}", headers=self._headers()
            )
            if response.status_code == 429:
                await asyncio.sleep(self._poll_interval)
                continue
            if response.status_code != 200:
                raise ProviderError(f"Banana API error {response.status_code}: {response.text[:200]}")

            result = response.json()
            status = result.get("status")
            outputs = _model_outputs(result)

            if status == "completed":
                image_url = outputs.get("image_url")
                if not image_url:
                    raise ProviderError("Banana finished but returned no image URL")
                self._complete(job_id, image_url)
                return

            if status == "failed":
                raise ProviderError(result.get("message") or "Generation failed")

            self._advance(
                job_id,
                progress=min(90, 10 + attempt * 2),
                eta=result.get("eta"),
                preview_url=self._new_preview(job_id, outputs.get("preview_url")),
            )
            await asyncio.sleep(self._poll_interval)

        raise ProviderError("Generation timeout")

    def _new_preview(self, job_id: str, preview_url: Optional[str]) -> Optional[str]:
        """Only append a provider preview the job does not already show."""
        if not preview_url:
            return None
        job = self._store.get(job_id)
        if job is None or (job.preview_urls and job.preview_urls[-1] == preview_url):
            return None
        return preview_url

    async def _image_to_base64(self, url: str) -> str:
        response = await self._client.get(url)
        response.raise_for_status()
        return base64.b64encode(response.content).decode("ascii")

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }


def _model_outputs(result: Dict[str, Any]) -> Dict[str, Any]:
    outputs = result.get("modelOutputs") or {}
    if isinstance(outputs, list):
        outputs = outputs[0] if outputs else {}
    return outputs


def _seed(params: GenerationParams) -> int:
    return params.seed if params.seed is not None else random.randrange(1_000_000)
