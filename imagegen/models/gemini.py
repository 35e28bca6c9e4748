"""Google Gemini image adapter.

Processing flow:
    1. Build a text prompt (plus inline source image and mask for edits).
    2. Call ``models/{model}:generateContent`` once.
    3. Decode the first inline image part of the response.
    4. Store it in the result store and complete the job with its URL.

Gemini does not stream intermediate renders, so jobs go straight from
processing to completed without previews.
"""

import base64
import logging
import mimetypes
from typing import Any, Dict, List, Optional, Tuple

import httpx

from imagegen.errors import ProviderError
from imagegen.jobs.models import EditParams, GenerationParams
from imagegen.jobs.store import JobStore
from imagegen.models.base import ModelAdapter
from imagegen.storage.temp_results import TempResultStore

logger = logging.getLogger(__name__)

GEMINI_MODEL_ID = "gemini-pro-vision"
GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"

_EXTENSIONS = {"image/png": ".png", "image/jpeg": ".jpg", "image/webp": ".webp"}


class GeminiAdapter(ModelAdapter):
    model_id = GEMINI_MODEL_ID

    def __init__(
        self,
        store: JobStore,
        results: TempResultStore,
        api_key: str,
        model: str = "gemini-2.0-flash-preview-image-generation",
        base_url: str = GEMINI_BASE_URL,
        client: Optional[httpx.AsyncClient] = None,
    ):
        super().__init__(store)
        if not api_key:
            logger.warning("GEMINI_API_KEY not set. Gemini adapter will not work.")
        self._results = results
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=120.0)

    def build_generation_prompt(self, params: GenerationParams) -> str:
        lines = [
            f"Generate a high-quality image based on this prompt: {params.prompt}",
            "",
            f"Style: {params.mode}",
            f"Aspect Ratio: {params.aspect_ratio}",
        ]
        if params.negative_prompt:
            lines.append(f"Avoid: {params.negative_prompt}")
        lines += [
            "",
            "Requirements:",
            "- High resolution and detailed",
            "- Professional quality",
            "- Photorealistic unless specified otherwise",
            "- No text or watermarks in the image",
        ]
        return "\n".join(lines)

    def build_editing_prompt(self, params: EditParams) -> str:
        lines = [
            f"Edit the provided image according to this prompt: {params.prompt}",
            "",
            "Editing instructions:",
            "- Apply changes only to the masked areas (the second image is the mask)",
            "- Maintain consistency with the original image",
            "- Blend changes naturally",
            "- Preserve image quality",
        ]
        if params.negative_prompt:
            lines += ["", f"Avoid: {params.negative_prompt}"]
        return "\n".join(lines)

    async def _run_generation(self, job_id: str, params: GenerationParams) -> None:
        self._advance(job_id, progress=10)
        parts = [{"text": self.build_generation_prompt(params)}]
        response = await self._generate_content(parts, params.seed)
        self._advance(job_id, progress=90)
        self._complete(job_id, self._store_image(job_id, response))

    async def _run_edit(self, job_id: str, params: EditParams) -> None:
        self._advance(job_id, progress=15)
        image = await self._fetch_inline(params.image_url)
        mask = await self._fetch_inline(params.mask_url)
        self._advance(job_id, progress=35)
        parts = [{"text": self.build_editing_prompt(params)}, image, mask]
        response = await self._generate_content(parts, params.seed)
        self._advance(job_id, progress=90)
        self._complete(job_id, self._store_image(job_id, response))

    async def aclose(self) -> None:
        await super().aclose()
        if self._owns_client:
            await self._client.aclose()

    async def _generate_content(self, parts: List[Dict[str, Any]], seed: Optional[int]) -> Dict[str, Any]:
        generation_config: Dict[str, Any] = {"responseModalities": ["TEXT", "IMAGE"]}
        if seed is not None:
            generation_config["seed"] = seed
        payload = {
            "contents": [{"parts": parts}],
            "generationConfig": generation_config,
        }
        response = await self._client.post(
            f"{self._base_url}/models/{self._model}:generateContent",
            params={"key": self._api_key},
            json=payload,
        )
        if response.status_code != 200:
            raise ProviderError(
                f"Gemini API error {response.status_code}: {response.text[:200]}"
            )
        return response.json()

    async def _fetch_inline(self, url: str) -> Dict[str, Any]:
        response = await self._client.get(url)
        response.raise_for_status()
        mime_type = response.headers.get("content-type", "").split(";")[0].strip()
        if not mime_type.startswith("image/"):
            mime_type = mimetypes.guess_type(url)[0] or "image/png"
        return {
            "inline_data": {
                "mime_type": mime_type,
                "data": base64.b64encode(response.content).decode("ascii"),
            }
        }

    def _store_image(self, job_id: str, response: Dict[str, Any]) -> str:
        data, mime_type = _first_inline_image(response)
        extension = _EXTENSIONS.get(mime_type) or mimetypes.guess_extension(mime_type) or ".png"
        return self._results.save_bytes(job_id, f"final{extension}", data)


def _first_inline_image(response: Dict[str, Any]) -> Tuple[bytes, str]:
    """Return (bytes, mime type) of the first image part in a generateContent response."""
    for candidate in response.get("candidates") or []:
        for part in (candidate.get("content") or {}).get("parts") or []:
            inline = part.get("inlineData") or part.get("inline_data")
            if inline and str(inline.get("mimeType", inline.get("mime_type", ""))).startswith("image/"):
                mime_type = inline.get("mimeType") or inline.get("mime_type")
                return base64.b64decode(inline["data"]), mime_type
    feedback = response.get("promptFeedback", {}).get("blockReason")
    if feedback:
        raise ProviderError(f"Gemini blocked the prompt: {feedback}")
    raise ProviderError("Gemini response contained no image")
