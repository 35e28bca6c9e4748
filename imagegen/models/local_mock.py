"""Local generator that renders placeholder images on a fixed schedule.

Always registered, so the service can serve every mode with no provider
credentials configured.
"""

import asyncio
import random
from typing import Optional, Sequence

from imagegen.jobs.models import EditParams, GenerationParams
from imagegen.jobs.store import JobStore
from imagegen.models.base import ModelAdapter
from imagegen.processing.placeholder import render_placeholder
from imagegen.storage.temp_results import TempResultStore

LOCAL_MODEL_ID = "local-mock"

# Final renders never exceed this edge length
MAX_EDGE = 1024

_MODE_STYLES = {
    "studio-portrait": "studio lighting",
    "cartoonize": "cartoon style",
    "add-girlfriend": "natural lighting",
}


class LocalMockAdapter(ModelAdapter):
    """Simulated provider. Generation emits two previews, editing one."""

    model_id = LOCAL_MODEL_ID

    def __init__(
        self,
        store: JobStore,
        results: TempResultStore,
        stage_delays: Sequence[float] = (2.0, 3.0, 3.0),
    ):
        super().__init__(store)
        if len(stage_delays) != 3:
            raise ValueError("stage_delays needs exactly three entries")
        self._results = results
        self._delays = list(stage_delays)

    def build_generation_prompt(self, params: GenerationParams) -> str:
        style = _MODE_STYLES.get(params.mode)
        return f"{params.prompt}, {style}" if style else params.prompt

    def build_editing_prompt(self, params: EditParams) -> str:
        return f"{params.prompt} (edit)"

    async def _run_generation(self, job_id: str, params: GenerationParams) -> None:
        width, height = _clamp(*params.dimensions())
        seed = params.seed if params.seed is not None else random.randrange(2**32)
        caption = _caption(self.build_generation_prompt(params))

        self._advance(job_id, progress=10, eta=30)

        await asyncio.sleep(self._delays[0])
        url = await self._render(job_id, "preview_low.png", width // 4, height // 4, "Low-res preview", seed)
        self._advance(job_id, progress=40, eta=20, preview_url=url)

        await asyncio.sleep(self._delays[1])
        url = await self._render(job_id, "preview_mid.png", width // 2, height // 2, "Mid-res preview", seed)
        self._advance(job_id, progress=70, eta=10, preview_url=url)

        await asyncio.sleep(self._delays[2])
        url = await self._render(job_id, "final.png", width, height, caption, seed)
        self._complete(job_id, url)

    async def _run_edit(self, job_id: str, params: EditParams) -> None:
        width, height = _clamp(*params.dimensions())
        seed = params.seed if params.seed is not None else random.randrange(2**32)
        caption = _caption(self.build_editing_prompt(params))

        self._advance(job_id, progress=15, eta=25)

        await asyncio.sleep(self._delays[0])
        url = await self._render(job_id, "preview_mid.png", width // 2, height // 2, "Edit preview", seed)
        self._advance(job_id, progress=60, eta=10, preview_url=url)

        await asyncio.sleep(self._delays[1] + self._delays[2])
        url = await self._render(job_id, "final.png", width, height, caption, seed)
        self._complete(job_id, url)

    async def _render(
        self,
        job_id: str,
        filename: str,
        width: int,
        height: int,
        text: str,
        seed: Optional[int],
    ) -> str:
        # Pillow work runs in a thread so the event loop keeps serving polls
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, self._render_sync, job_id, filename, width, height, text, seed
        )

    def _render_sync(self, job_id, filename, width, height, text, seed) -> str:
        image = render_placeholder(max(1, width), max(1, height), text, seed)
        return self._results.save_image(job_id, filename, image)


def _clamp(width: int, height: int):
    scale = min(1.0, MAX_EDGE / max(width, height))
    return max(1, int(width * scale)), max(1, int(height * scale))


def _caption(prompt: str, limit: int = 40) -> str:
    return prompt if len(prompt) <= limit else prompt[: limit - 3] + "..."
