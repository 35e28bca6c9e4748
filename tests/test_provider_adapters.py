import base64
import json

import httpx
import pytest

from imagegen.jobs.models import JobStatus
from imagegen.models.banana import BananaAdapter
from imagegen.models.gemini import GeminiAdapter

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake-image-data"


def gemini_image_response(data: bytes = PNG_BYTES, mime_type: str = "image/png") -> dict:
    return {
        "candidates": [{
            "content": {"parts": [
                {"text": "Here is your image"},
                {"inlineData": {"mimeType": mime_type, "data": base64.b64encode(data).decode()}},
            ]}
        }]
    }


def make_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


# ---------------------------------------------------------------------------
# Gemini
# ---------------------------------------------------------------------------

async def test_gemini_generation_stores_inline_image(store, results, gen_params, wait_until):
    requests = []

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(200, json=gemini_image_response())

    client = make_client(handler)
    adapter = GeminiAdapter(store, results, api_key="test-key", model="img-model", client=client)
    try:
        job = await adapter.generate(gen_params)
        assert job.model_id == "gemini-pro-vision"
        await wait_until(lambda: store.get(job.job_id).status.is_terminal)
    finally:
        await adapter.aclose()
        await client.aclose()

    done = store.get(job.job_id)
    assert done.status == JobStatus.COMPLETED
    assert done.progress == 100
    assert done.final_url == results.url_for(job.job_id, "final.png")
    with open(results.get_output_path(job.job_id, "final.png"), "rb") as f:
        assert f.read() == PNG_BYTES

    sent = requests[0]
    assert sent.url.path.endswith("/models/img-model:generateContent")
    assert sent.url.params["key"] == "test-key"
    body = json.loads(sent.content)
    assert "a cat" in body["contents"][0]["parts"][0]["text"]
    assert body["generationConfig"]["seed"] == 7


async def test_gemini_edit_sends_image_and_mask(store, results, edit_params, wait_until):
    generate_bodies = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "GET":
            return httpx.Response(200, content=b"source-bytes", headers={"content-type": "image/png"})
        generate_bodies.append(json.loads(request.content))
        return httpx.Response(200, json=gemini_image_response(mime_type="image/jpeg"))

    client = make_client(handler)
    adapter = GeminiAdapter(store, results, api_key="k", client=client)
    try:
        job = await adapter.edit(edit_params)
        await wait_until(lambda: store.get(job.job_id).status.is_terminal)
    finally:
        await adapter.aclose()
        await client.aclose()

    done = store.get(job.job_id)
    assert done.status == JobStatus.COMPLETED
    assert done.final_url.endswith("/final.jpg")
    parts = generate_bodies[0]["contents"][0]["parts"]
    assert len(parts) == 3
    assert parts[1]["inline_data"]["data"] == base64.b64encode(b"source-bytes").decode()


async def test_gemini_api_error_fails_job(store, results, gen_params, wait_until):
    client = make_client(lambda request: httpx.Response(500, text="backend unavailable"))
    adapter = GeminiAdapter(store, results, api_key="k", client=client)
    try:
        job = await adapter.generate(gen_params)
        await wait_until(lambda: store.get(job.job_id).status.is_terminal)
    finally:
        await adapter.aclose()
        await client.aclose()

    failed = store.get(job.job_id)
    assert failed.status == JobStatus.FAILED
    assert "Gemini API error 500" in failed.error
    assert failed.final_url is None


async def test_gemini_response_without_image_fails_job(store, results, gen_params, wait_until):
    client = make_client(lambda request: httpx.Response(200, json={"promptFeedback": {"blockReason": "SAFETY"}}))
    adapter = GeminiAdapter(store, results, api_key="k", client=client)
    try:
        job = await adapter.generate(gen_params)
        await wait_until(lambda: store.get(job.job_id).status.is_terminal)
    finally:
        await adapter.aclose()
        await client.aclose()

    assert store.get(job.job_id).error == "Gemini blocked the prompt: SAFETY"


# ---------------------------------------------------------------------------
# Banana
# ---------------------------------------------------------------------------

class BananaScript:
    """Serves /start/v4/ and then the scripted /check/v4/ responses in order."""

    def __init__(self, checks):
        self.checks = list(checks)
        self.start_bodies = []
        self.check_count = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == "/start/v4/":
            self.start_bodies.append(json.loads(request.content))
            return httpx.Response(200, json={"callID": "call-1"})
        if request.url.path == "/check/v4/call-1":
            self.check_count += 1
            body = self.checks.pop(0) if len(self.checks) > 1 else self.checks[0]
            return httpx.Response(200, json=body)
        if request.method == "GET":
            return httpx.Response(200, content=b"img")
        return httpx.Response(404)


async def run_banana(store, script, params, wait_until, method="generate", max_attempts=60):
    client = make_client(script)
    adapter = BananaAdapter(
        store, api_key="secret", poll_interval=0, max_poll_attempts=max_attempts, client=client,
    )
    try:
        job = await getattr(adapter, method)(params)
        await wait_until(lambda: store.get(job.job_id).status.is_terminal)
    finally:
        await adapter.aclose()
        await client.aclose()
    return store.get(job.job_id)


async def test_banana_polls_until_completed(store, gen_params, wait_until):
    script = BananaScript([
        {"status": "running"},
        {"status": "running", "modelOutputs": {"preview_url": "https://cdn/p1.png"}},
        {"status": "running", "modelOutputs": {"preview_url": "https://cdn/p1.png"}},
        {"status": "completed", "modelOutputs": [{"image_url": "https://cdn/final.png"}]},
    ])

    job = await run_banana(store, script, gen_params, wait_until)

    assert job.status == JobStatus.COMPLETED
    assert job.final_url == "https://cdn/final.png"
    assert job.preview_urls == ["https://cdn/p1.png"]
    assert job.progress == 100
    assert script.check_count == 4

    inputs = script.start_bodies[0]["modelInputs"]
    assert inputs["prompt"].startswith("a cat, highly detailed")
    assert "studio lighting" in inputs["prompt"]
    assert inputs["negative_prompt"] == "low quality, blurry, distorted"
    assert (inputs["width"], inputs["height"]) == (512, 512)
    assert inputs["seed"] == 7


async def test_banana_provider_failure(store, gen_params, wait_until):
    script = BananaScript([{"status": "failed", "message": "NSFW content detected"}])
    job = await run_banana(store, script, gen_params, wait_until)
    assert job.status == JobStatus.FAILED
    assert job.error == "NSFW content detected"


async def test_banana_times_out(store, gen_params, wait_until):
    script = BananaScript([{"status": "running"}])
    job = await run_banana(store, script, gen_params, wait_until, max_attempts=3)
    assert job.status == JobStatus.FAILED
    assert job.error == "Generation timeout"
    assert script.check_count == 3


async def test_banana_edit_uploads_source_and_mask(store, edit_params, wait_until):
    script = BananaScript([{"status": "completed", "modelOutputs": {"image_url": "https://cdn/e.png"}}])
    job = await run_banana(store, script, edit_params, wait_until, method="edit")

    assert job.status == JobStatus.COMPLETED
    inputs = script.start_bodies[0]["modelInputs"]
    assert inputs["image"] == base64.b64encode(b"img").decode()
    assert inputs["mask_image"] == base64.b64encode(b"img").decode()
    assert inputs["strength"] == 0.8


@pytest.mark.parametrize("start_status", [401, 503])
async def test_banana_start_error_fails_job(store, gen_params, wait_until, start_status):
    client = make_client(lambda request: httpx.Response(start_status, text="nope"))
    adapter = BananaAdapter(store, api_key="secret", client=client)
    try:
        job = await adapter.generate(gen_params)
        await wait_until(lambda: store.get(job.job_id).status.is_terminal)
    finally:
        await adapter.aclose()
        await client.aclose()

    assert store.get(job.job_id).error.startswith(f"Banana API error {start_status}")
