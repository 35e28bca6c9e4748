import asyncio
import time

import pytest

from imagegen.config import Settings
from imagegen.jobs.models import EditParams, GenerationParams
from imagegen.jobs.store import JobStore
from imagegen.models.local_mock import LocalMockAdapter
from imagegen.storage.temp_results import TempResultStore

FAST_DELAYS = [0.01, 0.01, 0.01]
# Final stage long enough that a test can always cancel before it fires
SLOW_FINAL_DELAYS = [0.01, 0.01, 5.0]


def make_settings(tmp_path, **overrides) -> Settings:
    values = dict(
        _env_file=None,
        environment="development",
        gemini_api_key=None,
        banana_api_key=None,
        results_dir=str(tmp_path / "results"),
        local_stage_delays=FAST_DELAYS,
        client_poll_interval_seconds=0.01,
        log_level="DEBUG",
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
def results(tmp_path):
    return TempResultStore(base_dir=str(tmp_path / "results"))


@pytest.fixture
def store():
    return JobStore()


@pytest.fixture
def gen_params():
    return GenerationParams(prompt="a cat", mode="studio-portrait", size="512x512", seed=7)


@pytest.fixture
def edit_params():
    return EditParams(
        prompt="add a hat",
        mode="studio-portrait",
        size="512x512",
        image_url="https://files.example.com/source.png",
        mask_url="https://files.example.com/mask.png",
        seed=7,
    )


@pytest.fixture
async def local_adapter(store, results):
    adapter = LocalMockAdapter(store, results, stage_delays=FAST_DELAYS)
    yield adapter
    await adapter.aclose()


@pytest.fixture
async def slow_adapter(store, results):
    adapter = LocalMockAdapter(store, results, stage_delays=SLOW_FINAL_DELAYS)
    yield adapter
    await adapter.aclose()


@pytest.fixture
def wait_until():
    """Await until ``predicate()`` is truthy or fail after ``timeout`` seconds."""
    async def _wait(predicate, timeout: float = 5.0, interval: float = 0.005):
        deadline = time.monotonic() + timeout
        while not predicate():
            if time.monotonic() > deadline:
                raise AssertionError("condition not met before timeout")
            await asyncio.sleep(interval)
    return _wait
