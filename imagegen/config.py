"""Application configuration via environment variables."""

from pydantic_settings import BaseSettings
from typing import List, Optional


class Settings(BaseSettings):
    # Deployment
    environment: str = "development"  # "production" switches the default model
    port: int = 8000
    log_level: str = "INFO"

    # Gemini (adapter registered only when the key is present)
    gemini_api_key: Optional[str] = None
    gemini_model: str = "gemini-2.0-flash-preview-image-generation"

    # Banana (adapter registered only when the key is present)
    banana_api_key: Optional[str] = None
    banana_model_key: str = "stable-diffusion-xl"
    banana_poll_interval_seconds: float = 5.0
    banana_max_poll_attempts: int = 60

    # Job store housekeeping
    job_retention_hours: int = 24
    job_cleanup_interval_minutes: int = 60

    # Rendered output storage
    results_dir: Optional[str] = None

    # Local adapter stage delays in seconds (preview, preview, final)
    local_stage_delays: List[float] = [2.0, 3.0, 3.0]

    # Client-side job manager
    client_poll_interval_seconds: float = 2.0
    api_base_url: str = "http://localhost:8000/api"

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"


settings = Settings()
