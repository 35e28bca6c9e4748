"""Temporary storage for rendered images with auto-cleanup."""

import os
import shutil
import tempfile
import time
from typing import Optional

from PIL import Image


class TempResultStore:
    """Manages per-job output files (previews, finals) with TTL-based cleanup."""

    def __init__(
        self,
        base_dir: Optional[str] = None,
        ttl_hours: int = 24,
        url_prefix: str = "/api/outputs",
    ):
        if base_dir:
            self._base_dir = base_dir
        else:
            self._base_dir = os.path.join(tempfile.gettempdir(), "imagegen_results")
        os.makedirs(self._base_dir, exist_ok=True)
        self._ttl_seconds = ttl_hours * 3600
        self._url_prefix = url_prefix.rstrip("/")

    @property
    def base_dir(self) -> str:
        return self._base_dir

    def get_job_dir(self, job_id: str) -> str:
        """Get or create directory for a job's output files."""
        job_dir = self._resolve(job_id)
        os.makedirs(job_dir, exist_ok=True)
        return job_dir

    def get_output_path(self, job_id: str, filename: str) -> str:
        """Get full path for a specific output file."""
        path = self._resolve(job_id, filename)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        return path

    def file_exists(self, job_id: str, filename: str) -> bool:
        try:
            path = self._resolve(job_id, filename)
        except ValueError:
            return False
        return os.path.isfile(path)

    def _resolve(self, job_id: str, *filename: str) -> str:
        """Path for a job dir or one flat file in it; never outside the base dir."""
        parts = (job_id,) + filename
        for part in parts:
            if part in ("", ".", "..") or os.path.basename(part) != part:
                raise ValueError(f"Invalid output path component: {part!r}")
        base = os.path.realpath(self._base_dir)
        path = os.path.realpath(os.path.join(base, *parts))
        if path == base or os.path.commonpath([base, path]) != base:
            raise ValueError(f"Output path escapes results dir: {path}")
        return path

    def url_for(self, job_id: str, filename: str) -> str:
        return f"{self._url_prefix}/{job_id}/{filename}"

    def save_image(self, job_id: str, filename: str, image: Image.Image) -> str:
        """Write ``image`` as PNG into the job dir and return its public URL."""
        image.save(self.get_output_path(job_id, filename), format="PNG")
        return self.url_for(job_id, filename)

    def save_bytes(self, job_id: str, filename: str, data: bytes) -> str:
        with open(self.get_output_path(job_id, filename), "wb") as dst:
            dst.write(data)
        return self.url_for(job_id, filename)

    def cleanup_expired(self) -> int:
        """Remove job directories older than TTL. Returns count of removed dirs."""
        now = time.time()
        removed = 0
        if not os.path.exists(self._base_dir):
            return 0
        for entry in os.listdir(self._base_dir):
            job_dir = os.path.join(self._base_dir, entry)
            if not os.path.isdir(job_dir):
                continue
            mtime = os.path.getmtime(job_dir)
            if now - mtime > self._ttl_seconds:
                shutil.rmtree(job_dir, ignore_errors=True)
                removed += 1
        return removed
