"""FastAPI dependencies resolving the process-scoped services from app state."""

from fastapi import Request

from imagegen.jobs.store import JobStore
from imagegen.models.registry import ModelRegistry
from imagegen.storage.temp_results import TempResultStore


def get_store(request: Request) -> JobStore:
    return request.app.state.store


def get_registry(request: Request) -> ModelRegistry:
    return request.app.state.registry


def get_results(request: Request) -> TempResultStore:
    return request.app.state.results
