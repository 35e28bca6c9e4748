"""Aggregate all API routers."""

from fastapi import APIRouter
from imagegen.api.v1.generation import router as generation_router
from imagegen.api.v1.health import router as health_router
from imagegen.api.v1.jobs import router as jobs_router
from imagegen.api.v1.models_api import router as models_router

api_router = APIRouter(prefix="/api")
api_router.include_router(generation_router, tags=["generation"])
api_router.include_router(jobs_router, tags=["jobs"])
api_router.include_router(models_router, tags=["models"])

# GET /health at root
health_root_router = APIRouter()
health_root_router.include_router(health_router, tags=["health"])
