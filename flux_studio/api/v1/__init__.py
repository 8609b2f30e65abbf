"""
API v1 Router Module

All v1 endpoints are prefixed with /api/v1/
"""

from fastapi import APIRouter

from flux_studio.api.v1.batches import router as batches_router
from flux_studio.api.v1.gallery import router as gallery_router
from flux_studio.api.v1.prompts import router as prompts_router
from flux_studio.api.v1.settings import router as settings_router
from flux_studio.api.v1.metrics import router as metrics_router

# Main v1 router
api_v1_router = APIRouter(prefix="/api/v1")

api_v1_router.include_router(batches_router, prefix="/batches", tags=["batches"])
api_v1_router.include_router(gallery_router, prefix="/gallery", tags=["gallery"])
api_v1_router.include_router(prompts_router, prefix="/prompts", tags=["prompts"])
api_v1_router.include_router(settings_router, prefix="/settings", tags=["settings"])
api_v1_router.include_router(metrics_router, tags=["metrics"])
