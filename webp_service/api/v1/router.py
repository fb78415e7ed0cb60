"""Aggregate all v1 API routers."""

from fastapi import APIRouter
from webp_service.api.v1.health import router as health_router
from webp_service.api.v1.jobs import router as jobs_router
from webp_service.api.v1.upload import router as upload_router

v1_router = APIRouter(prefix="/api/v1")
v1_router.include_router(jobs_router, tags=["jobs"])

# Compatibility shim: mounts /, /health and the /convert-* endpoints at root
upload_router_compat = APIRouter()
upload_router_compat.include_router(health_router, tags=["health"])
upload_router_compat.include_router(upload_router, tags=["convert"])
