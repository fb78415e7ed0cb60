"""Health check endpoints."""

from fastapi import APIRouter
from PIL import __version__ as pillow_version
from PIL import features
import platform
import sys

router = APIRouter()

API_VERSION = "1.0.0"


@router.get("/")
async def root():
    return {
        "status": "ok",
        "message": "PNG to WebP Conversion API",
        "version": API_VERSION,
    }


@router.get("/health")
async def health_check():
    """Service health, codec support, and system info."""
    return {
        "status": "healthy",
        "webp_supported": features.check("webp"),
        "pillow_version": pillow_version,
        "python_version": sys.version,
        "platform": platform.platform(),
    }
