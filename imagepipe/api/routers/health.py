from fastapi import APIRouter
from typing import Dict, Any
from datetime import datetime, timezone

from imagepipe import __version__

router = APIRouter()


@router.get("/")
async def health_check() -> Dict[str, Any]:
    """Basic health check endpoint"""
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "service": "imagepipe API",
        "version": __version__,
    }


@router.get("/live")
async def liveness_check() -> Dict[str, str]:
    """Liveness probe endpoint"""
    return {"status": "alive"}
