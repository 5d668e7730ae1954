from datetime import datetime, timezone

from fastapi import APIRouter, HTTPException

from chatrelay.core.config import settings
from chatrelay.database import check_database_health
from chatrelay.websockets.connection_manager import manager

router = APIRouter(tags=["Health"])


@router.get("/health")
async def health_check():
    """Application health check endpoint"""
    db_health = await check_database_health()

    return {
        "status": "healthy" if db_health["overall"] else "unhealthy",
        "timestamp": datetime.now(timezone.utc),
        "store": {
            "backend": db_health["backend"],
            "status": "connected" if db_health["overall"] else "disconnected"
        },
        "live_connections": manager.get_connection_count(),
        "service": settings.app_name
    }


@router.get("/health/ready")
async def readiness_check():
    """Kubernetes readiness probe endpoint"""
    db_health = await check_database_health()

    if not db_health["overall"]:
        raise HTTPException(
            status_code=503,
            detail="Service not ready - session store unavailable"
        )

    return {"status": "ready"}


@router.get("/health/live")
async def liveness_check():
    """Kubernetes liveness probe endpoint"""
    return {"status": "alive", "timestamp": datetime.now(timezone.utc)}
