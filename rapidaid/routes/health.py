"""
Health check endpoints.
Used for monitoring, deployment readiness checks, and basic connectivity tests.
"""

from fastapi import APIRouter, Depends, HTTPException
from datetime import datetime, timezone

from rapidaid.core.settings import settings
from rapidaid.services.alert_service import AlertService, get_alert_service


router = APIRouter(prefix="/health", tags=["Health"])


@router.get("")
async def health_check():
    """
    Basic health check endpoint.
    Returns 200 if service is running.
    """
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@router.get("/db")
async def database_health(service: AlertService = Depends(get_alert_service)):
    """
    Store connectivity check.
    Lists facilities, which touches the backing store without writing.
    """
    try:
        facilities = await service.facility_directory.list_all()
    except Exception as e:
        raise HTTPException(
            status_code=503,
            detail=f"Database connection failed: {str(e)}"
        )
    
    return {
        "status": "healthy",
        "database": "memory" if settings.USE_MOCK_DB else "firestore",
        "connected": True,
        "facilities_count": len(facilities),
        "timestamp": datetime.now(timezone.utc).isoformat()
    }
