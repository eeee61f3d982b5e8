"""
Health Check Router
Service liveness plus the per-user persistence health report
"""
from datetime import datetime, timezone
from typing import Dict

from fastapi import APIRouter, Depends

from finsight.core.config import settings
from finsight.routers.deps import get_current_user_id, get_integrity_store
from finsight.utils.persistence import IntegrityStore

router = APIRouter()


@router.get("/health")
async def health_check():
    """
    Health check endpoint.
    Returns API status.
    """
    return {
        "status": "healthy",
        "service": settings.PROJECT_NAME,
        "store_backend": settings.STORE_BACKEND,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/data/health")
def data_health(
    user_id: str = Depends(get_current_user_id),
    integrity: IntegrityStore = Depends(get_integrity_store),
) -> Dict:
    """
    Report every data kind registered for the user: presence, size and backup count.
    """
    return integrity.health_check(user_id)
