"""
Data Router
Export, import and incremental sync of a user's persisted data kinds
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from finsight.routers.deps import get_current_user_id, get_integrity_store
from finsight.utils.persistence import IntegrityStore

router = APIRouter()
logger = logging.getLogger(__name__)


class ImportPayload(BaseModel):
    userId: str = ""
    exportDate: str = ""
    version: str = ""
    data: Dict[str, Any] = Field(default_factory=dict)


@router.get("/export")
def export_data(
    user_id: str = Depends(get_current_user_id),
    integrity: IntegrityStore = Depends(get_integrity_store),
) -> Dict:
    return integrity.export_user_data(user_id)


@router.post("/import")
def import_data(
    payload: ImportPayload,
    user_id: str = Depends(get_current_user_id),
    integrity: IntegrityStore = Depends(get_integrity_store),
) -> Dict:
    """
    Replay an export into the current user's store. Arrays go through the list
    path, everything else through the scalar path.
    """
    if payload.userId and payload.userId != user_id:
        logger.info(f"Importing data exported by {payload.userId} into user {user_id}")

    if not integrity.import_user_data(user_id, payload.model_dump()):
        raise HTTPException(status_code=500, detail="Failed to import user data")

    return {
        "success": True,
        "message": "User data imported successfully",
        "imported": sorted(payload.data.keys()),
    }


@router.get("/sync/{kind}")
def sync_data(
    kind: str,
    since: int = Query(0, ge=0, description="Epoch milliseconds of the caller's last sync"),
    user_id: str = Depends(get_current_user_id),
    integrity: IntegrityStore = Depends(get_integrity_store),
) -> Dict:
    result = integrity.sync(user_id, kind, since)
    if result is None:
        return {"kind": kind, "changed": False}
    return {"kind": kind, "changed": True, **result}
