"""
Shared router dependencies.
Identity comes from the upstream auth gateway, which forwards the verified
user id in the X-User-Id header; this service does no authentication itself.
"""
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from finsight.db.backend import get_store
from finsight.db.store import KeyValueStore
from finsight.utils.history import HistoricalArchive
from finsight.utils.notifications import NotificationEngine
from finsight.utils.persistence import IntegrityStore


def get_current_user_id(x_user_id: Optional[str] = Header(None)) -> str:
    """Extract the verified user id forwarded by the gateway"""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User identity required")
    return x_user_id.strip()


def get_integrity_store(store: KeyValueStore = Depends(get_store)) -> IntegrityStore:
    return IntegrityStore(store)


def get_archive(integrity: IntegrityStore = Depends(get_integrity_store)) -> HistoricalArchive:
    return HistoricalArchive(integrity)


def get_notification_engine(store: KeyValueStore = Depends(get_store)) -> NotificationEngine:
    return NotificationEngine(store)
