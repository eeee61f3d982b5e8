"""
Settings Router
Per-user notification preferences: alert toggles, quiet hours and retention
"""
import logging
from typing import Dict

from fastapi import APIRouter, Depends, HTTPException

from finsight.models.notification import NotificationSettings
from finsight.routers.deps import get_current_user_id, get_notification_engine
from finsight.utils.notifications import NotificationEngine

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get("/notifications", response_model=NotificationSettings)
def get_notification_settings(
    user_id: str = Depends(get_current_user_id),
    engine: NotificationEngine = Depends(get_notification_engine),
):
    """
    Current preferences; defaults are created and saved on first access.
    """
    return engine.get_settings(user_id)


@router.put("/notifications")
def update_notification_settings(
    update: NotificationSettings,
    user_id: str = Depends(get_current_user_id),
    engine: NotificationEngine = Depends(get_notification_engine),
) -> Dict:
    """
    Replace the user's preferences wholesale. user_id in the body is ignored.
    """
    if not engine.save_settings(user_id, update):
        raise HTTPException(status_code=500, detail="Failed to save notification settings")

    logger.info(f"Updated notification settings for user {user_id}")
    return {
        "success": True,
        "message": "Notification settings updated successfully",
        "settings": engine.get_settings(user_id).model_dump(),
    }
