"""
Notifications Router
Persistent budget, spending, savings and historical notifications
"""
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel

from finsight.models.notification import (
    BudgetMetrics,
    HistoricalInsights,
    PersistentNotification,
    SavingsMetrics,
    SpendingMetrics,
)
from finsight.routers.deps import get_current_user_id, get_notification_engine
from finsight.utils.notifications import NotificationEngine

router = APIRouter()


class EvaluationRequest(BaseModel):
    budget: Optional[BudgetMetrics] = None
    spending: Optional[SpendingMetrics] = None
    savings: Optional[SavingsMetrics] = None
    historical: Optional[HistoricalInsights] = None


@router.get("/", response_model=List[PersistentNotification], response_model_exclude_none=True)
def list_notifications(
    user_id: str = Depends(get_current_user_id),
    engine: NotificationEngine = Depends(get_notification_engine),
):
    return engine.get_notifications(user_id)


@router.delete("/", status_code=status.HTTP_204_NO_CONTENT)
def clear_notifications(
    user_id: str = Depends(get_current_user_id),
    engine: NotificationEngine = Depends(get_notification_engine),
):
    if not engine.clear_all_notifications(user_id):
        raise HTTPException(status_code=500, detail="Failed to clear notifications")
    return None


@router.get("/unread-count")
def unread_count(
    user_id: str = Depends(get_current_user_id),
    engine: NotificationEngine = Depends(get_notification_engine),
) -> Dict:
    return {"unread": engine.get_unread_count(user_id)}


@router.get("/should-show")
def should_show(
    user_id: str = Depends(get_current_user_id),
    engine: NotificationEngine = Depends(get_notification_engine),
) -> Dict:
    """
    False while notifications are disabled or the user is inside quiet hours.
    """
    return {"show": engine.should_show_notifications(user_id)}


@router.post("/evaluate")
def evaluate(
    request: EvaluationRequest,
    user_id: str = Depends(get_current_user_id),
    engine: NotificationEngine = Depends(get_notification_engine),
) -> Dict:
    """
    Run the notification rules over the current period's metrics and insights.
    """
    created = engine.evaluate(
        user_id,
        budget=request.budget,
        spending=request.spending,
        savings=request.savings,
        historical=request.historical,
    )
    return {"created": created, "count": len(created)}


@router.post("/read-all")
def read_all(
    user_id: str = Depends(get_current_user_id),
    engine: NotificationEngine = Depends(get_notification_engine),
) -> Dict:
    if not engine.mark_all_as_read(user_id):
        raise HTTPException(status_code=500, detail="Failed to update notifications")
    return {"success": True}


@router.post("/cleanup")
def cleanup(
    user_id: str = Depends(get_current_user_id),
    engine: NotificationEngine = Depends(get_notification_engine),
) -> Dict:
    if not engine.cleanup_old_notifications(user_id):
        raise HTTPException(status_code=500, detail="Failed to clean up notifications")
    return {"success": True}


@router.post("/{notification_id}/read")
def read_one(
    notification_id: str,
    user_id: str = Depends(get_current_user_id),
    engine: NotificationEngine = Depends(get_notification_engine),
) -> Dict:
    if not engine.mark_as_read(user_id, notification_id):
        raise HTTPException(status_code=500, detail="Failed to update notification")
    return {"success": True}


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_one(
    notification_id: str,
    user_id: str = Depends(get_current_user_id),
    engine: NotificationEngine = Depends(get_notification_engine),
):
    if not engine.delete_notification(user_id, notification_id):
        raise HTTPException(status_code=500, detail="Failed to delete notification")
    return None
