import re
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from finsight.core.config import settings
from finsight.models.history import TopCategory

NotificationType = Literal["success", "warning", "error", "info"]
NotificationPriority = Literal["low", "medium", "high"]
NotificationCategory = Literal["budget", "spending", "savings", "income", "system", "historical"]

_HHMM = re.compile(r"^([01]\d|2[0-3]):[0-5]\d$")


class NotificationMetadata(BaseModel):
    budget_usage_percent: Optional[float] = None
    savings_rate: Optional[float] = None
    category: Optional[str] = None
    amount: Optional[float] = None
    month: Optional[str] = None
    year: Optional[int] = None


class NotificationAction(BaseModel):
    label: str
    action_type: str
    action_data: Optional[Any] = None


class NotificationDraft(BaseModel):
    """A notification before the engine assigns id, created_at and user_id."""

    type: NotificationType
    title: str
    message: str
    icon: str = "FiInfo"  # icon name, resolved by the UI
    read: bool = False
    priority: NotificationPriority = "medium"
    category: NotificationCategory
    expires_at: Optional[int] = None
    metadata: Optional[NotificationMetadata] = None
    action: Optional[NotificationAction] = None


class PersistentNotification(NotificationDraft):
    id: str
    created_at: int
    user_id: str


class QuietHours(BaseModel):
    enabled: bool = False
    start: str = "22:00"
    end: str = "08:00"

    @field_validator("start", "end")
    @classmethod
    def _valid_clock_time(cls, value: str) -> str:
        if not _HHMM.match(value):
            raise ValueError("must be a 24h time formatted as HH:MM")
        return value


class NotificationSettings(BaseModel):
    user_id: str = ""
    enabled: bool = True
    budget_alerts: bool = True
    spending_alerts: bool = True
    savings_alerts: bool = True
    income_alerts: bool = True
    historical_insights: bool = True
    quiet_hours: QuietHours = Field(default_factory=QuietHours)
    retention_days: int = Field(default_factory=lambda: settings.NOTIFICATION_RETENTION_DAYS, ge=1)
    max_notifications: int = Field(default_factory=lambda: settings.MAX_NOTIFICATIONS, ge=1)


# Inputs to the rule generators

class BudgetMetrics(BaseModel):
    monthly_budget: float
    total_expenses: float
    budget_usage_percent: float
    month: str
    year: int


class SpendingMetrics(BaseModel):
    total_expenses: float = 0
    daily_average: float = 0
    unusual_transactions: int = 0
    top_categories: List[TopCategory] = Field(default_factory=list)
    month: str
    year: int


class SavingsMetrics(BaseModel):
    total_income: float = 0
    net_balance: float = 0
    savings_rate: float
    month: str
    year: int


class HistoricalInsights(BaseModel):
    month: str
    year: int
    budget_adherence_change: float = 0
    savings_trend: str = "stable"
    spending_trend: str = "stable"
    insights: List[str] = Field(default_factory=list)
