"""
Notification Engine
Threshold rules over current metrics and historical insights, producing
persistent notifications subject to retention, expiry, a per-user cap and
quiet hours.
"""
import json
import logging
import random
import string
from datetime import datetime
from typing import List, Optional

from pydantic import ValidationError

from finsight.core.config import settings
from finsight.db.store import KeyValueStore, StorageError
from finsight.models.notification import (
    BudgetMetrics,
    HistoricalInsights,
    NotificationDraft,
    NotificationMetadata,
    NotificationSettings,
    PersistentNotification,
    SavingsMetrics,
    SpendingMetrics,
)
from finsight.utils.timeutils import DAY_MS, Clock, now_ms

logger = logging.getLogger(__name__)


def notifications_key(user_id: str) -> str:
    return f"notifications:{user_id}"


def settings_key(user_id: str) -> str:
    return f"notification_settings:{user_id}"


def _to_minutes(clock_time: str) -> int:
    hours, minutes = clock_time.split(":")
    return int(hours) * 60 + int(minutes)


def _random_suffix(length: int = 9) -> str:
    return "".join(random.choices(string.ascii_lowercase + string.digits, k=length))


class NotificationEngine:
    def __init__(self, store: KeyValueStore, clock: Clock = now_ms) -> None:
        self._store = store
        self._clock = clock
        self._currency = settings.CURRENCY_SYMBOL

    # Settings

    def _default_settings(self, user_id: str) -> NotificationSettings:
        return NotificationSettings(user_id=user_id)

    def get_settings(self, user_id: str) -> NotificationSettings:
        """Per-user settings, created with defaults and persisted on first read."""
        try:
            raw = self._store.get(settings_key(user_id))
            if raw is None:
                defaults = self._default_settings(user_id)
                self.save_settings(user_id, defaults)
                return defaults
            return NotificationSettings.model_validate_json(raw)
        except (StorageError, ValidationError) as e:
            logger.error(f"Failed to get notification settings for user {user_id}: {e}")
            return self._default_settings(user_id)

    def save_settings(self, user_id: str, notification_settings: NotificationSettings) -> bool:
        try:
            data = notification_settings.model_copy(update={"user_id": user_id})
            self._store.set(settings_key(user_id), data.model_dump_json())
            return True
        except StorageError as e:
            logger.error(f"Failed to save notification settings for user {user_id}: {e}")
            return False

    # Storage

    def _load(self, user_id: str) -> List[PersistentNotification]:
        raw = self._store.get(notifications_key(user_id))
        if not raw:
            return []

        stored = json.loads(raw)
        if not isinstance(stored, list):
            return []

        notifications = []
        for item in stored:
            try:
                notifications.append(PersistentNotification.model_validate(item))
            except ValidationError:
                logger.warning(f"Dropping malformed notification for user {user_id}")
        return notifications

    def get_notifications(self, user_id: str) -> List[PersistentNotification]:
        """Unexpired notifications, newest first. Writes back only if something expired."""
        try:
            notifications = self._load(user_id)
            current = self._clock()
            valid = [n for n in notifications if n.expires_at is None or n.expires_at > current]

            if len(valid) != len(notifications):
                self.save_notifications(user_id, valid)
            return valid
        except (StorageError, ValueError) as e:
            logger.error(f"Failed to get notifications for user {user_id}: {e}")
            return []

    def save_notifications(self, user_id: str, notifications: List[PersistentNotification]) -> bool:
        """Apply the retention window and the count cap, then write the whole list."""
        try:
            prefs = self.get_settings(user_id)
            cutoff = self._clock() - prefs.retention_days * DAY_MS
            kept = [n for n in notifications if n.created_at > cutoff][:prefs.max_notifications]

            self._store.set(
                notifications_key(user_id),
                json.dumps([n.model_dump(exclude_none=True) for n in kept]),
            )
            return True
        except StorageError as e:
            logger.error(f"Failed to save notifications for user {user_id}: {e}")
            return False

    def add_notification(self, user_id: str, draft: NotificationDraft) -> str:
        """Prepend a new notification; returns its id, or "" when it could not be saved."""
        notifications = self.get_notifications(user_id)
        current = self._clock()
        notification = PersistentNotification(
            **draft.model_dump(),
            id=f"{draft.category}-{current}-{_random_suffix()}",
            created_at=current,
            user_id=user_id,
        )

        notifications.insert(0, notification)
        if not self.save_notifications(user_id, notifications):
            return ""
        return notification.id

    def mark_as_read(self, user_id: str, notification_id: str) -> bool:
        notifications = self.get_notifications(user_id)
        updated = [
            n.model_copy(update={"read": True}) if n.id == notification_id else n
            for n in notifications
        ]
        return self.save_notifications(user_id, updated)

    def mark_all_as_read(self, user_id: str) -> bool:
        notifications = self.get_notifications(user_id)
        return self.save_notifications(user_id, [n.model_copy(update={"read": True}) for n in notifications])

    def delete_notification(self, user_id: str, notification_id: str) -> bool:
        notifications = self.get_notifications(user_id)
        return self.save_notifications(user_id, [n for n in notifications if n.id != notification_id])

    def clear_all_notifications(self, user_id: str) -> bool:
        return self.save_notifications(user_id, [])

    def get_unread_count(self, user_id: str) -> int:
        return sum(1 for n in self.get_notifications(user_id) if not n.read)

    def cleanup_old_notifications(self, user_id: str) -> bool:
        notifications = self.get_notifications(user_id)
        cutoff = self._clock() - self.get_settings(user_id).retention_days * DAY_MS
        valid = [n for n in notifications if n.created_at > cutoff]
        if len(valid) != len(notifications):
            return self.save_notifications(user_id, valid)
        return True

    # Rule generators

    def generate_budget_notifications(self, user_id: str, data: BudgetMetrics) -> List[str]:
        prefs = self.get_settings(user_id)
        if not prefs.enabled or not prefs.budget_alerts:
            return []

        usage = data.budget_usage_percent
        metadata = NotificationMetadata(budget_usage_percent=usage, month=data.month, year=data.year)

        if usage > 100:
            overage = data.total_expenses - data.monthly_budget
            draft = NotificationDraft(
                type="error",
                title="Budget Exceeded",
                message=f"You've exceeded your monthly budget by {self._currency}{overage:,.2f}.",
                icon="FiAlertTriangle",
                priority="high",
                category="budget",
                metadata=metadata,
            )
        elif usage > 90:
            draft = NotificationDraft(
                type="warning",
                title="Budget Warning",
                message=f"You've used {usage:.1f}% of your monthly budget.",
                icon="FiShield",
                priority="high",
                category="budget",
                metadata=metadata,
            )
        elif usage > 80:
            draft = NotificationDraft(
                type="warning",
                title="Budget Alert",
                message=f"You're approaching your budget limit at {usage:.1f}% usage.",
                icon="FiShield",
                priority="medium",
                category="budget",
                metadata=metadata,
            )
        else:
            return []

        return self._emit(user_id, [draft])

    def generate_spending_notifications(self, user_id: str, data: SpendingMetrics) -> List[str]:
        prefs = self.get_settings(user_id)
        if not prefs.enabled or not prefs.spending_alerts:
            return []

        drafts = []
        if data.unusual_transactions > 0:
            drafts.append(NotificationDraft(
                type="info",
                title="Unusual Spending Detected",
                message=f"{data.unusual_transactions} transaction(s) are significantly higher than your average.",
                icon="FiInfo",
                priority="medium",
                category="spending",
                metadata=NotificationMetadata(month=data.month, year=data.year),
            ))

        if data.top_categories:
            top = max(data.top_categories, key=lambda item: item.amount)
            share = top.percentage
            if not share and data.total_expenses > 0:
                share = top.amount / data.total_expenses * 100
            if share > 40:
                drafts.append(NotificationDraft(
                    type="info",
                    title="Spending Insight",
                    message=f"{top.category} accounts for {share:.1f}% of your expenses.",
                    icon="FiTrendingDown",
                    priority="low",
                    category="spending",
                    metadata=NotificationMetadata(
                        category=top.category, amount=top.amount, month=data.month, year=data.year
                    ),
                ))

        return self._emit(user_id, drafts)

    def generate_savings_notifications(self, user_id: str, data: SavingsMetrics) -> List[str]:
        prefs = self.get_settings(user_id)
        if not prefs.enabled or not prefs.savings_alerts:
            return []

        rate = data.savings_rate
        metadata = NotificationMetadata(savings_rate=rate, month=data.month, year=data.year)
        if rate < 10:
            draft = NotificationDraft(
                type="warning",
                title="Low Savings Rate",
                message=f"Your savings rate is {rate:.1f}%. Consider increasing it to at least 20%.",
                icon="FiTarget",
                priority="medium",
                category="savings",
                metadata=metadata,
            )
        elif rate > 30:
            draft = NotificationDraft(
                type="success",
                title="Excellent Savings!",
                message=f"You're saving {rate:.1f}% of your income. Outstanding work!",
                icon="FiStar",
                priority="low",
                category="savings",
                metadata=metadata,
            )
        else:
            return []

        return self._emit(user_id, [draft])

    def generate_historical_notifications(self, user_id: str, data: HistoricalInsights) -> List[str]:
        prefs = self.get_settings(user_id)
        if not prefs.enabled or not prefs.historical_insights:
            return []

        metadata = NotificationMetadata(month=data.month, year=data.year)
        drafts = []
        if data.budget_adherence_change > 5:
            drafts.append(NotificationDraft(
                type="success",
                title="Budget Improvement",
                message=f"Your budget adherence improved by {data.budget_adherence_change:.1f}% this month!",
                icon="FiTrendingUp",
                priority="low",
                category="historical",
                metadata=metadata,
            ))
        if data.spending_trend == "decreasing":
            drafts.append(NotificationDraft(
                type="success",
                title="Spending Trend",
                message="Great news! Your spending is trending downward this month.",
                icon="FiTrendingDown",
                priority="low",
                category="historical",
                metadata=metadata,
            ))
        if data.savings_trend == "increasing":
            drafts.append(NotificationDraft(
                type="success",
                title="Savings Trend",
                message="Excellent! Your savings rate is trending upward this month.",
                icon="FiTrendingUp",
                priority="low",
                category="historical",
                metadata=metadata,
            ))

        return self._emit(user_id, drafts)

    def _emit(self, user_id: str, drafts: List[NotificationDraft]) -> List[str]:
        ids = []
        for draft in drafts:
            notification_id = self.add_notification(user_id, draft)
            if notification_id:
                ids.append(notification_id)
        return ids

    def evaluate(
        self,
        user_id: str,
        budget: Optional[BudgetMetrics] = None,
        spending: Optional[SpendingMetrics] = None,
        savings: Optional[SavingsMetrics] = None,
        historical: Optional[HistoricalInsights] = None,
    ) -> List[str]:
        """Run every generator that has input for one period; returns the new ids."""
        ids: List[str] = []
        if budget is not None:
            ids += self.generate_budget_notifications(user_id, budget)
        if spending is not None:
            ids += self.generate_spending_notifications(user_id, spending)
        if savings is not None:
            ids += self.generate_savings_notifications(user_id, savings)
        if historical is not None:
            ids += self.generate_historical_notifications(user_id, historical)
        return ids

    # Quiet hours

    def should_show_notifications(self, user_id: str, now: Optional[datetime] = None) -> bool:
        prefs = self.get_settings(user_id)
        if not prefs.enabled:
            return False
        if not prefs.quiet_hours.enabled:
            return True

        now = now or datetime.now()
        current = now.hour * 60 + now.minute
        start = _to_minutes(prefs.quiet_hours.start)
        end = _to_minutes(prefs.quiet_hours.end)

        if start > end:
            # Overnight window, e.g. 22:00-08:00
            return end < current < start
        return current < start or current > end
