from datetime import datetime

import pytest

from finsight.models.history import TopCategory
from finsight.models.notification import (
    BudgetMetrics,
    HistoricalInsights,
    NotificationDraft,
    NotificationSettings,
    QuietHours,
    SavingsMetrics,
    SpendingMetrics,
)
from finsight.utils.notifications import notifications_key, settings_key
from finsight.utils.timeutils import DAY_MS


def _budget(usage, budget=1000.0):
    return BudgetMetrics(
        monthly_budget=budget,
        total_expenses=budget * usage / 100,
        budget_usage_percent=usage,
        month="June",
        year=2025,
    )


def _draft(title="Test", **kwargs):
    return NotificationDraft(type="info", title=title, message="hello", category="system", **kwargs)


@pytest.mark.parametrize("usage,title,kind,priority", [
    (120, "Budget Exceeded", "error", "high"),
    (94, "Budget Warning", "warning", "high"),
    (84, "Budget Alert", "warning", "medium"),
])
def test_budget_thresholds(engine, usage, title, kind, priority):
    ids = engine.generate_budget_notifications("u1", _budget(usage))
    assert len(ids) == 1

    notification = engine.get_notifications("u1")[0]
    assert notification.id == ids[0]
    assert notification.title == title
    assert notification.type == kind
    assert notification.priority == priority
    assert notification.category == "budget"
    assert notification.metadata.budget_usage_percent == usage


def test_budget_exceeded_message_shows_overage(engine):
    engine.generate_budget_notifications("u1", _budget(120))
    assert engine.get_notifications("u1")[0].message == "You've exceeded your monthly budget by ₱200.00."


def test_budget_within_limits_is_quiet(engine):
    assert engine.generate_budget_notifications("u1", _budget(50)) == []
    assert engine.get_notifications("u1") == []


@pytest.mark.parametrize("rate,title", [(5, "Low Savings Rate"), (40, "Excellent Savings!")])
def test_savings_thresholds(engine, rate, title):
    ids = engine.generate_savings_notifications(
        "u1", SavingsMetrics(savings_rate=rate, month="June", year=2025)
    )
    assert len(ids) == 1
    assert engine.get_notifications("u1")[0].title == title


def test_moderate_savings_is_quiet(engine):
    assert engine.generate_savings_notifications(
        "u1", SavingsMetrics(savings_rate=20, month="June", year=2025)
    ) == []


def test_spending_rules(engine):
    ids = engine.generate_spending_notifications("u1", SpendingMetrics(
        total_expenses=1000,
        unusual_transactions=2,
        top_categories=[
            TopCategory(category="Food", amount=200),
            TopCategory(category="Rent", amount=500),
        ],
        month="June",
        year=2025,
    ))
    assert len(ids) == 2

    titles = [n.title for n in engine.get_notifications("u1")]
    assert titles == ["Spending Insight", "Unusual Spending Detected"]
    insight = engine.get_notifications("u1")[0]
    assert insight.message == "Rent accounts for 50.0% of your expenses."
    assert insight.metadata.category == "Rent"


def test_historical_rules_fire_together(engine):
    ids = engine.generate_historical_notifications("u1", HistoricalInsights(
        month="June",
        year=2025,
        budget_adherence_change=8,
        spending_trend="decreasing",
        savings_trend="increasing",
    ))
    assert len(ids) == 3
    assert {n.title for n in engine.get_notifications("u1")} == {
        "Budget Improvement", "Spending Trend", "Savings Trend",
    }


def test_evaluate_runs_every_generator_with_input(engine):
    ids = engine.evaluate(
        "u1",
        budget=_budget(120),
        savings=SavingsMetrics(savings_rate=5, month="June", year=2025),
    )
    assert len(ids) == 2
    assert engine.get_unread_count("u1") == 2


def test_disabled_settings_suppress_everything(engine):
    engine.save_settings("u1", NotificationSettings(enabled=False))
    assert engine.generate_budget_notifications("u1", _budget(120)) == []
    assert engine.should_show_notifications("u1") is False


def test_category_toggle(engine):
    engine.save_settings("u1", NotificationSettings(budget_alerts=False))
    assert engine.generate_budget_notifications("u1", _budget(120)) == []
    assert engine.generate_savings_notifications(
        "u1", SavingsMetrics(savings_rate=5, month="June", year=2025)
    )


def test_settings_are_persisted_on_first_read(engine, store):
    prefs = engine.get_settings("u1")
    assert prefs.user_id == "u1"
    assert prefs.retention_days == 30
    assert prefs.max_notifications == 100
    assert store.get(settings_key("u1")) is not None


def test_cap_keeps_newest(engine):
    engine.save_settings("u1", NotificationSettings(max_notifications=3))
    for idx in range(5):
        engine.add_notification("u1", _draft(title=f"n{idx}"))

    assert [n.title for n in engine.get_notifications("u1")] == ["n4", "n3", "n2"]


def test_expired_notifications_are_filtered(engine, clock):
    engine.add_notification("u1", _draft(title="short", expires_at=clock.now + 1000))
    engine.add_notification("u1", _draft(title="forever"))

    clock.advance(2000)
    assert [n.title for n in engine.get_notifications("u1")] == ["forever"]


def test_retention_drops_old_notifications(engine, clock):
    engine.add_notification("u1", _draft(title="old"))
    clock.advance(31 * DAY_MS)
    engine.add_notification("u1", _draft(title="new"))

    assert [n.title for n in engine.get_notifications("u1")] == ["new"]


def test_cleanup_old_notifications(engine, clock):
    engine.add_notification("u1", _draft(title="old"))
    clock.advance(31 * DAY_MS)
    assert engine.cleanup_old_notifications("u1") is True
    assert engine.get_notifications("u1") == []


def test_read_and_delete(engine):
    first = engine.add_notification("u1", _draft(title="first"))
    second = engine.add_notification("u1", _draft(title="second"))
    assert first.startswith("system-")
    assert engine.get_unread_count("u1") == 2

    engine.mark_as_read("u1", first)
    assert engine.get_unread_count("u1") == 1

    engine.delete_notification("u1", second)
    assert [n.id for n in engine.get_notifications("u1")] == [first]

    engine.add_notification("u1", _draft(title="third"))
    engine.mark_all_as_read("u1")
    assert engine.get_unread_count("u1") == 0

    engine.clear_all_notifications("u1")
    assert engine.get_notifications("u1") == []


def test_overnight_quiet_hours(engine):
    engine.save_settings("u1", NotificationSettings(quiet_hours=QuietHours(enabled=True, start="22:00", end="08:00")))
    assert engine.should_show_notifications("u1", datetime(2025, 6, 15, 23, 0)) is False
    assert engine.should_show_notifications("u1", datetime(2025, 6, 15, 7, 30)) is False
    assert engine.should_show_notifications("u1", datetime(2025, 6, 15, 14, 0)) is True


def test_daytime_quiet_hours(engine):
    engine.save_settings("u1", NotificationSettings(quiet_hours=QuietHours(enabled=True, start="12:00", end="14:00")))
    assert engine.should_show_notifications("u1", datetime(2025, 6, 15, 13, 0)) is False
    assert engine.should_show_notifications("u1", datetime(2025, 6, 15, 15, 0)) is True


def test_quiet_hours_disabled_always_shows(engine):
    assert engine.should_show_notifications("u1", datetime(2025, 6, 15, 23, 0)) is True


def test_quiet_hours_reject_bad_times():
    with pytest.raises(ValueError):
        QuietHours(start="25:00")


def test_malformed_notification_storage_reads_as_empty(engine, store):
    store.set(notifications_key("u1"), "invalid-json")
    assert engine.get_notifications("u1") == []
    assert engine.get_unread_count("u1") == 0
