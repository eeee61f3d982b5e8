from datetime import date

import pytest

from finsight.models.transaction import Transaction
from finsight.utils.analyzer import FinanceAnalyzer

sample_expenses = [
    Transaction(category="Food", amount=250.0, date=date(2025, 11, 1)),
    Transaction(category="Rent", amount=1000.0, date=date(2025, 11, 2)),
    Transaction(category="Food", amount=-150.0, date=date(2025, 11, 3)),
    Transaction(category="Shopping", amount=1200.0, date=date(2025, 11, 4)),
]

sample_income = [
    Transaction(category="Salary", amount=3000.0, date=date(2025, 11, 1)),
]


def test_calculate_totals():
    analyzer = FinanceAnalyzer()
    assert analyzer.monthly_total(sample_expenses) == 2600.0


def test_category_totals_use_magnitudes():
    analyzer = FinanceAnalyzer()
    result = analyzer.category_totals(sample_expenses)
    assert result == {"Food": 400.0, "Rent": 1000.0, "Shopping": 1200.0}


def test_uncategorized_expenses_fall_under_other():
    analyzer = FinanceAnalyzer()
    result = analyzer.category_totals([Transaction(amount=20.0, date=date(2025, 11, 1))])
    assert result == {"Other": 20.0}


def test_top_categories_ranked_with_share():
    analyzer = FinanceAnalyzer()
    result = analyzer.top_categories(sample_expenses)
    assert [c.category for c in result] == ["Shopping", "Rent", "Food"]
    assert result[0].percentage == pytest.approx(1200 / 2600 * 100)


def test_detect_unusual_transactions():
    analyzer = FinanceAnalyzer()
    expenses = [Transaction(amount=100.0, date=date(2025, 11, d)) for d in range(1, 10)]
    expenses.append(Transaction(amount=1000.0, date=date(2025, 11, 10)))
    assert analyzer.detect_unusual_transactions(expenses) == 1


def test_unusual_transactions_need_minimum_history():
    analyzer = FinanceAnalyzer()
    assert analyzer.detect_unusual_transactions(sample_expenses[:2]) == 0


@pytest.mark.parametrize("usage,status", [
    (120, "over-budget"),
    (94, "critical"),
    (84, "on-track"),
    (50, "under-budget"),
])
def test_budget_status(usage, status):
    assert FinanceAnalyzer.budget_status(usage) == status


def test_build_snapshot():
    analyzer = FinanceAnalyzer()
    snapshot = analyzer.build_snapshot(sample_expenses, sample_income, 3000.0, as_of=date(2025, 11, 15))

    budget = snapshot.budget_performance
    assert budget.total_expenses == 2600.0
    assert budget.total_income == 3000.0
    assert budget.net_balance == 400.0
    assert budget.status == "on-track"
    assert budget.budget_usage_percent == pytest.approx(86.667, rel=1e-3)
    assert budget.savings_rate == pytest.approx(13.333, rel=1e-3)
    assert budget.financial_health_score == 45
    assert budget.category_breakdown["Shopping"] == 1200.0
    assert "Projected overspend this month: 2,200.00." in budget.recommendations

    trends = snapshot.spending_trends
    assert trends.daily_average == pytest.approx(2600 / 15)
    assert trends.weekly_average == pytest.approx(2600 / 15 * 7)
    assert trends.spending_velocity == pytest.approx(5200 / 3000)
    assert trends.top_categories[0].category == "Shopping"

    health = snapshot.financial_health
    assert health.overall_score == 45
    assert health.cash_flow_score == 100
    assert "Reduce spending to below 80% of income" in health.insights
