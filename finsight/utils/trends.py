"""
Trend analytics over the historical archive: directional trends, seasonal
factors, year-over-year comparison and a linear next-month forecast.
"""
from __future__ import annotations

import logging
import statistics
from collections import defaultdict
from typing import Dict, List, Optional, Sequence, Tuple

from finsight.core.config import settings
from finsight.models.history import (
    LongTermTrends,
    MonthlyBudgetRecord,
    Prediction,
    SeasonalFactor,
    SpendingChange,
    TrendResult,
    YearOverYearComparison,
)
from finsight.utils.history import HistoricalArchive, parse_month

logger = logging.getLogger(__name__)

MONTH_NAMES = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

# (up, down) labels per axis
DIRECTIONAL = ("increasing", "decreasing")
ADHERENCE = ("improving", "declining")


class TrendAnalyzer:
    """Compares the mean of the later half of a series against the earlier half."""

    def __init__(self, threshold_percent: float = 5.0, minimum_points: int = 4) -> None:
        self._threshold = threshold_percent
        self._minimum_points = minimum_points

    def analyze(self, values: Sequence[float], vocabulary: Tuple[str, str] = DIRECTIONAL) -> TrendResult:
        if len(values) < self._minimum_points:
            return TrendResult(trend="stable", rate=0)

        midpoint = len(values) // 2
        first_mean = statistics.fmean(values[:midpoint])
        second_mean = statistics.fmean(values[midpoint:])
        if first_mean == 0:
            return TrendResult(trend="stable", rate=0)

        rate = (second_mean - first_mean) / first_mean * 100
        up, down = vocabulary
        if rate > self._threshold:
            return TrendResult(trend=up, rate=rate)
        if rate < -self._threshold:
            return TrendResult(trend=down, rate=rate)
        return TrendResult(trend="stable", rate=rate)


def seasonal_patterns(records: Sequence[MonthlyBudgetRecord]) -> List[SeasonalFactor]:
    """
    One factor per calendar month: that month's mean expense over the overall
    mean expense. Months without data, or an overall mean of 0, give 1.
    """
    by_month: Dict[int, List[float]] = defaultdict(list)
    for record in records:
        _, month = parse_month(record.month)
        if 1 <= month <= 12:
            by_month[month - 1].append(record.total_expenses)

    overall = statistics.fmean(r.total_expenses for r in records) if records else 0

    patterns = []
    for idx, name in enumerate(MONTH_NAMES):
        amounts = by_month.get(idx)
        if not amounts or overall == 0:
            factor = 1.0
        else:
            factor = statistics.fmean(amounts) / overall
        patterns.append(SeasonalFactor(month=name, factor=factor))
    return patterns


def linear_forecast(values: Sequence[float]) -> Prediction:
    """
    Ordinary least squares over (index, value) projected one step ahead.
    Confidence is the heuristic 100 - |slope| * 10 clamped to [0, 100].
    """
    n = len(values)
    if n < 2:
        return Prediction(next_month=0, confidence=0)

    xs = range(n)
    sum_x = sum(xs)
    sum_y = sum(values)
    sum_xy = sum(x * y for x, y in zip(xs, values))
    sum_xx = sum(x * x for x in xs)

    slope = (n * sum_xy - sum_x * sum_y) / (n * sum_xx - sum_x * sum_x)
    intercept = (sum_y - slope * sum_x) / n

    next_month = max(0.0, slope * n + intercept)
    confidence = max(0.0, min(100.0, 100 - abs(slope) * 10))
    return Prediction(next_month=next_month, confidence=confidence)


class YearOverYearComparator:
    def __init__(self, archive: HistoricalArchive, window_months: Optional[int] = None) -> None:
        self._archive = archive
        self._window = window_months or settings.YOY_WINDOW_MONTHS

    @staticmethod
    def _year_totals(records: List[MonthlyBudgetRecord]) -> Tuple[float, float, float]:
        income = sum(r.total_income for r in records)
        expenses = sum(r.total_expenses for r in records)
        savings = sum(r.net_balance for r in records)
        return income, expenses, savings

    @staticmethod
    def _budget_adherence(records: List[MonthlyBudgetRecord]) -> float:
        total_budget = sum(r.monthly_budget for r in records)
        total_spent = sum(r.total_expenses for r in records)
        if total_budget == 0:
            return 0.0
        return (total_budget - total_spent) / total_budget * 100

    @staticmethod
    def _category_totals(records: List[MonthlyBudgetRecord]) -> Dict[str, float]:
        totals: Dict[str, float] = defaultdict(float)
        for record in records:
            for category, amount in record.category_breakdown.items():
                totals[category] += amount
        return totals

    def _top_spending_changes(
        self,
        current: List[MonthlyBudgetRecord],
        previous: List[MonthlyBudgetRecord],
    ) -> List[SpendingChange]:
        current_totals = self._category_totals(current)
        previous_totals = self._category_totals(previous)

        changes = []
        for category in set(current_totals) | set(previous_totals):
            now = current_totals.get(category, 0)
            before = previous_totals.get(category, 0)
            change = now - before
            percentage = change / before * 100 if before > 0 else 0
            changes.append(SpendingChange(category=category, change=change, percentage=percentage))

        changes.sort(key=lambda item: (-abs(item.change), item.category))
        return changes[:5]

    def compare(self, user_id: str, current_year: int) -> Optional[YearOverYearComparison]:
        """None when either year has no archived records."""
        records = self._archive.query_budget_performance(user_id, self._window)
        previous_year = current_year - 1

        current = [r for r in records if r.month.startswith(str(current_year))]
        previous = [r for r in records if r.month.startswith(str(previous_year))]
        if not current or not previous:
            logger.info(f"Not enough history for {current_year} vs {previous_year} (user {user_id})")
            return None

        cur_income, cur_expenses, cur_savings = self._year_totals(current)
        prev_income, prev_expenses, prev_savings = self._year_totals(previous)

        return YearOverYearComparison(
            current_year=current_year,
            previous_year=previous_year,
            income_change=cur_income - prev_income,
            expense_change=cur_expenses - prev_expenses,
            savings_change=cur_savings - prev_savings,
            budget_adherence_change=self._budget_adherence(current) - self._budget_adherence(previous),
            top_spending_changes=self._top_spending_changes(current, previous),
            seasonal_patterns=seasonal_patterns(records),
        )


class Forecaster:
    def __init__(
        self,
        archive: HistoricalArchive,
        analyzer: Optional[TrendAnalyzer] = None,
        minimum_months: int = 6,
        regression_points: int = 6,
    ) -> None:
        self._archive = archive
        self._analyzer = analyzer or TrendAnalyzer()
        self._minimum_months = minimum_months
        self._regression_points = regression_points

    def long_term_trends(self, user_id: str, months: Optional[int] = None) -> LongTermTrends:
        window = months or settings.TREND_WINDOW_MONTHS
        records = self._archive.query_budget_performance(user_id, window)
        if len(records) < self._minimum_months:
            return LongTermTrends()

        # Archive queries are newest-first; the analysis wants oldest-first.
        chronological = list(reversed(records))
        expenses = [r.total_expenses for r in chronological]

        return LongTermTrends(
            spending_trends=self._analyzer.analyze(expenses, DIRECTIONAL),
            budget_adherence_trends=self._analyzer.analyze(
                [100 - r.budget_usage_percent for r in chronological], ADHERENCE
            ),
            savings_trends=self._analyzer.analyze([r.savings_rate for r in chronological], DIRECTIONAL),
            seasonal_patterns=seasonal_patterns(records),
            predictions=linear_forecast(expenses[-self._regression_points:]),
        )
