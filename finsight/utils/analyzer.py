from __future__ import annotations

import calendar
import statistics
from collections import defaultdict
from datetime import date
from typing import Dict, List, Optional

from finsight.models.history import (
    BudgetPerformance,
    BudgetStatus,
    FinancialHealth,
    MonthlySnapshot,
    SpendingTrends,
    TopCategory,
)
from finsight.models.transaction import Transaction


class FinanceAnalyzer:
    """
    Derives the current-period metrics (budget performance, spending trends
    and financial health) that the historical archive stores, from a month's
    validated transactions.
    """

    def __init__(self, spike_sigma: float = 2.0, minimum_transactions: int = 3) -> None:
        self._spike_sigma = spike_sigma
        self._minimum_transactions = minimum_transactions

    def monthly_total(self, transactions: List[Transaction]) -> float:
        return round(sum(t.magnitude for t in transactions), 2)

    def category_totals(self, expenses: List[Transaction]) -> Dict[str, float]:
        totals: Dict[str, float] = defaultdict(float)
        for exp in expenses:
            totals[exp.category_name] += exp.magnitude
        return {cat: round(total, 2) for cat, total in totals.items()}

    def top_categories(self, expenses: List[Transaction], limit: int = 5) -> List[TopCategory]:
        totals = self.category_totals(expenses)
        grand_total = sum(totals.values())
        ranked = sorted(totals.items(), key=lambda kv: kv[1], reverse=True)[:limit]
        return [
            TopCategory(
                category=category,
                amount=amount,
                percentage=amount / grand_total * 100 if grand_total > 0 else 0,
            )
            for category, amount in ranked
        ]

    def detect_unusual_transactions(self, expenses: List[Transaction]) -> int:
        """
        Count expenses more than spike_sigma population standard deviations
        above the mean. Too few transactions to judge gives 0.
        """
        if len(expenses) < self._minimum_transactions:
            return 0

        amounts = [exp.magnitude for exp in expenses]
        mean = statistics.fmean(amounts)
        stdev = statistics.pstdev(amounts)
        return sum(1 for amount in amounts if amount > mean + self._spike_sigma * stdev)

    @staticmethod
    def budget_status(usage_percent: float) -> BudgetStatus:
        if usage_percent > 100:
            return "over-budget"
        if usage_percent > 90:
            return "critical"
        if usage_percent > 80:
            return "on-track"
        return "under-budget"

    @staticmethod
    def health_score(expenses: float, income: float, monthly_budget: float) -> float:
        """Weighted 0-100 composite: savings 30, budget 25, income stability 20, emergency fund 15, debt 10."""
        net_balance = income - expenses
        score = 0.0

        if income > 0:
            savings_rate = net_balance / income * 100
            score += min(savings_rate / 20, 1) * 30

        if monthly_budget > 0:
            usage = expenses / monthly_budget * 100
            score += max(0.0, (100 - usage) / 100) * 25

        # Income stability is not measured from a single month
        score += 20

        if expenses > 0:
            score += min(net_balance / (expenses * 3), 1) * 15

        if income > 0:
            score += max(0.0, 1 - expenses / income) * 10

        return max(0, min(100, round(score)))

    @staticmethod
    def recommendations(status: str, usage_percent: float, projected_overspend: float) -> List[str]:
        tips = []
        if status == "critical":
            tips.append("You're very close to exceeding your budget. Reduce non-essential expenses immediately.")
        elif status == "over-budget":
            tips.append("You've exceeded your monthly budget. Review your spending and adjust accordingly.")
        elif status == "on-track":
            tips.append("You're approaching your budget limit. Monitor your spending closely.")

        if projected_overspend > 0:
            tips.append(f"Projected overspend this month: {projected_overspend:,.2f}.")

        if usage_percent < 70:
            tips.append("Great job staying under budget! Consider increasing your savings or investment contributions.")
        return tips

    @staticmethod
    def health_insights(score: float, expenses: float, income: float) -> List[str]:
        insights = []
        if score < 60:
            insights.append("Focus on reducing expenses and increasing savings")
            insights.append("Set up an emergency fund")
            insights.append("Review and adjust your budget")
        if expenses > income * 0.8:
            insights.append("Reduce spending to below 80% of income")
        if score < 80:
            insights.append("Consider increasing your savings rate")
            insights.append("Review your spending categories for optimization")
        return insights

    def build_snapshot(
        self,
        expenses: List[Transaction],
        income: List[Transaction],
        monthly_budget: float,
        as_of: Optional[date] = None,
    ) -> MonthlySnapshot:
        as_of = as_of or date.today()
        days_in_month = calendar.monthrange(as_of.year, as_of.month)[1]
        days_elapsed = as_of.day

        total_expenses = self.monthly_total(expenses)
        total_income = self.monthly_total(income)
        net_balance = round(total_income - total_expenses, 2)
        usage = total_expenses / monthly_budget * 100 if monthly_budget > 0 else 0
        savings_rate = net_balance / total_income * 100 if total_income > 0 else 0

        daily_average = total_expenses / days_elapsed
        projected = daily_average * days_in_month
        status = self.budget_status(usage)
        score = self.health_score(total_expenses, total_income, monthly_budget)

        budget = BudgetPerformance(
            monthly_budget=monthly_budget,
            total_expenses=total_expenses,
            total_income=total_income,
            net_balance=net_balance,
            budget_usage_percent=usage,
            savings_rate=savings_rate,
            financial_health_score=score,
            status=status,
            category_breakdown=self.category_totals(expenses),
            unusual_transactions=self.detect_unusual_transactions(expenses),
            recommendations=self.recommendations(status, usage, max(0.0, projected - monthly_budget)),
        )

        trends = SpendingTrends(
            daily_average=daily_average,
            weekly_average=daily_average * 7,
            monthly_total=total_expenses,
            top_categories=self.top_categories(expenses),
            # Projected month-end spend relative to budget; > 1 means on pace to overspend
            spending_velocity=projected / monthly_budget if monthly_budget > 0 else 0,
        )

        emergency_ratio = net_balance / (total_expenses * 3) if total_expenses > 0 else 1
        health = FinancialHealth(
            overall_score=score,
            savings_score=max(0.0, min(savings_rate / 20, 1)) * 100,
            budget_score=max(0.0, 100 - usage),
            income_stability_score=100,
            emergency_fund_score=max(0.0, min(emergency_ratio, 1)) * 100,
            debt_score=max(0.0, 1 - total_expenses / total_income) * 100 if total_income > 0 else 0,
            cash_flow_score=100 if net_balance > 0 else (50 if net_balance == 0 else 0),
            insights=self.health_insights(score, total_expenses, total_income),
        )

        return MonthlySnapshot(budget_performance=budget, spending_trends=trends, financial_health=health)
