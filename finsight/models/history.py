from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

BudgetStatus = Literal["under-budget", "on-track", "over-budget", "critical"]


class DefaultedModel(BaseModel):
    """Missing or null fields fall back to their defaults instead of failing validation."""

    model_config = ConfigDict(extra="ignore")

    @field_validator("*", mode="before")
    @classmethod
    def _null_to_default(cls, value, info: ValidationInfo):
        if value is None:
            field = cls.model_fields[info.field_name]
            if not field.is_required():
                return field.get_default(call_default_factory=True)
        return value


class TopCategory(DefaultedModel):
    category: str
    amount: float = 0
    percentage: float = 0


# Snapshot sections as supplied by the caller (every field optional)

class BudgetPerformance(DefaultedModel):
    monthly_budget: float = 0
    total_expenses: float = 0
    total_income: float = 0
    net_balance: float = 0
    budget_usage_percent: float = 0
    savings_rate: float = 0
    financial_health_score: float = 0
    status: BudgetStatus = "under-budget"
    category_breakdown: Dict[str, float] = Field(default_factory=dict)
    unusual_transactions: int = 0
    recommendations: List[str] = Field(default_factory=list)


class SpendingTrends(DefaultedModel):
    daily_average: float = 0
    weekly_average: float = 0
    monthly_total: float = 0
    top_categories: List[TopCategory] = Field(default_factory=list)
    spending_velocity: float = 0
    seasonal_factor: float = 1

    @field_validator("top_categories")
    @classmethod
    def _rank_top_categories(cls, value: List[TopCategory]) -> List[TopCategory]:
        return sorted(value, key=lambda item: item.amount, reverse=True)[:5]


class FinancialHealth(DefaultedModel):
    overall_score: float = 0
    savings_score: float = 0
    budget_score: float = 0
    income_stability_score: float = 0
    emergency_fund_score: float = 0
    debt_score: float = 0
    cash_flow_score: float = 0
    insights: List[str] = Field(default_factory=list)


class MonthlySnapshot(DefaultedModel):
    budget_performance: BudgetPerformance = Field(default_factory=BudgetPerformance)
    spending_trends: SpendingTrends = Field(default_factory=SpendingTrends)
    financial_health: FinancialHealth = Field(default_factory=FinancialHealth)


# Archived records: one per (user, kind, archive call)

class MonthlyBudgetRecord(BudgetPerformance):
    month: str
    created_at: int = 0


class SpendingTrendRecord(SpendingTrends):
    month: str
    created_at: int = 0


class FinancialHealthRecord(FinancialHealth):
    month: str
    created_at: int = 0


# Derived insights (never persisted)

class TrendResult(BaseModel):
    trend: str = "stable"
    rate: float = 0


class SeasonalFactor(BaseModel):
    month: str
    factor: float


class SpendingChange(BaseModel):
    category: str
    change: float
    percentage: float


class YearOverYearComparison(BaseModel):
    current_year: int
    previous_year: int
    income_change: float
    expense_change: float
    savings_change: float
    budget_adherence_change: float
    top_spending_changes: List[SpendingChange] = Field(default_factory=list)
    seasonal_patterns: List[SeasonalFactor] = Field(default_factory=list)


class Prediction(BaseModel):
    next_month: float = 0
    # 100 - |slope| * 10; a heuristic, not a statistical confidence
    confidence: float = 0


class LongTermTrends(BaseModel):
    spending_trends: TrendResult = Field(default_factory=TrendResult)
    budget_adherence_trends: TrendResult = Field(default_factory=TrendResult)
    savings_trends: TrendResult = Field(default_factory=TrendResult)
    seasonal_patterns: List[SeasonalFactor] = Field(default_factory=list)
    predictions: Prediction = Field(default_factory=Prediction)


class ArchiveMetadata(BaseModel):
    last_updated: int
    data_retention_days: Optional[int] = None  # None: kept forever
    version: str
