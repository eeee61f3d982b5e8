import datetime as dt
import math
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator


class Transaction(BaseModel):
    amount: float
    date: dt.date
    category: Optional[str] = None
    description: Optional[str] = ""

    @field_validator("amount")
    @classmethod
    def _finite_amount(cls, value: float) -> float:
        if not math.isfinite(value):
            raise ValueError("amount must be a finite number")
        return value

    @property
    def magnitude(self) -> float:
        # Expenses may be recorded as negative amounts; analytics use the absolute value.
        return abs(self.amount)

    @property
    def category_name(self) -> str:
        return self.category or "Other"


class MonthlyTransactions(BaseModel):
    """Input for deriving one month's snapshot."""

    monthly_budget: float
    expenses: List[Transaction] = Field(default_factory=list)
    income: List[Transaction] = Field(default_factory=list)
    as_of: Optional[dt.date] = None
