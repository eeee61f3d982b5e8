"""
History Router
Archive monthly snapshots and read back records, year-over-year comparisons
and long-term trends
"""
import re
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from finsight.core.config import settings
from finsight.models.history import (
    FinancialHealthRecord,
    LongTermTrends,
    MonthlyBudgetRecord,
    MonthlySnapshot,
    SpendingTrendRecord,
    YearOverYearComparison,
)
from finsight.models.transaction import MonthlyTransactions
from finsight.routers.deps import get_archive, get_current_user_id
from finsight.utils.analyzer import FinanceAnalyzer
from finsight.utils.history import HistoricalArchive
from finsight.utils.trends import Forecaster, YearOverYearComparator

router = APIRouter()
finance_analyzer = FinanceAnalyzer()

_MONTH = re.compile(r"^\d{4}-(0[1-9]|1[0-2])$")


class ArchiveRequest(MonthlySnapshot):
    month: Optional[str] = None


def _validate_month(month: Optional[str]) -> None:
    if month is not None and not _MONTH.match(month):
        raise HTTPException(status_code=400, detail="month must follow YYYY-MM format")


@router.post("/archive")
def archive_snapshot(
    request: ArchiveRequest,
    user_id: str = Depends(get_current_user_id),
    archive: HistoricalArchive = Depends(get_archive),
) -> Dict:
    """
    Archive the current period's metrics. month defaults to the current month (UTC).
    """
    _validate_month(request.month)
    snapshot = MonthlySnapshot.model_validate(request.model_dump(exclude={"month"}))
    if not archive.append(user_id, snapshot, month=request.month):
        raise HTTPException(status_code=500, detail="Failed to archive monthly data")
    return {"success": True, "message": "Monthly data archived"}


@router.post("/archive/transactions")
def archive_from_transactions(
    request: MonthlyTransactions,
    month: Optional[str] = Query(None, description="YYYY-MM; defaults to the month of as_of"),
    user_id: str = Depends(get_current_user_id),
    archive: HistoricalArchive = Depends(get_archive),
) -> Dict:
    """
    Derive the month's metrics from raw transactions, then archive them.
    """
    _validate_month(month)
    if request.monthly_budget <= 0:
        raise HTTPException(status_code=400, detail="monthly_budget must be positive")

    snapshot = finance_analyzer.build_snapshot(
        request.expenses, request.income, request.monthly_budget, as_of=request.as_of
    )
    if month is None and request.as_of is not None:
        month = request.as_of.strftime("%Y-%m")

    if not archive.append(user_id, snapshot, month=month):
        raise HTTPException(status_code=500, detail="Failed to archive monthly data")
    return {"success": True, "snapshot": snapshot.model_dump()}


@router.get("/budget-performance", response_model=List[MonthlyBudgetRecord])
def budget_performance(
    months: int = Query(settings.HISTORY_QUERY_MONTHS, ge=1, le=120),
    user_id: str = Depends(get_current_user_id),
    archive: HistoricalArchive = Depends(get_archive),
):
    return archive.query_budget_performance(user_id, months)


@router.get("/spending-trends", response_model=List[SpendingTrendRecord])
def spending_trends(
    months: int = Query(settings.HISTORY_QUERY_MONTHS, ge=1, le=120),
    user_id: str = Depends(get_current_user_id),
    archive: HistoricalArchive = Depends(get_archive),
):
    return archive.query_spending_trends(user_id, months)


@router.get("/financial-health", response_model=List[FinancialHealthRecord])
def financial_health(
    months: int = Query(settings.HISTORY_QUERY_MONTHS, ge=1, le=120),
    user_id: str = Depends(get_current_user_id),
    archive: HistoricalArchive = Depends(get_archive),
):
    return archive.query_financial_health(user_id, months)


@router.get("/year-over-year/{year}", response_model=Optional[YearOverYearComparison])
def year_over_year(
    year: int,
    user_id: str = Depends(get_current_user_id),
    archive: HistoricalArchive = Depends(get_archive),
):
    """
    Compare year against year - 1. Returns null when either year has no history.
    """
    return YearOverYearComparator(archive).compare(user_id, year)


@router.get("/trends", response_model=LongTermTrends)
def long_term_trends(
    months: int = Query(settings.TREND_WINDOW_MONTHS, ge=1, le=120),
    user_id: str = Depends(get_current_user_id),
    archive: HistoricalArchive = Depends(get_archive),
):
    return Forecaster(archive).long_term_trends(user_id, months)
