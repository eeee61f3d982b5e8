"""
Historical Archive
Append-only monthly records of budget performance, spending trends and
financial health, persisted through the IntegrityStore.
"""
import logging
from typing import List, Optional, Tuple, Type, TypeVar

from pydantic import BaseModel, ValidationError

from finsight.core.config import settings
from finsight.models.history import (
    ArchiveMetadata,
    FinancialHealthRecord,
    MonthlyBudgetRecord,
    MonthlySnapshot,
    SpendingTrendRecord,
)
from finsight.utils.persistence import IntegrityStore
from finsight.utils.timeutils import Clock, month_of, now_ms

logger = logging.getLogger(__name__)

BUDGET_PERFORMANCE = "historical:budgetPerformance"
SPENDING_TRENDS = "historical:spendingTrends"
FINANCIAL_HEALTH = "historical:financialHealth"
ARCHIVE_METADATA = "historical:metadata"

RecordT = TypeVar("RecordT", bound=BaseModel)


def parse_month(month: str) -> Tuple[int, int]:
    """(year, month) for a YYYY-MM string; malformed values sort last."""
    try:
        year, mon = month.split("-")[:2]
        return int(year), int(mon)
    except (AttributeError, ValueError):
        return 0, 0


class HistoricalArchive:
    def __init__(self, integrity: IntegrityStore, clock: Clock = now_ms) -> None:
        self._integrity = integrity
        self._clock = clock

    def append(self, user_id: str, snapshot: MonthlySnapshot, month: Optional[str] = None) -> bool:
        """
        Archive one snapshot as three records for the given (or current) month.
        Repeated calls for the same month append further records; nothing is
        deduplicated.
        """
        timestamp = self._clock()
        month = month or month_of(timestamp)

        budget = MonthlyBudgetRecord(
            month=month, created_at=timestamp, **snapshot.budget_performance.model_dump()
        )
        trends = SpendingTrendRecord(
            month=month, created_at=timestamp, **snapshot.spending_trends.model_dump()
        )
        health = FinancialHealthRecord(
            month=month, created_at=timestamp, **snapshot.financial_health.model_dump()
        )

        ok = True
        for kind, record in (
            (BUDGET_PERFORMANCE, budget),
            (SPENDING_TRENDS, trends),
            (FINANCIAL_HEALTH, health),
        ):
            existing = self._integrity.get_list(user_id, kind)
            existing.append(record.model_dump())
            ok = self._integrity.store_list(user_id, kind, existing) and ok

        if not ok:
            logger.error(f"Failed to archive monthly data for user {user_id} ({month})")
            return False

        metadata = ArchiveMetadata(last_updated=timestamp, version=settings.DATA_VERSION)
        self._integrity.store(user_id, ARCHIVE_METADATA, metadata.model_dump())
        logger.info(f"Archived monthly data for user {user_id} ({month})")
        return True

    def _query(self, user_id: str, kind: str, model: Type[RecordT], limit_months: int) -> List[RecordT]:
        records: List[RecordT] = []
        for raw in self._integrity.get_list(user_id, kind):
            try:
                records.append(model.model_validate(raw))
            except ValidationError as e:
                logger.warning(f"Skipping malformed {kind} record for user {user_id}: {e.error_count()} errors")

        records.sort(key=lambda record: parse_month(record.month), reverse=True)
        return records[:limit_months]

    def query_budget_performance(self, user_id: str, limit_months: Optional[int] = None) -> List[MonthlyBudgetRecord]:
        limit = limit_months if limit_months is not None else settings.HISTORY_QUERY_MONTHS
        return self._query(user_id, BUDGET_PERFORMANCE, MonthlyBudgetRecord, limit)

    def query_spending_trends(self, user_id: str, limit_months: Optional[int] = None) -> List[SpendingTrendRecord]:
        limit = limit_months if limit_months is not None else settings.HISTORY_QUERY_MONTHS
        return self._query(user_id, SPENDING_TRENDS, SpendingTrendRecord, limit)

    def query_financial_health(self, user_id: str, limit_months: Optional[int] = None) -> List[FinancialHealthRecord]:
        limit = limit_months if limit_months is not None else settings.HISTORY_QUERY_MONTHS
        return self._query(user_id, FINANCIAL_HEALTH, FinancialHealthRecord, limit)

    def metadata(self, user_id: str) -> Optional[ArchiveMetadata]:
        raw = self._integrity.get(user_id, ARCHIVE_METADATA)
        if not isinstance(raw, dict):
            return None
        try:
            return ArchiveMetadata.model_validate(raw)
        except ValidationError:
            return None

    def clean_old_data(self, user_id: str) -> bool:
        # Primary history is retained forever; only backups age out.
        logger.info(f"Historical data cleaning skipped for user {user_id}: retention is forever")
        return True
