import time
from datetime import datetime, timezone
from typing import Callable

Clock = Callable[[], int]

DAY_MS = 24 * 60 * 60 * 1000


def now_ms() -> int:
    """Current time as epoch milliseconds."""
    return int(time.time() * 1000)


def month_of(timestamp_ms: int) -> str:
    """YYYY-MM (UTC) for an epoch-millisecond timestamp."""
    return datetime.fromtimestamp(timestamp_ms / 1000, tz=timezone.utc).strftime("%Y-%m")
