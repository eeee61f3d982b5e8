"""
Backup Manager
Timestamped backup snapshots per (user, kind), indexed in a sorted set by
timestamp. Only backups are pruned; primary data is never touched here.
"""
import json
import logging
from typing import Any, Optional

from finsight.core.config import settings
from finsight.db.store import KeyValueStore
from finsight.utils.timeutils import DAY_MS, Clock, now_ms

logger = logging.getLogger(__name__)


def backup_key(user_id: str, kind: str, timestamp: int) -> str:
    return f"user:{user_id}:{kind}:backup:{timestamp}"


def backup_index_key(user_id: str, kind: str) -> str:
    return f"user:{user_id}:{kind}:backups"


class BackupManager:
    def __init__(
        self,
        store: KeyValueStore,
        retention_days: Optional[int] = None,
        version: Optional[str] = None,
        clock: Clock = now_ms,
    ) -> None:
        self._store = store
        self._retention_days = retention_days if retention_days is not None else settings.BACKUP_RETENTION_DAYS
        self._version = version or settings.DATA_VERSION
        self._clock = clock

    def snapshot(self, user_id: str, kind: str, data: Any, timestamp: int, checksum: str) -> None:
        """Persist a backup of data and prune backups past the retention window."""
        key = backup_key(user_id, kind, timestamp)
        self._store.set(key, json.dumps({
            "timestamp": timestamp,
            "data": data,
            "version": self._version,
            "checksum": checksum,
        }))
        self._store.zadd(backup_index_key(user_id, kind), timestamp, key)

        cutoff = self._clock() - self._retention_days * DAY_MS
        self.prune_older_than(user_id, kind, cutoff)

    def prune_older_than(self, user_id: str, kind: str, cutoff: int) -> int:
        index_key = backup_index_key(user_id, kind)
        stale = self._store.zrangebyscore(index_key, 0, cutoff)
        for key in stale:
            self._store.delete(key)
            self._store.zrem(index_key, key)

        if stale:
            logger.info(f"Pruned {len(stale)} old backup snapshots for {kind} (user {user_id}); primary data kept")
        return len(stale)

    def recover_latest(self, user_id: str, kind: str) -> Optional[Any]:
        """Payload of the most recent backup, or None when there is none."""
        latest = self._store.zrevrange(backup_index_key(user_id, kind), 0, 0)
        if not latest:
            return None

        raw = self._store.get(latest[0])
        if not raw:
            logger.warning(f"Backup index for {kind} points at a missing snapshot: {latest[0]}")
            return None

        backup = json.loads(raw)
        if not isinstance(backup, dict):
            logger.warning(f"Malformed backup snapshot for {kind}: {latest[0]}")
            return None
        logger.info(f"Recovered {kind} for user {user_id} from backup {backup.get('timestamp')}")
        return backup.get("data")

    def count(self, user_id: str, kind: str) -> int:
        return self._store.zcard(backup_index_key(user_id, kind))

    def latest_timestamp(self, user_id: str, kind: str) -> int:
        latest = self._store.zrevrange(backup_index_key(user_id, kind), 0, 0)
        if not latest:
            return 0
        return int(latest[0].rsplit(":", 1)[-1])
