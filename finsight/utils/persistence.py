"""
Integrity Store
Persists per-user data kinds as checksummed envelopes with automatic backups.
Reads verify the checksum and fall back to the most recent backup, replaying
it into the primary slot. Transport failures never leave this module: they are
logged and turned into False / None / [].
"""
import hashlib
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from finsight.core.config import settings
from finsight.db.store import KeyValueStore, StorageError
from finsight.utils.backup import BackupManager
from finsight.utils.timeutils import Clock, now_ms

logger = logging.getLogger(__name__)

# Failures that degrade to "no data": transport errors and malformed payloads
RECOVERABLE_ERRORS = (StorageError, ValueError, TypeError, KeyError)


def primary_key(user_id: str, kind: str) -> str:
    return f"user:{user_id}:{kind}"


def list_key(user_id: str, kind: str) -> str:
    return f"user:{user_id}:{kind}:list"


def items_key(user_id: str, kind: str) -> str:
    return f"user:{user_id}:{kind}:items"


def data_index_key(user_id: str) -> str:
    return f"user:{user_id}:dataIndex"


def checksum(data: Any) -> str:
    """SHA-256 of the canonical JSON form of data."""
    canonical = json.dumps(data, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class IntegrityStore:
    def __init__(
        self,
        store: KeyValueStore,
        backups: Optional[BackupManager] = None,
        version: Optional[str] = None,
        clock: Clock = now_ms,
    ) -> None:
        self._store = store
        self._clock = clock
        self._version = version or settings.DATA_VERSION
        self.backups = backups or BackupManager(store, version=self._version, clock=clock)

    def _write(self, user_id: str, kind: str, key: str, field: str, payload: Any) -> None:
        timestamp = self._clock()
        digest = checksum(payload)
        self._store.set(key, json.dumps({
            field: payload,
            "timestamp": timestamp,
            "version": self._version,
            "checksum": digest,
        }))
        self.backups.snapshot(user_id, kind, payload, timestamp, digest)
        self._store.sadd(data_index_key(user_id), kind)

    def _read_verified(self, key: str, field: str) -> Optional[Any]:
        """Payload of a verified envelope; None when absent, malformed or corrupted."""
        raw = self._store.get(key)
        if raw is None:
            return None

        try:
            envelope = json.loads(raw)
        except ValueError:
            logger.warning(f"Malformed envelope at {key}, attempting backup recovery")
            return None

        if not isinstance(envelope, dict) or field not in envelope:
            logger.warning(f"Unexpected envelope shape at {key}, attempting backup recovery")
            return None

        if checksum(envelope[field]) != envelope.get("checksum"):
            logger.warning(f"Data corruption detected at {key}, attempting backup recovery")
            return None

        return envelope[field]

    # Scalar payloads

    def store(self, user_id: str, kind: str, data: Any) -> bool:
        try:
            self._write(user_id, kind, primary_key(user_id, kind), "data", data)
            logger.info(f"Stored {kind} for user {user_id}")
            return True
        except RECOVERABLE_ERRORS as e:
            logger.error(f"Failed to store {kind} for user {user_id}: {e}")
            return False

    def get(self, user_id: str, kind: str) -> Optional[Any]:
        try:
            data = self._read_verified(primary_key(user_id, kind), "data")
            if data is not None:
                return data

            recovered = self.backups.recover_latest(user_id, kind)
            if recovered is not None:
                self.store(user_id, kind, recovered)
                return recovered

            logger.info(f"No data found: {kind} for user {user_id}")
            return None
        except RECOVERABLE_ERRORS as e:
            logger.error(f"Failed to retrieve {kind} for user {user_id}: {e}")
            return None

    # List payloads

    def store_list(self, user_id: str, kind: str, items: List[Any]) -> bool:
        try:
            self._write(user_id, kind, list_key(user_id, kind), "items", items)

            # Item-level mirror, rebuilt wholesale
            mirror = items_key(user_id, kind)
            self._store.delete(mirror)
            for item in items:
                self._store.lpush(mirror, json.dumps(item))

            logger.info(f"Stored {kind} ({len(items)} items) for user {user_id}")
            return True
        except RECOVERABLE_ERRORS as e:
            logger.error(f"Failed to store list {kind} for user {user_id}: {e}")
            return False

    def get_list(self, user_id: str, kind: str) -> List[Any]:
        try:
            items = self._read_verified(list_key(user_id, kind), "items")
            if isinstance(items, list):
                return items

            recovered = self.backups.recover_latest(user_id, kind)
            if isinstance(recovered, list):
                self.store_list(user_id, kind, recovered)
                return recovered

            logger.info(f"No list data found: {kind} for user {user_id}")
            return []
        except RECOVERABLE_ERRORS as e:
            logger.error(f"Failed to retrieve list {kind} for user {user_id}: {e}")
            return []

    def add_list_item(self, user_id: str, kind: str, item: Any) -> bool:
        items = self.get_list(user_id, kind)
        items.insert(0, item)
        return self.store_list(user_id, kind, items)

    def update_list_item(self, user_id: str, kind: str, item_id: Any, updates: Dict[str, Any]) -> bool:
        items = self.get_list(user_id, kind)
        for idx, item in enumerate(items):
            if isinstance(item, dict) and item.get("id") == item_id:
                items[idx] = {**item, **updates, "updated_at": datetime.now(timezone.utc).isoformat()}
                return self.store_list(user_id, kind, items)
        return False

    def delete_list_item(self, user_id: str, kind: str, item_id: Any) -> bool:
        items = self.get_list(user_id, kind)
        remaining = [item for item in items if not (isinstance(item, dict) and item.get("id") == item_id)]
        return self.store_list(user_id, kind, remaining)

    # Index, sync, export/import, health

    def get_data_index(self, user_id: str) -> List[str]:
        try:
            return self._store.smembers(data_index_key(user_id))
        except StorageError as e:
            logger.error(f"Failed to read data index for user {user_id}: {e}")
            return []

    def _is_list_kind(self, user_id: str, kind: str) -> bool:
        return self._store.get(list_key(user_id, kind)) is not None

    def load(self, user_id: str, kind: str) -> Optional[Any]:
        """Read a kind through whichever path (scalar or list) it was stored on."""
        try:
            if self._is_list_kind(user_id, kind):
                return self.get_list(user_id, kind)
        except StorageError as e:
            logger.error(f"Failed to inspect {kind} for user {user_id}: {e}")
            return None
        return self.get(user_id, kind)

    def sync(self, user_id: str, kind: str, last_sync_time: int) -> Optional[Dict[str, Any]]:
        """Return {data, timestamp} when the stored copy is newer than last_sync_time."""
        try:
            for key, field in ((primary_key(user_id, kind), "data"), (list_key(user_id, kind), "items")):
                raw = self._store.get(key)
                if raw is None:
                    continue
                envelope = json.loads(raw)
                if not isinstance(envelope, dict):
                    logger.warning(f"Unexpected envelope shape at {key}, nothing to sync")
                    return None
                if envelope.get("timestamp", 0) > last_sync_time:
                    return {"data": envelope.get(field), "timestamp": envelope["timestamp"]}
                return None
            return None
        except RECOVERABLE_ERRORS as e:
            logger.error(f"Failed to sync {kind} for user {user_id}: {e}")
            return None

    def export_user_data(self, user_id: str) -> Dict[str, Any]:
        export: Dict[str, Any] = {
            "userId": user_id,
            "exportDate": datetime.now(timezone.utc).isoformat(),
            "version": self._version,
            "data": {},
        }
        for kind in self.get_data_index(user_id):
            data = self.load(user_id, kind)
            if data is not None:
                export["data"][kind] = data
        return export

    def import_user_data(self, user_id: str, import_data: Dict[str, Any]) -> bool:
        payloads = import_data.get("data") if isinstance(import_data, dict) else None
        if not isinstance(payloads, dict):
            logger.warning(f"Import for user {user_id} carried no data section")
            return False

        ok = True
        for kind, data in payloads.items():
            if isinstance(data, list):
                ok = self.store_list(user_id, kind, data) and ok
            else:
                ok = self.store(user_id, kind, data) and ok

        if ok:
            logger.info(f"Imported {len(payloads)} data kinds for user {user_id}")
        return ok

    def health_check(self, user_id: str) -> Dict[str, Any]:
        try:
            kinds = self._store.smembers(data_index_key(user_id))
            details: Dict[str, Any] = {
                "totalDataTypes": len(kinds),
                "dataTypes": [],
                "lastBackup": 0,
                "storageSize": 0,
            }

            for kind in kinds:
                data = self.load(user_id, kind)
                size = len(json.dumps(data)) if data is not None else 0
                details["dataTypes"].append({
                    "type": kind,
                    "hasData": data is not None,
                    "dataSize": size,
                    "backupCount": self.backups.count(user_id, kind),
                })
                details["storageSize"] += size
                details["lastBackup"] = max(details["lastBackup"], self.backups.latest_timestamp(user_id, kind))

            return {"status": "healthy", "details": details}
        except RECOVERABLE_ERRORS as e:
            logger.error(f"Health check failed for user {user_id}: {e}")
            return {"status": "unhealthy", "details": {"error": str(e)}}
