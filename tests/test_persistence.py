import json

from finsight.db.store import InMemoryKeyValueStore, StorageError
from finsight.utils.backup import backup_index_key
from finsight.utils.persistence import IntegrityStore, checksum, items_key, list_key, primary_key
from finsight.utils.timeutils import DAY_MS


class FailingStore(InMemoryKeyValueStore):
    def set(self, key, value):
        raise StorageError("connection reset")

    def get(self, key):
        raise StorageError("connection reset")

    def smembers(self, key):
        raise StorageError("connection reset")


def _corrupt(store, key):
    envelope = json.loads(store.get(key))
    envelope["checksum"] = "0" * 64
    store.set(key, json.dumps(envelope))


def test_store_then_get_round_trips(integrity):
    payload = {"accounts": [{"id": 1, "balance": 1200.5}], "currency": "PHP"}
    assert integrity.store("u1", "accounts", payload) is True
    assert integrity.get("u1", "accounts") == payload


def test_store_writes_envelope_backup_and_index(integrity, store, clock):
    integrity.store("u1", "profile", {"name": "Ana"})

    envelope = json.loads(store.get(primary_key("u1", "profile")))
    assert envelope["data"] == {"name": "Ana"}
    assert envelope["timestamp"] == clock.now
    assert envelope["version"] == "1.0.0"
    assert envelope["checksum"] == checksum({"name": "Ana"})

    assert store.zcard(backup_index_key("u1", "profile")) == 1
    assert store.smembers("user:u1:dataIndex") == ["profile"]


def test_checksum_ignores_key_order():
    assert checksum({"a": 1, "b": 2}) == checksum({"b": 2, "a": 1})
    assert checksum({"a": 1}) != checksum({"a": 2})


def test_corrupted_primary_recovers_latest_backup_and_self_heals(integrity, store, clock):
    integrity.store("u1", "budget", {"monthly": 40000})
    clock.advance(1000)
    integrity.store("u1", "budget", {"monthly": 50000})
    _corrupt(store, primary_key("u1", "budget"))

    assert integrity.get("u1", "budget") == {"monthly": 50000}

    healed = json.loads(store.get(primary_key("u1", "budget")))
    assert healed["data"] == {"monthly": 50000}
    assert healed["checksum"] == checksum({"monthly": 50000})


def test_missing_primary_recovers_from_backup(integrity, store):
    integrity.store("u1", "budget", {"monthly": 50000})
    store.delete(primary_key("u1", "budget"))
    assert integrity.get("u1", "budget") == {"monthly": 50000}
    assert store.get(primary_key("u1", "budget")) is not None


def test_malformed_primary_without_backup_returns_none(integrity, store):
    store.set(primary_key("u1", "budget"), "invalid-json")
    assert integrity.get("u1", "budget") is None

    store.set(list_key("u1", "transactions"), "invalid-json")
    assert integrity.get_list("u1", "transactions") == []


def test_absent_data_returns_none(integrity):
    assert integrity.get("nobody", "budget") is None
    assert integrity.get_list("nobody", "transactions") == []


def test_transport_failure_is_converted_to_safe_defaults():
    failing = IntegrityStore(FailingStore())
    assert failing.store("u1", "budget", {"monthly": 1}) is False
    assert failing.store_list("u1", "transactions", [1]) is False
    assert failing.get("u1", "budget") is None
    assert failing.get_list("u1", "transactions") == []
    assert failing.health_check("u1")["status"] == "unhealthy"


def test_old_backups_are_pruned_but_primary_is_kept(integrity, store, clock):
    integrity.store("u1", "budget", {"monthly": 1})
    first_backup = f"user:u1:budget:backup:{clock.now}"

    clock.advance(31 * DAY_MS)
    integrity.store("u1", "budget", {"monthly": 2})

    assert store.get(first_backup) is None
    assert store.zcard(backup_index_key("u1", "budget")) == 1
    assert integrity.backups.recover_latest("u1", "budget") == {"monthly": 2}

    # Pruning everything leaves the primary untouched
    integrity.backups.prune_older_than("u1", "budget", clock.now)
    assert store.zcard(backup_index_key("u1", "budget")) == 0
    assert integrity.get("u1", "budget") == {"monthly": 2}


def test_backups_inside_window_are_kept(integrity, store, clock):
    integrity.store("u1", "budget", {"monthly": 1})
    clock.advance(29 * DAY_MS)
    integrity.store("u1", "budget", {"monthly": 2})
    assert store.zcard(backup_index_key("u1", "budget")) == 2


def test_store_list_mirrors_items(integrity, store):
    items = [{"id": 1}, {"id": 2}, {"id": 3}]
    assert integrity.store_list("u1", "transactions", items) is True
    assert integrity.get_list("u1", "transactions") == items

    mirrored = [json.loads(v) for v in store.lrange(items_key("u1", "transactions"), 0, -1)]
    assert sorted(i["id"] for i in mirrored) == [1, 2, 3]

    integrity.store_list("u1", "transactions", [{"id": 9}])
    assert store.lrange(items_key("u1", "transactions"), 0, -1) == [json.dumps({"id": 9})]


def test_corrupted_list_recovers_from_backup(integrity, store):
    integrity.store_list("u1", "transactions", [{"id": 1}])
    _corrupt(store, list_key("u1", "transactions"))
    assert integrity.get_list("u1", "transactions") == [{"id": 1}]


def test_list_item_helpers(integrity):
    integrity.store_list("u1", "accounts", [{"id": 1, "name": "Cash"}])

    assert integrity.add_list_item("u1", "accounts", {"id": 2, "name": "Bank"})
    assert [a["id"] for a in integrity.get_list("u1", "accounts")] == [2, 1]

    assert integrity.update_list_item("u1", "accounts", 1, {"name": "Wallet"})
    updated = [a for a in integrity.get_list("u1", "accounts") if a["id"] == 1][0]
    assert updated["name"] == "Wallet"
    assert "updated_at" in updated

    assert integrity.update_list_item("u1", "accounts", 42, {"name": "x"}) is False

    assert integrity.delete_list_item("u1", "accounts", 2)
    assert [a["id"] for a in integrity.get_list("u1", "accounts")] == [1]


def test_export_and_import_route_by_shape(integrity, store, clock):
    integrity.store("u1", "budget", {"monthly": 50000})
    integrity.store_list("u1", "transactions", [{"id": 1}, {"id": 2}])

    exported = integrity.export_user_data("u1")
    assert exported["userId"] == "u1"
    assert exported["version"] == "1.0.0"
    assert exported["data"] == {"budget": {"monthly": 50000}, "transactions": [{"id": 1}, {"id": 2}]}

    assert integrity.import_user_data("u2", exported) is True
    assert integrity.get("u2", "budget") == {"monthly": 50000}
    assert integrity.get_list("u2", "transactions") == [{"id": 1}, {"id": 2}]
    assert store.get(list_key("u2", "transactions")) is not None
    assert store.get(primary_key("u2", "transactions")) is None


def test_import_without_data_section_fails(integrity):
    assert integrity.import_user_data("u1", {"userId": "u1"}) is False


def test_health_check_reports_each_kind(integrity, clock):
    integrity.store("u1", "budget", {"monthly": 50000})
    clock.advance(10)
    integrity.store_list("u1", "transactions", [{"id": 1}])

    report = integrity.health_check("u1")
    assert report["status"] == "healthy"
    details = report["details"]
    assert details["totalDataTypes"] == 2
    assert details["lastBackup"] == clock.now

    by_type = {entry["type"]: entry for entry in details["dataTypes"]}
    assert by_type["budget"]["hasData"] is True
    assert by_type["budget"]["backupCount"] == 1
    assert by_type["transactions"]["dataSize"] == len(json.dumps([{"id": 1}]))
    assert details["storageSize"] == sum(entry["dataSize"] for entry in details["dataTypes"])


def test_sync_only_returns_newer_data(integrity, clock):
    integrity.store("u1", "budget", {"monthly": 1})
    stored_at = clock.now

    assert integrity.sync("u1", "budget", stored_at - 1) == {"data": {"monthly": 1}, "timestamp": stored_at}
    assert integrity.sync("u1", "budget", stored_at) is None
    assert integrity.sync("u1", "missing", 0) is None


def test_sync_ignores_non_object_envelope(integrity, store):
    store.set(primary_key("u1", "budget"), "[1, 2]")
    assert integrity.sync("u1", "budget", 0) is None


def test_non_object_backup_is_treated_as_missing(integrity, store):
    store.set("user:u1:budget:backup:100", "[1, 2]")
    store.zadd(backup_index_key("u1", "budget"), 100, "user:u1:budget:backup:100")

    assert integrity.backups.recover_latest("u1", "budget") is None
    assert integrity.get("u1", "budget") is None


def test_health_check_counts_empty_list_as_present(integrity):
    integrity.store_list("u1", "goals", [])
    entry = integrity.health_check("u1")["details"]["dataTypes"][0]
    assert entry["type"] == "goals"
    assert entry["hasData"] is True
    assert entry["dataSize"] == len("[]")
