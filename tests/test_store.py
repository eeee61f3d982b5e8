from finsight.db.store import InMemoryKeyValueStore, remove_occurrences, slice_inclusive


def test_scalar_set_get_delete():
    store = InMemoryKeyValueStore()
    assert store.get("k") is None
    store.set("k", "v")
    assert store.get("k") == "v"
    store.delete("k")
    assert store.get("k") is None


def test_lpush_prepends_and_lrange_is_inclusive():
    store = InMemoryKeyValueStore()
    for value in ["a", "b", "c"]:
        store.lpush("list", value)
    assert store.lrange("list", 0, -1) == ["c", "b", "a"]
    assert store.lrange("list", 0, 1) == ["c", "b"]
    assert store.lrange("list", -1, -1) == ["a"]
    assert store.lrange("missing", 0, -1) == []


def test_lrem_directions():
    items = ["x", "y", "x", "z", "x"]
    assert remove_occurrences(items, 2, "x") == 2
    assert items == ["y", "z", "x"]

    items = ["x", "y", "x", "z", "x"]
    assert remove_occurrences(items, -1, "x") == 1
    assert items == ["x", "y", "x", "z"]

    items = ["x", "y", "x"]
    assert remove_occurrences(items, 0, "x") == 2
    assert items == ["y"]


def test_slice_inclusive_out_of_range():
    assert slice_inclusive([1, 2, 3], 5, 10) == []
    assert slice_inclusive([1, 2, 3], 2, 1) == []
    assert slice_inclusive([1, 2, 3], -10, 1) == [1, 2]


def test_set_membership():
    store = InMemoryKeyValueStore()
    store.sadd("s", "b")
    store.sadd("s", "a")
    store.sadd("s", "b")
    assert store.smembers("s") == ["a", "b"]


def test_sorted_set_ordering_and_ranges():
    store = InMemoryKeyValueStore()
    store.zadd("z", 30, "c")
    store.zadd("z", 10, "a")
    store.zadd("z", 20, "b")

    assert store.zrevrange("z", 0, 0) == ["c"]
    assert store.zrevrange("z", 0, -1) == ["c", "b", "a"]
    assert store.zrangebyscore("z", 0, 20) == ["a", "b"]
    assert store.zcard("z") == 3

    store.zrem("z", "c")
    assert store.zrevrange("z", 0, 0) == ["b"]
    assert store.zcard("z") == 2


def test_delete_removes_any_type():
    store = InMemoryKeyValueStore()
    store.lpush("k", "v")
    store.delete("k")
    assert store.lrange("k", 0, -1) == []
