"""
Key-Value Store
Contract for the primitive store the engine persists into, plus the in-process
implementation used for offline/dev runs and tests.
"""
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Set


class StorageError(Exception):
    """Raised by a store backend when the underlying transport fails."""
    pass


class KeyValueStore(ABC):
    """
    Minimal Redis-like contract: scalar keys, list keys, set keys and
    sorted-set keys. Values are strings; callers serialize.

    Any backend (DynamoDB, in-memory, ...) must implement these methods and
    raise StorageError on transport failure.
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove the key whatever type it holds."""
        pass

    @abstractmethod
    def lpush(self, key: str, value: str) -> None:
        pass

    @abstractmethod
    def lrange(self, key: str, start: int, end: int) -> List[str]:
        """Inclusive range; negative indices count from the tail."""
        pass

    @abstractmethod
    def lrem(self, key: str, count: int, value: str) -> int:
        """
        Remove occurrences of value. count > 0 removes from the head,
        count < 0 from the tail, count == 0 removes all. Returns removed count.
        """
        pass

    @abstractmethod
    def sadd(self, key: str, member: str) -> None:
        pass

    @abstractmethod
    def smembers(self, key: str) -> List[str]:
        pass

    @abstractmethod
    def zadd(self, key: str, score: float, member: str) -> None:
        pass

    @abstractmethod
    def zrevrange(self, key: str, start: int, stop: int) -> List[str]:
        """Members by descending score, inclusive index range."""
        pass

    @abstractmethod
    def zrangebyscore(self, key: str, min_score: float, max_score: float) -> List[str]:
        """Members with min_score <= score <= max_score, ascending."""
        pass

    @abstractmethod
    def zrem(self, key: str, member: str) -> None:
        pass

    @abstractmethod
    def zcard(self, key: str) -> int:
        pass


def slice_inclusive(items: List, start: int, end: int) -> List:
    """Redis-style inclusive slice shared by the backends."""
    length = len(items)
    if start < 0:
        start = max(length + start, 0)
    if end < 0:
        end = length + end
    if start > end or start >= length:
        return []
    return items[start:end + 1]


def remove_occurrences(items: List[str], count: int, value: str) -> int:
    """Apply LREM semantics to items in place and return how many were removed."""
    if count == 0:
        before = len(items)
        items[:] = [item for item in items if item != value]
        return before - len(items)

    removed = 0
    limit = abs(count)
    indices = range(len(items)) if count > 0 else range(len(items) - 1, -1, -1)
    to_drop = []
    for idx in indices:
        if removed >= limit:
            break
        if items[idx] == value:
            to_drop.append(idx)
            removed += 1
    for idx in sorted(to_drop, reverse=True):
        del items[idx]
    return removed


class InMemoryKeyValueStore(KeyValueStore):
    """Process-local store with the same semantics as the durable backend."""

    def __init__(self) -> None:
        self._scalars: Dict[str, str] = {}
        self._lists: Dict[str, List[str]] = {}
        self._sets: Dict[str, Set[str]] = {}
        self._zsets: Dict[str, Dict[str, float]] = {}

    def get(self, key: str) -> Optional[str]:
        return self._scalars.get(key)

    def set(self, key: str, value: str) -> None:
        self._scalars[key] = value

    def delete(self, key: str) -> None:
        for bucket in (self._scalars, self._lists, self._sets, self._zsets):
            bucket.pop(key, None)

    def lpush(self, key: str, value: str) -> None:
        self._lists.setdefault(key, []).insert(0, value)

    def lrange(self, key: str, start: int, end: int) -> List[str]:
        return list(slice_inclusive(self._lists.get(key, []), start, end))

    def lrem(self, key: str, count: int, value: str) -> int:
        items = self._lists.get(key)
        if not items:
            return 0
        removed = remove_occurrences(items, count, value)
        if not items:
            del self._lists[key]
        return removed

    def sadd(self, key: str, member: str) -> None:
        self._sets.setdefault(key, set()).add(member)

    def smembers(self, key: str) -> List[str]:
        return sorted(self._sets.get(key, set()))

    def zadd(self, key: str, score: float, member: str) -> None:
        self._zsets.setdefault(key, {})[member] = score

    def zrevrange(self, key: str, start: int, stop: int) -> List[str]:
        members = self._zsets.get(key, {})
        ordered = sorted(members.items(), key=lambda kv: kv[1], reverse=True)
        return [member for member, _ in slice_inclusive(ordered, start, stop)]

    def zrangebyscore(self, key: str, min_score: float, max_score: float) -> List[str]:
        members = self._zsets.get(key, {})
        matching = [(m, s) for m, s in members.items() if min_score <= s <= max_score]
        return [member for member, _ in sorted(matching, key=lambda kv: kv[1])]

    def zrem(self, key: str, member: str) -> None:
        members = self._zsets.get(key)
        if members is None:
            return
        members.pop(member, None)
        if not members:
            del self._zsets[key]

    def zcard(self, key: str) -> int:
        return len(self._zsets.get(key, {}))
