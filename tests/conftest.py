import pytest
from fastapi.testclient import TestClient

from finsight.db.backend import get_store
from finsight.db.store import InMemoryKeyValueStore
from finsight.main import app
from finsight.utils.history import HistoricalArchive
from finsight.utils.notifications import NotificationEngine
from finsight.utils.persistence import IntegrityStore

# 2025-06-15T12:00:00Z
START_MS = 1749988800000


class FakeClock:
    def __init__(self, start: int = START_MS) -> None:
        self.now = start

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def integrity(store, clock):
    return IntegrityStore(store, clock=clock)


@pytest.fixture
def archive(integrity, clock):
    return HistoricalArchive(integrity, clock=clock)


@pytest.fixture
def engine(store, clock):
    return NotificationEngine(store, clock=clock)


@pytest.fixture
def client(store):
    app.dependency_overrides[get_store] = lambda: store
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
