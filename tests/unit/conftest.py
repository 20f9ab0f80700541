"""Unit test fixtures using in-memory SQLite stores."""

import pytest

from mockaws.engine import ItemStoreEngine
from mockaws.store import MEMORY_URL, RecordStore

START_MS = 1_700_000_000_000


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, now: int = START_MS):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, ms: int = 1000) -> None:
        self.now += ms


@pytest.fixture
def clock() -> FakeClock:
    """Deterministic clock for created/updated timestamps."""
    return FakeClock()


@pytest.fixture
def store():
    """Fresh in-memory record store per test."""
    store = RecordStore.from_url(MEMORY_URL)
    yield store
    store.close()


@pytest.fixture
def engine(store: RecordStore, clock: FakeClock) -> ItemStoreEngine:
    """Engine over the per-test store."""
    return ItemStoreEngine(store, clock=clock)


@pytest.fixture
def orders_engine(engine: ItemStoreEngine) -> ItemStoreEngine:
    """Engine with an ``orders`` table keyed by (partition, sort)."""
    engine.handle(
        "CreateTable",
        {
            "TableName": "orders",
            "KeySchema": [
                {"AttributeName": "partition", "KeyType": "HASH"},
                {"AttributeName": "sort", "KeyType": "RANGE"},
            ],
            "AttributeDefinitions": [
                {"AttributeName": "partition", "AttributeType": "S"},
                {"AttributeName": "sort", "AttributeType": "S"},
            ],
        },
    )
    return engine


@pytest.fixture
def snapshot(store: RecordStore):
    """Return a function capturing the full (key, document) contents of a table."""

    def _snapshot(table_name: str) -> list[tuple[str, dict]]:
        return [(record.key, record.item) for record in store.list_all(table_name)]

    return _snapshot
