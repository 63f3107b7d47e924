from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from news_events.models import Item
from news_events.store import MemoryStore
from news_events.text import stable_hash

START = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


class FrozenClock:
    def __init__(self, start: datetime = START):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **delta) -> None:
        self.now += timedelta(**delta)


class FakeOracle:
    """Deterministic oracle: replays `replies` in order (the last one repeats)."""

    def __init__(self, replies=None, error: Optional[Exception] = None, model="fake-model"):
        self.model = model
        self.replies = list(replies or [""])
        self.error = error
        self.prompts = []

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        if len(self.replies) > 1:
            return self.replies.pop(0)
        return self.replies[0]


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    for name in ("AI_DISABLED", "GROQ_API_KEY", "AI_MAX_EVENT_ITEMS", "DATA_PATH"):
        monkeypatch.delenv(name, raising=False)
    # Keep a developer's .env out of the test run.
    monkeypatch.chdir(tmp_path)


@pytest.fixture
def clock():
    return FrozenClock()


@pytest.fixture
def store(clock):
    return MemoryStore(clock=clock)


@pytest.fixture
def add_item(store, clock):
    """Insert an item for `source` published `minutes_ago` before the clock."""

    def _add(source: str, title: str, minutes_ago: Optional[int] = 0, excerpt=None) -> Item:
        src = store.upsert_source(source)
        published = None if minutes_ago is None else clock() - timedelta(minutes=minutes_ago)
        item = Item(
            source_id=src.id,
            title=title,
            excerpt=excerpt,
            published_at=published,
            fetched_at=clock(),
            hash=stable_hash(f"{source}|{title}|{minutes_ago}"),
        )
        return store.add_item(item)

    return _add
