"""
Event/item storage.

Every pipeline step receives an `EventStore` explicitly. `MemoryStore` keeps
records in process memory (tests, one-off runs); `JsonFileStore` extends it and
persists a snapshot after each write so a crash mid-run leaves every completed
write in place.
"""

from __future__ import annotations

import json
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Protocol, Set

from pydantic import ValidationError

from .exceptions import (
    DuplicateItemError,
    EventNotFoundError,
    ItemAlreadyLinkedError,
    StoreError,
)
from .file_lock import locked_path, replace_text
from .models import Event, EventAiOutput, EventItem, Item, LinkedItem, Source, utcnow

Clock = Callable[[], datetime]


class EventStore(Protocol):
    def upsert_source(self, name: str, feed_url: Optional[str] = None) -> Source:  # pragma: no cover - interface
        ...

    def get_source(self, source_id: str) -> Optional[Source]:  # pragma: no cover - interface
        ...

    def add_item(self, item: Item) -> Item:  # pragma: no cover - interface
        ...

    def recent_items(self, limit: int) -> List[Item]:  # pragma: no cover - interface
        ...

    def linked_item_ids(self, item_ids: Iterable[str]) -> Set[str]:  # pragma: no cover - interface
        ...

    def open_events(self, cutoff: datetime, limit: int) -> List[Event]:  # pragma: no cover - interface
        ...

    def event_sample(self, event_id: str, size: int) -> List[Item]:  # pragma: no cover - interface
        ...

    def create_event(self, start_at: datetime, end_at: datetime) -> Event:  # pragma: no cover - interface
        ...

    def attach_item(self, event_id: str, item: Item, similarity: float) -> Event:  # pragma: no cover - interface
        ...

    def get_event(self, event_id: str) -> Optional[Event]:  # pragma: no cover - interface
        ...

    def event_items(self, event_id: str) -> List[LinkedItem]:  # pragma: no cover - interface
        ...

    def update_event(self, event_id: str, **changes) -> Event:  # pragma: no cover - interface
        ...

    def recent_events(self, limit: int, *, without_output: bool = False) -> List[Event]:  # pragma: no cover - interface
        ...

    def add_ai_output(
        self, event_id: str, model: str, prompt_version: str, output_text: str
    ) -> EventAiOutput:  # pragma: no cover - interface
        ...

    def ai_outputs(self, event_id: str, limit: Optional[int] = None) -> List[EventAiOutput]:  # pragma: no cover - interface
        ...


def _recency_key(item: Item):
    # Published items first (newest first), then unpublished by fetch time.
    return (item.published_at is not None, item.published_at or item.fetched_at)


class MemoryStore:
    """In-process store; insertion order doubles as creation order."""

    _EVENT_FIELDS = {"is_breaking", "breaking_score", "has_duplicates"}

    def __init__(self, *, clock: Optional[Clock] = None) -> None:
        self._clock: Clock = clock or utcnow
        self.sources: Dict[str, Source] = {}
        self.items: Dict[str, Item] = {}
        self.events: Dict[str, Event] = {}
        self.links: List[EventItem] = []
        self.outputs: List[EventAiOutput] = []

    def _commit(self) -> None:
        """Persist pending changes; a no-op in memory."""

    # --- sources and items -------------------------------------------------

    def upsert_source(self, name: str, feed_url: Optional[str] = None) -> Source:
        existing = next((s for s in self.sources.values() if s.name == name), None)
        if existing is None:
            source = Source(name=name, feed_url=feed_url, created_at=self._clock())
            self.sources[source.id] = source
        elif feed_url and feed_url != existing.feed_url:
            source = existing.model_copy(update={"feed_url": feed_url})
            self.sources[source.id] = source
        else:
            return existing
        self._commit()
        return source

    def get_source(self, source_id: str) -> Optional[Source]:
        return self.sources.get(source_id)

    def add_item(self, item: Item) -> Item:
        if item.source_id not in self.sources:
            raise StoreError(f"Unknown source for item: {item.source_id}")
        if any(existing.hash == item.hash for existing in self.items.values()):
            raise DuplicateItemError(f"Item already stored: {item.hash}")
        self.items[item.id] = item
        self._commit()
        return item

    def recent_items(self, limit: int) -> List[Item]:
        ordered = sorted(self.items.values(), key=_recency_key, reverse=True)
        return ordered[: max(0, limit)]

    def linked_item_ids(self, item_ids: Iterable[str]) -> Set[str]:
        wanted = set(item_ids)
        return {link.item_id for link in self.links if link.item_id in wanted}

    # --- events ------------------------------------------------------------

    def _require_event(self, event_id: str) -> Event:
        event = self.events.get(event_id)
        if event is None:
            raise EventNotFoundError(event_id)
        return event

    def open_events(self, cutoff: datetime, limit: int) -> List[Event]:
        open_ = [e for e in self.events.values() if e.end_at is None or e.end_at >= cutoff]
        open_.sort(key=lambda e: e.updated_at, reverse=True)
        return open_[: max(0, limit)]

    def event_sample(self, event_id: str, size: int) -> List[Item]:
        sample: List[Item] = []
        for link in reversed(self.links):
            if len(sample) >= size:
                break
            if link.event_id == event_id:
                sample.append(self.items[link.item_id])
        return sample

    def create_event(self, start_at: datetime, end_at: datetime) -> Event:
        now = self._clock()
        event = Event(start_at=start_at, end_at=end_at, created_at=now, updated_at=now)
        self.events[event.id] = event
        self._commit()
        return event

    def attach_item(self, event_id: str, item: Item, similarity: float) -> Event:
        """Link `item` to the event and widen its bounds in one write."""
        event = self._require_event(event_id)
        if any(link.item_id == item.id for link in self.links):
            raise ItemAlreadyLinkedError(f"Item already linked to an event: {item.id}")

        at = item.effective_at
        now = self._clock()
        link = EventItem(event_id=event_id, item_id=item.id, similarity=similarity, created_at=now)
        updated = event.model_copy(
            update={
                "start_at": min(event.start_at, at) if event.start_at else at,
                "end_at": max(event.end_at, at) if event.end_at else at,
                "item_count": event.item_count + 1,
                "updated_at": now,
            }
        )
        self.links.append(link)
        self.events[event_id] = updated
        self._commit()
        return updated

    def get_event(self, event_id: str) -> Optional[Event]:
        return self.events.get(event_id)

    def event_items(self, event_id: str) -> List[LinkedItem]:
        self._require_event(event_id)
        linked: List[LinkedItem] = []
        for link in self.links:
            if link.event_id != event_id:
                continue
            item = self.items[link.item_id]
            linked.append(LinkedItem(link=link, item=item, source=self.sources[item.source_id]))
        return linked

    def update_event(self, event_id: str, **changes) -> Event:
        unknown = set(changes) - self._EVENT_FIELDS
        if unknown:
            raise ValueError(f"Unsupported event fields: {sorted(unknown)}")
        event = self._require_event(event_id)
        updated = event.model_copy(update={**changes, "updated_at": self._clock()})
        self.events[event_id] = updated
        self._commit()
        return updated

    def recent_events(self, limit: int, *, without_output: bool = False) -> List[Event]:
        """Most recently updated events, optionally only those with no generated summary."""
        candidates = list(self.events.values())
        if without_output:
            summarized = {o.event_id for o in self.outputs}
            candidates = [e for e in candidates if e.id not in summarized]
        ordered = sorted(candidates, key=lambda e: e.updated_at, reverse=True)
        return ordered[: max(0, limit)]

    # --- generated summaries ----------------------------------------------

    def add_ai_output(
        self, event_id: str, model: str, prompt_version: str, output_text: str
    ) -> EventAiOutput:
        self._require_event(event_id)
        output = EventAiOutput(
            event_id=event_id,
            model=model,
            prompt_version=prompt_version,
            output_text=output_text,
            created_at=self._clock(),
        )
        self.outputs.append(output)
        self._commit()
        return output

    def ai_outputs(self, event_id: str, limit: Optional[int] = None) -> List[EventAiOutput]:
        newest_first = [o for o in reversed(self.outputs) if o.event_id == event_id]
        return newest_first if limit is None else newest_first[:limit]


class JsonFileStore(MemoryStore):
    """
    MemoryStore persisted to a single JSON snapshot.

    The snapshot is rewritten (atomically) after every mutation, which keeps
    each link/event update individually durable. Suitable for the small
    volumes a cron-driven aggregator handles; callers serialize runs.
    """

    def __init__(self, path: Path | str, *, clock: Optional[Clock] = None) -> None:
        super().__init__(clock=clock)
        self.path = Path(path).expanduser()
        self._load()

    def _load(self) -> None:
        with locked_path(self.path):
            if not self.path.exists():
                return
            try:
                raw = json.loads(self.path.read_text(encoding="utf-8"))
                self.sources = {s["id"]: Source.model_validate(s) for s in raw.get("sources", [])}
                self.items = {i["id"]: Item.model_validate(i) for i in raw.get("items", [])}
                self.events = {e["id"]: Event.model_validate(e) for e in raw.get("events", [])}
                self.links = [EventItem.model_validate(x) for x in raw.get("event_items", [])]
                self.outputs = [EventAiOutput.model_validate(x) for x in raw.get("ai_outputs", [])]
            except (OSError, ValueError, KeyError, ValidationError) as exc:
                raise StoreError(f"Could not load event store {self.path}: {exc}") from exc

    def _snapshot(self) -> dict:
        return {
            "sources": [s.model_dump(mode="json") for s in self.sources.values()],
            "items": [i.model_dump(mode="json") for i in self.items.values()],
            "events": [e.model_dump(mode="json") for e in self.events.values()],
            "event_items": [x.model_dump(mode="json") for x in self.links],
            "ai_outputs": [x.model_dump(mode="json") for x in self.outputs],
        }

    def _commit(self) -> None:
        text = json.dumps(self._snapshot(), ensure_ascii=False, indent=2)
        try:
            with locked_path(self.path):
                replace_text(self.path, text)
        except OSError as exc:
            raise StoreError(f"Could not write event store {self.path}: {exc}") from exc


def open_store(path: Path | str | None = None) -> JsonFileStore:
    """Open the JSON store at `path` or the configured DATA_PATH."""
    if path is None:
        from .config import get_settings

        path = get_settings().data_path
    return JsonFileStore(path)
