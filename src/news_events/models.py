"""Data models for sources, items, events and generated summaries."""

from datetime import datetime, timezone
from typing import Annotated, Optional
from uuid import uuid4

from pydantic import AfterValidator, BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    return uuid4().hex


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive timestamps as UTC so they compare with aware ones."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


UtcDatetime = Annotated[datetime, AfterValidator(as_utc)]


class FeedEntry(BaseModel):
    """One headline as handed over by the feed fetcher."""

    title: str
    url: Optional[str] = None
    published_at: Optional[UtcDatetime] = Field(
        None, description="Publication timestamp; optional if the feed omits it."
    )
    excerpt: Optional[str] = None
    body: Optional[str] = None


class Source(BaseModel):
    """A named publisher; created on first sight and never deleted."""

    id: str = Field(default_factory=new_id)
    name: str
    feed_url: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow)


class Item(BaseModel):
    """One ingested headline."""

    id: str = Field(default_factory=new_id)
    source_id: str
    title: str
    excerpt: Optional[str] = None
    body: Optional[str] = None
    url: Optional[str] = None
    published_at: Optional[UtcDatetime] = None
    fetched_at: UtcDatetime = Field(default_factory=utcnow)
    hash: str = Field(..., description="Dedup key, unique across the store.")

    @property
    def effective_at(self) -> datetime:
        return self.published_at or self.fetched_at


class Event(BaseModel):
    """A cluster of items believed to describe one happening."""

    id: str = Field(default_factory=new_id)
    start_at: Optional[UtcDatetime] = None
    end_at: Optional[UtcDatetime] = None
    item_count: int = 0
    is_breaking: bool = False
    breaking_score: int = 0
    has_duplicates: bool = False
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    @property
    def reference_time(self) -> Optional[datetime]:
        """Timestamp used to decide whether an item is close enough to this event."""
        return self.end_at or self.start_at


class EventItem(BaseModel):
    """Link between one event and one item; immutable once created."""

    id: str = Field(default_factory=new_id)
    event_id: str
    item_id: str
    similarity: float
    created_at: datetime = Field(default_factory=utcnow)


class EventAiOutput(BaseModel):
    """One canonical summary document generated for an event."""

    id: str = Field(default_factory=new_id)
    event_id: str
    model: str
    prompt_version: str
    output_text: str
    created_at: datetime = Field(default_factory=utcnow)


class LinkedItem(BaseModel):
    """Read view of an event link together with its item and source."""

    link: EventItem
    item: Item
    source: Source
