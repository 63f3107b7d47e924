"""Store fetched feed entries as items, skipping ones already seen."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Iterable, Optional

from .exceptions import ConfigurationError, DuplicateItemError
from .log import get_logger
from .models import FeedEntry, Item, Source, utcnow
from .store import EventStore
from .text import stable_hash

logger = get_logger(__name__)


@dataclass
class IngestResult:
    source: str
    created: int
    skipped: int
    total: int


def upsert_source(store: EventStore, name: str, feed_url: Optional[str] = None) -> Source:
    name = (name or "").strip()
    if not name:
        raise ConfigurationError("Source name is required.")
    return store.upsert_source(name, feed_url)


def item_hash(source_name: str, entry: FeedEntry) -> str:
    """Dedup key built from source, title, url and publication time."""
    published = entry.published_at.isoformat() if entry.published_at else ""
    return stable_hash("|".join([source_name, entry.title, entry.url or "", published]))


def ingest_feed_entries(
    store: EventStore,
    source_name: str,
    entries: Iterable[FeedEntry],
    *,
    feed_url: Optional[str] = None,
    fetched_at: Optional[datetime] = None,
) -> IngestResult:
    """
    Insert each entry as an item of `source_name`.

    Entries with a blank title or a hash already in the store count as
    skipped. Other store errors propagate.
    """
    source = upsert_source(store, source_name, feed_url)
    fetched_at = fetched_at or utcnow()

    created = skipped = total = 0
    for entry in entries:
        total += 1
        title = entry.title.strip()
        if not title:
            skipped += 1
            continue
        item = Item(
            source_id=source.id,
            title=title,
            excerpt=entry.excerpt,
            body=entry.body,
            url=entry.url,
            published_at=entry.published_at,
            fetched_at=fetched_at,
            hash=item_hash(source.name, entry.model_copy(update={"title": title})),
        )
        try:
            store.add_item(item)
        except DuplicateItemError:
            skipped += 1
            continue
        created += 1

    result = IngestResult(source=source.name, created=created, skipped=skipped, total=total)
    logger.info(
        "ingest_complete",
        source=result.source,
        created=result.created,
        skipped=result.skipped,
        total=result.total,
    )
    return result
