"""
Online clustering of recent items into events.

A single greedy pass: each unlinked item joins the open event whose recent
headlines overlap it most, or seeds a new event when nothing clears the
similarity threshold. Items linked in earlier runs are never reconsidered, so
the pass is safe to re-run on a schedule.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from .config import get_settings
from .log import get_logger
from .models import Event, Item, utcnow
from .store import EventStore
from .text import jaccard_similarity, tokenize

logger = get_logger(__name__)


@dataclass
class GroupingOptions:
    hours_window: int = 48
    similarity_threshold: float = 0.42
    max_items_to_consider: int = 200
    max_open_events: int = 120
    event_sample_size: int = 6

    @classmethod
    def from_settings(cls) -> "GroupingOptions":
        settings = get_settings()
        return cls(
            hours_window=settings.group_hours_window,
            similarity_threshold=settings.group_similarity_threshold,
            max_items_to_consider=settings.group_max_items,
            max_open_events=settings.group_max_open_events,
            event_sample_size=settings.group_sample_size,
        )


@dataclass
class GroupingResult:
    created_events: int
    linked_items: int
    considered_items: int


@dataclass
class _OpenEvent:
    """In-run view of an open event and the token sets of its sampled items."""

    event: Event
    sample: List[List[str]]


def _within_hours(a: Optional[datetime], b: Optional[datetime], hours: int) -> bool:
    if a is None or b is None:
        return True
    return abs(a - b) <= timedelta(hours=hours)


def _best_match(
    tokens: List[str], item: Item, open_events: List[_OpenEvent], hours_window: int
) -> tuple[Optional[_OpenEvent], float]:
    best: Optional[_OpenEvent] = None
    best_score = 0.0
    for candidate in open_events:
        if not _within_hours(item.effective_at, candidate.event.reference_time, hours_window):
            continue
        local_best = max(
            (jaccard_similarity(tokens, other) for other in candidate.sample), default=0.0
        )
        if local_best > best_score:
            best_score = local_best
            best = candidate
    return best, best_score


def group_recent_items_into_events(
    store: EventStore,
    options: Optional[GroupingOptions] = None,
    *,
    now: Optional[datetime] = None,
) -> GroupingResult:
    """
    Assign recent unlinked items to open events, creating events as needed.

    Storage errors propagate; links written before the failure stay in place
    and the remaining items are picked up by the next run.
    """
    opts = options or GroupingOptions.from_settings()
    now = now or utcnow()

    items = store.recent_items(opts.max_items_to_consider)
    cutoff = now - timedelta(hours=opts.hours_window)
    open_events = [
        _OpenEvent(
            event=event,
            sample=[tokenize(it.title) for it in store.event_sample(event.id, opts.event_sample_size)],
        )
        for event in store.open_events(cutoff, opts.max_open_events)
    ]
    linked_ids = store.linked_item_ids(it.id for it in items)

    created_events = 0
    linked_items = 0
    deferred = 0

    for item in items:
        if item.id in linked_ids:
            continue

        tokens = tokenize(item.title)
        if not tokens:
            deferred += 1
            continue

        target, score = _best_match(tokens, item, open_events, opts.hours_window)
        if target is None or score < opts.similarity_threshold:
            event = store.create_event(item.effective_at, item.effective_at)
            target = _OpenEvent(event=event, sample=[])
            open_events.insert(0, target)
            score = 1.0
            created_events += 1

        target.event = store.attach_item(target.event.id, item, score)
        target.sample.insert(0, tokens)
        del target.sample[opts.event_sample_size :]

        linked_ids.add(item.id)
        linked_items += 1

    result = GroupingResult(
        created_events=created_events,
        linked_items=linked_items,
        considered_items=len(items),
    )
    logger.info(
        "grouping_run_complete",
        created_events=result.created_events,
        linked_items=result.linked_items,
        considered_items=result.considered_items,
        deferred_items=deferred,
        open_events=len(open_events),
    )
    return result
