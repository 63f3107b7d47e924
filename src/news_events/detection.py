"""
Event scoring: breaking-news score and duplicate-source detection.

`breaking_score` is a pure function of three observations so it can be tested
without a store; the store-facing wrappers load those observations, persist
the outcome and return it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional

from .exceptions import EventNotFoundError, OracleError, OracleUnavailableError
from .log import get_logger
from .models import LinkedItem
from .oracle import Oracle, build_duplicate_oracle
from .prompt import build_duplicate_check_prompt
from .store import EventStore

logger = get_logger(__name__)

BREAKING_THRESHOLD = 50

# (minimum, points) buckets, checked top-down.
SOURCE_BUCKETS = ((5, 40), (3, 30), (2, 15))
ITEM_BUCKETS = ((10, 30), (5, 20), (3, 10))
# (maximum elapsed hours, points) buckets.
URGENCY_BUCKETS = ((1.0, 30), (2.0, 20), (6.0, 10))


@dataclass
class AnalysisResult:
    analyzed: int
    breaking: int
    duplicates: int


def _points_at_least(value: float, buckets) -> int:
    for minimum, points in buckets:
        if value >= minimum:
            return points
    return 0


def _points_at_most(value: float, buckets) -> int:
    for maximum, points in buckets:
        if value <= maximum:
            return points
    return 0


def breaking_score(distinct_sources: int, item_count: int, elapsed_hours: float) -> int:
    """Score in [0, 100]: source diversity + item volume + coverage speed."""
    return (
        _points_at_least(distinct_sources, SOURCE_BUCKETS)
        + _points_at_least(item_count, ITEM_BUCKETS)
        + _points_at_most(elapsed_hours, URGENCY_BUCKETS)
    )


def is_breaking(score: int) -> bool:
    return score >= BREAKING_THRESHOLD


def _require_links(store: EventStore, event_id: str) -> List[LinkedItem]:
    if store.get_event(event_id) is None:
        raise EventNotFoundError(event_id)
    return store.event_items(event_id)


def calculate_breaking_score(store: EventStore, event_id: str) -> int:
    """Score an event from its links and persist `breaking_score`/`is_breaking`."""
    linked = _require_links(store, event_id)
    if not linked:
        store.update_event(event_id, breaking_score=0, is_breaking=False)
        return 0

    created = sorted(entry.link.created_at for entry in linked)
    elapsed_hours = (created[-1] - created[0]).total_seconds() / 3600
    distinct_sources = len({entry.source.name for entry in linked})

    score = breaking_score(distinct_sources, len(linked), elapsed_hours)
    store.update_event(event_id, breaking_score=score, is_breaking=is_breaking(score))
    return score


def _titles_by_source(linked: List[LinkedItem]) -> Dict[str, List[str]]:
    grouped: Dict[str, List[str]] = {}
    for entry in linked:
        grouped.setdefault(entry.source.name, []).append(entry.item.title)
    return grouped


def detect_duplicate_sources(
    store: EventStore, event_id: str, oracle: Optional[Oracle]
) -> bool:
    """
    Flag events where one source published several headlines about the same thing.

    Only sources with more than one linked item are checked, in first-link
    order. A missing oracle or a failing call counts as a duplicate and ends
    the check; so does an answer starting with YES. The flag is persisted.
    """
    linked = _require_links(store, event_id)
    has_duplicates = False

    for source_name, titles in _titles_by_source(linked).items():
        if len(titles) < 2:
            continue
        if oracle is None:
            logger.info("duplicate_check_no_oracle", event_id=event_id, source=source_name)
            has_duplicates = True
            break

        prompt = build_duplicate_check_prompt(source_name, titles)
        try:
            answer = oracle.generate(prompt)
        except OracleError as exc:
            logger.warning(
                "duplicate_check_failed",
                event_id=event_id,
                source=source_name,
                error=str(exc),
            )
            has_duplicates = True
            break

        if answer.strip().upper().startswith("YES"):
            has_duplicates = True
            break

    store.update_event(event_id, has_duplicates=has_duplicates)
    return has_duplicates


def _default_duplicate_oracle() -> Optional[Oracle]:
    try:
        return build_duplicate_oracle()
    except OracleUnavailableError as exc:
        logger.info("duplicate_oracle_unavailable", reason=str(exc))
        return None


_UNSET = object()


def analyze_recent_events(
    store: EventStore, limit: int = 20, *, oracle=_UNSET
) -> AnalysisResult:
    """
    Score the `limit` most recently updated events one after another.

    `oracle` defaults to the configured duplicate-check backend, or None when
    no credential is set. Oracle failures are absorbed per event; store errors
    propagate.
    """
    if oracle is _UNSET:
        oracle = _default_duplicate_oracle()

    events = store.recent_events(limit)
    breaking = 0
    duplicates = 0
    for event in events:
        score = calculate_breaking_score(store, event.id)
        if is_breaking(score):
            breaking += 1
        if detect_duplicate_sources(store, event.id, oracle):
            duplicates += 1

    result = AnalysisResult(analyzed=len(events), breaking=breaking, duplicates=duplicates)
    logger.info(
        "analysis_run_complete",
        analyzed=result.analyzed,
        breaking=result.breaking,
        duplicates=result.duplicates,
    )
    return result
