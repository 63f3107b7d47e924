"""
Event summary generation.

Pipeline per event:
- load linked items (most recent N links)
- build the neutral aggregation prompt
- call the summary oracle
- canonicalize the text and append it as the event's newest output
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

from .canonical import canonicalize_output
from .config import Settings, get_settings
from .exceptions import AIDisabledError, EventNotFoundError, OracleError
from .lenses import LensName, infer_lens_for_single_source
from .log import get_logger
from .models import EventAiOutput, LinkedItem
from .oracle import Oracle, build_summary_oracle
from .prompt import (
    PROMPT_VERSION,
    InputNewsItem,
    build_neutral_aggregation_prompt,
    unique_source_names,
)
from .store import EventStore

logger = get_logger(__name__)

MAX_SOURCE_NAME_CHARS = 80
ELLIPSIS = "…"


@dataclass
class AutoSummaryResult:
    processed: int
    summarized: int
    skipped: int
    errors: int


def truncate(text: Optional[str], max_chars: int) -> str:
    """Trim `text` to at most `max_chars` characters, marking cuts with an ellipsis."""
    value = (text or "").strip()
    if len(value) <= max_chars:
        return value
    return value[: max(0, max_chars - 1)].rstrip() + ELLIPSIS


def build_input_items(linked: List[LinkedItem], settings: Settings) -> List[InputNewsItem]:
    """Prompt inputs for the most recently linked items, in link order."""
    max_items = settings.ai_max_event_items
    if max_items > 0 and len(linked) > max_items:
        linked = linked[-max_items:]
    return [
        InputNewsItem(
            source_name=truncate(entry.source.name, MAX_SOURCE_NAME_CHARS),
            headline=truncate(entry.item.title, settings.ai_max_headline_chars),
            excerpt=truncate(entry.item.excerpt, settings.ai_max_excerpt_chars),
            timestamp=entry.item.effective_at.isoformat(),
        )
        for entry in linked
    ]


def _inferred_lens(items: List[InputNewsItem], sources: List[str]) -> Optional[LensName]:
    if len(sources) >= 2:
        return None
    return infer_lens_for_single_source(f"{it.headline} {it.excerpt or ''}" for it in items)


def generate_event_summary_with_ollama(
    store: EventStore,
    event_id: str,
    *,
    oracle: Optional[Oracle] = None,
    settings: Optional[Settings] = None,
) -> EventAiOutput:
    """
    Generate, canonicalize and store a summary for one event.

    Raises AIDisabledError when AI_DISABLED is set, EventNotFoundError for an
    unknown id and OracleError when the backend fails.
    """
    settings = settings or get_settings()
    if settings.ai_disabled:
        raise AIDisabledError("AI is disabled (AI_DISABLED=1)")

    if store.get_event(event_id) is None:
        raise EventNotFoundError(event_id)

    items = build_input_items(store.event_items(event_id), settings)
    sources = unique_source_names(items)
    inferred = _inferred_lens(items, sources)

    oracle = oracle or build_summary_oracle(settings)
    prompt = build_neutral_aggregation_prompt(items)
    raw = oracle.generate(prompt)
    output_text = canonicalize_output(raw, sources, inferred)

    saved = store.add_ai_output(event_id, oracle.model, PROMPT_VERSION, output_text)
    logger.info(
        "event_summary_generated",
        event_id=event_id,
        model=oracle.model,
        items=len(items),
        sources=len(sources),
    )
    return saved


def auto_summarize_events(
    store: EventStore,
    max_events: int = 20,
    only_without_summary: bool = True,
    *,
    oracle: Optional[Oracle] = None,
    settings: Optional[Settings] = None,
) -> AutoSummaryResult:
    """
    Summarize recently updated events in one pass.

    With `only_without_summary` the candidates are the most recent events that
    have no output yet; otherwise the most recent events are all regenerated.
    Events without linked items are skipped. Oracle failures are counted and
    logged and do not stop the pass.
    """
    settings = settings or get_settings()
    if settings.ai_disabled:
        raise AIDisabledError("AI is disabled (AI_DISABLED=1)")

    events = store.recent_events(max_events, without_output=only_without_summary)

    oracle = oracle or build_summary_oracle(settings)
    summarized = skipped = errors = 0
    for event in events:
        if event.item_count == 0:
            skipped += 1
            continue
        try:
            generate_event_summary_with_ollama(store, event.id, oracle=oracle, settings=settings)
        except OracleError as exc:
            errors += 1
            logger.warning("event_summary_failed", event_id=event.id, error=str(exc))
            continue
        summarized += 1

    result = AutoSummaryResult(
        processed=len(events), summarized=summarized, skipped=skipped, errors=errors
    )
    logger.info(
        "auto_summarize_complete",
        processed=result.processed,
        summarized=result.summarized,
        skipped=result.skipped,
        errors=result.errors,
    )
    return result
