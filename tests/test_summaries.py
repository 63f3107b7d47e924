import pytest

from news_events.canonical import DEFAULT_COVERAGE_NOTE, parse_summary
from news_events.config import Settings
from news_events.exceptions import AIDisabledError, EventNotFoundError, OracleError
from news_events.prompt import PROMPT_VERSION
from news_events.summaries import (
    auto_summarize_events,
    generate_event_summary_with_ollama,
    truncate,
)

from conftest import FakeOracle

REPLY = """Event Title: Residents protest fuel price hike
Event Summary: Residents in Ikeja protested a fuel price increase on Monday.
Lenses:
Explanation:
"""


def _event(store, clock, add_item, entries):
    event = store.create_event(clock(), clock())
    for idx, (source, title) in enumerate(entries):
        store.attach_item(event.id, add_item(source, title, minutes_ago=idx), 1.0)
    return event


def test_truncate_marks_cut_text():
    assert truncate("  Short headline ", 180) == "Short headline"
    assert truncate("abcdef", 4) == "abc…"
    assert truncate("abc def", 5) == "abc…"
    assert truncate(None, 10) == ""


def test_generate_stores_canonical_single_source_summary(store, clock, add_item):
    event = _event(store, clock, add_item, [("Punch", "Residents protest fuel price hike")])
    oracle = FakeOracle([REPLY], model="llama3.2:latest")

    output = generate_event_summary_with_ollama(store, event.id, oracle=oracle, settings=Settings())

    assert output.model == "llama3.2:latest"
    assert output.prompt_version == PROMPT_VERSION == "v2"
    assert store.ai_outputs(event.id) == [output]

    doc = parse_summary(output.output_text)
    assert doc.title == "Residents protest fuel price hike"
    assert doc.lenses == "- Public Reaction / Social Impact:\n  - Punch"
    assert "single available source" in doc.explanation
    assert doc.coverage_note == DEFAULT_COVERAGE_NOTE

    (prompt,) = oracle.prompts
    assert "Source name: Punch" in prompt
    assert "Headline: Residents protest fuel price hike" in prompt
    assert "Unique sources: 1" in prompt
    assert "  - Investigative / Accountability Focus" in prompt


def test_generate_sends_only_most_recent_items(store, clock, add_item):
    entries = [("Punch", f"Flood update number {n:02d}") for n in range(14)]
    event = _event(store, clock, add_item, entries)
    oracle = FakeOracle([REPLY])

    generate_event_summary_with_ollama(
        store, event.id, oracle=oracle, settings=Settings(ai_max_event_items=12)
    )

    prompt = oracle.prompts[0]
    assert prompt.count("Source name:") == 12
    assert "number 00" not in prompt
    assert "number 01" not in prompt
    assert "number 13" in prompt


def test_generate_truncates_long_headlines(store, clock, add_item):
    event = _event(store, clock, add_item, [("Punch", "Kano " * 60)])
    oracle = FakeOracle([REPLY])

    generate_event_summary_with_ollama(store, event.id, oracle=oracle, settings=Settings())

    headline = next(
        line for line in oracle.prompts[0].splitlines() if line.startswith("Headline: ")
    )
    assert len(headline) == len("Headline: ") + 180
    assert headline.endswith("…")


def test_generate_respects_ai_disabled(store, clock, add_item, monkeypatch):
    event = _event(store, clock, add_item, [("Punch", "CBN raises rates")])
    monkeypatch.setenv("AI_DISABLED", "1")
    oracle = FakeOracle([REPLY])

    with pytest.raises(AIDisabledError):
        generate_event_summary_with_ollama(store, event.id, oracle=oracle)
    assert oracle.prompts == []


def test_generate_unknown_event(store):
    with pytest.raises(EventNotFoundError, match="Event not found: nope"):
        generate_event_summary_with_ollama(store, "nope", oracle=FakeOracle([REPLY]))


def test_generate_propagates_oracle_error(store, clock, add_item):
    event = _event(store, clock, add_item, [("Punch", "CBN raises rates")])
    oracle = FakeOracle(error=OracleError("Ollama request timed out after 60000ms"))

    with pytest.raises(OracleError, match="timed out"):
        generate_event_summary_with_ollama(store, event.id, oracle=oracle, settings=Settings())
    assert store.ai_outputs(event.id) == []


class SelectiveOracle(FakeOracle):
    """Fails for prompts mentioning `poison`."""

    def __init__(self, poison):
        super().__init__([REPLY])
        self.poison = poison

    def generate(self, prompt):
        if self.poison in prompt:
            self.prompts.append(prompt)
            raise OracleError("Ollama request failed: 500")
        return super().generate(prompt)


def test_auto_summarize_isolates_failures(store, clock, add_item):
    good = _event(store, clock, add_item, [("Punch", "CBN raises rates")])
    clock.advance(minutes=1)
    bad = _event(store, clock, add_item, [("Guardian", "Flooding hits Kano")])
    clock.advance(minutes=1)
    store.create_event(clock(), clock())

    result = auto_summarize_events(
        store, max_events=10, oracle=SelectiveOracle("Kano"), settings=Settings()
    )

    assert (result.processed, result.summarized, result.skipped, result.errors) == (3, 1, 1, 1)
    assert len(store.ai_outputs(good.id)) == 1
    assert store.ai_outputs(bad.id) == []


def test_auto_summarize_skips_events_with_summaries_unless_all(store, clock, add_item):
    event = _event(store, clock, add_item, [("Punch", "CBN raises rates")])
    oracle = FakeOracle([REPLY])

    first = auto_summarize_events(store, oracle=oracle, settings=Settings())
    second = auto_summarize_events(store, oracle=oracle, settings=Settings())
    regenerated = auto_summarize_events(
        store, only_without_summary=False, oracle=oracle, settings=Settings()
    )

    assert first.summarized == 1
    assert second.processed == 0
    assert regenerated.summarized == 1
    assert len(store.ai_outputs(event.id)) == 2
