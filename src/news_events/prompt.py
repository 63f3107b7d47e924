"""Prompt builders for event summaries and duplicate-source checks."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Sequence

from .canonical import DEFAULT_COVERAGE_NOTE
from .lenses import LensName

PROMPT_VERSION = "v2"
PROMPTS_DIR = Path(__file__).resolve().parent / "prompts"
ITEM_SEPARATOR = "\n\n---\n\n"


@dataclass
class InputNewsItem:
    source_name: str
    headline: str
    excerpt: Optional[str] = None
    timestamp: Optional[str] = None


def _load_prompt_file(filename: str) -> str:
    path = PROMPTS_DIR / filename
    return path.read_text(encoding="utf-8")


def unique_source_names(items: Sequence[InputNewsItem]) -> List[str]:
    """Distinct, non-blank source names in first-seen order."""
    names = (it.source_name.strip() for it in items)
    return list(dict.fromkeys(name for name in names if name))


def _format_item(item: InputNewsItem) -> str:
    return "\n".join(
        [
            f"Source name: {item.source_name}",
            f"Headline: {item.headline}",
            f"Short excerpt: {item.excerpt or ''}",
            f"Timestamp: {item.timestamp or ''}",
        ]
    )


def build_neutral_aggregation_prompt(items: Sequence[InputNewsItem]) -> str:
    template = _load_prompt_file("neutral_aggregation.txt")
    return template.format(
        lens_list="\n".join(f"  - {lens.value}" for lens in LensName),
        coverage_note=DEFAULT_COVERAGE_NOTE,
        unique_source_count=len(unique_source_names(items)),
        items=ITEM_SEPARATOR.join(_format_item(it) for it in items),
    ).strip()


def build_duplicate_check_prompt(source_name: str, titles: Sequence[str]) -> str:
    template = _load_prompt_file("duplicate_check.txt")
    return template.format(
        count=len(titles),
        source_name=source_name,
        headlines="\n".join(titles),
    ).strip()
