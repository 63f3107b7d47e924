"""
Canonical form of generated event summaries.

Model output is read as a stream of tagged lines (header / content / blank),
folded into named sections, repaired where sections are missing or malformed,
and written back in one fixed layout:

    Event Title:
    <title>

    Event Summary:
    <summary>

    Lenses:
    - <Lens>:
      - <Source>

    Explanation:
    <sentence>

    Coverage Note:            (only when fewer than two sources)
    <fixed text>

Parsing never fails; anything unusable is replaced by "(missing)" or a
synthesized fallback. Canonicalizing canonical text returns it unchanged.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Union

from .lenses import LensName, match_lens_name

EVENT_TITLE = "Event Title"
EVENT_SUMMARY = "Event Summary"
LENSES = "Lenses"
EXPLANATION = "Explanation"
COVERAGE_NOTE = "Coverage Note"

SECTION_ORDER = (EVENT_TITLE, EVENT_SUMMARY, LENSES, EXPLANATION, COVERAGE_NOTE)

# Header spellings accepted from the model, mapped to their canonical section.
SECTION_ALIASES: Dict[str, str] = {
    "Event Title": EVENT_TITLE,
    "Event Summary": EVENT_SUMMARY,
    "Neutral Event Summary": EVENT_SUMMARY,
    "Lenses": LENSES,
    "Explanation": EXPLANATION,
    "Coverage Note": COVERAGE_NOTE,
}
# Read only when "Event Title" yields nothing; inside another section it is content.
FALLBACK_TITLE = "Title"

MISSING = "(missing)"
DEFAULT_COVERAGE_NOTE = (
    "This event is currently reported by a limited number of sources. "
    "Coverage may expand as more reports emerge."
)
SINGLE_SOURCE_EXPLANATION = "This report reflects the emphasis of a single available source."
MULTI_SOURCE_EXPLANATION = (
    "This report groups sources by what they emphasize most when describing the event."
)
LENS_EXPLANATIONS: Dict[LensName, str] = {
    LensName.POLICY: (
        "This report focuses on the official explanation emphasized in the available coverage."
    ),
    LensName.ECONOMIC: (
        "This report focuses on economic implications emphasized in the available coverage."
    ),
}

_HEADER_PATTERN = re.compile(r"^([^:]+):(.*)$")
_LENS_HEADER_PATTERN = re.compile(r"^-\s+(.+):\s*$")
_LENS_SOURCE_PATTERN = re.compile(r"^\s{2,}-\s+(.+)$")


# --- Tagged lines ---------------------------------------------------------


@dataclass(frozen=True)
class HeaderLine:
    section: str
    inline: str
    fallback: bool = False


@dataclass(frozen=True)
class ContentLine:
    text: str


@dataclass(frozen=True)
class BlankLine:
    pass


TaggedLine = Union[HeaderLine, ContentLine, BlankLine]


def _header_name(raw: str) -> str:
    # Tolerate markdown emphasis such as "**Event Title:**".
    return raw.strip().strip("*#").strip()


def _inline_value(raw_name: str, raw_value: str) -> str:
    value = raw_value.strip()
    # "**Event Title:** X" leaves the closing emphasis in front of the value.
    opening = len(raw_name.strip()) - len(raw_name.strip().lstrip("*"))
    while opening and value.startswith("*"):
        value = value[1:]
        opening -= 1
    value = value.strip()
    if len(value) > 4 and value.startswith("**") and value.endswith("**") and "**" not in value[2:-2]:
        value = value[2:-2].strip()
    return value


def tag_line(line: str) -> TaggedLine:
    """Classify one raw line of model output."""
    if not line.strip():
        return BlankLine()
    match = _HEADER_PATTERN.match(line)
    if match:
        name = _header_name(match.group(1))
        section = SECTION_ALIASES.get(name)
        if section or name == FALLBACK_TITLE:
            return HeaderLine(
                section=section or EVENT_TITLE,
                inline=_inline_value(match.group(1), match.group(2)),
                fallback=section is None,
            )
    return ContentLine(text=line.rstrip())


# --- Section extraction ---------------------------------------------------


@dataclass
class SummaryDocument:
    """Parsed sections of one generated summary; absent sections are None."""

    title: Optional[str] = None
    summary: Optional[str] = None
    lenses: Optional[str] = None
    explanation: Optional[str] = None
    coverage_note: Optional[str] = None


def parse_sections(text: str) -> Dict[str, Optional[str]]:
    """
    Fold tagged lines into section values.

    The first header of a section wins. Its inline text is the value when
    present; otherwise the following lines up to the next recognized header
    are joined and trimmed. A repeated header closes the section before it and
    its own content is dropped.

    A bare "Title:" line only supplies the title when "Event Title" yields
    nothing. Inside an open section it is ordinary content.
    """
    values: Dict[str, Optional[str]] = {name: None for name in SECTION_ORDER}
    values[FALLBACK_TITLE] = None
    seen: set[str] = set()
    current: Optional[str] = None
    buffer: List[str] = []

    def _close() -> None:
        if current is not None:
            values[current] = "\n".join(buffer).strip() or None

    for line in (text or "").splitlines():
        tagged = tag_line(line)
        if isinstance(tagged, HeaderLine) and tagged.fallback:
            if current is not None and current != FALLBACK_TITLE:
                buffer.append(line.rstrip())
                continue
            tagged = HeaderLine(section=FALLBACK_TITLE, inline=tagged.inline)
        if isinstance(tagged, HeaderLine):
            _close()
            current, buffer = None, []
            if tagged.section in seen:
                continue
            seen.add(tagged.section)
            if tagged.inline:
                values[tagged.section] = tagged.inline
            else:
                current = tagged.section
        elif current is not None:
            buffer.append(tagged.text if isinstance(tagged, ContentLine) else "")
    _close()

    fallback_title = values.pop(FALLBACK_TITLE)
    if values[EVENT_TITLE] is None:
        values[EVENT_TITLE] = fallback_title
    return values


def parse_summary(text: str) -> SummaryDocument:
    values = parse_sections(text)
    return SummaryDocument(
        title=values[EVENT_TITLE],
        summary=values[EVENT_SUMMARY],
        lenses=values[LENSES],
        explanation=values[EXPLANATION],
        coverage_note=values[COVERAGE_NOTE],
    )


# --- Lenses ---------------------------------------------------------------


@dataclass
class LensGroup:
    lens: LensName
    sources: List[str] = field(default_factory=list)


def parse_lens_groups(block: Optional[str]) -> List[LensGroup]:
    """
    Parse a Lenses block into non-empty groups.

    "- <Lens>:" opens a group; "  - <Source>" (two or more spaces of indent)
    adds a source to it. A source is kept only under the first lens it appears
    in. Lens names outside the catalogue count as straight reporting, and
    repeated lenses merge into one group.
    """
    groups: List[LensGroup] = []
    by_lens: Dict[LensName, LensGroup] = {}
    seen_sources: set[str] = set()
    current: Optional[LensGroup] = None

    for raw in (block or "").splitlines():
        line = raw.rstrip()
        if not line.strip():
            continue

        header = _LENS_HEADER_PATTERN.match(line)
        if header:
            lens = match_lens_name(header.group(1)) or LensName.STRAIGHT
            current = by_lens.get(lens)
            if current is None:
                current = LensGroup(lens=lens)
                by_lens[lens] = current
                groups.append(current)
            continue

        source_match = _LENS_SOURCE_PATTERN.match(line)
        if source_match and current is not None:
            source = source_match.group(1).strip()
            if not source or source in seen_sources:
                continue
            seen_sources.add(source)
            current.sources.append(source)

    return [g for g in groups if g.sources]


def render_lens_groups(groups: Sequence[LensGroup]) -> str:
    blocks = []
    for group in groups:
        lines = [f"- {group.lens.value}:"]
        lines.extend(f"  - {source}" for source in group.sources)
        blocks.append("\n".join(lines))
    return "\n\n".join(blocks)


def normalize_lenses(
    block: Optional[str],
    unique_sources: Sequence[str],
    inferred_lens: Optional[LensName] = None,
) -> str:
    """Return a well-formed Lenses block, synthesizing one when parsing finds nothing."""
    groups = parse_lens_groups(block)
    if not groups:
        if len(unique_sources) == 1:
            groups = [LensGroup(lens=inferred_lens or LensName.STRAIGHT, sources=[unique_sources[0]])]
        elif unique_sources:
            groups = [LensGroup(lens=LensName.STRAIGHT, sources=list(unique_sources))]
        else:
            return MISSING
    return render_lens_groups(groups)


# --- Explanation ----------------------------------------------------------


def fallback_explanation(source_count: int, inferred_lens: Optional[LensName] = None) -> str:
    if source_count >= 2:
        return MULTI_SOURCE_EXPLANATION
    if inferred_lens is not None and inferred_lens in LENS_EXPLANATIONS:
        return LENS_EXPLANATIONS[inferred_lens]
    return SINGLE_SOURCE_EXPLANATION


# --- Canonical output -----------------------------------------------------


def _unique(values: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(v.strip() for v in values if v and v.strip()))


def canonicalize_output(
    output_text: str,
    unique_sources: Sequence[str],
    inferred_lens: Optional[LensName] = None,
) -> str:
    """
    Rewrite generated text into the canonical summary document.

    `unique_sources` are the event's distinct source names in first-seen
    order; `inferred_lens` is used when the event has a single source and the
    model produced no usable Lenses block. The Coverage Note is emitted iff
    fewer than two sources exist and always carries the fixed text.
    """
    sources = _unique(unique_sources)
    doc = parse_summary(output_text)
    single_source = len(sources) < 2

    parts = [
        f"{EVENT_TITLE}:",
        (doc.title or MISSING).strip(),
        "",
        f"{EVENT_SUMMARY}:",
        (doc.summary or MISSING).strip(),
        "",
        f"{LENSES}:",
        normalize_lenses(doc.lenses, sources, inferred_lens),
        "",
        f"{EXPLANATION}:",
        (doc.explanation or fallback_explanation(len(sources), inferred_lens)).strip(),
    ]
    if single_source:
        parts.extend(["", f"{COVERAGE_NOTE}:", DEFAULT_COVERAGE_NOTE])
    return "\n".join(parts).strip()
