"""Lens catalogue, lens-name matching and keyword inference for single-source events."""

from __future__ import annotations

import re
from enum import Enum
from typing import Dict, Iterable, Optional, Tuple


class LensName(str, Enum):
    POLICY = "Policy / Official Statements"
    ECONOMIC = "Economic Impact"
    PUBLIC_REACTION = "Public Reaction / Social Impact"
    REGIONAL = "Regional or Community Focus"
    INVESTIGATIVE = "Investigative / Accountability Focus"
    STRAIGHT = "Straight Reporting"


# Case-insensitive keyword lists per lens. Dict order is the tie-break
# precedence: Policy > Economic > Investigative > Public Reaction > Regional.
LENS_KEYWORDS: Dict[LensName, Tuple[str, ...]] = {
    LensName.POLICY: (
        "said",
        "statement",
        "announced",
        "according",
        "attributed",
        "blamed",
        "explained",
        "minister",
        "government",
        "agency",
        "commission",
        "operator",
        "spokesperson",
        "niso",
    ),
    LensName.ECONOMIC: (
        "price",
        "market",
        "inflation",
        "naira",
        "economy",
        "economic",
        "business",
        "investors",
        "trade",
        "tariff",
    ),
    LensName.INVESTIGATIVE: (
        "investigation",
        "probe",
        "audit",
        "corruption",
        "fraud",
        "accountability",
    ),
    LensName.PUBLIC_REACTION: (
        "protest",
        "outrage",
        "anger",
        "residents",
        "students",
        "citizens",
        "social media",
    ),
    LensName.REGIONAL: (
        "state",
        "community",
        "local",
        "lagos",
        "abuja",
        "kano",
        "rivers",
        "kaduna",
        "enugu",
    ),
}

_LENS_KEY_PATTERN = re.compile(r"[^a-z0-9]+")


def _lens_key(name: str) -> str:
    return _LENS_KEY_PATTERN.sub("", name.lower())


_LENS_BY_KEY: Dict[str, LensName] = {_lens_key(lens.value): lens for lens in LensName}


def match_lens_name(raw: str) -> Optional[LensName]:
    """
    Map a lens header written by the model onto the catalogue.

    Case, spacing and punctuation are ignored, so "policy/official statements"
    matches `LensName.POLICY`. Returns None for names outside the catalogue.
    """
    return _LENS_BY_KEY.get(_lens_key(raw))


def lens_scores(text: str) -> Dict[LensName, int]:
    """Count how many of each lens's keywords appear in `text`."""
    lowered = text.lower()
    return {
        lens: sum(1 for kw in keywords if kw in lowered)
        for lens, keywords in LENS_KEYWORDS.items()
    }


def infer_lens_for_single_source(texts: Iterable[str]) -> LensName:
    """
    Pick the dominant lens for an event covered by one source.

    `texts` are the headline/excerpt strings of the event's items. The lens
    with the most keyword hits wins; ties go to the earlier lens in
    LENS_KEYWORDS order; no hits at all means straight reporting.
    """
    scores = lens_scores(" ".join(t for t in texts if t))
    best, best_score = LensName.STRAIGHT, 0
    for lens in LENS_KEYWORDS:
        if scores[lens] > best_score:
            best, best_score = lens, scores[lens]
    return best
