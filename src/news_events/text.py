"""Headline normalization, tokenization and overlap scoring."""

from __future__ import annotations

import re
from typing import Iterable, List

STOPWORDS = frozenset(
    {
        "a", "an", "and", "are", "as", "at", "be", "by", "for", "from",
        "has", "have", "he", "her", "his", "i", "in", "into", "is", "it",
        "its", "may", "of", "on", "or", "our", "s", "she", "should", "that",
        "the", "their", "them", "there", "they", "this", "to", "was", "we",
        "were", "will", "with", "you", "your",
    }
)
MIN_TOKEN_LENGTH = 3

_WHITESPACE = re.compile(r"\s+")
_NON_ALNUM = re.compile(r"[^a-z0-9\s]")


def normalize_text(value: str) -> str:
    """Lower-case, strip punctuation and collapse whitespace."""
    text = _WHITESPACE.sub(" ", (value or "").lower())
    text = _NON_ALNUM.sub(" ", text)
    return _WHITESPACE.sub(" ", text).strip()


def tokenize(value: str) -> List[str]:
    """
    Return the comparable tokens of a headline, in order.

    Tokens shorter than three characters and common English function words are
    dropped, so "The CBN raises rates" becomes ["cbn", "raises", "rates"].
    """
    normalized = normalize_text(value)
    if not normalized:
        return []
    return [
        token
        for token in normalized.split(" ")
        if len(token) >= MIN_TOKEN_LENGTH and token not in STOPWORDS
    ]


def jaccard_similarity(a_tokens: Iterable[str], b_tokens: Iterable[str]) -> float:
    """Intersection over union of two token sets; two empty sets are identical."""
    a = set(a_tokens)
    b = set(b_tokens)
    if not a and not b:
        return 1.0
    if not a or not b:
        return 0.0
    intersection = len(a & b)
    union = len(a) + len(b) - intersection
    return intersection / union if union else 0.0


def stable_hash(value: str) -> str:
    """Non-cryptographic FNV-1a (32-bit) hash used for item dedup keys."""
    hash_value = 0x811C9DC5
    for ch in value:
        hash_value ^= ord(ch)
        hash_value = (hash_value * 0x01000193) & 0xFFFFFFFF
    return f"{hash_value:08x}"
