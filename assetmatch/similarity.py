"""
Field Similarity Features.

Responsibilities:
- Compute character-level (edit distance) and word-level (token overlap)
  similarity between two already-normalized strings.
- Detect shared street numbers for address comparisons.

Non-Responsibilities:
- No normalization (callers pass canonical forms).
- No weighting logic.

Invariant:
Every similarity lies in [0, 1]; the numeric bonus is a flat add-on and
is not bounded here.
"""

import re

from rapidfuzz.distance import Levenshtein

NUMERIC_BONUS = 0.1

_DIGITS_RE = re.compile(r"\d+")


def edit_distance(a: str, b: str) -> int:
    """Unit-cost insert/delete/substitute distance."""
    return Levenshtein.distance(a or "", b or "")


def edit_similarity(a: str, b: str) -> float:
    a = a or ""
    b = b or ""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    if not a or not b:
        return 0.0
    return 1.0 - edit_distance(a, b) / longest


def tokens(s: str) -> set[str]:
    return set((s or "").split())


def token_overlap(a: str, b: str) -> float:
    """Share of a's unique tokens found in b.

    Directional: a short query fully contained in a longer candidate
    scores 1.0.
    """
    query = tokens(a)
    if not query:
        return 0.0
    return len(query & tokens(b)) / max(len(query), 1)


def numeric_bonus(a: str, b: str) -> float:
    theirs = set(_DIGITS_RE.findall(b or ""))
    if not theirs:
        return 0.0
    for number in _DIGITS_RE.findall(a or ""):
        if number in theirs:
            return NUMERIC_BONUS
    return 0.0
