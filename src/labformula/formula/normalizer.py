"""Identifier normalization and fuzzy variable matching.

Variable names in laboratory tables are typed by hand, often in Turkish,
and formulas are typed by someone else. Matching therefore falls back
through progressively looser stages:

1. exact
2. case-insensitive
3. normalized (case, Turkish diacritics, whitespace, trailing commas)
4. substring containment of the normalized forms, either direction
5. token overlap of the normalized forms above a threshold
"""

import re
from collections.abc import Iterable

# Turkish letters folded to their ASCII counterparts. Upper-case forms are
# mapped directly so that str.lower() never sees "İ" (which it would turn
# into "i" plus a combining dot).
TURKISH_FOLD = str.maketrans(
    {
        "ı": "i",
        "İ": "i",
        "I": "i",
        "ğ": "g",
        "Ğ": "g",
        "ü": "u",
        "Ü": "u",
        "ş": "s",
        "Ş": "s",
        "ö": "o",
        "Ö": "o",
        "ç": "c",
        "Ç": "c",
    }
)

_WHITESPACE = re.compile(r"\s+")
_TRAILING_COMMAS = re.compile(r",+$")
_TOKEN_SPLIT = re.compile(r"[^0-9a-z]+")


def clean_variable_name(raw: str) -> str:
    """Trim a Variable column entry and drop trailing commas, keeping its case."""
    return _TRAILING_COMMAS.sub("", str(raw).strip()).strip()


def normalize(name: str) -> str:
    """
    Fold a variable name for fuzzy comparison.

    Args:
        name: Raw variable name

    Returns:
        Lower-case ASCII-folded name with single spaces and no trailing commas
    """
    folded = str(name).translate(TURKISH_FOLD).lower()
    folded = _WHITESPACE.sub(" ", folded).strip()
    return _TRAILING_COMMAS.sub("", folded).strip()


def tokenize(name: str, min_length: int = 3) -> set[str]:
    """Split a normalized name into alphanumeric tokens of at least min_length."""
    return {token for token in _TOKEN_SPLIT.split(normalize(name)) if len(token) >= min_length}


def token_overlap(a: str, b: str, min_length: int = 3) -> float:
    """
    Share of tokens two names have in common.

    The shared token count is divided by the larger token set, so
    "Toplam Fosfor" vs "Toplam Azot" scores 0.5.
    """
    tokens_a = tokenize(a, min_length)
    tokens_b = tokenize(b, min_length)
    if not tokens_a or not tokens_b:
        return 0.0
    return len(tokens_a & tokens_b) / max(len(tokens_a), len(tokens_b))


def match_variable(
    name: str,
    candidates: Iterable[str],
    threshold: float = 0.6,
    min_length: int = 3,
) -> str | None:
    """
    Find the candidate a formula identifier refers to.

    Stages run in order and the first stage with a hit wins; within a
    stage the first candidate in iteration order wins (the best score for
    the token overlap stage).

    Args:
        name: Identifier as written in the formula
        candidates: Known variable names
        threshold: Minimum token overlap ratio for the last stage
        min_length: Minimum token length for the last stage

    Returns:
        Matching candidate, or None
    """
    candidates = list(candidates)
    if not name or not candidates:
        return None

    if name in candidates:
        return name

    lowered = name.strip().lower()
    for candidate in candidates:
        if candidate.strip().lower() == lowered:
            return candidate

    normalized = normalize(name)
    if not normalized:
        return None
    normalized_candidates = [(candidate, normalize(candidate)) for candidate in candidates]

    for candidate, folded in normalized_candidates:
        if folded == normalized:
            return candidate

    for candidate, folded in normalized_candidates:
        if folded and (normalized in folded or folded in normalized):
            return candidate

    best: str | None = None
    best_score = 0.0
    for candidate, _ in normalized_candidates:
        score = token_overlap(name, candidate, min_length)
        if score >= threshold and score > best_score:
            best, best_score = candidate, score
    return best
