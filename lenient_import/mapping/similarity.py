from __future__ import annotations

from dataclasses import dataclass

"""Header similarity matching.

find_best_match() ranks candidate strings against a search term, in tiers
(first satisfied tier wins):

1. exact, case-insensitive and trimmed          -> 1.0
2. abbreviation table: term is a known synonym of concept K and a
   candidate contains the word K                 -> 0.95
3. substring containment either way             -> longer/shorter, capped at 0.9
4. Levenshtein similarity 1 - d / max(len)       -> accepted only above 0.7

Tiers 3 and 4 share a running best that starts at the threshold, so a fuzzy
score must beat any containment match already found.
"""

__all__ = [
    "SIMILARITY_THRESHOLD",
    "ABBREVIATIONS",
    "MatchResult",
    "levenshtein_distance",
    "calculate_similarity",
    "find_best_match",
]

SIMILARITY_THRESHOLD = 0.7
EXACT_SCORE = 1.0
ABBREVIATION_SCORE = 0.95
CONTAINMENT_CAP = 0.9

ABBREVIATIONS: dict[str, list[str]] = {
    "phone": ["phone", "tel", "mobile", "contact", "ph", "number", "no"],
    "email": ["email", "mail", "e-mail", "address"],
    "name": ["name", "nm", "customer name", "party name", "companyname"],
    "gst": ["gst", "gstn", "gst no", "gst number", "tax id"],
    "address": ["address", "addr", "location", "city", "place"],
    "date": ["date", "dt", "on"],
    "quantity": ["qty", "quantity", "qnty", "count", "nos"],
    "rate": ["rate", "price", "amt", "cost"],
    "amount": ["amount", "total", "amt", "value"],
}


@dataclass(frozen=True)
class MatchResult:
    match: str
    similarity: float


def levenshtein_distance(a: str, b: str) -> int:
    """Classic edit distance on lower-cased, trimmed strings."""
    a = a.lower().strip()
    b = b.lower().strip()
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(a) + 1))
    for i, cb in enumerate(b, start=1):
        current = [i]
        for j, ca in enumerate(a, start=1):
            cost = 0 if ca == cb else 1
            current.append(min(
                current[j - 1] + 1,  # insertion
                previous[j] + 1,  # deletion
                previous[j - 1] + cost,  # substitution
            ))
        previous = current
    return previous[-1]


def calculate_similarity(a: str, b: str) -> float:
    longest = max(len(a), len(b))
    if longest == 0:
        return EXACT_SCORE
    return 1 - levenshtein_distance(a, b) / longest


def find_best_match(search_term: str, candidates: list[str]) -> MatchResult | None:
    """Best candidate for search_term, or None when nothing clears the threshold."""
    term = search_term.lower().strip()
    if not term:
        return None

    for candidate in candidates:
        if candidate.lower().strip() == term:
            return MatchResult(candidate, EXACT_SCORE)

    for concept, synonyms in ABBREVIATIONS.items():
        if term in synonyms:
            for candidate in candidates:
                if concept in candidate.lower():
                    return MatchResult(candidate, ABBREVIATION_SCORE)

    best: str | None = None
    best_score = SIMILARITY_THRESHOLD

    for candidate in candidates:
        normalized = candidate.lower().strip()
        if not normalized:
            continue
        if normalized in term or term in normalized:
            ratio = max(len(term), len(normalized)) / min(len(term), len(normalized))
            # uncapped ratio is compared, so a later containing candidate replaces an earlier one
            if ratio > best_score:
                best, best_score = candidate, min(ratio, CONTAINMENT_CAP)

    for candidate in candidates:
        score = calculate_similarity(term, candidate.lower())
        if score > best_score:
            best, best_score = candidate, score

    return MatchResult(best, best_score) if best is not None else None
