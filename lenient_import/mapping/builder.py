from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .aliases import FIELD_ALIASES
from .similarity import EXACT_SCORE, find_best_match

"""Field mapping builder.

Resolves raw sheet headers to canonical purchase-order fields. A header is
matched by exact (case-insensitive, trimmed) comparison against each field's
alias list, fields tried in alias-table order; the first hit wins. Headers
that match nothing are left out of the mapping; they are not an error.

With fuzzy=True, headers still unmapped after the exact pass are offered to
the similarity matcher against the aliases of fields not yet mapped.
"""

__all__ = [
    "MappingDetection",
    "build_mapping",
    "detect_mapping",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MappingDetection:
    mapping: dict[str, str]  # canonical field -> header
    scores: dict[str, float] = field(default_factory=dict)  # canonical field -> similarity (1.0 for exact)
    unmapped_headers: list[str] = field(default_factory=list)
    confidence: float = 0.0  # mapped headers / headers


def _exact_field(header: str, aliases: dict[str, list[str]]) -> str | None:
    needle = header.lower().strip()
    if not needle:
        return None
    for canonical, names in aliases.items():
        if any(needle == alias.lower() for alias in names):
            return canonical
    return None


def _fuzzy_field(
    header: str,
    aliases: dict[str, list[str]],
    taken: set[str],
) -> tuple[str, float] | None:
    owners: dict[str, str] = {}
    for canonical, names in aliases.items():
        if canonical in taken:
            continue
        for alias in names:
            owners.setdefault(alias, canonical)
    if not owners:
        return None
    result = find_best_match(header, list(owners))
    if result is None:
        return None
    return owners[result.match], result.similarity


def detect_mapping(
    headers: list[str],
    aliases: dict[str, list[str]] | None = None,
    *,
    fuzzy: bool = False,
) -> MappingDetection:
    table = aliases if aliases is not None else FIELD_ALIASES
    mapping: dict[str, str] = {}
    scores: dict[str, float] = {}
    unmapped: list[str] = []

    for header in headers:
        canonical = _exact_field(str(header), table)
        if canonical is None:
            unmapped.append(header)
            continue
        if canonical in mapping:
            # first header wins; the duplicate column is kept in raw data only
            logger.debug("header=%r also matches field=%s (already mapped to %r)", header, canonical, mapping[canonical])
            unmapped.append(header)
            continue
        mapping[canonical] = header
        scores[canonical] = EXACT_SCORE

    if fuzzy and unmapped:
        still_unmapped: list[str] = []
        for header in unmapped:
            hit = _fuzzy_field(str(header), table, set(mapping))
            if hit is None:
                still_unmapped.append(header)
                continue
            canonical, score = hit
            mapping[canonical] = header
            scores[canonical] = score
            logger.debug("fuzzy header=%r -> field=%s similarity=%.2f", header, canonical, score)
        unmapped = still_unmapped

    confidence = len(mapping) / len(headers) if headers else 0.0
    return MappingDetection(
        mapping=mapping,
        scores=scores,
        unmapped_headers=unmapped,
        confidence=confidence,
    )


def build_mapping(
    headers: list[str],
    aliases: dict[str, list[str]] | None = None,
    *,
    fuzzy: bool = False,
) -> dict[str, str]:
    """Canonical field -> header, for the headers that could be resolved."""
    return detect_mapping(headers, aliases, fuzzy=fuzzy).mapping
