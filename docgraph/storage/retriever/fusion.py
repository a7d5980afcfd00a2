"""
Result Fusion
=============

Turns the concatenated branch outputs into the final ranked list:

1. drop results without text or source
2. normalize every raw score onto [0, 1]
3. stable sort by normalized score, descending
4. deduplicate on (source, first N characters of text), first occurrence wins
5. drop results under the quality floor
6. truncate to the limit

Truncation comes last so deduplication sees every candidate.
"""

import math
import numbers
from collections.abc import Mapping
from typing import Any, List, Tuple

from docgraph.storage.retriever.models import RetrieverConfig, SearchResult


def _clamp(value: float) -> float:
    return min(1.0, max(0.0, value))


def normalize_score(raw: Any, neutral: float = 0.5) -> float:
    """
    Map a raw score onto [0, 1].

    - real numbers are clamped (NaN -> neutral)
    - mappings resolve through "score", then "value", then "low"/"high"
      (the last two are percentages, divided by 100)
    - non-empty lists/tuples use their first element
    - anything else (bools, strings, None) -> neutral
    """
    if isinstance(raw, bool):
        return neutral

    if isinstance(raw, numbers.Real):
        value = float(raw)
        return neutral if math.isnan(value) else _clamp(value)

    if isinstance(raw, Mapping):
        for key in ("score", "value"):
            if key in raw:
                return normalize_score(raw[key], neutral)
        for key in ("low", "high"):
            value = raw.get(key)
            if isinstance(value, numbers.Real) and not isinstance(value, bool):
                value = float(value)
                return neutral if math.isnan(value) else _clamp(value / 100)
        return neutral

    if isinstance(raw, (list, tuple)) and raw:
        return normalize_score(raw[0], neutral)

    return neutral


def dedup_key(result: SearchResult, prefix_length: int = 100) -> Tuple[str, str]:
    return (result.source, result.text[:prefix_length])


def _is_valid(result: Any) -> bool:
    return (
        isinstance(result, SearchResult)
        and isinstance(result.text, str)
        and bool(result.text.strip())
        and bool(result.source)
    )


def fuse(results: List[SearchResult], limit: int, config: RetrieverConfig) -> List[SearchResult]:
    """
    Normalize, rank, deduplicate, filter and truncate.

    Args:
        results: Vector results first, then lexical (input order breaks ties)
        limit: Maximum results returned
        config: Retriever configuration

    Returns:
        Results with ``normalized_score`` set, best first
    """
    candidates = [r for r in results if _is_valid(r)]

    for result in candidates:
        result.normalized_score = normalize_score(result.score, config.neutral_score)

    # sorted() is stable, so ties keep branch order
    ranked = sorted(candidates, key=lambda r: r.normalized_score, reverse=True)

    seen = set()
    unique = []
    for result in ranked:
        key = dedup_key(result, config.dedup_prefix_length)
        if key in seen:
            continue
        seen.add(key)
        unique.append(result)

    kept = [r for r in unique if r.normalized_score >= config.quality_floor]
    return kept[:max(0, limit)]


__all__ = ["normalize_score", "dedup_key", "fuse"]
