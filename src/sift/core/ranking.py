"""
Aggregation and final ranking of retriever candidates.

Everything here is a pure function of its arguments: the same candidates,
query, "now" and weights always produce the same ranked list.
"""

from datetime import datetime
from typing import Iterable, Optional, Sequence

from sift.core.scoring import clamp_score
from sift.models.schema import RankingWeights, ResultKind, SearchResult

SECONDS_PER_DAY = 86400.0

DEFAULT_WEIGHTS = RankingWeights()


def deduplicate(candidates: Iterable[SearchResult]) -> list[SearchResult]:
    """Keep the first candidate for each deduplication key, preserving order."""
    seen: set[tuple[str, ...]] = set()
    unique = []
    for candidate in candidates:
        key = candidate.dedup_key
        if key in seen:
            continue
        seen.add(key)
        unique.append(candidate)
    return unique


def recency_boost(
    timestamp: datetime, now: datetime, weights: RankingWeights = DEFAULT_WEIGHTS
) -> float:
    """
    Linear boost for new items, reaching zero at the end of the recency window.

    Items timestamped in the future are treated as brand new.
    """
    days = max(0.0, (now - timestamp).total_seconds() / SECONDS_PER_DAY)
    return max(0.0, 1.0 - days / weights.recency_window_days) * weights.recency_weight


def final_score(
    result: SearchResult,
    query: str,
    now: datetime,
    weights: RankingWeights = DEFAULT_WEIGHTS,
) -> float:
    """
    Combine the retriever score with recency, source and title boosts.

    Args:
        result: Candidate carrying its retriever score
        query: The search query
        now: Reference instant for the recency boost
        weights: Boost sizes

    Returns:
        Final relevance score between 0.0 and 1.0
    """
    score = clamp_score(result.relevance_score)
    score += recency_boost(result.timestamp, now, weights)
    if result.kind == ResultKind.MEMORY_NODE:
        score += weights.note_boost
    if query.lower() in result.title.lower():
        score += weights.title_match_boost
    return clamp_score(score)


def rank_results(
    candidates: Sequence[SearchResult],
    query: str,
    now: datetime,
    weights: Optional[RankingWeights] = None,
) -> list[SearchResult]:
    """
    Deduplicate, rescore and sort candidates.

    Candidates should be passed in retriever order (conversation, notes,
    semantic): for duplicate keys the earliest candidate wins, and ties in the
    final score keep their input order.

    Args:
        candidates: Concatenated retriever outputs
        query: The search query
        now: Reference instant for the recency boost
        weights: Boost sizes (defaults apply when omitted)

    Returns:
        Results sorted by final relevance score, best first
    """
    weights = weights or DEFAULT_WEIGHTS
    rescored = [
        result.model_copy(
            update={"relevance_score": final_score(result, query, now, weights)}
        )
        for result in deduplicate(candidates)
    ]
    # list.sort is stable, so equal scores keep candidate order.
    rescored.sort(key=lambda r: r.relevance_score, reverse=True)
    return rescored
