"""Relevance blending of text scores with recency decay.

Everything here is a pure function of its inputs; callers pass the current
time explicitly so rankings are reproducible.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

MS_PER_HOUR = 60 * 60 * 1000


@dataclass
class RankedHit:
    """A hit with its score breakdown."""

    id: str
    relevance: float
    decay: float
    score: float
    order: int


def recency_decay(
    last_accessed: Optional[int], now: int, half_life_hours: float
) -> float:
    """Hyperbolic recency decay in (0, 1].

    Args:
        last_accessed: Epoch milliseconds of the last access, or None
        now: Current epoch milliseconds
        half_life_hours: Age at which the decay reaches 0.5

    Returns:
        float: ``1 / (1 + hours / half_life)``; 0.0 when never accessed
    """
    if last_accessed is None:
        return 0.0
    hours = max(now - last_accessed, 0) / MS_PER_HOUR
    return 1.0 / (1.0 + hours / half_life_hours)


def normalize_scores(scores: Sequence[float]) -> List[float]:
    """Scale raw scores into [0, 1] by the maximum, flooring the divisor at 1."""
    if not scores:
        return []
    divisor = max(max(scores), 1.0)
    return [score / divisor for score in scores]


def combined_score(relevance: float, decay: float, alpha: float) -> float:
    return alpha * relevance + (1.0 - alpha) * decay


def rank(
    ids: Sequence[str],
    relevances: Sequence[float],
    last_accessed: Sequence[Optional[int]],
    now: int,
    alpha: float,
    half_life_hours: float,
) -> List[RankedHit]:
    """Blend relevance with recency and sort.

    Inputs are parallel sequences already in index order. Ties keep that
    order, so equal combined scores fall back to text score and then to
    insertion order.

    Returns:
        List[RankedHit]: Hits sorted by combined score, descending
    """
    ranked = []
    for order, (doc_id, relevance, accessed) in enumerate(
        zip(ids, relevances, last_accessed)
    ):
        decay = recency_decay(accessed, now, half_life_hours)
        ranked.append(
            RankedHit(
                id=doc_id,
                relevance=relevance,
                decay=decay,
                score=combined_score(relevance, decay, alpha),
                order=order,
            )
        )

    # sorted() is stable, so index order survives ties
    return sorted(ranked, key=lambda hit: -hit.score)
