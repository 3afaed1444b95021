#Purpose: Ranking/selection model (the "who is best" layer).
#Takes candidates (already eligible) + features (distance, rating, affinity)
#Produces:
#a score per runner AND an ordered list
#Typical responsibilities:
#weighted scoring function: 0.40 distance + 0.35 rating + 0.25 affinity
#tie-breaking rules (deterministic): closer first, then runner id
#Output: ranked runners; the head of the list is the one to offer.

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from .candidate_filter import Candidate
from .policy import DispatchPolicy, default_dispatch_policy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RankedCandidate:
    """
    A candidate with its score breakdown.
    """
    id: str
    distance: float
    distance_score: float
    rating_score: float
    affinity_score: float
    final_score: float


def distance_score(distance: float, radius_meters: float = 500.0) -> float:
    """Linear falloff: 1.0 at the poster, 0.0 at or beyond the radius."""
    return max(0.0, 1.0 - distance / radius_meters)


def score_candidate(candidate: Candidate, policy: Optional[DispatchPolicy] = None) -> RankedCandidate:
    policy = policy or default_dispatch_policy()

    d_score = distance_score(candidate.distance, policy.radius_meters)
    r_score = candidate.rating / policy.max_rating
    a_score = candidate.affinity

    final = (
        policy.distance_weight * d_score
        + policy.rating_weight * r_score
        + policy.affinity_weight * a_score
    )
    return RankedCandidate(
        id=candidate.id,
        distance=candidate.distance,
        distance_score=d_score,
        rating_score=r_score,
        affinity_score=a_score,
        final_score=final,
    )


def rank_candidates(
    candidates: Sequence[Candidate],
    policy: Optional[DispatchPolicy] = None,
) -> List[RankedCandidate]:
    """
    Score every candidate and sort best-first.

    Order: final_score descending, then distance ascending, then id
    (so equal inputs always produce the same ranking).
    """
    policy = policy or default_dispatch_policy()

    ranked = [score_candidate(candidate, policy) for candidate in candidates]
    ranked.sort(key=lambda r: (-r.final_score, r.distance, r.id))

    for position, r in enumerate(ranked, 1):
        logger.debug(
            "#%d %s final=%.4f (distance=%.4f rating=%.4f affinity=%.4f, %.1fm)",
            position, r.id, r.final_score, r.distance_score, r.rating_score, r.affinity_score, r.distance,
        )
    return ranked


def select_top(
    candidates: Sequence[Candidate],
    policy: Optional[DispatchPolicy] = None,
) -> Optional[RankedCandidate]:
    """
    The runner to offer, or None when there is no eligible candidate.
    """
    ranked = rank_candidates(candidates, policy)
    if not ranked:
        return None
    return ranked[0]
