"""Presentation order for completed matches.

Both orderings rely on ``sorted`` being stable: results with equal keys
keep their input order.
"""

from typing import Iterable, List

from .models import MatchResult


def rank_by_tier(results: Iterable[MatchResult]) -> List[MatchResult]:
    """Name/location workflows: confidence tier, then score, both descending."""
    return sorted(results, key=lambda r: (-r.tier.rank, -r.score))


def rank_by_proximity(results: Iterable[MatchResult]) -> List[MatchResult]:
    """Deep-scan and address workflows: address proximity, then score.

    Results without an address signal rank as proximity 0.
    """
    return sorted(results, key=lambda r: (-(r.address_score or 0.0), -r.score))
