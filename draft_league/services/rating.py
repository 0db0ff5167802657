"""
ELO rating model. Pure functions; no persistence.
"""
from __future__ import annotations

from typing import Mapping

from draft_league.config import DEFAULT_PLACEMENT_RATING, K_FACTOR, PLACEMENT_RATINGS


def placement_rating(
    season_number: int,
    division_name: str | None,
    table: Mapping[tuple[int, str], float] = PLACEMENT_RATINGS,
) -> float:
    """Seed rating for a coach whose first match is in this season/division."""
    if division_name is None:
        return DEFAULT_PLACEMENT_RATING
    return table.get((season_number, division_name), DEFAULT_PLACEMENT_RATING)


def expected_score(rating: float, opponent_rating: float) -> float:
    """Probability that a player rated `rating` beats `opponent_rating`."""
    return 1.0 / (1.0 + 10 ** ((opponent_rating - rating) / 400.0))


def apply_match(
    winner_rating: float, loser_rating: float, k_factor: float = K_FACTOR
) -> tuple[float, float]:
    """
    Return (new_winner_rating, new_loser_rating).
    The loser loses exactly what the winner gains.
    """
    delta = k_factor * (1.0 - expected_score(winner_rating, loser_rating))
    return winner_rating + delta, loser_rating - delta
