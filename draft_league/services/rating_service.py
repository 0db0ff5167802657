"""
Chronological rating recomputation.

Ratings are a pure function of match history: every completed match is
replayed in (season_number, week, match_id) order from scratch. Each coach
enters at the placement rating of the cohort of their first match.
replay_matches is the pure core; RatingService loads matches and writes the
results back in one transaction.
"""
from __future__ import annotations

import logging
import sqlite3
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterable

from draft_league.models import RatingHistoryEntry
from draft_league.persistence.db import transaction
from draft_league.persistence.repositories import (
    CoachRepository,
    MatchRepository,
    RatingHistoryRepository,
)
from draft_league.services.errors import NotFoundError
from draft_league.services.rating import apply_match, placement_rating

logger = logging.getLogger(__name__)


# ---------- Records ----------


@dataclass
class RatedMatch:
    """A completed match with the context the replay needs. coach ids None = broken link."""
    match_id: int
    season_number: int | None
    division_name: str | None
    week: int
    entry1_id: int
    entry2_id: int
    winner_id: int
    coach1_id: int | None
    coach2_id: int | None
    played_at: str | None = None

    @classmethod
    def from_row(cls, row: dict[str, Any]) -> "RatedMatch":
        return cls(
            match_id=row["match_id"],
            season_number=row["season_number"],
            division_name=row["division_name"],
            week=row["week"],
            entry1_id=row["entry1_id"],
            entry2_id=row["entry2_id"],
            winner_id=row["winner_id"],
            coach1_id=row["coach1_id"],
            coach2_id=row["coach2_id"],
            played_at=row["played_at"],
        )

    @property
    def sort_key(self) -> tuple[int, int, int]:
        return (self.season_number or 0, self.week, self.match_id)


@dataclass
class Placement:
    coach_id: int
    rating: float
    season_number: int
    division_name: str


@dataclass
class ReplayResult:
    """history rows are (coach_id, rating, match_id, recorded_at) in replay order."""
    history: list[tuple[int, float, int, str]] = field(default_factory=list)
    ratings: dict[int, float] = field(default_factory=dict)
    placements: dict[int, Placement] = field(default_factory=dict)
    processed: int = 0
    skipped: int = 0


@dataclass
class RecalculationSummary:
    matches_processed: int
    matches_skipped: int
    coaches_updated: int
    placements_by_cohort: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "matches_processed": self.matches_processed,
            "matches_skipped": self.matches_skipped,
            "coaches_updated": self.coaches_updated,
            "placements_by_cohort": dict(self.placements_by_cohort),
        }


# ---------- Pure replay ----------


def replay_matches(
    matches: Iterable[RatedMatch],
    placement: Callable[[int, str | None], float] = placement_rating,
    now: Callable[[], str] | None = None,
) -> ReplayResult:
    """
    Replay completed matches in chronological order.
    Input order is irrelevant; matches are sorted here. A match whose coach
    linkage is missing, or whose winner is neither entry, is skipped with a warning.
    """
    now = now or (lambda: datetime.now(timezone.utc).isoformat())
    result = ReplayResult()
    ratings = result.ratings

    for m in sorted(matches, key=lambda m: m.sort_key):
        if m.coach1_id is None or m.coach2_id is None:
            logger.warning("Skipping match %s: missing coach data", m.match_id)
            result.skipped += 1
            continue
        if m.winner_id == m.entry1_id:
            winner, loser = m.coach1_id, m.coach2_id
        elif m.winner_id == m.entry2_id:
            winner, loser = m.coach2_id, m.coach1_id
        else:
            logger.warning(
                "Skipping match %s: winner %s is not one of its entries", m.match_id, m.winner_id
            )
            result.skipped += 1
            continue

        season_number = m.season_number or 0
        for coach_id in (m.coach1_id, m.coach2_id):
            if coach_id not in ratings:
                seed = placement(season_number, m.division_name)
                ratings[coach_id] = seed
                result.placements[coach_id] = Placement(
                    coach_id=coach_id, rating=seed,
                    season_number=season_number, division_name=m.division_name or "",
                )

        ratings[winner], ratings[loser] = apply_match(ratings[winner], ratings[loser])

        recorded_at = m.played_at or now()
        result.history.append((m.coach1_id, ratings[m.coach1_id], m.match_id, recorded_at))
        result.history.append((m.coach2_id, ratings[m.coach2_id], m.match_id, recorded_at))
        result.processed += 1

    return result


# ---------- RatingService ----------


class RatingService:
    """Runs the replay against the database. Safe to re-run; each run overwrites the last."""

    def __init__(self) -> None:
        self._coach_repo = CoachRepository()
        self._match_repo = MatchRepository()
        self._history_repo = RatingHistoryRepository()

    def recalculate_all(self, conn: sqlite3.Connection) -> RecalculationSummary:
        with transaction(conn):
            rows = self._match_repo.list_completed_with_context(conn)
            result = replay_matches(RatedMatch.from_row(r) for r in rows)

            self._history_repo.clear(conn)
            self._history_repo.create_many(conn, result.history)
            # Coaches who never played keep their stored rating.
            for coach_id, rating in result.ratings.items():
                self._coach_repo.update_rating(conn, coach_id, rating)

        cohorts = Counter(
            f"S{p.season_number} {p.division_name}" for p in result.placements.values()
        )
        logger.info(
            "Rating recalculation: %d matches processed, %d skipped, %d coaches rated",
            result.processed, result.skipped, len(result.ratings),
        )
        return RecalculationSummary(
            matches_processed=result.processed,
            matches_skipped=result.skipped,
            coaches_updated=len(result.ratings),
            placements_by_cohort=dict(sorted(cohorts.items())),
        )

    def rating_history(self, conn: sqlite3.Connection, coach_id: int) -> list[RatingHistoryEntry]:
        if self._coach_repo.get(conn, coach_id) is None:
            raise NotFoundError(f"Coach not found: {coach_id}")
        return self._history_repo.list_by_coach(conn, coach_id)
