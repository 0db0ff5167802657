"""
Match result recording. Results are supplied from outside; every change to a
decided result re-runs the rating recomputation in the same transaction.
"""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field

from draft_league.models import MatchRecord
from draft_league.persistence.db import transaction
from draft_league.persistence.repositories import (
    DivisionRepository,
    MatchRepository,
    SeasonEntryRepository,
)
from draft_league.services.errors import LedgerError, NotFoundError
from draft_league.services.rating_service import RatingService

logger = logging.getLogger(__name__)


@dataclass
class UnitStatParams:
    season_entry_id: int
    unit_id: int
    kills: int = 0
    deaths: int = 0


@dataclass
class MatchResultParams:
    """winner_id None records a scheduled, unplayed match."""
    division_id: int
    week: int
    entry1_id: int
    entry2_id: int
    winner_id: int | None = None
    entry1_differential: int = 0
    entry2_differential: int = 0
    is_forfeit: bool = False
    played_at: str | None = None
    replay_url: str | None = None
    unit_stats: list[UnitStatParams] = field(default_factory=list)


class MatchService:
    def __init__(self) -> None:
        self._division_repo = DivisionRepository()
        self._entry_repo = SeasonEntryRepository()
        self._match_repo = MatchRepository()
        self._rating_service = RatingService()

    def _validate(self, conn: sqlite3.Connection, params: MatchResultParams) -> int:
        """Return the division's season id."""
        division = self._division_repo.get(conn, params.division_id)
        if division is None:
            raise NotFoundError(f"Division not found: {params.division_id}")
        if params.entry1_id == params.entry2_id:
            raise LedgerError("A team cannot play itself")
        for entry_id in (params.entry1_id, params.entry2_id):
            entry = self._entry_repo.get(conn, entry_id)
            if entry is None:
                raise NotFoundError(f"Season entry not found: {entry_id}")
            if entry.division_id != params.division_id:
                raise LedgerError(f"Season entry {entry_id} is not in division {params.division_id}")
        sides = (params.entry1_id, params.entry2_id)
        if params.winner_id is not None and params.winner_id not in sides:
            raise LedgerError(f"Winner {params.winner_id} is not one of the match's teams")
        for stat in params.unit_stats:
            if stat.season_entry_id not in sides:
                raise LedgerError(f"Unit stat for entry {stat.season_entry_id} is not from this match")
        return division.season_id

    def _write_stats(self, conn: sqlite3.Connection, match_id: int, stats: list[UnitStatParams]) -> None:
        for stat in stats:
            self._match_repo.add_unit_stat(
                conn, match_id, stat.season_entry_id, stat.unit_id, stat.kills, stat.deaths
            )

    def record_match(self, conn: sqlite3.Connection, params: MatchResultParams) -> MatchRecord:
        with transaction(conn):
            season_id = self._validate(conn, params)
            match = self._match_repo.create(
                conn,
                season_id=season_id,
                division_id=params.division_id,
                week=params.week,
                entry1_id=params.entry1_id,
                entry2_id=params.entry2_id,
                winner_id=params.winner_id,
                entry1_differential=params.entry1_differential,
                entry2_differential=params.entry2_differential,
                is_forfeit=params.is_forfeit,
                played_at=params.played_at,
                replay_url=params.replay_url,
            )
            self._write_stats(conn, match.id, params.unit_stats)
            if match.winner_id is not None:
                self._rating_service.recalculate_all(conn)
        logger.info("Recorded match %s (division %s, week %s)", match.id, match.division_id, match.week)
        return match

    def update_result(
        self, conn: sqlite3.Connection, match_id: int, params: MatchResultParams
    ) -> MatchRecord:
        """Replace a match's result and unit stats. Teams, division and week are fixed."""
        with transaction(conn):
            existing = self._match_repo.get(conn, match_id)
            if existing is None:
                raise NotFoundError(f"Match not found: {match_id}")
            if (params.division_id, params.week, params.entry1_id, params.entry2_id) != (
                existing.division_id, existing.week, existing.entry1_id, existing.entry2_id
            ):
                raise LedgerError("Only the result of a match can be changed")
            self._validate(conn, params)
            self._match_repo.update_result(
                conn,
                match_id,
                winner_id=params.winner_id,
                entry1_differential=params.entry1_differential,
                entry2_differential=params.entry2_differential,
                is_forfeit=params.is_forfeit,
                played_at=params.played_at,
                replay_url=params.replay_url,
            )
            self._match_repo.delete_unit_stats(conn, match_id)
            self._write_stats(conn, match_id, params.unit_stats)
            if existing.winner_id is not None or params.winner_id is not None:
                self._rating_service.recalculate_all(conn)
            updated = self._match_repo.get(conn, match_id)
        assert updated is not None
        return updated

    def delete_match(self, conn: sqlite3.Connection, match_id: int) -> MatchRecord:
        with transaction(conn):
            match = self._match_repo.get(conn, match_id)
            if match is None:
                raise NotFoundError(f"Match not found: {match_id}")
            self._match_repo.delete(conn, match_id)
            self._rating_service.recalculate_all(conn)
        logger.info("Deleted match %s", match_id)
        return match
