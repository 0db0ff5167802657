"""
Playoff brackets. Each division's bracket is a fixed tree of nodes
(quarterfinals, semifinals, final). A node gets a fixture in the matches
table, at week PLAYOFF_WEEK_OFFSET + round, as soon as both of its seeds are
known. Recording a winner writes the result to that fixture, re-runs the
rating pass and moves the winner into the next round.
"""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass

from draft_league.config import PLAYOFF_ROUNDS, PLAYOFF_WEEK_OFFSET
from draft_league.models import PlayoffMatch
from draft_league.persistence.db import transaction
from draft_league.persistence.repositories import (
    DivisionRepository,
    MatchRepository,
    PlayoffMatchRepository,
    SeasonEntryRepository,
)
from draft_league.services.errors import LedgerError, NotFoundError
from draft_league.services.rating_service import RatingService

logger = logging.getLogger(__name__)


def positions_in_round(round_number: int) -> int:
    """Bracket positions in a round: 4 quarterfinals, 2 semifinals, 1 final."""
    return 2 ** (PLAYOFF_ROUNDS - round_number)


def playoff_week(round_number: int) -> int:
    return PLAYOFF_WEEK_OFFSET + round_number


@dataclass
class PlayoffMatchParams:
    division_id: int
    round: int = 1
    bracket_position: int = 1
    higher_seed_id: int | None = None
    lower_seed_id: int | None = None


@dataclass
class PlayoffUpdateParams:
    """Fields left as None are not changed."""
    higher_seed_id: int | None = None
    lower_seed_id: int | None = None
    winner_id: int | None = None
    higher_seed_wins: int | None = None
    lower_seed_wins: int | None = None
    played_at: str | None = None


class PlayoffService:
    def __init__(self) -> None:
        self._division_repo = DivisionRepository()
        self._entry_repo = SeasonEntryRepository()
        self._match_repo = MatchRepository()
        self._playoff_repo = PlayoffMatchRepository()
        self._rating_service = RatingService()

    def create_playoff_match(self, conn: sqlite3.Connection, params: PlayoffMatchParams) -> PlayoffMatch:
        """Add a bracket node, then fill in any missing later-round placeholders."""
        if not 1 <= params.round <= PLAYOFF_ROUNDS:
            raise LedgerError(f"round must be between 1 and {PLAYOFF_ROUNDS}")
        if not 1 <= params.bracket_position <= positions_in_round(params.round):
            raise LedgerError(
                f"bracket_position must be between 1 and {positions_in_round(params.round)} in round {params.round}"
            )
        with transaction(conn):
            division = self._division_repo.get(conn, params.division_id)
            if division is None:
                raise NotFoundError(f"Division not found: {params.division_id}")
            existing = self._playoff_repo.find_by_position(
                conn, division.id, params.round, params.bracket_position
            )
            if existing is not None:
                raise LedgerError(
                    f"Round {params.round} position {params.bracket_position} already exists (playoff match {existing.id})"
                )
            self._validate_seeds(conn, division.id, params.higher_seed_id, params.lower_seed_id)
            node = self._playoff_repo.create(
                conn,
                season_id=division.season_id,
                division_id=division.id,
                round=params.round,
                bracket_position=params.bracket_position,
                higher_seed_id=params.higher_seed_id,
                lower_seed_id=params.lower_seed_id,
            )
            if self._schedule_if_ready(conn, node):
                self._playoff_repo.update(conn, node)
            self.ensure_bracket_structure(conn, division.season_id, division.id)
        logger.info(
            "Created playoff match %s (division %s, round %s, position %s)",
            node.id, node.division_id, node.round, node.bracket_position,
        )
        return node

    def ensure_bracket_structure(
        self, conn: sqlite3.Connection, season_id: int, division_id: int
    ) -> list[PlayoffMatch]:
        """Create empty semifinal and final nodes that do not exist yet. Returns the new nodes."""
        created = []
        with transaction(conn):
            for round_number in range(2, PLAYOFF_ROUNDS + 1):
                for position in range(1, positions_in_round(round_number) + 1):
                    if self._playoff_repo.find_by_position(conn, division_id, round_number, position) is None:
                        created.append(
                            self._playoff_repo.create(conn, season_id, division_id, round_number, position)
                        )
        return created

    def update_playoff_match(
        self, conn: sqlite3.Connection, playoff_match_id: int, params: PlayoffUpdateParams
    ) -> PlayoffMatch:
        """
        Set seeds, series score or winner. Seeds are fixed once the fixture is
        scheduled. A winner must be one of the two seeds; the winner is written
        to the fixture and advanced into the next round.
        """
        with transaction(conn):
            node = self._playoff_repo.get(conn, playoff_match_id)
            if node is None:
                raise NotFoundError(f"Playoff match not found: {playoff_match_id}")

            higher = params.higher_seed_id if params.higher_seed_id is not None else node.higher_seed_id
            lower = params.lower_seed_id if params.lower_seed_id is not None else node.lower_seed_id
            if (higher, lower) != (node.higher_seed_id, node.lower_seed_id):
                if node.match_id is not None:
                    raise LedgerError(f"Seeds of playoff match {node.id} are fixed once it is scheduled")
                self._validate_seeds(conn, node.division_id, higher, lower)
                node.higher_seed_id, node.lower_seed_id = higher, lower
                self._schedule_if_ready(conn, node)

            if params.higher_seed_wins is not None:
                node.higher_seed_wins = params.higher_seed_wins
            if params.lower_seed_wins is not None:
                node.lower_seed_wins = params.lower_seed_wins
            if params.played_at is not None:
                node.played_at = params.played_at

            if params.winner_id is not None:
                self._record_winner(conn, node, params.winner_id)
            self._playoff_repo.update(conn, node)
            self.ensure_bracket_structure(conn, node.season_id, node.division_id)
        return node

    def delete_playoff_match(self, conn: sqlite3.Connection, playoff_match_id: int) -> PlayoffMatch:
        """Remove a bracket node together with its fixture; ratings are replayed without it."""
        with transaction(conn):
            node = self._playoff_repo.get(conn, playoff_match_id)
            if node is None:
                raise NotFoundError(f"Playoff match not found: {playoff_match_id}")
            self._playoff_repo.delete(conn, node.id)
            if node.match_id is not None:
                self._match_repo.delete(conn, node.match_id)
                self._rating_service.recalculate_all(conn)
        logger.info("Deleted playoff match %s (fixture %s)", node.id, node.match_id)
        return node

    def list_bracket(self, conn: sqlite3.Connection, division_id: int) -> list[PlayoffMatch]:
        """A division's bracket in (round, bracket_position) order."""
        if self._division_repo.get(conn, division_id) is None:
            raise NotFoundError(f"Division not found: {division_id}")
        return self._playoff_repo.list_by_division(conn, division_id)

    def repair_brackets(self, conn: sqlite3.Connection, season_id: int) -> int:
        """
        For every division of a season that has started a bracket: add missing
        placeholders and schedule nodes whose seeds are set but have no fixture.
        Returns the number of fixtures created.
        """
        scheduled = 0
        with transaction(conn):
            for division in self._division_repo.list_by_season(conn, season_id):
                nodes = self._playoff_repo.list_by_division(conn, division.id)
                if not nodes:
                    continue
                self.ensure_bracket_structure(conn, season_id, division.id)
                for node in nodes:
                    if self._schedule_if_ready(conn, node):
                        self._playoff_repo.update(conn, node)
                        scheduled += 1
        if scheduled:
            logger.info("Scheduled %d playoff fixtures for season %s", scheduled, season_id)
        return scheduled

    # ----- helpers -----

    def _validate_seeds(
        self, conn: sqlite3.Connection, division_id: int, higher: int | None, lower: int | None
    ) -> None:
        if higher is not None and higher == lower:
            raise LedgerError("A team cannot be both seeds of a playoff match")
        for entry_id in (higher, lower):
            if entry_id is None:
                continue
            entry = self._entry_repo.get(conn, entry_id)
            if entry is None:
                raise NotFoundError(f"Season entry not found: {entry_id}")
            if entry.division_id != division_id:
                raise LedgerError(f"Season entry {entry_id} is not in division {division_id}")

    def _schedule_if_ready(self, conn: sqlite3.Connection, node: PlayoffMatch) -> bool:
        """Create the node's fixture when both seeds are known. Mutates node.match_id."""
        if node.match_id is not None or node.higher_seed_id is None or node.lower_seed_id is None:
            return False
        match = self._match_repo.create(
            conn,
            season_id=node.season_id,
            division_id=node.division_id,
            week=playoff_week(node.round),
            entry1_id=node.higher_seed_id,
            entry2_id=node.lower_seed_id,
        )
        node.match_id = match.id
        return True

    def _record_winner(self, conn: sqlite3.Connection, node: PlayoffMatch, winner_id: int) -> None:
        if node.higher_seed_id is None or node.lower_seed_id is None or node.match_id is None:
            raise LedgerError(f"Playoff match {node.id} needs both seeds before a winner can be recorded")
        if winner_id not in (node.higher_seed_id, node.lower_seed_id):
            raise LedgerError(f"Winner {winner_id} is not one of the playoff match's seeds")
        match = self._match_repo.get(conn, node.match_id)
        if match is None:
            raise NotFoundError(f"Match not found: {node.match_id}")

        self._advance_winner(conn, node, winner_id)
        node.winner_id = winner_id

        higher_won = winner_id == node.higher_seed_id
        margin = node.higher_seed_wins if higher_won else node.lower_seed_wins
        self._match_repo.update_result(
            conn,
            match.id,
            winner_id=winner_id,
            entry1_differential=margin if higher_won else -margin,
            entry2_differential=-margin if higher_won else margin,
            is_forfeit=match.is_forfeit,
            played_at=node.played_at or match.played_at,
            replay_url=match.replay_url,
        )
        self._rating_service.recalculate_all(conn)
        logger.info("Playoff match %s won by season entry %s", node.id, winner_id)

    def _advance_winner(self, conn: sqlite3.Connection, node: PlayoffMatch, winner_id: int) -> None:
        """Odd positions feed the higher seed of the next node, even positions the lower seed."""
        if node.round >= PLAYOFF_ROUNDS:
            return
        self.ensure_bracket_structure(conn, node.season_id, node.division_id)
        nxt = self._playoff_repo.find_by_position(
            conn, node.division_id, node.round + 1, (node.bracket_position + 1) // 2
        )
        assert nxt is not None
        feeds_higher = node.bracket_position % 2 == 1
        current = nxt.higher_seed_id if feeds_higher else nxt.lower_seed_id
        if current == winner_id:
            return
        if nxt.match_id is not None:
            raise LedgerError(
                f"Round {nxt.round} playoff match {nxt.id} is already scheduled; delete it before changing this winner"
            )
        if feeds_higher:
            nxt.higher_seed_id = winner_id
        else:
            nxt.lower_seed_id = winner_id
        self._schedule_if_ready(conn, nxt)
        self._playoff_repo.update(conn, nxt)
