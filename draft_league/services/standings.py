"""
Standings and leaderboards. Read-only aggregation over matches.
"""
from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Any

from draft_league.config import PLAYOFF_WEEK_OFFSET
from draft_league.models import MatchRecord, SeasonEntry
from draft_league.persistence.repositories import (
    CoachRepository,
    DivisionRepository,
    MatchRepository,
    SeasonEntryRepository,
    UnitRepository,
)
from draft_league.services.errors import NotFoundError

_coach_repo = CoachRepository()
_division_repo = DivisionRepository()
_entry_repo = SeasonEntryRepository()
_match_repo = MatchRepository()
_unit_repo = UnitRepository()


# ---------- Rows ----------


@dataclass
class StandingsRow:
    season_entry_id: int
    coach_id: int
    team_name: str
    team_abbreviation: str | None
    wins: int = 0
    losses: int = 0
    differential: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "season_entry_id": self.season_entry_id,
            "coach_id": self.coach_id,
            "team_name": self.team_name,
            "team_abbreviation": self.team_abbreviation,
            "wins": self.wins,
            "losses": self.losses,
            "differential": self.differential,
        }


@dataclass
class CoachRecord:
    coach_id: int
    name: str
    rating: float
    wins: int = 0
    losses: int = 0

    @property
    def games(self) -> int:
        return self.wins + self.losses

    @property
    def win_rate(self) -> float:
        return (self.wins / self.games) * 100 if self.games else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "coach_id": self.coach_id,
            "name": self.name,
            "rating": self.rating,
            "wins": self.wins,
            "losses": self.losses,
            "games": self.games,
            "win_rate": self.win_rate,
        }


@dataclass
class UnitLeaderboardRow:
    unit_id: int
    name: str | None
    display_name: str | None
    kills: int = 0
    deaths: int = 0
    games: int = 0

    @property
    def differential(self) -> int:
        return self.kills - self.deaths

    def to_dict(self) -> dict[str, Any]:
        return {
            "unit_id": self.unit_id,
            "name": self.name,
            "display_name": self.display_name,
            "kills": self.kills,
            "deaths": self.deaths,
            "differential": self.differential,
            "games": self.games,
        }


# ---------- Standings ----------


def _predecessors(entry_id: int, entries: list[SeasonEntry]) -> list[int]:
    """All inactive entries whose replacement chain ends at entry_id."""
    replaced_into: dict[int, list[int]] = {}
    for e in entries:
        if not e.is_active and e.replaced_by_id is not None:
            replaced_into.setdefault(e.replaced_by_id, []).append(e.id)
    found: list[int] = []
    stack = [entry_id]
    seen = {entry_id}
    while stack:
        for pred in replaced_into.get(stack.pop(), []):
            if pred not in seen:
                seen.add(pred)
                found.append(pred)
                stack.append(pred)
    return found


def _tally(row: StandingsRow, team_ids: set[int], matches: list[MatchRecord]) -> None:
    for m in matches:
        if m.week > PLAYOFF_WEEK_OFFSET:
            continue
        if m.entry1_id in team_ids:
            side_diff = m.entry1_differential
        elif m.entry2_id in team_ids:
            side_diff = m.entry2_differential
        else:
            continue
        if m.winner_id is not None:
            if m.winner_id in team_ids:
                row.wins += 1
            else:
                row.losses += 1
        row.differential += side_diff or 0


def division_standings(conn: sqlite3.Connection, division_id: int) -> list[StandingsRow]:
    """
    Regular-season standings for active entries. A replacement entry carries
    the record of every entry it replaced. Sorted by wins, then differential.
    """
    if _division_repo.get(conn, division_id) is None:
        raise NotFoundError(f"Division not found: {division_id}")
    entries = _entry_repo.list_by_division(conn, division_id)
    matches = _match_repo.list_by_division(conn, division_id)

    rows: list[StandingsRow] = []
    for entry in entries:
        if not entry.is_active:
            continue
        row = StandingsRow(
            season_entry_id=entry.id,
            coach_id=entry.coach_id,
            team_name=entry.team_name,
            team_abbreviation=entry.team_abbreviation,
        )
        _tally(row, {entry.id, *_predecessors(entry.id, entries)}, matches)
        rows.append(row)
    rows.sort(key=lambda r: (-r.wins, -r.differential))
    return rows


# ---------- Coach leaderboard ----------


def _coach_records(conn: sqlite3.Connection) -> dict[int, CoachRecord]:
    coach_of_entry = {e.id: e.coach_id for e in _entry_repo.list_all(conn)}
    records = {
        c.id: CoachRecord(coach_id=c.id, name=c.name, rating=c.rating)
        for c in _coach_repo.list_all(conn)
    }
    for m in _match_repo.list_all(conn):
        if m.winner_id is None:
            continue
        for entry_id in (m.entry1_id, m.entry2_id):
            record = records.get(coach_of_entry.get(entry_id, -1))
            if record is None:
                continue
            if m.winner_id == entry_id:
                record.wins += 1
            else:
                record.losses += 1
    return records


def coach_leaderboard(conn: sqlite3.Connection) -> list[CoachRecord]:
    """Coaches with at least one decided match, highest rating first."""
    records = [r for r in _coach_records(conn).values() if r.games > 0]
    records.sort(key=lambda r: -r.rating)
    return records


def coach_record(conn: sqlite3.Connection, coach_id: int) -> CoachRecord:
    record = _coach_records(conn).get(coach_id)
    if record is None:
        raise NotFoundError(f"Coach not found: {coach_id}")
    return record


# ---------- Unit leaderboard ----------


def unit_leaderboard(conn: sqlite3.Connection, division_id: int) -> list[UnitLeaderboardRow]:
    """Per-unit battle stats across every team the unit played for in the division."""
    if _division_repo.get(conn, division_id) is None:
        raise NotFoundError(f"Division not found: {division_id}")
    rows: dict[int, UnitLeaderboardRow] = {}
    for stat in _match_repo.list_unit_stats_by_division(conn, division_id):
        row = rows.get(stat.unit_id)
        if row is None:
            row = rows[stat.unit_id] = UnitLeaderboardRow(unit_id=stat.unit_id, name=None, display_name=None)
        row.kills += stat.kills
        row.deaths += stat.deaths
        row.games += 1
    units = _unit_repo.list_by_ids(conn, list(rows))
    for unit_id, row in rows.items():
        unit = units.get(unit_id)
        if unit is not None:
            row.name = unit.name
            row.display_name = unit.display_name
    return sorted(rows.values(), key=lambda r: (-r.kills, -r.differential, r.games))
