"""
Shared fixtures: a temporary database per test and a small seeded league.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import pytest

import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from draft_league.models import Coach, Division, Season, SeasonEntry, Unit
from draft_league.persistence.db import get_connection, init_db, set_db_path
from draft_league.persistence.repositories import (
    CoachRepository,
    DivisionRepository,
    PriceRepository,
    SeasonEntryRepository,
    SeasonRepository,
    UnitRepository,
)


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "league_test.db"
    set_db_path(path)
    init_db(db_path=path)
    return path


@pytest.fixture
def db_conn(db_path):
    conn = get_connection(db_path)
    try:
        yield conn
    finally:
        conn.close()


@dataclass
class SeededLeague:
    season: Season
    division: Division
    coaches: list[Coach]
    entries: list[SeasonEntry]
    units: dict[str, Unit] = field(default_factory=dict)

    def unit_id(self, name: str) -> int:
        return self.units[name].id


# name -> (price, tera_banned, tera_captain_cost)
UNIT_PRICES: dict[str, tuple[int, bool, int | None]] = {
    "garchomp": (30, False, None),
    "rotom-wash": (15, False, 3),
    "corviknight": (20, False, None),
    "clefable": (10, False, 5),
    "kyogre": (-1, False, None),
    "dragapult": (12, True, 4),
    "toxapex": (8, False, 2),
}


@pytest.fixture
def league(db_conn) -> SeededLeague:
    """One season (number 9), one division, two coaches with 100-point budgets, a priced unit pool."""
    season = SeasonRepository().create(db_conn, "Season 9", season_number=9, draft_budget=100, is_current=True)
    division = DivisionRepository().create(db_conn, season.id, "Stargazer")
    coach_repo = CoachRepository()
    entry_repo = SeasonEntryRepository()
    coaches = [coach_repo.create(db_conn, "Ash"), coach_repo.create(db_conn, "Misty")]
    entries = [
        entry_repo.create(db_conn, coaches[0].id, division.id, "Pallet Pikachus", "PAL", 100),
        entry_repo.create(db_conn, coaches[1].id, division.id, "Cerulean Starmies", "CER", 100),
    ]
    unit_repo = UnitRepository()
    price_repo = PriceRepository()
    units: dict[str, Unit] = {}
    for name, (price, tera_banned, tera_cost) in UNIT_PRICES.items():
        unit = unit_repo.create(db_conn, name, display_name=name.title())
        price_repo.create(
            db_conn,
            season.id,
            unit.id,
            price,
            tera_banned=tera_banned,
            tera_captain_cost=tera_cost,
            complex_ban_reason="Restricted legendary" if price < 0 else None,
        )
        units[name] = unit
    return SeededLeague(season=season, division=division, coaches=coaches, entries=entries, units=units)


@pytest.fixture
def budget_of(db_conn):
    """Current remaining budget of a season entry."""
    repo = SeasonEntryRepository()

    def _budget(entry_id: int) -> int | None:
        entry = repo.get(db_conn, entry_id)
        assert entry is not None
        return entry.remaining_budget

    return _budget
