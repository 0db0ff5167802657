"""
Availability and pricing view: which units are free agents in a season, and
what they cost. Read-only.
"""
from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from typing import Any

from draft_league.models import PriceEntry
from draft_league.persistence.repositories import (
    DivisionRepository,
    PriceRepository,
    RosterSlotRepository,
    UnitRepository,
)
from draft_league.services.errors import BannedUnitError, NotFoundError

_price_repo = PriceRepository()
_slot_repo = RosterSlotRepository()
_division_repo = DivisionRepository()
_unit_repo = UnitRepository()


@dataclass
class FreeAgent:
    unit_id: int
    name: str | None
    display_name: str | None
    price: int
    tera_banned: bool
    tera_captain_cost: int | None

    def to_dict(self) -> dict[str, Any]:
        return {
            "unit_id": self.unit_id,
            "name": self.name,
            "display_name": self.display_name,
            "price": self.price,
            "tera_banned": self.tera_banned,
            "tera_captain_cost": self.tera_captain_cost,
        }


def season_price(conn: sqlite3.Connection, season_id: int, unit_id: int) -> PriceEntry | None:
    return _price_repo.get(conn, season_id, unit_id)


def require_price(
    conn: sqlite3.Connection, season_id: int, unit_id: int, for_captain: bool = False
) -> PriceEntry:
    """
    Price entry for an acquisition. Raises NotFoundError when the unit is not
    priced this season, BannedUnitError when it is priced at the ban sentinel
    (or tera-banned, when for_captain).
    """
    entry = _price_repo.get(conn, season_id, unit_id)
    if entry is None:
        raise NotFoundError(f"Unit {unit_id} has no price in season {season_id}")
    if entry.is_banned:
        reason = f": {entry.complex_ban_reason}" if entry.complex_ban_reason else ""
        raise BannedUnitError(f"Unit {unit_id} is banned in season {season_id}{reason}")
    if for_captain and entry.tera_banned:
        raise BannedUnitError(f"Unit {unit_id} cannot be a Tera Captain in season {season_id}")
    return entry


def available_free_agents(conn: sqlite3.Connection, season_id: int) -> list[FreeAgent]:
    """
    Units priced >= 0 this season and not on any active roster in any of the
    season's divisions. Inactive (replaced) entries do not hold units.
    """
    prices = [p for p in _price_repo.list_by_season(conn, season_id) if not p.is_banned]
    if _division_repo.list_by_season(conn, season_id):
        held = _slot_repo.unit_ids_held_in_season(conn, season_id)
        prices = [p for p in prices if p.unit_id not in held]
    units = _unit_repo.list_by_ids(conn, [p.unit_id for p in prices])
    agents: list[FreeAgent] = []
    for p in prices:
        unit = units.get(p.unit_id)
        agents.append(
            FreeAgent(
                unit_id=p.unit_id,
                name=unit.name if unit else None,
                display_name=unit.display_name if unit else None,
                price=p.price,
                tera_banned=p.tera_banned,
                tera_captain_cost=p.tera_captain_cost,
            )
        )
    return agents


def complex_bans(conn: sqlite3.Connection, season_id: int) -> list[PriceEntry]:
    """Sentinel-priced entries for the season, with their ban reasons."""
    return [p for p in _price_repo.list_by_season(conn, season_id) if p.is_banned]
