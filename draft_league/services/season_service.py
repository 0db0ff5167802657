"""
Season administration: entering coaches into divisions, mid-season coach
replacement, and draft-time roster seeding. These writes are not recorded
as ledger transactions.
"""
from __future__ import annotations

import logging
import sqlite3

from draft_league.config import DEFAULT_DRAFT_BUDGET
from draft_league.models import AcquisitionMethod, RosterSlot, SeasonEntry
from draft_league.persistence.db import transaction
from draft_league.persistence.repositories import (
    CoachRepository,
    DivisionRepository,
    RosterSlotRepository,
    SeasonEntryRepository,
    SeasonRepository,
)
from draft_league.services.availability import require_price
from draft_league.services.errors import (
    InsufficientBudgetError,
    LedgerError,
    NotFoundError,
    UnitUnavailableError,
)

logger = logging.getLogger(__name__)

_coach_repo = CoachRepository()
_season_repo = SeasonRepository()
_division_repo = DivisionRepository()
_entry_repo = SeasonEntryRepository()
_slot_repo = RosterSlotRepository()


def _default_abbreviation(team_name: str) -> str:
    return team_name[:3].upper()


def _require_coach(conn: sqlite3.Connection, coach_id: int) -> None:
    if _coach_repo.get(conn, coach_id) is None:
        raise NotFoundError(f"Coach not found: {coach_id}")


def _assert_not_active_in_division(conn: sqlite3.Connection, coach_id: int, division_id: int) -> None:
    if _entry_repo.get_active_for_coach_in_division(conn, coach_id, division_id) is not None:
        raise LedgerError(f"Coach {coach_id} is already active in division {division_id}")


def add_season_entry(
    conn: sqlite3.Connection,
    coach_id: int,
    division_id: int,
    team_name: str,
    team_abbreviation: str | None = None,
    budget: int | None = None,
) -> SeasonEntry:
    """
    Enter a coach into a division. Budget defaults to the season's draft budget.
    A coach has at most one active entry per division.
    """
    if not team_name:
        raise LedgerError("team_name is required")
    with transaction(conn):
        _require_coach(conn, coach_id)
        division = _division_repo.get(conn, division_id)
        if division is None:
            raise NotFoundError(f"Division not found: {division_id}")
        _assert_not_active_in_division(conn, coach_id, division_id)
        if budget is None:
            season = _season_repo.get(conn, division.season_id)
            budget = season.draft_budget if season else DEFAULT_DRAFT_BUDGET
        entry = _entry_repo.create(
            conn,
            coach_id=coach_id,
            division_id=division_id,
            team_name=team_name,
            team_abbreviation=team_abbreviation or _default_abbreviation(team_name),
            remaining_budget=budget,
        )
    logger.info("Added season entry %s: coach %s in division %s", entry.id, coach_id, division_id)
    return entry


def replace_season_entry(
    conn: sqlite3.Connection,
    original_entry_id: int,
    new_coach_id: int,
    team_name: str | None = None,
    team_abbreviation: str | None = None,
) -> SeasonEntry:
    """
    Mid-season coach change. The new entry inherits the team, its remaining
    budget and a copy of its roster; the original becomes inactive and points
    at its replacement. Standings fold the original's record into the new entry.
    """
    with transaction(conn):
        original = _entry_repo.get(conn, original_entry_id)
        if original is None:
            raise NotFoundError(f"Season entry not found: {original_entry_id}")
        if not original.is_active:
            raise LedgerError(f"Season entry {original_entry_id} is not active")
        _require_coach(conn, new_coach_id)
        _assert_not_active_in_division(conn, new_coach_id, original.division_id)

        replacement = _entry_repo.create(
            conn,
            coach_id=new_coach_id,
            division_id=original.division_id,
            team_name=team_name or original.team_name,
            team_abbreviation=team_abbreviation or original.team_abbreviation,
            remaining_budget=original.remaining_budget,
        )
        for slot in _slot_repo.list_by_entry(conn, original.id):
            _slot_repo.create(
                conn,
                season_entry_id=replacement.id,
                unit_id=slot.unit_id,
                price=slot.price,
                is_tera_captain=slot.is_tera_captain,
                draft_order=slot.draft_order,
            )
        _entry_repo.mark_replaced(conn, original.id, replacement.id)

    logger.info("Season entry %s replaced by %s (coach %s)", original_entry_id, replacement.id, new_coach_id)
    return replacement


def draft_unit(
    conn: sqlite3.Connection,
    season_entry_id: int,
    unit_id: int,
    price: int | None = None,
    is_tera_captain: bool = False,
    draft_order: int | None = None,
) -> RosterSlot:
    """
    Seed a drafted unit onto a roster and debit its price. Without an explicit
    price, the season price (plus captain surcharge) is used. A unit already
    held by an active team in the season cannot be drafted again.
    """
    with transaction(conn):
        entry = _entry_repo.get(conn, season_entry_id)
        if entry is None:
            raise NotFoundError(f"Season entry not found: {season_entry_id}")
        if not entry.is_active:
            raise LedgerError(f"Season entry {season_entry_id} is not active")
        if entry.season_id is not None and _slot_repo.is_unit_held_in_season(conn, entry.season_id, unit_id):
            raise UnitUnavailableError(f"Unit {unit_id} is already on a roster this season")
        if price is None:
            if entry.season_id is None:
                raise NotFoundError(f"Division not found for season entry {entry.id}")
            entry_price = require_price(conn, entry.season_id, unit_id, for_captain=is_tera_captain)
            price = entry_price.price
            if is_tera_captain and entry_price.tera_captain_cost:
                price += entry_price.tera_captain_cost
        if price < 0:
            raise LedgerError("price must be non-negative")
        if entry.budget < price:
            raise InsufficientBudgetError(
                f"Insufficient budget. Need {price}, have {entry.budget}",
                needed=price,
                available=entry.budget,
            )
        slot = _slot_repo.create(
            conn,
            season_entry_id=entry.id,
            unit_id=unit_id,
            price=price,
            is_tera_captain=is_tera_captain,
            draft_order=draft_order,
            acquired_via=AcquisitionMethod.DRAFT.value,
        )
        if price:
            _entry_repo.update_budget(conn, entry.id, entry.budget - price)
    logger.info("Drafted unit %s to season entry %s for %s", unit_id, entry.id, price)
    return slot


def remove_roster_slot(conn: sqlite3.Connection, roster_slot_id: int) -> RosterSlot:
    """Admin deletion of a roster slot; its price is refunded to the owner."""
    with transaction(conn):
        slot = _slot_repo.get(conn, roster_slot_id)
        if slot is None:
            raise NotFoundError(f"Roster slot not found: {roster_slot_id}")
        entry = _entry_repo.get(conn, slot.season_entry_id)
        if entry is not None:
            _entry_repo.update_budget(conn, entry.id, entry.budget + slot.price)
        _slot_repo.delete(conn, slot.id)
    logger.info("Removed roster slot %s (refund %s)", slot.id, slot.price)
    return slot
