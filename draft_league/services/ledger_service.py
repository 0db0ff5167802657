"""
Roster ledger: free-agent pickup/drop/swap, peer-to-peer trades, tera captain
swaps and undo.

Every operation reads, validates and writes inside one BEGIN IMMEDIATE
transaction. Operations describe their effect as a LedgerDelta; _apply_delta
is the only code path that writes budgets, roster slots and transaction rows,
and it refuses any delta that would leave a touched budget below zero.
Quota counts and trade locks are reported to callers, not enforced here.
"""
from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass, field
from typing import Any

from draft_league.config import (
    FA_TRANSACTION_LIMIT,
    MAX_TRADE_UNITS_PER_SIDE,
    P2P_TRANSACTION_LIMIT,
    TRADE_LOCK_WEEKS,
)
from draft_league.models import (
    FA_TRANSACTION_TYPES,
    AcquisitionMethod,
    RosterSlot,
    SeasonEntry,
    Transaction,
    TransactionType,
)
from draft_league.persistence.db import transaction
from draft_league.persistence.repositories import (
    RosterSlotRepository,
    SeasonEntryRepository,
    TransactionRepository,
)
from draft_league.services.availability import require_price
from draft_league.services.errors import (
    InsufficientBudgetError,
    LedgerError,
    NegativeBudgetError,
    NotFoundError,
    OwnershipMismatchError,
    TradeSizeError,
    UnitUnavailableError,
    UnsupportedUndoError,
)

logger = logging.getLogger(__name__)


# ---------- Operation parameters ----------


@dataclass
class FAPickupParams:
    season_entry_id: int
    unit_id: int
    week: int
    is_tera_captain: bool = False
    counts_against_limit: bool = True
    notes: str | None = None


@dataclass
class FADropParams:
    season_entry_id: int
    roster_slot_id: int
    week: int
    counts_against_limit: bool = True
    notes: str | None = None


@dataclass
class FASwapParams:
    """At least one of pickup_unit_id / drop_roster_slot_id is required."""
    season_entry_id: int
    week: int
    pickup_unit_id: int | None = None
    pickup_is_tera_captain: bool = False
    drop_roster_slot_id: int | None = None
    counts_against_limit: bool = True
    notes: str | None = None


@dataclass
class P2PTradeParams:
    """team1 is recorded as the primary side; team2 as the trading partner."""
    team1_entry_id: int
    team1_slot_ids: list[int]
    team2_entry_id: int
    team2_slot_ids: list[int]
    week: int
    counts_against_limit: bool = True
    notes: str | None = None


@dataclass
class TeraSwapParams:
    season_entry_id: int
    new_captain_slot_id: int
    week: int
    old_captain_slot_id: int | None = None
    counts_against_limit: bool = True
    notes: str | None = None


# ---------- Reports ----------


@dataclass
class TransactionCounts:
    fa_used: int
    fa_remaining: int
    p2p_used: int
    p2p_remaining: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "fa_used": self.fa_used,
            "fa_remaining": self.fa_remaining,
            "p2p_used": self.p2p_used,
            "p2p_remaining": self.p2p_remaining,
        }


@dataclass
class TradeLockStatus:
    locked: bool
    unlocks_week: int | None = None
    acquired_week: int | None = None
    acquired_via: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "locked": self.locked,
            "unlocks_week": self.unlocks_week,
            "acquired_week": self.acquired_week,
            "acquired_via": self.acquired_via,
        }


def trade_lock_for(slot: RosterSlot, current_week: int) -> TradeLockStatus:
    """Draft-era slots and slots without acquisition metadata are never locked."""
    if slot.acquired_week is None or not slot.acquired_via:
        return TradeLockStatus(locked=False)
    if slot.acquired_via == AcquisitionMethod.DRAFT:
        return TradeLockStatus(locked=False, acquired_week=slot.acquired_week, acquired_via=slot.acquired_via)
    unlocks_week = slot.acquired_week + TRADE_LOCK_WEEKS
    return TradeLockStatus(
        locked=current_week < unlocks_week,
        unlocks_week=unlocks_week,
        acquired_week=slot.acquired_week,
        acquired_via=slot.acquired_via,
    )


def is_trade_locked(slot: RosterSlot, current_week: int) -> bool:
    return trade_lock_for(slot, current_week).locked


# ---------- Delta ----------


@dataclass
class NewSlot:
    season_entry_id: int
    unit_id: int
    price: int
    is_tera_captain: bool
    acquired_week: int | None
    acquired_via: str | None


@dataclass
class SlotMove:
    """acquired_via None clears acquisition metadata and the transaction link."""
    slot_id: int
    season_entry_id: int
    acquired_week: int | None
    acquired_via: str | None


@dataclass
class CaptainChange:
    slot_id: int
    is_tera_captain: bool
    price: int


@dataclass
class TransactionDraft:
    season_id: int
    type: str
    week: int
    season_entry_id: int
    budget_change: int
    counts_against_limit: bool = True
    team_abbreviation: str | None = None
    trading_partner_id: int | None = None
    trading_partner_abbreviation: str | None = None
    units_in: list[int] = field(default_factory=list)
    units_out: list[int] = field(default_factory=list)
    new_tera_captain_id: int | None = None
    old_tera_captain_id: int | None = None
    notes: str | None = None


@dataclass
class LedgerDelta:
    """
    Everything one ledger operation changes. New slots and moved slots with an
    acquisition method are linked to the recorded transaction.
    """
    budget_changes: dict[int, int] = field(default_factory=dict)
    created_slots: list[NewSlot] = field(default_factory=list)
    deleted_slot_ids: list[int] = field(default_factory=list)
    moved_slots: list[SlotMove] = field(default_factory=list)
    captain_changes: list[CaptainChange] = field(default_factory=list)
    record: TransactionDraft | None = None
    delete_transaction_id: int | None = None
    budget_error: type[InsufficientBudgetError] = InsufficientBudgetError

    def add_budget_change(self, season_entry_id: int, amount: int) -> None:
        self.budget_changes[season_entry_id] = self.budget_changes.get(season_entry_id, 0) + amount


# ---------- LedgerService ----------


class LedgerService:
    """
    Budget and roster mutations. Callers pass an autocommit connection from
    persistence.db.get_connection(); each public mutation is its own transaction.
    """

    def __init__(self) -> None:
        self._entry_repo = SeasonEntryRepository()
        self._slot_repo = RosterSlotRepository()
        self._tx_repo = TransactionRepository()

    # ----- free agency -----

    def fa_pickup(self, conn: sqlite3.Connection, params: FAPickupParams) -> Transaction:
        return self._free_agency(
            conn,
            season_entry_id=params.season_entry_id,
            week=params.week,
            pickup_unit_id=params.unit_id,
            pickup_is_tera_captain=params.is_tera_captain,
            drop_roster_slot_id=None,
            counts_against_limit=params.counts_against_limit,
            notes=params.notes,
        )

    def fa_drop(self, conn: sqlite3.Connection, params: FADropParams) -> Transaction:
        return self._free_agency(
            conn,
            season_entry_id=params.season_entry_id,
            week=params.week,
            pickup_unit_id=None,
            pickup_is_tera_captain=False,
            drop_roster_slot_id=params.roster_slot_id,
            counts_against_limit=params.counts_against_limit,
            notes=params.notes,
        )

    def fa_swap(self, conn: sqlite3.Connection, params: FASwapParams) -> Transaction:
        """
        Drop and pick up in one step. The drop's refund funds the pickup:
        succeeds iff remaining + refund >= pickup cost.
        """
        return self._free_agency(
            conn,
            season_entry_id=params.season_entry_id,
            week=params.week,
            pickup_unit_id=params.pickup_unit_id,
            pickup_is_tera_captain=params.pickup_is_tera_captain,
            drop_roster_slot_id=params.drop_roster_slot_id,
            counts_against_limit=params.counts_against_limit,
            notes=params.notes,
        )

    def _free_agency(
        self,
        conn: sqlite3.Connection,
        season_entry_id: int,
        week: int,
        pickup_unit_id: int | None,
        pickup_is_tera_captain: bool,
        drop_roster_slot_id: int | None,
        counts_against_limit: bool,
        notes: str | None,
    ) -> Transaction:
        if pickup_unit_id is None and drop_roster_slot_id is None:
            raise LedgerError("Must specify at least one unit to pick up or drop")

        with transaction(conn):
            entry = self._require_active_entry(conn, season_entry_id)
            season_id = self._season_of(entry)
            delta = LedgerDelta()
            units_in: list[int] = []
            units_out: list[int] = []
            old_captain_unit: int | None = None

            if drop_roster_slot_id is not None:
                slot = self._require_owned_slot(conn, drop_roster_slot_id, entry.id)
                delta.deleted_slot_ids.append(slot.id)
                delta.add_budget_change(entry.id, slot.price)
                units_out.append(slot.unit_id)
                if slot.is_tera_captain:
                    old_captain_unit = slot.unit_id

            if pickup_unit_id is not None:
                price = require_price(conn, season_id, pickup_unit_id, for_captain=pickup_is_tera_captain)
                if self._slot_repo.is_unit_held_in_season(
                    conn, season_id, pickup_unit_id, exclude_slot_id=drop_roster_slot_id
                ):
                    raise UnitUnavailableError(f"Unit {pickup_unit_id} is already on a roster this season")
                cost = price.price
                if pickup_is_tera_captain and price.tera_captain_cost:
                    cost += price.tera_captain_cost
                delta.created_slots.append(
                    NewSlot(
                        season_entry_id=entry.id,
                        unit_id=pickup_unit_id,
                        price=cost,
                        is_tera_captain=pickup_is_tera_captain,
                        acquired_week=week,
                        acquired_via=AcquisitionMethod.FA_PICKUP.value,
                    )
                )
                delta.add_budget_change(entry.id, -cost)
                units_in.append(pickup_unit_id)

            if units_in and units_out:
                tx_type = TransactionType.FA_SWAP
            elif units_in:
                tx_type = TransactionType.FA_PICKUP
            else:
                tx_type = TransactionType.FA_DROP

            delta.record = TransactionDraft(
                season_id=season_id,
                type=tx_type.value,
                week=week,
                season_entry_id=entry.id,
                budget_change=delta.budget_changes.get(entry.id, 0),
                counts_against_limit=counts_against_limit,
                team_abbreviation=entry.team_abbreviation,
                units_in=units_in,
                units_out=units_out,
                old_tera_captain_id=old_captain_unit,
                notes=notes,
            )
            tx = self._apply_delta(conn, delta)

        logger.info(
            "%s: entry %s in=%s out=%s budget_change=%s",
            tx.type, entry.id, units_in, units_out, tx.budget_change,
        )
        return tx

    # ----- trades -----

    def p2p_trade(self, conn: sqlite3.Connection, params: P2PTradeParams) -> Transaction:
        """
        Points follow the unit: each side's budget changes by (value received - value given).
        All or nothing; either side ending below zero fails the whole trade.
        """
        team1_ids = list(params.team1_slot_ids)
        team2_ids = list(params.team2_slot_ids)
        if len(team1_ids) > MAX_TRADE_UNITS_PER_SIDE or len(team2_ids) > MAX_TRADE_UNITS_PER_SIDE:
            raise TradeSizeError(f"Maximum {MAX_TRADE_UNITS_PER_SIDE} units per side in a trade")
        if not team1_ids and not team2_ids:
            raise LedgerError("A trade must move at least one unit")
        if params.team1_entry_id == params.team2_entry_id:
            raise LedgerError("A team cannot trade with itself")
        if len(set(team1_ids + team2_ids)) != len(team1_ids) + len(team2_ids):
            raise LedgerError("A roster slot appears more than once in the trade")

        with transaction(conn):
            team1 = self._require_active_entry(conn, params.team1_entry_id)
            team2 = self._require_active_entry(conn, params.team2_entry_id)
            season_id = self._season_of(team1)
            if self._season_of(team2) != season_id:
                raise LedgerError("Both teams must be in the same season")

            team1_slots = self._require_slots(conn, team1_ids)
            team2_slots = self._require_slots(conn, team2_ids)
            if any(s.season_entry_id != team1.id for s in team1_slots):
                raise OwnershipMismatchError("Some units don't belong to team 1")
            if any(s.season_entry_id != team2.id for s in team2_slots):
                raise OwnershipMismatchError("Some units don't belong to team 2")

            team1_value = sum(s.price for s in team1_slots)
            team2_value = sum(s.price for s in team2_slots)
            team1_net = team2_value - team1_value

            delta = LedgerDelta(budget_error=NegativeBudgetError)
            delta.budget_changes = {team1.id: team1_net, team2.id: -team1_net}
            via = AcquisitionMethod.P2P_TRADE.value
            for s in team1_slots:
                delta.moved_slots.append(SlotMove(s.id, team2.id, params.week, via))
            for s in team2_slots:
                delta.moved_slots.append(SlotMove(s.id, team1.id, params.week, via))
            delta.record = TransactionDraft(
                season_id=season_id,
                type=TransactionType.P2P_TRADE.value,
                week=params.week,
                season_entry_id=team1.id,
                budget_change=team1_net,
                counts_against_limit=params.counts_against_limit,
                team_abbreviation=team1.team_abbreviation,
                trading_partner_id=team2.id,
                trading_partner_abbreviation=team2.team_abbreviation,
                units_in=[s.unit_id for s in team2_slots],
                units_out=[s.unit_id for s in team1_slots],
                notes=params.notes,
            )
            tx = self._apply_delta(conn, delta)

        logger.info(
            "P2P_TRADE: entry %s <-> entry %s, team1 net %s", team1.id, team2.id, team1_net
        )
        return tx

    # ----- tera captain -----

    def tera_swap(self, conn: sqlite3.Connection, params: TeraSwapParams) -> Transaction:
        """
        Move the captain flag. The old captain's surcharge is not refunded; the new
        captain's surcharge is debited now and folded into its slot price.
        """
        if params.old_captain_slot_id == params.new_captain_slot_id:
            raise LedgerError("New and old captain must be different slots")

        with transaction(conn):
            entry = self._require_active_entry(conn, params.season_entry_id)
            season_id = self._season_of(entry)
            new_slot = self._require_owned_slot(conn, params.new_captain_slot_id, entry.id)
            if new_slot.is_tera_captain:
                raise LedgerError(f"Roster slot {new_slot.id} is already the Tera Captain")
            price = require_price(conn, season_id, new_slot.unit_id, for_captain=True)

            old_slot = None
            if params.old_captain_slot_id is not None:
                old_slot = self._require_owned_slot(conn, params.old_captain_slot_id, entry.id)
                if not old_slot.is_tera_captain:
                    raise LedgerError(f"Roster slot {old_slot.id} is not the current Tera Captain")

            surcharge = price.tera_captain_cost or 0
            delta = LedgerDelta()
            if old_slot is not None:
                delta.captain_changes.append(CaptainChange(old_slot.id, False, old_slot.price))
            delta.captain_changes.append(CaptainChange(new_slot.id, True, new_slot.price + surcharge))
            if surcharge:
                delta.add_budget_change(entry.id, -surcharge)
            delta.record = TransactionDraft(
                season_id=season_id,
                type=TransactionType.TERA_SWAP.value,
                week=params.week,
                season_entry_id=entry.id,
                budget_change=-surcharge,
                counts_against_limit=params.counts_against_limit,
                team_abbreviation=entry.team_abbreviation,
                new_tera_captain_id=new_slot.unit_id,
                old_tera_captain_id=old_slot.unit_id if old_slot else None,
                notes=params.notes,
            )
            tx = self._apply_delta(conn, delta)

        logger.info("TERA_SWAP: entry %s captain -> unit %s (surcharge %s)", entry.id, new_slot.unit_id, surcharge)
        return tx

    # ----- undo -----

    def undo(self, conn: sqlite3.Connection, transaction_id: int) -> Transaction:
        """Reverse a transaction's effects and delete its record. FA_DROP cannot be undone."""
        with transaction(conn):
            tx = self._tx_repo.get(conn, transaction_id)
            if tx is None:
                raise NotFoundError(f"Transaction not found: {transaction_id}")

            delta = LedgerDelta(delete_transaction_id=tx.id)
            if tx.type in (TransactionType.FA_PICKUP, TransactionType.FA_SWAP):
                for slot in self._slot_repo.list_by_transaction(conn, tx.id):
                    delta.deleted_slot_ids.append(slot.id)
                if tx.type == TransactionType.FA_SWAP and tx.units_out:
                    logger.warning(
                        "Undo of FA_SWAP %s: dropped units %s are not restored", tx.id, tx.units_out
                    )
                delta.add_budget_change(tx.season_entry_id, -tx.budget_change)
            elif tx.type == TransactionType.FA_DROP:
                raise UnsupportedUndoError(
                    "Undoing FA drops is not supported; re-add the unit manually"
                )
            elif tx.type == TransactionType.P2P_TRADE:
                self._undo_trade(conn, tx, delta)
            elif tx.type == TransactionType.TERA_SWAP:
                self._undo_tera_swap(conn, tx, delta)
            else:
                raise UnsupportedUndoError(f"Unknown transaction type: {tx.type}")

            self._apply_delta(conn, delta)

        logger.info("Undid %s transaction %s", tx.type, tx.id)
        return tx

    def _undo_trade(self, conn: sqlite3.Connection, tx: Transaction, delta: LedgerDelta) -> None:
        if tx.trading_partner_id is None:
            raise LedgerError(f"Trade {tx.id} has no trading partner recorded")
        for slot in self._slot_repo.list_by_transaction(conn, tx.id):
            if slot.unit_id in tx.units_in:
                owner = tx.trading_partner_id
            elif slot.unit_id in tx.units_out:
                owner = tx.season_entry_id
            else:
                continue
            delta.moved_slots.append(SlotMove(slot.id, owner, None, None))
        delta.add_budget_change(tx.season_entry_id, -tx.budget_change)
        delta.add_budget_change(tx.trading_partner_id, tx.budget_change)

    def _undo_tera_swap(self, conn: sqlite3.Connection, tx: Transaction, delta: LedgerDelta) -> None:
        surcharge = -tx.budget_change
        if tx.new_tera_captain_id is not None:
            slot = self._slot_repo.find_by_entry_and_unit(conn, tx.season_entry_id, tx.new_tera_captain_id)
            if slot is not None:
                delta.captain_changes.append(CaptainChange(slot.id, False, slot.price - surcharge))
        if tx.old_tera_captain_id is not None:
            slot = self._slot_repo.find_by_entry_and_unit(conn, tx.season_entry_id, tx.old_tera_captain_id)
            if slot is not None:
                delta.captain_changes.append(CaptainChange(slot.id, True, slot.price))
        if surcharge:
            delta.add_budget_change(tx.season_entry_id, surcharge)

    # ----- reports -----

    def transaction_counts(self, conn: sqlite3.Connection, season_entry_id: int) -> TransactionCounts:
        """FA quota is shared by all free-agency kinds; trades count for initiator and partner."""
        self._require_entry(conn, season_entry_id)
        fa_used = 0
        p2p_used = 0
        for tx in self._tx_repo.list_counting_for_entry(conn, season_entry_id):
            if tx.type in FA_TRANSACTION_TYPES:
                fa_used += 1
            elif tx.type == TransactionType.P2P_TRADE:
                p2p_used += 1
        p2p_used += self._tx_repo.count_counting_partner_trades(conn, season_entry_id)
        return TransactionCounts(
            fa_used=fa_used,
            fa_remaining=max(0, FA_TRANSACTION_LIMIT - fa_used),
            p2p_used=p2p_used,
            p2p_remaining=max(0, P2P_TRANSACTION_LIMIT - p2p_used),
        )

    def trade_lock_status(
        self, conn: sqlite3.Connection, roster_slot_id: int, current_week: int
    ) -> TradeLockStatus:
        slot = self._slot_repo.get(conn, roster_slot_id)
        if slot is None:
            raise NotFoundError(f"Roster slot not found: {roster_slot_id}")
        return trade_lock_for(slot, current_week)

    def list_transactions(
        self,
        conn: sqlite3.Connection,
        season_id: int | None = None,
        season_entry_id: int | None = None,
        type: str | None = None,
    ) -> list[Transaction]:
        return self._tx_repo.list(conn, season_id=season_id, season_entry_id=season_entry_id, type=type)

    # ----- helpers -----

    def _require_entry(self, conn: sqlite3.Connection, season_entry_id: int) -> SeasonEntry:
        entry = self._entry_repo.get(conn, season_entry_id)
        if entry is None:
            raise NotFoundError(f"Season entry not found: {season_entry_id}")
        return entry

    def _require_active_entry(self, conn: sqlite3.Connection, season_entry_id: int) -> SeasonEntry:
        """Teams replaced mid-season keep their history but can no longer transact."""
        entry = self._require_entry(conn, season_entry_id)
        if not entry.is_active:
            raise LedgerError(f"Season entry {season_entry_id} is no longer active")
        return entry

    @staticmethod
    def _season_of(entry: SeasonEntry) -> int:
        if entry.season_id is None:
            raise NotFoundError(f"Division not found for season entry {entry.id}")
        return entry.season_id

    def _require_owned_slot(self, conn: sqlite3.Connection, slot_id: int, season_entry_id: int) -> RosterSlot:
        slot = self._slot_repo.get(conn, slot_id)
        if slot is None:
            raise NotFoundError(f"Roster slot not found: {slot_id}")
        if slot.season_entry_id != season_entry_id:
            raise OwnershipMismatchError(
                f"Roster slot {slot_id} doesn't belong to season entry {season_entry_id}"
            )
        return slot

    def _require_slots(self, conn: sqlite3.Connection, slot_ids: list[int]) -> list[RosterSlot]:
        slots = self._slot_repo.list_by_ids(conn, slot_ids)
        missing = set(slot_ids) - {s.id for s in slots}
        if missing:
            raise NotFoundError(f"Roster slots not found: {sorted(missing)}")
        by_id = {s.id: s for s in slots}
        return [by_id[i] for i in slot_ids]

    def _apply_delta(self, conn: sqlite3.Connection, delta: LedgerDelta) -> Transaction | None:
        """Validate budgets, then write the delta. Must run inside transaction()."""
        new_budgets: dict[int, int] = {}
        for entry_id, change in delta.budget_changes.items():
            entry = self._require_entry(conn, entry_id)
            new_budget = entry.budget + change
            if new_budget < 0:
                if issubclass(delta.budget_error, NegativeBudgetError):
                    message = f"Season entry {entry_id} would have negative budget ({new_budget})"
                else:
                    message = f"Insufficient budget. Need {-change}, have {entry.budget}"
                raise delta.budget_error(message, needed=-change, available=entry.budget)
            if change:
                new_budgets[entry_id] = new_budget

        tx = None
        if delta.record is not None:
            r = delta.record
            tx = self._tx_repo.create(
                conn,
                season_id=r.season_id,
                type=r.type,
                week=r.week,
                season_entry_id=r.season_entry_id,
                budget_change=r.budget_change,
                counts_against_limit=r.counts_against_limit,
                team_abbreviation=r.team_abbreviation,
                trading_partner_id=r.trading_partner_id,
                trading_partner_abbreviation=r.trading_partner_abbreviation,
                units_in=r.units_in,
                units_out=r.units_out,
                new_tera_captain_id=r.new_tera_captain_id,
                old_tera_captain_id=r.old_tera_captain_id,
                notes=r.notes,
            )
        tx_id = tx.id if tx is not None else None

        for slot_id in delta.deleted_slot_ids:
            self._slot_repo.delete(conn, slot_id)
        for new in delta.created_slots:
            self._slot_repo.create(
                conn,
                season_entry_id=new.season_entry_id,
                unit_id=new.unit_id,
                price=new.price,
                is_tera_captain=new.is_tera_captain,
                acquired_week=new.acquired_week,
                acquired_via=new.acquired_via,
                acquired_transaction_id=tx_id,
            )
        for move in delta.moved_slots:
            self._slot_repo.update_owner(
                conn,
                move.slot_id,
                season_entry_id=move.season_entry_id,
                acquired_week=move.acquired_week,
                acquired_via=move.acquired_via,
                acquired_transaction_id=tx_id if move.acquired_via else None,
            )
        for change in delta.captain_changes:
            self._slot_repo.update_captain(conn, change.slot_id, change.is_tera_captain, change.price)
        for entry_id, budget in new_budgets.items():
            self._entry_repo.update_budget(conn, entry_id, budget)
        if delta.delete_transaction_id is not None:
            self._tx_repo.delete(conn, delta.delete_transaction_id)
        return tx
