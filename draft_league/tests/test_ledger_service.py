"""
Tests for the roster ledger: budget invariants, ownership checks, trades,
tera captain swaps, undo, quotas and trade locks.
"""
from __future__ import annotations

import logging
from pathlib import Path

import pytest

import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from draft_league.models import AcquisitionMethod, RosterSlot, TransactionType
from draft_league.persistence.repositories import (
    CoachRepository,
    RosterSlotRepository,
    SeasonEntryRepository,
    TransactionRepository,
)
from draft_league.services import season_service
from draft_league.services.errors import (
    BannedUnitError,
    InsufficientBudgetError,
    LedgerError,
    NegativeBudgetError,
    NotFoundError,
    OwnershipMismatchError,
    TradeSizeError,
    UnitUnavailableError,
    UnsupportedUndoError,
)
from draft_league.services.ledger_service import (
    FADropParams,
    FAPickupParams,
    FASwapParams,
    LedgerService,
    P2PTradeParams,
    TeraSwapParams,
    is_trade_locked,
)


@pytest.fixture
def ledger():
    return LedgerService()


@pytest.fixture
def slot_repo():
    return RosterSlotRepository()


@pytest.fixture
def give(db_conn, league, slot_repo):
    """Put a drafted unit on an entry's roster without touching its budget."""

    def _give(entry_index: int, unit: str, price: int, captain: bool = False) -> RosterSlot:
        return slot_repo.create(
            db_conn,
            league.entries[entry_index].id,
            league.unit_id(unit),
            price,
            is_tera_captain=captain,
            acquired_via=AcquisitionMethod.DRAFT.value,
        )

    return _give


def _set_budget(conn, entry_id, budget):
    SeasonEntryRepository().update_budget(conn, entry_id, budget)


# ---------- FA pickup / drop ----------


def test_pickup_then_drop_round_trips_budget(db_conn, league, ledger, slot_repo, budget_of):
    entry = league.entries[0]
    tx = ledger.fa_pickup(db_conn, FAPickupParams(entry.id, league.unit_id("garchomp"), week=3))

    assert budget_of(entry.id) == 70
    assert tx.type == TransactionType.FA_PICKUP
    assert tx.budget_change == -30
    assert tx.units_in == [league.unit_id("garchomp")]
    [slot] = slot_repo.list_by_entry(db_conn, entry.id)
    assert slot.price == 30
    assert slot.acquired_via == AcquisitionMethod.FA_PICKUP
    assert slot.acquired_week == 3
    assert slot.acquired_transaction_id == tx.id

    drop = ledger.fa_drop(db_conn, FADropParams(entry.id, slot.id, week=4))
    assert budget_of(entry.id) == 100
    assert drop.type == TransactionType.FA_DROP
    assert drop.budget_change == 30
    assert drop.units_out == [league.unit_id("garchomp")]
    assert slot_repo.list_by_entry(db_conn, entry.id) == []


def test_captain_pickup_adds_surcharge(db_conn, league, ledger, slot_repo, budget_of):
    entry = league.entries[0]
    ledger.fa_pickup(db_conn, FAPickupParams(entry.id, league.unit_id("clefable"), week=1, is_tera_captain=True))
    assert budget_of(entry.id) == 85
    [slot] = slot_repo.list_by_entry(db_conn, entry.id)
    assert slot.is_tera_captain
    assert slot.price == 15


def test_pickup_with_insufficient_budget_changes_nothing(db_conn, league, ledger, slot_repo, budget_of):
    entry = league.entries[0]
    _set_budget(db_conn, entry.id, 10)
    with pytest.raises(InsufficientBudgetError) as exc:
        ledger.fa_pickup(db_conn, FAPickupParams(entry.id, league.unit_id("garchomp"), week=1))
    assert exc.value.needed == 30
    assert exc.value.available == 10
    assert exc.value.shortfall == 20
    assert budget_of(entry.id) == 10
    assert slot_repo.list_by_entry(db_conn, entry.id) == []
    assert TransactionRepository().list(db_conn) == []


def test_pickup_with_null_budget_treated_as_zero(db_conn, league, ledger):
    entry = league.entries[0]
    db_conn.execute("UPDATE season_entries SET remaining_budget = NULL WHERE id = ?", (entry.id,))
    with pytest.raises(InsufficientBudgetError) as exc:
        ledger.fa_pickup(db_conn, FAPickupParams(entry.id, league.unit_id("toxapex"), week=1))
    assert exc.value.available == 0


def test_pickup_of_banned_unit_fails(db_conn, league, ledger, budget_of):
    with pytest.raises(BannedUnitError):
        ledger.fa_pickup(db_conn, FAPickupParams(league.entries[0].id, league.unit_id("kyogre"), week=1))
    assert budget_of(league.entries[0].id) == 100


def test_captain_pickup_of_tera_banned_unit_fails(db_conn, league, ledger):
    with pytest.raises(BannedUnitError):
        ledger.fa_pickup(
            db_conn,
            FAPickupParams(league.entries[0].id, league.unit_id("dragapult"), week=1, is_tera_captain=True),
        )


def test_plain_pickup_of_tera_banned_unit_is_allowed(db_conn, league, ledger, budget_of):
    ledger.fa_pickup(db_conn, FAPickupParams(league.entries[0].id, league.unit_id("dragapult"), week=1))
    assert budget_of(league.entries[0].id) == 88


def test_pickup_of_unpriced_unit_fails(db_conn, league, ledger):
    from draft_league.persistence.repositories import UnitRepository

    stray = UnitRepository().create(db_conn, "missingno")
    with pytest.raises(NotFoundError):
        ledger.fa_pickup(db_conn, FAPickupParams(league.entries[0].id, stray.id, week=1))


def test_pickup_of_rostered_unit_fails(db_conn, league, ledger, give):
    give(1, "garchomp", 30)
    with pytest.raises(UnitUnavailableError):
        ledger.fa_pickup(db_conn, FAPickupParams(league.entries[0].id, league.unit_id("garchomp"), week=1))


def test_pickup_for_unknown_entry_fails(db_conn, league, ledger):
    with pytest.raises(NotFoundError):
        ledger.fa_pickup(db_conn, FAPickupParams(999, league.unit_id("garchomp"), week=1))


def test_drop_of_someone_elses_slot_fails(db_conn, league, ledger, give, budget_of):
    slot = give(1, "garchomp", 30)
    with pytest.raises(OwnershipMismatchError):
        ledger.fa_drop(db_conn, FADropParams(league.entries[0].id, slot.id, week=2))
    assert budget_of(league.entries[0].id) == 100


def test_drop_of_captain_records_old_captain(db_conn, league, ledger, give):
    slot = give(0, "clefable", 15, captain=True)
    tx = ledger.fa_drop(db_conn, FADropParams(league.entries[0].id, slot.id, week=2))
    assert tx.old_tera_captain_id == league.unit_id("clefable")
    assert tx.budget_change == 15


# ---------- FA swap ----------


def test_swap_drop_refund_funds_pickup(db_conn, league, ledger, give, slot_repo, budget_of):
    entry = league.entries[0]
    _set_budget(db_conn, entry.id, 10)
    dropped = give(0, "rotom-wash", 15)
    tx = ledger.fa_swap(
        db_conn,
        FASwapParams(entry.id, week=4, pickup_unit_id=league.unit_id("corviknight"), drop_roster_slot_id=dropped.id),
    )
    assert tx.type == TransactionType.FA_SWAP
    assert tx.budget_change == -5
    assert budget_of(entry.id) == 5
    [slot] = slot_repo.list_by_entry(db_conn, entry.id)
    assert slot.unit_id == league.unit_id("corviknight")


def test_swap_fails_atomically_when_refund_is_not_enough(db_conn, league, ledger, give, slot_repo, budget_of):
    entry = league.entries[0]
    _set_budget(db_conn, entry.id, 4)
    dropped = give(0, "rotom-wash", 15)
    with pytest.raises(InsufficientBudgetError) as exc:
        ledger.fa_swap(
            db_conn,
            FASwapParams(entry.id, week=4, pickup_unit_id=league.unit_id("corviknight"), drop_roster_slot_id=dropped.id),
        )
    assert exc.value.shortfall == 1
    assert budget_of(entry.id) == 4
    assert [s.id for s in slot_repo.list_by_entry(db_conn, entry.id)] == [dropped.id]


def test_swap_type_follows_supplied_sides(db_conn, league, ledger, give):
    entry = league.entries[0]
    pickup_only = ledger.fa_swap(db_conn, FASwapParams(entry.id, week=1, pickup_unit_id=league.unit_id("toxapex")))
    assert pickup_only.type == TransactionType.FA_PICKUP
    slot = give(0, "garchomp", 30)
    drop_only = ledger.fa_swap(db_conn, FASwapParams(entry.id, week=1, drop_roster_slot_id=slot.id))
    assert drop_only.type == TransactionType.FA_DROP


def test_swap_requires_a_side(db_conn, league, ledger):
    with pytest.raises(LedgerError):
        ledger.fa_swap(db_conn, FASwapParams(league.entries[0].id, week=1))


def test_swap_can_reacquire_dropped_unit(db_conn, league, ledger, give, slot_repo):
    entry = league.entries[0]
    slot = give(0, "clefable", 10)
    ledger.fa_swap(
        db_conn,
        FASwapParams(
            entry.id, week=2, pickup_unit_id=league.unit_id("clefable"),
            pickup_is_tera_captain=True, drop_roster_slot_id=slot.id,
        ),
    )
    [new_slot] = slot_repo.list_by_entry(db_conn, entry.id)
    assert new_slot.is_tera_captain
    assert new_slot.price == 15


# ---------- P2P trade ----------


def test_trade_points_follow_units(db_conn, league, ledger, give, slot_repo, budget_of):
    team1, team2 = league.entries
    chomp = give(0, "garchomp", 30)
    rotom = give(1, "rotom-wash", 15)
    corv = give(1, "corviknight", 20)

    tx = ledger.p2p_trade(db_conn, P2PTradeParams(team1.id, [chomp.id], team2.id, [rotom.id, corv.id], week=5))

    assert tx.type == TransactionType.P2P_TRADE
    assert tx.budget_change == 5
    assert tx.trading_partner_id == team2.id
    assert tx.trading_partner_abbreviation == "CER"
    assert sorted(tx.units_in) == sorted([league.unit_id("rotom-wash"), league.unit_id("corviknight")])
    assert tx.units_out == [league.unit_id("garchomp")]
    assert budget_of(team1.id) == 105
    assert budget_of(team2.id) == 95

    moved = slot_repo.get(db_conn, chomp.id)
    assert moved.season_entry_id == team2.id
    assert moved.acquired_via == AcquisitionMethod.P2P_TRADE
    assert moved.acquired_week == 5
    assert moved.acquired_transaction_id == tx.id
    assert {s.id for s in slot_repo.list_by_entry(db_conn, team1.id)} == {rotom.id, corv.id}


def test_trade_budget_changes_sum_to_zero(db_conn, league, ledger, give, budget_of):
    team1, team2 = league.entries
    a = give(0, "garchomp", 30)
    b = give(1, "toxapex", 8)
    before = budget_of(team1.id) + budget_of(team2.id)
    ledger.p2p_trade(db_conn, P2PTradeParams(team1.id, [a.id], team2.id, [b.id], week=2))
    assert budget_of(team1.id) + budget_of(team2.id) == before


def test_trade_rejects_more_than_three_per_side(db_conn, league, ledger, give):
    team1, team2 = league.entries
    slots = [give(0, name, 5) for name in ("garchomp", "rotom-wash", "corviknight", "clefable")]
    with pytest.raises(TradeSizeError):
        ledger.p2p_trade(db_conn, P2PTradeParams(team1.id, [s.id for s in slots], team2.id, [], week=1))
    assert issubclass(TradeSizeError, OwnershipMismatchError)


def test_trade_rejects_slot_not_owned_by_claimed_side(db_conn, league, ledger, give, slot_repo):
    team1, team2 = league.entries
    theirs = give(1, "garchomp", 30)
    with pytest.raises(OwnershipMismatchError):
        ledger.p2p_trade(db_conn, P2PTradeParams(team1.id, [theirs.id], team2.id, [], week=1))
    assert slot_repo.get(db_conn, theirs.id).season_entry_id == team2.id


def test_trade_negative_budget_is_all_or_nothing(db_conn, league, ledger, give, slot_repo, budget_of):
    team1, team2 = league.entries
    _set_budget(db_conn, team1.id, 10)
    chomp = give(0, "garchomp", 30)
    pex = give(1, "toxapex", 8)
    with pytest.raises(NegativeBudgetError) as exc:
        ledger.p2p_trade(db_conn, P2PTradeParams(team1.id, [chomp.id], team2.id, [pex.id], week=1))
    assert isinstance(exc.value, InsufficientBudgetError)
    assert budget_of(team1.id) == 10
    assert budget_of(team2.id) == 100
    assert slot_repo.get(db_conn, chomp.id).season_entry_id == team1.id
    assert slot_repo.get(db_conn, pex.id).season_entry_id == team2.id
    assert TransactionRepository().list(db_conn) == []


def test_trade_with_self_rejected(db_conn, league, ledger, give):
    slot = give(0, "garchomp", 30)
    with pytest.raises(LedgerError):
        ledger.p2p_trade(db_conn, P2PTradeParams(league.entries[0].id, [slot.id], league.entries[0].id, [], week=1))


def test_empty_trade_rejected(db_conn, league, ledger):
    with pytest.raises(LedgerError):
        ledger.p2p_trade(db_conn, P2PTradeParams(league.entries[0].id, [], league.entries[1].id, [], week=1))


# ---------- Tera swap ----------


def test_tera_swap_moves_flag_and_folds_surcharge(db_conn, league, ledger, give, slot_repo, budget_of):
    entry = league.entries[0]
    old = give(0, "toxapex", 10, captain=True)
    new = give(0, "clefable", 10)
    tx = ledger.tera_swap(db_conn, TeraSwapParams(entry.id, new.id, week=3, old_captain_slot_id=old.id))

    assert tx.type == TransactionType.TERA_SWAP
    assert tx.budget_change == -5
    assert tx.new_tera_captain_id == league.unit_id("clefable")
    assert tx.old_tera_captain_id == league.unit_id("toxapex")
    assert budget_of(entry.id) == 95
    assert slot_repo.get(db_conn, new.id).is_tera_captain
    assert slot_repo.get(db_conn, new.id).price == 15
    old_after = slot_repo.get(db_conn, old.id)
    assert not old_after.is_tera_captain
    assert old_after.price == 10


def test_tera_swap_on_tera_banned_unit_changes_nothing(db_conn, league, ledger, give, slot_repo, budget_of):
    entry = league.entries[0]
    old = give(0, "toxapex", 10, captain=True)
    banned = give(0, "dragapult", 12)
    with pytest.raises(BannedUnitError):
        ledger.tera_swap(db_conn, TeraSwapParams(entry.id, banned.id, week=3, old_captain_slot_id=old.id))
    assert budget_of(entry.id) == 100
    assert slot_repo.get(db_conn, old.id).is_tera_captain
    assert not slot_repo.get(db_conn, banned.id).is_tera_captain


def test_tera_swap_insufficient_budget(db_conn, league, ledger, give, slot_repo):
    entry = league.entries[0]
    _set_budget(db_conn, entry.id, 2)
    old = give(0, "toxapex", 10, captain=True)
    new = give(0, "clefable", 10)
    with pytest.raises(InsufficientBudgetError):
        ledger.tera_swap(db_conn, TeraSwapParams(entry.id, new.id, week=3, old_captain_slot_id=old.id))
    assert slot_repo.get(db_conn, old.id).is_tera_captain
    assert not slot_repo.get(db_conn, new.id).is_tera_captain


def test_tera_swap_requires_ownership(db_conn, league, ledger, give):
    theirs = give(1, "clefable", 10)
    with pytest.raises(OwnershipMismatchError):
        ledger.tera_swap(db_conn, TeraSwapParams(league.entries[0].id, theirs.id, week=1))


def test_tera_swap_without_surcharge_is_free(db_conn, league, ledger, give, budget_of):
    new = give(0, "garchomp", 30)
    tx = ledger.tera_swap(db_conn, TeraSwapParams(league.entries[0].id, new.id, week=1))
    assert tx.budget_change == 0
    assert budget_of(league.entries[0].id) == 100


def test_tera_swap_old_slot_must_be_current_captain(db_conn, league, ledger, give, slot_repo, budget_of):
    entry = league.entries[0]
    not_captain = give(0, "garchomp", 30)
    new = give(0, "clefable", 10)
    with pytest.raises(LedgerError):
        ledger.tera_swap(db_conn, TeraSwapParams(entry.id, new.id, week=3, old_captain_slot_id=not_captain.id))
    assert not slot_repo.get(db_conn, not_captain.id).is_tera_captain
    assert not slot_repo.get(db_conn, new.id).is_tera_captain
    assert slot_repo.get(db_conn, new.id).price == 10
    assert budget_of(entry.id) == 100
    assert TransactionRepository().list(db_conn) == []


# ---------- Undo ----------


def test_undo_pickup_restores_budget_and_removes_slot(db_conn, league, ledger, slot_repo, budget_of):
    entry = league.entries[0]
    tx = ledger.fa_pickup(db_conn, FAPickupParams(entry.id, league.unit_id("garchomp"), week=1))
    ledger.undo(db_conn, tx.id)
    assert budget_of(entry.id) == 100
    assert slot_repo.list_by_entry(db_conn, entry.id) == []
    assert TransactionRepository().get(db_conn, tx.id) is None


def test_undo_drop_is_unsupported(db_conn, league, ledger, give, budget_of):
    slot = give(0, "garchomp", 30)
    tx = ledger.fa_drop(db_conn, FADropParams(league.entries[0].id, slot.id, week=1))
    with pytest.raises(UnsupportedUndoError):
        ledger.undo(db_conn, tx.id)
    assert TransactionRepository().get(db_conn, tx.id) is not None
    assert budget_of(league.entries[0].id) == 130


def test_undo_swap_reverses_budget_but_not_drop(db_conn, league, ledger, give, slot_repo, budget_of, caplog):
    entry = league.entries[0]
    dropped = give(0, "rotom-wash", 15)
    tx = ledger.fa_swap(
        db_conn,
        FASwapParams(entry.id, week=2, pickup_unit_id=league.unit_id("corviknight"), drop_roster_slot_id=dropped.id),
    )
    assert budget_of(entry.id) == 95
    with caplog.at_level(logging.WARNING):
        ledger.undo(db_conn, tx.id)
    assert budget_of(entry.id) == 100
    assert slot_repo.list_by_entry(db_conn, entry.id) == []
    assert "not restored" in caplog.text


def test_undo_trade_restores_ownership_after_unrelated_transactions(
    db_conn, league, ledger, give, slot_repo, budget_of
):
    team1, team2 = league.entries
    chomp = give(0, "garchomp", 30)
    rotom = give(1, "rotom-wash", 15)
    corv = give(1, "corviknight", 20)
    trade = ledger.p2p_trade(db_conn, P2PTradeParams(team1.id, [chomp.id], team2.id, [rotom.id, corv.id], week=5))
    pickup = ledger.fa_pickup(db_conn, FAPickupParams(team1.id, league.unit_id("toxapex"), week=6))

    ledger.undo(db_conn, trade.id)

    assert budget_of(team1.id) == 100 - 8
    assert budget_of(team2.id) == 100
    restored = slot_repo.get(db_conn, chomp.id)
    assert restored.season_entry_id == team1.id
    assert restored.acquired_via is None
    assert restored.acquired_transaction_id is None
    assert slot_repo.get(db_conn, rotom.id).season_entry_id == team2.id
    assert slot_repo.get(db_conn, corv.id).season_entry_id == team2.id
    toxapex = slot_repo.find_by_entry_and_unit(db_conn, team1.id, league.unit_id("toxapex"))
    assert toxapex is not None and toxapex.acquired_transaction_id == pickup.id


def test_undo_tera_swap_restores_flags_price_and_budget(db_conn, league, ledger, give, slot_repo, budget_of):
    entry = league.entries[0]
    old = give(0, "toxapex", 10, captain=True)
    new = give(0, "clefable", 10)
    tx = ledger.tera_swap(db_conn, TeraSwapParams(entry.id, new.id, week=3, old_captain_slot_id=old.id))
    ledger.undo(db_conn, tx.id)

    assert budget_of(entry.id) == 100
    assert slot_repo.get(db_conn, old.id).is_tera_captain
    new_after = slot_repo.get(db_conn, new.id)
    assert not new_after.is_tera_captain
    assert new_after.price == 10


def test_undo_unknown_transaction(db_conn, league, ledger):
    with pytest.raises(NotFoundError):
        ledger.undo(db_conn, 12345)


# ---------- Quotas ----------


def test_transaction_counts(db_conn, league, ledger, give):
    team1, team2 = league.entries
    ledger.fa_pickup(db_conn, FAPickupParams(team1.id, league.unit_id("toxapex"), week=1))
    ledger.fa_pickup(db_conn, FAPickupParams(team1.id, league.unit_id("clefable"), week=1))
    ledger.fa_pickup(
        db_conn, FAPickupParams(team1.id, league.unit_id("garchomp"), week=1, counts_against_limit=False)
    )
    cap = give(0, "rotom-wash", 15)
    ledger.tera_swap(db_conn, TeraSwapParams(team1.id, cap.id, week=2))
    theirs = give(1, "corviknight", 20)
    ledger.p2p_trade(db_conn, P2PTradeParams(team1.id, [], team2.id, [theirs.id], week=3))

    counts = ledger.transaction_counts(db_conn, team1.id)
    assert counts.fa_used == 3
    assert counts.fa_remaining == 3
    assert counts.p2p_used == 1
    assert counts.p2p_remaining == 5

    partner = ledger.transaction_counts(db_conn, team2.id)
    assert partner.fa_used == 0
    assert partner.p2p_used == 1


def test_quota_is_advisory(db_conn, league, ledger):
    entry = league.entries[0]
    for _ in range(4):
        tx = ledger.fa_pickup(db_conn, FAPickupParams(entry.id, league.unit_id("toxapex"), week=1))
        [slot] = RosterSlotRepository().list_by_transaction(db_conn, tx.id)
        ledger.fa_drop(db_conn, FADropParams(entry.id, slot.id, week=1))
    counts = ledger.transaction_counts(db_conn, entry.id)
    assert counts.fa_used == 8
    assert counts.fa_remaining == 0


# ---------- Replaced teams ----------


@pytest.fixture
def replace_entry(db_conn, league):
    """Hand an entry's team to a new coach mid-season; the original becomes inactive."""

    def _replace(entry_index: int, coach_name: str):
        coach = CoachRepository().create(db_conn, coach_name)
        return season_service.replace_season_entry(db_conn, league.entries[entry_index].id, coach.id)

    return _replace


def test_replaced_entry_cannot_pick_up(db_conn, league, ledger, slot_repo, budget_of, replace_entry):
    old_pal = league.entries[0]
    replace_entry(0, "Brock")
    with pytest.raises(LedgerError):
        ledger.fa_pickup(db_conn, FAPickupParams(old_pal.id, league.unit_id("garchomp"), week=4))
    assert slot_repo.list_by_entry(db_conn, old_pal.id) == []
    assert budget_of(old_pal.id) == 100
    assert TransactionRepository().list(db_conn) == []

    ledger.fa_pickup(db_conn, FAPickupParams(league.entries[1].id, league.unit_id("garchomp"), week=4))
    holders = [
        e.id for e in league.entries
        if slot_repo.find_by_entry_and_unit(db_conn, e.id, league.unit_id("garchomp")) is not None
    ]
    assert holders == [league.entries[1].id]


def test_replaced_entry_cannot_drop(db_conn, league, ledger, give, slot_repo, replace_entry):
    chomp = give(0, "garchomp", 30)
    replace_entry(0, "Brock")
    with pytest.raises(LedgerError):
        ledger.fa_drop(db_conn, FADropParams(league.entries[0].id, chomp.id, week=4))
    assert slot_repo.get(db_conn, chomp.id) is not None


def test_trade_with_replaced_partner_rejected(db_conn, league, ledger, give, slot_repo, budget_of, replace_entry):
    pal, old_cer = league.entries
    chomp = give(0, "garchomp", 30)
    corv = give(1, "corviknight", 20)
    replace_entry(1, "Brock")
    with pytest.raises(LedgerError):
        ledger.p2p_trade(db_conn, P2PTradeParams(pal.id, [chomp.id], old_cer.id, [corv.id], week=4))
    assert slot_repo.get(db_conn, chomp.id).season_entry_id == pal.id
    assert slot_repo.get(db_conn, corv.id).season_entry_id == old_cer.id
    assert budget_of(pal.id) == 100
    assert TransactionRepository().list(db_conn) == []


def test_replaced_entry_cannot_tera_swap(db_conn, league, ledger, give, slot_repo, budget_of, replace_entry):
    clef = give(0, "clefable", 10)
    replace_entry(0, "Brock")
    with pytest.raises(LedgerError):
        ledger.tera_swap(db_conn, TeraSwapParams(league.entries[0].id, clef.id, week=4))
    assert not slot_repo.get(db_conn, clef.id).is_tera_captain
    assert budget_of(league.entries[0].id) == 100


def test_replacement_entry_transacts(db_conn, league, ledger, slot_repo, replace_entry):
    replacement = replace_entry(0, "Brock")
    tx = ledger.fa_pickup(db_conn, FAPickupParams(replacement.id, league.unit_id("toxapex"), week=4))
    assert tx.season_entry_id == replacement.id
    assert [s.unit_id for s in slot_repo.list_by_entry(db_conn, replacement.id)] == [league.unit_id("toxapex")]


# ---------- Trade lock ----------


def test_trade_lock_window(db_conn, league, ledger, slot_repo):
    tx = ledger.fa_pickup(db_conn, FAPickupParams(league.entries[0].id, league.unit_id("garchomp"), week=3))
    [slot] = slot_repo.list_by_transaction(db_conn, tx.id)
    assert ledger.trade_lock_status(db_conn, slot.id, 3).locked
    assert ledger.trade_lock_status(db_conn, slot.id, 4).locked
    status = ledger.trade_lock_status(db_conn, slot.id, 5)
    assert not status.locked
    assert status.unlocks_week == 5
    assert status.acquired_via == AcquisitionMethod.FA_PICKUP


def test_draft_slots_never_locked():
    drafted = RosterSlot(id=1, season_entry_id=1, unit_id=1, price=10, acquired_week=3, acquired_via="DRAFT")
    legacy = RosterSlot(id=2, season_entry_id=1, unit_id=2, price=10)
    for week in (0, 3, 4, 50):
        assert not is_trade_locked(drafted, week)
        assert not is_trade_locked(legacy, week)


def test_traded_slot_lock_resets(db_conn, league, ledger, give):
    chomp = give(0, "garchomp", 30)
    ledger.p2p_trade(db_conn, P2PTradeParams(league.entries[0].id, [chomp.id], league.entries[1].id, [], week=7))
    assert ledger.trade_lock_status(db_conn, chomp.id, 8).locked
    assert not ledger.trade_lock_status(db_conn, chomp.id, 9).locked


def test_trade_lock_unknown_slot(db_conn, ledger):
    with pytest.raises(NotFoundError):
        ledger.trade_lock_status(db_conn, 404, 1)


# ---------- Listing ----------


def test_list_transactions_matches_partner(db_conn, league, ledger, give):
    team1, team2 = league.entries
    ledger.fa_pickup(db_conn, FAPickupParams(team1.id, league.unit_id("toxapex"), week=1))
    theirs = give(1, "corviknight", 20)
    trade = ledger.p2p_trade(db_conn, P2PTradeParams(team1.id, [], team2.id, [theirs.id], week=2))

    for_team2 = ledger.list_transactions(db_conn, season_entry_id=team2.id)
    assert [t.id for t in for_team2] == [trade.id]
    assert len(ledger.list_transactions(db_conn, season_id=league.season.id)) == 2
    assert len(ledger.list_transactions(db_conn, type="FA_PICKUP")) == 1
