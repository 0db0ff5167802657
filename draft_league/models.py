"""
Data models for the draft league backend.
Domain objects only; no persistence or API logic.

Coaches carry a rating across seasons; each season a coach joins one division
as a season entry with its own budget and roster. Roster changes after the
draft are recorded as transactions.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


# ---------- Transaction type ----------
class TransactionType(str, Enum):
    FA_PICKUP = "FA_PICKUP"
    FA_DROP = "FA_DROP"
    FA_SWAP = "FA_SWAP"
    P2P_TRADE = "P2P_TRADE"
    TERA_SWAP = "TERA_SWAP"


# Free-agency kinds share one quota; trades have their own.
FA_TRANSACTION_TYPES = frozenset({
    TransactionType.FA_PICKUP.value,
    TransactionType.FA_DROP.value,
    TransactionType.FA_SWAP.value,
    TransactionType.TERA_SWAP.value,
})


# ---------- How a roster slot was acquired ----------
class AcquisitionMethod(str, Enum):
    DRAFT = "DRAFT"
    FA_PICKUP = "FA_PICKUP"
    P2P_TRADE = "P2P_TRADE"


# ---------- Coach ----------
@dataclass
class Coach:
    """Persistent league participant. rating is rewritten only by the rating pass."""
    id: int
    name: str
    rating: float
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "rating": self.rating,
            "created_at": self.created_at.isoformat(),
        }


# ---------- Season ----------
@dataclass
class Season:
    """season_number is the chronological ordinal used by the rating pass."""
    id: int
    name: str
    season_number: int
    draft_budget: int
    is_current: bool = False
    start_date: str | None = None
    end_date: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "season_number": self.season_number,
            "draft_budget": self.draft_budget,
            "is_current": self.is_current,
            "start_date": self.start_date,
            "end_date": self.end_date,
        }


# ---------- Division ----------
@dataclass
class Division:
    id: int
    season_id: int
    name: str
    display_order: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "season_id": self.season_id,
            "name": self.name,
            "display_order": self.display_order,
        }


# ---------- SeasonEntry ----------
@dataclass
class SeasonEntry:
    """
    A coach's team in one division of one season.
    replaced_by_id links an inactive entry to its mid-season replacement.
    season_id is denormalized from the division on read.
    """
    id: int
    coach_id: int
    division_id: int
    team_name: str
    team_abbreviation: str | None
    remaining_budget: int | None
    is_active: bool = True
    replaced_by_id: int | None = None
    season_id: int | None = None

    @property
    def budget(self) -> int:
        return self.remaining_budget or 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "coach_id": self.coach_id,
            "division_id": self.division_id,
            "season_id": self.season_id,
            "team_name": self.team_name,
            "team_abbreviation": self.team_abbreviation,
            "remaining_budget": self.remaining_budget,
            "is_active": self.is_active,
            "replaced_by_id": self.replaced_by_id,
        }


# ---------- Unit (catalog) ----------
@dataclass
class Unit:
    """Catalog entry. Display only; irrelevant to ledger or rating correctness."""
    id: int
    name: str
    display_name: str | None = None
    sprite_url: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "display_name": self.display_name,
            "sprite_url": self.sprite_url,
        }


# ---------- PriceEntry ----------
@dataclass
class PriceEntry:
    """
    Per-season price of a unit. price == -1 is the complex-ban sentinel.
    tera_captain_cost None means no captain surcharge is defined.
    """
    id: int
    season_id: int
    unit_id: int
    price: int
    tera_banned: bool = False
    tera_captain_cost: int | None = None
    complex_ban_reason: str | None = None

    @property
    def is_banned(self) -> bool:
        return self.price < 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "season_id": self.season_id,
            "unit_id": self.unit_id,
            "price": self.price,
            "tera_banned": self.tera_banned,
            "tera_captain_cost": self.tera_captain_cost,
            "complex_ban_reason": self.complex_ban_reason,
        }


# ---------- RosterSlot ----------
@dataclass
class RosterSlot:
    """
    One unit owned by one season entry. price already includes any captain
    surcharge paid. acquired_* is None for draft-era rows.
    """
    id: int
    season_entry_id: int
    unit_id: int
    price: int
    is_tera_captain: bool = False
    draft_order: int | None = None
    acquired_week: int | None = None
    acquired_via: str | None = None  # AcquisitionMethod value
    acquired_transaction_id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "season_entry_id": self.season_entry_id,
            "unit_id": self.unit_id,
            "price": self.price,
            "is_tera_captain": self.is_tera_captain,
            "draft_order": self.draft_order,
            "acquired_week": self.acquired_week,
            "acquired_via": self.acquired_via,
            "acquired_transaction_id": self.acquired_transaction_id,
        }


# ---------- Transaction ----------
@dataclass
class Transaction:
    """
    Audit record of one ledger mutation. Append-only; removed only by undo.
    For P2P_TRADE, season_entry_id is team 1 and units_in/units_out are from its side.
    """
    id: int
    season_id: int
    type: str  # TransactionType value
    week: int
    season_entry_id: int
    budget_change: int
    counts_against_limit: bool
    created_at: datetime
    team_abbreviation: str | None = None
    trading_partner_id: int | None = None
    trading_partner_abbreviation: str | None = None
    units_in: list[int] = field(default_factory=list)
    units_out: list[int] = field(default_factory=list)
    new_tera_captain_id: int | None = None
    old_tera_captain_id: int | None = None
    notes: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "season_id": self.season_id,
            "type": self.type,
            "week": self.week,
            "season_entry_id": self.season_entry_id,
            "team_abbreviation": self.team_abbreviation,
            "trading_partner_id": self.trading_partner_id,
            "trading_partner_abbreviation": self.trading_partner_abbreviation,
            "units_in": list(self.units_in),
            "units_out": list(self.units_out),
            "new_tera_captain_id": self.new_tera_captain_id,
            "old_tera_captain_id": self.old_tera_captain_id,
            "budget_change": self.budget_change,
            "counts_against_limit": self.counts_against_limit,
            "notes": self.notes,
            "created_at": self.created_at.isoformat(),
        }


# ---------- MatchRecord ----------
@dataclass
class MatchRecord:
    """
    A match between two season entries. winner_id None = not played yet.
    week <= 100 is regular season; 101-103 are playoff rounds.
    """
    id: int
    season_id: int
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

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "season_id": self.season_id,
            "division_id": self.division_id,
            "week": self.week,
            "entry1_id": self.entry1_id,
            "entry2_id": self.entry2_id,
            "winner_id": self.winner_id,
            "entry1_differential": self.entry1_differential,
            "entry2_differential": self.entry2_differential,
            "is_forfeit": self.is_forfeit,
            "played_at": self.played_at,
            "replay_url": self.replay_url,
        }


# ---------- MatchUnitStat ----------
@dataclass
class MatchUnitStat:
    """Per-unit kills/deaths from one match's battle log."""
    id: int
    match_id: int
    season_entry_id: int
    unit_id: int
    kills: int = 0
    deaths: int = 0


# ---------- PlayoffMatch ----------
@dataclass
class PlayoffMatch:
    """
    One node of a division's playoff bracket. round 1 = quarterfinal, 2 = semifinal,
    3 = final. Seeds stay None until known; match_id points at the fixture in the
    matches table (week PLAYOFF_WEEK_OFFSET + round) once both seeds are set.
    """
    id: int
    season_id: int
    division_id: int
    round: int
    bracket_position: int
    higher_seed_id: int | None = None
    lower_seed_id: int | None = None
    winner_id: int | None = None
    higher_seed_wins: int = 0
    lower_seed_wins: int = 0
    played_at: str | None = None
    match_id: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "season_id": self.season_id,
            "division_id": self.division_id,
            "round": self.round,
            "bracket_position": self.bracket_position,
            "higher_seed_id": self.higher_seed_id,
            "lower_seed_id": self.lower_seed_id,
            "winner_id": self.winner_id,
            "higher_seed_wins": self.higher_seed_wins,
            "lower_seed_wins": self.lower_seed_wins,
            "played_at": self.played_at,
            "match_id": self.match_id,
        }


# ---------- RatingHistoryEntry ----------
@dataclass
class RatingHistoryEntry:
    id: int
    coach_id: int
    rating: float
    match_id: int | None
    recorded_at: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "coach_id": self.coach_id,
            "rating": self.rating,
            "match_id": self.match_id,
            "recorded_at": self.recorded_at,
        }
