"""
Repository interfaces for draft league data.
No business logic, only read/write operations. Writes never commit on their
own; callers group them with persistence.db.transaction().
"""
from __future__ import annotations

import json
import sqlite3
from datetime import datetime, timezone
from typing import Any, Iterable

from draft_league.config import DEFAULT_DRAFT_BUDGET, DEFAULT_PLACEMENT_RATING
from draft_league.models import (
    Coach,
    Division,
    MatchRecord,
    MatchUnitStat,
    PlayoffMatch,
    PriceEntry,
    RatingHistoryEntry,
    RosterSlot,
    Season,
    SeasonEntry,
    Transaction,
    Unit,
)


def _parse_datetime(s: str | None) -> datetime:
    if s is None:
        raise ValueError("expected datetime string")
    return datetime.fromisoformat(s.replace("Z", "+00:00"))


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _placeholders(values: Iterable[Any]) -> str:
    return ", ".join("?" for _ in values)


# ---------- CoachRepository ----------


class CoachRepository:
    """CRUD for coaches. rating is written only through update_rating."""

    def create(
        self, conn: sqlite3.Connection, name: str, rating: float = DEFAULT_PLACEMENT_RATING
    ) -> Coach:
        now = _now_iso()
        cur = conn.execute(
            "INSERT INTO coaches (name, rating, created_at) VALUES (?, ?, ?)",
            (name, rating, now),
        )
        return Coach(id=cur.lastrowid, name=name, rating=rating, created_at=_parse_datetime(now))

    def get(self, conn: sqlite3.Connection, coach_id: int) -> Coach | None:
        row = conn.execute(
            "SELECT id, name, rating, created_at FROM coaches WHERE id = ?", (coach_id,)
        ).fetchone()
        if row is None:
            return None
        return self._from_row(row)

    def list_all(self, conn: sqlite3.Connection) -> list[Coach]:
        rows = conn.execute("SELECT id, name, rating, created_at FROM coaches ORDER BY id").fetchall()
        return [self._from_row(r) for r in rows]

    def update_rating(self, conn: sqlite3.Connection, coach_id: int, rating: float) -> None:
        conn.execute("UPDATE coaches SET rating = ? WHERE id = ?", (rating, coach_id))

    @staticmethod
    def _from_row(row: sqlite3.Row) -> Coach:
        return Coach(
            id=row["id"],
            name=row["name"],
            rating=row["rating"],
            created_at=_parse_datetime(row["created_at"]),
        )


# ---------- SeasonRepository ----------


class SeasonRepository:
    """CRUD for seasons."""

    def create(
        self,
        conn: sqlite3.Connection,
        name: str,
        season_number: int,
        draft_budget: int = DEFAULT_DRAFT_BUDGET,
        is_current: bool = False,
    ) -> Season:
        cur = conn.execute(
            "INSERT INTO seasons (name, season_number, draft_budget, is_current) VALUES (?, ?, ?, ?)",
            (name, season_number, draft_budget, 1 if is_current else 0),
        )
        return Season(
            id=cur.lastrowid, name=name, season_number=season_number,
            draft_budget=draft_budget, is_current=is_current,
        )

    def get(self, conn: sqlite3.Connection, season_id: int) -> Season | None:
        row = conn.execute(
            "SELECT id, name, season_number, draft_budget, is_current, start_date, end_date FROM seasons WHERE id = ?",
            (season_id,),
        ).fetchone()
        if row is None:
            return None
        return Season(
            id=row["id"],
            name=row["name"],
            season_number=row["season_number"],
            draft_budget=row["draft_budget"],
            is_current=bool(row["is_current"]),
            start_date=row["start_date"],
            end_date=row["end_date"],
        )


# ---------- DivisionRepository ----------


class DivisionRepository:
    """CRUD for divisions."""

    def create(
        self, conn: sqlite3.Connection, season_id: int, name: str, display_order: int = 0
    ) -> Division:
        cur = conn.execute(
            "INSERT INTO divisions (season_id, name, display_order) VALUES (?, ?, ?)",
            (season_id, name, display_order),
        )
        return Division(id=cur.lastrowid, season_id=season_id, name=name, display_order=display_order)

    def get(self, conn: sqlite3.Connection, division_id: int) -> Division | None:
        row = conn.execute(
            "SELECT id, season_id, name, display_order FROM divisions WHERE id = ?", (division_id,)
        ).fetchone()
        if row is None:
            return None
        return Division(
            id=row["id"], season_id=row["season_id"], name=row["name"],
            display_order=row["display_order"],
        )

    def list_by_season(self, conn: sqlite3.Connection, season_id: int) -> list[Division]:
        rows = conn.execute(
            "SELECT id, season_id, name, display_order FROM divisions WHERE season_id = ? ORDER BY display_order, id",
            (season_id,),
        ).fetchall()
        return [
            Division(id=r["id"], season_id=r["season_id"], name=r["name"], display_order=r["display_order"])
            for r in rows
        ]


# ---------- SeasonEntryRepository ----------

_ENTRY_COLUMNS = """
    se.id, se.coach_id, se.division_id, se.team_name, se.team_abbreviation,
    se.remaining_budget, se.is_active, se.replaced_by_id, d.season_id
"""


class SeasonEntryRepository:
    """CRUD for season_entries. Reads join divisions to expose season_id."""

    def create(
        self,
        conn: sqlite3.Connection,
        coach_id: int,
        division_id: int,
        team_name: str,
        team_abbreviation: str | None,
        remaining_budget: int | None,
        is_active: bool = True,
    ) -> SeasonEntry:
        cur = conn.execute(
            """INSERT INTO season_entries (
                coach_id, division_id, team_name, team_abbreviation, remaining_budget, is_active
            ) VALUES (?, ?, ?, ?, ?, ?)""",
            (coach_id, division_id, team_name, team_abbreviation, remaining_budget, 1 if is_active else 0),
        )
        entry = self.get(conn, cur.lastrowid)
        assert entry is not None
        return entry

    def get(self, conn: sqlite3.Connection, entry_id: int) -> SeasonEntry | None:
        row = conn.execute(
            f"""SELECT {_ENTRY_COLUMNS}
                FROM season_entries se LEFT JOIN divisions d ON d.id = se.division_id
                WHERE se.id = ?""",
            (entry_id,),
        ).fetchone()
        if row is None:
            return None
        return self._from_row(row)

    def list_by_division(self, conn: sqlite3.Connection, division_id: int) -> list[SeasonEntry]:
        rows = conn.execute(
            f"""SELECT {_ENTRY_COLUMNS}
                FROM season_entries se LEFT JOIN divisions d ON d.id = se.division_id
                WHERE se.division_id = ? ORDER BY se.id""",
            (division_id,),
        ).fetchall()
        return [self._from_row(r) for r in rows]

    def list_all(self, conn: sqlite3.Connection) -> list[SeasonEntry]:
        rows = conn.execute(
            f"""SELECT {_ENTRY_COLUMNS}
                FROM season_entries se LEFT JOIN divisions d ON d.id = se.division_id
                ORDER BY se.id"""
        ).fetchall()
        return [self._from_row(r) for r in rows]

    def list_by_coach(self, conn: sqlite3.Connection, coach_id: int) -> list[SeasonEntry]:
        rows = conn.execute(
            f"""SELECT {_ENTRY_COLUMNS}
                FROM season_entries se LEFT JOIN divisions d ON d.id = se.division_id
                WHERE se.coach_id = ? ORDER BY se.id""",
            (coach_id,),
        ).fetchall()
        return [self._from_row(r) for r in rows]

    def get_active_for_coach_in_division(
        self, conn: sqlite3.Connection, coach_id: int, division_id: int
    ) -> SeasonEntry | None:
        row = conn.execute(
            f"""SELECT {_ENTRY_COLUMNS}
                FROM season_entries se LEFT JOIN divisions d ON d.id = se.division_id
                WHERE se.coach_id = ? AND se.division_id = ? AND se.is_active = 1""",
            (coach_id, division_id),
        ).fetchone()
        if row is None:
            return None
        return self._from_row(row)

    def update_budget(self, conn: sqlite3.Connection, entry_id: int, remaining_budget: int) -> None:
        conn.execute(
            "UPDATE season_entries SET remaining_budget = ? WHERE id = ?",
            (remaining_budget, entry_id),
        )

    def mark_replaced(self, conn: sqlite3.Connection, entry_id: int, replaced_by_id: int) -> None:
        conn.execute(
            "UPDATE season_entries SET is_active = 0, replaced_by_id = ? WHERE id = ?",
            (replaced_by_id, entry_id),
        )

    @staticmethod
    def _from_row(row: sqlite3.Row) -> SeasonEntry:
        return SeasonEntry(
            id=row["id"],
            coach_id=row["coach_id"],
            division_id=row["division_id"],
            team_name=row["team_name"],
            team_abbreviation=row["team_abbreviation"],
            remaining_budget=row["remaining_budget"],
            is_active=bool(row["is_active"]),
            replaced_by_id=row["replaced_by_id"],
            season_id=row["season_id"],
        )


# ---------- UnitRepository ----------


class UnitRepository:
    """Unit catalog."""

    def create(
        self,
        conn: sqlite3.Connection,
        name: str,
        display_name: str | None = None,
        sprite_url: str | None = None,
    ) -> Unit:
        cur = conn.execute(
            "INSERT INTO units (name, display_name, sprite_url) VALUES (?, ?, ?)",
            (name, display_name, sprite_url),
        )
        return Unit(id=cur.lastrowid, name=name, display_name=display_name, sprite_url=sprite_url)

    def get(self, conn: sqlite3.Connection, unit_id: int) -> Unit | None:
        row = conn.execute(
            "SELECT id, name, display_name, sprite_url FROM units WHERE id = ?", (unit_id,)
        ).fetchone()
        if row is None:
            return None
        return Unit(id=row["id"], name=row["name"], display_name=row["display_name"], sprite_url=row["sprite_url"])

    def list_by_ids(self, conn: sqlite3.Connection, unit_ids: list[int]) -> dict[int, Unit]:
        if not unit_ids:
            return {}
        rows = conn.execute(
            f"SELECT id, name, display_name, sprite_url FROM units WHERE id IN ({_placeholders(unit_ids)})",
            tuple(unit_ids),
        ).fetchall()
        return {
            r["id"]: Unit(id=r["id"], name=r["name"], display_name=r["display_name"], sprite_url=r["sprite_url"])
            for r in rows
        }


# ---------- PriceRepository ----------


class PriceRepository:
    """Per-season unit prices. One row per (season, unit)."""

    def create(
        self,
        conn: sqlite3.Connection,
        season_id: int,
        unit_id: int,
        price: int,
        tera_banned: bool = False,
        tera_captain_cost: int | None = None,
        complex_ban_reason: str | None = None,
    ) -> PriceEntry:
        cur = conn.execute(
            """INSERT INTO season_prices (
                season_id, unit_id, price, tera_banned, tera_captain_cost, complex_ban_reason
            ) VALUES (?, ?, ?, ?, ?, ?)""",
            (season_id, unit_id, price, 1 if tera_banned else 0, tera_captain_cost, complex_ban_reason),
        )
        return PriceEntry(
            id=cur.lastrowid, season_id=season_id, unit_id=unit_id, price=price,
            tera_banned=tera_banned, tera_captain_cost=tera_captain_cost,
            complex_ban_reason=complex_ban_reason,
        )

    def get(self, conn: sqlite3.Connection, season_id: int, unit_id: int) -> PriceEntry | None:
        row = conn.execute(
            """SELECT id, season_id, unit_id, price, tera_banned, tera_captain_cost, complex_ban_reason
               FROM season_prices WHERE season_id = ? AND unit_id = ?""",
            (season_id, unit_id),
        ).fetchone()
        if row is None:
            return None
        return self._from_row(row)

    def list_by_season(self, conn: sqlite3.Connection, season_id: int) -> list[PriceEntry]:
        rows = conn.execute(
            """SELECT id, season_id, unit_id, price, tera_banned, tera_captain_cost, complex_ban_reason
               FROM season_prices WHERE season_id = ? ORDER BY price DESC, unit_id""",
            (season_id,),
        ).fetchall()
        return [self._from_row(r) for r in rows]

    @staticmethod
    def _from_row(row: sqlite3.Row) -> PriceEntry:
        return PriceEntry(
            id=row["id"],
            season_id=row["season_id"],
            unit_id=row["unit_id"],
            price=row["price"],
            tera_banned=bool(row["tera_banned"]),
            tera_captain_cost=row["tera_captain_cost"],
            complex_ban_reason=row["complex_ban_reason"],
        )


# ---------- RosterSlotRepository ----------

_SLOT_COLUMNS = """
    id, season_entry_id, unit_id, price, draft_order, is_tera_captain,
    acquired_week, acquired_via, acquired_transaction_id
"""


class RosterSlotRepository:
    """CRUD for roster_slots (unit ownership)."""

    def create(
        self,
        conn: sqlite3.Connection,
        season_entry_id: int,
        unit_id: int,
        price: int,
        is_tera_captain: bool = False,
        draft_order: int | None = None,
        acquired_week: int | None = None,
        acquired_via: str | None = None,
        acquired_transaction_id: int | None = None,
    ) -> RosterSlot:
        cur = conn.execute(
            """INSERT INTO roster_slots (
                season_entry_id, unit_id, price, draft_order, is_tera_captain,
                acquired_week, acquired_via, acquired_transaction_id
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                season_entry_id, unit_id, price, draft_order, 1 if is_tera_captain else 0,
                acquired_week, acquired_via, acquired_transaction_id,
            ),
        )
        return RosterSlot(
            id=cur.lastrowid,
            season_entry_id=season_entry_id,
            unit_id=unit_id,
            price=price,
            is_tera_captain=is_tera_captain,
            draft_order=draft_order,
            acquired_week=acquired_week,
            acquired_via=acquired_via,
            acquired_transaction_id=acquired_transaction_id,
        )

    def get(self, conn: sqlite3.Connection, slot_id: int) -> RosterSlot | None:
        row = conn.execute(
            f"SELECT {_SLOT_COLUMNS} FROM roster_slots WHERE id = ?", (slot_id,)
        ).fetchone()
        if row is None:
            return None
        return self._from_row(row)

    def list_by_ids(self, conn: sqlite3.Connection, slot_ids: list[int]) -> list[RosterSlot]:
        if not slot_ids:
            return []
        rows = conn.execute(
            f"SELECT {_SLOT_COLUMNS} FROM roster_slots WHERE id IN ({_placeholders(slot_ids)}) ORDER BY id",
            tuple(slot_ids),
        ).fetchall()
        return [self._from_row(r) for r in rows]

    def list_by_entry(self, conn: sqlite3.Connection, season_entry_id: int) -> list[RosterSlot]:
        rows = conn.execute(
            f"SELECT {_SLOT_COLUMNS} FROM roster_slots WHERE season_entry_id = ? ORDER BY draft_order, id",
            (season_entry_id,),
        ).fetchall()
        return [self._from_row(r) for r in rows]

    def list_by_transaction(self, conn: sqlite3.Connection, transaction_id: int) -> list[RosterSlot]:
        rows = conn.execute(
            f"SELECT {_SLOT_COLUMNS} FROM roster_slots WHERE acquired_transaction_id = ? ORDER BY id",
            (transaction_id,),
        ).fetchall()
        return [self._from_row(r) for r in rows]

    def find_by_entry_and_unit(
        self, conn: sqlite3.Connection, season_entry_id: int, unit_id: int
    ) -> RosterSlot | None:
        row = conn.execute(
            f"SELECT {_SLOT_COLUMNS} FROM roster_slots WHERE season_entry_id = ? AND unit_id = ? ORDER BY id LIMIT 1",
            (season_entry_id, unit_id),
        ).fetchone()
        if row is None:
            return None
        return self._from_row(row)

    def unit_ids_held_in_season(self, conn: sqlite3.Connection, season_id: int) -> set[int]:
        """Unit ids on any active entry's roster in any division of the season."""
        rows = conn.execute(
            """SELECT DISTINCT rs.unit_id
               FROM roster_slots rs
               JOIN season_entries se ON se.id = rs.season_entry_id
               JOIN divisions d ON d.id = se.division_id
               WHERE d.season_id = ? AND se.is_active = 1""",
            (season_id,),
        ).fetchall()
        return {r["unit_id"] for r in rows}

    def is_unit_held_in_season(
        self,
        conn: sqlite3.Connection,
        season_id: int,
        unit_id: int,
        exclude_slot_id: int | None = None,
    ) -> bool:
        row = conn.execute(
            """SELECT 1
               FROM roster_slots rs
               JOIN season_entries se ON se.id = rs.season_entry_id
               JOIN divisions d ON d.id = se.division_id
               WHERE d.season_id = ? AND se.is_active = 1 AND rs.unit_id = ? AND rs.id != ?
               LIMIT 1""",
            (season_id, unit_id, exclude_slot_id if exclude_slot_id is not None else -1),
        ).fetchone()
        return row is not None

    def update_owner(
        self,
        conn: sqlite3.Connection,
        slot_id: int,
        season_entry_id: int,
        acquired_week: int | None,
        acquired_via: str | None,
        acquired_transaction_id: int | None,
    ) -> None:
        conn.execute(
            """UPDATE roster_slots
               SET season_entry_id = ?, acquired_week = ?, acquired_via = ?, acquired_transaction_id = ?
               WHERE id = ?""",
            (season_entry_id, acquired_week, acquired_via, acquired_transaction_id, slot_id),
        )

    def update_captain(
        self, conn: sqlite3.Connection, slot_id: int, is_tera_captain: bool, price: int
    ) -> None:
        conn.execute(
            "UPDATE roster_slots SET is_tera_captain = ?, price = ? WHERE id = ?",
            (1 if is_tera_captain else 0, price, slot_id),
        )

    def delete(self, conn: sqlite3.Connection, slot_id: int) -> None:
        conn.execute("DELETE FROM roster_slots WHERE id = ?", (slot_id,))

    @staticmethod
    def _from_row(row: sqlite3.Row) -> RosterSlot:
        return RosterSlot(
            id=row["id"],
            season_entry_id=row["season_entry_id"],
            unit_id=row["unit_id"],
            price=row["price"],
            is_tera_captain=bool(row["is_tera_captain"]),
            draft_order=row["draft_order"],
            acquired_week=row["acquired_week"],
            acquired_via=row["acquired_via"],
            acquired_transaction_id=row["acquired_transaction_id"],
        )


# ---------- TransactionRepository ----------

_TX_COLUMNS = """
    id, season_id, type, week, season_entry_id, team_abbreviation,
    trading_partner_id, trading_partner_abbreviation, units_in, units_out,
    new_tera_captain_id, old_tera_captain_id, budget_change,
    counts_against_limit, notes, created_at
"""


class TransactionRepository:
    """Append-only audit log of ledger mutations. delete() is used only by undo."""

    def create(
        self,
        conn: sqlite3.Connection,
        season_id: int,
        type: str,
        week: int,
        season_entry_id: int,
        budget_change: int,
        counts_against_limit: bool = True,
        team_abbreviation: str | None = None,
        trading_partner_id: int | None = None,
        trading_partner_abbreviation: str | None = None,
        units_in: list[int] | None = None,
        units_out: list[int] | None = None,
        new_tera_captain_id: int | None = None,
        old_tera_captain_id: int | None = None,
        notes: str | None = None,
    ) -> Transaction:
        now = _now_iso()
        units_in = list(units_in or [])
        units_out = list(units_out or [])
        cur = conn.execute(
            """INSERT INTO transactions (
                season_id, type, week, season_entry_id, team_abbreviation,
                trading_partner_id, trading_partner_abbreviation, units_in, units_out,
                new_tera_captain_id, old_tera_captain_id, budget_change,
                counts_against_limit, notes, created_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                season_id, type, week, season_entry_id, team_abbreviation,
                trading_partner_id, trading_partner_abbreviation,
                json.dumps(units_in), json.dumps(units_out),
                new_tera_captain_id, old_tera_captain_id, budget_change,
                1 if counts_against_limit else 0, notes, now,
            ),
        )
        return Transaction(
            id=cur.lastrowid,
            season_id=season_id,
            type=type,
            week=week,
            season_entry_id=season_entry_id,
            budget_change=budget_change,
            counts_against_limit=counts_against_limit,
            created_at=_parse_datetime(now),
            team_abbreviation=team_abbreviation,
            trading_partner_id=trading_partner_id,
            trading_partner_abbreviation=trading_partner_abbreviation,
            units_in=units_in,
            units_out=units_out,
            new_tera_captain_id=new_tera_captain_id,
            old_tera_captain_id=old_tera_captain_id,
            notes=notes,
        )

    def get(self, conn: sqlite3.Connection, transaction_id: int) -> Transaction | None:
        row = conn.execute(
            f"SELECT {_TX_COLUMNS} FROM transactions WHERE id = ?", (transaction_id,)
        ).fetchone()
        if row is None:
            return None
        return self._from_row(row)

    def list(
        self,
        conn: sqlite3.Connection,
        season_id: int | None = None,
        season_entry_id: int | None = None,
        type: str | None = None,
    ) -> list[Transaction]:
        """Newest first. season_entry_id matches the primary team or the trading partner."""
        clauses: list[str] = []
        args: list[Any] = []
        if season_id is not None:
            clauses.append("season_id = ?")
            args.append(season_id)
        if season_entry_id is not None:
            clauses.append("(season_entry_id = ? OR trading_partner_id = ?)")
            args.extend([season_entry_id, season_entry_id])
        if type is not None:
            clauses.append("type = ?")
            args.append(type)
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = conn.execute(
            f"SELECT {_TX_COLUMNS} FROM transactions {where} ORDER BY created_at DESC, id DESC",
            tuple(args),
        ).fetchall()
        return [self._from_row(r) for r in rows]

    def list_counting_for_entry(self, conn: sqlite3.Connection, season_entry_id: int) -> list[Transaction]:
        """Transactions initiated by the entry that count against its limits."""
        rows = conn.execute(
            f"SELECT {_TX_COLUMNS} FROM transactions WHERE season_entry_id = ? AND counts_against_limit = 1",
            (season_entry_id,),
        ).fetchall()
        return [self._from_row(r) for r in rows]

    def count_counting_partner_trades(self, conn: sqlite3.Connection, season_entry_id: int) -> int:
        """Trades where the entry was the trading partner and the trade counts against limits."""
        row = conn.execute(
            """SELECT COUNT(*) AS n FROM transactions
               WHERE trading_partner_id = ? AND counts_against_limit = 1 AND type = 'P2P_TRADE'""",
            (season_entry_id,),
        ).fetchone()
        return int(row["n"])

    def delete(self, conn: sqlite3.Connection, transaction_id: int) -> None:
        conn.execute("DELETE FROM transactions WHERE id = ?", (transaction_id,))

    @staticmethod
    def _from_row(row: sqlite3.Row) -> Transaction:
        return Transaction(
            id=row["id"],
            season_id=row["season_id"],
            type=row["type"],
            week=row["week"],
            season_entry_id=row["season_entry_id"],
            budget_change=row["budget_change"],
            counts_against_limit=bool(row["counts_against_limit"]),
            created_at=_parse_datetime(row["created_at"]),
            team_abbreviation=row["team_abbreviation"],
            trading_partner_id=row["trading_partner_id"],
            trading_partner_abbreviation=row["trading_partner_abbreviation"],
            units_in=json.loads(row["units_in"] or "[]"),
            units_out=json.loads(row["units_out"] or "[]"),
            new_tera_captain_id=row["new_tera_captain_id"],
            old_tera_captain_id=row["old_tera_captain_id"],
            notes=row["notes"],
        )


# ---------- MatchRepository ----------

_MATCH_COLUMNS = """
    id, season_id, division_id, week, entry1_id, entry2_id, winner_id,
    entry1_differential, entry2_differential, is_forfeit, played_at, replay_url
"""


class MatchRepository:
    """Match results and per-unit battle stats. Results arrive from outside the engine."""

    def create(
        self,
        conn: sqlite3.Connection,
        season_id: int,
        division_id: int,
        week: int,
        entry1_id: int,
        entry2_id: int,
        winner_id: int | None = None,
        entry1_differential: int = 0,
        entry2_differential: int = 0,
        is_forfeit: bool = False,
        played_at: str | None = None,
        replay_url: str | None = None,
    ) -> MatchRecord:
        cur = conn.execute(
            """INSERT INTO matches (
                season_id, division_id, week, entry1_id, entry2_id, winner_id,
                entry1_differential, entry2_differential, is_forfeit, played_at, replay_url
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                season_id, division_id, week, entry1_id, entry2_id, winner_id,
                entry1_differential, entry2_differential, 1 if is_forfeit else 0,
                played_at, replay_url,
            ),
        )
        return MatchRecord(
            id=cur.lastrowid,
            season_id=season_id,
            division_id=division_id,
            week=week,
            entry1_id=entry1_id,
            entry2_id=entry2_id,
            winner_id=winner_id,
            entry1_differential=entry1_differential,
            entry2_differential=entry2_differential,
            is_forfeit=is_forfeit,
            played_at=played_at,
            replay_url=replay_url,
        )

    def get(self, conn: sqlite3.Connection, match_id: int) -> MatchRecord | None:
        row = conn.execute(
            f"SELECT {_MATCH_COLUMNS} FROM matches WHERE id = ?", (match_id,)
        ).fetchone()
        if row is None:
            return None
        return self._from_row(row)

    def list_by_division(self, conn: sqlite3.Connection, division_id: int) -> list[MatchRecord]:
        rows = conn.execute(
            f"SELECT {_MATCH_COLUMNS} FROM matches WHERE division_id = ? ORDER BY week, id",
            (division_id,),
        ).fetchall()
        return [self._from_row(r) for r in rows]

    def list_all(self, conn: sqlite3.Connection) -> list[MatchRecord]:
        rows = conn.execute(f"SELECT {_MATCH_COLUMNS} FROM matches ORDER BY id").fetchall()
        return [self._from_row(r) for r in rows]

    def list_completed_with_context(self, conn: sqlite3.Connection) -> list[dict[str, Any]]:
        """
        Completed matches (winner present) with season number, division name and the
        coach behind each entry. coach ids are None when an entry link is broken.
        Unordered: callers impose chronological order.
        """
        rows = conn.execute(
            """SELECT m.id AS match_id, m.week, m.entry1_id, m.entry2_id, m.winner_id, m.played_at,
                      s.season_number, d.name AS division_name,
                      e1.coach_id AS coach1_id, e2.coach_id AS coach2_id
               FROM matches m
               LEFT JOIN divisions d ON d.id = m.division_id
               LEFT JOIN seasons s ON s.id = d.season_id
               LEFT JOIN season_entries e1 ON e1.id = m.entry1_id
               LEFT JOIN season_entries e2 ON e2.id = m.entry2_id
               WHERE m.winner_id IS NOT NULL"""
        ).fetchall()
        return [dict(r) for r in rows]

    def update_result(
        self,
        conn: sqlite3.Connection,
        match_id: int,
        winner_id: int | None,
        entry1_differential: int,
        entry2_differential: int,
        is_forfeit: bool,
        played_at: str | None,
        replay_url: str | None,
    ) -> None:
        conn.execute(
            """UPDATE matches
               SET winner_id = ?, entry1_differential = ?, entry2_differential = ?,
                   is_forfeit = ?, played_at = ?, replay_url = ?
               WHERE id = ?""",
            (
                winner_id, entry1_differential, entry2_differential,
                1 if is_forfeit else 0, played_at, replay_url, match_id,
            ),
        )

    def delete_unit_stats(self, conn: sqlite3.Connection, match_id: int) -> None:
        conn.execute("DELETE FROM match_unit_stats WHERE match_id = ?", (match_id,))

    def delete(self, conn: sqlite3.Connection, match_id: int) -> None:
        self.delete_unit_stats(conn, match_id)
        conn.execute("DELETE FROM matches WHERE id = ?", (match_id,))

    def add_unit_stat(
        self,
        conn: sqlite3.Connection,
        match_id: int,
        season_entry_id: int,
        unit_id: int,
        kills: int = 0,
        deaths: int = 0,
    ) -> MatchUnitStat:
        cur = conn.execute(
            """INSERT INTO match_unit_stats (match_id, season_entry_id, unit_id, kills, deaths)
               VALUES (?, ?, ?, ?, ?)""",
            (match_id, season_entry_id, unit_id, kills, deaths),
        )
        return MatchUnitStat(
            id=cur.lastrowid, match_id=match_id, season_entry_id=season_entry_id,
            unit_id=unit_id, kills=kills, deaths=deaths,
        )

    def list_unit_stats_by_division(self, conn: sqlite3.Connection, division_id: int) -> list[MatchUnitStat]:
        rows = conn.execute(
            """SELECT mus.id, mus.match_id, mus.season_entry_id, mus.unit_id, mus.kills, mus.deaths
               FROM match_unit_stats mus JOIN matches m ON m.id = mus.match_id
               WHERE m.division_id = ? ORDER BY mus.id""",
            (division_id,),
        ).fetchall()
        return [
            MatchUnitStat(
                id=r["id"], match_id=r["match_id"], season_entry_id=r["season_entry_id"],
                unit_id=r["unit_id"], kills=r["kills"], deaths=r["deaths"],
            )
            for r in rows
        ]

    @staticmethod
    def _from_row(row: sqlite3.Row) -> MatchRecord:
        return MatchRecord(
            id=row["id"],
            season_id=row["season_id"],
            division_id=row["division_id"],
            week=row["week"],
            entry1_id=row["entry1_id"],
            entry2_id=row["entry2_id"],
            winner_id=row["winner_id"],
            entry1_differential=row["entry1_differential"] or 0,
            entry2_differential=row["entry2_differential"] or 0,
            is_forfeit=bool(row["is_forfeit"]),
            played_at=row["played_at"],
            replay_url=row["replay_url"],
        )


# ---------- PlayoffMatchRepository ----------


_PLAYOFF_COLUMNS = """
    id, season_id, division_id, round, bracket_position, higher_seed_id, lower_seed_id,
    winner_id, higher_seed_wins, lower_seed_wins, played_at, match_id
"""


class PlayoffMatchRepository:
    """Playoff bracket nodes, one row per (division, round, bracket position)."""

    def create(
        self,
        conn: sqlite3.Connection,
        season_id: int,
        division_id: int,
        round: int,
        bracket_position: int,
        higher_seed_id: int | None = None,
        lower_seed_id: int | None = None,
        match_id: int | None = None,
    ) -> PlayoffMatch:
        cur = conn.execute(
            """INSERT INTO playoff_matches (
                season_id, division_id, round, bracket_position, higher_seed_id, lower_seed_id, match_id
            ) VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (season_id, division_id, round, bracket_position, higher_seed_id, lower_seed_id, match_id),
        )
        return PlayoffMatch(
            id=cur.lastrowid,
            season_id=season_id,
            division_id=division_id,
            round=round,
            bracket_position=bracket_position,
            higher_seed_id=higher_seed_id,
            lower_seed_id=lower_seed_id,
            match_id=match_id,
        )

    def get(self, conn: sqlite3.Connection, playoff_match_id: int) -> PlayoffMatch | None:
        row = conn.execute(
            f"SELECT {_PLAYOFF_COLUMNS} FROM playoff_matches WHERE id = ?", (playoff_match_id,)
        ).fetchone()
        if row is None:
            return None
        return self._from_row(row)

    def find_by_position(
        self, conn: sqlite3.Connection, division_id: int, round: int, bracket_position: int
    ) -> PlayoffMatch | None:
        row = conn.execute(
            f"""SELECT {_PLAYOFF_COLUMNS} FROM playoff_matches
                WHERE division_id = ? AND round = ? AND bracket_position = ?""",
            (division_id, round, bracket_position),
        ).fetchone()
        if row is None:
            return None
        return self._from_row(row)

    def list_by_division(self, conn: sqlite3.Connection, division_id: int) -> list[PlayoffMatch]:
        rows = conn.execute(
            f"""SELECT {_PLAYOFF_COLUMNS} FROM playoff_matches
                WHERE division_id = ? ORDER BY round, bracket_position""",
            (division_id,),
        ).fetchall()
        return [self._from_row(r) for r in rows]

    def update(self, conn: sqlite3.Connection, playoff_match: PlayoffMatch) -> None:
        """Write back every mutable column of a bracket node."""
        conn.execute(
            """UPDATE playoff_matches
               SET higher_seed_id = ?, lower_seed_id = ?, winner_id = ?,
                   higher_seed_wins = ?, lower_seed_wins = ?, played_at = ?, match_id = ?
               WHERE id = ?""",
            (
                playoff_match.higher_seed_id, playoff_match.lower_seed_id, playoff_match.winner_id,
                playoff_match.higher_seed_wins, playoff_match.lower_seed_wins,
                playoff_match.played_at, playoff_match.match_id, playoff_match.id,
            ),
        )

    def delete(self, conn: sqlite3.Connection, playoff_match_id: int) -> None:
        conn.execute("DELETE FROM playoff_matches WHERE id = ?", (playoff_match_id,))

    @staticmethod
    def _from_row(row: sqlite3.Row) -> PlayoffMatch:
        return PlayoffMatch(
            id=row["id"],
            season_id=row["season_id"],
            division_id=row["division_id"],
            round=row["round"],
            bracket_position=row["bracket_position"],
            higher_seed_id=row["higher_seed_id"],
            lower_seed_id=row["lower_seed_id"],
            winner_id=row["winner_id"],
            higher_seed_wins=row["higher_seed_wins"] or 0,
            lower_seed_wins=row["lower_seed_wins"] or 0,
            played_at=row["played_at"],
            match_id=row["match_id"],
        )


# ---------- RatingHistoryRepository ----------


class RatingHistoryRepository:
    """Rating history rows. Owned by the rating pass: cleared and rebuilt on each run."""

    def clear(self, conn: sqlite3.Connection) -> None:
        conn.execute("DELETE FROM rating_history")

    def create_many(
        self, conn: sqlite3.Connection, rows: list[tuple[int, float, int | None, str]]
    ) -> None:
        """rows: (coach_id, rating, match_id, recorded_at)."""
        conn.executemany(
            "INSERT INTO rating_history (coach_id, rating, match_id, recorded_at) VALUES (?, ?, ?, ?)",
            rows,
        )

    def list_by_coach(self, conn: sqlite3.Connection, coach_id: int) -> list[RatingHistoryEntry]:
        rows = conn.execute(
            """SELECT id, coach_id, rating, match_id, recorded_at FROM rating_history
               WHERE coach_id = ? ORDER BY id""",
            (coach_id,),
        ).fetchall()
        return [
            RatingHistoryEntry(
                id=r["id"], coach_id=r["coach_id"], rating=r["rating"],
                match_id=r["match_id"], recorded_at=r["recorded_at"],
            )
            for r in rows
        ]

    def count(self, conn: sqlite3.Connection) -> int:
        row = conn.execute("SELECT COUNT(*) AS n FROM rating_history").fetchone()
        return int(row["n"])
