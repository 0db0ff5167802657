#!/usr/bin/env python3
"""
Demo season: seed a division, draft, trade, record matches, print standings.
Run from project root: python3 scripts/demo_season.py
"""
from __future__ import annotations

import logging
import sys
from pathlib import Path

# Ensure project root on path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from draft_league.persistence import (
    CoachRepository,
    DivisionRepository,
    PriceRepository,
    SeasonRepository,
    UnitRepository,
    get_connection,
    init_db,
)
from draft_league.persistence.db import set_db_path
from draft_league.services import season_service, standings
from draft_league.services.ledger_service import FASwapParams, LedgerService, P2PTradeParams
from draft_league.services.match_service import MatchResultParams, MatchService, UnitStatParams

# name -> (price, tera_captain_cost)
DEMO_UNITS = {
    "great-tusk": (24, 4),
    "kingambit": (22, None),
    "gholdengo": (20, 3),
    "iron-valiant": (18, None),
    "dragonite": (16, 2),
    "zamazenta": (14, None),
    "ting-lu": (12, 2),
    "amoonguss": (8, None),
}


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    # Use data/demo_season.db (distinct from league.db); start fresh each run
    db_path = PROJECT_ROOT / "data" / "demo_season.db"
    if db_path.exists():
        db_path.unlink()
    set_db_path(db_path)
    init_db(db_path=db_path)

    conn = get_connection()
    try:
        season = SeasonRepository().create(conn, "Season 9", season_number=9, is_current=True)
        division = DivisionRepository().create(conn, season.id, "Stargazer")
        units = {}
        for name, (price, tera_cost) in DEMO_UNITS.items():
            unit = UnitRepository().create(conn, name, display_name=name.replace("-", " ").title())
            PriceRepository().create(conn, season.id, unit.id, price, tera_captain_cost=tera_cost)
            units[name] = unit.id

        # 1. Two coaches enter the division
        ash = CoachRepository().create(conn, "Ash")
        misty = CoachRepository().create(conn, "Misty")
        pal = season_service.add_season_entry(conn, ash.id, division.id, "Pallet Pikachus")
        cer = season_service.add_season_entry(conn, misty.id, division.id, "Cerulean Starmies")
        print(f"Entries: {pal.team_abbreviation} (id={pal.id}), {cer.team_abbreviation} (id={cer.id})")

        # 2. Draft
        tusk = season_service.draft_unit(conn, pal.id, units["great-tusk"], is_tera_captain=True, draft_order=1)
        gambit = season_service.draft_unit(conn, pal.id, units["kingambit"], draft_order=3)
        ghold = season_service.draft_unit(conn, cer.id, units["gholdengo"], is_tera_captain=True, draft_order=2)
        dnite = season_service.draft_unit(conn, cer.id, units["dragonite"], draft_order=4)
        print(f"Drafted: {pal.team_abbreviation} {tusk.price}+{gambit.price}, {cer.team_abbreviation} {ghold.price}+{dnite.price}")

        ledger = LedgerService()

        # 3. Free agency: PAL swaps Kingambit for Ting-Lu
        swap = ledger.fa_swap(
            conn,
            FASwapParams(pal.id, week=2, pickup_unit_id=units["ting-lu"], drop_roster_slot_id=gambit.id),
        )
        print(f"FA swap: budget change {swap.budget_change:+d}")

        # 4. Trade: Great Tusk for Dragonite
        trade = ledger.p2p_trade(conn, P2PTradeParams(pal.id, [tusk.id], cer.id, [dnite.id], week=3))
        print(f"Trade: {pal.team_abbreviation} net {trade.budget_change:+d}")
        print(f"Great Tusk trade-locked in week 4: {ledger.trade_lock_status(conn, tusk.id, 4).locked}")

        # 5. Results
        matches = MatchService()
        matches.record_match(
            conn,
            MatchResultParams(
                division_id=division.id, week=1, entry1_id=pal.id, entry2_id=cer.id,
                winner_id=pal.id, entry1_differential=2, entry2_differential=-2,
                unit_stats=[UnitStatParams(pal.id, units["great-tusk"], kills=3, deaths=1)],
            ),
        )
        matches.record_match(
            conn,
            MatchResultParams(
                division_id=division.id, week=4, entry1_id=cer.id, entry2_id=pal.id,
                winner_id=cer.id, entry1_differential=3, entry2_differential=-3,
                unit_stats=[UnitStatParams(cer.id, units["great-tusk"], kills=2, deaths=0)],
            ),
        )

        # 6. Standings and leaderboards
        print("\nStandings:")
        for row in standings.division_standings(conn, division.id):
            print(f"  {row.team_abbreviation}: {row.wins}-{row.losses} ({row.differential:+d})")
        print("Coaches:")
        for record in standings.coach_leaderboard(conn):
            print(f"  {record.name}: {record.rating:.1f} ({record.win_rate:.0f}% of {record.games})")
        print("Units:")
        for row in standings.unit_leaderboard(conn, division.id):
            print(f"  {row.display_name}: {row.kills} KOs, {row.differential:+d}")

        counts = ledger.transaction_counts(conn, pal.id)
        print(f"\n{pal.team_abbreviation} transactions left: FA {counts.fa_remaining}, P2P {counts.p2p_remaining}")
        print("\nDemo season complete.")
    finally:
        conn.close()


if __name__ == "__main__":
    main()
