"""
SQLite schema for draft league entities.
Migration-friendly: each table created with IF NOT EXISTS.
"""
from __future__ import annotations


def coaches_schema() -> str:
    """Persistent identity across seasons. rating is owned by the rating pass."""
    return """
    CREATE TABLE IF NOT EXISTS coaches (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        rating REAL NOT NULL DEFAULT 1000,
        created_at TEXT NOT NULL
    );
    """


def seasons_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS seasons (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL,
        season_number INTEGER NOT NULL DEFAULT 1,
        draft_budget INTEGER NOT NULL DEFAULT 100,
        is_current INTEGER NOT NULL DEFAULT 0,
        start_date TEXT,
        end_date TEXT
    );
    """


def divisions_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS divisions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        season_id INTEGER NOT NULL,
        name TEXT NOT NULL,
        display_order INTEGER NOT NULL DEFAULT 0,
        FOREIGN KEY (season_id) REFERENCES seasons(id)
    );
    CREATE INDEX IF NOT EXISTS ix_divisions_season ON divisions(season_id);
    """


def season_entries_schema() -> str:
    """A coach's team in one division. replaced_by_id: mid-season replacement link."""
    return """
    CREATE TABLE IF NOT EXISTS season_entries (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        coach_id INTEGER NOT NULL,
        division_id INTEGER NOT NULL,
        team_name TEXT NOT NULL,
        team_abbreviation TEXT,
        remaining_budget INTEGER,
        is_active INTEGER NOT NULL DEFAULT 1,
        replaced_by_id INTEGER,
        FOREIGN KEY (coach_id) REFERENCES coaches(id),
        FOREIGN KEY (division_id) REFERENCES divisions(id),
        FOREIGN KEY (replaced_by_id) REFERENCES season_entries(id)
    );
    CREATE INDEX IF NOT EXISTS ix_season_entries_coach ON season_entries(coach_id);
    CREATE INDEX IF NOT EXISTS ix_season_entries_division ON season_entries(division_id);
    """


def units_schema() -> str:
    """Unit catalog. Display data only."""
    return """
    CREATE TABLE IF NOT EXISTS units (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        name TEXT NOT NULL UNIQUE,
        display_name TEXT,
        sprite_url TEXT
    );
    """


def season_prices_schema() -> str:
    """price -1 = complex ban. tera_captain_cost NULL = no surcharge defined."""
    return """
    CREATE TABLE IF NOT EXISTS season_prices (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        season_id INTEGER NOT NULL,
        unit_id INTEGER NOT NULL,
        price INTEGER NOT NULL,
        tera_banned INTEGER NOT NULL DEFAULT 0,
        tera_captain_cost INTEGER,
        complex_ban_reason TEXT,
        FOREIGN KEY (season_id) REFERENCES seasons(id),
        FOREIGN KEY (unit_id) REFERENCES units(id)
    );
    CREATE UNIQUE INDEX IF NOT EXISTS ix_season_prices_season_unit ON season_prices(season_id, unit_id);
    """


def roster_slots_schema() -> str:
    """
    acquired_week/acquired_via/acquired_transaction_id are NULL for draft-era rows.
    The index on acquired_transaction_id is created by the acquisition-tracking migration.
    """
    return """
    CREATE TABLE IF NOT EXISTS roster_slots (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        season_entry_id INTEGER NOT NULL,
        unit_id INTEGER NOT NULL,
        price INTEGER NOT NULL,
        draft_order INTEGER,
        is_tera_captain INTEGER NOT NULL DEFAULT 0,
        acquired_week INTEGER,
        acquired_via TEXT,
        acquired_transaction_id INTEGER,
        FOREIGN KEY (season_entry_id) REFERENCES season_entries(id),
        FOREIGN KEY (unit_id) REFERENCES units(id)
    );
    CREATE INDEX IF NOT EXISTS ix_roster_slots_entry ON roster_slots(season_entry_id);
    """


def transactions_schema() -> str:
    """units_in / units_out are JSON arrays of unit ids."""
    return """
    CREATE TABLE IF NOT EXISTS transactions (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        season_id INTEGER NOT NULL,
        type TEXT NOT NULL,
        week INTEGER NOT NULL,
        season_entry_id INTEGER NOT NULL,
        team_abbreviation TEXT,
        trading_partner_id INTEGER,
        trading_partner_abbreviation TEXT,
        units_in TEXT NOT NULL DEFAULT '[]',
        units_out TEXT NOT NULL DEFAULT '[]',
        new_tera_captain_id INTEGER,
        old_tera_captain_id INTEGER,
        budget_change INTEGER NOT NULL DEFAULT 0,
        counts_against_limit INTEGER NOT NULL DEFAULT 1,
        notes TEXT,
        created_at TEXT NOT NULL,
        FOREIGN KEY (season_id) REFERENCES seasons(id),
        FOREIGN KEY (season_entry_id) REFERENCES season_entries(id),
        FOREIGN KEY (trading_partner_id) REFERENCES season_entries(id)
    );
    CREATE INDEX IF NOT EXISTS ix_transactions_season ON transactions(season_id);
    CREATE INDEX IF NOT EXISTS ix_transactions_entry ON transactions(season_entry_id);
    CREATE INDEX IF NOT EXISTS ix_transactions_partner ON transactions(trading_partner_id);
    """


def matches_schema() -> str:
    """winner_id NULL = not yet played. week > 100 encodes playoff rounds."""
    return """
    CREATE TABLE IF NOT EXISTS matches (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        season_id INTEGER NOT NULL,
        division_id INTEGER NOT NULL,
        week INTEGER NOT NULL,
        entry1_id INTEGER NOT NULL,
        entry2_id INTEGER NOT NULL,
        winner_id INTEGER,
        entry1_differential INTEGER NOT NULL DEFAULT 0,
        entry2_differential INTEGER NOT NULL DEFAULT 0,
        is_forfeit INTEGER NOT NULL DEFAULT 0,
        played_at TEXT,
        replay_url TEXT,
        FOREIGN KEY (season_id) REFERENCES seasons(id),
        FOREIGN KEY (division_id) REFERENCES divisions(id),
        FOREIGN KEY (entry1_id) REFERENCES season_entries(id),
        FOREIGN KEY (entry2_id) REFERENCES season_entries(id)
    );
    CREATE INDEX IF NOT EXISTS ix_matches_division ON matches(division_id);
    CREATE INDEX IF NOT EXISTS ix_matches_entry1 ON matches(entry1_id);
    CREATE INDEX IF NOT EXISTS ix_matches_entry2 ON matches(entry2_id);
    """


def match_unit_stats_schema() -> str:
    """Per-unit kills/deaths parsed from a battle log."""
    return """
    CREATE TABLE IF NOT EXISTS match_unit_stats (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        match_id INTEGER NOT NULL,
        season_entry_id INTEGER NOT NULL,
        unit_id INTEGER NOT NULL,
        kills INTEGER NOT NULL DEFAULT 0,
        deaths INTEGER NOT NULL DEFAULT 0,
        FOREIGN KEY (match_id) REFERENCES matches(id),
        FOREIGN KEY (season_entry_id) REFERENCES season_entries(id),
        FOREIGN KEY (unit_id) REFERENCES units(id)
    );
    CREATE INDEX IF NOT EXISTS ix_match_unit_stats_match ON match_unit_stats(match_id);
    """


def playoff_matches_schema() -> str:
    """
    Bracket nodes. round 1 = quarterfinal, 2 = semifinal, 3 = final.
    Seeds are NULL until known; match_id links the fixture once both seeds are set.
    """
    return """
    CREATE TABLE IF NOT EXISTS playoff_matches (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        season_id INTEGER NOT NULL,
        division_id INTEGER NOT NULL,
        round INTEGER NOT NULL,
        bracket_position INTEGER NOT NULL,
        higher_seed_id INTEGER,
        lower_seed_id INTEGER,
        winner_id INTEGER,
        higher_seed_wins INTEGER NOT NULL DEFAULT 0,
        lower_seed_wins INTEGER NOT NULL DEFAULT 0,
        played_at TEXT,
        match_id INTEGER,
        FOREIGN KEY (season_id) REFERENCES seasons(id),
        FOREIGN KEY (division_id) REFERENCES divisions(id),
        FOREIGN KEY (higher_seed_id) REFERENCES season_entries(id),
        FOREIGN KEY (lower_seed_id) REFERENCES season_entries(id),
        FOREIGN KEY (winner_id) REFERENCES season_entries(id),
        FOREIGN KEY (match_id) REFERENCES matches(id)
    );
    CREATE UNIQUE INDEX IF NOT EXISTS ix_playoff_matches_slot
        ON playoff_matches(division_id, round, bracket_position);
    """


def rating_history_schema() -> str:
    """Rebuilt wholesale by the rating pass."""
    return """
    CREATE TABLE IF NOT EXISTS rating_history (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        coach_id INTEGER NOT NULL,
        rating REAL NOT NULL,
        match_id INTEGER,
        recorded_at TEXT NOT NULL,
        FOREIGN KEY (coach_id) REFERENCES coaches(id),
        FOREIGN KEY (match_id) REFERENCES matches(id)
    );
    CREATE INDEX IF NOT EXISTS ix_rating_history_coach ON rating_history(coach_id);
    """


def all_schema_sql() -> str:
    """Combine all schema DDL for a single execution. Referenced tables first."""
    return "\n".join([
        coaches_schema(),
        seasons_schema(),
        divisions_schema(),
        season_entries_schema(),
        units_schema(),
        season_prices_schema(),
        transactions_schema(),
        roster_slots_schema(),
        matches_schema(),
        match_unit_stats_schema(),
        playoff_matches_schema(),
        rating_history_schema(),
    ])
