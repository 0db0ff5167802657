"""
League configuration.
Rule constants live here; deployment settings come from the environment.
"""
from __future__ import annotations

import os

# ---------- Deployment ----------

DB_PATH_ENV = "DRAFT_LEAGUE_DB_PATH"
SECRET_KEY = os.environ.get("JWT_SECRET_KEY", "draft-league-dev-secret-change-in-production")
ADMIN_PASSWORD = os.environ.get("ADMIN_PASSWORD", "draft-league-admin")
ACCESS_TOKEN_EXPIRE_MINUTES = 60 * 24 * 7  # 7 days

# ---------- Budget & roster rules ----------

DEFAULT_DRAFT_BUDGET = 100
BANNED_PRICE = -1  # complex ban: not acquirable at a positive price
MAX_TRADE_UNITS_PER_SIDE = 3
TRADE_LOCK_WEEKS = 2

# Per-season transaction ceilings (advisory; reported, not enforced)
FA_TRANSACTION_LIMIT = 6
P2P_TRANSACTION_LIMIT = 6

# Weeks above this encode playoff rounds: 101 quarterfinal, 102 semifinal, 103 final
PLAYOFF_WEEK_OFFSET = 100
# Bracket depth: four quarterfinals feed two semifinals feed the final
PLAYOFF_ROUNDS = 3

# ---------- Ratings ----------

K_FACTOR = 32
DEFAULT_PLACEMENT_RATING = 1000.0

# Seed rating for a coach's first match, keyed by (season_number, division_name).
# Unlisted cohorts fall back to DEFAULT_PLACEMENT_RATING.
PLACEMENT_RATINGS: dict[tuple[int, str], float] = {
    (4, "Unova"): 2150.0,
    (5, "Unova"): 2100.0,
    (9, "Stargazer"): 2100.0,
    (7, "Stargazer"): 2050.0,
    (8, "Stargazer"): 2050.0,
    (9, "Sunset"): 2050.0,
    (7, "Sunset"): 2000.0,
    (6, "Stargazer"): 1950.0,
    (6, "Sunset"): 1850.0,
    (8, "Sunset"): 1800.0,
    (4, "Kalos"): 1800.0,
    (9, "Crystal"): 1750.0,
    (5, "Kalos"): 1700.0,
    (6, "Neon"): 1650.0,
    (7, "Neon"): 1500.0,
    (8, "Neon"): 1500.0,
    (9, "Neon"): 1500.0,
}
