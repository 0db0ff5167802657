"""
Persistence layer for league data.
No business logic, only read/write interfaces.
"""
from .db import get_connection, init_db, transaction
from .repositories import (
    CoachRepository,
    SeasonRepository,
    DivisionRepository,
    SeasonEntryRepository,
    UnitRepository,
    PriceRepository,
    RosterSlotRepository,
    TransactionRepository,
    MatchRepository,
    PlayoffMatchRepository,
    RatingHistoryRepository,
)

__all__ = [
    "get_connection",
    "init_db",
    "transaction",
    "CoachRepository",
    "SeasonRepository",
    "DivisionRepository",
    "SeasonEntryRepository",
    "UnitRepository",
    "PriceRepository",
    "RosterSlotRepository",
    "TransactionRepository",
    "MatchRepository",
    "PlayoffMatchRepository",
    "RatingHistoryRepository",
]
