"""
Service layer: rating recomputation, roster ledger, availability, standings,
playoff brackets.
Services own validation and transactions; repositories only read and write.
"""
from .errors import (
    LedgerError,
    NotFoundError,
    OwnershipMismatchError,
    TradeSizeError,
    InsufficientBudgetError,
    NegativeBudgetError,
    BannedUnitError,
    UnitUnavailableError,
    UnsupportedUndoError,
)
from .ledger_service import (
    LedgerService,
    FAPickupParams,
    FADropParams,
    FASwapParams,
    P2PTradeParams,
    TeraSwapParams,
    is_trade_locked,
)
from .match_service import MatchService, MatchResultParams, UnitStatParams
from .playoff_service import PlayoffService, PlayoffMatchParams, PlayoffUpdateParams
from .rating_service import RatingService, replay_matches

__all__ = [
    "LedgerError",
    "NotFoundError",
    "OwnershipMismatchError",
    "TradeSizeError",
    "InsufficientBudgetError",
    "NegativeBudgetError",
    "BannedUnitError",
    "UnitUnavailableError",
    "UnsupportedUndoError",
    "LedgerService",
    "FAPickupParams",
    "FADropParams",
    "FASwapParams",
    "P2PTradeParams",
    "TeraSwapParams",
    "is_trade_locked",
    "MatchService",
    "MatchResultParams",
    "UnitStatParams",
    "PlayoffService",
    "PlayoffMatchParams",
    "PlayoffUpdateParams",
    "RatingService",
    "replay_matches",
]
