"""
Service-layer exceptions. The HTTP layer maps each class to a status code.
"""
from __future__ import annotations


class LedgerError(ValueError):
    """Invalid request to a league service (bad argument combination)."""


class NotFoundError(LedgerError):
    """Referenced entry, slot, price, match or transaction does not exist."""


class OwnershipMismatchError(LedgerError):
    """A roster slot is not owned by the season entry that claims it."""


class TradeSizeError(OwnershipMismatchError):
    """A trade side exceeds the per-side unit ceiling."""


class InsufficientBudgetError(LedgerError):
    """An operation would leave a team's remaining budget below zero."""

    def __init__(self, message: str, needed: int = 0, available: int = 0) -> None:
        super().__init__(message)
        self.needed = needed
        self.available = available
        self.shortfall = max(0, needed - available)


class NegativeBudgetError(InsufficientBudgetError):
    """A trade would leave one side with a negative budget."""


class BannedUnitError(LedgerError):
    """Unit is complex-banned (price -1), or tera-banned for a captain assignment."""


class UnitUnavailableError(LedgerError):
    """Unit is already on an active roster this season."""


class UnsupportedUndoError(LedgerError):
    """Transaction type cannot be reversed."""
