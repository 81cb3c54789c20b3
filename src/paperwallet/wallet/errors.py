"""Ledger error kinds surfaced to the user boundary (API / CLI)."""
from __future__ import annotations


class LedgerError(Exception):
    """Base class for rejected wallet operations.

    The wallet state is never modified when one of these is raised.
    """

    kind = "ledger_error"

    def __init__(self, message: str = ""):
        super().__init__(message or self.kind)
        self.message = message or self.kind


class InsufficientFunds(LedgerError):
    kind = "insufficient_funds"


class InsufficientPosition(LedgerError):
    kind = "insufficient_position"


class InvalidOrder(LedgerError, ValueError):
    kind = "invalid_order"
