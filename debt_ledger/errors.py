"""
Ledger Error Taxonomy

Every failure the ledger core can report is one of the classes below.
All of them are raised synchronously and leave ledger state untouched:
a mutation either commits in full or not at all.

Only ConflictError is retryable. Everything else is a caller error or a
business-rule violation and must not be retried unchanged.
"""

from typing import Any, Optional


class LedgerError(Exception):
    """Base exception for ledger core operations."""

    code = "ledger_error"
    retryable = False

    def __init__(self, message: str, details: Optional[dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_log_dict(self) -> dict:
        return {
            "error_code": self.code,
            "error_message": self.message,
            "retryable": self.retryable,
            **self.details,
        }


class InvalidOperandsError(LedgerError):
    """Debtor equals creditor, or an amount is not acceptable where it is checked."""

    code = "invalid_operands"


class NotFoundError(LedgerError):
    """Unknown or already-resolved proposal id."""

    code = "not_found"


class UnauthorizedError(LedgerError):
    """Caller lacks the role the operation requires."""

    code = "unauthorized"


class NothingToSettleError(LedgerError):
    """The debt being settled is zero."""

    code = "nothing_to_settle"


class TransferFailedError(LedgerError):
    """The value-transfer backend reported failure."""

    code = "transfer_failed"


class ConflictError(LedgerError):
    """
    Another mutation held the transaction boundary.

    Surfaced as a transaction abort; the operation had no effect and can
    be retried as-is.
    """

    code = "conflict"
    retryable = True


class CorruptLogError(LedgerError, ValueError):
    """The event log describes a state that can never have existed."""

    code = "corrupt_log"
