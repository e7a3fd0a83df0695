"""
Data Models Package

This package contains all Pydantic models used by the debt ledger.
All data flowing in and out of the core must conform to these schemas.
"""

from debt_ledger.models.asset import (
    SUPPORTED_ASSETS,
    AssetError,
    AssetInfo,
    AssetRegistry,
    InvalidAmountError,
    InvalidAssetError,
    is_address,
)
from debt_ledger.models.debt import (
    AccountId,
    AssetId,
    BalanceView,
    Discrepancy,
    HistoryEntry,
    HistoryStatus,
    PairBalance,
    PendingProposal,
    ProposalStatus,
)
from debt_ledger.models.events import (
    AnyLedgerEvent,
    DebtAdded,
    DebtConfirmed,
    DebtProposed,
    DebtRejected,
    DebtSettled,
    LedgerEvent,
    LedgerEventType,
    parse_event,
)

__all__ = [
    # Asset models
    "SUPPORTED_ASSETS",
    "AssetError",
    "AssetInfo",
    "AssetRegistry",
    "InvalidAmountError",
    "InvalidAssetError",
    "is_address",
    # Debt models
    "AccountId",
    "AssetId",
    "BalanceView",
    "Discrepancy",
    "HistoryEntry",
    "HistoryStatus",
    "PairBalance",
    "PendingProposal",
    "ProposalStatus",
    # Event models
    "AnyLedgerEvent",
    "DebtAdded",
    "DebtConfirmed",
    "DebtProposed",
    "DebtRejected",
    "DebtSettled",
    "LedgerEvent",
    "LedgerEventType",
    "parse_event",
]
