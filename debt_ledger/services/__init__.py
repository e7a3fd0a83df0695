"""Services package."""

from debt_ledger.services.storage import (
    CommitListener,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
)
from debt_ledger.services.transfer import (
    InMemoryTransferBackend,
    InsufficientFundsError,
    TransferBackend,
    TransferError,
    TransferReceipt,
)

__all__ = [
    # Storage services
    "CommitListener",
    "InMemoryLedgerStorage",
    "LedgerStorageInterface",
    # Transfer services
    "InMemoryTransferBackend",
    "InsufficientFundsError",
    "TransferBackend",
    "TransferError",
    "TransferReceipt",
]
