"""Value-transfer backends."""

from debt_ledger.services.transfer.interface import (
    InsufficientFundsError,
    TransferBackend,
    TransferError,
    TransferReceipt,
)
from debt_ledger.services.transfer.memory import InMemoryTransferBackend

__all__ = [
    "InMemoryTransferBackend",
    "InsufficientFundsError",
    "TransferBackend",
    "TransferError",
    "TransferReceipt",
]
