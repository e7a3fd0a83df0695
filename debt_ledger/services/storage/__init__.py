"""
Storage Services Package

Provides the abstract ledger storage interface and the in-memory
implementation. Designed so a durable backend can be swapped in.
"""

from debt_ledger.services.storage.interface import (
    CommitListener,
    LedgerStorageInterface,
)
from debt_ledger.services.storage.memory import InMemoryLedgerStorage

__all__ = [
    # Interfaces
    "CommitListener",
    "LedgerStorageInterface",
    # In-memory implementation
    "InMemoryLedgerStorage",
]
