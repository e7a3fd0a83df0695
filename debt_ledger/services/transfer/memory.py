"""
In-Memory Transfer Backend

Holds per-asset account balances in a dictionary. Used in tests and local
runs in place of a real token backend.
"""

from collections import defaultdict
from uuid import uuid4

import structlog

from debt_ledger.models.debt import AccountId, AssetId
from debt_ledger.services.transfer.interface import (
    InsufficientFundsError,
    TransferBackend,
    TransferReceipt,
)


class InMemoryTransferBackend(TransferBackend):
    """
    Balance book with mint/transfer, like a minimal fungible token.

    Transfers fail with InsufficientFundsError when the sender is short.
    """

    def __init__(self):
        self._balances: dict[tuple[AssetId, AccountId], int] = defaultdict(int)
        self._receipts: list[TransferReceipt] = []
        self._logger = structlog.get_logger(__name__)

    def mint(self, asset: AssetId, account: AccountId, amount: int) -> None:
        if amount < 0:
            raise ValueError("Cannot mint a negative amount")
        self._balances[(asset, account)] += amount

    def balance_of(self, asset: AssetId, account: AccountId) -> int:
        return self._balances.get((asset, account), 0)

    @property
    def receipts(self) -> list[TransferReceipt]:
        """Successful transfers, oldest first."""
        return list(self._receipts)

    def transfer(
        self,
        asset: AssetId,
        sender: AccountId,
        recipient: AccountId,
        amount: int,
    ) -> TransferReceipt:
        available = self.balance_of(asset, sender)
        if available < amount:
            raise InsufficientFundsError(
                f"{sender} holds {available} of {asset}, needs {amount}"
            )

        self._balances[(asset, sender)] -= amount
        self._balances[(asset, recipient)] += amount

        receipt = TransferReceipt(
            success=True,
            asset=asset,
            sender=sender,
            recipient=recipient,
            amount=amount,
            reference=uuid4().hex,
        )
        self._receipts.append(receipt)
        self._logger.debug(
            "transfer_completed",
            asset=asset,
            sender=sender,
            recipient=recipient,
            amount=amount,
            reference=receipt.reference,
        )
        return receipt
