"""
Value-Transfer Backend Interface

Settlement moves real value. The ledger does not know how: it only needs a
backend that is called synchronously inside the settlement transaction and
tells success apart from failure.

A backend reports failure either by raising TransferError or by returning
a receipt with success=False. Anything else it raises propagates untouched
(and still rolls the settlement back).

A backend MAY call back into the ledger before returning. The ledger entry
being settled is already zero by then.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from debt_ledger.models.debt import AccountId, AssetId
from debt_ledger.models.events import utc_now


class TransferError(Exception):
    """Base exception for value-transfer failures."""
    pass


class InsufficientFundsError(TransferError):
    """Sender cannot cover the transfer."""
    pass


class TransferReceipt(BaseModel):
    """Outcome of one transfer attempt."""
    model_config = ConfigDict(frozen=True)

    success: bool
    asset: AssetId
    sender: AccountId
    recipient: AccountId
    amount: int = Field(..., ge=0)
    reference: Optional[str] = Field(
        default=None,
        description="Backend-specific reference, e.g. a transaction hash"
    )
    error_message: Optional[str] = None
    completed_at: datetime = Field(default_factory=utc_now)


class TransferBackend(ABC):
    """
    Abstract interface for moving asset units between accounts.
    """

    @abstractmethod
    def transfer(
        self,
        asset: AssetId,
        sender: AccountId,
        recipient: AccountId,
        amount: int,
    ) -> TransferReceipt:
        """
        Move `amount` smallest units of `asset` from sender to recipient.

        Returns:
            A receipt; success=False means nothing moved

        Raises:
            TransferError: If the transfer failed
        """
        pass
