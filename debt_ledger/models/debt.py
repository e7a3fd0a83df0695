"""
Debt Models

Pending proposals awaiting debtor consent, and the read-only views the
reconstructor produces (balances and history).

Amounts are plain ints in the asset's smallest unit. Asset and account
identifiers are opaque strings: the core never inspects them.
"""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


AssetId = str
AccountId = str


class ProposalStatus(str, Enum):
    """
    Proposal lifecycle.

    OPEN -> CONFIRMED or OPEN -> REJECTED, exactly once. Both are terminal.
    """
    OPEN = "open"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"


class HistoryStatus(str, Enum):
    """Status of a line in a pair's transaction history."""
    CONFIRMED = "confirmed"
    PENDING = "pending"
    SETTLED = "settled"


class PendingProposal(BaseModel):
    """
    A debt awaiting the debtor's consent.

    Only OPEN proposals live in the proposal store. Resolved ones are
    deleted there; their status is recovered from the event log.
    """
    model_config = ConfigDict(frozen=True)

    id: int = Field(..., ge=1, description="Monotonically increasing proposal id")
    creditor: AccountId
    debtor: AccountId
    asset: AssetId
    amount: int = Field(..., ge=0, description="Smallest units; zero is only rejected at confirmation")
    memo: str = ""
    status: ProposalStatus = ProposalStatus.OPEN

    def involves(self, account_a: AccountId, account_b: AccountId) -> bool:
        return {self.creditor, self.debtor} == {account_a, account_b}


class PairBalance(BaseModel):
    """Both directions of a pair's balance, from account A's point of view."""
    model_config = ConfigDict(frozen=True)

    a_owes_b: int = Field(default=0, ge=0)
    b_owes_a: int = Field(default=0, ge=0)

    @property
    def net(self) -> int:
        """Signed net: positive when A owes B."""
        return self.a_owes_b - self.b_owes_a


class BalanceView(BaseModel):
    """Confirmed and still-pending balances between two accounts for one asset."""
    model_config = ConfigDict(frozen=True)

    asset: AssetId
    account_a: AccountId
    account_b: AccountId
    confirmed: PairBalance
    pending: PairBalance


class HistoryEntry(BaseModel):
    """One line of a pair's history, in log order."""
    model_config = ConfigDict(frozen=True)

    position: int = Field(..., ge=0, description="Position of the source event in the log")
    status: HistoryStatus
    asset: AssetId
    debtor: AccountId
    creditor: AccountId
    amount: int = Field(..., ge=0)
    memo: str = ""
    timestamp: datetime
    sequence: Optional[int] = Field(
        default=None,
        description="Debt sequence number, for confirmed entries"
    )
    proposal_id: Optional[int] = Field(
        default=None,
        description="Proposal id, for pending entries"
    )


class Discrepancy(BaseModel):
    """A pair where the stored state disagrees with a full replay of the log."""
    model_config = ConfigDict(frozen=True)

    asset: AssetId
    account_a: AccountId
    account_b: AccountId
    stored: BalanceView
    replayed: BalanceView
