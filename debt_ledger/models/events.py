"""
Ledger Event Models

The event log is the durable lifecycle record of every proposal and every
ledger mutation. It provides:
1. Complete traceability of how each balance was reached
2. The only source of historical truth (history, pending state)
3. Ability to rebuild the whole ledger from scratch

DESIGN DECISION: Events are append-only and immutable. We never delete or
modify them. Each one carries its position in the log, which gives a total
order across all assets and pairs.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from debt_ledger.models.debt import AccountId, AssetId


class LedgerEventType(str, Enum):
    """Every kind of record the event log holds."""
    DEBT_PROPOSED = "debt_proposed"
    DEBT_CONFIRMED = "debt_confirmed"
    DEBT_REJECTED = "debt_rejected"
    DEBT_ADDED = "debt_added"
    DEBT_SETTLED = "debt_settled"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class LedgerEvent(BaseModel):
    """
    Fields shared by every event.

    `position` is assigned by the store when the event is appended and
    is strictly increasing, with no gaps.
    """
    model_config = ConfigDict(frozen=True)

    position: int = Field(..., ge=0, description="Offset of this event in the log")
    timestamp: datetime = Field(
        default_factory=utc_now,
        description="When the event was recorded (UTC)"
    )

    def to_log_dict(self) -> dict:
        """
        Flatten to a dictionary suitable for structured logging.

        The event time goes under recorded_at so it does not clash with
        the log record's own timestamp.
        """
        data = self.model_dump(mode="json")
        data["recorded_at"] = data.pop("timestamp")
        return data


class DebtProposed(LedgerEvent):
    event_type: Literal["debt_proposed"] = "debt_proposed"
    proposal_id: int = Field(..., ge=1)
    creditor: AccountId
    debtor: AccountId
    asset: AssetId
    amount: int = Field(..., ge=0)
    memo: str = ""


class DebtConfirmed(LedgerEvent):
    event_type: Literal["debt_confirmed"] = "debt_confirmed"
    proposal_id: int = Field(..., ge=1)


class DebtRejected(LedgerEvent):
    event_type: Literal["debt_rejected"] = "debt_rejected"
    proposal_id: int = Field(..., ge=1)


class DebtAdded(LedgerEvent):
    """
    Net-adjustment record, emitted for every confirmed or direct debt.

    debtor/creditor are the direction the debt was applied in, NOT the
    direction of the balance after netting.
    """
    event_type: Literal["debt_added"] = "debt_added"
    sequence: int = Field(..., ge=1, description="Global debt counter")
    debtor: AccountId
    creditor: AccountId
    asset: AssetId
    amount: int = Field(..., gt=0)
    memo: str = ""


class DebtSettled(LedgerEvent):
    event_type: Literal["debt_settled"] = "debt_settled"
    debtor: AccountId
    creditor: AccountId
    asset: AssetId
    amount: int = Field(..., gt=0)


AnyLedgerEvent = Annotated[
    Union[DebtProposed, DebtConfirmed, DebtRejected, DebtAdded, DebtSettled],
    Field(discriminator="event_type"),
]

ledger_event_adapter: TypeAdapter[AnyLedgerEvent] = TypeAdapter(AnyLedgerEvent)


def parse_event(data: Union[str, bytes, dict]) -> AnyLedgerEvent:
    """Load any event from its JSON form (or already-decoded dict)."""
    if isinstance(data, dict):
        return ledger_event_adapter.validate_python(data)
    return ledger_event_adapter.validate_json(data)
