"""
Event Log

Append side and lookup side of the ledger's event log.

Writers (netting, proposals, settlement) record events through this class
while holding a store transaction: the event's position, and for DebtAdded
its sequence number, are allocated in the same atomic unit as the event
itself. If the transaction rolls back, so does the event and its numbers.
"""

from datetime import datetime
from typing import Callable, Optional

from debt_ledger.models.debt import AccountId, AssetId, ProposalStatus
from debt_ledger.models.events import (
    AnyLedgerEvent,
    DebtAdded,
    DebtConfirmed,
    DebtProposed,
    DebtRejected,
    DebtSettled,
    utc_now,
)
from debt_ledger.services.storage import LedgerStorageInterface


class EventLog:
    """Records ledger events into a store and answers questions about them."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._storage = storage
        self._clock = clock or utc_now

    # ------------------------------------------------------------------
    # Append
    # ------------------------------------------------------------------

    def _append(self, event_class: type, **fields) -> AnyLedgerEvent:
        event = event_class(
            position=self._storage.next_position,
            timestamp=self._clock(),
            **fields,
        )
        self._storage.append_event(event)
        return event

    def record_proposed(
        self,
        proposal_id: int,
        creditor: AccountId,
        debtor: AccountId,
        asset: AssetId,
        amount: int,
        memo: str,
    ) -> DebtProposed:
        return self._append(
            DebtProposed,
            proposal_id=proposal_id,
            creditor=creditor,
            debtor=debtor,
            asset=asset,
            amount=amount,
            memo=memo,
        )

    def record_confirmed(self, proposal_id: int) -> DebtConfirmed:
        return self._append(DebtConfirmed, proposal_id=proposal_id)

    def record_rejected(self, proposal_id: int) -> DebtRejected:
        return self._append(DebtRejected, proposal_id=proposal_id)

    def record_added(
        self,
        debtor: AccountId,
        creditor: AccountId,
        asset: AssetId,
        amount: int,
        memo: str,
    ) -> DebtAdded:
        return self._append(
            DebtAdded,
            sequence=self._storage.allocate_debt_sequence(),
            debtor=debtor,
            creditor=creditor,
            asset=asset,
            amount=amount,
            memo=memo,
        )

    def record_settled(
        self,
        debtor: AccountId,
        creditor: AccountId,
        asset: AssetId,
        amount: int,
    ) -> DebtSettled:
        return self._append(
            DebtSettled,
            debtor=debtor,
            creditor=creditor,
            asset=asset,
            amount=amount,
        )

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def events(self) -> list[AnyLedgerEvent]:
        return self._storage.events()

    def find_proposed(self, proposal_id: int) -> Optional[DebtProposed]:
        """The DebtProposed event that created this proposal id, if any."""
        for event in self._storage.events():
            if isinstance(event, DebtProposed) and event.proposal_id == proposal_id:
                return event
        return None

    def resolution_of(self, proposal_id: int) -> Optional[ProposalStatus]:
        """CONFIRMED or REJECTED if a resolving event exists, else None."""
        for event in self._storage.events():
            if isinstance(event, DebtConfirmed) and event.proposal_id == proposal_id:
                return ProposalStatus.CONFIRMED
            if isinstance(event, DebtRejected) and event.proposal_id == proposal_id:
                return ProposalStatus.REJECTED
        return None

    def between(
        self,
        account_a: AccountId,
        account_b: AccountId,
        asset: Optional[AssetId] = None,
    ) -> list[AnyLedgerEvent]:
        """
        Events that carry both accounts as a debtor/creditor pair.

        Confirmations and rejections carry only a proposal id and are not
        included.
        """
        pair = {account_a, account_b}
        matches = []
        for event in self._storage.events():
            if not isinstance(event, (DebtProposed, DebtAdded, DebtSettled)):
                continue
            if {event.debtor, event.creditor} != pair:
                continue
            if asset is not None and event.asset != asset:
                continue
            matches.append(event)
        return matches
