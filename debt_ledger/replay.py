"""
Event Log Replay

The event log alone is enough to rebuild every piece of ledger state:
- Ledger entries: re-net every DebtAdded in order, subtract every DebtSettled
- Open proposals: every DebtProposed without a DebtConfirmed/DebtRejected
- Counters: the highest proposal id and DebtAdded sequence seen

This module folds a log into that state, rebuilds a store from it, and
reads/writes logs as JSON Lines (one event per line, in log order).
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Optional, Union

from debt_ledger.engine.netting import net_debt
from debt_ledger.errors import CorruptLogError
from debt_ledger.models.debt import AccountId, AssetId, PendingProposal, ProposalStatus
from debt_ledger.models.events import (
    AnyLedgerEvent,
    DebtAdded,
    DebtConfirmed,
    DebtProposed,
    DebtRejected,
    DebtSettled,
    parse_event,
)
from debt_ledger.services.storage import InMemoryLedgerStorage, LedgerStorageInterface


@dataclass
class FoldedLedger:
    """Ledger state derived purely from an event log."""

    debts: dict[tuple[AssetId, AccountId, AccountId], int] = field(default_factory=dict)
    open_proposals: dict[int, PendingProposal] = field(default_factory=dict)
    resolutions: dict[int, ProposalStatus] = field(default_factory=dict)
    last_proposal_id: int = 0
    last_sequence: int = 0
    event_count: int = 0
    # Debt added per (asset, debtor, creditor) since the pair was last settled
    offsets_since_settlement: dict[tuple[AssetId, AccountId, AccountId], int] = field(
        default_factory=dict
    )

    def debt(self, asset: AssetId, debtor: AccountId, creditor: AccountId) -> int:
        return self.debts.get((asset, debtor, creditor), 0)

    def _put(self, key: tuple[AssetId, AccountId, AccountId], amount: int) -> None:
        if amount:
            self.debts[key] = amount
        else:
            self.debts.pop(key, None)

    def apply(self, event: AnyLedgerEvent) -> None:
        if event.position != self.event_count:
            raise CorruptLogError(
                f"Expected event at position {self.event_count}, got {event.position}"
            )
        self.event_count += 1

        if isinstance(event, DebtProposed):
            self.open_proposals[event.proposal_id] = PendingProposal(
                id=event.proposal_id,
                creditor=event.creditor,
                debtor=event.debtor,
                asset=event.asset,
                amount=event.amount,
                memo=event.memo,
            )
            self.last_proposal_id = max(self.last_proposal_id, event.proposal_id)

        elif isinstance(event, (DebtConfirmed, DebtRejected)):
            if event.proposal_id not in self.open_proposals:
                raise CorruptLogError(
                    f"Proposal {event.proposal_id} resolved while not open"
                )
            del self.open_proposals[event.proposal_id]
            self.resolutions[event.proposal_id] = (
                ProposalStatus.CONFIRMED
                if isinstance(event, DebtConfirmed)
                else ProposalStatus.REJECTED
            )

        elif isinstance(event, DebtAdded):
            owed_key = (event.asset, event.debtor, event.creditor)
            opposite_key = (event.asset, event.creditor, event.debtor)
            new_owed, new_opposite = net_debt(
                self.debts.get(owed_key, 0),
                self.debts.get(opposite_key, 0),
                event.amount,
            )
            self._put(owed_key, new_owed)
            self._put(opposite_key, new_opposite)
            self.offsets_since_settlement[owed_key] = (
                self.offsets_since_settlement.get(owed_key, 0) + event.amount
            )
            self.last_sequence = max(self.last_sequence, event.sequence)

        elif isinstance(event, DebtSettled):
            self._apply_settlement(event)

    def _apply_settlement(self, event: DebtSettled) -> None:
        """
        Subtract a settlement from the pair's signed balance.

        The settled amount is what the debtor owed when settlement started.
        Debts recorded by a re-entrant transfer land in the log before the
        DebtSettled event, so the fold may already have netted them against
        the settled entry. Debt added the other way since the pair's last
        settlement is the only thing that can make the amount exceed the
        folded entry.
        """
        owed_key = (event.asset, event.debtor, event.creditor)
        opposite_key = (event.asset, event.creditor, event.debtor)
        owed = self.debts.get(owed_key, 0)
        offset = self.offsets_since_settlement.get(opposite_key, 0)
        if event.amount > owed + offset:
            raise CorruptLogError(
                f"Settlement of {event.amount} exceeds the debt at position {event.position}",
                details={"position": event.position, "amount": event.amount},
            )

        net = owed - self.debts.get(opposite_key, 0) - event.amount
        self._put(owed_key, max(net, 0))
        self._put(opposite_key, max(-net, 0))
        self.offsets_since_settlement.pop(owed_key, None)
        self.offsets_since_settlement.pop(opposite_key, None)


def fold_events(events: Iterable[AnyLedgerEvent]) -> FoldedLedger:
    """Fold a complete log, from position 0, into ledger state."""
    folded = FoldedLedger()
    for event in events:
        folded.apply(event)
    return folded


def rebuild_storage(
    events: Iterable[AnyLedgerEvent],
    storage: Optional[LedgerStorageInterface] = None,
) -> LedgerStorageInterface:
    """
    Restore a fresh store from a log.

    The events are appended as they are; nothing is re-emitted. Attach
    commit listeners only after rebuilding, or they will see the whole log
    again.
    """
    events = list(events)
    folded = fold_events(events)
    storage = storage or InMemoryLedgerStorage()
    if storage.next_position != 0:
        raise ValueError("Can only rebuild into an empty store")

    with storage.transaction() as store:
        for event in events:
            store.append_event(event)
        for (asset, debtor, creditor), amount in folded.debts.items():
            store.set_debt(asset, debtor, creditor, amount)
        while store.last_proposal_id < folded.last_proposal_id:
            store.allocate_proposal_id()
        for proposal in folded.open_proposals.values():
            store.put_proposal(proposal)
        for _ in range(folded.last_sequence):
            store.allocate_debt_sequence()

    return storage


def write_event_log(path: Union[str, Path], events: Iterable[AnyLedgerEvent]) -> int:
    """Write events as JSON Lines. Returns the number written."""
    count = 0
    with Path(path).open("w", encoding="utf-8") as handle:
        for event in events:
            handle.write(event.model_dump_json())
            handle.write("\n")
            count += 1
    return count


def read_event_log(path: Union[str, Path]) -> list[AnyLedgerEvent]:
    """Read a JSON Lines log written by write_event_log."""
    events = []
    with Path(path).open("r", encoding="utf-8") as handle:
        for line in handle:
            line = line.strip()
            if line:
                events.append(parse_event(line))
    return events
