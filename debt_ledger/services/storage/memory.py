"""
In-Memory Ledger Storage

Single-process implementation of LedgerStorageInterface.

TRANSACTIONS:
- One re-entrant lock serializes transactions and reads alike.
- Mutations are applied in place and recorded in an undo log.
- A failing transaction undoes back to the savepoint it started at, so a
  nested (re-entrant) failure only discards its own changes.
- Undo log and commit listeners are only touched by the outermost
  transaction: listeners see exactly the events that survived.

Waiting for the lock is bounded by lock_timeout_seconds; a writer or reader
that cannot get in is told so with ConflictError and may retry.
"""

import threading
from collections import defaultdict
from contextlib import contextmanager
from typing import Callable, Iterable, Iterator, Optional

import structlog

from debt_ledger.config import get_settings
from debt_ledger.errors import ConflictError
from debt_ledger.models.debt import AccountId, AssetId, PendingProposal
from debt_ledger.models.events import AnyLedgerEvent
from debt_ledger.services.storage.interface import CommitListener, LedgerStorageInterface


logger = structlog.get_logger(__name__)

DebtKey = tuple[AssetId, AccountId, AccountId]
PairKey = tuple[AssetId, frozenset]


def _pair_key(asset: AssetId, account_a: AccountId, account_b: AccountId) -> PairKey:
    return asset, frozenset((account_a, account_b))


class InMemoryLedgerStorage(LedgerStorageInterface):
    """
    Ledger state held in dictionaries behind a serializing lock.

    Keeps an open-proposals-by-pair index next to the proposal store so
    pending balances never require a log scan.
    """

    def __init__(self, lock_timeout_seconds: Optional[float] = None):
        if lock_timeout_seconds is None:
            lock_timeout_seconds = get_settings().ledger.lock_timeout_seconds
        self._lock_timeout = lock_timeout_seconds
        self._lock = threading.RLock()
        self._owner: Optional[int] = None
        self._depth = 0

        self._debts: dict[DebtKey, int] = {}
        self._proposals: dict[int, PendingProposal] = {}
        self._open_by_pair: dict[PairKey, set[int]] = defaultdict(set)
        self._events: list[AnyLedgerEvent] = []
        self._proposal_counter = 0
        self._debt_sequence = 0

        self._undo: list[tuple[Callable, tuple]] = []
        self._commit_position = 0
        self._listeners: list[CommitListener] = []

    # ------------------------------------------------------------------
    # Transaction boundary
    # ------------------------------------------------------------------

    def _acquire(self) -> None:
        timeout = self._lock_timeout if self._lock_timeout > 0 else -1
        if not self._lock.acquire(timeout=timeout):
            raise ConflictError(
                "Ledger is busy with another transaction",
                details={"lock_timeout_seconds": self._lock_timeout},
            )

    @contextmanager
    def transaction(self) -> Iterator["InMemoryLedgerStorage"]:
        self._acquire()
        outermost = self._depth == 0
        savepoint = len(self._undo)
        self._depth += 1
        self._owner = threading.get_ident()
        try:
            yield self
        except BaseException:
            self._rollback_to(savepoint)
            if outermost:
                self._undo.clear()
            raise
        else:
            if outermost:
                self._commit()
        finally:
            self._depth -= 1
            if self._depth == 0:
                self._owner = None
            self._lock.release()

    @contextmanager
    def snapshot(self) -> Iterator["InMemoryLedgerStorage"]:
        self._acquire()
        try:
            yield self
        finally:
            self._lock.release()

    def add_commit_listener(self, listener: CommitListener) -> None:
        self._listeners.append(listener)

    def _commit(self) -> None:
        committed = self._events[self._commit_position:]
        self._commit_position = len(self._events)
        self._undo.clear()
        for listener in self._listeners:
            try:
                listener(committed)
            except Exception:
                # State is already committed; a listener cannot undo it
                logger.exception("commit_listener_failed", event_count=len(committed))

    def _rollback_to(self, savepoint: int) -> None:
        discarded = len(self._undo) - savepoint
        while len(self._undo) > savepoint:
            restore, args = self._undo.pop()
            restore(*args)
        if discarded:
            logger.debug("transaction_rolled_back", undone_steps=discarded)

    def _require_transaction(self) -> None:
        if self._depth == 0 or self._owner != threading.get_ident():
            raise RuntimeError("Ledger state can only be mutated inside transaction()")

    # ------------------------------------------------------------------
    # Ledger entries
    # ------------------------------------------------------------------

    def get_debt(self, asset: AssetId, debtor: AccountId, creditor: AccountId) -> int:
        with self.snapshot():
            return self._debts.get((asset, debtor, creditor), 0)

    def set_debt(
        self,
        asset: AssetId,
        debtor: AccountId,
        creditor: AccountId,
        amount: int,
    ) -> None:
        self._require_transaction()
        if amount < 0:
            raise ValueError(f"Ledger entries are unsigned, got {amount}")
        key = (asset, debtor, creditor)
        self._undo.append((self._restore_debt, (key, self._debts.get(key, 0))))
        self._restore_debt(key, amount)

    def _restore_debt(self, key: DebtKey, amount: int) -> None:
        if amount:
            self._debts[key] = amount
        else:
            self._debts.pop(key, None)

    def debt_keys(self) -> Iterable[DebtKey]:
        with self.snapshot():
            return list(self._debts)

    # ------------------------------------------------------------------
    # Proposals
    # ------------------------------------------------------------------

    def allocate_proposal_id(self) -> int:
        self._require_transaction()
        self._undo.append((self._set_proposal_counter, (self._proposal_counter,)))
        self._proposal_counter += 1
        return self._proposal_counter

    def _set_proposal_counter(self, value: int) -> None:
        self._proposal_counter = value

    @property
    def last_proposal_id(self) -> int:
        return self._proposal_counter

    def get_proposal(self, proposal_id: int) -> Optional[PendingProposal]:
        with self.snapshot():
            return self._proposals.get(proposal_id)

    def put_proposal(self, proposal: PendingProposal) -> None:
        self._require_transaction()
        self._undo.append((self._remove_proposal, (proposal.id,)))
        self._insert_proposal(proposal)

    def delete_proposal(self, proposal_id: int) -> None:
        self._require_transaction()
        proposal = self._proposals.get(proposal_id)
        if proposal is None:
            return
        self._undo.append((self._insert_proposal, (proposal,)))
        self._remove_proposal(proposal_id)

    def _insert_proposal(self, proposal: PendingProposal) -> None:
        self._proposals[proposal.id] = proposal
        self._open_by_pair[_pair_key(proposal.asset, proposal.creditor, proposal.debtor)].add(
            proposal.id
        )

    def _remove_proposal(self, proposal_id: int) -> None:
        proposal = self._proposals.pop(proposal_id)
        key = _pair_key(proposal.asset, proposal.creditor, proposal.debtor)
        ids = self._open_by_pair[key]
        ids.discard(proposal_id)
        if not ids:
            del self._open_by_pair[key]

    def open_proposals(
        self,
        account_a: AccountId,
        account_b: AccountId,
        asset: Optional[AssetId] = None,
    ) -> list[PendingProposal]:
        with self.snapshot():
            if asset is not None:
                ids = self._open_by_pair.get(_pair_key(asset, account_a, account_b), ())
                found = [self._proposals[i] for i in ids]
            else:
                found = [p for p in self._proposals.values() if p.involves(account_a, account_b)]
            return sorted(found, key=lambda p: p.id)

    # ------------------------------------------------------------------
    # Event log
    # ------------------------------------------------------------------

    def allocate_debt_sequence(self) -> int:
        self._require_transaction()
        self._undo.append((self._set_debt_sequence, (self._debt_sequence,)))
        self._debt_sequence += 1
        return self._debt_sequence

    def _set_debt_sequence(self, value: int) -> None:
        self._debt_sequence = value

    @property
    def next_position(self) -> int:
        return len(self._events)

    def append_event(self, event: AnyLedgerEvent) -> None:
        self._require_transaction()
        if event.position != len(self._events):
            raise ValueError(
                f"Event position {event.position} does not extend a log of {len(self._events)}"
            )
        self._undo.append((self._events.pop, ()))
        self._events.append(event)

    def events(self) -> list[AnyLedgerEvent]:
        with self.snapshot():
            return list(self._events)
