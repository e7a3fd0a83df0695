"""
Abstract Ledger Storage Interface

DESIGN DECISION: We define an abstract interface for the ledger's state.
This allows us to:
1. Use in-memory storage for tests and single-process deployments
2. Swap in a durable, replicated backend later
3. Keep the netting, proposal and settlement logic decoupled from storage

The store holds three things that must always change in lockstep:
- The ledger entries (asset x debtor x creditor -> amount)
- The open proposals (and the counter that allocates their ids)
- The event log (and the debt sequence counter)

Every mutation happens inside transaction(). A transaction commits in full
or rolls back in full; nothing in between is ever visible to another caller.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Callable, Iterable, Optional, Sequence

from debt_ledger.models.debt import AccountId, AssetId, PendingProposal
from debt_ledger.models.events import AnyLedgerEvent


CommitListener = Callable[[Sequence[AnyLedgerEvent]], None]


class LedgerStorageInterface(ABC):
    """
    Abstract interface for ledger state.

    Any storage implementation must implement these methods and honour
    the transaction semantics described in the module docstring.
    """

    # ------------------------------------------------------------------
    # Transaction boundary
    # ------------------------------------------------------------------

    @abstractmethod
    def transaction(self) -> AbstractContextManager["LedgerStorageInterface"]:
        """
        Open a serialized, all-or-nothing unit of work.

        A call made from inside a running transaction (re-entry) joins it
        through a savepoint.

        Raises:
            ConflictError: If another writer holds the boundary too long
        """
        pass

    @abstractmethod
    def snapshot(self) -> AbstractContextManager["LedgerStorageInterface"]:
        """
        Hold a consistent read view; no mutation can interleave.

        Waiting for a running transaction is bounded the same way as
        transaction(): the reader gets ConflictError instead of blocking.
        """
        pass

    @abstractmethod
    def add_commit_listener(self, listener: CommitListener) -> None:
        """Call `listener` with the events of every committed outermost transaction."""
        pass

    # ------------------------------------------------------------------
    # Ledger entries
    # ------------------------------------------------------------------

    @abstractmethod
    def get_debt(self, asset: AssetId, debtor: AccountId, creditor: AccountId) -> int:
        """Current amount `debtor` owes `creditor` (zero if never set)."""
        pass

    @abstractmethod
    def set_debt(
        self,
        asset: AssetId,
        debtor: AccountId,
        creditor: AccountId,
        amount: int,
    ) -> None:
        """Overwrite a ledger entry. Only the netting engine and settlement call this."""
        pass

    @abstractmethod
    def debt_keys(self) -> Iterable[tuple[AssetId, AccountId, AccountId]]:
        """Every (asset, debtor, creditor) with a non-zero entry."""
        pass

    # ------------------------------------------------------------------
    # Proposals
    # ------------------------------------------------------------------

    @abstractmethod
    def allocate_proposal_id(self) -> int:
        """Next proposal id (1, 2, 3, ...). Never reused."""
        pass

    @property
    @abstractmethod
    def last_proposal_id(self) -> int:
        """Highest proposal id allocated so far (0 if none)."""
        pass

    @abstractmethod
    def get_proposal(self, proposal_id: int) -> Optional[PendingProposal]:
        """The open proposal with this id, or None if unknown or resolved."""
        pass

    @abstractmethod
    def put_proposal(self, proposal: PendingProposal) -> None:
        """Store an open proposal and index it by pair."""
        pass

    @abstractmethod
    def delete_proposal(self, proposal_id: int) -> None:
        """Remove a resolved proposal from the store and the pair index."""
        pass

    @abstractmethod
    def open_proposals(
        self,
        account_a: AccountId,
        account_b: AccountId,
        asset: Optional[AssetId] = None,
    ) -> list[PendingProposal]:
        """Open proposals between the pair (either direction), in id order."""
        pass

    # ------------------------------------------------------------------
    # Event log
    # ------------------------------------------------------------------

    @abstractmethod
    def allocate_debt_sequence(self) -> int:
        """Next DebtAdded sequence number (1, 2, 3, ...)."""
        pass

    @property
    @abstractmethod
    def next_position(self) -> int:
        """Position the next appended event will take."""
        pass

    @abstractmethod
    def append_event(self, event: AnyLedgerEvent) -> None:
        """
        Append an event to the log.

        Raises:
            ValueError: If event.position is not next_position
        """
        pass

    @abstractmethod
    def events(self) -> list[AnyLedgerEvent]:
        """Every event in the log, in log order."""
        pass
