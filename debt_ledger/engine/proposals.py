"""
Proposal State Machine

No debt reaches the ledger without the debtor's consent.

    propose  -> OPEN
    confirm  -> CONFIRMED  (debtor only; applies the debt through netting)
    reject   -> REJECTED   (debtor or creditor; ledger untouched)

CONFIRMED and REJECTED are terminal. A resolved proposal is removed from
the proposal store, so any later confirm/reject of the same id fails with
NotFoundError. Two callers racing to resolve one id are serialized by the
store transaction: exactly one wins, the other sees NotFoundError.

Amounts are NOT checked for positivity at propose time. A zero-amount
proposal can be created and fails InvalidOperandsError when confirmed,
leaving rejection as its only way out.
"""

from debt_ledger.errors import InvalidOperandsError, NotFoundError, UnauthorizedError
from debt_ledger.engine.event_log import EventLog
from debt_ledger.engine.netting import NettingEngine
from debt_ledger.models.debt import AccountId, AssetId, PendingProposal
from debt_ledger.models.events import DebtAdded, DebtConfirmed, DebtRejected
from debt_ledger.services.storage import LedgerStorageInterface


class ProposalStateMachine:
    """Owns pending proposals and their id counter."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        event_log: EventLog,
        netting: NettingEngine,
    ):
        self._storage = storage
        self._event_log = event_log
        self._netting = netting

    def propose(
        self,
        creditor: AccountId,
        debtor: AccountId,
        asset: AssetId,
        amount: int,
        memo: str = "",
    ) -> int:
        """
        Open a proposal that `debtor` owes `creditor` `amount` of `asset`.

        Returns:
            The new proposal id

        Raises:
            InvalidOperandsError: creditor == debtor, or amount is not a
                non-negative integer
        """
        if creditor == debtor:
            raise InvalidOperandsError(
                "Creditor and debtor must be different accounts",
                details={"account": creditor},
            )
        if isinstance(amount, bool) or not isinstance(amount, int) or amount < 0:
            raise InvalidOperandsError(
                f"Proposal amount must be a non-negative integer, got {amount!r}",
                details={"amount": str(amount)},
            )

        with self._storage.transaction() as store:
            proposal = PendingProposal(
                id=store.allocate_proposal_id(),
                creditor=creditor,
                debtor=debtor,
                asset=asset,
                amount=amount,
                memo=memo,
            )
            store.put_proposal(proposal)
            self._event_log.record_proposed(
                proposal_id=proposal.id,
                creditor=creditor,
                debtor=debtor,
                asset=asset,
                amount=amount,
                memo=memo,
            )
            return proposal.id

    def _open(self, proposal_id: int) -> PendingProposal:
        proposal = self._storage.get_proposal(proposal_id)
        if proposal is None:
            raise NotFoundError(
                f"No open proposal with id {proposal_id}",
                details={"proposal_id": proposal_id},
            )
        return proposal

    def confirm(self, proposal_id: int, caller: AccountId) -> tuple[DebtAdded, DebtConfirmed]:
        """
        Debtor accepts the proposal; the debt is netted into the ledger.

        Raises:
            NotFoundError: Unknown or already-resolved id
            UnauthorizedError: Caller is not the debtor
            InvalidOperandsError: The proposal's amount is zero
        """
        with self._storage.transaction() as store:
            proposal = self._open(proposal_id)
            if caller != proposal.debtor:
                raise UnauthorizedError(
                    "Only the debtor can confirm a proposal",
                    details={"proposal_id": proposal_id, "caller": caller},
                )

            added = self._netting.apply_debt(
                asset=proposal.asset,
                debtor=proposal.debtor,
                creditor=proposal.creditor,
                amount=proposal.amount,
                memo=proposal.memo,
            )
            store.delete_proposal(proposal_id)
            confirmed = self._event_log.record_confirmed(proposal_id)
            return added, confirmed

    def reject(self, proposal_id: int, caller: AccountId) -> DebtRejected:
        """
        Either party discards the proposal. The ledger is not touched.

        Raises:
            NotFoundError: Unknown or already-resolved id
            UnauthorizedError: Caller is neither creditor nor debtor
        """
        with self._storage.transaction() as store:
            proposal = self._open(proposal_id)
            if caller not in (proposal.creditor, proposal.debtor):
                raise UnauthorizedError(
                    "Only the creditor or the debtor can reject a proposal",
                    details={"proposal_id": proposal_id, "caller": caller},
                )

            store.delete_proposal(proposal_id)
            return self._event_log.record_rejected(proposal_id)
