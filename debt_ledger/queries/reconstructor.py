"""
History and Balance Reconstructor

DESIGN DECISION: Reads are DERIVED, never stored.
- Confirmed balances come straight from the ledger entries.
- Pending balances come from the open-proposals-by-pair index.
- History comes from the event log, cross-checked against the set of
  proposals that are still open.

The index is an optimisation only. replay_balance() computes the same view
from nothing but the event log, and verify_consistency() checks that the
two agree for every pair the log has ever seen.

This component never mutates anything.
"""

from typing import Optional

from debt_ledger.errors import InvalidOperandsError, NotFoundError
from debt_ledger.engine.event_log import EventLog
from debt_ledger.models.debt import (
    AccountId,
    AssetId,
    BalanceView,
    Discrepancy,
    HistoryEntry,
    HistoryStatus,
    PairBalance,
    PendingProposal,
    ProposalStatus,
)
from debt_ledger.models.events import DebtAdded, DebtProposed, DebtSettled
from debt_ledger.replay import FoldedLedger, fold_events
from debt_ledger.services.storage import LedgerStorageInterface


def _check_pair(account_a: AccountId, account_b: AccountId) -> None:
    if account_a == account_b:
        raise InvalidOperandsError(
            "A balance or history needs two different accounts",
            details={"account": account_a},
        )


def _pending_totals(
    proposals: list[PendingProposal],
    account_a: AccountId,
) -> PairBalance:
    a_owes_b = sum(p.amount for p in proposals if p.debtor == account_a)
    b_owes_a = sum(p.amount for p in proposals if p.creditor == account_a)
    return PairBalance(a_owes_b=a_owes_b, b_owes_a=b_owes_a)


class BalanceReconstructor:
    """
    Read-only views over the ledger.

    GUARANTEES:
    - Every view is taken from one consistent snapshot
    - Index-based and replay-based views are identical
    """

    def __init__(self, storage: LedgerStorageInterface, event_log: EventLog):
        self._storage = storage
        self._event_log = event_log

    # ------------------------------------------------------------------
    # Balances
    # ------------------------------------------------------------------

    def view_balance(
        self,
        asset: AssetId,
        account_a: AccountId,
        account_b: AccountId,
    ) -> BalanceView:
        """Confirmed and pending balances between A and B, from A's side."""
        _check_pair(account_a, account_b)

        with self._storage.snapshot() as store:
            confirmed = PairBalance(
                a_owes_b=store.get_debt(asset, account_a, account_b),
                b_owes_a=store.get_debt(asset, account_b, account_a),
            )
            pending = _pending_totals(
                store.open_proposals(account_a, account_b, asset),
                account_a,
            )

        return BalanceView(
            asset=asset,
            account_a=account_a,
            account_b=account_b,
            confirmed=confirmed,
            pending=pending,
        )

    def replay_balance(
        self,
        asset: AssetId,
        account_a: AccountId,
        account_b: AccountId,
    ) -> BalanceView:
        """Same as view_balance, computed by folding the whole event log."""
        _check_pair(account_a, account_b)
        with self._storage.snapshot() as store:
            folded = fold_events(store.events())
        return self._folded_view(folded, asset, account_a, account_b)

    @staticmethod
    def _folded_view(
        folded: FoldedLedger,
        asset: AssetId,
        account_a: AccountId,
        account_b: AccountId,
    ) -> BalanceView:
        open_between = [
            p for p in folded.open_proposals.values()
            if p.asset == asset and p.involves(account_a, account_b)
        ]
        return BalanceView(
            asset=asset,
            account_a=account_a,
            account_b=account_b,
            confirmed=PairBalance(
                a_owes_b=folded.debt(asset, account_a, account_b),
                b_owes_a=folded.debt(asset, account_b, account_a),
            ),
            pending=_pending_totals(open_between, account_a),
        )

    def verify_consistency(self) -> list[Discrepancy]:
        """
        Compare stored state with a full replay for every (asset, pair)
        that appears in the log. An empty list means they agree.
        """
        with self._storage.snapshot() as store:
            events = store.events()
            folded = fold_events(events)

            pairs: dict[tuple[AssetId, frozenset], tuple[AccountId, AccountId]] = {}
            for event in events:
                if isinstance(event, (DebtProposed, DebtAdded, DebtSettled)):
                    key = (event.asset, frozenset((event.debtor, event.creditor)))
                    pairs.setdefault(key, tuple(sorted((event.debtor, event.creditor))))
            for asset, debtor, creditor in store.debt_keys():
                key = (asset, frozenset((debtor, creditor)))
                pairs.setdefault(key, tuple(sorted((debtor, creditor))))

            discrepancies = []
            for (asset, _), (account_a, account_b) in sorted(pairs.items(), key=lambda i: (i[0][0], i[1])):
                stored = self.view_balance(asset, account_a, account_b)
                replayed = self._folded_view(folded, asset, account_a, account_b)
                if stored != replayed:
                    discrepancies.append(Discrepancy(
                        asset=asset,
                        account_a=account_a,
                        account_b=account_b,
                        stored=stored,
                        replayed=replayed,
                    ))
            return discrepancies

    # ------------------------------------------------------------------
    # History
    # ------------------------------------------------------------------

    def view_history(
        self,
        asset: Optional[AssetId],
        account_a: AccountId,
        account_b: AccountId,
        include_settlements: bool = False,
    ) -> list[HistoryEntry]:
        """
        Confirmed debts and still-open proposals between A and B, oldest first.

        Args:
            asset: Restrict to one asset, or None for every asset
            include_settlements: Also list settlements between the pair
        """
        _check_pair(account_a, account_b)

        entries = []
        with self._storage.snapshot() as store:
            for event in self._event_log.between(account_a, account_b, asset):
                if isinstance(event, DebtAdded):
                    entries.append(HistoryEntry(
                        position=event.position,
                        status=HistoryStatus.CONFIRMED,
                        asset=event.asset,
                        debtor=event.debtor,
                        creditor=event.creditor,
                        amount=event.amount,
                        memo=event.memo,
                        timestamp=event.timestamp,
                        sequence=event.sequence,
                    ))
                elif isinstance(event, DebtProposed):
                    if store.get_proposal(event.proposal_id) is None:
                        continue
                    entries.append(HistoryEntry(
                        position=event.position,
                        status=HistoryStatus.PENDING,
                        asset=event.asset,
                        debtor=event.debtor,
                        creditor=event.creditor,
                        amount=event.amount,
                        memo=event.memo,
                        timestamp=event.timestamp,
                        proposal_id=event.proposal_id,
                    ))
                elif include_settlements and isinstance(event, DebtSettled):
                    entries.append(HistoryEntry(
                        position=event.position,
                        status=HistoryStatus.SETTLED,
                        asset=event.asset,
                        debtor=event.debtor,
                        creditor=event.creditor,
                        amount=event.amount,
                        timestamp=event.timestamp,
                    ))

        return entries

    # ------------------------------------------------------------------
    # Proposal inspection
    # ------------------------------------------------------------------

    def proposal(self, proposal_id: int) -> PendingProposal:
        """
        Any proposal ever made, with its current status.

        Raises:
            NotFoundError: The id was never allocated
        """
        with self._storage.snapshot() as store:
            open_proposal = store.get_proposal(proposal_id)
            if open_proposal is not None:
                return open_proposal

            proposed = self._event_log.find_proposed(proposal_id)
            if proposed is None:
                raise NotFoundError(
                    f"No proposal with id {proposal_id}",
                    details={"proposal_id": proposal_id},
                )
            status = self._event_log.resolution_of(proposal_id) or ProposalStatus.OPEN

        return PendingProposal(
            id=proposed.proposal_id,
            creditor=proposed.creditor,
            debtor=proposed.debtor,
            asset=proposed.asset,
            amount=proposed.amount,
            memo=proposed.memo,
            status=status,
        )

    def proposals_between(
        self,
        account_a: AccountId,
        account_b: AccountId,
        asset: Optional[AssetId] = None,
    ) -> list[PendingProposal]:
        """Every proposal between the pair, any status, in id order."""
        _check_pair(account_a, account_b)

        with self._storage.snapshot() as store:
            folded = fold_events(store.events())
            proposed = self._event_log.between(account_a, account_b, asset)

        proposals = []
        for event in proposed:
            if not isinstance(event, DebtProposed):
                continue
            status = folded.resolutions.get(event.proposal_id, ProposalStatus.OPEN)
            proposals.append(PendingProposal(
                id=event.proposal_id,
                creditor=event.creditor,
                debtor=event.debtor,
                asset=event.asset,
                amount=event.amount,
                memo=event.memo,
                status=status,
            ))
        return proposals
