"""
Netting Engine

Applies a new directed debt to the ledger, offsetting whatever is owed in
the opposite direction first.

GUARANTEE: for any (asset, A, B) at most one of entry(A, B) and entry(B, A)
is non-zero, and entry(A, B) - entry(B, A) always equals the signed sum of
everything applied between them.

Every debt is netted individually, in the order it is applied. Proposals
are confirmed or rejected one at a time, so debts must never be batched
into a single net figure before they reach this engine.
"""

from debt_ledger.errors import InvalidOperandsError
from debt_ledger.engine.event_log import EventLog
from debt_ledger.models.debt import AccountId, AssetId
from debt_ledger.models.events import DebtAdded
from debt_ledger.services.storage import LedgerStorageInterface


def net_debt(owed: int, opposite: int, amount: int) -> tuple[int, int]:
    """
    Pure netting step.

    Args:
        owed: What the debtor already owes the creditor
        opposite: What the creditor owes the debtor
        amount: New debt from debtor to creditor

    Returns:
        (new_owed, new_opposite)
    """
    if opposite >= amount:
        return owed, opposite - amount
    return owed + (amount - opposite), 0


def validate_operands(debtor: AccountId, creditor: AccountId, amount: int) -> None:
    if debtor == creditor:
        raise InvalidOperandsError(
            "Debtor and creditor must be different accounts",
            details={"account": debtor},
        )
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidOperandsError(
            f"Debt amount must be a positive integer, got {amount!r}",
            details={"amount": str(amount)},
        )


class NettingEngine:
    """
    The only writer of ledger entries for new debts.

    Usable on its own as a state transition over a store: no I/O, no
    external calls.
    """

    def __init__(self, storage: LedgerStorageInterface, event_log: EventLog):
        self._storage = storage
        self._event_log = event_log

    def apply_debt(
        self,
        asset: AssetId,
        debtor: AccountId,
        creditor: AccountId,
        amount: int,
        memo: str = "",
    ) -> DebtAdded:
        """
        Record that `debtor` owes `creditor` `amount` more of `asset`.

        Example, starting from A owes B 100:
            apply_debt(B -> A, 20)   -> A owes B 80
            apply_debt(A -> B, 80)   -> A owes B 160
            apply_debt(B -> A, 200)  -> B owes A 40

        Raises:
            InvalidOperandsError: debtor == creditor, or amount <= 0
        """
        validate_operands(debtor, creditor, amount)

        with self._storage.transaction() as store:
            owed = store.get_debt(asset, debtor, creditor)
            opposite = store.get_debt(asset, creditor, debtor)
            new_owed, new_opposite = net_debt(owed, opposite, amount)

            if new_opposite != opposite:
                store.set_debt(asset, creditor, debtor, new_opposite)
            if new_owed != owed:
                store.set_debt(asset, debtor, creditor, new_owed)

            return self._event_log.record_added(
                debtor=debtor,
                creditor=creditor,
                asset=asset,
                amount=amount,
                memo=memo,
            )
