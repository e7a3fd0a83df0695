"""
Settlement

Pays off a ledger entry in full through the value-transfer backend.

ORDERING (do not change):
1. Read the entry; zero means NothingToSettleError
2. Zero the entry
3. Call the transfer backend
4. Record DebtSettled

Step 2 comes before step 3 because the backend may call back into the
ledger before returning; by then there is nothing left to settle twice.
If the transfer fails, the transaction rolls back and the entry is
restored. No DebtSettled is recorded.
"""

import structlog

from debt_ledger.errors import NothingToSettleError, TransferFailedError
from debt_ledger.engine.event_log import EventLog
from debt_ledger.models.debt import AccountId, AssetId
from debt_ledger.models.events import DebtSettled
from debt_ledger.services.storage import LedgerStorageInterface
from debt_ledger.services.transfer import TransferBackend, TransferError


class SettlementOperation:
    """Zero-then-transfer settlement of a single ledger entry."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        event_log: EventLog,
        backend: TransferBackend,
    ):
        self._storage = storage
        self._event_log = event_log
        self._backend = backend
        self._logger = structlog.get_logger(__name__)

    def settle(self, asset: AssetId, debtor: AccountId, creditor: AccountId) -> DebtSettled:
        """
        Settle everything `debtor` owes `creditor` in `asset`.

        The debtor is the caller: only the party that owes can pay.

        Raises:
            NothingToSettleError: The entry is zero
            TransferFailedError: The backend reported failure (state restored)
        """
        with self._storage.transaction() as store:
            amount = store.get_debt(asset, debtor, creditor)
            if amount == 0:
                raise NothingToSettleError(
                    f"{debtor} owes {creditor} nothing in {asset}",
                    details={"asset": asset, "debtor": debtor, "creditor": creditor},
                )

            store.set_debt(asset, debtor, creditor, 0)

            try:
                receipt = self._backend.transfer(asset, debtor, creditor, amount)
            except TransferError as e:
                raise TransferFailedError(
                    f"Transfer of {amount} failed: {e}",
                    details={"asset": asset, "amount": amount},
                ) from e

            if not receipt.success:
                raise TransferFailedError(
                    f"Transfer of {amount} failed: {receipt.error_message or 'no reason given'}",
                    details={"asset": asset, "amount": amount, "reference": receipt.reference},
                )

            self._logger.debug(
                "settlement_transfer_completed",
                asset=asset,
                debtor=debtor,
                creditor=creditor,
                amount=amount,
                reference=receipt.reference,
            )
            return self._event_log.record_settled(
                debtor=debtor,
                creditor=creditor,
                asset=asset,
                amount=amount,
            )
