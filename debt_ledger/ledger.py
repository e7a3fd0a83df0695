"""
Debt Ledger

This module ties together all the components and defines the public
surface of the ledger core:

    propose, confirm, reject, settle      (mutations)
    view_balance, view_history            (views)

plus add_debt, proposal inspection and replay verification for trusted
tooling.

DESIGN DECISION: The ledger enforces the boundaries:
- No balance changes without the debtor's consent (except add_debt)
- Every mutation is one all-or-nothing transaction
- Every committed event is audited; every refusal is logged
- Only Conflict is retried, and only here
"""

from datetime import datetime
from typing import Callable, Optional, TypeVar

from tenacity import Retrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from debt_ledger.audit import AuditLogger
from debt_ledger.config import LedgerSettings, get_settings
from debt_ledger.engine import EventLog, NettingEngine, ProposalStateMachine, SettlementOperation
from debt_ledger.errors import ConflictError, LedgerError
from debt_ledger.models.debt import (
    AccountId,
    AssetId,
    BalanceView,
    Discrepancy,
    HistoryEntry,
    PendingProposal,
)
from debt_ledger.models.events import (
    AnyLedgerEvent,
    DebtAdded,
    DebtConfirmed,
    DebtRejected,
    DebtSettled,
)
from debt_ledger.queries import BalanceReconstructor
from debt_ledger.services.storage import InMemoryLedgerStorage, LedgerStorageInterface
from debt_ledger.services.transfer import InMemoryTransferBackend, TransferBackend


T = TypeVar("T")


class DebtLedger:
    """
    Shared record of who owes whom, per asset.

    Flow:
    1. Creditor proposes a debt           -> proposal id
    2. Debtor confirms (or either rejects) -> ledger netted, or discarded
    3. Debtor settles                      -> value transferred, entry zeroed
    4. Anyone views balances and history   -> derived from ledger + event log
    """

    def __init__(
        self,
        storage: Optional[LedgerStorageInterface] = None,
        transfer_backend: Optional[TransferBackend] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[LedgerSettings] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._settings = settings or get_settings().ledger
        self._storage = storage or InMemoryLedgerStorage(
            lock_timeout_seconds=self._settings.lock_timeout_seconds,
        )
        self._transfer_backend = transfer_backend or InMemoryTransferBackend()
        self._audit_logger = audit_logger or AuditLogger()
        self._audit_logger.attach(self._storage)

        self._event_log = EventLog(self._storage, clock=clock)
        self._netting = NettingEngine(self._storage, self._event_log)
        self._proposals = ProposalStateMachine(self._storage, self._event_log, self._netting)
        self._settlement = SettlementOperation(
            self._storage, self._event_log, self._transfer_backend
        )
        self._reconstructor = BalanceReconstructor(self._storage, self._event_log)

    @property
    def storage(self) -> LedgerStorageInterface:
        return self._storage

    @property
    def transfer_backend(self) -> TransferBackend:
        return self._transfer_backend

    def _run(self, operation: str, action: Callable[[], T]) -> T:
        """
        Run one ledger operation, retrying it only on ConflictError.

        Every LedgerError that reaches the caller is logged first.
        """
        retrying = Retrying(
            retry=retry_if_exception_type(ConflictError),
            stop=stop_after_attempt(self._settings.conflict_retry_attempts),
            wait=wait_exponential(
                multiplier=self._settings.conflict_retry_wait_min,
                min=self._settings.conflict_retry_wait_min,
                max=self._settings.conflict_retry_wait_max,
            ),
            before_sleep=lambda state: self._audit_logger.log_conflict_retry(
                operation, state.attempt_number
            ),
            reraise=True,
        )
        try:
            return retrying(action)
        except LedgerError as e:
            self._audit_logger.log_rejected(operation, e)
            raise

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def propose(
        self,
        creditor: AccountId,
        debtor: AccountId,
        asset: AssetId,
        amount: int,
        memo: str = "",
    ) -> int:
        """Open a proposal that `debtor` owes `creditor`. Returns its id."""
        return self._run(
            "propose",
            lambda: self._proposals.propose(creditor, debtor, asset, amount, memo),
        )

    def confirm(self, proposal_id: int, caller: AccountId) -> tuple[DebtAdded, DebtConfirmed]:
        """Debtor accepts a proposal; the debt is netted into the ledger."""
        return self._run(
            "confirm",
            lambda: self._proposals.confirm(proposal_id, caller),
        )

    def reject(self, proposal_id: int, caller: AccountId) -> DebtRejected:
        """Creditor or debtor discards a proposal."""
        return self._run(
            "reject",
            lambda: self._proposals.reject(proposal_id, caller),
        )

    def settle(self, asset: AssetId, debtor: AccountId, creditor: AccountId) -> DebtSettled:
        """Debtor pays everything owed to `creditor` in `asset`."""
        return self._run(
            "settle",
            lambda: self._settlement.settle(asset, debtor, creditor),
        )

    def add_debt(
        self,
        asset: AssetId,
        debtor: AccountId,
        creditor: AccountId,
        amount: int,
        memo: str = "",
    ) -> DebtAdded:
        """
        Net a debt into the ledger without a proposal.

        For trusted callers only (tooling, imports); users go through
        propose/confirm.
        """
        return self._run(
            "add_debt",
            lambda: self._netting.apply_debt(asset, debtor, creditor, amount, memo),
        )

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def view_balance(
        self,
        asset: AssetId,
        account_a: AccountId,
        account_b: AccountId,
    ) -> BalanceView:
        return self._run(
            "view_balance",
            lambda: self._reconstructor.view_balance(asset, account_a, account_b),
        )

    def view_history(
        self,
        asset: Optional[AssetId],
        account_a: AccountId,
        account_b: AccountId,
        include_settlements: bool = False,
    ) -> list[HistoryEntry]:
        """History between A and B; asset=None covers every asset."""
        return self._run(
            "view_history",
            lambda: self._reconstructor.view_history(
                asset, account_a, account_b, include_settlements
            ),
        )

    def proposal(self, proposal_id: int) -> PendingProposal:
        return self._run(
            "proposal",
            lambda: self._reconstructor.proposal(proposal_id),
        )

    def proposals_between(
        self,
        account_a: AccountId,
        account_b: AccountId,
        asset: Optional[AssetId] = None,
    ) -> list[PendingProposal]:
        return self._run(
            "proposals_between",
            lambda: self._reconstructor.proposals_between(account_a, account_b, asset),
        )

    def replay_balance(
        self,
        asset: AssetId,
        account_a: AccountId,
        account_b: AccountId,
    ) -> BalanceView:
        return self._run(
            "replay_balance",
            lambda: self._reconstructor.replay_balance(asset, account_a, account_b),
        )

    def verify_consistency(self) -> list[Discrepancy]:
        return self._run(
            "verify_consistency",
            self._reconstructor.verify_consistency,
        )

    def events(self) -> list[AnyLedgerEvent]:
        return self._event_log.events()
