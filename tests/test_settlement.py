"""
Tests for settlement.

Settlement moves real value, so the tests focus on what must never happen:
paying twice, losing a debt when the transfer fails, or recording a
settlement that did not transfer anything.
"""

import pytest

from debt_ledger.config import LedgerSettings
from debt_ledger.errors import NothingToSettleError, TransferFailedError
from debt_ledger.ledger import DebtLedger
from debt_ledger.models import DebtAdded, DebtSettled
from debt_ledger.replay import rebuild_storage
from debt_ledger.services.transfer import (
    InMemoryTransferBackend,
    TransferBackend,
    TransferReceipt,
)


ASSET = "USDC"


class ReentrantBackend(InMemoryTransferBackend):
    """Calls settle() again from inside the transfer, like a hostile token hook."""

    def __init__(self):
        super().__init__()
        self.ledger = None
        self.nested_errors = []

    def transfer(self, asset, sender, recipient, amount):
        try:
            self.ledger.settle(asset, sender, recipient)
        except NothingToSettleError as e:
            self.nested_errors.append(e)
        return super().transfer(asset, sender, recipient, amount)


class CounterDebtBackend(InMemoryTransferBackend):
    """Records a debt back to the payer from inside the transfer."""

    def __init__(self, counter_amount):
        super().__init__()
        self.ledger = None
        self.counter_amount = counter_amount

    def transfer(self, asset, sender, recipient, amount):
        self.ledger.add_debt(asset, recipient, sender, self.counter_amount)
        return super().transfer(asset, sender, recipient, amount)


class DecliningBackend(TransferBackend):
    """Reports failure through the receipt instead of raising."""

    def transfer(self, asset, sender, recipient, amount):
        return TransferReceipt(
            success=False,
            asset=asset,
            sender=sender,
            recipient=recipient,
            amount=amount,
            error_message="declined by backend",
        )


class BrokenBackend(TransferBackend):
    """Fails with an error that is not a TransferError."""

    def transfer(self, asset, sender, recipient, amount):
        raise RuntimeError("backend crashed")


def make_ledger(backend):
    return DebtLedger(
        transfer_backend=backend,
        settings=LedgerSettings(lock_timeout_seconds=5.0),
    )


@pytest.fixture
def backend():
    return InMemoryTransferBackend()


@pytest.fixture
def ledger(backend):
    return make_ledger(backend)


class TestSettle:
    """Tests for a successful settlement."""

    def test_settle_transfers_and_zeroes(self, ledger, backend):
        """Test the full amount moves and the entry is cleared."""
        backend.mint(ASSET, "bob", 1_000)
        ledger.add_debt(ASSET, "bob", "alice", 300)

        event = ledger.settle(ASSET, "bob", "alice")

        assert isinstance(event, DebtSettled)
        assert event.amount == 300
        assert event.debtor == "bob"
        assert event.creditor == "alice"
        assert ledger.storage.get_debt(ASSET, "bob", "alice") == 0
        assert backend.balance_of(ASSET, "bob") == 700
        assert backend.balance_of(ASSET, "alice") == 300

    def test_settle_emits_exactly_one_event(self, ledger, backend):
        """Test one DebtSettled and one transfer per settlement."""
        backend.mint(ASSET, "bob", 1_000)
        ledger.add_debt(ASSET, "bob", "alice", 300)

        ledger.settle(ASSET, "bob", "alice")

        settled = [e for e in ledger.events() if isinstance(e, DebtSettled)]
        assert len(settled) == 1
        assert len(backend.receipts) == 1

    def test_settle_only_touches_one_asset(self, ledger, backend):
        """Test other assets between the pair are left alone."""
        backend.mint(ASSET, "bob", 1_000)
        ledger.add_debt(ASSET, "bob", "alice", 300)
        ledger.add_debt("ETH", "bob", "alice", 5)

        ledger.settle(ASSET, "bob", "alice")

        assert ledger.storage.get_debt("ETH", "bob", "alice") == 5

    def test_settled_state_replays(self, ledger, backend):
        """Test a replay of the log agrees after settlement."""
        backend.mint(ASSET, "bob", 1_000)
        ledger.add_debt(ASSET, "bob", "alice", 300)
        ledger.settle(ASSET, "bob", "alice")

        assert ledger.replay_balance(ASSET, "bob", "alice") == ledger.view_balance(
            ASSET, "bob", "alice"
        )


class TestNothingToSettle:
    """Tests for settling an empty entry."""

    def test_no_debt(self, ledger):
        """Test settling nothing fails without touching the backend."""
        with pytest.raises(NothingToSettleError):
            ledger.settle(ASSET, "bob", "alice")
        assert ledger.events() == []

    def test_wrong_direction(self, ledger, backend):
        """Test the creditor cannot settle the debtor's debt."""
        backend.mint(ASSET, "alice", 1_000)
        ledger.add_debt(ASSET, "bob", "alice", 300)

        with pytest.raises(NothingToSettleError):
            ledger.settle(ASSET, "alice", "bob")
        assert ledger.storage.get_debt(ASSET, "bob", "alice") == 300

    def test_settle_twice(self, ledger, backend):
        """Test a second settlement finds nothing."""
        backend.mint(ASSET, "bob", 1_000)
        ledger.add_debt(ASSET, "bob", "alice", 300)
        ledger.settle(ASSET, "bob", "alice")

        with pytest.raises(NothingToSettleError):
            ledger.settle(ASSET, "bob", "alice")
        assert backend.balance_of(ASSET, "alice") == 300


class TestTransferFailure:
    """Tests for rollback when the transfer does not happen."""

    def test_insufficient_funds_restores_entry(self, ledger, backend):
        """Test the entry is restored and no event is recorded."""
        backend.mint(ASSET, "bob", 100)
        ledger.add_debt(ASSET, "bob", "alice", 300)
        events_before = ledger.events()

        with pytest.raises(TransferFailedError) as exc_info:
            ledger.settle(ASSET, "bob", "alice")

        assert exc_info.value.__cause__ is not None
        assert ledger.storage.get_debt(ASSET, "bob", "alice") == 300
        assert ledger.events() == events_before
        assert backend.balance_of(ASSET, "bob") == 100

    def test_declined_receipt_restores_entry(self):
        """Test success=False is treated as a failed transfer."""
        ledger = make_ledger(DecliningBackend())
        ledger.add_debt(ASSET, "bob", "alice", 300)

        with pytest.raises(TransferFailedError, match="declined by backend"):
            ledger.settle(ASSET, "bob", "alice")

        assert ledger.storage.get_debt(ASSET, "bob", "alice") == 300
        assert not any(isinstance(e, DebtSettled) for e in ledger.events())

    def test_unexpected_backend_error_propagates_and_rolls_back(self):
        """Test a crash in the backend is not masked but still rolls back."""
        ledger = make_ledger(BrokenBackend())
        ledger.add_debt(ASSET, "bob", "alice", 300)

        with pytest.raises(RuntimeError, match="backend crashed"):
            ledger.settle(ASSET, "bob", "alice")

        assert ledger.storage.get_debt(ASSET, "bob", "alice") == 300

    def test_retry_after_funding_succeeds(self, ledger, backend):
        """Test a failed settlement can be retried once funds arrive."""
        ledger.add_debt(ASSET, "bob", "alice", 300)
        with pytest.raises(TransferFailedError):
            ledger.settle(ASSET, "bob", "alice")

        backend.mint(ASSET, "bob", 300)
        event = ledger.settle(ASSET, "bob", "alice")
        assert event.amount == 300


class TestReentrancy:
    """Tests for a backend that calls back into the ledger."""

    def test_nested_settle_finds_nothing(self):
        """Test a re-entrant settle cannot pay the same debt twice."""
        backend = ReentrantBackend()
        ledger = make_ledger(backend)
        backend.ledger = ledger
        backend.mint(ASSET, "bob", 1_000)
        ledger.add_debt(ASSET, "bob", "alice", 300)

        event = ledger.settle(ASSET, "bob", "alice")

        assert event.amount == 300
        assert len(backend.nested_errors) == 1
        assert len(backend.receipts) == 1
        assert backend.balance_of(ASSET, "alice") == 300
        assert len([e for e in ledger.events() if isinstance(e, DebtSettled)]) == 1
        assert ledger.verify_consistency() == []

    @pytest.mark.parametrize("counter_amount", [30, 100, 130])
    def test_debt_recorded_during_transfer_replays(self, counter_amount):
        """Test a counter-debt added mid-transfer survives replay and rebuild."""
        backend = CounterDebtBackend(counter_amount)
        ledger = make_ledger(backend)
        backend.ledger = ledger
        backend.mint(ASSET, "alice", 1_000)
        ledger.add_debt(ASSET, "alice", "bob", 100)

        event = ledger.settle(ASSET, "alice", "bob")

        assert event.amount == 100
        types = [type(e) for e in ledger.events()]
        assert types == [DebtAdded, DebtAdded, DebtSettled]
        view = ledger.view_balance(ASSET, "bob", "alice")
        assert view.confirmed.a_owes_b == counter_amount
        assert view.confirmed.b_owes_a == 0
        assert ledger.replay_balance(ASSET, "bob", "alice") == view
        assert ledger.verify_consistency() == []

        rebuilt = DebtLedger(
            storage=rebuild_storage(ledger.events()),
            settings=LedgerSettings(lock_timeout_seconds=5.0),
        )
        assert rebuilt.view_balance(ASSET, "bob", "alice") == view


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
