"""
Tests for the balance and history views.

Views are derived from the ledger entries, the open-proposal index and the
event log. The replay tests check that the three never disagree.
"""

from datetime import datetime, timedelta, timezone

import pytest

from debt_ledger.config import LedgerSettings
from debt_ledger.errors import InvalidOperandsError, NotFoundError
from debt_ledger.ledger import DebtLedger
from debt_ledger.models import HistoryStatus, PairBalance, ProposalStatus


USDC = "USDC"
ETH = "ETH"


class TickingClock:
    """Deterministic clock: one second per event."""

    def __init__(self):
        self.now = datetime(2024, 12, 15, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture
def ledger():
    return DebtLedger(
        settings=LedgerSettings(lock_timeout_seconds=5.0),
        clock=TickingClock(),
    )


class TestViewBalance:
    """Tests for confirmed and pending balances."""

    def test_empty_pair(self, ledger):
        """Test an unknown pair has zero balances."""
        view = ledger.view_balance(USDC, "alice", "bob")
        assert view.confirmed == PairBalance()
        assert view.pending == PairBalance()

    def test_pending_by_direction(self, ledger):
        """Test pending totals are split by who would owe whom."""
        ledger.propose("alice", "bob", USDC, 100)  # bob would owe alice
        ledger.propose("alice", "bob", USDC, 50)
        ledger.propose("bob", "alice", USDC, 30)  # alice would owe bob

        view = ledger.view_balance(USDC, "bob", "alice")
        assert view.pending.a_owes_b == 150
        assert view.pending.b_owes_a == 30
        assert view.confirmed == PairBalance()

    def test_view_from_either_side(self, ledger):
        """Test swapping the accounts swaps the directions."""
        ledger.add_debt(USDC, "bob", "alice", 80)

        from_bob = ledger.view_balance(USDC, "bob", "alice")
        from_alice = ledger.view_balance(USDC, "alice", "bob")
        assert from_bob.confirmed.a_owes_b == 80
        assert from_alice.confirmed.b_owes_a == 80
        assert from_bob.confirmed.net == -from_alice.confirmed.net

    def test_resolved_proposals_leave_pending(self, ledger):
        """Test confirmed and rejected proposals are no longer pending."""
        confirmed_id = ledger.propose("alice", "bob", USDC, 100)
        rejected_id = ledger.propose("alice", "bob", USDC, 40)
        ledger.propose("alice", "bob", USDC, 7)

        ledger.confirm(confirmed_id, "bob")
        ledger.reject(rejected_id, "alice")

        view = ledger.view_balance(USDC, "bob", "alice")
        assert view.confirmed.a_owes_b == 100
        assert view.pending.a_owes_b == 7

    def test_pending_is_per_asset(self, ledger):
        """Test proposals in another asset are not counted."""
        ledger.propose("alice", "bob", ETH, 5)
        assert ledger.view_balance(USDC, "bob", "alice").pending == PairBalance()
        assert ledger.view_balance(ETH, "bob", "alice").pending.a_owes_b == 5

    def test_same_account_rejected(self, ledger):
        """Test a balance needs two different accounts."""
        with pytest.raises(InvalidOperandsError):
            ledger.view_balance(USDC, "alice", "alice")


class TestViewHistory:
    """Tests for pair history."""

    def test_history_in_log_order(self, ledger):
        """Test confirmed and pending entries are listed oldest first."""
        first = ledger.propose("alice", "bob", USDC, 100, "Dinner")
        ledger.confirm(first, "bob")
        second = ledger.propose("bob", "alice", USDC, 30, "Taxi")

        history = ledger.view_history(USDC, "alice", "bob")

        assert [h.status for h in history] == [HistoryStatus.CONFIRMED, HistoryStatus.PENDING]
        assert history[0].memo == "Dinner"
        assert history[0].debtor == "bob"
        assert history[0].sequence == 1
        assert history[1].proposal_id == second
        assert history[1].debtor == "alice"
        assert history[0].position < history[1].position
        assert history[0].timestamp < history[1].timestamp

    def test_resolved_proposals_not_listed_as_pending(self, ledger):
        """Test neither confirmed nor rejected proposals show as pending."""
        confirmed_id = ledger.propose("alice", "bob", USDC, 100)
        rejected_id = ledger.propose("alice", "bob", USDC, 40)
        ledger.confirm(confirmed_id, "bob")
        ledger.reject(rejected_id, "bob")

        history = ledger.view_history(USDC, "alice", "bob")

        assert len(history) == 1
        assert history[0].status == HistoryStatus.CONFIRMED
        assert history[0].amount == 100

    def test_history_excludes_other_pairs(self, ledger):
        """Test debts with third parties are not listed."""
        ledger.add_debt(USDC, "bob", "alice", 10)
        ledger.add_debt(USDC, "bob", "carol", 20)
        ledger.propose("carol", "alice", USDC, 30)

        history = ledger.view_history(USDC, "alice", "bob")
        assert [h.amount for h in history] == [10]

    def test_history_across_assets(self, ledger):
        """Test asset=None lists every asset between the pair."""
        ledger.add_debt(USDC, "bob", "alice", 10)
        ledger.add_debt(ETH, "alice", "bob", 2)

        assert len(ledger.view_history(USDC, "alice", "bob")) == 1
        history = ledger.view_history(None, "alice", "bob")
        assert [h.asset for h in history] == [USDC, ETH]

    def test_history_keeps_each_debt_separate(self, ledger):
        """Test netting does not merge history lines."""
        ledger.add_debt(USDC, "bob", "alice", 100)
        ledger.add_debt(USDC, "alice", "bob", 30)

        history = ledger.view_history(USDC, "alice", "bob")
        assert [(h.debtor, h.amount) for h in history] == [("bob", 100), ("alice", 30)]
        assert [h.sequence for h in history] == [1, 2]

    def test_settlements_are_optional(self, ledger):
        """Test settlements only appear when asked for."""
        ledger.transfer_backend.mint(USDC, "bob", 1_000)
        ledger.add_debt(USDC, "bob", "alice", 100)
        ledger.settle(USDC, "bob", "alice")

        assert [h.status for h in ledger.view_history(USDC, "alice", "bob")] == [
            HistoryStatus.CONFIRMED,
        ]
        with_settlements = ledger.view_history(
            USDC, "alice", "bob", include_settlements=True
        )
        assert [h.status for h in with_settlements] == [
            HistoryStatus.CONFIRMED,
            HistoryStatus.SETTLED,
        ]
        assert with_settlements[1].amount == 100

    def test_same_account_rejected(self, ledger):
        """Test history needs two different accounts."""
        with pytest.raises(InvalidOperandsError):
            ledger.view_history(USDC, "bob", "bob")


class TestProposalInspection:
    """Tests for proposal() and proposals_between()."""

    def test_proposal_status_over_lifecycle(self, ledger):
        """Test each proposal reports its current status."""
        open_id = ledger.propose("alice", "bob", USDC, 1)
        confirmed_id = ledger.propose("alice", "bob", USDC, 2)
        rejected_id = ledger.propose("alice", "bob", USDC, 3)
        ledger.confirm(confirmed_id, "bob")
        ledger.reject(rejected_id, "alice")

        assert ledger.proposal(open_id).status == ProposalStatus.OPEN
        assert ledger.proposal(confirmed_id).status == ProposalStatus.CONFIRMED
        assert ledger.proposal(rejected_id).status == ProposalStatus.REJECTED
        assert ledger.proposal(confirmed_id).amount == 2

    def test_unknown_proposal(self, ledger):
        """Test an id never allocated is not found."""
        with pytest.raises(NotFoundError):
            ledger.proposal(99)

    def test_proposals_between(self, ledger):
        """Test every proposal between the pair is listed in id order."""
        first = ledger.propose("alice", "bob", USDC, 1)
        ledger.propose("alice", "carol", USDC, 2)
        third = ledger.propose("bob", "alice", ETH, 3)
        ledger.reject(first, "bob")

        proposals = ledger.proposals_between("alice", "bob")
        assert [p.id for p in proposals] == [first, third]
        assert [p.status for p in proposals] == [ProposalStatus.REJECTED, ProposalStatus.OPEN]

        only_eth = ledger.proposals_between("bob", "alice", asset=ETH)
        assert [p.id for p in only_eth] == [third]


class TestReplayConsistency:
    """Tests that stored state always matches a replay of the log."""

    def test_replay_matches_view(self, ledger):
        """Test a mixed workload replays to the same balances."""
        ledger.transfer_backend.mint(USDC, "alice", 10_000)
        ledger.confirm(ledger.propose("alice", "bob", USDC, 100), "bob")
        ledger.confirm(ledger.propose("bob", "alice", USDC, 250), "alice")
        ledger.reject(ledger.propose("alice", "bob", USDC, 70), "bob")
        ledger.propose("bob", "alice", USDC, 5)
        ledger.settle(USDC, "alice", "bob")
        ledger.add_debt(USDC, "carol", "alice", 12)

        for a, b in [("alice", "bob"), ("bob", "alice"), ("alice", "carol")]:
            assert ledger.replay_balance(USDC, a, b) == ledger.view_balance(USDC, a, b)
        assert ledger.verify_consistency() == []

    def test_verify_detects_tampering(self, ledger):
        """Test a ledger entry changed behind the log is reported."""
        ledger.add_debt(USDC, "bob", "alice", 100)

        with ledger.storage.transaction() as store:
            store.set_debt(USDC, "bob", "alice", 90)

        discrepancies = ledger.verify_consistency()
        assert len(discrepancies) == 1
        assert discrepancies[0].stored.confirmed != discrepancies[0].replayed.confirmed


class TestRoundTrips:
    """Tests for the propose/confirm and propose/reject round trips."""

    def test_confirm_equals_direct_add(self, ledger):
        """Test propose+confirm has the same effect as add_debt."""
        other = DebtLedger(settings=LedgerSettings(lock_timeout_seconds=5.0))

        ledger.add_debt(USDC, "bob", "alice", 60)
        ledger.confirm(ledger.propose("bob", "alice", USDC, 25), "alice")
        other.add_debt(USDC, "bob", "alice", 60)
        other.add_debt(USDC, "alice", "bob", 25)

        assert (
            ledger.view_balance(USDC, "alice", "bob").confirmed
            == other.view_balance(USDC, "alice", "bob").confirmed
        )

    def test_reject_is_a_no_op(self, ledger):
        """Test propose+reject leaves the balances where they were."""
        ledger.add_debt(USDC, "bob", "alice", 60)
        before = ledger.view_balance(USDC, "alice", "bob")

        ledger.reject(ledger.propose("alice", "bob", USDC, 25), "bob")

        assert ledger.view_balance(USDC, "alice", "bob") == before


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
