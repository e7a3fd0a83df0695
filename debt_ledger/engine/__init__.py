"""Ledger engine: netting, proposals, settlement and the event log."""

from debt_ledger.engine.event_log import EventLog
from debt_ledger.engine.netting import NettingEngine, net_debt
from debt_ledger.engine.proposals import ProposalStateMachine
from debt_ledger.engine.settlement import SettlementOperation

__all__ = [
    "EventLog",
    "NettingEngine",
    "ProposalStateMachine",
    "SettlementOperation",
    "net_debt",
]
