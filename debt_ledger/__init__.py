"""
Debt Ledger - Source Package

A peer-to-peer record of who owes whom, for any number of fungible assets,
with an immutable audit trail of how each balance was reached.

DESIGN PRINCIPLES:
1. Creditor proposes → Debtor confirms → Ledger nets
2. Opposite debts between a pair always collapse to one net balance
3. Every mutation is all-or-nothing
4. The event log is the only source of historical truth
5. Storage and value transfer are swappable
"""

__version__ = "1.0.0"
__author__ = "Debt Ledger Team"
