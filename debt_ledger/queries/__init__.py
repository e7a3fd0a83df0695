"""Balance and history queries."""

from debt_ledger.queries.reconstructor import BalanceReconstructor

__all__ = ["BalanceReconstructor"]
