"""Balance query package."""

from ledgerbook.queries.balances import BalanceEngine

__all__ = ["BalanceEngine"]
