"""
LedgerBook - Source Package

The ledger, balance and tagging engine behind a small-business
customer credit book.

DESIGN PRINCIPLES:
1. Balances are derived from entries, never stored
2. Fail early, fail visibly
3. No silent corrections
4. Every mutation is logged
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "LedgerBook Team"
