"""
LedgerMap - trial balance classification and reconciliation.

Reads PDF, Excel and CSV trial balances, classifies every line into an
IFRS category and reconciles category sums against reported totals.
"""

__version__ = "1.0.0"
