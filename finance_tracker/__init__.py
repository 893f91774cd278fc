"""
Finance Tracker - Source Package

A personal income and expense ledger with payment tracking and a
grouped view of entries by date or by category.

DESIGN PRINCIPLES:
1. Money is Decimal, never float
2. Totals are derived on every read, never stored
3. Every record belongs to exactly one user
4. Every change is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Finance Tracker Team"
