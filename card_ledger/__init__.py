"""
Credit Card Ledger - Source Package

The read and aggregation core behind a personal finance app's
credit card screens: purchase status, bill totals, limit projections
and card balances.

DESIGN PRINCIPLES:
1. Stored totals are never trusted; bills are recomputed on every read
2. Fail visibly: a failed read is an error, never an empty list
3. One bad bill must not hide the others
4. Money is Decimal, end to end
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Credit Card Ledger Team"
