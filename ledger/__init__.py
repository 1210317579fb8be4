"""
Personal Ledger - Source Package

A double-entry bookkeeping engine for personal finances.

DESIGN PRINCIPLES:
1. Every transaction is exactly one debit and one credit
2. Only asset and liability accounts carry a balance
3. Validate everything before writing anything
4. Every mutation commits as one atomic batch
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "Personal Ledger Team"
