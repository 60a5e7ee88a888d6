"""
Books Kernel

A small-business bookkeeping ledger with inventory posting:
- Customer and supplier accounts with running balances
- Stock levels per product and warehouse with an out-of-stock guard
- Sale and purchase documents that post and reverse atomically
- Statements replayed from the transaction history
"""

__version__ = "0.1.0"
